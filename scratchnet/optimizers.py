from dataclasses import dataclass


@dataclass
class SGD:
    """Stochastic gradient descent. Holds only the learning rate."""
    learning_rate: float = 1.0

    def __post_init__(self):
        if self.learning_rate <= 0:
            raise ValueError("learning_rate must be > 0")
