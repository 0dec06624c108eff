"""
Training configuration.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Accumulation(str, Enum):
    """How per-sample parameter gradients are combined within a batch."""
    # Summed over the batch and all workers, step with learning_rate / batch_size
    MEAN = "mean"
    # Summed over the batch and all workers, step with learning_rate
    SUM = "sum"
    # Step after every sample; worker replicas are averaged at batch end
    PER_SAMPLE = "per_sample"


@dataclass
class TrainConfig:
    """Configuration of one call to Network.train"""

    batch_size: int = 32
    epochs: int = 1
    num_workers: int = 1
    accumulation: Accumulation = Accumulation.MEAN
    seed: Optional[int] = None
    # Batches between progress log lines; 0 logs once per epoch only
    log_every: int = 0

    def __post_init__(self):
        try:
            self.accumulation = Accumulation(self.accumulation)
        except ValueError:
            choices = ", ".join(a.value for a in Accumulation)
            raise ValueError(
                f"Unknown accumulation {self.accumulation!r}, expected one of {choices}"
            ) from None

    def validate(self):
        if self.batch_size <= 0:
            raise ValueError("batch_size must be > 0")
        if self.epochs < 0:
            raise ValueError("epochs must be >= 0")
        if self.num_workers < 1:
            raise ValueError("num_workers must be >= 1")
        if self.log_every < 0:
            raise ValueError("log_every must be >= 0")
        return self
