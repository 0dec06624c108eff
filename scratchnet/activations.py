"""
Activation functions used by the dense and convolutional layers, looked up by
the names Keras writes into its model config.
"""
import numpy as np


class Activation:
    name = None

    # Activation value at pre-activation z
    def forward(self, z):
        raise NotImplementedError

    # Elementwise derivative at pre-activation z
    def prime(self, z):
        raise NotImplementedError


class Linear(Activation):
    name = "linear"

    # Identity activation: passthrough
    def forward(self, z):
        return z

    def prime(self, z):
        return np.ones_like(z)


class ReLU(Activation):
    name = "relu"

    def forward(self, z):
        return np.maximum(z, 0)

    def prime(self, z):
        return (z > 0).astype(z.dtype)


class Sigmoid(Activation):
    name = "sigmoid"

    def forward(self, z):
        return 1 / (1 + np.exp(-z))

    def prime(self, z):
        s = self.forward(z)
        return s * (1 - s)


class Tanh(Activation):
    name = "tanh"

    def forward(self, z):
        return np.tanh(z)

    def prime(self, z):
        return 1 - np.tanh(z) ** 2


class Softplus(Activation):
    name = "softplus"

    def forward(self, z):
        return np.logaddexp(0, z)

    def prime(self, z):
        return 1 / (1 + np.exp(-z))


class Softmax(Activation):
    """
    Softmax over the whole output vector. The derivative is the diagonal of the
    Jacobian only, which is exact when paired with a cross-entropy style error
    and an approximation under the quadratic loss.
    """
    name = "softmax"

    def forward(self, z):
        shifted = z - np.max(z)
        exp = np.exp(shifted)
        return exp / np.sum(exp)

    def prime(self, z):
        s = self.forward(z)
        return s * (1 - s)


ACTIVATIONS = {
    cls.name: cls for cls in (Linear, ReLU, Sigmoid, Tanh, Softplus, Softmax)
}


def get_activation(name):
    if isinstance(name, Activation):
        return name
    try:
        return ACTIVATIONS[name.lower()]()
    except (KeyError, AttributeError):
        raise ValueError(f"Unknown activation function: {name!r}") from None
