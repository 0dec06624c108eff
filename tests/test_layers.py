"""
Layer-level tests: analytic gradients against finite differences and the
pooling / flatten routing.
"""
import numpy as np
import pytest

from scratchnet.activations import ACTIVATIONS, get_activation
from scratchnet.layers import Flatten, Input1D, Input3D, MaxPool2D
from scratchnet.losses import quadratic


def numerical_gradient(f, x, eps=1e-6):
    grad = np.zeros_like(x)
    for idx in np.ndindex(x.shape):
        orig = x[idx]
        x[idx] = orig + eps
        plus = f()
        x[idx] = orig - eps
        minus = f()
        x[idx] = orig
        grad[idx] = (plus - minus) / (2 * eps)
    return grad


def check_gradients(net, x, target):
    net.forward(x)
    net.backward(target)
    analytic = [[g.copy() for g in layer.gradients()] for layer in net.layers]
    input_grad = net.layers[1].gradient.copy()

    def loss():
        return quadratic(target, net.output(x))

    for layer, grads in zip(net.layers, analytic):
        for param, grad in zip(layer.parameters(), grads):
            np.testing.assert_allclose(grad, numerical_gradient(loss, param), rtol=1e-4, atol=1e-7)

    np.testing.assert_allclose(input_grad, numerical_gradient(loss, x), rtol=1e-4, atol=1e-7)


def test_dense_gradients(dense_net):
    check_gradients(dense_net, np.array([0.3, -0.7, 0.5]), np.array([0.2, 0.8]))


def test_cnn_gradients(cnn_net):
    rng = np.random.default_rng(7)
    check_gradients(cnn_net, rng.standard_normal((6, 6, 2)), np.array([0.5, -0.5]))


def test_parameter_gradients_accumulate(dense_net):
    x = np.array([0.3, -0.7, 0.5])
    target = np.array([0.2, 0.8])
    dense_net.forward(x)
    dense_net.backward(target)
    once = dense_net.layers[1].p.dw.copy()
    dense_net.forward(x)
    dense_net.backward(target)
    np.testing.assert_allclose(dense_net.layers[1].p.dw, 2 * once)


class TestMaxPool2D:
    def setup_method(self):
        self.prev = Input3D((4, 4, 1))
        self.prev.set(np.arange(16, dtype=float).reshape(4, 4, 1))
        self.pool = MaxPool2D(pool_size=2)
        self.pool.init(self.prev)

    def test_forward(self):
        self.pool.forward(self.prev)
        np.testing.assert_array_equal(self.pool.output[:, :, 0], [[5, 7], [13, 15]])

    def test_backward_routes_to_max(self):
        self.pool.forward(self.prev)
        grad = self.pool.backward(self.prev, np.array([[1.0, 2.0], [3.0, 4.0]]).reshape(2, 2, 1))
        expected = np.zeros((4, 4))
        expected[1, 1], expected[1, 3], expected[3, 1], expected[3, 3] = 1, 2, 3, 4
        np.testing.assert_array_equal(grad[:, :, 0], expected)

    def test_overlapping_windows(self):
        pool = MaxPool2D(pool_size=3, stride=1)
        pool.init(self.prev)
        assert pool.output_shape == (2, 2, 1)
        pool.forward(self.prev)
        grad = pool.backward(self.prev, np.ones((2, 2, 1)))
        assert grad.sum() == 4


def test_flatten_round_trip_shape():
    prev = Input3D((2, 3, 2))
    prev.set(np.arange(12, dtype=float).reshape(2, 3, 2))
    layer = Flatten()
    layer.init(prev)
    layer.forward(prev)
    assert layer.output.shape == (12,)
    assert layer.backward(prev, np.ones(12)).shape == (2, 3, 2)


def test_input_rejects_wrong_shape():
    layer = Input1D(3)
    with pytest.raises(ValueError):
        layer.set([1.0, 2.0])


@pytest.mark.parametrize("name", sorted(ACTIVATIONS))
def test_activation_derivatives(name):
    activation = get_activation(name)
    z = np.array([-1.3, -0.2, 0.4, 2.1])
    eps = 1e-6
    if name == "softmax":
        # Diagonal of the Jacobian
        numeric = np.array([
            (activation.forward(z + eps * e)[i] - activation.forward(z - eps * e)[i]) / (2 * eps)
            for i, e in enumerate(np.eye(len(z)))
        ])
    else:
        numeric = (activation.forward(z + eps) - activation.forward(z - eps)) / (2 * eps)
    np.testing.assert_allclose(activation.prime(z), numeric, rtol=1e-5, atol=1e-8)


def test_unknown_activation():
    with pytest.raises(ValueError, match="Unknown activation"):
        get_activation("swishy")
