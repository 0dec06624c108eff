"""
Concrete layer variants: input, dense, conv2d, max pooling and flatten.
Every layer works on a single sample. Spatial tensors are laid out as
(height, width, channels).
"""
import numpy as np

from scratchnet.activations import get_activation

# ---- Base Layer ----
class BaseLayer:
    def __init__(self):
        self.input_shape = None
        self.output_shape = None
        self.output = None   # Last computed output
        self.gradient = None # Last computed gradient w.r.t. this layer's input

    # Allocate parameters and buffers from the previous layer's output shape
    def init(self, prev):
        raise NotImplementedError

    # Forward pass reading the previous layer's output
    def forward(self, prev):
        raise NotImplementedError

    # Backward pass interface to be implemented by subclasses
    def backward(self, prev, gradient):
        raise NotImplementedError

    # Parameter update hook (no-op for layers without params)
    def update(self, lr):
        # general no parameters to update
        return

    def parameters(self):
        return []

    def gradients(self):
        return []

    @property
    def num_params(self):
        return sum(p.size for p in self.parameters())

    def print_info(self):
        print(f"Input shape: {self.input_shape}")
        print(f"Output shape: {self.output_shape}")
        print(f"Parameters: {self.num_params}")


# ---- Input Layers ----
class InputLayer(BaseLayer):
    def __init__(self, shape):
        super().__init__()
        self.output_shape = tuple(int(n) for n in shape)
        self.output = np.zeros(self.output_shape)

    # Copy a raw sample into the output buffer
    def set(self, values):
        values = np.asarray(values, dtype=float)
        if values.shape != self.output_shape:
            raise ValueError(
                f"Input of shape {values.shape} does not match input layer "
                f"shape {self.output_shape}"
            )
        self.output = values.copy()

    def print_info(self):
        print(f"Output shape: {self.output_shape}")


class Input1D(InputLayer):
    def __init__(self, size):
        super().__init__((size,))


class Input3D(InputLayer):
    def __init__(self, shape):
        if len(shape) != 3:
            raise ValueError(f"Input3D expects (height, width, channels), got {shape}")
        super().__init__(shape)


# ---- High Layers ----
class Dense(BaseLayer):
    def __init__(self, units, activation="sigmoid", seed=None):
        super().__init__()
        self.units = units
        self.activation = get_activation(activation)
        self.seed = seed
        self.output_shape = (units,)
        self.weights = None # (units, input_size)
        self.biases = None
        self.dw = None
        self.db = None
        self.z = None

    def init(self, prev):
        (input_size,) = prev.output_shape
        self.input_shape = prev.output_shape
        # Initialize weights with random initialization, bias to zeros
        rng = np.random.default_rng(self.seed)
        self.weights = rng.standard_normal((self.units, input_size)) * np.sqrt(2.0 / input_size)
        self.biases = np.zeros(self.units)
        self.dw = np.zeros_like(self.weights)
        self.db = np.zeros_like(self.biases)
        self.z = np.zeros(self.units)
        self.output = np.zeros(self.units)
        self.gradient = np.zeros(input_size)

    # Affine forward + activation
    def forward(self, prev):
        self.z = self.weights @ prev.output + self.biases
        self.output = self.activation.forward(self.z)

    # Backprop through activation then affine; parameter gradients accumulate
    def backward(self, prev, gradient):
        db = gradient * self.activation.prime(self.z)
        self.dw += np.outer(db, prev.output)
        self.db += db
        self.gradient = self.weights.T @ db
        return self.gradient

    # Gradient step on weights and bias
    def update(self, lr):
        self.weights -= lr * self.dw
        self.biases -= lr * self.db
        self.dw.fill(0)
        self.db.fill(0)

    def parameters(self):
        return [self.weights, self.biases]

    def gradients(self):
        return [self.dw, self.db]

    def print_info(self):
        super().print_info()
        print(f"Activation: {self.activation.name}")


# ---- Convolutional and Pooling Layers ----

class Conv2D(BaseLayer):
    def __init__(self, filters, kernel_size=3, activation="relu", seed=None):
        super().__init__()
        self.filters = filters
        self.kernel_size = kernel_size
        self.activation = get_activation(activation)
        self.seed = seed
        self.weights = None # (filters, k, k, channels)
        self.biases = None
        self.dw = None
        self.db = None
        self.z = None

    def init(self, prev):
        height, width, channels = prev.output_shape
        k = self.kernel_size
        if k > height or k > width:
            raise ValueError(f"Kernel size {k} larger than input {prev.output_shape}")
        self.input_shape = prev.output_shape
        self.output_shape = (height - k + 1, width - k + 1, self.filters)
        rng = np.random.default_rng(self.seed)
        self.weights = rng.standard_normal((self.filters, k, k, channels)) * np.sqrt(
            2.0 / (k * k * channels)
        )
        self.biases = np.zeros(self.filters)
        self.dw = np.zeros_like(self.weights)
        self.db = np.zeros_like(self.biases)
        self.z = np.zeros(self.output_shape)
        self.output = np.zeros(self.output_shape)
        self.gradient = np.zeros(self.input_shape)

    # Valid convolution with stride 1
    def forward(self, prev):
        x = prev.output
        k = self.kernel_size
        out_h, out_w, _ = self.output_shape
        z = np.empty(self.output_shape)
        for i in range(out_h):
            for j in range(out_w):
                region = x[i:i+k, j:j+k, :]
                z[i, j, :] = np.tensordot(self.weights, region, axes=3) + self.biases
        self.z = z
        self.output = self.activation.forward(z)

    # Compute dW, db and the input gradient
    def backward(self, prev, gradient):
        x = prev.output
        k = self.kernel_size
        out_h, out_w, _ = self.output_shape
        dz = gradient * self.activation.prime(self.z)
        dx = np.zeros_like(x)
        for i in range(out_h):
            for j in range(out_w):
                region = x[i:i+k, j:j+k, :]
                self.dw += dz[i, j, :, None, None, None] * region
                dx[i:i+k, j:j+k, :] += np.tensordot(dz[i, j, :], self.weights, axes=1)
        self.db += dz.sum(axis=(0, 1))
        self.gradient = dx
        return self.gradient

    # Apply gradient step to filters and biases
    def update(self, lr):
        self.weights -= lr * self.dw
        self.biases -= lr * self.db
        self.dw.fill(0)
        self.db.fill(0)

    def parameters(self):
        return [self.weights, self.biases]

    def gradients(self):
        return [self.dw, self.db]

    def print_info(self):
        super().print_info()
        print(f"Activation: {self.activation.name}")


class MaxPool2D(BaseLayer):
    def __init__(self, pool_size=2, stride=None):
        super().__init__()
        self.pool_size = pool_size
        self.stride = pool_size if stride is None else stride
        self.maxloc = None # Flat argmax inside each pooling window, per channel

    def init(self, prev):
        height, width, channels = prev.output_shape
        k = self.pool_size
        s = self.stride
        if k > height or k > width:
            raise ValueError(f"Pool size {k} larger than input {prev.output_shape}")
        self.input_shape = prev.output_shape
        self.output_shape = ((height - k) // s + 1, (width - k) // s + 1, channels)
        self.maxloc = np.zeros(self.output_shape, dtype=int)
        self.output = np.zeros(self.output_shape)
        self.gradient = np.zeros(self.input_shape)

    # Forward max pooling with argmax kept for backprop
    def forward(self, prev):
        x = prev.output
        k = self.pool_size
        s = self.stride
        out_h, out_w, channels = self.output_shape
        out = np.empty(self.output_shape)
        for i in range(out_h):
            for j in range(out_w):
                hs = i * s
                ws = j * s
                region = x[hs:hs+k, ws:ws+k, :].reshape(k * k, channels)
                idx = np.argmax(region, axis=0)
                self.maxloc[i, j, :] = idx
                out[i, j, :] = region[idx, np.arange(channels)]
        self.output = out

    # Route each gradient value back to the max of its window
    def backward(self, prev, gradient):
        k = self.pool_size
        s = self.stride
        out_h, out_w, channels = self.output_shape
        dx = np.zeros(self.input_shape)
        channel_idx = np.arange(channels)
        for i in range(out_h):
            for j in range(out_w):
                di, dj = np.divmod(self.maxloc[i, j, :], k)
                dx[i * s + di, j * s + dj, channel_idx] += gradient[i, j, :]
        self.gradient = dx
        return self.gradient

    def print_info(self):
        super().print_info()
        print(f"Pool size: {self.pool_size}, stride: {self.stride}")


class Flatten(BaseLayer):
    def init(self, prev):
        self.input_shape = prev.output_shape
        self.output_shape = (int(np.prod(self.input_shape)),)
        self.output = np.zeros(self.output_shape)
        self.gradient = np.zeros(self.input_shape)

    # Flatten spatial dims to a vector
    def forward(self, prev):
        self.output = prev.output.reshape(-1).copy()

    # Reshape gradient back to original tensor shape
    def backward(self, prev, gradient):
        self.gradient = np.reshape(gradient, self.input_shape)
        return self.gradient
