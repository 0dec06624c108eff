"""
Network: an ordered stack of layers with forward/backward passes, parameter
update, Keras import and the training entry point.
"""
import logging

import h5py
import numpy as np

from scratchnet import constructors
from scratchnet.config import Accumulation, TrainConfig
from scratchnet.errors import (
    InternalMismatch,
    InvalidTopology,
    UnsupportedLayerClass,
    UnsupportedShape,
)
from scratchnet.keras import get_hdf5_dataset, get_keras_h5_layers, weights_path
from scratchnet.layer import LayerKind, can_follow
from scratchnet.losses import quadratic, quadratic_derivative
from scratchnet.training import Trainer

logger = logging.getLogger(__name__)

# Network-side variant expected for each importable Keras class
KERAS_KINDS = {
    "Conv2D": (LayerKind.CONV2D,),
    "Dense": (LayerKind.DENSE,),
    "Flatten": (LayerKind.FLATTEN,),
    "InputLayer": (LayerKind.INPUT1D, LayerKind.INPUT3D),
    "MaxPooling2D": (LayerKind.MAXPOOL2D,),
}


def _layer_from_keras(desc):
    if desc.class_name == "Conv2D":
        if len(desc.kernel_size) != 2 or desc.kernel_size[0] != desc.kernel_size[1]:
            raise UnsupportedShape(f"Non-square kernel in conv2d layer {desc.name} not supported.")
        if any(s != 1 for s in desc.strides) or any(d != 1 for d in desc.dilation_rate):
            raise UnsupportedShape(
                f"Strided or dilated conv2d layer {desc.name} not supported."
            )
        if desc.padding != "valid":
            raise UnsupportedShape(
                f"Padding '{desc.padding}' in conv2d layer {desc.name} not supported."
            )
        return constructors.conv2d(
            desc.filters, desc.kernel_size[0], activation=desc.activation or "linear"
        )

    if desc.class_name == "Dense":
        return constructors.dense(desc.units[0], activation=desc.activation or "linear")

    if desc.class_name == "Flatten":
        return constructors.flatten()

    if desc.class_name == "InputLayer":
        return constructors.input_layer(desc.units)

    if desc.class_name == "MaxPooling2D":
        if len(desc.pool_size) != 2 or desc.pool_size[0] != desc.pool_size[1]:
            raise UnsupportedShape(f"Non-square pool in maxpool2d layer {desc.name} not supported.")
        strides = desc.strides or desc.pool_size
        if strides[0] != strides[1]:
            raise UnsupportedShape(
                f"Unequal strides in maxpool2d layer {desc.name} are not supported."
            )
        if desc.padding != "valid":
            raise UnsupportedShape(
                f"Padding '{desc.padding}' in maxpool2d layer {desc.name} not supported."
            )
        return constructors.maxpool2d(desc.pool_size[0], strides[0])

    raise UnsupportedLayerClass(f"Keras layer class {desc.class_name} is not supported.")


def _load_weights(layer, name, weights, biases):
    for param, value, label in ((layer.p.weights, weights, "kernel"), (layer.p.biases, biases, "bias")):
        if value.shape != param.shape:
            raise ValueError(
                f"Keras {label} of layer {name} has shape {value.shape}, "
                f"expected {param.shape}."
            )
        param[...] = value


class Network:
    def __init__(self, layers):
        layers = list(layers)

        # There must be at least two layers
        if len(layers) < 2:
            raise InvalidTopology("A network must have at least 2 layers.")

        # The first layer must be an input layer
        if not layers[0].is_input:
            raise InvalidTopology("First layer in the network must be an input layer.")

        for n in range(1, len(layers)):
            prev, layer = layers[n - 1], layers[n]
            if not can_follow(prev.kind, layer.kind):
                raise InvalidTopology(
                    f"A {layer.name} layer cannot follow a {prev.name} layer (position {n})."
                )

        self.layers = layers

        # Allocate each layer's parameters from the previous layer's output shape
        for n in range(1, len(self.layers)):
            self.layers[n].init(self.layers[n - 1])

        logger.debug(
            "Built network: " + " -> ".join(f"{l.name}{l.output_shape}" for l in self.layers)
        )

    @classmethod
    def from_layers(cls, layers):
        return cls(layers)

    @classmethod
    def from_keras(cls, filename):
        """
        Build a network from a Keras .h5 model file and load its weights.
        Dense kernels are transposed from Keras' (inputs, units) to the
        (units, inputs) layout used here.
        """
        keras_layers = get_keras_h5_layers(filename)
        net = cls([_layer_from_keras(desc) for desc in keras_layers])

        with h5py.File(filename, "r") as f:
            for desc, layer in zip(keras_layers[1:], net.layers[1:]):
                if layer.kind not in KERAS_KINDS[desc.class_name]:
                    raise InternalMismatch(
                        f"Internal error in from_keras(): mismatch in layer types between "
                        f"Keras layer {desc.name} ({desc.class_name}) and network layer {layer.name}."
                    )

                if layer.kind is LayerKind.DENSE:
                    biases = get_hdf5_dataset(f, weights_path(desc.name, "bias"))
                    kernel = get_hdf5_dataset(f, weights_path(desc.name, "kernel"))
                    _load_weights(layer, desc.name, kernel.T, biases)
                elif layer.kind is LayerKind.CONV2D:
                    biases = get_hdf5_dataset(f, weights_path(desc.name, "bias"))
                    kernel = get_hdf5_dataset(f, weights_path(desc.name, "kernel"))
                    # (k, k, channels, filters) -> (filters, k, k, channels)
                    _load_weights(layer, desc.name, np.transpose(kernel, (3, 0, 1, 2)), biases)

        logger.info(f"Loaded {len(net.layers)} layers from {filename}")
        return net

    # Forward pass through sequential layers
    def forward(self, input):
        self.layers[0].set(input)
        for n in range(1, len(self.layers)):
            self.layers[n].forward(self.layers[n - 1])

    # Backward pass from the output layer down to the first non-input layer
    def backward(self, output):
        output = np.asarray(output, dtype=float)
        num_layers = len(self.layers)
        for n in range(num_layers - 1, 0, -1):
            if n == num_layers - 1:
                gradient = quadratic_derivative(output, self.layers[n].output)
            else:
                gradient = self.layers[n + 1].gradient
            self.layers[n].backward(self.layers[n - 1], gradient)

    def output(self, input):
        """Run a forward pass and return a copy of the output layer's output."""
        output_layer = self.layers[-1]
        if output_layer.kind not in (LayerKind.DENSE, LayerKind.FLATTEN):
            raise InvalidTopology(
                f"Output layer must be dense or flatten, not {output_layer.name}."
            )
        self.forward(input)
        return output_layer.output.copy()

    def predict(self, inputs):
        """Outputs for a batch of samples stored along the last axis."""
        inputs = np.asarray(inputs, dtype=float)
        return np.stack([self.output(inputs[..., j]) for j in range(inputs.shape[-1])], axis=-1)

    def loss(self, inputs, targets):
        """Mean quadratic loss over a batch of samples stored along the last axis."""
        outputs = self.predict(inputs)
        return quadratic(np.asarray(targets, dtype=float), outputs) / outputs.shape[-1]

    # Update parameters for all layers
    def update(self, learning_rate):
        for layer in self.layers:
            layer.update(learning_rate)

    def print_info(self):
        for layer in self.layers:
            layer.print_info()

    def train(self, inputs, targets, batch_size, epochs, optimizer,
              num_workers=1, accumulation=Accumulation.MEAN, seed=None, log_every=0):
        """
        Mini-batch SGD. Samples are stored along the last axis of `inputs`
        and `targets`. Returns the mean loss per epoch.
        """
        config = TrainConfig(
            batch_size=batch_size,
            epochs=epochs,
            num_workers=num_workers,
            accumulation=accumulation,
            seed=seed,
            log_every=log_every,
        )
        return Trainer(self, optimizer, config).fit(inputs, targets)
