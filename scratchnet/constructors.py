"""
Factories for the layer variants. Each returns a Layer wrapper ready to be
placed in a Network.
"""
from scratchnet.layer import Layer, LayerKind
from scratchnet.layers import Conv2D, Dense, Flatten, Input1D, Input3D, MaxPool2D


def input_layer(*shape):
    """
    Input layer. A single size gives a 1-d input, three sizes give a
    (height, width, channels) input. A tuple may also be passed directly.
    """
    if len(shape) == 1 and isinstance(shape[0], (tuple, list)):
        shape = tuple(shape[0])
    if len(shape) == 1:
        return Layer(LayerKind.INPUT1D, Input1D(shape[0]))
    return Layer(LayerKind.INPUT3D, Input3D(shape))


def dense(units, activation="sigmoid", seed=None):
    return Layer(LayerKind.DENSE, Dense(units, activation=activation, seed=seed))


def flatten():
    return Layer(LayerKind.FLATTEN, Flatten())


def conv2d(filters, kernel_size=3, activation="relu", seed=None):
    return Layer(
        LayerKind.CONV2D,
        Conv2D(filters, kernel_size=kernel_size, activation=activation, seed=seed),
    )


def maxpool2d(pool_size=2, stride=None):
    return Layer(LayerKind.MAXPOOL2D, MaxPool2D(pool_size=pool_size, stride=stride))
