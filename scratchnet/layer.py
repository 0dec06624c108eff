"""
Layer wrapper: holds exactly one concrete layer from the fixed variant set and
dispatches the shared capabilities to it.
"""
from enum import Enum

from scratchnet.layers import Conv2D, Dense, Flatten, Input1D, Input3D, MaxPool2D


class LayerKind(str, Enum):
    INPUT1D = "input1d"
    INPUT3D = "input3d"
    DENSE = "dense"
    FLATTEN = "flatten"
    CONV2D = "conv2d"
    MAXPOOL2D = "maxpool2d"

    @property
    def is_input(self):
        return self in (LayerKind.INPUT1D, LayerKind.INPUT3D)


VARIANTS = {
    LayerKind.INPUT1D: Input1D,
    LayerKind.INPUT3D: Input3D,
    LayerKind.DENSE: Dense,
    LayerKind.FLATTEN: Flatten,
    LayerKind.CONV2D: Conv2D,
    LayerKind.MAXPOOL2D: MaxPool2D,
}

_SPATIAL = frozenset({LayerKind.CONV2D, LayerKind.MAXPOOL2D, LayerKind.FLATTEN})

# Which layer kinds may directly follow each kind
ALLOWED_SUCCESSORS = {
    LayerKind.INPUT1D: frozenset({LayerKind.DENSE}),
    LayerKind.DENSE: frozenset({LayerKind.DENSE}),
    LayerKind.INPUT3D: _SPATIAL,
    LayerKind.CONV2D: _SPATIAL,
    LayerKind.MAXPOOL2D: _SPATIAL,
    LayerKind.FLATTEN: frozenset({LayerKind.DENSE}),
}


def can_follow(prev_kind, next_kind):
    return next_kind in ALLOWED_SUCCESSORS[prev_kind]


class Layer:
    """
    A network layer. `kind` names the variant, `p` is the concrete layer.
    Capabilities take and pass other wrappers, so a layer only ever sees its
    immediate predecessor.
    """

    def __init__(self, kind, p):
        kind = LayerKind(kind)
        if not isinstance(p, VARIANTS[kind]):
            raise TypeError(f"{type(p).__name__} is not a {kind.value} layer")
        self.kind = kind
        self.p = p

    @property
    def name(self):
        return self.kind.value

    @property
    def is_input(self):
        return self.kind.is_input

    @property
    def output(self):
        return self.p.output

    @property
    def gradient(self):
        return self.p.gradient

    @property
    def output_shape(self):
        return self.p.output_shape

    def set(self, values):
        if not self.is_input:
            raise TypeError(f"Cannot set values on a {self.name} layer")
        self.p.set(values)

    def init(self, prev):
        self.p.init(prev.p)

    def forward(self, prev):
        self.p.forward(prev.p)

    def backward(self, prev, gradient):
        return self.p.backward(prev.p, gradient)

    def update(self, learning_rate):
        self.p.update(learning_rate)

    def parameters(self):
        return self.p.parameters()

    def gradients(self):
        return self.p.gradients()

    def print_info(self):
        print(f"Layer: {self.name}")
        print("-" * 40)
        self.p.print_info()
        print()

    def __repr__(self):
        return f"Layer({self.name}, output_shape={self.output_shape})"
