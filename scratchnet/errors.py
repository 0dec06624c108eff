"""
Errors raised while building or importing a network. All of them are fatal:
no partially built network is ever returned.
"""


class NetworkError(Exception):
    """Base class for scratchnet errors."""


class InvalidTopology(NetworkError, ValueError):
    """Too few layers, a missing input layer, or an illegal layer sequence."""


class UnsupportedShape(NetworkError, NotImplementedError):
    """Non-square kernel or pool, or unequal strides."""


class UnsupportedLayerClass(NetworkError, NotImplementedError):
    """A layer class in an external model file that has no variant here."""


class InternalMismatch(NetworkError, RuntimeError):
    """Imported and constructed layer types disagree at some position."""
