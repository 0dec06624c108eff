"""
scratchnet: a small NumPy neural network library with layer-by-layer forward
and backward passes and data-parallel mini-batch SGD.
"""
import logging

from scratchnet.config import Accumulation, TrainConfig
from scratchnet.constructors import conv2d, dense, flatten, input_layer, maxpool2d
from scratchnet.errors import (
    InternalMismatch,
    InvalidTopology,
    NetworkError,
    UnsupportedLayerClass,
    UnsupportedShape,
)
from scratchnet.layer import Layer, LayerKind
from scratchnet.logging_config import setup_logging
from scratchnet.models import Network
from scratchnet.optimizers import SGD

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"
