"""
Keras HDF5 Reader
Reads the layer layout and weight datasets of a Sequential Keras model saved
in the legacy .h5 format.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import h5py
import numpy as np

logger = logging.getLogger(__name__)


@dataclass
class KerasLayer:
    """Description of one layer as found in the Keras model config."""
    name: str
    class_name: str
    units: Tuple[int, ...] = field(default_factory=tuple)
    activation: Optional[str] = None
    kernel_size: Tuple[int, ...] = field(default_factory=tuple)
    filters: Optional[int] = None
    pool_size: Tuple[int, ...] = field(default_factory=tuple)
    strides: Tuple[int, ...] = field(default_factory=tuple)
    padding: str = "valid"
    dilation_rate: Tuple[int, ...] = field(default_factory=tuple)


def _as_tuple(value) -> Tuple[int, ...]:
    if value is None:
        return ()
    if isinstance(value, int):
        return (value,)
    return tuple(int(v) for v in value)


def _batch_shape(config: dict) -> Optional[Tuple[int, ...]]:
    # Keras 2 writes batch_input_shape, Keras 3 writes batch_shape
    shape = config.get("batch_input_shape", config.get("batch_shape"))
    if shape is None:
        return None
    # Drop the leading batch dimension
    return _as_tuple(shape[1:])


def _read_model_config(h5_file: h5py.File) -> dict:
    if "model_config" not in h5_file.attrs:
        raise ValueError(f"{h5_file.filename} has no 'model_config' attribute")
    raw = h5_file.attrs["model_config"]
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    return json.loads(raw)


def parse_model_config(model_config: dict) -> List[KerasLayer]:
    """
    Turn a Keras model config into an ordered list of layer descriptors.
    """
    config = model_config.get("config", model_config)
    # Very old Sequential configs are a bare list of layers
    layer_configs = config if isinstance(config, list) else config.get("layers", [])

    layers = []
    for entry in layer_configs:
        class_name = entry["class_name"]
        cfg = entry.get("config", {})
        name = cfg.get("name", class_name.lower())

        if class_name == "InputLayer":
            units = _batch_shape(cfg) or ()
        elif "units" in cfg:
            units = _as_tuple(cfg["units"])
        else:
            units = ()

        layer = KerasLayer(
            name=name,
            class_name=class_name,
            units=units,
            activation=cfg.get("activation"),
            kernel_size=_as_tuple(cfg.get("kernel_size")),
            filters=cfg.get("filters"),
            pool_size=_as_tuple(cfg.get("pool_size")),
            strides=_as_tuple(cfg.get("strides")),
            padding=cfg.get("padding", "valid"),
            dilation_rate=_as_tuple(cfg.get("dilation_rate")),
        )

        # Sequential models built with input_shape on the first layer carry no
        # InputLayer entry; synthesize one from the batch shape.
        if not layers and class_name != "InputLayer":
            shape = _batch_shape(cfg)
            if shape:
                layers.append(KerasLayer(name=f"{name}_input", class_name="InputLayer", units=shape))

        layers.append(layer)

    return layers


def get_keras_h5_layers(filename: str) -> List[KerasLayer]:
    """
    Read the layer descriptors of a Keras .h5 model file.

    Args:
        filename: Path to the .h5 file.
    """
    if not h5py.is_hdf5(filename):
        raise ValueError(f"{filename} is not an HDF5 file")

    with h5py.File(filename, "r") as f:
        model_config = _read_model_config(f)

    layers = parse_model_config(model_config)
    logger.debug(f"Read {len(layers)} layers from {filename}")
    return layers


def get_hdf5_dataset(h5_file: h5py.File, object_name: str) -> np.ndarray:
    """
    Read a dataset as a float array. Keras 2 suffixes weight names with ':0',
    newer writers do not, so both spellings are tried.
    """
    for candidate in (object_name, f"{object_name}:0"):
        if candidate in h5_file:
            return np.array(h5_file[candidate], dtype=float)
    raise KeyError(f"Dataset {object_name} not found in {h5_file.filename}")


def weights_path(layer_name: str, weight: str) -> str:
    return f"/model_weights/{layer_name}/{layer_name}/{weight}"
