import json

import h5py
import numpy as np
import pytest

from scratchnet import Network, conv2d, dense, flatten, input_layer, maxpool2d


@pytest.fixture
def dense_net():
    """(3) -> (4) -> (2) sigmoid network with fixed seeds"""
    return Network([
        input_layer(3),
        dense(4, activation="sigmoid", seed=0),
        dense(2, activation="sigmoid", seed=1),
    ])


@pytest.fixture
def cnn_net():
    return Network([
        input_layer(6, 6, 2),
        conv2d(3, kernel_size=3, activation="tanh", seed=0),
        maxpool2d(2),
        flatten(),
        dense(2, activation="linear", seed=1),
    ])


@pytest.fixture
def regression_data():
    """Learnable linear target y = 0.5 x + 0.2, samples along the last axis"""
    rng = np.random.default_rng(123)
    x = rng.random((1, 64))
    y = 0.5 * x + 0.2
    return x, y


@pytest.fixture
def write_keras_h5(tmp_path):
    """Write a minimal Keras-style .h5 file: model config plus weight datasets"""
    def _write(layer_configs, weights=None, name="model.h5"):
        path = tmp_path / name
        with h5py.File(path, "w") as f:
            f.attrs["model_config"] = json.dumps({
                "class_name": "Sequential",
                "config": {"name": "sequential", "layers": layer_configs},
            })
            group = f.create_group("model_weights")
            for layer_name, arrays in (weights or {}).items():
                for dataset_name, data in arrays.items():
                    group.create_dataset(f"{layer_name}/{layer_name}/{dataset_name}", data=data)
        return str(path)
    return _write
