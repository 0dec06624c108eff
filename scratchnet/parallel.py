"""
Helpers for data-parallel training over network replicas: work partitioning,
the batch-window broadcast, and reductions across replicas.
"""
import threading

import numpy as np


def tile_indices(size, rank, num_workers):
    """
    Contiguous [start, end) slice of range(size) owned by `rank`. Slices
    differ in length by at most one; the first `size % num_workers` ranks
    get the longer ones.
    """
    if not 0 <= rank < num_workers:
        raise ValueError(f"rank {rank} out of range for {num_workers} workers")
    tile, remainder = divmod(size, num_workers)
    start = rank * tile + min(rank, remainder)
    end = start + tile + (1 if rank < remainder else 0)
    return start, end


class BatchWindowChannel:
    """
    Rank 0 draws a random contiguous batch window; every worker blocks on the
    barrier and then reads the same window.
    """

    def __init__(self, num_workers, dataset_size, batch_size, seed=None):
        if batch_size > dataset_size:
            raise ValueError("batch_size larger than the dataset")
        self.dataset_size = dataset_size
        self.batch_size = batch_size
        self._rng = np.random.default_rng(seed)
        self._barrier = threading.Barrier(num_workers)
        self._window = None

    def draw(self):
        pos = self._rng.random()
        start = int(pos * (self.dataset_size - self.batch_size + 1))
        # Clamp so the window never runs past the dataset end
        start = min(start, self.dataset_size - self.batch_size)
        return start, start + self.batch_size

    def broadcast(self, rank):
        if rank == 0:
            self._window = self.draw()
        self._barrier.wait()
        return self._window

    def abort(self):
        self._barrier.abort()


def allreduce_gradients(networks):
    """Sum parameter gradients across replicas and store the sum in each."""
    for layers in zip(*(net.layers for net in networks)):
        for grads in zip(*(layer.gradients() for layer in layers)):
            total = np.sum(grads, axis=0)
            for g in grads:
                g[...] = total


def average_parameters(networks, weights=None):
    """Replace every replica's parameters by their (weighted) average."""
    if weights is None:
        weights = [1.0] * len(networks)
    weights = np.asarray(weights, dtype=float)
    if weights.sum() <= 0:
        raise ValueError("weights must sum to a positive value")
    weights = weights / weights.sum()
    for layers in zip(*(net.layers for net in networks)):
        for params in zip(*(layer.parameters() for layer in layers)):
            mean = sum(w * p for w, p in zip(weights, params))
            for p in params:
                p[...] = mean
