"""
Mini-batch SGD training loop with sample-level data parallelism. Each worker
thread owns a full replica of the network; worker 0's replica is the network
being trained.
"""
import copy
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, wait

import numpy as np

from scratchnet.config import Accumulation, TrainConfig
from scratchnet.losses import quadratic
from scratchnet.parallel import (
    BatchWindowChannel,
    allreduce_gradients,
    average_parameters,
    tile_indices,
)

logger = logging.getLogger(__name__)


class Trainer:
    def __init__(self, network, optimizer, config: TrainConfig):
        self.network = network
        self.optimizer = optimizer
        self.config = config.validate()
        self.history = []

    def _check_data(self, inputs, targets):
        inputs = np.asarray(inputs, dtype=float)
        targets = np.asarray(targets, dtype=float)
        if targets.ndim != 2:
            raise ValueError(f"targets must be (outputs, samples), got shape {targets.shape}")
        if inputs.shape[-1] != targets.shape[-1]:
            raise ValueError(
                f"inputs have {inputs.shape[-1]} samples but targets have {targets.shape[-1]}"
            )
        input_shape = self.network.layers[0].output_shape
        if inputs.shape[:-1] != input_shape:
            raise ValueError(
                f"input samples of shape {inputs.shape[:-1]} do not match input layer {input_shape}"
            )
        output_shape = self.network.layers[-1].output_shape
        if targets.shape[:-1] != output_shape:
            raise ValueError(
                f"target samples of shape {targets.shape[:-1]} do not match output layer {output_shape}"
            )
        return inputs, targets

    def fit(self, inputs, targets):
        """
        Train the network in place. Returns the mean quadratic loss of the
        visited samples for each epoch.
        """
        cfg = self.config
        inputs, targets = self._check_data(inputs, targets)
        dataset_size = targets.shape[-1]
        num_batches = dataset_size // cfg.batch_size

        if num_batches == 0 or cfg.epochs == 0:
            logger.warning(
                f"No training performed: {dataset_size} samples, batch size "
                f"{cfg.batch_size}, {cfg.epochs} epochs"
            )
            return self.history

        n = cfg.num_workers
        self.inputs = inputs
        self.targets = targets
        self.num_batches = num_batches
        self.replicas = [self.network] + [copy.deepcopy(self.network) for _ in range(n - 1)]
        self.channel = BatchWindowChannel(n, dataset_size, cfg.batch_size, seed=cfg.seed)
        self.reduce_barrier = threading.Barrier(n, action=self._reduce)
        self.sizes = [0] * n
        self.losses = [0.0] * n
        self.batches_done = 0

        logger.info(
            f"Training on {dataset_size} samples: {cfg.epochs} epochs x {num_batches} "
            f"batches of {cfg.batch_size}, {n} worker(s), {cfg.accumulation.value} accumulation"
        )

        if n == 1:
            self._work(0)
        else:
            with ThreadPoolExecutor(max_workers=n, thread_name_prefix="scratchnet-worker") as executor:
                futures = [executor.submit(self._work, rank) for rank in range(n)]
                wait(futures)
            errors = [f.exception() for f in futures if f.exception() is not None]
            if errors:
                # Workers stopped by an aborted barrier are collateral; surface the cause
                original = [e for e in errors if not isinstance(e, threading.BrokenBarrierError)]
                raise (original or errors)[0]

        return self.history

    def _work(self, rank):
        cfg = self.config
        replica = self.replicas[rank]
        per_sample = cfg.accumulation is Accumulation.PER_SAMPLE
        lr = self.optimizer.learning_rate
        if cfg.accumulation is Accumulation.MEAN:
            step = lr / cfg.batch_size
        else:
            step = lr

        try:
            for _ in range(cfg.epochs):
                for _ in range(self.num_batches):
                    batch_start, batch_end = self.channel.broadcast(rank)
                    start, end = tile_indices(batch_end - batch_start, rank, cfg.num_workers)
                    start += batch_start
                    end += batch_start
                    self.sizes[rank] = end - start

                    loss = 0.0
                    for j in range(start, end):
                        replica.forward(self.inputs[..., j])
                        loss += quadratic(self.targets[:, j], replica.layers[-1].output)
                        replica.backward(self.targets[:, j])
                        if per_sample:
                            replica.update(lr / (end - start))
                    self.losses[rank] += loss

                    self.reduce_barrier.wait()
                    if not per_sample:
                        replica.update(step)
        except Exception:
            self.channel.abort()
            self.reduce_barrier.abort()
            raise

    # Runs once per batch, in a single thread, after every worker finished its sub-range
    def _reduce(self):
        cfg = self.config
        if cfg.accumulation is Accumulation.PER_SAMPLE:
            if len(self.replicas) > 1:
                average_parameters(self.replicas, self.sizes)
        elif len(self.replicas) > 1:
            allreduce_gradients(self.replicas)

        self.batches_done += 1
        batch = (self.batches_done - 1) % self.num_batches + 1
        epoch = (self.batches_done - 1) // self.num_batches + 1

        if cfg.log_every and batch % cfg.log_every == 0:
            seen = batch * cfg.batch_size
            logger.info(
                f"Epoch {epoch}/{cfg.epochs} batch {batch}/{self.num_batches}: "
                f"loss {sum(self.losses) / seen:.6f}"
            )

        if batch == self.num_batches:
            epoch_loss = sum(self.losses) / (self.num_batches * cfg.batch_size)
            self.history.append(epoch_loss)
            self.losses = [0.0] * len(self.replicas)
            logger.info(f"Epoch {epoch}/{cfg.epochs}: loss {epoch_loss:.6f}")
