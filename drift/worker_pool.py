"""Parallel fan-out of path generation with per-worker deterministic seeding."""

from __future__ import annotations

import logging
import multiprocessing as mp
import os
import threading
import time
from concurrent.futures import (
    FIRST_COMPLETED,
    Executor,
    Future,
    ProcessPoolExecutor,
    ThreadPoolExecutor,
    wait,
)
from contextlib import ExitStack

import numpy as np

from drift.errors import SimulationCancelled
from drift.paths import PathGenerator, SimulatedPath

logger = logging.getLogger(__name__)

SEED_STRIDE = 1_000_003
_MASK64 = (1 << 64) - 1


def partition(num_paths: int, n_workers: int) -> list[int]:
    """Split ``num_paths`` evenly; the remainder goes to the last worker."""
    if n_workers < 1:
        raise ValueError("n_workers must be at least 1")
    batch = num_paths // n_workers
    shares = [batch] * n_workers
    shares[-1] += num_paths % n_workers
    return shares


def base_seed(seed: int | None) -> int:
    """The caller's seed, or wall-clock nanoseconds when none is given (non-reproducible)."""
    if seed is None:
        return time.time_ns() & _MASK64
    return seed & _MASK64


def derive_seed(base: int, worker: int) -> int:
    """Per-worker stream seed, wrapping at 64 bits."""
    return (base + worker * SEED_STRIDE) & _MASK64


def seed_key(seed: int) -> bytes:
    """32-byte key: the seed little-endian in the low 8 bytes, zero elsewhere."""
    return (seed & _MASK64).to_bytes(8, "little") + bytes(24)


def make_rng(seed: int) -> np.random.Generator:
    words = np.frombuffer(seed_key(seed), dtype="<u8")
    return np.random.Generator(
        np.random.PCG64(np.random.SeedSequence([int(w) for w in words]))
    )


def _generate_share(
    generator: PathGenerator,
    count: int,
    seed: int,
    cancel_event: threading.Event | None = None,
) -> list[SimulatedPath]:
    rng = make_rng(seed)
    paths = []
    for _ in range(count):
        if cancel_event is not None and cancel_event.is_set():
            raise SimulationCancelled("simulation cancelled")
        paths.append(generator.generate(rng))
    return paths


class WorkerPool:
    """
    Generates a batch of paths across a fixed number of workers.

    Each worker owns a private random generator seeded from
    ``base + worker * 1_000_003``, so a fixed seed and worker count always
    reproduce the same multiset of paths. The order of the returned paths
    follows completion order and is not canonical.
    """

    def __init__(
        self,
        n_workers: int | None = None,
        executor: str = "process",
        poll_interval: float = 0.05,
    ) -> None:
        """
        Args:
            n_workers: Number of workers (default: CPU count).
            executor: ``"process"`` or ``"thread"``.
            poll_interval: Seconds between cancellation checks while waiting.
        """
        if n_workers is None:
            n_workers = os.cpu_count() or 1
        if n_workers < 1:
            raise ValueError("n_workers must be at least 1")
        if executor not in ("process", "thread"):
            raise ValueError(f"executor must be 'process' or 'thread', got {executor!r}")
        self.n_workers = n_workers
        self.executor = executor
        self.poll_interval = poll_interval

    def run(
        self,
        generator: PathGenerator,
        num_paths: int,
        seed: int | None = None,
        cancel_event: threading.Event | None = None,
    ) -> list[SimulatedPath]:
        """
        Generate ``num_paths`` paths and block until every worker finishes.

        Args:
            generator: Path generator shared read-only by all workers.
            num_paths: Total paths to produce.
            seed: Base seed, or None for non-deterministic output.
            cancel_event: Optional event; once set, workers stop before their
                next path and SimulationCancelled is raised.
        """
        base = base_seed(seed)
        shares = partition(num_paths, self.n_workers)
        active = [(w, n) for w, n in enumerate(shares) if n > 0]
        logger.debug(
            "Generating %d paths on %d workers (shares=%s, base_seed=%d)",
            num_paths, self.n_workers, shares, base,
        )
        if not active:
            return []
        if cancel_event is not None and cancel_event.is_set():
            raise SimulationCancelled("simulation cancelled before start")

        with ExitStack() as stack:
            # workers watch a private event that mirrors cancel_event
            worker_event = None
            if self.executor == "thread":
                executor: Executor = ThreadPoolExecutor(max_workers=len(active))
                worker_event = threading.Event()
            else:
                executor = ProcessPoolExecutor(max_workers=len(active))
                if cancel_event is not None:
                    manager = stack.enter_context(mp.Manager())
                    worker_event = manager.Event()
            stack.enter_context(executor)

            futures = [
                executor.submit(
                    _generate_share, generator, count, derive_seed(base, w), worker_event
                )
                for w, count in active
            ]
            return self._collect(futures, cancel_event, worker_event)

    def _collect(
        self,
        futures: list[Future],
        cancel_event: threading.Event | None,
        worker_event,
    ) -> list[SimulatedPath]:
        paths: list[SimulatedPath] = []
        pending = set(futures)
        timeout = self.poll_interval if cancel_event is not None else None
        try:
            while pending:
                done, pending = wait(pending, timeout=timeout, return_when=FIRST_COMPLETED)
                if cancel_event is not None and cancel_event.is_set():
                    worker_event.set()
                for future in done:
                    paths.extend(future.result())
        except BaseException:
            if worker_event is not None:
                worker_event.set()
            raise
        return paths
