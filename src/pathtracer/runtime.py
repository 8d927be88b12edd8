"""Taichi runtime initialisation.

Taichi fields are bound to the runtime that exists when they are declared,
so ``init_runtime`` has to run before any module that declares scene,
material or camera fields is imported.
"""

import logging
import os

import taichi as ti

logger = logging.getLogger(__name__)


def init_runtime(thread_count: int | None = None, seed: int = 0, debug: bool = False) -> int:
    """Initialise Taichi on the CPU backend.

    Args:
        thread_count: Size of Taichi's CPU thread pool. Defaults to the number
            of logical cores. Renders requesting more workers than this are
            capped by the pool.
        seed: Seed for Taichi's per-thread random number generators.
        debug: Enable Taichi's bounds-checked debug mode.

    Returns:
        The thread pool size that was configured.

    Raises:
        ValueError: If thread_count is not positive.
    """
    threads = thread_count if thread_count is not None else (os.cpu_count() or 1)
    if threads <= 0:
        raise ValueError(f"thread_count must be positive, got {threads}")

    ti.init(
        arch=ti.cpu,
        random_seed=seed,
        cpu_max_num_threads=threads,
        default_fp=ti.f32,
        debug=debug,
    )
    logger.info("Taichi CPU runtime initialised with %d threads (seed=%d)", threads, seed)
    return threads
