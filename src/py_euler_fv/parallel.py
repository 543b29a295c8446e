"""Shared-memory parallel loops over mesh entities

Work over faces is split into contiguous chunks processed by a thread pool. Each chunk accumulates
into its own private arrays, which are summed in chunk order after all workers have finished.
Results are therefore deterministic for a given number of threads, but may differ by round-off
between different numbers of threads.

Copyright (C) 2025 Simon Ehrmanntraut - All Rights Reserved
"""

import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor

import numpy as np

logger = logging.getLogger(__name__)


def create_work_chunks(total_work: int, num_chunks: int) -> list[slice]:
    """Splits a range into contiguous chunks of balanced size

    Args:
        total_work: Size of the range.
        num_chunks: Maximum number of chunks.

    Returns:
        Non-empty slices covering the range, or a single empty slice for an empty range.
    """
    edges = np.linspace(0, total_work, max(1, min(num_chunks, total_work)) + 1).astype(int)
    return [slice(start, stop) for start, stop in zip(edges[:-1], edges[1:])]


def map_chunks(
    kernel: Callable[[slice], tuple],
    total_work: int,
    num_threads: int = 1,
) -> list[tuple]:
    """Applies a kernel to all chunks of a range

    Args:
        kernel: Function processing a chunk.
        total_work: Size of the range.
        num_threads: Number of worker threads.

    Returns:
        Results of the kernel in chunk order.
    """
    chunks = create_work_chunks(total_work, num_threads)
    if len(chunks) == 1:
        return [kernel(chunks[0])]
    logger.debug("Processing %d items in %d chunks", total_work, len(chunks))
    with ThreadPoolExecutor(max_workers=num_threads) as executor:
        return list(executor.map(kernel, chunks))


def reduce_chunks(
    kernel: Callable[[slice], tuple[np.ndarray, ...]],
    total_work: int,
    num_threads: int = 1,
) -> tuple[np.ndarray, ...]:
    """Applies a kernel to all chunks of a range and sums its private accumulators

    Args:
        kernel: Function processing a chunk and returning its private accumulators.
        total_work: Size of the range.
        num_threads: Number of worker threads.

    Returns:
        Sum of the accumulators over all chunks.
    """
    results = map_chunks(kernel, total_work, num_threads)
    return tuple(sum(parts[1:], parts[0]) for parts in zip(*results))
