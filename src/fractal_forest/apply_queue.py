"""Module defining ApplyQueue, the hand-off between compute workers and the writer.

Workers put the result of a compute phase on the queue; a single writer
thread drains it and applies every batch. Batches are applied in the order
they were queued. Nothing reaches a tree until its batch is drained, so
discarding the queue abandons a tick without a trace.
"""

from __future__ import annotations

import logging
import queue
from dataclasses import dataclass
from typing import Callable

from .incremental_growth import GrowthDelta
from .tree import GrowthTree

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class GrowthBatch:
    """Growth delta computed for one tree during one tick."""

    tree: GrowthTree
    delta: GrowthDelta


class ApplyQueue:
    """Thread-safe FIFO of growth batches awaiting the apply phase."""

    def __init__(self) -> None:
        self._queue: queue.SimpleQueue[GrowthBatch] = queue.SimpleQueue()

    def put(self, tree: GrowthTree, delta: GrowthDelta) -> None:
        """Queue the compute result of `tree`. Safe to call from any thread."""
        self._queue.put(GrowthBatch(tree=tree, delta=delta))

    def drain(self, apply: Callable[[GrowthTree, GrowthDelta], object]) -> int:
        """Apply every queued batch on the calling thread.

        Args:
            apply: Called as ``apply(tree, delta)`` for each batch.

        Returns:
            The number of batches applied.
        """
        count = 0
        while True:
            try:
                batch = self._queue.get_nowait()
            except queue.Empty:
                break
            apply(batch.tree, batch.delta)
            count += 1
        _LOGGER.debug("drain: applied %d batches", count)
        return count

    def discard(self) -> int:
        """Drop every queued batch without applying it; return how many."""
        dropped = 0
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                break
            dropped += 1
        if dropped:
            _LOGGER.info("discard: dropped %d unapplied batches", dropped)
        return dropped

    def __len__(self) -> int:
        return self._queue.qsize()
