"""Module defining ForestManager, the owner of a collection of growth trees.

ForestManager places new trees (farthest-point heuristic or density-field
sampling), generates one-shot and incremental trees, and runs forest-wide
growth ticks: the compute phase of every incremental tree runs in a thread
pool, and only after all of them finish are the results applied, one tree at
a time, on the calling thread.
"""

from __future__ import annotations

import contextlib
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, List, Optional, Sequence, Tuple

import numpy as np
from numpy.typing import NDArray
from scipy.spatial import cKDTree

from .apply_queue import ApplyQueue
from .config import RandomSource, resolve_rng, workers as configured_workers
from .density_field import DensityField
from .fractal_tree import FractalTree
from .geometry import UP, VectorLike, as_vector
from .incremental_growth import GrowthDelta, IncrementalGrowth
from .parameters import FractalTreeParameters, GrowthParameters
from .tree import GrowthTree

_LOGGER = logging.getLogger(__name__)

SpawnPoint = Tuple[NDArray[np.float64], NDArray[np.float64]]


class ForestManager:
    """Own and grow a forest of trees.

    The tree list is only changed by `add_tree`, the spawn methods,
    `remove_tree` and `clear`; callers must not invoke those concurrently
    with `grow`.

    Attributes:
        trees (List[GrowthTree]): Trees in spawn order.
        fractal (FractalTree): Generator for one-shot trees.
        growth (IncrementalGrowth): Rules for incremental trees.
        max_generation_distance (float): Half-size of the square spawn area.
    """

    def __init__(
        self,
        fractal_params: Optional[FractalTreeParameters] = None,
        growth_params: Optional[GrowthParameters] = None,
        max_generation_distance: float = 10.0,
    ) -> None:
        if max_generation_distance <= 0:
            raise ValueError(
                f"max_generation_distance must be > 0; got {max_generation_distance}"
            )
        self.trees: List[GrowthTree] = []
        self.fractal = FractalTree(fractal_params)
        self.growth = IncrementalGrowth(growth_params)
        self.max_generation_distance = float(max_generation_distance)
        self._tick_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Placement
    # ------------------------------------------------------------------
    def roots(self) -> NDArray[np.float64]:
        """Return the root positions of non-empty trees as an (N, 3) array."""
        pts = [t.root.position for t in self.trees if t.nodes]
        if not pts:
            return np.zeros((0, 3), dtype=float)
        return np.array(pts, dtype=float)

    def find_spawn_position(
        self,
        candidate_count: int = 10,
        bound: Optional[float] = None,
        rng: RandomSource = None,
    ) -> SpawnPoint:
        """Pick a ground position far from existing trees.

        Draws `candidate_count` uniform positions in ``[-bound, bound]^2`` on
        the y = 0 plane and keeps the one whose distance to the nearest
        existing root is largest (the first one on ties). With no trees every
        candidate is infinitely far away, so the first candidate wins.

        Args:
            candidate_count: Number of trial positions.
            bound: Half-size of the spawn square; `max_generation_distance`
                when omitted.
            rng: Random source.

        Returns:
            ``(position, normal)`` with the normal along +y.

        Raises:
            ValueError: If `candidate_count` < 1 or `bound` < 0.
        """
        if candidate_count < 1:
            raise ValueError(f"candidate_count must be >= 1; got {candidate_count}")
        half = self.max_generation_distance if bound is None else float(bound)
        if half < 0:
            raise ValueError(f"bound must be >= 0; got {bound}")

        gen = resolve_rng(rng)
        xz = gen.uniform(-half, half, size=(candidate_count, 2))
        candidates = np.column_stack(
            [xz[:, 0], np.zeros(candidate_count), xz[:, 1]]
        )

        roots = self.roots()
        if len(roots) == 0:
            distances = np.full(candidate_count, np.inf)
        else:
            distances, _ = cKDTree(roots).query(candidates)

        best = int(np.argmax(distances))
        _LOGGER.debug(
            "find_spawn_position: %d candidates, %d roots -> #%d (min dist=%.4g)",
            candidate_count,
            len(roots),
            best,
            float(distances[best]),
        )
        return candidates[best].copy(), UP.copy()

    def spawn_position_from_field(
        self,
        field: DensityField,
        cell_size: float = 1.0,
        origin: Sequence[float] = (0.0, 0.0),
        rng: RandomSource = None,
    ) -> SpawnPoint:
        """Pick a ground position by weighted sampling of `field`.

        Cell (x, y) maps to ``(origin[0] + x * cell_size, 0, origin[1] + y * cell_size)``.
        """
        x, y = field.sample_weighted(rng)
        ox, oz = as_vector(origin, dim=2)
        position = np.array([ox + x * cell_size, 0.0, oz + y * cell_size], dtype=float)
        _LOGGER.debug("spawn_position_from_field: cell=(%d, %d) -> %s", x, y, position.tolist())
        return position, UP.copy()

    # ------------------------------------------------------------------
    # Tree lifecycle
    # ------------------------------------------------------------------
    def _spawn_point(
        self,
        position: Optional[VectorLike],
        normal: Optional[VectorLike],
        gen: np.random.Generator,
    ) -> SpawnPoint:
        if position is None:
            found, default_normal = self.find_spawn_position(rng=gen)
            return found, as_vector(normal) if normal is not None else default_normal
        return as_vector(position), as_vector(normal) if normal is not None else UP.copy()

    def add_tree(self, tree: GrowthTree) -> GrowthTree:
        self.trees.append(tree)
        return tree

    def spawn_fractal_tree(
        self,
        position: Optional[VectorLike] = None,
        normal: Optional[VectorLike] = None,
        rng: RandomSource = None,
    ) -> GrowthTree:
        """Generate a one-shot tree sized by random starting data and add it.

        When `position` is omitted the farthest-point heuristic picks it.
        """
        gen = resolve_rng(rng)
        pos, nrm = self._spawn_point(position, normal, gen)
        tree = self.fractal.generate_random(pos, nrm, rng=gen)
        _LOGGER.info("Spawned fractal tree #%d at %s", len(self.trees), pos.tolist())
        return self.add_tree(tree)

    def spawn_incremental_tree(
        self,
        position: Optional[VectorLike] = None,
        normal: Optional[VectorLike] = None,
        rng: RandomSource = None,
    ) -> GrowthTree:
        """Create an incremental tree with randomly varied growth rates and add it."""
        gen = resolve_rng(rng)
        pos, nrm = self._spawn_point(position, normal, gen)
        rates = self.growth.params.sample_rates(gen)
        tree = self.growth.create_tree(pos, nrm, rates=rates, rng=gen)
        _LOGGER.info(
            "Spawned incremental tree #%d at %s (rates=%s)",
            len(self.trees),
            pos.tolist(),
            rates,
        )
        return self.add_tree(tree)

    def remove_tree(self, tree: GrowthTree) -> None:
        """Remove `tree` from the forest.

        Raises:
            ValueError: If `tree` is not part of the forest.
        """
        for i, t in enumerate(self.trees):
            if t is tree:
                del self.trees[i]
                _LOGGER.info("Removed tree #%d", i)
                return
        raise ValueError("tree is not part of this forest")

    def clear(self) -> None:
        """Remove every tree."""
        _LOGGER.info("Clearing forest (%d trees)", len(self.trees))
        self.trees.clear()

    # ------------------------------------------------------------------
    # Growth
    # ------------------------------------------------------------------
    def grow(
        self,
        rng: RandomSource = None,
        cancel: Optional[threading.Event] = None,
        workers: Optional[int] = None,
    ) -> int:
        """Run one growth tick over every incremental tree.

        The compute phases run concurrently, one task per tree. Nothing is
        applied until every task has finished. Compute does not modify the
        trees, so if a task fails, or `cancel` is set once they have finished,
        discarding the computed results leaves every tree as it was.

        Args:
            rng: Random source for the apply phase.
            cancel: Optional event that abandons the tick before applying.
            workers: Thread count; the configured default when omitted, the
                executor default when 0.

        Returns:
            The number of nodes added.

        Raises:
            RuntimeError: If a tick is already in progress on the forest or
                on one of its trees.
        """
        if not self._tick_lock.acquire(blocking=False):
            raise RuntimeError("a forest growth tick is already in progress")
        try:
            growing = [t for t in self.trees if t.is_incremental and t.nodes]
            with contextlib.ExitStack() as stack:
                for tree in growing:
                    stack.enter_context(tree.growth_tick())
                return self._tick(growing, resolve_rng(rng), cancel, workers)
        finally:
            self._tick_lock.release()

    def _tick(
        self,
        growing: List[GrowthTree],
        gen: np.random.Generator,
        cancel: Optional[threading.Event],
        workers: Optional[int],
    ) -> int:
        if not growing:
            _LOGGER.debug("grow: no incremental trees")
            return 0

        max_workers = (workers if workers is not None else configured_workers()) or None
        try:
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                results: List[GrowthDelta] = list(
                    executor.map(self.growth.compute, growing)
                )
        except Exception:
            _LOGGER.exception("grow: compute phase failed; tick abandoned.")
            raise

        pending = ApplyQueue()
        for tree, delta in zip(growing, results):
            pending.put(tree, delta)

        if cancel is not None and cancel.is_set():
            pending.discard()
            _LOGGER.info("grow: tick cancelled before apply")
            return 0

        added = 0

        def _apply(tree: GrowthTree, delta: GrowthDelta) -> Any:
            nonlocal added
            added += len(self.growth.apply(tree, delta, gen))

        batches = pending.drain(_apply)
        _LOGGER.info(
            "grow: applied %d trees, +%d nodes (forest nodes=%d)",
            batches,
            added,
            sum(len(t) for t in self.trees),
        )
        return added

    def __len__(self) -> int:
        return len(self.trees)
