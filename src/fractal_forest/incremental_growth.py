"""Module defining IncrementalGrowth for trees that grow over discrete ticks.

A tick has two phases:

1. ``compute``: read the tree and return a `GrowthDelta`: every node's
   grown width and length, its position re-placed at the tip of its parent's
   grown segment, and a `PendingBranch` for every node whose grown width
   exceeds its children's combined width by more than the tree's branching
   threshold. The tree itself is not modified, so ticks of different trees
   can be computed concurrently and a computed delta can be dropped.
2. ``apply``: write the delta to the nodes, resolve each pending branch's
   direction and append the new nodes. Only one thread may apply to a tree
   at a time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

import numpy as np
from numpy.typing import NDArray

from .config import RandomSource, resolve_rng
from .geometry import VectorLike, offset_direction
from .parameters import GrowthParameters, GrowthRates
from .tree import BranchNode, GrowthTree

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingBranch:
    """A new-branch request collected during the compute phase.

    Attributes:
        parent (int): Index of the node that will own the new branch.
        width (float): Width of the new branch.
        length (float): Length of the new branch.
    """

    parent: int
    width: float
    length: float


@dataclass(frozen=True)
class GrowthDelta:
    """Result of one compute phase, not yet written to its tree.

    Attributes:
        widths (NDArray[Any]): Grown width of every node, shape (N,).
        lengths (NDArray[Any]): Grown length of every node, shape (N,).
        positions (NDArray[Any]): Re-placed node positions, shape (N, 3).
        pending (List[PendingBranch]): New-branch requests in node order.
    """

    widths: NDArray[Any]
    lengths: NDArray[Any]
    positions: NDArray[Any]
    pending: List[PendingBranch] = field(default_factory=list)

    @property
    def node_count(self) -> int:
        return int(self.widths.shape[0])


class IncrementalGrowth:
    """Stepwise growth rules for incremental trees.

    Attributes:
        params (GrowthParameters): Trunk, jitter and base-rate settings.
    """

    def __init__(self, params: Optional[GrowthParameters] = None) -> None:
        if params is None:
            params = GrowthParameters()
        if not isinstance(params, GrowthParameters):
            raise TypeError("The parameters must be an instance of GrowthParameters")
        self.params = params

    def create_tree(
        self,
        position: VectorLike,
        normal: VectorLike,
        rates: Optional[GrowthRates] = None,
        rng: RandomSource = None,
    ) -> GrowthTree:
        """Create a tree with a two-node trunk.

        Args:
            position: Spawn position (root position).
            normal: Root growth direction.
            rates: Per-tree growth rates; the base rates when omitted.
            rng: Random source for the trunk jitter.

        Returns:
            The new incremental tree.
        """
        p = self.params
        gen = resolve_rng(rng)
        tree = GrowthTree(position, normal, rates=rates or p.base_rates)

        root = tree.add_node(tree.position, p.trunk_width, p.trunk_length, tree.normal)
        tree.add_node(
            root.tip_position(),
            p.trunk_child_width,
            p.trunk_child_length,
            offset_direction(root.direction, p.max_rotation_offset, gen),
            parent=root.index,
        )
        _LOGGER.debug("Incremental tree created: %r rates=%s", tree, tree.rates)
        return tree

    def compute(self, tree: GrowthTree) -> GrowthDelta:
        """Run the compute phase of one tick without modifying `tree`.

        Every node grows first; the branching scan then sees the grown widths
        of all nodes and none of this tick's new branches.

        Args:
            tree: An incremental tree (``tree.rates`` set).

        Returns:
            The grown node geometry and the pending branch requests.

        Raises:
            ValueError: If `tree` has no growth rates.
        """
        rates = tree.rates
        if rates is None:
            raise ValueError("compute() requires an incremental tree (rates is None)")

        nodes = tree.nodes
        widths = np.array([n.width for n in nodes], dtype=float)
        lengths = np.array([n.length for n in nodes], dtype=float)
        widths *= 1.0 + rates.percent_width_increase
        lengths *= 1.0 + rates.percent_length_increase

        # Parents precede their children in creation order.
        positions = tree.positions()
        for node in nodes:
            if node.parent is not None:
                parent = nodes[node.parent]
                positions[node.index] = (
                    positions[parent.index] + parent.direction * lengths[parent.index]
                )

        threshold = 1.0 + rates.extra_width_percent_to_branch
        scale = self.params.branch_scale
        pending: List[PendingBranch] = []
        for node in nodes:
            combined = float(sum(widths[c] for c in node.children))
            if widths[node.index] > threshold * combined:
                pending.append(
                    PendingBranch(
                        parent=node.index,
                        width=float(widths[node.index] * scale),
                        length=float(lengths[node.index] * scale),
                    )
                )

        _LOGGER.debug(
            "compute: tree at %s nodes=%d pending=%d",
            tree.position.tolist(),
            len(nodes),
            len(pending),
        )
        return GrowthDelta(
            widths=widths, lengths=lengths, positions=positions, pending=pending
        )

    def apply(
        self,
        tree: GrowthTree,
        delta: GrowthDelta,
        rng: RandomSource = None,
    ) -> List[BranchNode]:
        """Run the apply phase: write the grown geometry, then add new branches.

        Directions are jittered from the parent's direction as it is now,
        after this tick's growth.

        Returns:
            The new nodes, in request order.

        Raises:
            ValueError: If `delta` was computed for a different node count.
        """
        if delta.node_count != len(tree):
            raise ValueError(
                f"growth delta covers {delta.node_count} nodes; tree has {len(tree)}"
            )

        for node in tree.nodes:
            node.width = float(delta.widths[node.index])
            node.length = float(delta.lengths[node.index])
            node.position = delta.positions[node.index].copy()

        gen = resolve_rng(rng)
        created: List[BranchNode] = []
        for request in delta.pending:
            parent = tree.nodes[request.parent]
            direction = offset_direction(
                parent.direction, self.params.max_rotation_offset, gen
            )
            created.append(
                tree.add_node(
                    parent.tip_position(),
                    request.width,
                    request.length,
                    direction,
                    parent=parent.index,
                )
            )
        if created:
            _LOGGER.debug(
                "apply: tree at %s +%d nodes (total=%d)",
                tree.position.tolist(),
                len(created),
                len(tree),
            )
        return created

    def step(self, tree: GrowthTree, rng: RandomSource = None) -> List[BranchNode]:
        """Advance `tree` by one tick (compute, then apply).

        Raises:
            RuntimeError: If a tick on `tree` is already in progress.
        """
        with tree.growth_tick():
            delta = self.compute(tree)
            return self.apply(tree, delta, rng)
