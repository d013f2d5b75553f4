"""Module defining the node arena shared by both tree generators.

This module provides BranchNode, a single point of a growth tree, and
GrowthTree, which owns every node of one tree. Nodes reference each other by
integer index into the tree's node list: each node stores its parent's index
(``None`` for the root) and the ordered indices of its children.
"""

from __future__ import annotations

import contextlib
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Iterator, List, Optional

import numpy as np
from numpy.typing import NDArray

from .geometry import UP, VectorLike, as_vector, normalize
from .parameters import GrowthRates

_LOGGER = logging.getLogger(__name__)


@dataclass
class BranchNode:
    """A point of a growth tree.

    Attributes:
        index (int): Position of the node in its tree's node list.
        position (NDArray[Any]): World-space coordinates, shape (3,).
        width (float): Branch width at this node.
        length (float): Length of the segment leaving this node.
        direction (NDArray[Any]): Unit growth direction, shape (3,).
        depth (int): Generation index from the root (0 = root).
        parent (Optional[int]): Parent node index, None for the root.
        children (List[int]): Child node indices in creation order.
        surface_ring (Optional[NDArray[Any]]): Ring vertices around the node,
            shape (vertices_count, 3). Only one-shot trees fill it in.
    """

    index: int
    position: NDArray[Any]
    width: float
    length: float
    direction: NDArray[Any]
    depth: int = 0
    parent: Optional[int] = None
    children: List[int] = field(default_factory=list)
    surface_ring: Optional[NDArray[Any]] = None

    @property
    def is_root(self) -> bool:
        return self.parent is None

    @property
    def is_tip(self) -> bool:
        return not self.children

    def tip_position(self) -> NDArray[np.float64]:
        """Return the end of the segment leaving this node."""
        return self.position + self.direction * self.length

    def __repr__(self) -> str:
        return (
            f"BranchNode(index={self.index}, depth={self.depth}, "
            f"parent={self.parent}, children={self.children}, "
            f"position={np.round(self.position, 4).tolist()})"
        )


@dataclass(frozen=True)
class Leaf:
    """Termination record of a one-shot branch.

    Attributes:
        node (int): Index of the terminal node.
        size (float): Requested leaf size.
    """

    node: int
    size: float


class GrowthTree:
    """Own the nodes of one tree.

    The node list is append-only while the tree is alive: nodes are never
    removed individually, only all at once by `clear`.

    Attributes:
        position (NDArray[Any]): Spawn position of the tree.
        normal (NDArray[Any]): Spawn normal (unit vector).
        nodes (List[BranchNode]): Nodes in creation order.
        leaves (List[Leaf]): Leaf records (one-shot trees only).
        rates (Optional[GrowthRates]): Growth rates of incremental trees;
            None for one-shot trees.
    """

    def __init__(
        self,
        position: VectorLike,
        normal: VectorLike,
        rates: Optional[GrowthRates] = None,
    ) -> None:
        self.position = as_vector(position)
        self.normal = normalize(as_vector(normal))
        if not self.normal.any():
            _LOGGER.warning("Zero-length tree normal; using the up axis instead.")
            self.normal = UP.copy()
        self.rates = rates
        self.nodes: List[BranchNode] = []
        self.leaves: List[Leaf] = []
        self._tick_lock = threading.Lock()

        _LOGGER.debug(
            "GrowthTree created at %s (incremental=%s)",
            self.position.tolist(),
            rates is not None,
        )

    def add_node(
        self,
        position: VectorLike,
        width: float,
        length: float,
        direction: VectorLike,
        parent: Optional[int] = None,
    ) -> BranchNode:
        """Append a node and register it with its parent.

        Args:
            position: Node coordinates.
            width: Branch width at the node.
            length: Segment length leaving the node.
            direction: Growth direction (stored as given).
            parent: Parent index, or None to create the root.

        Returns:
            The new node.

        Raises:
            ValueError: If a second root is added or `parent` is out of range.
        """
        if parent is None:
            if self.nodes:
                raise ValueError("GrowthTree already has a root node")
            depth = 0
        else:
            if not 0 <= parent < len(self.nodes):
                raise ValueError(
                    f"parent index {parent} out of range for {len(self.nodes)} nodes"
                )
            depth = self.nodes[parent].depth + 1

        node = BranchNode(
            index=len(self.nodes),
            position=as_vector(position).copy(),
            width=float(width),
            length=float(length),
            direction=as_vector(direction).copy(),
            depth=depth,
            parent=parent,
        )
        self.nodes.append(node)
        if parent is not None:
            self.nodes[parent].children.append(node.index)
        return node

    @property
    def root(self) -> BranchNode:
        if not self.nodes:
            raise IndexError("GrowthTree has no nodes")
        return self.nodes[0]

    @property
    def is_incremental(self) -> bool:
        return self.rates is not None

    def node(self, index: int) -> BranchNode:
        return self.nodes[index]

    def parent_of(self, node: BranchNode) -> Optional[BranchNode]:
        """Return the parent node, or None for the root."""
        if node.parent is None:
            return None
        return self.nodes[node.parent]

    def children_of(self, node: BranchNode) -> List[BranchNode]:
        return [self.nodes[i] for i in node.children]

    def tips(self) -> List[BranchNode]:
        """Return the nodes that have no children."""
        return [n for n in self.nodes if n.is_tip]

    def positions(self) -> NDArray[np.float64]:
        """Return node positions as an (N, 3) array."""
        if not self.nodes:
            return np.zeros((0, 3), dtype=float)
        return np.array([n.position for n in self.nodes], dtype=float)

    def connectivity(self) -> NDArray[np.int64]:
        """Return (parent, child) index pairs as an (M, 2) array."""
        pairs = [
            [n.parent, n.index] for n in self.nodes if n.parent is not None
        ]
        return np.array(pairs, dtype=np.int64).reshape(-1, 2)

    def clear(self) -> None:
        """Discard every node and leaf."""
        _LOGGER.info(
            "Clearing tree at %s (%d nodes, %d leaves)",
            self.position.tolist(),
            len(self.nodes),
            len(self.leaves),
        )
        self.nodes.clear()
        self.leaves.clear()

    @contextlib.contextmanager
    def growth_tick(self) -> Iterator[GrowthTree]:
        """Hold the tree's in-progress guard for one growth tick.

        Raises:
            RuntimeError: If another tick on this tree has not finished.
        """
        if not self._tick_lock.acquire(blocking=False):
            raise RuntimeError("a growth tick is already in progress on this tree")
        try:
            yield self
        finally:
            self._tick_lock.release()

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self) -> Iterator[BranchNode]:
        return iter(self.nodes)

    def __repr__(self) -> str:
        return (
            f"GrowthTree(position={self.position.tolist()}, nodes={len(self.nodes)}, "
            f"leaves={len(self.leaves)}, incremental={self.is_incremental})"
        )
