"""Module defining the FractalTree class for one-shot recursive tree generation.

This module grows a complete tree in a single call: a root and a jittered
trunk, followed by depth-first branching where every node splits into an
evenly spread, randomly jittered fan of children until the maximum depth is
reached. Each node also carries a ring of surface vertices that a renderer
can skin into a mesh.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from .config import RandomSource, resolve_rng
from .geometry import (
    UP,
    VectorLike,
    as_vector,
    axis_angle,
    lerp,
    normalize,
    random_euler_rotation,
    surface_ring,
)
from .parameters import FractalTreeParameters
from .tree import BranchNode, GrowthTree, Leaf

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class StartingData:
    """Size settings for one generated tree, drawn by `FractalTree.starting_data`."""

    width: float
    length: float
    leaf_size: float
    depth: int


class FractalTree:
    """One-shot fractal tree generator.

    The recursion of the classic algorithm is driven by an explicit work
    stack of ``(node, depth)`` items. Children of a node are created together
    and pushed in reverse so the first child is expanded first (depth-first,
    creation order).

    Attributes:
        params (FractalTreeParameters): Split, decay, jitter and ring settings.
    """

    def __init__(self, params: Optional[FractalTreeParameters] = None) -> None:
        """Initialize the generator.

        Args:
            params: Generation parameters; defaults are used when omitted.

        Raises:
            TypeError: If `params` is not a FractalTreeParameters instance.
        """
        if params is None:
            params = FractalTreeParameters()
        if not isinstance(params, FractalTreeParameters):
            raise TypeError(
                "The parameters must be an instance of FractalTreeParameters"
            )
        self.params = params

    def starting_data(self, rng: RandomSource = None) -> StartingData:
        """Draw the trunk width/length, leaf size and depth of a new tree.

        A single scale percent drives every value, so wide trees are also
        long, leafy and deep.
        """
        p = self.params
        t = float(resolve_rng(rng).random())
        data = StartingData(
            width=lerp(p.min_starting_width, p.max_starting_width, t),
            length=lerp(p.min_starting_length, p.max_starting_length, t),
            leaf_size=lerp(p.min_leaf_size, p.max_leaf_size, t),
            depth=int(round(lerp(p.min_depth, p.max_depth, t))),
        )
        _LOGGER.debug("starting_data: scale=%.4f -> %s", t, data)
        return data

    def _refresh_node(self, tree: GrowthTree, node: BranchNode) -> None:
        """Recompute the direction (non-root nodes) and surface ring of `node`.

        The direction averages the incoming segment with every outgoing one,
        so a node bends smoothly between its parent and its children.
        """
        if node.depth > 0:
            parent = tree.parent_of(node)
            incoming = (
                normalize(node.position - parent.position)
                if parent is not None
                else np.zeros(3)
            )
            total = incoming.copy()
            for child in tree.children_of(node):
                total += normalize(child.position - node.position)

            if np.linalg.norm(total) < 1e-12:
                node.direction = incoming if incoming.any() else UP.copy()
            else:
                node.direction = normalize(total)

        node.surface_ring = surface_ring(
            node.position,
            node.direction,
            node.width / 2.0,
            self.params.vertices_count,
        )

    def _add_point(
        self,
        tree: GrowthTree,
        position: np.ndarray,
        width: float,
        length: float,
        direction: np.ndarray,
        parent: Optional[int],
    ) -> BranchNode:
        """Append a node, then refresh its parent's and its own geometry."""
        node = tree.add_node(position, width, length, direction, parent=parent)
        if parent is not None:
            self._refresh_node(tree, tree.nodes[parent])
        self._refresh_node(tree, node)
        return node

    def _init_trunk(
        self,
        tree: GrowthTree,
        initial_width: float,
        initial_length: float,
        rng: np.random.Generator,
    ) -> BranchNode:
        """Create the root and the jittered trunk node; return the trunk."""
        root = self._add_point(
            tree,
            tree.position,
            initial_width,
            initial_length,
            tree.normal,
            parent=None,
        )

        jitter = random_euler_rotation(self.params.max_rotation_angle_base, rng)
        trunk_dir = normalize(jitter.apply(root.direction))
        trunk = self._add_point(
            tree,
            root.position + trunk_dir * initial_length,
            initial_width,
            initial_length,
            trunk_dir,
            parent=root.index,
        )
        _LOGGER.debug(
            "Trunk created: root=%s trunk=%s",
            root.position.tolist(),
            trunk.position.tolist(),
        )
        return trunk

    def _branch(
        self,
        tree: GrowthTree,
        parent: BranchNode,
        depth: int,
        rng: np.random.Generator,
    ) -> List[int]:
        """Create the children of `parent` (at `depth`) and return their indices."""
        p = self.params
        splits = int(rng.integers(p.min_splits, p.max_splits, endpoint=True))
        deviation = p.max_rotation_angle + p.angle_increase_per_depth * depth

        children: List[int] = []
        for i in range(splits):
            # parent.direction is refreshed after every child is added
            base = axis_angle(360.0 / splits * i, parent.direction)
            jitter = random_euler_rotation(deviation, rng)
            direction = normalize((base * jitter).apply(parent.direction))

            child = self._add_point(
                tree,
                parent.position + direction * parent.length,
                parent.width / splits,
                parent.length * p.length_decay,
                direction,
                parent=parent.index,
            )
            children.append(child.index)

        _LOGGER.debug(
            "Branching: node=%d depth=%d splits=%d deviation=%.3g",
            parent.index,
            depth,
            splits,
            deviation,
        )
        return children

    def generate(
        self,
        root_position: VectorLike,
        root_normal: VectorLike,
        initial_width: float,
        initial_length: float,
        leaf_size: float,
        max_depth: int,
        rng: RandomSource = None,
    ) -> GrowthTree:
        """Generate a complete tree.

        Args:
            root_position: Spawn position of the root.
            root_normal: Growth axis of the root.
            initial_width: Width of the root and trunk.
            initial_length: Length of the root and trunk segments.
            leaf_size: Size recorded on every leaf.
            max_depth: Depth at which branches terminate in a leaf.
            rng: Random source (Generator, seed or None for the default).

        Returns:
            The generated tree. Nodes at `max_depth` (or the trunk when
            `max_depth <= 1`) are terminal and have a matching `Leaf`.
        """
        gen = resolve_rng(rng)
        tree = GrowthTree(as_vector(root_position), as_vector(root_normal))
        trunk = self._init_trunk(tree, float(initial_width), float(initial_length), gen)

        stack: List[Tuple[int, int]] = [(trunk.index, 1)]
        while stack:
            index, depth = stack.pop()
            node = tree.nodes[index]
            if depth >= max_depth:
                tree.leaves.append(Leaf(node=index, size=float(leaf_size)))
                continue
            children = self._branch(tree, node, depth, gen)
            stack.extend((c, depth + 1) for c in reversed(children))

        _LOGGER.info(
            "FractalTree generated at %s: nodes=%d leaves=%d max_depth=%d",
            tree.position.tolist(),
            len(tree),
            len(tree.leaves),
            max_depth,
        )
        return tree

    def generate_random(
        self,
        root_position: VectorLike,
        root_normal: VectorLike,
        rng: RandomSource = None,
    ) -> GrowthTree:
        """Generate a tree sized by `starting_data`."""
        gen = resolve_rng(rng)
        data = self.starting_data(gen)
        return self.generate(
            root_position,
            root_normal,
            data.width,
            data.length,
            data.leaf_size,
            data.depth,
            rng=gen,
        )
