from __future__ import annotations

import numpy as np
import pytest

from fractal_forest.fractal_tree import FractalTree, StartingData
from fractal_forest.geometry import UP
from fractal_forest.parameters import FractalTreeParameters, GrowthParameters


# -------------------------
# Fixtures
# -------------------------


@pytest.fixture
def generator(binary_params: FractalTreeParameters) -> FractalTree:
    return FractalTree(binary_params)


def _generate(generator: FractalTree, max_depth: int, seed: int = 7):
    return generator.generate(
        [0.0, 0.0, 0.0],
        UP,
        initial_width=0.4,
        initial_length=1.0,
        leaf_size=1.5,
        max_depth=max_depth,
        rng=seed,
    )


# -------------------------
# Construction
# -------------------------


def test_rejects_wrong_parameter_type():
    with pytest.raises(TypeError):
        FractalTree(GrowthParameters())  # type: ignore[arg-type]


def test_default_parameters():
    assert isinstance(FractalTree().params, FractalTreeParameters)


# -------------------------
# Generation
# -------------------------


def test_binary_depth_three_has_eight_nodes(generator):
    tree = _generate(generator, max_depth=3)

    # root, trunk, 2 children, 4 grandchildren
    assert len(tree) == 8
    assert [n.depth for n in tree] == [0, 1, 2, 2, 3, 3, 3, 3]
    assert len(tree.leaves) == 4
    assert all(tree.node(leaf.node).depth == 3 for leaf in tree.leaves)
    assert all(leaf.size == 1.5 for leaf in tree.leaves)


def test_depth_first_creation_order(generator):
    tree = _generate(generator, max_depth=3)
    # siblings are created together; the first one is expanded first
    assert tree.node(1).children == [2, 3]
    assert tree.node(2).children == [4, 5]
    assert tree.node(3).children == [6, 7]


def test_depth_bounded_and_leaves_are_tips(generator):
    tree = _generate(generator, max_depth=4)

    assert max(n.depth for n in tree) == 4
    leaf_nodes = {leaf.node for leaf in tree.leaves}
    assert leaf_nodes == {n.index for n in tree.tips()}


@pytest.mark.parametrize("max_depth", [1, 0, -3])
def test_shallow_depth_is_root_and_trunk(generator, max_depth):
    tree = _generate(generator, max_depth=max_depth)
    assert len(tree) == 2
    assert [leaf.node for leaf in tree.leaves] == [1]


def test_children_placed_at_parent_length(generator):
    tree = _generate(generator, max_depth=4)
    for node in tree:
        parent = tree.parent_of(node)
        if parent is None:
            continue
        assert np.isclose(np.linalg.norm(node.position - parent.position), parent.length)


def test_width_split_and_length_decay(generator):
    tree = _generate(generator, max_depth=4)
    decay = generator.params.length_decay
    for node in tree:
        if node.depth < 2:
            continue
        parent = tree.parent_of(node)
        assert np.isclose(node.width, parent.width / len(parent.children))
        assert np.isclose(node.length, parent.length * decay)


def test_trunk_has_initial_size(generator):
    tree = _generate(generator, max_depth=2)
    root, trunk = tree.node(0), tree.node(1)
    assert root.width == trunk.width == 0.4
    assert root.length == trunk.length == 1.0
    assert np.allclose(root.direction, UP)
    # trunk jitter is bounded by max_rotation_angle_base on each axis
    offset = trunk.position - root.position
    angle = np.degrees(np.arccos(np.clip(offset @ UP, -1.0, 1.0)))
    assert angle <= 3 * generator.params.max_rotation_angle_base


def test_directions_are_unit(generator):
    tree = _generate(generator, max_depth=4)
    for node in tree:
        assert np.isclose(np.linalg.norm(node.direction), 1.0)


def test_surface_rings(generator):
    tree = _generate(generator, max_depth=3)
    count = generator.params.vertices_count
    for node in tree:
        ring = node.surface_ring
        assert ring is not None and ring.shape == (count, 3)
        offsets = ring - node.position
        assert np.allclose(np.linalg.norm(offsets, axis=1), node.width / 2.0)
        assert np.allclose(offsets @ node.direction, 0.0, atol=1e-9)


def test_same_seed_same_tree(generator):
    a = _generate(generator, max_depth=4, seed=3)
    b = _generate(generator, max_depth=4, seed=3)
    c = _generate(generator, max_depth=4, seed=4)

    assert np.allclose(a.positions(), b.positions())
    assert np.array_equal(a.connectivity(), b.connectivity())
    assert not np.allclose(a.positions(), c.positions())


def test_split_count_within_bounds():
    gen = FractalTree(FractalTreeParameters(min_splits=2, max_splits=3))
    tree = gen.generate([0, 0, 0], UP, 0.5, 1.0, 1.0, max_depth=4, rng=1)
    for node in tree:
        if node.depth >= 1 and node.children:
            assert 2 <= len(node.children) <= 3


# -------------------------
# Starting data
# -------------------------


def test_starting_data_ranges():
    p = FractalTreeParameters(min_depth=2, max_depth=4)
    gen = FractalTree(p)
    g = np.random.Generator(np.random.PCG64(0))
    for _ in range(30):
        data = gen.starting_data(g)
        assert isinstance(data, StartingData)
        assert p.min_starting_width <= data.width <= p.max_starting_width
        assert p.min_starting_length <= data.length <= p.max_starting_length
        assert p.min_leaf_size <= data.leaf_size <= p.max_leaf_size
        assert p.min_depth <= data.depth <= p.max_depth


def test_starting_data_uses_one_scale():
    p = FractalTreeParameters()
    data = FractalTree(p).starting_data(5)
    t_width = (data.width - p.min_starting_width) / (p.max_starting_width - p.min_starting_width)
    t_length = (data.length - p.min_starting_length) / (
        p.max_starting_length - p.min_starting_length
    )
    assert np.isclose(t_width, t_length)


def test_generate_random_is_reproducible(ff_seeded):
    gen = FractalTree(FractalTreeParameters(max_depth=3))
    a = gen.generate_random([0, 0, 0], UP, rng=12)
    b = gen.generate_random([0, 0, 0], UP, rng=12)
    assert len(a) == len(b) >= 2
    assert np.allclose(a.positions(), b.positions())
