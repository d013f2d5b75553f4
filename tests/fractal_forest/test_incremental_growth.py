from __future__ import annotations

import numpy as np
import pytest
from numpy.testing import assert_allclose

from fractal_forest.geometry import UP, normalize
from fractal_forest.incremental_growth import GrowthDelta, IncrementalGrowth, PendingBranch
from fractal_forest.parameters import GrowthParameters, GrowthRates
from fractal_forest.tree import GrowthTree


@pytest.fixture
def growth(growth_params: GrowthParameters) -> IncrementalGrowth:
    return IncrementalGrowth(growth_params)


@pytest.fixture
def tree(growth: IncrementalGrowth) -> GrowthTree:
    return growth.create_tree([0.0, 0.0, 0.0], UP, rng=3)


def _assert_attached(tree: GrowthTree) -> None:
    for node in tree:
        parent = tree.parent_of(node)
        if parent is not None:
            assert np.allclose(node.position, parent.tip_position())


def _geometry(tree: GrowthTree):
    return (
        [n.width for n in tree],
        [n.length for n in tree],
        tree.positions(),
    )


def test_rejects_wrong_parameter_type():
    with pytest.raises(TypeError):
        IncrementalGrowth(object())  # type: ignore[arg-type]


def test_create_tree_trunk(growth, tree):
    p = growth.params
    assert len(tree) == 2
    root, child = tree.nodes

    assert np.allclose(root.position, [0.0, 0.0, 0.0])
    assert np.allclose(root.direction, UP)
    assert (root.width, root.length) == (p.trunk_width, p.trunk_length)
    assert (child.width, child.length) == (p.trunk_child_width, p.trunk_child_length)
    assert np.allclose(child.position, [0.0, p.trunk_length, 0.0])
    assert tree.rates == p.base_rates


def test_create_tree_keeps_given_rates(growth):
    rates = GrowthRates(0.5, 0.1, 0.2)
    t = growth.create_tree([1.0, 0.0, 1.0], UP, rates=rates, rng=0)
    assert t.rates is rates


# -------------------------
# Compute phase
# -------------------------


def test_compute_leaves_tree_untouched(growth, tree):
    widths, lengths, positions = _geometry(tree)

    delta = growth.compute(tree)

    assert isinstance(delta, GrowthDelta)
    assert delta.node_count == 2
    assert [n.width for n in tree] == widths
    assert [n.length for n in tree] == lengths
    assert_allclose(tree.positions(), positions)
    assert len(tree) == 2


def test_compute_grows_every_node(growth, tree):
    widths, lengths, _ = _geometry(tree)
    delta = growth.compute(tree)

    assert_allclose(delta.widths, np.array(widths) * 1.05)
    assert_allclose(delta.lengths, np.array(lengths) * 1.05)
    root = tree.node(0)
    assert_allclose(delta.positions[0], root.position)
    assert_allclose(delta.positions[1], root.position + root.direction * delta.lengths[0])


def test_compute_collects_pending_branches(growth, tree):
    delta = growth.compute(tree)

    # root: 1.05 > 1.25 * 0.7875; tip: 0.7875 > 0
    assert [b.parent for b in delta.pending] == [0, 1]
    assert delta.pending[0] == PendingBranch(
        parent=0,
        width=float(delta.widths[0] * 0.75),
        length=float(delta.lengths[0] * 0.75),
    )


def test_compute_skips_nodes_below_threshold(growth):
    t = GrowthTree([0, 0, 0], UP, rates=GrowthRates(0.25, 0.0, 0.0))
    root = t.add_node([0, 0, 0], 1.0, 1.0, UP)
    t.add_node(root.tip_position(), 0.9, 1.0, UP, parent=root.index)
    t.add_node(root.tip_position(), 0.1, 1.0, UP, parent=root.index)

    delta = growth.compute(t)
    # 1.0 < 1.25 * (0.9 + 0.1); only the tips request branches
    assert [b.parent for b in delta.pending] == [1, 2]


def test_compute_requires_rates(growth):
    t = GrowthTree([0, 0, 0], UP)
    t.add_node([0, 0, 0], 1.0, 1.0, UP)
    with pytest.raises(ValueError):
        growth.compute(t)


# -------------------------
# Apply phase
# -------------------------


def test_zero_width_tree_grows_without_branching(growth):
    t = GrowthTree([0, 0, 0], UP, rates=GrowthRates(0.25, 0.1, 0.1))
    root = t.add_node([0, 0, 0], 0.0, 2.0, UP)
    t.add_node(root.tip_position(), 0.0, 2.0, UP, parent=root.index)

    created = growth.step(t, rng=0)

    assert created == []
    assert len(t) == 2
    assert np.isclose(t.node(0).length, 2.2)
    assert_allclose(t.node(1).position, [0.0, 2.2, 0.0])


def test_apply_writes_grown_geometry(growth, tree):
    delta = growth.compute(tree)
    growth.apply(tree, delta, rng=0)

    assert_allclose([tree.node(i).width for i in (0, 1)], delta.widths)
    assert_allclose([tree.node(i).length for i in (0, 1)], delta.lengths)
    assert_allclose(tree.positions()[:2], delta.positions)
    _assert_attached(tree)


def test_apply_rejects_stale_delta(growth, tree):
    delta = growth.compute(tree)
    growth.apply(tree, delta, rng=0)
    with pytest.raises(ValueError):
        growth.apply(tree, delta, rng=0)


def test_apply_uses_current_parent_direction():
    growth = IncrementalGrowth(GrowthParameters(max_rotation_offset=0.0))
    t = growth.create_tree([0, 0, 0], UP, rng=0)
    delta = growth.compute(t)

    tilted = normalize([1.0, 1.0, 0.0])
    t.node(1).direction = tilted
    created = growth.apply(t, delta, rng=0)

    by_parent = {n.parent: n for n in created}
    assert np.allclose(by_parent[1].direction, tilted)
    assert np.allclose(by_parent[1].position, t.node(1).tip_position())


def test_apply_appends_in_request_order(growth, tree):
    delta = growth.compute(tree)
    created = growth.apply(tree, delta, rng=1)

    assert [n.index for n in created] == [2, 3]
    assert [n.parent for n in created] == [0, 1]
    assert tree.node(0).children == [1, 2]
    assert all(np.isclose(np.linalg.norm(n.direction), 1.0) for n in created)


@pytest.mark.slow
def test_several_steps_keep_nodes_attached(growth, tree):
    g = np.random.Generator(np.random.PCG64(8))
    sizes = [len(tree)]
    for _ in range(5):
        growth.step(tree, g)
        _assert_attached(tree)
        sizes.append(len(tree))
    assert sizes == sorted(sizes)
    assert sizes[-1] > sizes[0]


def test_step_rejects_overlapping_tick(growth, tree):
    with tree.growth_tick():
        with pytest.raises(RuntimeError):
            growth.step(tree)
    # the guard is released afterwards
    growth.step(tree, rng=0)
