"""Grow a small forest and print per-tree node counts.

Attraction points are splatted into a density field; some trees are spawned
by sampling that field, the rest with the farthest-point heuristic. The
incremental trees are then grown for a few ticks.
"""

import argparse
import logging

import numpy as np

import fractal_forest as ff


def main(ticks: int, seed: int, points: int) -> None:
    logging.basicConfig(format="%(asctime)s %(name)s %(levelname)s: %(message)s")
    ff.set_log_level("INFO")
    g = np.random.Generator(np.random.PCG64(seed))

    params = ff.DensityFieldParameters(width=64, height=64, falloff=0.15)
    attraction = g.uniform(0, params.width, size=(points, 2))
    field = ff.DensityField.from_parameters(attraction, params)

    forest = ff.ForestManager(max_generation_distance=32.0)
    for _ in range(3):
        position, normal = forest.spawn_position_from_field(
            field, cell_size=0.5, origin=(-16.0, -16.0), rng=g
        )
        forest.spawn_incremental_tree(position, normal, rng=g)
    for _ in range(3):
        forest.spawn_fractal_tree(rng=g)

    for tick in range(ticks):
        added = forest.grow(rng=g)
        print(f"tick {tick}: +{added} nodes")

    for i, tree in enumerate(forest.trees):
        kind = "incremental" if tree.is_incremental else "fractal"
        print(f"tree {i} ({kind}) at {np.round(tree.position, 2)}: {len(tree)} nodes")


if __name__ == "__main__":
    ap = argparse.ArgumentParser()
    ap.add_argument("--ticks", type=int, default=4)
    ap.add_argument("--seed", type=int, default=0)
    ap.add_argument("--points", type=int, default=40)
    args = ap.parse_args()
    main(args.ticks, args.seed, args.points)
