"""The fractal_forest package provides procedural tree and forest generation.

This package offers:
  - One-shot recursive (fractal) tree generation with surface rings.
  - Incremental tree growth in discrete ticks, computed in parallel per tree
    and applied by a single writer.
  - Forest management: spawn placement, tree lifecycle and growth ticks.
  - Space-colonization density fields with weighted sampling.

Submodules:
  - apply_queue: Hand-off queue between compute workers and the writer.
  - density_field: DensityField construction and sampling.
  - forest: ForestManager.
  - fractal_tree: One-shot FractalTree generator.
  - geometry: Vector and rotation helpers.
  - incremental_growth: Stepwise growth rules.
  - parameters: Parameter dataclasses.
  - tree: BranchNode / GrowthTree node arena.

Classes:
  ApplyQueue, BranchNode, DensityField, ForestManager, FractalTree,
  GrowthTree, IncrementalGrowth, FractalTreeParameters, GrowthParameters,
  DensityFieldParameters
"""

from .config import (
    config,
    configure,
    use,
    seed,
    rng,
    resolve_rng,
    set_log_level,
)

from fractal_forest.apply_queue import ApplyQueue, GrowthBatch
from fractal_forest.density_field import DensityField, Splat, splat_point
from fractal_forest.forest import ForestManager
from fractal_forest.fractal_tree import FractalTree, StartingData
from fractal_forest.incremental_growth import GrowthDelta, IncrementalGrowth, PendingBranch
from fractal_forest.parameters import (
    DensityFieldParameters,
    FractalTreeParameters,
    GrowthParameters,
    GrowthRates,
)
from fractal_forest.tree import BranchNode, GrowthTree, Leaf

__all__ = [
    # Core classes
    "ApplyQueue",
    "BranchNode",
    "DensityField",
    "ForestManager",
    "FractalTree",
    "GrowthBatch",
    "GrowthDelta",
    "GrowthTree",
    "IncrementalGrowth",
    "Leaf",
    "PendingBranch",
    "Splat",
    "StartingData",
    "splat_point",
    # Parameters
    "DensityFieldParameters",
    "FractalTreeParameters",
    "GrowthParameters",
    "GrowthRates",
    # Configuration
    "config",
    "configure",
    "use",
    "seed",
    "rng",
    "resolve_rng",
    "set_log_level",
]
