"""Parameter containers for fractal tree generation, growth and density fields.

This module provides the dataclasses holding every tunable setting of the
generators. Angles are in degrees, matching the Euler-jitter convention used
by :mod:`fractal_forest.geometry`.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .config import RandomSource, resolve_rng


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise ValueError(message)


@dataclass
class FractalTreeParameters:
    """Settings for one-shot recursive tree generation.

    Attributes:
        min_starting_width (float): Lower bound of the trunk width range.
        max_starting_width (float): Upper bound of the trunk width range.
        min_starting_length (float): Lower bound of the trunk length range.
        max_starting_length (float): Upper bound of the trunk length range.
        min_leaf_size (float): Leaf size at the small end of the range.
        max_leaf_size (float): Leaf size at the large end of the range.
        min_depth (int): Smallest recursion depth drawn by `starting_data`.
        max_depth (int): Largest recursion depth drawn by `starting_data`.
        min_splits (int): Minimum number of children per branching event.
        max_splits (int): Maximum number of children per branching event.
        length_decay (float): Length multiplier applied per generation.
        max_rotation_angle (float): Per-axis jitter bound for child branches.
        max_rotation_angle_base (float): Per-axis jitter bound for the trunk.
        angle_increase_per_depth (float): Jitter bound growth per depth level.
        vertices_count (int): Number of vertices in each surface ring.

    Notes:
        - A depth of 1 produces only the root and the trunk.
        - The width of a child is its parent's width divided by the split
          count, so total width is conserved at every branching event.
    """

    min_starting_width: float = 0.1
    max_starting_width: float = 0.5
    min_starting_length: float = 0.5
    max_starting_length: float = 1.0
    min_leaf_size: float = 0.5
    max_leaf_size: float = 2.0
    min_depth: int = 1
    max_depth: int = 5
    min_splits: int = 2
    max_splits: int = 3
    length_decay: float = 0.9
    max_rotation_angle: float = 30.0
    max_rotation_angle_base: float = 10.0
    angle_increase_per_depth: float = 10.0
    vertices_count: int = 8

    def __post_init__(self) -> None:
        _require(self.min_splits >= 1, f"min_splits must be >= 1; got {self.min_splits}")
        _require(
            self.min_splits <= self.max_splits,
            f"min_splits ({self.min_splits}) must not exceed max_splits ({self.max_splits})",
        )
        _require(
            self.min_depth <= self.max_depth,
            f"min_depth ({self.min_depth}) must not exceed max_depth ({self.max_depth})",
        )
        _require(self.length_decay > 0, f"length_decay must be > 0; got {self.length_decay}")
        _require(
            self.vertices_count >= 3,
            f"vertices_count must be >= 3; got {self.vertices_count}",
        )
        for name in (
            "max_rotation_angle",
            "max_rotation_angle_base",
            "angle_increase_per_depth",
        ):
            _require(getattr(self, name) >= 0, f"{name} must be >= 0")


@dataclass(frozen=True)
class GrowthRates:
    """Per-tree tuning of incremental growth.

    Attributes:
        extra_width_percent_to_branch (float): A node requests a new branch
            while its width exceeds ``1 + extra`` times its children's width.
        percent_length_increase (float): Fractional length gain per tick.
        percent_width_increase (float): Fractional width gain per tick.
    """

    extra_width_percent_to_branch: float
    percent_length_increase: float
    percent_width_increase: float


@dataclass
class GrowthParameters:
    """Settings for incremental stepwise growth.

    Attributes:
        max_rotation_offset (float): Per-axis jitter bound (degrees) for new
            branch directions.
        extra_width_percent_to_branch (float): Base branching threshold.
        percent_length_increase (float): Base length growth per tick.
        percent_width_increase (float): Base width growth per tick.
        random_growth_factor (float): Relative spread applied to the base
            rates when a tree is created.
        branch_scale (float): Width/length ratio of a new branch to its parent.
        trunk_width (float): Width of the root node.
        trunk_length (float): Length of the root node.
        trunk_child_width (float): Width of the first node above the root.
        trunk_child_length (float): Length of the first node above the root.
    """

    max_rotation_offset: float = 10.0
    extra_width_percent_to_branch: float = 0.25
    percent_length_increase: float = 0.05
    percent_width_increase: float = 0.05
    random_growth_factor: float = 0.1
    branch_scale: float = 0.75
    trunk_width: float = 1.0
    trunk_length: float = 5.0
    trunk_child_width: float = 0.75
    trunk_child_length: float = 5.0

    def __post_init__(self) -> None:
        _require(
            self.max_rotation_offset >= 0,
            f"max_rotation_offset must be >= 0; got {self.max_rotation_offset}",
        )
        _require(
            0 <= self.random_growth_factor < 1,
            f"random_growth_factor must be in [0, 1); got {self.random_growth_factor}",
        )
        _require(self.branch_scale > 0, f"branch_scale must be > 0; got {self.branch_scale}")
        for name in (
            "trunk_width",
            "trunk_length",
            "trunk_child_width",
            "trunk_child_length",
        ):
            _require(getattr(self, name) > 0, f"{name} must be > 0")

    @property
    def base_rates(self) -> GrowthRates:
        """Return the unvaried growth rates."""
        return GrowthRates(
            extra_width_percent_to_branch=self.extra_width_percent_to_branch,
            percent_length_increase=self.percent_length_increase,
            percent_width_increase=self.percent_width_increase,
        )

    def sample_rates(self, rng: RandomSource = None) -> GrowthRates:
        """Return per-tree rates scaled by one shared random factor.

        The factor is drawn uniformly in
        ``[1 - random_growth_factor, 1 + random_growth_factor)`` so trees
        created from the same parameters grow at slightly different speeds.
        """
        gen = resolve_rng(rng)
        factor = 1.0 + float(
            gen.uniform(-self.random_growth_factor, self.random_growth_factor)
        )
        return GrowthRates(
            extra_width_percent_to_branch=self.extra_width_percent_to_branch * factor,
            percent_length_increase=self.percent_length_increase * factor,
            percent_width_increase=self.percent_width_increase * factor,
        )


@dataclass
class DensityFieldParameters:
    """Settings for attraction density fields.

    Attributes:
        width (int): Grid width in cells.
        height (int): Grid height in cells.
        falloff (float): Exponential decay rate of each point's contribution.
    """

    width: int = 256
    height: int = 256
    falloff: float = 0.1

    def __post_init__(self) -> None:
        _require(int(self.width) > 0, f"width must be > 0; got {self.width}")
        _require(int(self.height) > 0, f"height must be > 0; got {self.height}")
        _require(
            np.isfinite(self.falloff) and self.falloff > 0,
            f"falloff must be a finite value > 0; got {self.falloff}",
        )
