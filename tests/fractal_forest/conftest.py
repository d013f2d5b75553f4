from __future__ import annotations

import numpy as np
import pytest

from fractal_forest.parameters import FractalTreeParameters, GrowthParameters


@pytest.fixture()
def ff_seeded():
    """Run the test with the default generator reseeded to 0."""
    import fractal_forest as ff

    with ff.use(seed=0):
        yield ff


@pytest.fixture
def gen() -> np.random.Generator:
    return np.random.Generator(np.random.PCG64(42))


@pytest.fixture
def binary_params() -> FractalTreeParameters:
    """Two splits per branching event, so node counts are deterministic."""
    return FractalTreeParameters(
        min_splits=2,
        max_splits=2,
        length_decay=0.8,
        max_rotation_angle=15.0,
        max_rotation_angle_base=5.0,
        angle_increase_per_depth=5.0,
        vertices_count=6,
    )


@pytest.fixture
def growth_params() -> GrowthParameters:
    return GrowthParameters()
