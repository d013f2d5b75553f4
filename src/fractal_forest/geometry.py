"""Vector and rotation helpers shared by the tree generators.

Rotations are represented with :class:`scipy.spatial.transform.Rotation`.
Composition follows SciPy's convention: ``(a * b).apply(v)`` applies ``b``
first, then ``a``.
"""

from __future__ import annotations

from typing import Any, Sequence, Union

import numpy as np
from numpy.typing import NDArray
from scipy.spatial.transform import Rotation

UP = np.array([0.0, 1.0, 0.0])
RIGHT = np.array([1.0, 0.0, 0.0])
FORWARD = np.array([0.0, 0.0, 1.0])

_EPS = 1e-12

VectorLike = Union[NDArray[Any], Sequence[float]]


def as_vector(v: VectorLike, dim: int = 3) -> NDArray[np.float64]:
    """Return `v` as a flat float array of length `dim`.

    Raises:
        ValueError: If `v` does not hold exactly `dim` components.
    """
    arr = np.asarray(v, dtype=float).reshape(-1)
    if arr.shape != (dim,):
        raise ValueError(f"expected a {dim}-component vector; got shape {arr.shape}")
    return arr


def normalize(v: VectorLike) -> NDArray[np.float64]:
    """Return the unit vector along `v`, or the zero vector if `v` is ~0."""
    arr = np.asarray(v, dtype=float)
    mag = float(np.linalg.norm(arr))
    if mag < _EPS:
        return np.zeros_like(arr)
    return arr / mag


def lerp(a: float, b: float, t: float) -> float:
    """Linearly interpolate between `a` and `b`."""
    return a + (b - a) * t


def random_euler_rotation(max_angle: float, rng: np.random.Generator) -> Rotation:
    """Draw a rotation with independent per-axis angles in ``[-max, max]`` degrees.

    Angles are drawn in x, y, z order and composed z first, then x, then y
    (extrinsic), the usual engine Euler convention.
    """
    x, y, z = rng.uniform(-max_angle, max_angle, size=3)
    return Rotation.from_euler("zxy", [z, x, y], degrees=True)


def axis_angle(angle: float, axis: VectorLike) -> Rotation:
    """Return the rotation of `angle` degrees about `axis`."""
    unit = normalize(as_vector(axis))
    return Rotation.from_rotvec(np.radians(angle) * unit)


def offset_direction(
    direction: VectorLike, max_angle: float, rng: np.random.Generator
) -> NDArray[np.float64]:
    """Jitter `direction` by a random Euler rotation bounded by `max_angle`."""
    rotation = random_euler_rotation(max_angle, rng)
    return rotation.apply(as_vector(direction))


def surface_ring(
    position: VectorLike,
    direction: VectorLike,
    radius: float,
    count: int,
) -> NDArray[np.float64]:
    """Return `count` points on a circle around `position` facing `direction`.

    The circle lies in the plane perpendicular to `direction`. The first
    vertex sits along the world right axis projected onto that plane (the
    forward axis when right is parallel to `direction`); the others follow
    at equal angular steps about `direction`.

    Returns:
        Array of shape ``(count, 3)``.
    """
    center = as_vector(position)
    axis = normalize(as_vector(direction))
    if not axis.any():
        axis = UP

    ref = RIGHT - np.dot(RIGHT, axis) * axis
    if np.linalg.norm(ref) < 1e-6:
        ref = FORWARD - np.dot(FORWARD, axis) * axis
    ref = normalize(ref)

    angles = np.radians(np.arange(count) * (360.0 / count))
    rotations = Rotation.from_rotvec(np.outer(angles, axis))
    return center + rotations.apply(ref * radius)
