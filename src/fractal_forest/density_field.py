"""Module defining DensityField, a 2D attraction intensity grid.

Each attraction point contributes ``exp(-falloff * distance)`` (scaled to
0-255) to the cells around it. Contributions beyond the cutoff distance,
where the intensity falls below 1% of its peak, are skipped. Every point is
rendered into its own private `Splat` (in parallel), then all splats are
merged into the grid with saturating addition.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from functools import partial
from typing import Any, Iterable, List, Optional, Tuple

import numpy as np
from numpy.typing import NDArray

from .config import RandomSource, resolve_rng, workers as configured_workers
from .geometry import VectorLike, as_vector
from .parameters import DensityFieldParameters

_LOGGER = logging.getLogger(__name__)

NEGLIGIBLE_INTENSITY = 0.01


def cutoff_distance(falloff: float) -> float:
    """Return the distance at which one point's intensity drops to 1%.

    Raises:
        ValueError: If `falloff` is not positive.
    """
    if not falloff > 0:
        raise ValueError(f"falloff must be > 0; got {falloff}")
    return float(-np.log(NEGLIGIBLE_INTENSITY) / falloff)


@dataclass(frozen=True)
class Splat:
    """Private partial buffer of a single attraction point.

    Attributes:
        x0 (int): Grid column of ``values[:, 0]``.
        y0 (int): Grid row of ``values[0, :]``.
        values (NDArray[np.uint8]): Intensities over the clipped bounding box.
        touched (NDArray[np.bool_]): Cells within the cutoff distance.
    """

    x0: int
    y0: int
    values: NDArray[np.uint8]
    touched: NDArray[np.bool_]

    @property
    def is_empty(self) -> bool:
        return self.values.size == 0


def splat_point(
    point: VectorLike,
    width: int,
    height: int,
    falloff: float,
) -> Splat:
    """Render one attraction point into its own partial buffer.

    Only the bounding box ``[point - cutoff, point + cutoff]`` clipped to the
    grid is visited. Cells within the cutoff get
    ``floor(min(exp(-falloff * d) * 255, 255))``.

    Args:
        point: (x, y) position in grid coordinates.
        width: Grid width.
        height: Grid height.
        falloff: Exponential decay rate.

    Returns:
        The point's splat (empty if the point's footprint misses the grid).
    """
    px, py = as_vector(point, dim=2)
    cutoff = cutoff_distance(falloff)

    x0 = max(0, int(np.floor(px - cutoff)))
    x1 = min(int(width), int(np.floor(px + cutoff)) + 1)
    y0 = max(0, int(np.floor(py - cutoff)))
    y1 = min(int(height), int(np.floor(py + cutoff)) + 1)

    if x0 >= x1 or y0 >= y1:
        _LOGGER.debug("splat_point: (%g, %g) lies outside the grid", px, py)
        return Splat(
            x0=0,
            y0=0,
            values=np.zeros((0, 0), dtype=np.uint8),
            touched=np.zeros((0, 0), dtype=bool),
        )

    ys, xs = np.mgrid[y0:y1, x0:x1]
    d2 = (xs - px) ** 2 + (ys - py) ** 2
    touched = d2 <= cutoff * cutoff

    intensity = np.exp(-falloff * np.sqrt(d2)) * 255.0
    values = np.where(touched, np.floor(np.minimum(intensity, 255.0)), 0.0)

    return Splat(x0=x0, y0=y0, values=values.astype(np.uint8), touched=touched)


class DensityField:
    """Width x height grid of accumulated attraction intensity.

    Attributes:
        width (int): Number of columns.
        height (int): Number of rows.
        intensity (NDArray[np.uint8]): Intensity grid, shape (height, width),
            indexed ``[y, x]``.
        alpha (NDArray[np.uint8]): 255 where at least one point reached the
            cell, 0 elsewhere.
    """

    def __init__(self, width: int, height: int) -> None:
        if int(width) <= 0 or int(height) <= 0:
            raise ValueError(
                f"DensityField size must be positive; got {width}x{height}"
            )
        self.width = int(width)
        self.height = int(height)
        self.intensity: NDArray[np.uint8] = np.zeros(
            (self.height, self.width), dtype=np.uint8
        )
        self.alpha: NDArray[np.uint8] = np.zeros(
            (self.height, self.width), dtype=np.uint8
        )

    @classmethod
    def build(
        cls,
        points: Iterable[VectorLike],
        width: int,
        height: int,
        falloff: float,
        workers: Optional[int] = None,
    ) -> DensityField:
        """Build a field from attraction points.

        Splats are computed concurrently, one task per point; merging starts
        only after every splat is complete.

        Args:
            points: (x, y) attraction positions in grid coordinates.
            width: Grid width.
            height: Grid height.
            falloff: Exponential decay rate (> 0).
            workers: Thread count; the configured default when omitted, the
                executor default when 0.

        Returns:
            The merged field.
        """
        field = cls(width, height)
        cutoff_distance(falloff)  # validates falloff
        pts: List[NDArray[Any]] = [as_vector(p, dim=2) for p in points]
        render = partial(splat_point, width=field.width, height=field.height, falloff=falloff)

        max_workers = (workers if workers is not None else configured_workers()) or None
        try:
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                splats = list(executor.map(render, pts))
        except Exception:
            _LOGGER.exception("DensityField.build: splatting failed; nothing merged.")
            raise

        field.merge(splats)
        _LOGGER.info(
            "DensityField built: %dx%d points=%d falloff=%g cutoff=%.3f total=%d",
            field.width,
            field.height,
            len(pts),
            falloff,
            cutoff_distance(falloff),
            field.total,
        )
        return field

    @classmethod
    def from_parameters(
        cls,
        points: Iterable[VectorLike],
        params: DensityFieldParameters,
        workers: Optional[int] = None,
    ) -> DensityField:
        """Build a field using the size and falloff of `params`."""
        return cls.build(points, params.width, params.height, params.falloff, workers)

    def merge(self, splats: Iterable[Splat]) -> DensityField:
        """Add splats into the grid with saturating addition (clamped to 255).

        The result does not depend on the order of `splats`.
        """
        for splat in splats:
            if splat.is_empty:
                continue
            h, w = splat.values.shape
            rows = slice(splat.y0, splat.y0 + h)
            cols = slice(splat.x0, splat.x0 + w)

            summed = self.intensity[rows, cols].astype(np.uint16) + splat.values
            self.intensity[rows, cols] = np.minimum(summed, 255).astype(np.uint8)
            self.alpha[rows, cols][splat.touched] = 255
        return self

    @property
    def total(self) -> int:
        """Sum of every cell's intensity."""
        return int(self.intensity.sum(dtype=np.int64))

    @property
    def shape(self) -> Tuple[int, int]:
        return self.height, self.width

    def value(self, x: int, y: int) -> int:
        """Return the intensity of cell (x, y)."""
        return int(self.intensity[y, x])

    def sample_weighted(self, rng: RandomSource = None) -> Tuple[int, int]:
        """Draw a cell with probability proportional to its intensity.

        Cells are walked in row-major order; the first cell whose running
        sum reaches a uniform draw in ``[0, total)`` is returned.

        Returns:
            The (x, y) cell, or (0, 0) when the field is empty.
        """
        weights = self.intensity.ravel().astype(np.int64)
        total = int(weights.sum())
        if total == 0:
            _LOGGER.debug("sample_weighted: empty field, returning origin")
            return 0, 0

        u = resolve_rng(rng).random() * total
        index = int(np.searchsorted(np.cumsum(weights), u, side="left"))
        return index % self.width, index // self.width

    def to_rgba(self) -> NDArray[np.uint8]:
        """Return the field as a grey RGBA image of shape (height, width, 4)."""
        rgba = np.empty((self.height, self.width, 4), dtype=np.uint8)
        rgba[..., 0] = self.intensity
        rgba[..., 1] = self.intensity
        rgba[..., 2] = self.intensity
        rgba[..., 3] = self.alpha
        return rgba

    def __repr__(self) -> str:
        return f"DensityField(width={self.width}, height={self.height}, total={self.total})"
