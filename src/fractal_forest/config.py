"""Global configuration for fractal-forest.

This module provides a package-wide configuration surface for the random
source and the worker pools used by the parallel phases (forest growth ticks
and density-field construction). It exposes a dynamic `rng` proxy that always
reflects the current default generator, logging setup, and environment
helpers.
"""

from __future__ import annotations

import contextlib
import logging
import os
from typing import Any, ContextManager, Iterator, Optional, Union

import numpy as np

# -----------------------------------------------------------------------------
# Logging
# -----------------------------------------------------------------------------
_LOGGER = logging.getLogger("fractal_forest")


def _parse_log_level(val: str | int | None, default: int = logging.WARNING) -> int:
    """Parse a logging level string or int into a `logging` level constant.

    Args:
        val: The desired level (e.g., "DEBUG", 10). May be None.
        default: Fallback level if `val` cannot be parsed.

    Returns:
        An integer logging level (e.g., logging.DEBUG).
    """
    if val is None:
        return default
    if isinstance(val, int):
        return val
    lvl = getattr(logging, str(val).upper(), None)
    if isinstance(lvl, int):
        return lvl
    return default


def set_log_level(level: str | int = "WARNING") -> None:
    """Set the package logger level programmatically.

    Args:
        level: A standard logging level name or integer.
    """
    _LOGGER.setLevel(_parse_log_level(level))


# Default level can be overridden by env.
set_log_level(os.getenv("FRACTAL_FOREST_LOGLEVEL", "WARNING"))


# -----------------------------------------------------------------------------
# Env helpers
# -----------------------------------------------------------------------------
def int_env(varname: str, default: int) -> int:
    """Read an environment variable and interpret it as an integer.

    Args:
        varname: The name of the environment variable.
        default: The default value if the variable is unset.

    Returns:
        The integer value parsed from the environment.
    """
    return int(os.getenv(varname, str(default)))


RandomSource = Union[np.random.Generator, int, None]


def _make_generator(seed: int) -> np.random.Generator:
    """Create a NumPy PCG64 generator for `seed`."""
    return np.random.Generator(np.random.PCG64(seed))


# -----------------------------------------------------------------------------
# Config singleton + dynamic proxy
# -----------------------------------------------------------------------------
class Config:
    """Global configuration for fractal-forest.

    Holds the default random generator (seeded, so runs are reproducible
    unless reseeded) and the worker count of the thread pools used by the
    parallel compute phases. A worker count of 0 lets the executor pick.
    """

    def __init__(self) -> None:
        """Initialize config using environment defaults."""
        self._seed_default = int_env("FRACTAL_FOREST_SEED", 1234)
        self._workers = int_env("FRACTAL_FOREST_WORKERS", 0)
        self._rng = _make_generator(self._seed_default)
        _LOGGER.info(
            "Config initialized: seed=%d workers=%d",
            self._seed_default,
            self._workers,
        )

    def configure(
        self,
        *,
        seed: Optional[int] = None,
        workers: Optional[int] = None,
    ) -> Config:
        """Reconfigure the default generator and worker count.

        Args:
            seed: Optional seed; the default generator is rebuilt when given.
            workers: Optional worker count (0 = executor default).

        Returns:
            The `Config` instance (for chaining).

        Raises:
            ValueError: If `workers` is negative.
        """
        if workers is not None:
            if int(workers) < 0:
                raise ValueError(f"workers must be >= 0; got {workers}")
            self._workers = int(workers)
        if seed is not None:
            self._rng = _make_generator(int(seed))
        _LOGGER.info("Reconfigured: seed=%s workers=%d", seed, self._workers)
        return self

    @contextlib.contextmanager
    def use(
        self,
        *,
        seed: Optional[int] = None,
        workers: Optional[int] = None,
    ) -> Iterator[Config]:
        """Temporarily reconfigure within a context manager.

        Args:
            seed: Optional seed for a temporary default generator.
            workers: Optional temporary worker count.

        Yields:
            The `Config` instance. Restores the previous state on exit.
        """
        prev_rng, prev_workers = self._rng, self._workers
        try:
            self.configure(seed=seed, workers=workers)
            yield self
        finally:
            self._rng, self._workers = prev_rng, prev_workers
            _LOGGER.info("Restored previous configuration (workers=%d)", self._workers)

    def seed(self, s: int = 1234) -> None:
        """Reseed the default generator deterministically.

        Args:
            s: The seed value.
        """
        _LOGGER.info("Reseeding default RNG to %d", s)
        self._rng = _make_generator(s)

    @property
    def rng(self) -> np.random.Generator:
        """Return the default random generator."""
        return self._rng

    @property
    def workers(self) -> Optional[int]:
        """Return the worker count for executors (None = executor default)."""
        return self._workers or None

    def resolve_rng(self, rng: RandomSource = None) -> np.random.Generator:
        """Map an optional random source onto a Generator.

        Args:
            rng: A Generator (returned as is), an int seed (fresh PCG64
                generator), or None (the default generator).

        Returns:
            A `numpy.random.Generator`.
        """
        if rng is None:
            return self._rng
        if isinstance(rng, np.random.Generator):
            return rng
        if isinstance(rng, (int, np.integer)):
            return _make_generator(int(rng))
        raise TypeError(f"rng must be a Generator, int or None; got {type(rng)!r}")


class _RNGProxy:
    """Proxy for `rng` that forwards attribute access to the default generator."""

    def __init__(self, _cfg: Config) -> None:
        self._cfg = _cfg

    def __getattr__(self, name: str) -> Any:  # noqa: D401
        return getattr(self._cfg.rng, name)


# Singleton & forwards
config = Config()
rng = _RNGProxy(config)


def resolve_rng(source: RandomSource = None) -> np.random.Generator:
    """Map an optional random source onto a Generator (module-level)."""
    return config.resolve_rng(source)


def workers() -> Optional[int]:
    """Return the configured executor worker count (module-level)."""
    return config.workers


def configure(
    *,
    seed: Optional[int] = None,
    workers: Optional[int] = None,
) -> Config:
    """Reconfigure the default generator and workers (module-level)."""
    return config.configure(seed=seed, workers=workers)


def use(
    *,
    seed: Optional[int] = None,
    workers: Optional[int] = None,
) -> ContextManager[Config]:
    """Temporarily reconfigure within a context manager (module-level)."""
    return config.use(seed=seed, workers=workers)


def seed(s: int = 1234) -> None:
    """Reseed the default generator deterministically (module-level)."""
    config.seed(s)
