from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class ReproducibilityConfig:
    seed: int = 42


def setup_logging(level: int | str = "INFO") -> None:
    """Configure stdlib logging with a consistent, project-wide format."""
    root_logger = logging.getLogger()
    if root_logger.handlers:
        # Avoid duplicate handlers if called multiple times (e.g., tests + CLI).
        root_logger.setLevel(level)
        return

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def make_rng(cfg: ReproducibilityConfig | int | None = None) -> np.random.Generator:
    """Return a seeded numpy Generator.

    Routines that need randomness take the generator as an argument; nothing in
    the package touches numpy's global RNG state.
    """
    if isinstance(cfg, ReproducibilityConfig):
        return np.random.default_rng(int(cfg.seed))
    return np.random.default_rng(cfg)
