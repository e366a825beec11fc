"""Closed mapping of engine kind tags to engine classes.

Ensemble model files name each member by its tag; loading goes through
`create_engine` instead of resolving class names at runtime.
"""

from __future__ import annotations

import importlib
from typing import TYPE_CHECKING, Dict, Tuple, Type, TypeVar

if TYPE_CHECKING:
    from .engine import Recommender


KNOWN_KINDS: Tuple[str, ...] = (
    "user_knn",
    "weighted_user_knn",
    "item_knn",
    "weighted_item_knn",
    "global_average",
    "user_knn_pearson",
    "weighted_ensemble",
)

# modules whose classes register themselves on import
_ENGINE_MODULES = (
    "simcf.knn.item_recommender",
    "simcf.knn.rating_predictor",
    "simcf.fusion.ensemble",
)

_REGISTRY: Dict[str, "Type[Recommender]"] = {}

EngineT = TypeVar("EngineT", bound="Type[Recommender]")


def register_engine(cls: EngineT) -> EngineT:
    kind = getattr(cls, "kind", "")
    if kind not in KNOWN_KINDS:
        raise ValueError(f"{cls.__name__}.kind={kind!r} is not one of {KNOWN_KINDS}")
    existing = _REGISTRY.get(kind)
    if existing is not None and existing is not cls:
        raise ValueError(f"kind {kind!r} already registered by {existing.__name__}")
    _REGISTRY[kind] = cls
    return cls


def _load_all() -> Dict[str, "Type[Recommender]"]:
    for module in _ENGINE_MODULES:
        importlib.import_module(module)
    missing = sorted(set(KNOWN_KINDS) - set(_REGISTRY))
    if missing:
        raise RuntimeError(f"engine kinds without a registered class: {missing}")
    return _REGISTRY


def registered_kinds() -> Tuple[str, ...]:
    return tuple(sorted(_load_all()))


def engine_class(kind: str) -> "Type[Recommender]":
    registry = _load_all()
    try:
        return registry[kind]
    except KeyError:
        raise ValueError(f"Unknown engine kind: {kind!r} (known: {', '.join(KNOWN_KINDS)})") from None


def create_engine(kind: str, **kwargs) -> "Recommender":
    """Instantiate the engine registered under `kind`."""
    return engine_class(kind)(**kwargs)
