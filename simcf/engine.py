"""Capability interface shared by every engine: train, predict, save, load."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import ClassVar, Optional

from .store.sparse import RatingData, RelationStore


class Recommender(ABC):
    """Base class for all engines.

    Engines are trained in one batch pass; `predict` is only valid after
    `train` (or `load_model`) returned.
    """

    #: registry tag written into ensemble model files
    kind: ClassVar[str] = ""

    @abstractmethod
    def train(self) -> None: ...

    @abstractmethod
    def predict(self, user_id: int, item_id: int) -> float: ...

    @abstractmethod
    def save_model(self, path: Path | str) -> None: ...

    @abstractmethod
    def load_model(self, path: Path | str) -> None: ...


class ItemRecommender(Recommender):
    """Engine over implicit feedback held in a `RelationStore`."""

    def __init__(self) -> None:
        self.relations: Optional[RelationStore] = None

    def set_relations(self, relations: RelationStore) -> None:
        self.relations = relations

    def _require_relations(self) -> RelationStore:
        if self.relations is None:
            raise RuntimeError(f"{type(self).__name__} has no interaction data bound; call set_relations() first")
        return self.relations


class RatingPredictor(Recommender):
    """Engine over explicit ratings, predicting on a [min_rating, max_rating] scale."""

    def __init__(self, *, min_rating: float = 1.0, max_rating: float = 5.0) -> None:
        self.ratings: Optional[RatingData] = None
        self._min_rating = float(min_rating)
        self._max_rating = float(max_rating)

    @property
    def min_rating(self) -> float:
        return self._min_rating

    @min_rating.setter
    def min_rating(self, value: float) -> None:
        self._min_rating = float(value)

    @property
    def max_rating(self) -> float:
        return self._max_rating

    @max_rating.setter
    def max_rating(self, value: float) -> None:
        self._max_rating = float(value)

    def set_ratings(self, ratings: RatingData) -> None:
        self.ratings = ratings

    def _require_ratings(self) -> RatingData:
        if self.ratings is None:
            raise RuntimeError(f"{type(self).__name__} has no rating data bound; call set_ratings() first")
        return self.ratings

    def _clamp(self, value: float) -> float:
        return min(self._max_rating, max(self._min_rating, float(value)))
