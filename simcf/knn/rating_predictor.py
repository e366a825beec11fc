"""Rating predictors over explicit feedback."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from ..correlation.base import EntityType
from ..correlation.pearson import Pearson
from ..engine import RatingPredictor
from ..errors import UnknownEntityError
from ..registry import register_engine
from .item_recommender import parse_k


logger = logging.getLogger(__name__)


@register_engine
class GlobalAverage(RatingPredictor):
    """Predicts the global mean rating for every (user, item) pair."""

    kind = "global_average"

    def __init__(self, *, min_rating: float = 1.0, max_rating: float = 5.0) -> None:
        super().__init__(min_rating=min_rating, max_rating=max_rating)
        self.global_mean: Optional[float] = None

    def __str__(self) -> str:
        return "global-average"

    def train(self) -> None:
        ratings = self._require_ratings()
        self.global_mean = ratings.mean()
        logger.info("GlobalAverage trained: ratings=%d mean=%.4f", len(ratings), self.global_mean)

    def predict(self, user_id: int, item_id: int) -> float:
        ratings = self._require_ratings()
        if self.global_mean is None:
            raise RuntimeError("GlobalAverage is not trained; call train() or load_model() first")
        ratings.check_user(user_id)
        ratings.check_item(item_id)
        return self._clamp(self.global_mean)

    def save_model(self, path: Path | str) -> None:
        if self.global_mean is None:
            raise RuntimeError("GlobalAverage is not trained")
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f"{self.global_mean!r}\n", encoding="utf-8")

    def load_model(self, path: Path | str) -> None:
        self.global_mean = float(Path(path).read_text(encoding="utf-8").strip())


@register_engine
class UserKNNPearson(RatingPredictor):
    """User-based kNN rating prediction with shrunk Pearson similarity.

    prediction(u, i) = mean(u) + sum_v sim(u, v) * (r_vi - mean(v)) / sum_v |sim(u, v)|

    over the k users most similar to u among those who rated i. Falls back to
    mean(u) when no such user carries any similarity. Results are clamped to the
    rating scale.
    """

    kind = "user_knn_pearson"

    def __init__(
        self,
        k: object = 40,
        *,
        shrinkage: float = 10.0,
        min_rating: float = 1.0,
        max_rating: float = 5.0,
    ) -> None:
        super().__init__(min_rating=min_rating, max_rating=max_rating)
        self.k = parse_k(k)
        self.shrinkage = float(shrinkage)
        self.correlation: Optional[Pearson] = None

    def __str__(self) -> str:
        return f"user-kNN-pearson k={'inf' if self.k is None else self.k} shrinkage={self.shrinkage:g}"

    def train(self) -> None:
        ratings = self._require_ratings()
        self.correlation = Pearson.create(ratings, EntityType.USER, shrinkage=self.shrinkage)
        logger.info("%s trained: users=%d ratings=%d", self, ratings.num_users, len(ratings))

    def predict(self, user_id: int, item_id: int) -> float:
        ratings = self._require_ratings()
        cm = self.correlation
        if cm is None:
            raise RuntimeError("UserKNNPearson is not trained; call train() or load_model() first")
        user_id = ratings.check_user(user_id)
        item_id = ratings.check_item(item_id)
        if user_id >= cm.num_entities:
            raise UnknownEntityError("user", user_id)

        user_mean = ratings.user_mean(user_id)
        raters = [v for v in ratings.users_of(item_id) if v != user_id and v < cm.num_entities]
        raters.sort(key=lambda v: (-cm.get(user_id, v), v))
        if self.k is not None:
            raters = raters[: self.k]

        numerator = 0.0
        denominator = 0.0
        for v in raters:
            sim = cm.get(user_id, v)
            if sim == 0.0:
                continue
            numerator += sim * (ratings.users_of(item_id)[v] - ratings.user_mean(v))
            denominator += abs(sim)

        if denominator == 0.0:
            return self._clamp(user_mean)
        return self._clamp(user_mean + numerator / denominator)

    def save_model(self, path: Path | str) -> None:
        if self.correlation is None:
            raise RuntimeError("UserKNNPearson is not trained")
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as fh:
            fh.write(f"{'inf' if self.k is None else self.k} {self.shrinkage!r}\n")
            self.correlation.write(fh)

    def load_model(self, path: Path | str) -> None:
        with Path(path).open("r", encoding="utf-8") as fh:
            k, shrinkage = fh.readline().split()
            self.k = parse_k(k)
            self.shrinkage = float(shrinkage)
            cm = Pearson(0, shrinkage=self.shrinkage)
            cm.read(fh)
        self.correlation = cm
