"""Weighted ensemble of independently trained engines."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Sequence

from ..engine import ItemRecommender, RatingPredictor, Recommender
from ..errors import DegenerateEnsembleError
from ..registry import create_engine, register_engine
from ..store.sparse import RatingData, RelationStore


logger = logging.getLogger(__name__)


def member_model_path(path: Path, index: int) -> Path:
    """Where member `index` of the ensemble saved at `path` keeps its own model."""
    return path.with_name(f"{path.name}.model-{int(index)}")


@register_engine
class WeightedEnsemble(Recommender):
    """Combine several engines by fixed weights.

    predict(u, i) = sum_k w_k * engine_k.predict(u, i) / sum_k w_k

    The ensemble is an engine itself, so ensembles may nest. Setting the rating
    scale cascades to every member that is a `RatingPredictor` (and into nested
    ensembles); implicit-feedback members are left alone.
    """

    kind = "weighted_ensemble"

    def __init__(
        self,
        engines: Optional[Sequence[Recommender]] = None,
        weights: Optional[Sequence[float]] = None,
        *,
        min_rating: float = 1.0,
        max_rating: float = 5.0,
    ) -> None:
        self.engines: List[Recommender] = list(engines or [])
        if weights is None:
            weights = [1.0] * len(self.engines)
        self.weights: List[float] = [float(w) for w in weights]
        if len(self.weights) != len(self.engines):
            raise ValueError(f"got {len(self.engines)} engines but {len(self.weights)} weights")
        self._min_rating = float(min_rating)
        self._max_rating = float(max_rating)

    def __str__(self) -> str:
        members = ", ".join(f"{w:g}*{e}" for e, w in zip(self.engines, self.weights))
        return f"weighted-ensemble({members})"

    def add_engine(self, engine: Recommender, weight: float = 1.0) -> None:
        self.engines.append(engine)
        self.weights.append(float(weight))

    @property
    def min_rating(self) -> float:
        return self._min_rating

    @min_rating.setter
    def min_rating(self, value: float) -> None:
        self._min_rating = float(value)
        for engine in self.engines:
            if isinstance(engine, (RatingPredictor, WeightedEnsemble)):
                engine.min_rating = value

    @property
    def max_rating(self) -> float:
        return self._max_rating

    @max_rating.setter
    def max_rating(self, value: float) -> None:
        self._max_rating = float(value)
        for engine in self.engines:
            if isinstance(engine, (RatingPredictor, WeightedEnsemble)):
                engine.max_rating = value

    def _compute_weight_sum(self) -> float:
        weight_sum = float(sum(self.weights))
        if weight_sum == 0.0:
            raise DegenerateEnsembleError(f"ensemble weights sum to zero: {self.weights}")
        return weight_sum

    def train(self) -> None:
        """Train every member in order; a zero weight sum fails before any training."""
        self._compute_weight_sum()
        for engine in self.engines:
            logger.info("Training ensemble member %s", engine)
            engine.train()

    def predict(self, user_id: int, item_id: int) -> float:
        # summed per call: `weights` is a public list and may be edited after training
        weight_sum = self._compute_weight_sum()
        result = 0.0
        for engine, weight in zip(self.engines, self.weights):
            result += weight * engine.predict(user_id, item_id)
        return result / weight_sum

    def attach_data(
        self,
        relations: Optional[RelationStore] = None,
        ratings: Optional[RatingData] = None,
    ) -> None:
        """Bind interaction data to every member that needs it.

        Item recommenders get `relations` (or the boolean projection of
        `ratings` when only ratings are given); rating predictors get `ratings`.
        Nested ensembles are handled recursively.
        """
        if relations is None and ratings is not None:
            relations = ratings.to_relations()
        for engine in self.engines:
            if isinstance(engine, WeightedEnsemble):
                engine.attach_data(relations=relations, ratings=ratings)
            elif isinstance(engine, ItemRecommender) and relations is not None:
                engine.set_relations(relations)
            elif isinstance(engine, RatingPredictor) and ratings is not None:
                engine.set_ratings(ratings)

    def save_model(self, path: Path | str) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        lines = [str(len(self.engines))]
        for i, (engine, weight) in enumerate(zip(self.engines, self.weights)):
            engine.save_model(member_model_path(path, i))
            # repr() of a float always uses '.', whatever the host locale
            lines.append(f"{engine.kind} {weight!r}")
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        logger.info("Saved ensemble with %d members to %s", len(self.engines), path)

    def load_model(
        self,
        path: Path | str,
        *,
        relations: Optional[RelationStore] = None,
        ratings: Optional[RatingData] = None,
    ) -> None:
        """Rebuild members and weights from `save_model` output.

        Interaction data is not persisted. Pass `relations`/`ratings` here or
        call `attach_data()` afterwards; members without data refuse to predict.
        """
        path = Path(path)
        with path.open("r", encoding="utf-8") as fh:
            header = fh.readline().strip()
            if not header:
                raise ValueError(f"{path}: missing member count")
            num_members = int(header)

            engines: List[Recommender] = []
            weights: List[float] = []
            for i in range(num_members):
                tokens = fh.readline().split()
                if len(tokens) != 2:
                    raise ValueError(f"{path}: member line {i + 1} must be '<kind> <weight>', got {tokens}")
                kind, weight = tokens
                engine = create_engine(kind)
                engine.load_model(member_model_path(path, i))
                engines.append(engine)
                weights.append(float(weight))

        self.engines = engines
        self.weights = weights
        self._compute_weight_sum()
        # cascade the current scale into the restored members
        self.min_rating = self._min_rating
        self.max_rating = self._max_rating
        if relations is not None or ratings is not None:
            self.attach_data(relations=relations, ratings=ratings)
        logger.info("Loaded ensemble with %d members from %s", num_members, path)
