"""k-nearest-neighbor collaborative filtering over implicit feedback.

The user-based engines score (u, i) by looking at u's most similar users and
checking who of them interacted with i; the item-based engines look at i's most
similar items and check which of them u interacted with. Both come in an
unweighted flavour (vote fraction, count / k) and a weighted flavour
(unnormalised similarity mass).

k=None means "unbounded": no neighbor lists are cached and every known entity
takes part. For the unweighted engines this degenerates to a most-popular
estimate.
"""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import ClassVar, List, Optional, Set, Tuple

from ..correlation.base import CorrelationMatrix, EntityType
from ..correlation.cosine import Cosine
from ..correlation.pearson import Pearson
from ..engine import ItemRecommender
from ..errors import UnknownEntityError
from ..registry import register_engine
from ..store.sparse import RelationStore, SparseBooleanMatrix


logger = logging.getLogger(__name__)

SIMILARITIES: Tuple[str, ...] = ("cosine", "pearson")


def parse_k(k: object) -> Optional[int]:
    """Normalise a neighbor count: positive int, or None for unbounded.

    Accepts None, "inf"/"infinite"/"all" and math.inf as unbounded.
    """
    if k is None:
        return None
    if isinstance(k, str):
        if k.strip().lower() in {"inf", "infinite", "all", "none"}:
            return None
        k = int(k)
    if isinstance(k, float):
        if math.isinf(k):
            return None
        if not k.is_integer():
            raise ValueError(f"k must be a whole number, got {k}")
    k_int = int(k)  # type: ignore[arg-type]
    if k_int < 1:
        raise ValueError(f"k must be a positive integer or unbounded, got {k}")
    return k_int


class KNN(ItemRecommender):
    """Shared training and prediction logic for the kNN item recommenders."""

    entity_type: ClassVar[EntityType] = EntityType.USER
    weighted: ClassVar[bool] = False
    label: ClassVar[str] = "kNN"

    def __init__(self, k: object = 80, *, similarity: str = "cosine", shrinkage: float = 10.0) -> None:
        super().__init__()
        if similarity not in SIMILARITIES:
            raise ValueError(f"similarity must be one of {SIMILARITIES}, got {similarity!r}")
        self.k = parse_k(k)
        self.similarity = similarity
        self.shrinkage = float(shrinkage)
        self.correlation: Optional[CorrelationMatrix] = None
        self.nearest_neighbors: Optional[List[List[int]]] = None

    def __str__(self) -> str:
        return f"{self.label} k={'inf' if self.k is None else self.k}"

    def _new_correlation(self, num_entities: int) -> CorrelationMatrix:
        if self.similarity == "pearson":
            return Pearson(num_entities, shrinkage=self.shrinkage)
        return Cosine(num_entities)

    # orientation: the "source" entity owns the neighbors, the "target" is what they vote on
    def _source_target(self, user_id: int, item_id: int) -> Tuple[int, int]:
        if self.entity_type is EntityType.USER:
            return user_id, item_id
        return item_id, user_id

    def _source_rows(self, relations: RelationStore) -> SparseBooleanMatrix:
        return relations.user_items if self.entity_type is EntityType.USER else relations.item_users

    def _target_rows(self, relations: RelationStore) -> SparseBooleanMatrix:
        return relations.item_users if self.entity_type is EntityType.USER else relations.user_items

    def train(self) -> None:
        relations = self._require_relations()
        num_entities = relations.num_users if self.entity_type is EntityType.USER else relations.num_items
        self.correlation = self._new_correlation(num_entities)
        self.correlation.compute_correlations(relations, self.entity_type)
        self._cache_neighbors()
        logger.info(
            "%s trained: %ss=%d relations=%d",
            self,
            self.entity_type.value,
            num_entities,
            len(relations),
        )

    def _cache_neighbors(self) -> None:
        cm = self.correlation
        if cm is None or self.k is None:
            self.nearest_neighbors = None
            return
        self.nearest_neighbors = [cm.get_nearest_neighbors(e, self.k) for e in range(cm.num_entities)]

    def _require_trained(self) -> CorrelationMatrix:
        if self.correlation is None:
            raise RuntimeError(f"{type(self).__name__} is not trained; call train() or load_model() first")
        return self.correlation

    def predict(self, user_id: int, item_id: int) -> float:
        relations = self._require_relations()
        cm = self._require_trained()
        user_id = relations.check_user(user_id)
        item_id = relations.check_item(item_id)

        source, target = self._source_target(user_id, item_id)
        if source >= cm.num_entities:
            # registered after training
            raise UnknownEntityError(self.entity_type.value, source)

        if self.weighted:
            return self._similarity_mass(cm, relations, source, target)
        return self._vote_fraction(cm, relations, source, target)

    def _trained_voters(self, cm: CorrelationMatrix, relations: RelationStore, target: int) -> Set[int]:
        """Source-side entities relating to `target` that the matrix covers.

        Entities registered after training have no similarities yet and are
        skipped, as they never appear among the cached neighbors either.
        """
        return {e for e in self._target_rows(relations).row(target) if e < cm.num_entities}

    def _vote_fraction(self, cm: CorrelationMatrix, relations: RelationStore, source: int, target: int) -> float:
        source_rows = self._source_rows(relations)
        if self.k is None or self.nearest_neighbors is None:
            voters = self._trained_voters(cm, relations, target) - {source}
            others = cm.num_entities - 1
            return len(voters) / others if others > 0 else 0.0

        count = 0
        for neighbor in self.nearest_neighbors[source]:
            if target in source_rows.row(neighbor):
                count += 1
        return count / self.k

    def _similarity_mass(self, cm: CorrelationMatrix, relations: RelationStore, source: int, target: int) -> float:
        if self.k is None or self.nearest_neighbors is None:
            return cm.sum_up(source, self._trained_voters(cm, relations, target))

        source_rows = self._source_rows(relations)
        result = 0.0
        for neighbor in self.nearest_neighbors[source]:
            if target in source_rows.row(neighbor):
                result += cm.get(source, neighbor)
        return result

    def save_model(self, path: Path | str) -> None:
        cm = self._require_trained()
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as fh:
            fh.write(f"{'inf' if self.k is None else self.k}\n")
            fh.write(f"{self.similarity} {self.shrinkage!r}\n")
            cm.write(fh)

    def load_model(self, path: Path | str) -> None:
        """Restore k, the similarity setup and the correlation matrix.

        Interaction data is not part of the model; bind it with
        `set_relations()` before predicting.
        """
        with Path(path).open("r", encoding="utf-8") as fh:
            self.k = parse_k(fh.readline().strip())
            similarity, shrinkage = fh.readline().split()
            if similarity not in SIMILARITIES:
                raise ValueError(f"{path}: unknown similarity {similarity!r}")
            self.similarity = similarity
            self.shrinkage = float(shrinkage)
            cm = self._new_correlation(0)
            cm.read(fh)
        self.correlation = cm
        self._cache_neighbors()


@register_engine
class UserKNN(KNN):
    """User-based kNN; k=None equals most-popular."""

    kind = "user_knn"
    entity_type = EntityType.USER
    label = "user-kNN"


@register_engine
class WeightedUserKNN(UserKNN):
    """User-based kNN scoring by the summed similarity of related neighbors."""

    kind = "weighted_user_knn"
    weighted = True
    label = "weighted-user-kNN"


@register_engine
class ItemKNN(KNN):
    kind = "item_knn"
    entity_type = EntityType.ITEM
    label = "item-kNN"


@register_engine
class WeightedItemKNN(ItemKNN):
    kind = "weighted_item_knn"
    weighted = True
    label = "weighted-item-kNN"
