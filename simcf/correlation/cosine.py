"""Cosine similarity, the sibling of `Pearson` used for implicit feedback.

sim(x, y) = sum over co-occurrences of v_x * v_y / (||x|| * ||y||), with the
norms taken over each entity's full row. On boolean data this is
|A & B| / sqrt(|A| * |B|).
"""

from __future__ import annotations

import logging

import numpy as np
import scipy.sparse as sp
from scipy.sparse.linalg import norm as sparse_norm

from ..vector_utils import euclidean_norm
from .base import (
    CorrelationMatrix,
    EntityType,
    InteractionData,
    as_entity_type,
    entity_rows,
    interaction_matrices,
    num_entities_of,
)


logger = logging.getLogger(__name__)


class Cosine(CorrelationMatrix):
    """Cosine similarity matrix."""

    @classmethod
    def create(cls, data: InteractionData, entity_type: EntityType | str) -> "Cosine":
        entity_type = as_entity_type(entity_type)
        cm = cls(num_entities_of(data, entity_type))
        cm.compute_correlations(data, entity_type)
        return cm

    @staticmethod
    def compute_correlation(data: InteractionData, entity_type: EntityType | str, i: int, j: int) -> float:
        entity_type = as_entity_type(entity_type)
        i, j = int(i), int(j)
        if i == j:
            return 1.0
        if i > j:
            i, j = j, i
        rows = dict(entity_rows(data, entity_type))
        row_i = rows.get(i, {})
        row_j = rows.get(j, {})
        dot = 0.0
        for other_id in sorted(set(row_i) & set(row_j)):
            dot += row_i[other_id] * row_j[other_id]
        norm = euclidean_norm(row_i.values()) * euclidean_norm(row_j.values())
        return dot / norm if norm > 0.0 else 0.0

    def compute_correlations(self, data: InteractionData, entity_type: EntityType | str) -> None:
        entity_type = as_entity_type(entity_type)
        self.num_entities = max(self.num_entities, num_entities_of(data, entity_type))
        self._clear()

        values, _ = interaction_matrices(data, entity_type)
        norms = np.asarray(sparse_norm(values, axis=1), dtype=np.float64).ravel()

        # upper triangle only; zero dot products are not kept by the product
        dots = sp.triu(values @ values.T, k=1).tocoo()
        denom = norms[dots.row] * norms[dots.col]
        keep = (denom > 0.0) & (dots.data != 0.0)
        for x, y, dot, d in zip(dots.row[keep], dots.col[keep], dots.data[keep], denom[keep]):
            self[int(x), int(y)] = float(dot / d)

        logger.info(
            "Cosine(%s): entities=%d stored=%d",
            entity_type.value,
            self.num_entities,
            self.num_stored_entries,
        )
