"""Pearson correlation with shrinkage.

For every unordered pair of same-type entities the five sums (sum x, sum y,
sum xy, sum x^2, sum y^2) and the co-occurrence count n come out of sparse
products of the entity x opposite-entity value matrix R and its 0/1 mask B:
n = B B^T, sum xy = R R^T, sum x = R B^T, and so on. With the sums in place:

    pmcc = (n * sum_xy - sum_x * sum_y)
           / sqrt((n * sum_xx - sum_x^2) * (n * sum_yy - sum_y^2))
    sim  = pmcc * n / (n + shrinkage)

Pairs with n < 2 or a zero denominator get similarity 0 ("no evidence").
"""

from __future__ import annotations

import logging

import numpy as np

from .base import (
    CorrelationMatrix,
    EntityType,
    InteractionData,
    as_entity_type,
    co_occurring_pairs,
    entity_rows,
    interaction_matrices,
    num_entities_of,
    values_at,
)


logger = logging.getLogger(__name__)


def _pmcc_with_shrinkage(n, x_sum, y_sum, xy_sum, xx_sum, yy_sum, shrinkage: float) -> np.ndarray:
    n, x_sum, y_sum, xy_sum, xx_sum, yy_sum = (
        np.atleast_1d(np.asarray(a, dtype=np.float64)) for a in (n, x_sum, y_sum, xy_sum, xx_sum, yy_sum)
    )
    numerator = n * xy_sum - x_sum * y_sum
    denominator_sq = (n * xx_sum - x_sum * x_sum) * (n * yy_sum - y_sum * y_sum)
    sims = np.zeros_like(n)
    ok = (n >= 2) & (denominator_sq > 0.0)
    pmcc = numerator[ok] / np.sqrt(denominator_sq[ok])
    sims[ok] = pmcc * (n[ok] / (n[ok] + shrinkage))
    return sims



class Pearson(CorrelationMatrix):
    """Shrunk Pearson correlation matrix."""

    def __init__(self, num_entities: int, shrinkage: float = 10.0) -> None:
        super().__init__(num_entities)
        if float(shrinkage) < 0.0:
            raise ValueError(f"shrinkage must be >= 0, got {shrinkage}")
        self.shrinkage = float(shrinkage)

    @classmethod
    def create(cls, data: InteractionData, entity_type: EntityType | str, shrinkage: float = 10.0) -> "Pearson":
        """Size a matrix for `data` and fill it."""
        entity_type = as_entity_type(entity_type)
        cm = cls(num_entities_of(data, entity_type), shrinkage=shrinkage)
        cm.compute_correlations(data, entity_type)
        return cm

    @staticmethod
    def compute_correlation(
        data: InteractionData,
        entity_type: EntityType | str,
        i: int,
        j: int,
        shrinkage: float = 10.0,
    ) -> float:
        """Pairwise recomputation of one entry, for spot validation.

        Sums run over the co-occurring entities in ascending ID order, the
        order in which the sparse products accumulate them, so the result
        matches the matrix entry exactly.
        """
        entity_type = as_entity_type(entity_type)
        i, j = int(i), int(j)
        if i == j:
            return 1.0
        if i > j:
            i, j = j, i

        rows = dict(entity_rows(data, entity_type))
        row_i = rows.get(i, {})
        row_j = rows.get(j, {})
        common = sorted(set(row_i) & set(row_j))

        x_sum = y_sum = xy_sum = xx_sum = yy_sum = 0.0
        for other_id in common:
            r_i = row_i[other_id]
            r_j = row_j[other_id]
            x_sum += r_i
            y_sum += r_j
            xy_sum += r_i * r_j
            xx_sum += r_i * r_i
            yy_sum += r_j * r_j
        return float(_pmcc_with_shrinkage(len(common), x_sum, y_sum, xy_sum, xx_sum, yy_sum, float(shrinkage))[0])

    def compute_correlations(self, data: InteractionData, entity_type: EntityType | str) -> None:
        entity_type = as_entity_type(entity_type)
        self.num_entities = max(self.num_entities, num_entities_of(data, entity_type))
        self._clear()

        values, mask = interaction_matrices(data, entity_type)
        squares = values.multiply(values).tocsr()
        squares.sort_indices()

        # pair (x, y), x < y: the sums run over the opposite entities both relate to
        x, y, n = co_occurring_pairs(mask)
        x_sum = values_at(values @ mask.T, x, y)
        y_sum = values_at(mask @ values.T, x, y)
        xy_sum = values_at(values @ values.T, x, y)
        xx_sum = values_at(squares @ mask.T, x, y)
        yy_sum = values_at(mask @ squares.T, x, y)

        sims = _pmcc_with_shrinkage(n, x_sum, y_sum, xy_sum, xx_sum, yy_sum, self.shrinkage)
        for i in np.flatnonzero(sims):
            self[int(x[i]), int(y[i])] = float(sims[i])

        logger.info(
            "Pearson(%s): entities=%d co-occurring pairs=%d stored=%d shrinkage=%.2f",
            entity_type.value,
            self.num_entities,
            len(n),
            self.num_stored_entries,
            self.shrinkage,
        )
