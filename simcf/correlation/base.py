"""Symmetric entity x entity similarity storage and the queries built on it."""

from __future__ import annotations

from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional, TextIO, Tuple, Union

import numpy as np
import scipy.sparse as sp

from ..errors import InvalidEntityTypeError, UnknownEntityError
from ..store.sparse import RatingData, RelationStore


InteractionData = Union[RatingData, RelationStore]


class EntityType(str, Enum):
    USER = "user"
    ITEM = "item"


def as_entity_type(value: object) -> EntityType:
    """Coerce `value` to an EntityType, accepting the enum or its string value."""
    if isinstance(value, EntityType):
        return value
    if isinstance(value, str):
        try:
            return EntityType(value.lower())
        except ValueError:
            pass
    raise InvalidEntityTypeError(f"entity type must be either USER or ITEM, not {value!r}")


def num_entities_of(data: InteractionData, entity_type: EntityType) -> int:
    return data.num_users if entity_type is EntityType.USER else data.num_items


def entity_rows(data: InteractionData, entity_type: EntityType) -> Iterator[Tuple[int, Dict[int, float]]]:
    """Yield (entity_id, {other_id: value}) for every entity of `entity_type`.

    Boolean relations are viewed as value 1.0.
    """
    if isinstance(data, RatingData):
        rows = data.by_user if entity_type is EntityType.USER else data.by_item
        for entity_id, row in enumerate(rows):
            yield entity_id, row
    else:
        rows_b = data.user_items if entity_type is EntityType.USER else data.item_users
        for entity_id, row_b in enumerate(rows_b):
            yield entity_id, dict.fromkeys(row_b, 1.0)


def interaction_matrices(data: InteractionData, entity_type: EntityType) -> Tuple[sp.csr_matrix, sp.csr_matrix]:
    """Return (values, mask): entity x opposite-type CSR matrices.

    `mask` holds 1.0 wherever a relation exists, including relations whose
    value is 0. Column indices are sorted, so products accumulate the
    co-occurrences of a pair in ascending opposite-ID order.
    """
    opposite = EntityType.ITEM if entity_type is EntityType.USER else EntityType.USER
    rows: List[int] = []
    cols: List[int] = []
    vals: List[float] = []
    for entity_id, row in entity_rows(data, entity_type):
        for other_id, value in row.items():
            rows.append(entity_id)
            cols.append(other_id)
            vals.append(value)

    shape = (num_entities_of(data, entity_type), num_entities_of(data, opposite))
    r = np.asarray(rows, dtype=np.int64)
    c = np.asarray(cols, dtype=np.int64)
    values = sp.csr_matrix((np.asarray(vals, dtype=np.float64), (r, c)), shape=shape)
    mask = sp.csr_matrix((np.ones(len(vals), dtype=np.float64), (r, c)), shape=shape)
    values.sort_indices()
    mask.sort_indices()
    return values, mask


def co_occurring_pairs(mask: sp.csr_matrix) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Return (x, y, n) for every pair x < y sharing at least one opposite entity."""
    counts = sp.triu(mask @ mask.T, k=1).tocoo()
    return counts.row.astype(np.int64), counts.col.astype(np.int64), counts.data.astype(np.float64)


def values_at(m: sp.spmatrix, x: np.ndarray, y: np.ndarray) -> np.ndarray:
    """Entries m[x[i], y[i]] as a flat float array (absent entries read 0)."""
    if len(x) == 0:
        return np.zeros(0, dtype=np.float64)
    return np.asarray(m.tocsr()[x, y], dtype=np.float64).ravel()


class CorrelationMatrix:
    """Symmetric similarity matrix over `num_entities` entities.

    Only the canonical pair (min(x, y), max(x, y)) with x != y is stored, so
    sim(x, y) == sim(y, x) holds by construction. The diagonal is fixed at 1.0.
    Pairs that were never stored read as 0.0.
    """

    def __init__(self, num_entities: int) -> None:
        if int(num_entities) < 0:
            raise ValueError(f"num_entities must be non-negative, got {num_entities}")
        self.num_entities = int(num_entities)
        self._entries: Dict[int, Dict[int, float]] = {}

    def _check(self, entity_id: int) -> int:
        entity_id = int(entity_id)
        if entity_id < 0 or entity_id >= self.num_entities:
            raise UnknownEntityError("entity", entity_id)
        return entity_id

    def get(self, x: int, y: int) -> float:
        x = self._check(x)
        y = self._check(y)
        if x == y:
            return 1.0
        if x > y:
            x, y = y, x
        return self._entries.get(x, {}).get(y, 0.0)

    def __getitem__(self, pair: Tuple[int, int]) -> float:
        return self.get(*pair)

    def __setitem__(self, pair: Tuple[int, int], value: float) -> None:
        x, y = (self._check(p) for p in pair)
        if x == y:
            raise ValueError(f"the diagonal is fixed at 1.0 (entity {x})")
        if x > y:
            x, y = y, x
        self._entries.setdefault(x, {})[y] = float(value)

    def _clear(self) -> None:
        self._entries = {}

    @property
    def num_stored_entries(self) -> int:
        return sum(len(r) for r in self._entries.values())

    def stored_entries(self) -> Iterator[Tuple[int, int, float]]:
        for x in sorted(self._entries):
            row = self._entries[x]
            for y in sorted(row):
                yield x, y, row[y]

    def similarities_of(self, entity_id: int) -> np.ndarray:
        """Dense row of similarities between `entity_id` and every entity."""
        x = self._check(entity_id)
        sims = np.zeros(self.num_entities, dtype=np.float64)
        for y, value in self._entries.get(x, {}).items():
            sims[y] = value
        for y, row in self._entries.items():
            if y < x and x in row:
                sims[y] = row[x]
        sims[x] = 1.0
        return sims

    def get_nearest_neighbors(self, entity_id: int, k: Optional[int]) -> List[int]:
        """Return up to `k` other entities, most similar first.

        Ties are broken by ascending entity ID. `k=None` returns all other
        entities in that order.
        """
        x = self._check(entity_id)
        sims = self.similarities_of(x)
        ids = np.arange(self.num_entities)
        # lexsort: last key is the primary one
        order = np.lexsort((ids, -sims))
        order = order[order != x]
        if k is not None:
            order = order[: max(0, int(k))]
        return [int(i) for i in order]

    def sum_up(self, entity_id: int, candidates: Iterable[int]) -> float:
        """Total similarity between `entity_id` and every candidate."""
        x = self._check(entity_id)
        return float(sum(self.get(x, c) for c in candidates))

    def compute_correlations(self, data: InteractionData, entity_type: EntityType | str) -> None:  # pragma: no cover
        raise NotImplementedError

    def write(self, fh: TextIO) -> None:
        fh.write(f"{self.num_entities}\n")
        for x, y, value in self.stored_entries():
            fh.write(f"{x} {y} {value!r}\n")

    def read(self, fh: TextIO) -> None:
        """Replace the contents with the matrix written by `write()`."""
        header = fh.readline()
        if not header.strip():
            raise ValueError("correlation matrix header missing")
        self.num_entities = int(header)
        self._clear()
        for line in fh:
            tokens = line.split()
            if not tokens:
                continue
            if len(tokens) != 3:
                raise ValueError(f"expected 'x y value', got {line!r}")
            self[int(tokens[0]), int(tokens[1])] = float(tokens[2])
