"""Sparse row-addressable matrices and the dual user/item stores built on them.

Rows are addressed by small dense integer IDs and are materialised lazily: asking
for a row that does not exist yet creates it (and every row below it), which is
why `max_known_id` can only move forward on reads.

`RelationStore` (implicit feedback) and `RatingData` (explicit feedback) keep a
user->items and an item->users view of the same data. All mutations go through
the store so the two orientations cannot drift apart.
"""

from __future__ import annotations

from typing import Dict, Generic, Iterable, Iterator, List, Set, Tuple, TypeVar

from ..errors import UnknownEntityError


RowT = TypeVar("RowT")


class _SparseRows(Generic[RowT]):
    def __init__(self, num_rows: int = 0) -> None:
        self._rows: List[RowT] = []
        if num_rows > 0:
            self.row(int(num_rows) - 1)

    def _empty_row(self) -> RowT:  # pragma: no cover
        raise NotImplementedError

    def row(self, row_id: int) -> RowT:
        """Return the live row for `row_id`, creating empty rows up to it."""
        row_id = int(row_id)
        if row_id < 0:
            raise IndexError(f"row id must be non-negative, got {row_id}")
        while len(self._rows) <= row_id:
            self._rows.append(self._empty_row())
        return self._rows[row_id]

    def has_row(self, row_id: int) -> bool:
        return 0 <= int(row_id) < len(self._rows)

    @property
    def num_rows(self) -> int:
        return len(self._rows)

    @property
    def max_known_id(self) -> int:
        return len(self._rows) - 1

    @property
    def non_empty_row_ids(self) -> List[int]:
        return [i for i, r in enumerate(self._rows) if r]

    def __iter__(self) -> Iterator[RowT]:
        return iter(self._rows)

    def __len__(self) -> int:
        return len(self._rows)


class SparseBooleanMatrix(_SparseRows[Set[int]]):
    """Boolean sparse matrix: each row is a set of column IDs."""

    def _empty_row(self) -> Set[int]:
        return set()

    def __contains__(self, entry: Tuple[int, int]) -> bool:
        x, y = entry
        return self.has_row(x) and int(y) in self._rows[int(x)]

    def add_entry(self, x: int, y: int) -> None:
        self.row(x).add(int(y))

    def discard(self, x: int, y: int) -> None:
        self.row(x).discard(int(y))

    @property
    def num_entries(self) -> int:
        return sum(len(r) for r in self._rows)

    def transpose(self) -> "SparseBooleanMatrix":
        out = SparseBooleanMatrix()
        for x, cols in enumerate(self._rows):
            for y in cols:
                out.add_entry(y, x)
        return out


class SparseMatrix(_SparseRows[Dict[int, float]]):
    """Real-valued sparse matrix: each row maps column ID -> value."""

    def _empty_row(self) -> Dict[int, float]:
        return {}

    def get(self, x: int, y: int, default: float = 0.0) -> float:
        if not self.has_row(x):
            return default
        return self._rows[int(x)].get(int(y), default)

    def set(self, x: int, y: int, value: float) -> None:
        self.row(x)[int(y)] = float(value)

    def discard(self, x: int, y: int) -> None:
        self.row(x).pop(int(y), None)

    def non_empty_entries(self) -> Iterator[Tuple[int, int, float]]:
        for x, cols in enumerate(self._rows):
            for y, v in cols.items():
                yield x, y, v

    @property
    def num_entries(self) -> int:
        return sum(len(r) for r in self._rows)


class _DualStore:
    """Common entity bookkeeping for the user-side/item-side store pairs."""

    def __init__(self) -> None:
        self.max_user_id = -1
        self.max_item_id = -1

    # subclasses provide the two orientations
    @property
    def _by_user(self) -> _SparseRows:  # pragma: no cover
        raise NotImplementedError

    @property
    def _by_item(self) -> _SparseRows:  # pragma: no cover
        raise NotImplementedError

    def add_user(self, user_id: int) -> None:
        user_id = int(user_id)
        self._by_user.row(user_id)
        self.max_user_id = max(self.max_user_id, user_id)

    def add_item(self, item_id: int) -> None:
        item_id = int(item_id)
        self._by_item.row(item_id)
        self.max_item_id = max(self.max_item_id, item_id)

    def check_user(self, user_id: int) -> int:
        user_id = int(user_id)
        if user_id < 0 or user_id > self.max_user_id:
            raise UnknownEntityError("user", user_id)
        return user_id

    def check_item(self, item_id: int) -> int:
        item_id = int(item_id)
        if item_id < 0 or item_id > self.max_item_id:
            raise UnknownEntityError("item", item_id)
        return item_id

    @property
    def num_users(self) -> int:
        return self.max_user_id + 1

    @property
    def num_items(self) -> int:
        return self.max_item_id + 1

    def remove_user(self, user_id: int) -> None:
        """Remove every mention of the user from both orientations."""
        user_id = self.check_user(user_id)
        row = self._by_user.row(user_id)
        for item_id in list(row):
            self._by_item.discard(item_id, user_id)
        row.clear()
        if user_id == self.max_user_id:
            self.max_user_id -= 1

    def remove_item(self, item_id: int) -> None:
        """Remove every mention of the item from both orientations."""
        item_id = self.check_item(item_id)
        row = self._by_item.row(item_id)
        for user_id in list(row):
            self._by_user.discard(user_id, item_id)
        row.clear()
        if item_id == self.max_item_id:
            self.max_item_id -= 1


class RelationStore(_DualStore):
    """Implicit-feedback (boolean) user-item relations in both orientations."""

    def __init__(self) -> None:
        super().__init__()
        self.user_items = SparseBooleanMatrix()
        self.item_users = SparseBooleanMatrix()

    @property
    def _by_user(self) -> SparseBooleanMatrix:
        return self.user_items

    @property
    def _by_item(self) -> SparseBooleanMatrix:
        return self.item_users

    @classmethod
    def from_pairs(cls, pairs: Iterable[Tuple[int, int]]) -> "RelationStore":
        """Build a store from (user, item) pairs, registering every ID seen."""
        store = cls()
        for user_id, item_id in pairs:
            store.add_user(user_id)
            store.add_item(item_id)
            store.add_relation(user_id, item_id)
        return store

    def add_relation(self, user_id: int, item_id: int) -> None:
        user_id = self.check_user(user_id)
        item_id = self.check_item(item_id)
        self.user_items.row(user_id).add(item_id)
        self.item_users.row(item_id).add(user_id)

    def remove_relation(self, user_id: int, item_id: int) -> None:
        user_id = self.check_user(user_id)
        item_id = self.check_item(item_id)
        self.user_items.row(user_id).discard(item_id)
        self.item_users.row(item_id).discard(user_id)

    def items_of(self, user_id: int) -> Set[int]:
        return self.user_items.row(user_id)

    def users_of(self, item_id: int) -> Set[int]:
        return self.item_users.row(item_id)

    def __contains__(self, pair: Tuple[int, int]) -> bool:
        return pair in self.user_items

    def __len__(self) -> int:
        return self.user_items.num_entries


class RatingData(_DualStore):
    """Explicit-feedback ratings in both orientations."""

    def __init__(self) -> None:
        super().__init__()
        self.by_user = SparseMatrix()
        self.by_item = SparseMatrix()

    @property
    def _by_user(self) -> SparseMatrix:
        return self.by_user

    @property
    def _by_item(self) -> SparseMatrix:
        return self.by_item

    @classmethod
    def from_triples(cls, triples: Iterable[Tuple[int, int, float]]) -> "RatingData":
        data = cls()
        for user_id, item_id, rating in triples:
            data.add_user(user_id)
            data.add_item(item_id)
            data.add_rating(user_id, item_id, rating)
        return data

    def add_rating(self, user_id: int, item_id: int, rating: float) -> None:
        user_id = self.check_user(user_id)
        item_id = self.check_item(item_id)
        self.by_user.set(user_id, item_id, rating)
        self.by_item.set(item_id, user_id, rating)

    def remove_rating(self, user_id: int, item_id: int) -> None:
        user_id = self.check_user(user_id)
        item_id = self.check_item(item_id)
        self.by_user.row(user_id).pop(item_id, None)
        self.by_item.row(item_id).pop(user_id, None)

    def rating(self, user_id: int, item_id: int) -> float:
        """Return the stored rating; KeyError if the user never rated the item."""
        row = self.by_user.row(self.check_user(user_id))
        return row[int(item_id)]

    def items_of(self, user_id: int) -> Dict[int, float]:
        return self.by_user.row(user_id)

    def users_of(self, item_id: int) -> Dict[int, float]:
        return self.by_item.row(item_id)

    def __len__(self) -> int:
        return self.by_user.num_entries

    def mean(self) -> float:
        n = len(self)
        if n == 0:
            return 0.0
        return sum(v for _, _, v in self.by_user.non_empty_entries()) / n

    def user_mean(self, user_id: int, default: float | None = None) -> float:
        row = self.by_user.row(user_id)
        if not row:
            return self.mean() if default is None else float(default)
        return sum(row.values()) / len(row)

    def to_relations(self) -> RelationStore:
        """Boolean projection: every rated (user, item) pair becomes a relation."""
        store = RelationStore()
        if self.max_user_id >= 0:
            store.add_user(self.max_user_id)
        if self.max_item_id >= 0:
            store.add_item(self.max_item_id)
        for user_id, item_id, _ in self.by_user.non_empty_entries():
            store.add_relation(user_id, item_id)
        return store
