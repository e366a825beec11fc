from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd
from sklearn.preprocessing import LabelEncoder

from .errors import MalformedRecordError, UnknownEntityError
from .store.sparse import RatingData, RelationStore


logger = logging.getLogger(__name__)

_SPLIT_RE = re.compile(r"[ \t]+")

REQUIRED_RATING_COLUMNS: Tuple[str, ...] = ("userId", "itemId", "rating")


def _tokens(line_number: int, line: str, min_tokens: int, what: str) -> List[str]:
    tokens = _SPLIT_RE.split(line.strip())
    if len(tokens) < min_tokens:
        raise MalformedRecordError(line_number, line, f"expected at least {min_tokens} columns ({what})")
    return tokens


def _entity_id(line_number: int, line: str, token: str) -> int:
    try:
        entity_id = int(token)
    except ValueError:
        raise MalformedRecordError(line_number, line, f"entity id {token!r} is not an integer") from None
    if entity_id < 0:
        raise MalformedRecordError(line_number, line, f"entity id {entity_id} is negative")
    return entity_id


def read_interactions(lines: Iterable[str]) -> RelationStore:
    """Parse `user_id item_id` lines (space or tab separated) into a RelationStore.

    Blank lines are skipped; extra columns are ignored.
    """
    store = RelationStore()
    for line_number, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        tokens = _tokens(line_number, line, 2, "user_id item_id")
        user_id = _entity_id(line_number, line, tokens[0])
        item_id = _entity_id(line_number, line, tokens[1])
        store.add_user(user_id)
        store.add_item(item_id)
        store.add_relation(user_id, item_id)
    return store


def read_ratings(lines: Iterable[str]) -> RatingData:
    """Parse `user_id item_id rating` lines into RatingData."""
    data = RatingData()
    for line_number, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        tokens = _tokens(line_number, line, 3, "user_id item_id rating")
        user_id = _entity_id(line_number, line, tokens[0])
        item_id = _entity_id(line_number, line, tokens[1])
        try:
            rating = float(tokens[2])
        except ValueError:
            raise MalformedRecordError(line_number, line, f"rating {tokens[2]!r} is not a number") from None
        data.add_user(user_id)
        data.add_item(item_id)
        data.add_rating(user_id, item_id, rating)
    return data


def load_interactions(path: Path) -> RelationStore:
    path = Path(path)
    with path.open("r", encoding="utf-8") as fh:
        store = read_interactions(fh)
    logger.info(
        "Loaded %d interactions from %s: users=%d items=%d",
        len(store),
        path,
        store.num_users,
        store.num_items,
    )
    return store


def load_ratings(path: Path) -> RatingData:
    path = Path(path)
    with path.open("r", encoding="utf-8") as fh:
        data = read_ratings(fh)
    logger.info("Loaded %d ratings from %s: users=%d items=%d", len(data), path, data.num_users, data.num_items)
    return data


@dataclass(frozen=True)
class EncodedRatings:
    ratings: RatingData
    # raw ids by dense index; None when the frame already held dense ids
    user_classes: Optional[np.ndarray] = None
    item_classes: Optional[np.ndarray] = None


def ratings_from_frame(df: pd.DataFrame, *, encode_ids: bool = False) -> EncodedRatings:
    """Build RatingData from a DataFrame with columns userId, itemId, rating.

    With `encode_ids=True` raw ids are mapped to contiguous indices [0..n) with
    LabelEncoder; the fitted classes are returned for decoding.
    """
    missing = [c for c in REQUIRED_RATING_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"ratings frame missing required columns: {missing}")

    frame = df[list(REQUIRED_RATING_COLUMNS)].dropna().reset_index(drop=True)
    if frame.duplicated(subset=["userId", "itemId"]).any():
        raise ValueError("ratings frame contains duplicate (userId, itemId) rows")

    user_classes = item_classes = None
    if encode_ids:
        le_user = LabelEncoder()
        le_item = LabelEncoder()
        users = le_user.fit_transform(frame["userId"].astype(np.int64).values)
        items = le_item.fit_transform(frame["itemId"].astype(np.int64).values)
        user_classes = le_user.classes_.astype(np.int64)
        item_classes = le_item.classes_.astype(np.int64)
    else:
        users = frame["userId"].astype(np.int64).to_numpy()
        items = frame["itemId"].astype(np.int64).to_numpy()
        if len(frame) and (users.min() < 0 or items.min() < 0):
            raise ValueError("entity ids must be non-negative (use encode_ids=True for raw ids)")

    values = frame["rating"].astype(float).to_numpy()
    data = RatingData.from_triples(zip(users.tolist(), items.tolist(), values.tolist()))
    logger.info(
        "Ratings frame: users=%d items=%d ratings=%d encoded=%s",
        data.num_users,
        data.num_items,
        len(data),
        encode_ids,
    )
    return EncodedRatings(ratings=data, user_classes=user_classes, item_classes=item_classes)


def load_ratings_csv(path: Path, *, encode_ids: bool = False) -> EncodedRatings:
    """Read a ratings CSV (userId,itemId,rating[,...]) with pandas."""
    df = pd.read_csv(path, dtype={"userId": "int64", "itemId": "int64", "rating": "float64"})
    return ratings_from_frame(df, encode_ids=encode_ids)


DATASET_FORMATS: Tuple[str, ...] = ("interactions", "ratings", "ratings_csv")


@dataclass(frozen=True)
class Dataset:
    """Everything an engine needs from one dataset file, plus the id mapping.

    When the file was loaded with `encode_ids=True` the engines see dense ids;
    `encode_user` and `decode_item` translate at the boundary.
    """

    relations: RelationStore
    ratings: Optional[RatingData] = None
    user_classes: Optional[np.ndarray] = None
    item_classes: Optional[np.ndarray] = None

    def encode_user(self, raw_id: int) -> int:
        if self.user_classes is None:
            return int(raw_id)
        pos = int(np.searchsorted(self.user_classes, raw_id))
        if pos >= len(self.user_classes) or int(self.user_classes[pos]) != int(raw_id):
            raise UnknownEntityError("user", int(raw_id))
        return pos

    def decode_item(self, item_id: int) -> int:
        if self.item_classes is None:
            return int(item_id)
        return int(self.item_classes[int(item_id)])


def load_dataset(path: Path, fmt: str = "interactions", *, encode_ids: bool = False) -> Dataset:
    """Load a dataset file.

    Rating formats also yield the boolean projection so implicit-feedback
    engines can be trained on the same file. `encode_ids` only applies to
    `ratings_csv`; the text formats already hold dense ids.
    """
    if fmt == "interactions":
        return Dataset(relations=load_interactions(path))
    if fmt == "ratings":
        ratings = load_ratings(path)
        return Dataset(relations=ratings.to_relations(), ratings=ratings)
    if fmt == "ratings_csv":
        encoded = load_ratings_csv(path, encode_ids=encode_ids)
        return Dataset(
            relations=encoded.ratings.to_relations(),
            ratings=encoded.ratings,
            user_classes=encoded.user_classes,
            item_classes=encoded.item_classes,
        )
    raise ValueError(f"dataset format must be one of {DATASET_FORMATS}, got {fmt!r}")
