from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure `import simcf` works when pytest uses importlib import mode.
REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))

from simcf.store.sparse import RatingData, RelationStore  # noqa: E402


@pytest.fixture()
def relations() -> RelationStore:
    """Four users, four items.

    u0: {0, 1}   u1: {0, 1, 2}   u2: {1, 2}   u3: {3}
    """
    return RelationStore.from_pairs(
        [(0, 0), (0, 1), (1, 0), (1, 1), (1, 2), (2, 1), (2, 2), (3, 3)]
    )


@pytest.fixture()
def ratings() -> RatingData:
    """u0 and u1 share three rated items; u2 overlaps each of them on one or two."""
    return RatingData.from_triples(
        [
            (0, 0, 5.0),
            (0, 1, 3.0),
            (0, 2, 4.0),
            (1, 0, 4.0),
            (1, 1, 2.0),
            (1, 2, 5.0),
            (1, 3, 3.0),
            (2, 0, 1.0),
            (2, 3, 5.0),
        ]
    )
