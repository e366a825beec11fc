"""Similarity-based collaborative filtering.

Sparse dual user/item stores, Pearson and cosine correlation matrices,
k-nearest-neighbor engines, and a weighted ensemble that combines them.
"""
from __future__ import annotations

from .correlation import CorrelationMatrix, Cosine, EntityType, Pearson
from .engine import ItemRecommender, RatingPredictor, Recommender
from .errors import DegenerateEnsembleError, InvalidEntityTypeError, MalformedRecordError, UnknownEntityError
from .fusion.ensemble import WeightedEnsemble
from .knn import GlobalAverage, ItemKNN, UserKNN, UserKNNPearson, WeightedItemKNN, WeightedUserKNN
from .registry import KNOWN_KINDS, create_engine
from .store.sparse import RatingData, RelationStore, SparseBooleanMatrix, SparseMatrix

__version__ = "0.1.0"
