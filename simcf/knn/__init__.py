"""Neighbor-based engines."""

from .item_recommender import KNN, ItemKNN, UserKNN, WeightedItemKNN, WeightedUserKNN, parse_k
from .rating_predictor import GlobalAverage, UserKNNPearson

__all__ = [
    "KNN",
    "GlobalAverage",
    "ItemKNN",
    "UserKNN",
    "UserKNNPearson",
    "WeightedItemKNN",
    "WeightedUserKNN",
    "parse_k",
]
