"""Entity-entity similarity matrices."""

from .base import CorrelationMatrix, EntityType, as_entity_type
from .cosine import Cosine
from .pearson import Pearson

__all__ = ["CorrelationMatrix", "Cosine", "EntityType", "Pearson", "as_entity_type"]
