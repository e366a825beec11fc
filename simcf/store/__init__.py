from .sparse import RatingData, RelationStore, SparseBooleanMatrix, SparseMatrix

__all__ = ["RatingData", "RelationStore", "SparseBooleanMatrix", "SparseMatrix"]
