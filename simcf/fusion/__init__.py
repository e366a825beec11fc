from .ensemble import WeightedEnsemble, member_model_path

__all__ = ["WeightedEnsemble", "member_model_path"]
