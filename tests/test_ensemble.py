from __future__ import annotations

from pathlib import Path

import pytest

from simcf.engine import Recommender
from simcf.errors import DegenerateEnsembleError, UnknownEntityError
from simcf.fusion.ensemble import WeightedEnsemble, member_model_path
from simcf.knn import GlobalAverage, UserKNN, UserKNNPearson, WeightedUserKNN
from simcf.store.sparse import RatingData, RelationStore


class FixedScore(Recommender):
    """Stand-in engine with a constant output."""

    def __init__(self, value: float) -> None:
        self.value = value
        self.trained = 0

    def train(self) -> None:
        self.trained += 1

    def predict(self, user_id: int, item_id: int) -> float:
        return self.value

    def save_model(self, path: Path | str) -> None:  # pragma: no cover
        raise NotImplementedError

    def load_model(self, path: Path | str) -> None:  # pragma: no cover
        raise NotImplementedError


def _fixed_average(value: float, ratings: RatingData) -> GlobalAverage:
    ga = GlobalAverage(min_rating=0.0, max_rating=1.0)
    ga.set_ratings(ratings)
    ga.global_mean = value
    return ga


def test_prediction_normalises_by_weight_sum() -> None:
    ensemble = WeightedEnsemble([FixedScore(0.8), FixedScore(0.2)], [2.0, 1.0])
    ensemble.train()
    assert ensemble.predict(0, 0) == pytest.approx(0.6)


def test_weights_edited_after_training_take_effect() -> None:
    ensemble = WeightedEnsemble([FixedScore(0.8), FixedScore(0.2)], [2.0, 1.0])
    ensemble.train()
    ensemble.weights[0] = 5.0
    assert ensemble.predict(0, 0) == pytest.approx((5.0 * 0.8 + 0.2) / 6.0)

    ensemble.weights[:] = [1.0, -1.0]
    with pytest.raises(DegenerateEnsembleError):
        ensemble.predict(0, 0)


def test_train_trains_every_member_once() -> None:
    members = [FixedScore(1.0), FixedScore(2.0), FixedScore(3.0)]
    ensemble = WeightedEnsemble()
    for m in members:
        ensemble.add_engine(m, 1.0)
    ensemble.train()
    assert [m.trained for m in members] == [1, 1, 1]
    assert ensemble.predict(5, 5) == pytest.approx(2.0)


def test_zero_weight_sum_is_degenerate() -> None:
    ensemble = WeightedEnsemble([FixedScore(1.0), FixedScore(2.0)], [1.0, -1.0])
    with pytest.raises(DegenerateEnsembleError):
        ensemble.train()
    with pytest.raises(DegenerateEnsembleError):
        WeightedEnsemble().predict(0, 0)


def test_mismatched_weights_are_rejected() -> None:
    with pytest.raises(ValueError):
        WeightedEnsemble([FixedScore(1.0)], [1.0, 2.0])


def test_member_unknown_entity_propagates(relations: RelationStore) -> None:
    knn = UserKNN(k=2)
    ensemble = WeightedEnsemble([knn, FixedScore(0.5)], [1.0, 1.0])
    ensemble.attach_data(relations=relations)
    ensemble.train()
    with pytest.raises(UnknownEntityError):
        ensemble.predict(relations.max_user_id + 1, 0)
    with pytest.raises(UnknownEntityError):
        ensemble.predict(0, relations.max_item_id + 1)


def test_rating_scale_cascades_only_to_rating_predictors(ratings: RatingData) -> None:
    ga = GlobalAverage()
    pearson = UserKNNPearson()
    knn = UserKNN()
    inner = WeightedEnsemble([GlobalAverage()], [1.0])
    ensemble = WeightedEnsemble([ga, pearson, knn, inner], [1.0, 1.0, 1.0, 1.0])

    ensemble.max_rating = 10.0
    ensemble.min_rating = 0.5
    assert ensemble.max_rating == 10.0
    assert (ga.max_rating, ga.min_rating) == (10.0, 0.5)
    assert (pearson.max_rating, pearson.min_rating) == (10.0, 0.5)
    assert inner.engines[0].max_rating == 10.0
    assert not hasattr(knn, "max_rating")


def test_attach_data_routes_by_member_type(relations: RelationStore, ratings: RatingData) -> None:
    knn = UserKNN(k=2)
    ga = GlobalAverage()
    nested_knn = WeightedUserKNN(k=2)
    ensemble = WeightedEnsemble([knn, ga, WeightedEnsemble([nested_knn])])

    ensemble.attach_data(relations=relations, ratings=ratings)
    assert knn.relations is relations
    assert nested_knn.relations is relations
    assert ga.ratings is ratings

    # ratings alone: item recommenders get the boolean projection
    other = UserKNN(k=2)
    WeightedEnsemble([other]).attach_data(ratings=ratings)
    assert other.relations is not None
    assert other.relations.items_of(2) == {0, 3}


def test_save_writes_count_and_kind_weight_lines(ratings: RatingData, tmp_path) -> None:
    ensemble = WeightedEnsemble([_fixed_average(0.8, ratings), _fixed_average(0.2, ratings)], [2.0, 0.5])
    path = tmp_path / "ensemble.txt"
    ensemble.save_model(path)

    assert path.read_text(encoding="utf-8") == "2\nglobal_average 2.0\nglobal_average 0.5\n"
    assert member_model_path(path, 0).exists()
    assert member_model_path(path, 1).exists()


def test_round_trip_reproduces_weights_and_predictions(ratings: RatingData, tmp_path) -> None:
    ensemble = WeightedEnsemble(
        [_fixed_average(0.8, ratings), _fixed_average(0.2, ratings)],
        [2.0, 1.0],
        min_rating=0.0,
        max_rating=1.0,
    )
    path = tmp_path / "ensemble.txt"
    ensemble.save_model(path)

    restored = WeightedEnsemble(min_rating=0.0, max_rating=1.0)
    restored.load_model(path, ratings=ratings)
    assert restored.weights == [2.0, 1.0]
    assert [type(e) for e in restored.engines] == [GlobalAverage, GlobalAverage]

    probes = [(0, 0), (1, 3), (2, 1)]
    for u, i in probes:
        assert restored.predict(u, i) == ensemble.predict(u, i)
    assert restored.predict(0, 0) == pytest.approx(0.6)


def test_round_trip_with_knn_and_nested_members(relations: RelationStore, tmp_path) -> None:
    inner = WeightedEnsemble([UserKNN(k=2), WeightedUserKNN(k=None)], [1.0, 3.0])
    ensemble = WeightedEnsemble([inner, WeightedUserKNN(k=3)], [0.25, 0.75])
    ensemble.attach_data(relations=relations)
    ensemble.train()

    path = tmp_path / "models" / "nested.txt"
    ensemble.save_model(path)

    restored = WeightedEnsemble()
    restored.load_model(path)
    assert isinstance(restored.engines[0], WeightedEnsemble)
    assert restored.engines[0].weights == [1.0, 3.0]

    # interaction data is not part of the model
    with pytest.raises(RuntimeError):
        restored.predict(0, 0)

    restored.attach_data(relations=relations)
    for u in range(relations.num_users):
        for i in range(relations.num_items):
            assert restored.predict(u, i) == ensemble.predict(u, i)


def test_load_rejects_unknown_kind(tmp_path) -> None:
    path = tmp_path / "bad.txt"
    path.write_text("1\nmatrix_factorization 1.0\n", encoding="utf-8")
    with pytest.raises(ValueError):
        WeightedEnsemble().load_model(path)
