from __future__ import annotations

import pytest

from simcf.errors import UnknownEntityError
from simcf.knn import GlobalAverage, UserKNNPearson
from simcf.store.sparse import RatingData


def test_global_average_predicts_clamped_mean(ratings: RatingData) -> None:
    ga = GlobalAverage()
    ga.set_ratings(ratings)
    ga.train()
    assert ga.predict(0, 3) == pytest.approx(32.0 / 9.0)

    ga.max_rating = 3.0
    assert ga.predict(0, 3) == 3.0
    with pytest.raises(UnknownEntityError):
        ga.predict(3, 0)


def test_user_knn_pearson_mean_centered_prediction(ratings: RatingData) -> None:
    engine = UserKNNPearson(k=10, shrinkage=10.0)
    engine.set_ratings(ratings)
    engine.train()

    # raters of item 3: u1 (sim > 0, rating 3, mean 3.5) and u2 (no shared evidence with u0)
    assert engine.predict(0, 3) == pytest.approx(4.0 - 0.5)


def test_user_knn_pearson_negative_correlation_flips_deviation(ratings: RatingData) -> None:
    engine = UserKNNPearson(k=10, shrinkage=10.0)
    engine.set_ratings(ratings)
    engine.train()
    # u1 rated item 1 at 2 (1.5 below its mean) and anti-correlates with u2 (mean 3)
    assert engine.predict(2, 1) == pytest.approx(3.0 + 1.5)


def test_user_knn_pearson_falls_back_to_user_mean() -> None:
    data = RatingData.from_triples([(0, 0, 4.0), (0, 2, 2.0), (1, 1, 2.0)])
    engine = UserKNNPearson(k=10)
    engine.set_ratings(data)
    engine.train()
    assert engine.predict(0, 1) == pytest.approx(3.0)


def test_user_knn_pearson_clamps_to_scale(ratings: RatingData) -> None:
    engine = UserKNNPearson(k=None, min_rating=1.0, max_rating=3.0)
    engine.set_ratings(ratings)
    engine.train()
    assert engine.predict(0, 3) == 3.0


def test_user_knn_pearson_save_load(ratings: RatingData, tmp_path) -> None:
    engine = UserKNNPearson(k=5, shrinkage=2.0)
    engine.set_ratings(ratings)
    engine.train()
    path = tmp_path / "pearson.txt"
    engine.save_model(path)

    restored = UserKNNPearson()
    restored.load_model(path)
    restored.set_ratings(ratings)
    assert restored.k == 5
    assert restored.shrinkage == 2.0
    for u in range(3):
        for i in range(4):
            assert restored.predict(u, i) == engine.predict(u, i)
