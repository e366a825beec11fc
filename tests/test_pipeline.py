from __future__ import annotations

from pathlib import Path

import pytest

from simcf import cli
from simcf.data import load_interactions
from simcf.errors import UnknownEntityError
from simcf.fusion.ensemble import WeightedEnsemble
from simcf.knn import UserKNN, WeightedItemKNN
from simcf.pipelines.ensemble_build import (
    EnsembleBuildConfig,
    MemberConfig,
    build_ensemble,
    parse_ensemble_config,
    run_ensemble_build,
)


CONFIG = """
dataset:
  raw_dir: data
  format: interactions
  file: interactions.txt

ensemble:
  model_path: artifacts/models/ensemble.txt
  members:
    - kind: user_knn
      weight: 2.0
      params:
        k: 2
    - kind: weighted_item_knn
      weight: 1.0
      params:
        k: inf
"""

INTERACTIONS = "0 0\n0 1\n1 0\n1 1\n1 2\n2 1\n2 2\n3 3\n"


@pytest.fixture()
def project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    (tmp_path / "config.yaml").write_text(CONFIG, encoding="utf-8")
    (tmp_path / "data").mkdir()
    (tmp_path / "data" / "interactions.txt").write_text(INTERACTIONS, encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    return tmp_path


def test_parse_ensemble_config_requires_members() -> None:
    with pytest.raises(ValueError):
        parse_ensemble_config({})
    with pytest.raises(ValueError):
        parse_ensemble_config({"members": [{"weight": 1.0}]})

    cfg = parse_ensemble_config({"members": [{"kind": "item_knn"}], "max_rating": 10})
    assert cfg.members == (MemberConfig(kind="item_knn", weight=1.0, params={}),)
    assert cfg.max_rating == 10.0


def test_build_ensemble_applies_k_override() -> None:
    cfg = EnsembleBuildConfig(
        members=(
            MemberConfig(kind="user_knn", weight=2.0, params={"k": 5}),
            MemberConfig(kind="global_average", weight=1.0),
        ),
        max_rating=4.0,
    )
    ensemble = build_ensemble(cfg, k_override="inf")
    assert ensemble.weights == [2.0, 1.0]
    assert ensemble.engines[0].k is None
    assert ensemble.engines[1].max_rating == 4.0


def test_run_ensemble_build_trains_and_saves(project: Path) -> None:
    model_path = run_ensemble_build(config_path=project / "config.yaml")
    assert model_path == (project / "artifacts" / "models" / "ensemble.txt").resolve()
    assert model_path.read_text(encoding="utf-8").splitlines() == [
        "2",
        "user_knn 2.0",
        "weighted_item_knn 1.0",
    ]

    relations = load_interactions(project / "data" / "interactions.txt")
    restored = WeightedEnsemble()
    restored.load_model(model_path, relations=relations)
    assert isinstance(restored.engines[0], UserKNN)
    assert isinstance(restored.engines[1], WeightedItemKNN)
    assert restored.engines[1].k is None

    expected = UserKNN(k=2)
    expected.set_relations(relations)
    expected.train()
    other = WeightedItemKNN(k=None)
    other.set_relations(relations)
    other.train()
    assert restored.predict(0, 2) == pytest.approx((2.0 * expected.predict(0, 2) + other.predict(0, 2)) / 3.0)


def test_recommend_cli_prints_unseen_items(project: Path, capsys: pytest.CaptureFixture[str]) -> None:
    model_path = run_ensemble_build(config_path=project / "config.yaml")
    cli.main(
        [
            "--model",
            str(model_path),
            "--data",
            str(project / "data" / "interactions.txt"),
            "--user-id",
            "0",
            "--n",
            "5",
        ]
    )
    out = capsys.readouterr().out
    assert "itemId" in out
    assert "weighted-ensemble" in out


def test_recommend_items_ranks_and_excludes_seen(project: Path) -> None:
    relations = load_interactions(project / "data" / "interactions.txt")
    knn = UserKNN(k=3)
    knn.set_relations(relations)
    knn.train()

    recs = cli.recommend_items(knn, relations, 0, n=5)
    assert [r.itemId for r in recs] == [2, 3]
    assert recs[0].score == pytest.approx(2.0 / 3.0)

    all_items = cli.recommend_items(knn, relations, 0, n=5, exclude_seen=False)
    assert len(all_items) == 4


ENCODED_CONFIG = """
dataset:
  raw_dir: data
  format: ratings_csv
  file: ratings.csv
  encode_ids: true

ensemble:
  model_path: artifacts/models/encoded.txt
  members:
    - kind: user_knn
      params:
        k: 2
"""

RAW_RATINGS = "userId,itemId,rating\n100,55,5\n100,9,3\n7,55,4\n7,13,2\n42,9,4\n42,13,5\n"


@pytest.fixture()
def encoded_project(project: Path) -> Path:
    (project / "encoded.yaml").write_text(ENCODED_CONFIG, encoding="utf-8")
    (project / "data" / "ratings.csv").write_text(RAW_RATINGS, encoding="utf-8")
    return project


def _last_row(out: str) -> list[str]:
    return out.strip().splitlines()[-1].split()


def test_recommend_cli_maps_raw_ids_from_config(encoded_project: Path, capsys: pytest.CaptureFixture[str]) -> None:
    model_path = run_ensemble_build(config_path=encoded_project / "encoded.yaml")
    cli.main(["--model", str(model_path), "--config", str(encoded_project / "encoded.yaml"), "--user-id", "100"])
    # raw user 100 holds items 55 and 9; 13 is the only unseen raw item
    row = _last_row(capsys.readouterr().out)
    assert row[0] == "13"
    assert float(row[1]) == pytest.approx(1.0)


def test_recommend_cli_encode_ids_flag(encoded_project: Path, capsys: pytest.CaptureFixture[str]) -> None:
    model_path = run_ensemble_build(config_path=encoded_project / "encoded.yaml")
    args = [
        "--model",
        str(model_path),
        "--data",
        str(encoded_project / "data" / "ratings.csv"),
        "--format",
        "ratings_csv",
        "--encode-ids",
    ]
    cli.main(args + ["--user-id", "7"])
    assert _last_row(capsys.readouterr().out)[0] == "9"

    with pytest.raises(UnknownEntityError):
        cli.main(args + ["--user-id", "5"])
