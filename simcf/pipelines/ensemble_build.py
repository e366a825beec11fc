from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from ..data import DATASET_FORMATS, load_dataset
from ..fusion.ensemble import WeightedEnsemble
from ..paths import ProjectPaths, get_repo_root
from ..registry import create_engine
from ..utils import setup_logging


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DatasetConfig:
    raw_dir: Path = Path("data/raw")
    file: str = "interactions.txt"
    format: str = "interactions"
    encode_ids: bool = False


@dataclass(frozen=True)
class MemberConfig:
    kind: str
    weight: float = 1.0
    params: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class EnsembleBuildConfig:
    members: tuple[MemberConfig, ...]
    min_rating: float = 1.0
    max_rating: float = 5.0


def load_config(config_path: Path) -> dict[str, Any]:
    config_path = Path(config_path).resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")
    config = yaml.safe_load(config_path.read_text())
    if not isinstance(config, dict):
        raise ValueError(f"Expected config YAML to be a mapping, got: {type(config)}")
    return config


def parse_dataset_config(raw: dict[str, Any]) -> DatasetConfig:
    """Map the `dataset:` section of config.yaml onto DatasetConfig."""
    fmt = str(raw.get("format", "interactions"))
    if fmt not in DATASET_FORMATS:
        raise ValueError(f"dataset.format must be one of {DATASET_FORMATS}, got {fmt!r}")
    return DatasetConfig(
        raw_dir=Path(str(raw.get("raw_dir", "data/raw"))),
        file=str(raw.get("file", "interactions.txt")),
        format=fmt,
        encode_ids=bool(raw.get("encode_ids", False)),
    )


def parse_ensemble_config(raw: dict[str, Any]) -> EnsembleBuildConfig:
    """Map the `ensemble:` section of config.yaml onto EnsembleBuildConfig."""
    members_raw = raw.get("members")
    if not isinstance(members_raw, list) or not members_raw:
        raise ValueError("ensemble.members must be a non-empty list")

    members: list[MemberConfig] = []
    for i, m in enumerate(members_raw):
        if not isinstance(m, dict) or "kind" not in m:
            raise ValueError(f"ensemble.members[{i}] must be a mapping with a 'kind'")
        params = m.get("params", {}) or {}
        if not isinstance(params, dict):
            raise ValueError(f"ensemble.members[{i}].params must be a mapping")
        members.append(MemberConfig(kind=str(m["kind"]), weight=float(m.get("weight", 1.0)), params=dict(params)))

    return EnsembleBuildConfig(
        members=tuple(members),
        min_rating=float(raw.get("min_rating", 1.0)),
        max_rating=float(raw.get("max_rating", 5.0)),
    )


def build_ensemble(cfg: EnsembleBuildConfig, *, k_override: int | str | None = None) -> WeightedEnsemble:
    ensemble = WeightedEnsemble(min_rating=cfg.min_rating, max_rating=cfg.max_rating)
    for member in cfg.members:
        params = dict(member.params)
        if k_override is not None and "k" in params:
            params["k"] = k_override
        ensemble.add_engine(create_engine(member.kind, **params), member.weight)
    # push the scale into the freshly created rating predictors
    ensemble.min_rating = cfg.min_rating
    ensemble.max_rating = cfg.max_rating
    return ensemble


def run_ensemble_build(
    *,
    config_path: Path,
    data_path: Path | None = None,
    model_path: Path | None = None,
    k_override: int | str | None = None,
) -> Path:
    """Load data, train the configured ensemble and save it. Returns the model path."""
    repo_root = get_repo_root()
    config = load_config(config_path)

    dataset_raw = config.get("dataset", {}) if isinstance(config.get("dataset"), dict) else {}
    ensemble_raw = config.get("ensemble", {}) if isinstance(config.get("ensemble"), dict) else {}
    dataset_cfg = parse_dataset_config(dataset_raw)
    paths = ProjectPaths.from_repo_root(repo_root, raw_dir=dataset_cfg.raw_dir)

    if data_path is None:
        data_path = paths.raw_dir / dataset_cfg.file
    if model_path is None:
        model_path = Path(str(ensemble_raw.get("model_path", paths.models_dir / "ensemble.txt")))
    if not model_path.is_absolute():
        model_path = (repo_root / model_path).resolve()

    dataset = load_dataset(data_path, dataset_cfg.format, encode_ids=dataset_cfg.encode_ids)

    ensemble = build_ensemble(parse_ensemble_config(ensemble_raw), k_override=k_override)
    ensemble.attach_data(relations=dataset.relations, ratings=dataset.ratings)

    logger.info("Training %s", ensemble)
    ensemble.train()
    ensemble.save_model(model_path)
    return model_path


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Train a weighted ensemble of neighbor-based engines and save it.")
    p.add_argument("--config", type=Path, default=Path("config.yaml"), help="Path to config YAML.")
    p.add_argument("--data", type=Path, default=None, help="Override the dataset file")
    p.add_argument("--model", type=Path, default=None, help="Override the output model path")
    p.add_argument("--k", type=str, default=None, help="Override k for every kNN member (int or 'inf')")
    p.add_argument("--log-level", type=str, default="INFO")
    return p


def main(argv: list[str] | None = None) -> None:
    args = build_arg_parser().parse_args(argv)
    setup_logging(args.log_level)
    config_path = Path(args.config)
    if not config_path.is_absolute():
        config_path = (get_repo_root() / config_path).resolve()
    out = run_ensemble_build(
        config_path=config_path,
        data_path=args.data,
        model_path=args.model,
        k_override=args.k,
    )
    logger.info("Model written to %s", out)


if __name__ == "__main__":
    main()
