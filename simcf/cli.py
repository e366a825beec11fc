"""Score every unseen item for a user with a saved ensemble and print the top N."""
from __future__ import annotations

import argparse
from dataclasses import dataclass
from pathlib import Path

import pandas as pd

from .data import DATASET_FORMATS, load_dataset
from .engine import Recommender
from .fusion.ensemble import WeightedEnsemble
from .paths import ProjectPaths, get_repo_root
from .pipelines.ensemble_build import DatasetConfig, load_config, parse_dataset_config
from .store.sparse import RelationStore
from .utils import setup_logging


@dataclass(frozen=True)
class RecommendedItem:
    itemId: int
    score: float


def recommend_items(
    engine: Recommender,
    relations: RelationStore,
    user_id: int,
    *,
    n: int = 10,
    exclude_seen: bool = True,
) -> list[RecommendedItem]:
    """Rank all known items for `user_id` by `engine.predict`, best first.

    Ties are broken by ascending item id.
    """
    user_id = relations.check_user(user_id)
    seen = relations.items_of(user_id) if exclude_seen else set()
    scored = [
        (float(engine.predict(user_id, item_id)), item_id)
        for item_id in range(relations.num_items)
        if item_id not in seen
    ]
    scored.sort(key=lambda s: (-s[0], s[1]))
    return [RecommendedItem(itemId=int(i), score=s) for s, i in scored[: int(n)]]


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Recommend items for a user with a saved weighted ensemble")
    p.add_argument("--model", type=Path, required=True, help="Ensemble model file written by simcf-build")
    p.add_argument(
        "--config",
        type=Path,
        default=None,
        help="config.yaml used for the build; its dataset section supplies the defaults below",
    )
    p.add_argument("--data", type=Path, default=None, help="Dataset the model was trained on")
    p.add_argument("--format", choices=DATASET_FORMATS, default=None)
    p.add_argument("--encode-ids", action="store_true", help="The model was trained on LabelEncoder-mapped ids")
    p.add_argument("--user-id", type=int, required=True, help="User id as it appears in the dataset file")
    p.add_argument("--n", type=int, default=10, help="How many items to return")
    p.add_argument("--include-seen", action="store_true", help="Also score items the user already has")
    return p


def _dataset_settings(args: argparse.Namespace, p: argparse.ArgumentParser) -> tuple[Path, str, bool]:
    """Resolve (data path, format, encode_ids): flags first, then the config's dataset section."""
    dataset_cfg = DatasetConfig()
    data_path = args.data
    if args.config is not None:
        repo_root = get_repo_root()
        config_path = args.config if args.config.is_absolute() else (repo_root / args.config).resolve()
        config = load_config(config_path)
        dataset_cfg = parse_dataset_config(config.get("dataset", {}) if isinstance(config.get("dataset"), dict) else {})
        if data_path is None:
            data_path = ProjectPaths.from_repo_root(repo_root, raw_dir=dataset_cfg.raw_dir).raw_dir / dataset_cfg.file
    if data_path is None:
        p.error("--data is required without --config")
    fmt = args.format or dataset_cfg.format
    return Path(data_path), fmt, bool(args.encode_ids or dataset_cfg.encode_ids)


def main(argv: list[str] | None = None) -> None:
    setup_logging("WARNING")
    p = build_arg_parser()
    args = p.parse_args(argv)

    data_path, fmt, encode_ids = _dataset_settings(args, p)
    dataset = load_dataset(data_path, fmt, encode_ids=encode_ids)
    ensemble = WeightedEnsemble()
    ensemble.load_model(args.model, relations=dataset.relations, ratings=dataset.ratings)

    # the engines work on dense ids; translate at the edges
    recs = recommend_items(
        ensemble,
        dataset.relations,
        dataset.encode_user(int(args.user_id)),
        n=int(args.n),
        exclude_seen=not bool(args.include_seen),
    )
    recs = [RecommendedItem(itemId=dataset.decode_item(r.itemId), score=r.score) for r in recs]

    print(f"\n=== {ensemble} | user {args.user_id} ===")
    if recs:
        df_r = pd.DataFrame([r.__dict__ for r in recs])
        print(df_r.to_string(index=False))
    else:
        print("No recommendations found.")


if __name__ == "__main__":
    main()
