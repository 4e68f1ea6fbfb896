from __future__ import annotations

import json
import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import List, Optional, Tuple

from dataview.dataset import Dataset, parse_dataset
from dataview.time_range import TimeRangeOption
from dataview.view import DatasetView

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path(__file__).resolve().parents[1] / "data"
FILE_GLOB = "*.json"


class DatasetLoadError(ValueError):
    pass


def get_data_dir(data_dir: Optional[Path | str] = None) -> Path:
    if data_dir is not None:
        return Path(data_dir)
    return Path(os.getenv("DATASET_DIR", str(DEFAULT_DATA_DIR)))


def get_source_files(data_dir: Optional[Path | str] = None) -> List[Path]:
    root = get_data_dir(data_dir)
    if not root.is_dir():
        return []
    return sorted(root.glob(FILE_GLOB))


def file_signature(path: Path) -> Tuple[str, float]:
    return str(path.resolve()), path.stat().st_mtime


@lru_cache(maxsize=16)
def _load_dataset_cached(path_str: str, mtime: float) -> Dataset:
    path = Path(path_str)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise DatasetLoadError(f"{path.name} is not valid JSON: {exc}") from exc
    if not isinstance(raw, dict) or not isinstance(raw.get("records", []), list):
        raise DatasetLoadError(f"{path.name} is not a {{meta, records}} snapshot")
    dataset = parse_dataset(raw, default_id=path.stem)
    logger.info("Loaded %s: %d records (%s)", path.name, len(dataset.records), dataset.meta.granularity)
    return dataset


def load_dataset_file(path: Path | str) -> Dataset:
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"No dataset snapshot at {path}")
    return _load_dataset_cached(*file_signature(path))


def list_datasets(data_dir: Optional[Path | str] = None) -> List[str]:
    ids: List[str] = []
    for path in get_source_files(data_dir):
        try:
            load_dataset_file(path)
        except DatasetLoadError as exc:
            logger.warning("Skipping %s: %s", path.name, exc)
            continue
        ids.append(path.stem)
    return ids


def load_dataset(dataset_id: str, data_dir: Optional[Path | str] = None) -> Dataset:
    return load_dataset_file(get_data_dir(data_dir) / f"{dataset_id}.json")


def load_dataset_view(
    dataset_id: str,
    *,
    limit: TimeRangeOption = None,
    data_dir: Optional[Path | str] = None,
) -> DatasetView:
    dataset = load_dataset(dataset_id, data_dir)
    view = DatasetView(dataset.meta, dataset.records)
    return view.limit(limit) if limit is not None else view


def clear_cache() -> None:
    _load_dataset_cached.cache_clear()
