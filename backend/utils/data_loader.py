# backend/utils/data_loader.py
from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List

# --------------------------------------------------------------------------- #
# Paths & filenames
# --------------------------------------------------------------------------- #

THIS_DIR: Path = Path(__file__).resolve().parent
DEFAULT_DATA_DIR: Path = (THIS_DIR / ".." / "data").resolve()

FILE_SOURCES = "sources.json"
FILE_MATCHING = "matching.json"
FILE_PRICING = "pricing.json"
FILE_UNITS = "units.json"

ENV_DATA_DIR = "QUOTE_DATA_DIR"
ENV_DB_PATH = "QUOTE_DB_PATH"
ENV_THRESHOLD = "QUOTE_MATCH_THRESHOLD"

_MATCHING_DEFAULTS: Dict[str, Any] = {
    "threshold": 0.78,
    "max_tokens": 4,
    "min_token_length": 3,
    "candidate_limit": 200,
    "stop_words": ["threaded", "thread"],
    "relax_token_filter": True,
    "suggest_limit": 20,
    "suggest_min_token_length": 2,
    "seed_batch_size": 1000,
}

_PRICING_DEFAULTS: Dict[str, Any] = {
    "excavation_rate": 3500,
    "labour_pct": 0.10,
    "supervision_pct": 0.15,
    "max_workers": 4,
    "canonical_units": False,
}


def data_dir() -> Path:
    override = os.environ.get(ENV_DATA_DIR)
    return Path(override).resolve() if override else DEFAULT_DATA_DIR


def db_path() -> str:
    """sqlite path; ':memory:' is passed through untouched."""
    return os.environ.get(ENV_DB_PATH) or str(data_dir() / "quotation.db")


def _abspath(filename: str) -> Path:
    return data_dir() / filename


# --------------------------------------------------------------------------- #
# Low-level JSON I/O
# --------------------------------------------------------------------------- #

def _load_json(filename: str) -> Any:
    path = _abspath(filename)
    if not path.exists():
        raise FileNotFoundError(
            f"Missing config file: {path}\n"
            f"Expected under data_dir={data_dir()}. "
            f"Set {ENV_DATA_DIR} or verify your folder structure."
        )
    try:
        with path.open("r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {path}: {e}") from e


# --------------------------------------------------------------------------- #
# Public accessors (memoized)
# --------------------------------------------------------------------------- #

@lru_cache(maxsize=None)
def get_sources() -> List[Dict[str, Any]]:
    """
    Catalog sources in priority order. Each row:
      {
        "id": "trans_ocean",
        "table": "trans_ocean",
        "name_column": "item_name",
        "unit_column": "unit_of_measure",
        "rate_column": "average_with_vat"
      }
    """
    rows = _load_json(FILE_SOURCES)
    if not isinstance(rows, list):
        raise ValueError(f"{FILE_SOURCES} must hold a list of sources")
    return rows


@lru_cache(maxsize=None)
def get_matching() -> Dict[str, Any]:
    """Matcher tunables, file values over defaults, env over both."""
    merged = dict(_MATCHING_DEFAULTS)
    merged.update(_load_json(FILE_MATCHING) or {})
    threshold = os.environ.get(ENV_THRESHOLD)
    if threshold:
        try:
            merged["threshold"] = float(threshold)
        except ValueError as e:
            raise ValueError(f"{ENV_THRESHOLD} must be a number, got {threshold!r}") from e
    return merged


@lru_cache(maxsize=None)
def get_pricing() -> Dict[str, Any]:
    merged = dict(_PRICING_DEFAULTS)
    merged.update(_load_json(FILE_PRICING) or {})
    return merged


@lru_cache(maxsize=None)
def get_units() -> Dict[str, str]:
    """lower(alias) -> catalog unit code."""
    raw = _load_json(FILE_UNITS) or {}
    return {str(k).strip().lower(): str(v) for k, v in raw.items()}


def reload_all() -> None:
    """
    Clear all memoized config. Call this after editing the JSON files
    under data/ while the server is running.
    """
    get_sources.cache_clear()
    get_matching.cache_clear()
    get_pricing.cache_clear()
    get_units.cache_clear()


if __name__ == "__main__":
    print(f"data_dir = {data_dir()}")
    print(f"db_path  = {db_path()}")
    print(f"sources  = {[s.get('id') for s in get_sources()]}")
    print(f"matching = {get_matching()}")
    print(f"pricing  = {get_pricing()}")
    print(f"units    = {len(get_units())}")
