from __future__ import annotations

from typing import Any, Dict, Iterable, List

from . import data_loader as dl
from .db import Database, quote_ident
from .errors import InvalidOrder, StorageUnavailable
from .units_service import parse_distance, to_number

REQUIRED_SOURCE_KEYS = ("id", "table", "name_column", "unit_column", "rate_column")


def sanitize_items(items: Any) -> List[Dict[str, Any]]:
    """
    Clean a submitted material list.
    Drops entries without a name, with qty <= 0, or without a unit.
    Each surviving item is {name: str, qty: float, unit: str}.
    """
    if not isinstance(items, list):
        return []

    out: List[Dict[str, Any]] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        name = str(item.get("name") or "").strip()
        if not name:
            continue
        qty = to_number(item.get("qty"))
        unit = str(item.get("unit") or "").strip()
        if qty > 0 and unit:
            out.append({"name": name, "qty": qty, "unit": unit})
    return out


def validate_order(payload: Any) -> Dict[str, Any]:
    """
    Validate a quotation request body and return the cleaned fields.
    Raises InvalidOrder with a human-readable message.
    """
    if not isinstance(payload, dict):
        raise InvalidOrder("Request body must be a JSON object")

    distance = payload.get("distance")
    if distance in (None, ""):
        raise InvalidOrder("Missing required field: distance")
    if parse_distance(distance) <= 0:
        raise InvalidOrder("Distance must include a number")

    items = sanitize_items(payload.get("items"))
    if not items:
        raise InvalidOrder("At least one item is required")

    return {"items": items, "distance": distance}


def validate_sources(sources: Iterable[Dict[str, Any]]) -> List[str]:
    """Check sources.json rows; returns a list of problems (empty if valid)."""
    errs: List[str] = []
    seen: set = set()
    for i, src in enumerate(sources):
        if not isinstance(src, dict):
            errs.append(f"source[{i}] must be an object")
            continue
        for key in REQUIRED_SOURCE_KEYS:
            if not src.get(key):
                errs.append(f"source[{i}] missing key: {key}")
        sid = src.get("id")
        if sid in seen:
            errs.append(f"source[{i}] duplicate id: {sid}")
        seen.add(sid)
        for key in REQUIRED_SOURCE_KEYS[1:]:
            if src.get(key):
                try:
                    quote_ident(src[key])
                except ValueError as e:
                    errs.append(f"source[{i}] {e}")
    return errs


def validate_schema(db: Database, sources: Iterable[Dict[str, Any]]) -> List[str]:
    """Check that every configured table and column exists in the database."""
    errs: List[str] = []
    for src in sources:
        try:
            cols = set(db.table_columns(src["table"]))
        except (StorageUnavailable, ValueError, KeyError) as e:
            errs.append(f"{src.get('id')}: cannot inspect table ({e})")
            continue
        if not cols:
            errs.append(f"{src.get('id')}: table {src['table']} does not exist")
            continue
        for key in ("name_column", "unit_column", "rate_column"):
            if src.get(key) not in cols:
                errs.append(f"{src.get('id')}: column {src.get(key)} missing from {src['table']}")
    return errs


if __name__ == "__main__":
    issues = validate_sources(dl.get_sources())
    if not issues:
        print("✅ sources.json passed validation.")
    else:
        print("⚠️ Issues found:")
        for e in issues:
            print(f"  • {e}")
