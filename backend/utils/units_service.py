# backend/utils/units_service.py
from __future__ import annotations

import math
import re
from typing import Any, Dict, Optional

from . import data_loader as dl

_NON_NUMERIC_RE = re.compile(r"[^0-9.]")


def to_number(value: Any) -> float:
    """Coerce a rate/qty to float; absent, non-numeric or non-finite -> 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        num = float(value)
    except (TypeError, ValueError):
        return 0.0
    return num if math.isfinite(num) else 0.0


def parse_distance(value: Any) -> float:
    """
    Pull a number out of a free-text distance or pipe size: "340 m" -> 340.0,
    '2"' -> 2.0. Anything unparseable -> 0.
    """
    if value is None:
        return 0.0
    cleaned = _NON_NUMERIC_RE.sub("", str(value))
    if not cleaned:
        return 0.0
    return to_number(cleaned)


class UnitsService:
    """
    Maps the unit spellings technicians type ("pcs", "mtrs", "Pieces")
    onto the unit codes used by the catalog ("PC", "M").
    """

    def __init__(self, aliases: Optional[Dict[str, str]] = None):
        self.alias_to_unit: Dict[str, str] = dict(aliases if aliases is not None else dl.get_units())

    def canonical_unit(self, raw: Any) -> str:
        s = str(raw or "").strip()
        if not s:
            return ""
        key = s.lower().rstrip(".")
        return self.alias_to_unit.get(key, s.upper())


if __name__ == "__main__":
    svc = UnitsService()
    for t in ["pcs", "Mtrs", "roll", "bag", "", None]:
        print(repr(t), "->", repr(svc.canonical_unit(t)))
    for d in ["340 m", "1.5km", "abc", None, '2"']:
        print(repr(d), "->", parse_distance(d))
