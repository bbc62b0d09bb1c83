# backend/services/catalog_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence

from utils import data_loader as dl
from utils.db import ALIAS_TABLE, Database, quote_ident
from utils.normalizer import DEFAULT_STOP_WORDS, normalize_strict, size_pattern
from utils.units_service import to_number

log = logging.getLogger(__name__)


def _like_escape(token: str) -> str:
    return token.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@dataclass(frozen=True)
class CatalogSource:
    """One price table and the local names of its name/unit/rate columns."""

    source_id: str
    table: str
    name_column: str
    unit_column: str
    rate_column: str = "average_with_vat"

    @classmethod
    def from_config(cls, row: Dict[str, Any]) -> "CatalogSource":
        return cls(
            source_id=str(row["id"]),
            table=str(row["table"]),
            name_column=str(row["name_column"]),
            unit_column=str(row["unit_column"]),
            rate_column=str(row.get("rate_column") or "average_with_vat"),
        )

    def select_clause(self) -> str:
        return (
            f"SELECT {quote_ident(self.name_column)} AS name, "
            f"{quote_ident(self.unit_column)} AS unit, "
            f"{quote_ident(self.rate_column)} AS rate "
            f"FROM {quote_ident(self.table)}"
        )


@dataclass(frozen=True)
class CatalogEntry:
    name: str
    unit: Optional[str]
    rate: float
    source_id: str = ""

    @classmethod
    def from_row(cls, row: Any, source_id: str = "") -> "CatalogEntry":
        return cls(
            name=row["name"],
            unit=row["unit"],
            rate=to_number(row["rate"]),
            source_id=source_id,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "unit": self.unit, "rate": self.rate}


def load_sources(rows: Optional[Iterable[Dict[str, Any]]] = None) -> List[CatalogSource]:
    """Build sources from config rows (sources.json by default), keeping their order."""
    return [CatalogSource.from_config(r) for r in (dl.get_sources() if rows is None else rows)]


class CatalogService:
    """
    Uniform read access over the price tables. `sources` order is the
    priority policy: on every lookup the first source with a hit wins.
    """

    def __init__(
        self,
        db: Database,
        sources: Optional[Sequence[CatalogSource]] = None,
        stop_words: Optional[Iterable[str]] = None,
    ) -> None:
        self.db = db
        self.sources: List[CatalogSource] = list(sources) if sources is not None else load_sources()
        self.stop_words = frozenset(stop_words) if stop_words is not None else DEFAULT_STOP_WORDS

    # ------------------------- exact lookup -------------------------------- #

    def search_by_exact_keys(self, keys: Iterable[str]) -> Optional[CatalogEntry]:
        """
        First row, in source priority order, whose name normalizes (base or
        strict) to one of `keys`.
        """
        candidates = sorted({k for k in keys if k})
        if not candidates:
            return None

        marks = ", ".join("?" for _ in candidates)
        for src in self.sources:
            col = quote_ident(src.name_column)
            rows = self.db.query(
                f"{src.select_clause()} "
                f"WHERE NORMALIZE_NAME({col}) IN ({marks}) "
                f"OR NORMALIZE_NAME_STRICT({col}) IN ({marks}) "
                "ORDER BY rowid LIMIT 1",
                [*candidates, *candidates],
            )
            if rows:
                log.debug("exact hit in %s for %s", src.source_id, candidates)
                return CatalogEntry.from_row(rows[0], src.source_id)
        return None

    # ------------------------- substring lookup ---------------------------- #

    def search_by_name_like(
        self,
        source: CatalogSource,
        patterns: Sequence[str],
        sizes: Iterable[str] = (),
        limit: int = 200,
        match_all: bool = True,
    ) -> List[CatalogEntry]:
        """
        Rows of one source whose lowercased name contains the patterns
        (all of them, or any when match_all=False) and carries every size
        as a standalone number.
        """
        col = quote_ident(source.name_column)
        where: List[str] = []
        params: List[Any] = []

        likes = [f"LOWER({col}) LIKE ? ESCAPE '\\'" for p in patterns if p]
        params.extend(f"%{_like_escape(p)}%" for p in patterns if p)
        if likes:
            joiner = " AND " if match_all else " OR "
            where.append("(" + joiner.join(likes) + ")")

        for size in sorted(set(sizes)):
            where.append(f"LOWER({col}) REGEXP ?")
            params.append(size_pattern(size))

        sql = source.select_clause()
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY rowid LIMIT ?"
        params.append(int(limit))

        rows = self.db.query(sql, params)
        return [CatalogEntry.from_row(r, source.source_id) for r in rows]

    def iter_names(self, source: CatalogSource) -> Iterator[str]:
        """Every non-blank name in a source, trimmed."""
        col = quote_ident(source.name_column)
        rows = self.db.query(
            f"SELECT {col} AS name FROM {quote_ident(source.table)} "
            f"WHERE {col} IS NOT NULL AND TRIM({col}) <> '' ORDER BY rowid"
        )
        for r in rows:
            name = str(r["name"]).strip()
            if name:
                yield name

    # ------------------------- suggestions --------------------------------- #

    def suggest(self, query: str, limit: int = 20, min_token_length: int = 2) -> List[Dict[str, Any]]:
        """
        Typeahead rows {name, unit} across all sources plus learned alias
        names (unit None). Any query token may match.
        """
        normalized = normalize_strict(query, self.stop_words)
        if not normalized:
            return []
        tokens = [t for t in normalized.split(" ") if len(t) >= min_token_length]
        patterns = tokens or [normalized]

        union = " UNION ALL ".join(
            [
                f"SELECT {quote_ident(s.name_column)} AS name, {quote_ident(s.unit_column)} AS unit "
                f"FROM {quote_ident(s.table)}"
                for s in self.sources
            ]
            + [f"SELECT canonical_name AS name, NULL AS unit FROM {ALIAS_TABLE}"]
        )
        where = " OR ".join("LOWER(name) LIKE ? ESCAPE '\\'" for _ in patterns)
        rows = self.db.query(
            f"SELECT name, unit FROM ({union}) items "
            f"WHERE {where} GROUP BY name, unit ORDER BY name ASC LIMIT ?",
            [*(f"%{_like_escape(p)}%" for p in patterns), int(limit)],
        )
        return [{"name": r["name"], "unit": r["unit"]} for r in rows]
