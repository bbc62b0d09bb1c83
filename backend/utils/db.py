# backend/utils/db.py
from __future__ import annotations

import logging
import re
import sqlite3
import threading
import time
from functools import lru_cache
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Sequence

from .errors import StorageUnavailable
from .normalizer import normalize, normalize_strict

log = logging.getLogger(__name__)

_IDENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

ALIAS_TABLE = "item_aliases"


def now_ms() -> int:
    return int(time.time() * 1000)


def quote_ident(name: str) -> str:
    """Quote a table/column name taken from config; reject anything odd."""
    if not _IDENT_RE.match(name or ""):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return f'"{name}"'


@lru_cache(maxsize=256)
def _compiled(pattern: str) -> "re.Pattern[str]":
    return re.compile(pattern)


def _regexp(pattern: Optional[str], value: Optional[str]) -> int:
    if pattern is None or value is None:
        return 0
    return 1 if _compiled(pattern).search(value) else 0


def _register_functions(con: sqlite3.Connection, stop_words: Optional[FrozenSet[str]]) -> None:
    def _strict(value: Optional[str]) -> str:
        return normalize_strict(value, stop_words)

    con.create_function("NORMALIZE_NAME", 1, normalize, deterministic=True)
    con.create_function("NORMALIZE_NAME_STRICT", 1, _strict, deterministic=True)
    con.create_function("REGEXP", 2, _regexp, deterministic=True)


class Database:
    """
    One sqlite connection shared by the services. Access is serialised with
    a lock so the Flask dev server (threaded) and the quotation worker pool
    can share it. Every sqlite3.Error leaves here as StorageUnavailable.
    """

    def __init__(self, path: str, stop_words: Optional[Iterable[str]] = None) -> None:
        self.path = path
        self._lock = threading.RLock()
        try:
            self.con = sqlite3.connect(path, check_same_thread=False)
        except sqlite3.Error as e:
            raise StorageUnavailable(f"cannot open database {path}: {e}") from e
        self.con.row_factory = sqlite3.Row
        _register_functions(self.con, frozenset(stop_words) if stop_words is not None else None)

    # ------------------------- queries ------------------------------------ #

    def query(self, sql: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        with self._lock:
            try:
                return self.con.execute(sql, tuple(params)).fetchall()
            except sqlite3.Error as e:
                raise StorageUnavailable(str(e)) from e

    def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Run one write statement and commit. Returns affected row count."""
        with self._lock:
            try:
                cur = self.con.execute(sql, tuple(params))
                self.con.commit()
                return cur.rowcount
            except sqlite3.Error as e:
                self._rollback()
                raise StorageUnavailable(str(e)) from e

    def executemany(self, sql: str, rows: Iterable[Sequence[Any]]) -> int:
        with self._lock:
            try:
                before = self.con.total_changes
                self.con.executemany(sql, rows)
                self.con.commit()
                return self.con.total_changes - before
            except sqlite3.Error as e:
                self._rollback()
                raise StorageUnavailable(str(e)) from e

    def _rollback(self) -> None:
        try:
            self.con.rollback()
        except sqlite3.Error as e:
            # connection already unusable; the caller re-raises the first error
            log.debug("rollback failed: %s", e)

    def close(self) -> None:
        with self._lock:
            self.con.close()

    # ------------------------- schema ------------------------------------- #

    def init_schema(self, sources: Iterable[Dict[str, Any]]) -> None:
        """Create the alias table and one table per configured source."""
        self.execute(
            f"CREATE TABLE IF NOT EXISTS {ALIAS_TABLE} ("
            "input_name TEXT PRIMARY KEY, "
            "canonical_name TEXT NOT NULL, "
            "updated_at_ms INTEGER)"
        )
        for src in sources:
            self.execute(
                f"CREATE TABLE IF NOT EXISTS {quote_ident(src['table'])} ("
                f"{quote_ident(src['name_column'])} TEXT, "
                f"{quote_ident(src['unit_column'])} TEXT, "
                f"{quote_ident(src['rate_column'])} REAL)"
            )

    def table_columns(self, table: str) -> List[str]:
        rows = self.query(f"PRAGMA table_info({quote_ident(table)})")
        return [r["name"] for r in rows]

    def insert_catalog_rows(self, src: Dict[str, Any], rows: Iterable[Dict[str, Any]]) -> int:
        """
        Bulk-load {name, unit, rate} dicts into a source table using that
        source's own column names.
        """
        sql = (
            f"INSERT INTO {quote_ident(src['table'])} "
            f"({quote_ident(src['name_column'])}, {quote_ident(src['unit_column'])}, "
            f"{quote_ident(src['rate_column'])}) VALUES (?, ?, ?)"
        )
        payload = [(r.get("name"), r.get("unit"), r.get("rate")) for r in rows]
        count = self.executemany(sql, payload)
        log.info("loaded %d rows into %s", count, src["table"])
        return count


def open_database(
    path: str,
    sources: Iterable[Dict[str, Any]],
    stop_words: Optional[Iterable[str]] = None,
) -> Database:
    db = Database(path, stop_words=stop_words)
    db.init_schema(sources)
    return db
