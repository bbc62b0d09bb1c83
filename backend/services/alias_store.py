# backend/services/alias_store.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from utils.db import ALIAS_TABLE, Database, now_ms
from utils.errors import AliasWriteFailed, StorageUnavailable
from utils.normalizer import normalize

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Alias:
    input_key: str
    canonical_name: str


@dataclass(frozen=True)
class AliasWriteResult:
    """Outcome of a best-effort alias write. Callers may ignore it."""

    ok: bool
    key: str = ""
    error: Optional[str] = None


class AliasStore:
    """
    The learned cache: normalized input text -> canonical catalog name.
    A plain exact-match key/value table; priority between base and strict
    keys is decided by the resolver.
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    def get(self, key: str) -> Optional[Alias]:
        if not key:
            return None
        rows = self.db.query(
            f"SELECT input_name, canonical_name FROM {ALIAS_TABLE} "
            "WHERE input_name = ? LIMIT 1",
            [key],
        )
        if not rows:
            return None
        return Alias(input_key=rows[0]["input_name"], canonical_name=rows[0]["canonical_name"])

    def lookup(self, key: str) -> Optional[str]:
        row = self.get(key)
        return row.canonical_name if row else None

    def upsert(self, key: str, canonical_name: str) -> None:
        """Insert or overwrite (last write wins). Raises AliasWriteFailed."""
        if not key or not canonical_name:
            raise AliasWriteFailed(f"refusing blank alias {key!r} -> {canonical_name!r}")
        try:
            self.db.execute(
                f"INSERT INTO {ALIAS_TABLE}(input_name, canonical_name, updated_at_ms) VALUES(?,?,?) "
                "ON CONFLICT(input_name) DO UPDATE SET "
                "canonical_name=excluded.canonical_name, updated_at_ms=excluded.updated_at_ms",
                [key, canonical_name, now_ms()],
            )
        except StorageUnavailable as e:
            raise AliasWriteFailed(str(e)) from e

    def insert_missing(self, rows: Iterable[Tuple[str, str]]) -> int:
        """Insert-ignore used by the seeder: existing keys keep their value."""
        stamp = now_ms()
        try:
            return self.db.executemany(
                f"INSERT OR IGNORE INTO {ALIAS_TABLE}(input_name, canonical_name, updated_at_ms) "
                "VALUES(?,?,?)",
                [(k, v, stamp) for k, v in rows],
            )
        except StorageUnavailable as e:
            raise AliasWriteFailed(str(e)) from e

    def count(self) -> int:
        rows = self.db.query(f"SELECT COUNT(*) AS c FROM {ALIAS_TABLE}")
        return int(rows[0]["c"]) if rows else 0


def remember_alias(store: AliasStore, raw_name: str, canonical_name: str) -> AliasWriteResult:
    """
    Learn `normalize(raw_name) -> canonical_name`. Best effort: a failed
    write is logged and reported in the result, never raised.
    """
    key = normalize(raw_name)
    try:
        store.upsert(key, canonical_name)
    except (AliasWriteFailed, StorageUnavailable) as e:
        log.warning("alias write %r -> %r failed: %s", key, canonical_name, e)
        return AliasWriteResult(ok=False, key=key, error=str(e))
    log.info("learned alias %r -> %r", key, canonical_name)
    return AliasWriteResult(ok=True, key=key)
