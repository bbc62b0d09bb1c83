# backend/services/resolver_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Sequence, Set, Tuple

from utils import data_loader as dl
from utils.normalizer import (
    DEFAULT_STOP_WORDS,
    extract_size_tokens,
    normalize,
    normalize_loose,
    normalize_strict,
)
from utils.similarity import similarity
from services.alias_store import AliasStore, remember_alias
from services.catalog_service import CatalogEntry, CatalogService, CatalogSource

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatchSettings:
    """Tunables for the fallback search. Defaults match matching.json."""

    threshold: float = 0.78
    max_tokens: int = 4
    min_token_length: int = 3
    candidate_limit: int = 200
    relax_token_filter: bool = True
    stop_words: FrozenSet[str] = field(default=DEFAULT_STOP_WORDS)

    @classmethod
    def from_config(cls, cfg: Optional[Dict[str, Any]] = None) -> "MatchSettings":
        cfg = dl.get_matching() if cfg is None else cfg
        return cls(
            threshold=float(cfg.get("threshold", 0.78)),
            max_tokens=int(cfg.get("max_tokens", 4)),
            min_token_length=int(cfg.get("min_token_length", 3)),
            candidate_limit=int(cfg.get("candidate_limit", 200)),
            relax_token_filter=bool(cfg.get("relax_token_filter", True)),
            stop_words=(
                DEFAULT_STOP_WORDS if cfg.get("stop_words") is None else frozenset(cfg["stop_words"])
            ),
        )


class ResolverService:
    """
    Resolves a technician's free-text item name to a catalog entry:
      1) alias cache (base key beats strict key)
      2) exact normalized key across sources, in priority order
      3) token + size filtered fuzzy search, per source, first source whose
         best candidate clears the threshold wins; the match is learned
         as an alias
    """

    def __init__(
        self,
        catalog: CatalogService,
        aliases: AliasStore,
        settings: Optional[MatchSettings] = None,
    ) -> None:
        self.catalog = catalog
        self.aliases = aliases
        self.settings = settings or MatchSettings()

    # ---------- public API ----------

    def resolve_item(self, raw_name: Any) -> Optional[Dict[str, Any]]:
        """
        Returns {name, unit, rate} or None when nothing matches.
        StorageUnavailable from the catalog/alias backend propagates.
        """
        base = normalize(raw_name)
        if not base:
            return None
        strict = normalize_strict(base, self.settings.stop_words)

        alias_name = self._alias_name(base, strict)

        keys: Set[str] = {base, strict}
        if alias_name:
            keys.add(normalize(alias_name))
            keys.add(normalize_strict(alias_name, self.settings.stop_words))

        entry = self.catalog.search_by_exact_keys(keys)
        if entry is not None:
            log.debug("resolved %r by exact key via %s", base, entry.source_id)
            return entry.to_dict()

        return self._fallback(raw_name)

    def fallback_patterns(self, needle: str) -> List[str]:
        """Longest needle tokens (at most max_tokens) used as substring filters."""
        tokens = [t for t in needle.split(" ") if len(t) >= self.settings.min_token_length]
        tokens = sorted(tokens, key=len, reverse=True)[: self.settings.max_tokens]
        return tokens or [needle]

    # ---------- internal helpers ----------

    def _alias_name(self, base: str, strict: str) -> Optional[str]:
        name = self.aliases.lookup(base)
        if name:
            log.debug("alias hit on base key %r", base)
            return name
        if strict and strict != base:
            name = self.aliases.lookup(strict)
            if name:
                log.debug("alias hit on strict key %r", strict)
                return name
        return None

    def _fallback(self, raw_name: Any) -> Optional[Dict[str, Any]]:
        needle = normalize_loose(raw_name)
        if not needle:
            return None
        patterns = self.fallback_patterns(needle)
        required = extract_size_tokens(raw_name)

        for src in self.catalog.sources:
            rows = self._candidates(src, patterns, required)
            best, score = self._best_candidate(needle, rows, required)
            if best is None:
                continue
            if score >= self.settings.threshold:
                log.debug(
                    "fuzzy match %r -> %r (%.3f) in %s", needle, best.name, score, src.source_id
                )
                remember_alias(self.aliases, raw_name, best.name)
                return best.to_dict()
            log.debug(
                "best candidate %r in %s scored %.3f, below %.2f",
                best.name, src.source_id, score, self.settings.threshold,
            )

        log.debug("no match for %r", needle)
        return None

    def _candidates(
        self, src: CatalogSource, patterns: Sequence[str], required: Set[str]
    ) -> List[CatalogEntry]:
        limit = self.settings.candidate_limit
        rows = self.catalog.search_by_name_like(src, patterns, required, limit=limit)
        if not rows and self.settings.relax_token_filter and len(patterns) > 1:
            # misspelled tokens ("conector") sink an all-tokens filter
            rows = self.catalog.search_by_name_like(
                src, patterns, required, limit=limit, match_all=False
            )
        return rows

    @staticmethod
    def _best_candidate(
        needle: str, rows: Sequence[CatalogEntry], required: Set[str]
    ) -> Tuple[Optional[CatalogEntry], float]:
        best: Optional[CatalogEntry] = None
        best_score = 0.0
        for row in rows:
            if required and not required.issubset(extract_size_tokens(row.name)):
                continue
            score = similarity(needle, row.name)
            if score > best_score:
                best, best_score = row, score
        return best, best_score
