# backend/utils/normalizer.py
from __future__ import annotations

import re
from typing import Any, FrozenSet, Iterable, Optional, Set

# --------------------------------------------------------------------------- #
# Patterns
# --------------------------------------------------------------------------- #

_SMART_DOUBLE_RE = re.compile("[“”]")
_SMART_SINGLE_RE = re.compile("’")
_WS_RE = re.compile(r"\s+")
_QUOTES_RE = re.compile(r"[\"']")
_STRICT_DROP_RE = re.compile(r"[^a-z0-9/ .x-]+")
_PARENS_RE = re.compile(r"\([^)]*\)")
_ONE_SIDE_RE = re.compile(r"\bone\s+side\b")
_SIZE_RE = re.compile(r"[0-9]+(?:\.[0-9]+)?(?:/[0-9]+)?")
# only zeros followed by a digit go: "02" -> "2", while "0" and "0.5" stay whole
# (not "" and ".5"). Query and catalog tokens both pass through here, so
# the subset check is unaffected.
_LEADING_ZEROS_RE = re.compile(r"^0+(?=[0-9])")

DEFAULT_STOP_WORDS: FrozenSet[str] = frozenset({"threaded", "thread"})


def _as_text(raw: Any) -> str:
    if raw is None:
        return ""
    return raw if isinstance(raw, str) else str(raw)


def _collapse(s: str) -> str:
    return _WS_RE.sub(" ", s).strip()


# --------------------------------------------------------------------------- #
# Public API
# --------------------------------------------------------------------------- #

def normalize(raw: Any) -> str:
    """
    Base comparison key: smart quotes folded to ASCII, whitespace collapsed,
    trimmed, lowercased. None -> "".
    """
    s = _as_text(raw)
    s = _SMART_DOUBLE_RE.sub('"', s)
    s = _SMART_SINGLE_RE.sub("'", s)
    return _collapse(s).lower()


def normalize_strict(raw: Any, stop_words: Optional[Iterable[str]] = None) -> str:
    """
    Base key with quotes removed, everything outside [a-z0-9/ .x-] blanked
    and stop-words ("thread", "threaded") dropped token by token.
    """
    stops = DEFAULT_STOP_WORDS if stop_words is None else frozenset(stop_words)
    cleaned = _QUOTES_RE.sub("", normalize(raw))
    cleaned = _collapse(_STRICT_DROP_RE.sub(" ", cleaned))
    if not cleaned:
        return ""
    return " ".join(t for t in cleaned.split(" ") if t and t not in stops)


def normalize_loose(raw: Any) -> str:
    """
    Base key with quotes, parenthesised notes and the phrase "one side"
    removed. Used for similarity scoring and as the fallback needle.
    """
    s = _QUOTES_RE.sub("", normalize(raw))
    s = _PARENS_RE.sub(" ", s)
    s = _collapse(s)
    # removing one "one side" can expose another ("one one side side")
    while True:
        stripped = _collapse(_ONE_SIDE_RE.sub(" ", s))
        if stripped == s:
            return s
        s = stripped


def extract_size_tokens(raw: Any) -> Set[str]:
    """
    Numeric / fractional size tokens in a name: '2" x 3/4" Tee' -> {"2", "3/4"}.
    Leading zeros are dropped but a bare "0" survives.
    """
    cleaned = _QUOTES_RE.sub("", normalize(raw))
    return {_LEADING_ZEROS_RE.sub("", m) for m in _SIZE_RE.findall(cleaned)}


def size_pattern(token: str) -> str:
    """Regex matching `token` only as a standalone number (zero padding allowed)."""
    return rf"(^|[^0-9])0*{re.escape(token)}([^0-9]|$)"


def key_variants(name: Any, stop_words: Optional[Iterable[str]] = None) -> Set[str]:
    """
    Every alias key a catalog name should answer to: base, strict, loose and
    base-without-quotes, each re-normalised. Blank keys are dropped.
    """
    base = normalize(name)
    variants = (
        base,
        normalize_strict(name, stop_words),
        normalize_loose(name),
        _QUOTES_RE.sub("", base),
    )
    return {k for k in (normalize(v) for v in variants) if k}


if __name__ == "__main__":
    samples = [
        '2" x 3/4" Tee',
        "PVC  Pipe 2”  Threaded",
        "Elbow (one side) 90 deg",
        "size 02",
        "",
        None,
    ]
    for s in samples:
        print(
            repr(s),
            "->",
            normalize(s),
            "|",
            normalize_strict(s),
            "|",
            normalize_loose(s),
            "|",
            sorted(extract_size_tokens(s)),
        )
