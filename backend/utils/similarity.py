# backend/utils/similarity.py
from __future__ import annotations

from collections import Counter

from .normalizer import normalize_loose


def bigrams(text: str) -> Counter:
    """Multiset of overlapping 2-character windows."""
    return Counter(text[i:i + 2] for i in range(len(text) - 1))


def similarity(a: str, b: str) -> float:
    """
    Sørensen-Dice coefficient over character bigrams of the loose keys.
    0.0 if either side is empty, 1.0 if the keys are equal.
    """
    left = normalize_loose(a)
    right = normalize_loose(b)
    if not left or not right:
        return 0.0
    if left == right:
        return 1.0

    left_grams = bigrams(left)
    right_grams = bigrams(right)
    intersection = sum(min(n, right_grams.get(g, 0)) for g, n in left_grams.items())
    total = max(len(left) - 1, 1) + max(len(right) - 1, 1)
    return (2.0 * intersection) / total
