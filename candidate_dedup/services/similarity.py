"""Name similarity scoring, independent of the phonetic code.

The match engine takes any ``SimilarityStrategy``: a callable returning a
value in ``[0, 1]`` that is symmetric and equals ``1.0`` only for identical
normalized input.  The default, ``name_similarity``, is the normalized
Levenshtein ratio ``1 - distance / max(len)``.
"""

from __future__ import annotations

import unicodedata
from typing import Callable

from rapidfuzz.distance import Levenshtein

SimilarityStrategy = Callable[[str, str], float]


def normalize_name(name: str | None) -> str:
    """Lowercase, strip accents and collapse whitespace."""
    if not name:
        return ""
    nfkd = unicodedata.normalize("NFKD", name.lower())
    stripped = "".join(ch for ch in nfkd if not unicodedata.combining(ch))
    return " ".join(stripped.split())


def levenshtein_distance(a: str, b: str, max_distance: int | None = None) -> int:
    """Edit distance between *a* and *b* (insert / delete / substitute).

    With *max_distance* the computation stops early and any distance above
    the bound comes back as ``max_distance + 1``.
    """
    return Levenshtein.distance(a, b, score_cutoff=max_distance)


def name_similarity(
    name_a: str | None,
    name_b: str | None,
    floor: float | None = None,
) -> float:
    """Similarity of two names in ``[0, 1]``.

    Empty input on either side scores ``0.0`` so blank names never match.
    When *floor* is given, values below it are only guaranteed to be below
    it, not exact.
    """
    a = normalize_name(name_a)
    b = normalize_name(name_b)
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0
    longest = max(len(a), len(b))
    max_distance = None
    if floor is not None:
        max_distance = int(longest * (1.0 - floor) + 1e-9)
    return 1.0 - levenshtein_distance(a, b, max_distance) / longest
