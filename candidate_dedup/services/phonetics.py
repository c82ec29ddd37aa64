"""Spanish (Peru) phonetic encoding of candidate names.

Not Soundex: the code keeps every letter and only folds the clusters a
Peruvian Spanish speaker pronounces alike, so that names spelled differently
but sounding the same collapse to the same code:

- yeismo: ``ll`` / ``y``
- seseo: ``s`` / ``z`` / ``c`` before e, i
- silent ``h``
- ``b`` / ``v``
- ``j`` / ``g`` before e, i
- doubled letters collapse to one, except ``rr``
- ``ñ`` stays distinct (spelled ``ny``)

The output is not meant to be read; only equality of codes matters.
"""

from __future__ import annotations

import re
import unicodedata

from candidate_dedup.core.constants import (
    ENYE_REPLACEMENT,
    PHONETIC_RULES,
    PRESERVED_DOUBLE,
)

_REPEATED = re.compile(r"(.)\1+")


def _strip_accents(text: str) -> str:
    nfkd = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in nfkd if not unicodedata.combining(ch))


def _collapse_repeats(text: str) -> str:
    def _single(match: re.Match[str]) -> str:
        letter = match.group(1)
        return PRESERVED_DOUBLE if letter * 2 == PRESERVED_DOUBLE else letter

    return _REPEATED.sub(_single, text)


def encode(full_name: str | None) -> str:
    """Return the phonetic code of *full_name*.

    Total and deterministic: ``None``, non-strings and empty input give
    ``""``; characters that are not letters are dropped; letters outside
    a-z pass through untouched.

    >>> encode("Hernández")
    'ernandes'
    >>> encode("Llanos")
    'yanos'
    """
    if not full_name or not isinstance(full_name, str):
        return ""

    result = unicodedata.normalize("NFC", full_name.lower().strip())
    result = result.replace("ñ", ENYE_REPLACEMENT)
    result = _strip_accents(result)
    result = "".join(ch for ch in result if ch.isalpha())

    for pattern, replacement in PHONETIC_RULES:
        result = pattern.sub(replacement, result)

    return _collapse_repeats(result)


def phonetic_codes_match(code_a: str | None, code_b: str | None) -> bool:
    """Two codes match when both are non-empty and identical."""
    return bool(code_a) and code_a == code_b
