"""Application constants.

Contains the Spanish (Peru) phonetic rules, phone normalization constants,
merge policy field lists, and review-queue display confidences.
"""

import re

# ---------------------------------------------------------------------------
# Spanish phonetic rules
# Applied in order after lowercasing, accent stripping and non-letter removal.
# ---------------------------------------------------------------------------
PHONETIC_RULES: list[tuple[re.Pattern[str], str]] = [
    # Yeismo: 'll' and 'y' sound the same
    (re.compile(r"ll"), "y"),
    # Seseo: soft 'c', 's' and 'z' sound the same
    (re.compile(r"c([ei])"), r"s\1"),
    (re.compile(r"z"), "s"),
    # Silent 'h'
    (re.compile(r"h"), ""),
    # B/V fusion
    (re.compile(r"v"), "b"),
    # Soft 'g' before e/i sounds like 'j'
    (re.compile(r"g([ei])"), r"j\1"),
]

# 'ñ' keeps a distinct sound, so it is spelled out before accents are stripped
ENYE_REPLACEMENT: str = "ny"

# Runs of the same letter collapse to one, except the trilled "rr"
PRESERVED_DOUBLE: str = "rr"

# ---------------------------------------------------------------------------
# Phones (Peru)
# ---------------------------------------------------------------------------
PHONE_COUNTRY_CODE: str = "51"
PHONE_NATIONAL_LENGTH: int = 9
PHONE_MIN_MATCH_DIGITS: int = 9

# ---------------------------------------------------------------------------
# Duplicate chains
# ---------------------------------------------------------------------------
MAX_CHAIN_DEPTH: int = 5

# ---------------------------------------------------------------------------
# Merge policy
# ---------------------------------------------------------------------------
MERGE_FILL_FIELDS: tuple[str, ...] = ("email", "dni", "zone", "address")
MERGE_RECENCY_FIELDS: tuple[str, ...] = ("last_hired_at", "last_contacted_at")
NOTES_DELIMITER: str = "\n---\n"
MERGED_STATUS: str = "inactive"

# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------
CANDIDATES_TABLE: str = "candidates"
AUDIT_LOG_TABLE: str = "audit_log"
AUDIT_ACTION_CATEGORY: str = "dedup"
AUDIT_ENTITY_TYPE: str = "candidate"

# ---------------------------------------------------------------------------
# Review queue display confidence per match reason
# ---------------------------------------------------------------------------
MATCH_REASON_CONFIDENCE: dict[str, float] = {
    "compound": 0.99,
    "dni": 0.95,
    "phone": 0.90,
    "name": 0.70,
}
