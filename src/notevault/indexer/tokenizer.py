"""Term normalization shared by indexing and querying."""

from __future__ import annotations

import re
from collections import Counter

# Runs of letters/digits; underscores, whitespace and punctuation separate terms
_TERM_PATTERN = re.compile(r"[^\W_]+")


def tokenize(text: str, min_length: int = 1) -> list[str]:
    """Case-folded terms of *text* in order of appearance."""
    return [t for t in _TERM_PATTERN.findall(text.casefold()) if len(t) >= min_length]


def term_frequencies(text: str, min_length: int = 1) -> Counter[str]:
    return Counter(tokenize(text, min_length))


def query_terms(query: str, min_length: int = 1) -> list[str]:
    """Unique query terms, first occurrence order."""
    return list(dict.fromkeys(tokenize(query, min_length)))
