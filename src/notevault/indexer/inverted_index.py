"""In-memory inverted index over note content, one independent index per vault.

The index is a cache: everything in it can be rebuilt from the note files.
Each note's contribution is replaced wholesale on re-index, so postings from
an older version of a note never survive.
"""

from __future__ import annotations

import logging
import threading
from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from notevault.indexer.tokenizer import query_terms, term_frequencies

if TYPE_CHECKING:
    from collections.abc import Iterable

    from notevault.config import IndexConfig

logger = logging.getLogger(__name__)

type Postings = dict[str, dict[str, int]]


@dataclass(frozen=True, slots=True)
class SearchHit:
    title: str
    score: int


@dataclass(slots=True)
class _VaultIndex:
    # term → {title: frequency}
    postings: Postings = field(default_factory=dict)
    # title → its term counter, so a note's postings can be removed exactly
    note_terms: dict[str, Counter[str]] = field(default_factory=dict)

    def add(self, title: str, terms: Counter[str]) -> None:
        self.note_terms[title] = terms
        for term, freq in terms.items():
            self.postings.setdefault(term, {})[title] = freq

    def discard(self, title: str) -> bool:
        terms = self.note_terms.pop(title, None)
        if terms is None:
            return False
        for term in terms:
            titles = self.postings.get(term)
            if titles is None:
                continue
            titles.pop(title, None)
            if not titles:
                del self.postings[term]
        return True


class IndexEngine:
    """Maintains the per-vault inverted index and answers ranked queries.

    Every public method runs under one engine lock, so each call is atomic
    with respect to the others: a search sees a note's old postings or its
    new ones, never both.
    """

    def __init__(self, config: IndexConfig) -> None:
        self.config = config
        self._vaults: dict[str, _VaultIndex] = {}
        self._lock = threading.Lock()

    def _terms(self, content: str) -> Counter[str]:
        return term_frequencies(content, self.config.min_token_length)

    def index_note(self, vault: str, title: str, content: str) -> int:
        """Replace the postings of (vault, title). Returns distinct terms indexed."""
        terms = self._terms(content)
        with self._lock:
            index = self._vaults.setdefault(vault, _VaultIndex())
            index.discard(title)
            index.add(title, terms)
        logger.debug("Indexed '%s' in '%s' (%d terms)", title, vault, len(terms))
        return len(terms)

    def remove_note(self, vault: str, title: str) -> None:
        """Drop the postings of (vault, title). No-op when it has none."""
        with self._lock:
            index = self._vaults.get(vault)
            removed = index.discard(title) if index else False
        if removed:
            logger.debug("Removed '%s' from index of '%s'", title, vault)

    def search_hits(self, vault: str, query: str, limit: int | None = None) -> list[SearchHit]:
        """Notes containing any query term, by summed term frequency, then title."""
        terms = query_terms(query, self.config.min_token_length)
        if not terms:
            return []
        scores: Counter[str] = Counter()
        with self._lock:
            index = self._vaults.get(vault)
            if index is None:
                return []
            for term in terms:
                for title, freq in index.postings.get(term, {}).items():
                    scores[title] += freq
        ranked = sorted(scores.items(), key=lambda item: (-item[1], item[0]))
        if limit is not None:
            ranked = ranked[:limit]
        return [SearchHit(title=title, score=score) for title, score in ranked]

    def search(self, vault: str, query: str, limit: int | None = None) -> list[str]:
        return [hit.title for hit in self.search_hits(vault, query, limit)]

    def rebuild(self, vault: str, notes: Iterable[tuple[str, str]]) -> int:
        """Build a fresh index for *vault* from (title, content) pairs and swap it in."""
        fresh = _VaultIndex()
        for title, content in notes:
            fresh.add(title, self._terms(content))
        with self._lock:
            self._vaults[vault] = fresh
        logger.info(
            "Rebuilt index for '%s' (%d notes, %d terms)",
            vault,
            len(fresh.note_terms),
            len(fresh.postings),
        )
        return len(fresh.note_terms)

    def drop_vault(self, vault: str) -> None:
        with self._lock:
            self._vaults.pop(vault, None)

    def snapshot(self, vault: str) -> Postings:
        """Deep copy of the postings of *vault* (empty when unknown)."""
        with self._lock:
            index = self._vaults.get(vault)
            if index is None:
                return {}
            return {term: dict(titles) for term, titles in index.postings.items()}

    def indexed_titles(self, vault: str) -> list[str]:
        with self._lock:
            index = self._vaults.get(vault)
            return sorted(index.note_terms) if index else []

    def stats(self, vault: str) -> dict[str, int]:
        with self._lock:
            index = self._vaults.get(vault)
            if index is None:
                return {"notes": 0, "terms": 0, "postings": 0}
            return {
                "notes": len(index.note_terms),
                "terms": len(index.postings),
                "postings": sum(len(t) for t in index.postings.values()),
            }


def build_postings(notes: Iterable[tuple[str, str]], min_length: int = 1) -> Postings:
    """From-scratch postings for (title, content) pairs; reference for consistency checks."""
    postings: Postings = {}
    for title, content in notes:
        for term, freq in term_frequencies(content, min_length).items():
            postings.setdefault(term, {})[title] = freq
    return postings
