"""Knowledge base — the transactional core behind the command surface.

Binds NoteStore, IndexEngine and the link graph together so that a note
mutation and the invalidation of its derived state form one unit, executed
under the vault's write lock before the call returns. Callers never update
the index themselves.

The core keeps no notion of a "current" vault or note: every call names its
vault explicitly.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from notevault.errors import NoteNotFound, NoteVaultError
from notevault.graph import LinkExtractor, LinkGraph
from notevault.indexer import IndexEngine, build_postings
from notevault.render import MarkupRenderer
from notevault.vault import (
    NoteMetadata,
    NoteStore,
    VaultLocks,
    VaultManager,
    extract_tags,
    validate_title,
)

if TYPE_CHECKING:
    from pathlib import Path

    from notevault.config import Settings
    from notevault.indexer import SearchHit
    from notevault.vault import LinkEdge, Note, Vault

logger = logging.getLogger(__name__)


class KnowledgeBase:
    """Vault/note lifecycle with an always-consistent index and link graph."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.vaults = VaultManager(settings.storage)
        self.store = NoteStore(self.vaults, settings.storage)
        self.index = IndexEngine(settings.index)
        self.extractor = LinkExtractor(settings.links)
        self.links = LinkGraph()
        self.renderer = MarkupRenderer(settings.render)
        self.locks = VaultLocks(self.vaults.exists)

    @classmethod
    def open(cls, settings: Settings) -> KnowledgeBase:
        """Create the default vault if needed and warm every vault's caches."""
        kb = cls(settings)
        kb.vaults.ensure_default()
        for name in kb.vaults.list_vaults():
            kb.reindex_vault(name)
        return kb

    # --- Derived state ---

    def _refresh_derived(self, vault: str, title: str, content: str) -> None:
        """Re-derive index postings and links for one note. Never raises."""
        try:
            self.index.index_note(vault, title, content)
        except Exception:
            logger.exception("Indexing '%s' in '%s' failed; dropping its postings", title, vault)
            self._forget_derived_index(vault, title)
        self.links.update_note(vault, title, self.extractor.extract(content))

    def _forget_derived_index(self, vault: str, title: str) -> None:
        try:
            self.index.remove_note(vault, title)
        except Exception:
            logger.exception("Removing '%s' from index of '%s' failed", title, vault)

    def _forget_derived(self, vault: str, title: str) -> None:
        self._forget_derived_index(vault, title)
        self.links.remove_note(vault, title)

    def reindex_vault(self, vault: str) -> int:
        """Rebuild index and link graph of *vault* from disk. Returns notes indexed."""
        with self.locks.write(vault):
            self.vaults.get(vault)
            self.store.cleanup(vault)
            notes = list(self.store.iter_notes(vault))
            count = self.index.rebuild(vault, notes)
            self.links.rebuild(
                vault, ((title, self.extractor.extract(content)) for title, content in notes)
            )
        return count

    def verify_index(self, vault: str) -> bool:
        """True when the maintained index equals a from-scratch rebuild over NoteStore."""
        with self.locks.read(vault):
            notes = list(self.store.iter_notes(vault))
            maintained = self.index.snapshot(vault)
        expected = build_postings(notes, self.settings.index.min_token_length)
        if maintained != expected:
            logger.warning("Index of '%s' diverged from note contents", vault)
            return False
        return True

    # --- Vaults ---

    def create_vault(self, name: str, base_path: str | Path | None = None) -> Vault:
        vault = self.vaults.create_vault(name, base_path)
        # Registered first so the lock below is the one later writers share
        with self.locks.write(name):
            # The directory may already hold notes from an earlier life
            notes = list(self.store.iter_notes(name))
            self.index.rebuild(name, notes)
            self.links.rebuild(
                name, ((title, self.extractor.extract(content)) for title, content in notes)
            )
        return vault

    def list_vaults(self) -> list[str]:
        return self.vaults.list_vaults()

    def delete_vault(self, name: str) -> None:
        with self.locks.write(name):
            self.vaults.delete_vault(name)
            self.index.drop_vault(name)
            self.links.drop_vault(name)
        self.locks.discard(name)

    # --- Notes ---

    def create_note(self, vault: str, title: str, content: str) -> Note:
        """Upsert a note; its index postings and links are replaced before returning."""
        validate_title(title)
        with self.locks.write(vault):
            note = self.store.create(vault, title, content)
            self._refresh_derived(vault, title, content)
        logger.info("Saved note '%s' in '%s'", title, vault)
        return note

    def read_note(self, vault: str, title: str) -> str:
        with self.locks.read(vault):
            return self.store.read(vault, title)

    def delete_note(self, vault: str, title: str) -> None:
        """Remove a note; it is gone from search and links before this returns."""
        with self.locks.write(vault):
            self.store.delete(vault, title)
            self._forget_derived(vault, title)
        logger.info("Deleted note '%s' in '%s'", title, vault)

    def list_notes(self, vault: str) -> list[str]:
        with self.locks.read(vault):
            return self.store.list(vault)

    def index_note(self, vault: str, title: str, content: str | None = None) -> bool:
        """Best-effort re-index of one note from its stored content.

        The index only ever reflects NoteStore, so *content* is not indexed on
        its own authority: the stored note is re-read and indexed. Returns
        False (after logging) when nothing could be indexed.
        """
        try:
            with self.locks.write(vault):
                try:
                    stored = self.store.read(vault, title)
                except NoteNotFound:
                    logger.warning("index_note: '%s' not stored in '%s', skipping", title, vault)
                    self._forget_derived(vault, title)
                    return False
                if content is not None and content != stored:
                    logger.info(
                        "index_note: supplied content for '%s' differs from stored note; "
                        "indexing stored version",
                        title,
                    )
                self._refresh_derived(vault, title, stored)
                return True
        except NoteVaultError as e:
            logger.warning("index_note failed for '%s' in '%s': %s", title, vault, e)
            return False

    def delete_note_index(self, vault: str, title: str) -> bool:
        """Drop derived state for a title NoteStore no longer holds. No-op otherwise.

        Returns False when the note is still stored or the vault is unknown.
        """
        try:
            with self.locks.write(vault):
                if self.store.exists(vault, title):
                    logger.debug("delete_note_index: '%s' still stored, keeping postings", title)
                    return False
                self._forget_derived(vault, title)
                return True
        except NoteVaultError as e:
            logger.warning("delete_note_index failed for '%s' in '%s': %s", title, vault, e)
            return False

    # --- Search and links ---

    def search(self, vault: str, query: str, limit: int | None = None) -> list[str]:
        return [hit.title for hit in self.search_hits(vault, query, limit)]

    def search_hits(self, vault: str, query: str, limit: int | None = None) -> list[SearchHit]:
        with self.locks.read(vault):
            self.vaults.get(vault)
            try:
                return self.index.search_hits(vault, query, limit)
            except Exception:
                logger.exception("Search in '%s' failed", vault)
                return []

    def extract_links(self, vault: str, title: str) -> list[str]:
        """Titles referenced by the note's current content, in text order."""
        with self.locks.read(vault):
            content = self.store.read(vault, title)
        return self.extractor.extract_titles(content)

    def backlinks(self, vault: str, title: str) -> list[str]:
        with self.locks.read(vault):
            self.vaults.get(vault)
            return self.links.backlinks(vault, title)

    def link_edges(self, vault: str) -> list[LinkEdge]:
        with self.locks.read(vault):
            return self.links.edges(vault, self.store.list(vault))

    def graph_data(self, vault: str) -> dict[str, Any]:
        """Node-link export of the vault's link graph."""
        with self.locks.read(vault):
            return self.links.node_link_data(vault, self.store.list(vault))

    def note_metadata(self, vault: str, title: str) -> NoteMetadata:
        with self.locks.read(vault):
            content = self.store.read(vault, title)
            created, updated = self.store.stat(vault, title)
            backlinks = self.links.backlinks(vault, title)
        return NoteMetadata(
            vault=vault,
            title=title,
            tags=extract_tags(content),
            backlinks=backlinks,
            created_at=created,
            updated_at=updated,
        )

    # --- Markup (pure) ---

    def render(self, content: str) -> str:
        return self.renderer.render(content)

    def plain_text(self, content: str) -> str:
        return self.renderer.plain_text(content)
