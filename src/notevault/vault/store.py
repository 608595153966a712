"""Note store — durable per-vault CRUD over note files.

One file per note: ``<vault root>/<title><extension>``. Titles are validated
rather than rewritten, so a title maps to exactly one file and back.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from notevault.errors import NoteNotFound, StorageFailure
from notevault.vault import fileops
from notevault.vault.models import Note
from notevault.vault.security import title_problem, validate_title, validate_vault_path

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from notevault.config import StorageConfig
    from notevault.vault.manager import VaultManager

logger = logging.getLogger(__name__)


class NoteStore:
    """CRUD over the note files of every registered vault.

    Vault names are resolved through the VaultManager on each call, so an
    unknown or deleted vault raises VaultNotFound. Callers are expected to
    serialize mutations per vault (see ``notevault.vault.locks``).
    """

    def __init__(self, manager: VaultManager, config: StorageConfig) -> None:
        self.manager = manager
        self.config = config

    def note_path(self, vault: str, title: str) -> Path:
        """Absolute file path for (vault, title). Validates both."""
        root = self.manager.get(vault).root_path
        validate_title(title)
        return validate_vault_path(f"{title}{self.config.note_extension}", root)

    def create(self, vault: str, title: str, content: str) -> Note:
        """Write *content* under *title*, replacing any existing note."""
        path = self.note_path(vault, title)
        try:
            fileops.atomic_write_text(path, content, durable=self.config.fsync)
        except OSError as e:
            raise StorageFailure(f"Cannot write note '{title}' in '{vault}': {e}", e) from e
        logger.debug("Wrote note '%s' in '%s' (%d chars)", title, vault, len(content))
        return Note(vault=vault, title=title, content=content)

    def read(self, vault: str, title: str) -> str:
        path = self.note_path(vault, title)
        try:
            return fileops.read_text(path)
        except FileNotFoundError:
            raise NoteNotFound(vault, title) from None
        except OSError as e:
            raise StorageFailure(f"Cannot read note '{title}' in '{vault}': {e}", e) from e

    def exists(self, vault: str, title: str) -> bool:
        return self.note_path(vault, title).is_file()

    def delete(self, vault: str, title: str) -> None:
        path = self.note_path(vault, title)
        try:
            fileops.remove_file(path, durable=self.config.fsync)
        except FileNotFoundError:
            raise NoteNotFound(vault, title) from None
        except OSError as e:
            raise StorageFailure(f"Cannot delete note '{title}' in '{vault}': {e}", e) from e
        logger.debug("Deleted note '%s' in '%s'", title, vault)

    def list(self, vault: str) -> list[str]:
        """All note titles in *vault*, lexicographically sorted."""
        root = self.manager.get(vault).root_path
        ext = self.config.note_extension
        try:
            entries = list(root.iterdir())
        except FileNotFoundError:
            return []
        except OSError as e:
            raise StorageFailure(f"Cannot list vault '{vault}': {e}", e) from e

        titles: list[str] = []
        for entry in entries:
            if not entry.name.endswith(ext) or not entry.is_file():
                continue
            title = entry.name[: -len(ext)]
            # Temp files, hidden files and hand-made names we could never address
            if title_problem(title):
                continue
            titles.append(title)
        return sorted(titles)

    def iter_notes(self, vault: str) -> Iterator[tuple[str, str]]:
        """Yield (title, content) for every readable note, in title order."""
        for title in self.list(vault):
            try:
                yield title, self.read(vault, title)
            except NoteNotFound:
                continue
            except StorageFailure:
                logger.exception("Skipping unreadable note '%s' in '%s'", title, vault)

    def stat(self, vault: str, title: str) -> tuple[datetime, datetime]:
        """(created, modified) timestamps for a note."""
        path = self.note_path(vault, title)
        try:
            st = path.stat()
        except FileNotFoundError:
            raise NoteNotFound(vault, title) from None
        except OSError as e:
            raise StorageFailure(f"Cannot stat note '{title}' in '{vault}': {e}", e) from e
        created = getattr(st, "st_birthtime", None) or st.st_ctime
        return datetime.fromtimestamp(created), datetime.fromtimestamp(st.st_mtime)

    def cleanup(self, vault: str) -> int:
        """Remove temp files left by interrupted writes in *vault*."""
        return fileops.cleanup_temp_files(self.manager.get(vault).root_path)
