"""Path traversal protection and name validation for vault operations."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from notevault.errors import InvalidInput, InvalidTitle

if TYPE_CHECKING:
    from pathlib import Path

MAX_NAME_LENGTH = 200

# Link targets drop this suffix, so a title ending in it could never be linked
NOTE_SUFFIX = ".md"

# Characters that are unsafe in a filename on at least one major platform
_UNSAFE_CHARS = re.compile(r'[\\/:*?"<>|\x00-\x1f\x7f]')

# Windows device names are unusable as filenames regardless of extension
_RESERVED_NAMES = {
    "con", "prn", "aux", "nul",
    *(f"com{i}" for i in range(1, 10)),
    *(f"lpt{i}" for i in range(1, 10)),
}  # fmt: skip


class PathTraversalError(InvalidInput):
    """Raised when a user-supplied path escapes the vault root."""

    kind = "PathTraversalError"

    def __init__(self, user_path: str, vault_root: Path) -> None:
        self.user_path = user_path
        self.vault_root = vault_root
        super().__init__(
            f"Path traversal blocked: '{user_path}' escapes vault root '{vault_root}'"
        )


def validate_vault_path(user_path: str, vault_root: Path) -> Path:
    """Resolve a user-supplied path and verify it stays within the vault root.

    Returns the resolved absolute path if valid.
    Raises PathTraversalError if the resolved path escapes vault_root.
    """
    resolved_root = vault_root.resolve()
    candidate = (resolved_root / user_path).resolve()
    try:
        candidate.relative_to(resolved_root)
    except ValueError:
        raise PathTraversalError(user_path, vault_root) from None
    return candidate


def title_problem(title: str) -> str | None:
    """Return why *title* cannot be used as a filename stem, or None if it can."""
    if not title or not title.strip():
        return "title is empty"
    if title != title.strip():
        return "title has leading or trailing whitespace"
    if len(title) > MAX_NAME_LENGTH:
        return f"title is longer than {MAX_NAME_LENGTH} characters"
    if title.startswith("."):
        return "title starts with '.'"
    if title.endswith("."):
        return "title ends with '.'"
    if title.lower().endswith(NOTE_SUFFIX):
        return f"title ends with '{NOTE_SUFFIX}'"
    match = _UNSAFE_CHARS.search(title)
    if match:
        return f"title contains unsafe character {match.group(0)!r}"
    if title.casefold() in _RESERVED_NAMES:
        return "title is a reserved device name"
    return None


def validate_title(title: str) -> str:
    """Return *title* unchanged if it is filesystem-safe, else raise InvalidTitle."""
    problem = title_problem(title)
    if problem:
        raise InvalidTitle(title, problem)
    return title


def validate_vault_name(name: str) -> str:
    """Vault names follow the note-title rules; failures are plain InvalidInput."""
    problem = title_problem(name)
    if problem:
        raise InvalidInput(f"Invalid vault name {name!r}: {problem.replace('title', 'name')}")
    return name
