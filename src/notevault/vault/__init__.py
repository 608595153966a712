"""Vault operations — registry, durable note storage, locking and parsing."""

from notevault.vault.locks import ReadWriteLock, VaultLocks
from notevault.vault.manager import VaultManager
from notevault.vault.models import (
    LinkEdge,
    LinkKind,
    LinkReference,
    Note,
    NoteMetadata,
    Vault,
)
from notevault.vault.parser import extract_tags, parse_note
from notevault.vault.security import (
    PathTraversalError,
    validate_title,
    validate_vault_name,
    validate_vault_path,
)
from notevault.vault.store import NoteStore

__all__ = [
    "LinkEdge",
    "LinkKind",
    "LinkReference",
    "Note",
    "NoteMetadata",
    "NoteStore",
    "PathTraversalError",
    "ReadWriteLock",
    "Vault",
    "VaultLocks",
    "VaultManager",
    "extract_tags",
    "parse_note",
    "validate_title",
    "validate_vault_name",
    "validate_vault_path",
]
