"""Data models for vaults, notes, links and note metadata."""

from __future__ import annotations

import hashlib
from datetime import datetime
from enum import StrEnum
from pathlib import Path  # noqa: TC003 — Pydantic needs Path at runtime

from pydantic import BaseModel, ConfigDict, Field, computed_field


class Vault(BaseModel):
    """A named, isolated storage root for notes."""

    model_config = ConfigDict(frozen=True)

    name: str
    root_path: Path
    created: datetime = Field(default_factory=datetime.now)


class VaultRegistry(BaseModel):
    """On-disk shape of the vault registry (registration order preserved)."""

    vaults: list[Vault] = Field(default_factory=list)


class Note(BaseModel):
    """A titled unit of raw markup inside a vault."""

    vault: str
    title: str
    content: str

    @computed_field  # type: ignore[prop-decorator]
    @property
    def content_hash(self) -> str:
        """SHA-256 hash of content for change detection."""
        return hashlib.sha256(self.content.encode()).hexdigest()[:16]


class LinkKind(StrEnum):
    """How a reference was written in the source note."""

    WIKILINK = "wikilink"
    EMBED = "embed"
    MARKDOWN = "markdown"


class LinkReference(BaseModel):
    """A single cross-note reference, as found in the text."""

    model_config = ConfigDict(frozen=True)

    target: str
    raw: str
    kind: LinkKind = LinkKind.WIKILINK
    alias: str | None = None


class LinkEdge(BaseModel):
    """A directed edge between two notes of the same vault."""

    model_config = ConfigDict(frozen=True)

    vault: str
    source: str
    target: str
    raw: str
    resolved: bool


class NoteMetadata(BaseModel):
    """Derived facts about a stored note."""

    vault: str
    title: str
    tags: list[str] = Field(default_factory=list)
    backlinks: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
