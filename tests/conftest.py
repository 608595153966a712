"""Shared fixtures: isolated settings and knowledge bases under tmp_path."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from notevault.config import Settings, StorageConfig
from notevault.service import KnowledgeBase

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(storage=StorageConfig(base_path=tmp_path / "vaults"))


@pytest.fixture
def kb(settings: Settings) -> KnowledgeBase:
    """Knowledge base with no vaults registered."""
    return KnowledgeBase(settings)


@pytest.fixture
def personal(kb: KnowledgeBase) -> KnowledgeBase:
    """Knowledge base with an empty 'Personal' vault."""
    kb.create_vault("Personal")
    return kb
