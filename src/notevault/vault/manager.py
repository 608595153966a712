"""Vault registry — creates, lists and deletes named storage roots.

The registry (name → root path, in registration order) is persisted as JSON
under the configured base path so vaults survive restarts. Vault roots may
live anywhere, but no root may contain or sit inside another vault's root.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import ValidationError

from notevault.errors import AlreadyExists, InvalidInput, StorageFailure, VaultNotFound
from notevault.vault import fileops
from notevault.vault.models import Vault, VaultRegistry
from notevault.vault.security import validate_vault_name

if TYPE_CHECKING:
    from notevault.config import StorageConfig

logger = logging.getLogger(__name__)


def _overlaps(a: Path, b: Path) -> bool:
    return a == b or a.is_relative_to(b) or b.is_relative_to(a)


class VaultManager:
    """Owns the mapping from vault name to on-disk location."""

    def __init__(self, config: StorageConfig) -> None:
        self.config = config
        self._lock = threading.RLock()
        self._vaults: dict[str, Vault] = {}
        self._load()

    # --- Persistence ---

    def _load(self) -> None:
        path = self.config.registry_path
        if not path.exists():
            logger.info("No vault registry at %s, starting empty", path)
            return
        try:
            registry = VaultRegistry.model_validate_json(fileops.read_text(path))
        except OSError as e:
            raise StorageFailure(f"Cannot read vault registry {path}: {e}", e) from e
        except ValidationError as e:
            raise StorageFailure(f"Vault registry {path} is corrupt: {e}", e) from e
        for vault in registry.vaults:
            self._vaults[vault.name] = vault
        logger.info("Loaded %d vaults from %s", len(self._vaults), path)

    def _save(self) -> None:
        registry = VaultRegistry(vaults=list(self._vaults.values()))
        path = self.config.registry_path
        try:
            fileops.create_directory(path.parent, durable=self.config.fsync)
            fileops.atomic_write_text(
                path, registry.model_dump_json(indent=2), durable=self.config.fsync
            )
        except OSError as e:
            raise StorageFailure(f"Cannot write vault registry {path}: {e}", e) from e

    # --- Operations ---

    def create_vault(self, name: str, base_path: str | Path | None = None) -> Vault:
        """Create the storage root for *name* and register it."""
        validate_vault_name(name)
        base = Path(base_path).expanduser() if base_path else self.config.base_path
        root = (base / name).resolve()

        with self._lock:
            if name in self._vaults:
                raise AlreadyExists(f"Vault already exists: '{name}'")
            for other in self._vaults.values():
                if _overlaps(root, other.root_path):
                    raise InvalidInput(
                        f"Vault root {root} overlaps root of vault '{other.name}'"
                    )
            if root.exists() and not root.is_dir():
                raise InvalidInput(f"Vault root {root} exists and is not a directory")

            try:
                fileops.create_directory(root, durable=self.config.fsync)
            except OSError as e:
                raise StorageFailure(f"Cannot create vault directory {root}: {e}", e) from e

            vault = Vault(name=name, root_path=root)
            self._vaults[name] = vault
            try:
                self._save()
            except StorageFailure:
                del self._vaults[name]
                raise

        logger.info("Created vault '%s' at %s", name, root)
        return vault

    def list_vaults(self) -> list[str]:
        with self._lock:
            return list(self._vaults)

    def vaults(self) -> list[Vault]:
        with self._lock:
            return list(self._vaults.values())

    def get(self, name: str) -> Vault:
        with self._lock:
            vault = self._vaults.get(name)
        if vault is None:
            raise VaultNotFound(name)
        return vault

    def exists(self, name: str) -> bool:
        with self._lock:
            return name in self._vaults

    def delete_vault(self, name: str) -> Vault:
        """Unregister *name*, then remove its directory tree.

        The registration goes first, so once this returns or fails partway no
        lookup can resolve a vault whose files are half gone.
        """
        with self._lock:
            vault = self._vaults.pop(name, None)
            if vault is None:
                raise VaultNotFound(name)
            try:
                self._save()
            except StorageFailure:
                self._vaults[name] = vault
                raise

        if vault.root_path.exists():
            try:
                fileops.remove_tree(vault.root_path, durable=self.config.fsync)
            except OSError as e:
                raise StorageFailure(
                    f"Vault '{name}' unregistered but {vault.root_path} could not be removed: {e}",
                    e,
                ) from e
        logger.info("Deleted vault '%s' (%s)", name, vault.root_path)
        return vault

    def ensure_default(self) -> Vault | None:
        """Create the default vault when none is registered. Idempotent.

        Returns the created vault, or None when vaults already existed.
        """
        with self._lock:
            if self._vaults:
                return None
            logger.info("No vaults registered, creating default '%s'", self.config.default_vault)
            return self.create_vault(self.config.default_vault)
