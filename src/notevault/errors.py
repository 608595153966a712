"""Error taxonomy shared by every notevault component.

Each concrete error carries two labels:

* ``kind`` — the precise failure (``VaultNotFound``, ``InvalidTitle``, ...)
* ``category`` — the taxonomy bucket the caller branches on
  (``NotFound``, ``AlreadyExists``, ``InvalidInput``, ``StorageFailure``)
"""

from __future__ import annotations

from typing import ClassVar


class NoteVaultError(Exception):
    """Base class for all structured notevault errors."""

    kind: ClassVar[str] = "NoteVaultError"
    category: ClassVar[str] = "NoteVaultError"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFound(NoteVaultError):
    kind = "NotFound"
    category = "NotFound"


class VaultNotFound(NotFound):
    kind = "VaultNotFound"

    def __init__(self, vault: str) -> None:
        super().__init__(f"Vault not found: '{vault}'")
        self.vault = vault


class NoteNotFound(NotFound):
    kind = "NoteNotFound"

    def __init__(self, vault: str, title: str) -> None:
        super().__init__(f"Note not found: '{title}' in vault '{vault}'")
        self.vault = vault
        self.title = title


class AlreadyExists(NoteVaultError):
    kind = "AlreadyExists"
    category = "AlreadyExists"


class InvalidInput(NoteVaultError):
    kind = "InvalidInput"
    category = "InvalidInput"


class InvalidTitle(InvalidInput):
    kind = "InvalidTitle"

    def __init__(self, title: str, reason: str) -> None:
        super().__init__(f"Invalid title {title!r}: {reason}")
        self.title = title
        self.reason = reason


class StorageFailure(NoteVaultError):
    """Underlying I/O failed (disk full, permission denied, ...)."""

    kind = "StorageFailure"
    category = "StorageFailure"

    def __init__(self, message: str, original: Exception | None = None) -> None:
        super().__init__(message)
        self.original = original
