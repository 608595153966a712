"""Crash-safe file primitives.

A write is reported as done only after the bytes and the directory entry
that names them have been flushed to stable storage.
"""

from __future__ import annotations

import contextlib
import logging
import os
import shutil
import uuid
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

TEMP_SUFFIX = ".tmp"


def fsync_directory(directory: Path) -> None:
    """Flush a directory entry table. No-op on platforms without directory fds."""
    if os.name == "nt":
        return
    fd = os.open(directory, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def atomic_write_text(path: Path, text: str, *, durable: bool = True) -> None:
    """Replace *path* with *text* so readers see the old or the new file, never a mix.

    The temp file is hidden (dot-prefixed) and lives next to the target so
    ``os.replace`` stays on one filesystem. Text is written without newline
    translation so content round-trips byte for byte.
    """
    tmp = path.with_name(f".{path.name}.{uuid.uuid4().hex}{TEMP_SUFFIX}")
    try:
        with open(tmp, "w", encoding="utf-8", newline="") as f:
            f.write(text)
            f.flush()
            if durable:
                os.fsync(f.fileno())
        os.replace(tmp, path)
    except BaseException:
        with contextlib.suppress(OSError):
            tmp.unlink()
        raise
    if durable:
        fsync_directory(path.parent)


def read_text(path: Path) -> str:
    with open(path, encoding="utf-8", newline="") as f:
        return f.read()


def remove_file(path: Path, *, durable: bool = True) -> None:
    """Unlink *path* and flush the parent directory."""
    path.unlink()
    if durable:
        fsync_directory(path.parent)


def create_directory(path: Path, *, durable: bool = True) -> None:
    """Create *path* (and parents) and make the new entry durable."""
    path.mkdir(parents=True, exist_ok=True)
    if durable:
        fsync_directory(path.parent)


def remove_tree(path: Path, *, durable: bool = True) -> None:
    """Remove a directory tree.

    The tree is first renamed to a hidden tombstone so the original name
    disappears in one step, then the tombstone is deleted.
    """
    tombstone = path.with_name(f".{path.name}.{uuid.uuid4().hex}.deleted")
    os.replace(path, tombstone)
    if durable:
        fsync_directory(path.parent)
    try:
        shutil.rmtree(tombstone)
    except OSError:
        # Name is already gone; leftover bytes are invisible to listings.
        logger.exception("Failed to remove tombstone %s", tombstone)


def cleanup_temp_files(directory: Path) -> int:
    """Delete temp files left behind by interrupted writes. Returns count removed."""
    removed = 0
    for tmp in directory.glob(f".*{TEMP_SUFFIX}"):
        with contextlib.suppress(OSError):
            tmp.unlink()
            removed += 1
    if removed:
        logger.info("Removed %d stale temp files from %s", removed, directory)
    return removed
