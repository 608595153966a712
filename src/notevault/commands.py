"""Command surface — the fixed, named boundary the presentation shell calls.

Each command has a typed request model validated before anything touches
storage. Results and failures both come back as a ``CommandResponse``; a
failure carries the error ``kind`` (e.g. ``NoteNotFound``) and its taxonomy
``category`` (e.g. ``NotFound``) so callers can branch without string matching.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from notevault.errors import InvalidInput, NoteVaultError, StorageFailure

if TYPE_CHECKING:
    from notevault.service import KnowledgeBase

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class Request(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class NoArgs(Request):
    pass


class VaultRequest(Request):
    vault: str


class CreateVaultRequest(VaultRequest):
    base_path: str | None = None


class NoteRequest(VaultRequest):
    title: str


class WriteNoteRequest(NoteRequest):
    content: str


class IndexNoteRequest(NoteRequest):
    content: str | None = None


class ContentRequest(Request):
    content: str


class SearchRequest(VaultRequest):
    query: str
    limit: int | None = Field(default=None, ge=1)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class CommandError(BaseModel):
    kind: str
    category: str
    message: str


class CommandResponse(BaseModel):
    ok: bool
    data: Any = None
    error: CommandError | None = None

    @classmethod
    def success(cls, data: Any = None) -> CommandResponse:
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, exc: NoteVaultError) -> CommandResponse:
        return cls(
            ok=False,
            error=CommandError(kind=exc.kind, category=exc.category, message=exc.message),
        )


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

type Handler = Callable[[KnowledgeBase, Any], Any]


def _create_vault(kb: KnowledgeBase, r: CreateVaultRequest) -> None:
    kb.create_vault(r.vault, r.base_path)


def _delete_vault(kb: KnowledgeBase, r: VaultRequest) -> None:
    kb.delete_vault(r.vault)


def _create_note(kb: KnowledgeBase, r: WriteNoteRequest) -> None:
    kb.create_note(r.vault, r.title, r.content)


def _delete_note(kb: KnowledgeBase, r: NoteRequest) -> None:
    kb.delete_note(r.vault, r.title)


def _index_note(kb: KnowledgeBase, r: IndexNoteRequest) -> None:
    kb.index_note(r.vault, r.title, r.content)


def _delete_note_index(kb: KnowledgeBase, r: NoteRequest) -> None:
    kb.delete_note_index(r.vault, r.title)


COMMANDS: dict[str, tuple[type[Request], Handler]] = {
    "create_vault": (CreateVaultRequest, _create_vault),
    "list_vaults": (NoArgs, lambda kb, r: kb.list_vaults()),
    "delete_vault": (VaultRequest, _delete_vault),
    "create_note": (WriteNoteRequest, _create_note),
    "read_note": (NoteRequest, lambda kb, r: kb.read_note(r.vault, r.title)),
    "delete_note": (NoteRequest, _delete_note),
    "list_notes": (VaultRequest, lambda kb, r: kb.list_notes(r.vault)),
    "index_note": (IndexNoteRequest, _index_note),
    "delete_note_index": (NoteRequest, _delete_note_index),
    "extract_plain_text": (ContentRequest, lambda kb, r: kb.plain_text(r.content)),
    "extract_links": (NoteRequest, lambda kb, r: kb.extract_links(r.vault, r.title)),
    "parse_markdown_content": (ContentRequest, lambda kb, r: kb.render(r.content)),
    "search_notes": (SearchRequest, lambda kb, r: kb.search(r.vault, r.query, r.limit)),
    "get_note_metadata": (
        NoteRequest,
        lambda kb, r: kb.note_metadata(r.vault, r.title).model_dump(mode="json"),
    ),
    "get_backlinks": (NoteRequest, lambda kb, r: kb.backlinks(r.vault, r.title)),
    "render_graph": (VaultRequest, lambda kb, r: kb.graph_data(r.vault)),
}


def _describe_validation(e: ValidationError) -> str:
    problems = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "payload"
        problems.append(f"{loc}: {err['msg']}")
    return "; ".join(problems)


class CommandSurface:
    """Routes named commands with dict payloads to the knowledge base."""

    def __init__(self, kb: KnowledgeBase) -> None:
        self.kb = kb

    @staticmethod
    def command_names() -> list[str]:
        return list(COMMANDS)

    def dispatch(self, name: str, payload: dict[str, Any] | None = None) -> CommandResponse:
        """Run command *name*. Never raises: failures come back as responses."""
        try:
            return CommandResponse.success(self._run(name, payload or {}))
        except NoteVaultError as e:
            logger.warning("Command %s failed: %s: %s", name, e.kind, e.message)
            return CommandResponse.failure(e)
        except Exception as e:
            logger.exception("Command %s failed unexpectedly", name)
            return CommandResponse.failure(StorageFailure(f"Unexpected error: {e}", e))

    def _run(self, name: str, payload: dict[str, Any]) -> Any:
        entry = COMMANDS.get(name)
        if entry is None:
            raise InvalidInput(f"Unknown command: {name!r}")
        model, handler = entry
        try:
            request = model.model_validate(payload)
        except ValidationError as e:
            raise InvalidInput(f"Invalid {name} request: {_describe_validation(e)}") from None
        logger.debug("Dispatching %s", name)
        return handler(self.kb, request)
