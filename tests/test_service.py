"""Tests for the knowledge base: note lifecycle bound to index and links."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

import pytest

from notevault.errors import InvalidTitle, NoteNotFound, NotFound, VaultNotFound
from notevault.indexer import build_postings
from notevault.service import KnowledgeBase

if TYPE_CHECKING:
    from notevault.config import Settings


def _assert_consistent(kb: KnowledgeBase, vault: str) -> None:
    expected = build_postings(kb.store.iter_notes(vault))
    assert kb.index.snapshot(vault) == expected
    assert kb.verify_index(vault)


def test_personal_todo_scenario(kb: KnowledgeBase) -> None:
    kb.create_vault("Personal")
    kb.create_note("Personal", "Todo", "Buy milk [[Groceries]]")
    assert kb.extract_links("Personal", "Todo") == ["Groceries"]
    assert kb.list_notes("Personal") == ["Todo"]
    assert kb.search("Personal", "milk") == ["Todo"]

    kb.delete_vault("Personal")
    with pytest.raises(NotFound):
        kb.list_notes("Personal")


def test_round_trip(personal: KnowledgeBase) -> None:
    content = "# Heading\n\n  spaced  \r\n[[Link]] ✓\n"
    personal.create_note("Personal", "Exact", content)
    assert personal.read_note("Personal", "Exact") == content


def test_second_create_wins(personal: KnowledgeBase) -> None:
    personal.create_note("Personal", "Todo", "Buy milk")
    personal.create_note("Personal", "Todo", "Buy bread")
    assert personal.read_note("Personal", "Todo") == "Buy bread"
    assert personal.search("Personal", "milk") == []
    assert personal.search("Personal", "bread") == ["Todo"]
    assert personal.list_notes("Personal") == ["Todo"]


def test_invalid_title_writes_nothing(personal: KnowledgeBase) -> None:
    with pytest.raises(InvalidTitle):
        personal.create_note("Personal", "../escape", "x")
    assert personal.list_notes("Personal") == []
    assert personal.index.indexed_titles("Personal") == []


def test_title_with_note_extension_rejected(personal: KnowledgeBase) -> None:
    # [[Notes.md]] resolves to "Notes", so such a note could never be linked
    with pytest.raises(InvalidTitle):
        personal.create_note("Personal", "Notes.md", "x")
    assert personal.list_notes("Personal") == []


def test_create_note_in_unknown_vault(kb: KnowledgeBase) -> None:
    with pytest.raises(VaultNotFound):
        kb.create_note("Nope", "Todo", "x")
    assert kb.index.indexed_titles("Nope") == []


class TestDeletion:
    def test_deleted_note_is_gone_everywhere(self, personal: KnowledgeBase) -> None:
        personal.create_note("Personal", "Todo", "zanzibar [[Groceries]]")
        personal.create_note("Personal", "Other", "plain")
        personal.delete_note("Personal", "Todo")

        assert personal.list_notes("Personal") == ["Other"]
        assert personal.search("Personal", "zanzibar") == []
        with pytest.raises(NoteNotFound):
            personal.extract_links("Personal", "Todo")
        assert personal.backlinks("Personal", "Groceries") == []
        _assert_consistent(personal, "Personal")

    def test_delete_missing_note(self, personal: KnowledgeBase) -> None:
        with pytest.raises(NoteNotFound):
            personal.delete_note("Personal", "Ghost")

    def test_delete_vault_drops_derived_state(self, personal: KnowledgeBase) -> None:
        personal.create_note("Personal", "Todo", "milk")
        personal.delete_vault("Personal")
        assert personal.index.snapshot("Personal") == {}
        assert personal.links.snapshot("Personal") == {}
        with pytest.raises(VaultNotFound):
            personal.search("Personal", "milk")

    def test_deleted_and_unknown_vaults_hold_no_lock(self, personal: KnowledgeBase) -> None:
        assert "Personal" in personal.locks
        personal.delete_vault("Personal")
        assert "Personal" not in personal.locks
        with pytest.raises(VaultNotFound):
            personal.search("Nope", "milk")
        assert "Nope" not in personal.locks

    def test_recreated_vault_starts_empty(self, personal: KnowledgeBase) -> None:
        personal.create_note("Personal", "Todo", "milk")
        personal.delete_vault("Personal")
        personal.create_vault("Personal")
        assert personal.list_notes("Personal") == []
        assert personal.search("Personal", "milk") == []


class TestIndexConsistency:
    def test_mixed_operations(self, personal: KnowledgeBase) -> None:
        personal.create_note("Personal", "A", "alpha beta")
        personal.create_note("Personal", "B", "beta gamma gamma")
        personal.create_note("Personal", "A", "delta")
        personal.delete_note("Personal", "B")
        personal.create_note("Personal", "C", "alpha alpha")
        _assert_consistent(personal, "Personal")
        assert personal.search("Personal", "alpha beta gamma delta") == ["C", "A"]

    def test_reindex_picks_up_external_edits(self, personal: KnowledgeBase) -> None:
        personal.create_note("Personal", "Todo", "milk")
        root = personal.vaults.get("Personal").root_path
        (root / "Todo.md").write_text("bread", encoding="utf-8")
        (root / "Dropped.md").write_text("cheese [[Todo]]", encoding="utf-8")
        assert not personal.verify_index("Personal")

        assert personal.reindex_vault("Personal") == 2
        assert personal.search("Personal", "milk") == []
        assert personal.search("Personal", "cheese") == ["Dropped"]
        assert personal.backlinks("Personal", "Todo") == ["Dropped"]
        _assert_consistent(personal, "Personal")

    def test_concurrent_writers_and_readers(self, personal: KnowledgeBase) -> None:
        errors: list[BaseException] = []

        def writer(worker: int) -> None:
            try:
                for i in range(20):
                    title = f"note-{worker}-{i % 5}"
                    personal.create_note("Personal", title, f"shared w{worker} n{i}")
                    if i % 3 == 0:
                        personal.delete_note("Personal", title)
            except BaseException as e:  # noqa: BLE001
                errors.append(e)

        def reader() -> None:
            try:
                for _ in range(40):
                    personal.search("Personal", "shared")
                    personal.list_notes("Personal")
            except BaseException as e:  # noqa: BLE001
                errors.append(e)

        threads = [threading.Thread(target=writer, args=(w,)) for w in range(4)]
        threads += [threading.Thread(target=reader) for _ in range(3)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        _assert_consistent(personal, "Personal")
        assert personal.search("Personal", "shared") == personal.list_notes("Personal")


class TestVaultIsolation:
    def test_same_title_in_two_vaults(self, kb: KnowledgeBase) -> None:
        kb.create_vault("Personal")
        kb.create_vault("Work")
        kb.create_note("Personal", "Todo", "milk [[Groceries]]")
        kb.create_note("Work", "Todo", "deadline [[Report]]")

        assert kb.read_note("Personal", "Todo") == "milk [[Groceries]]"
        assert kb.search("Work", "milk") == []
        assert kb.search("Personal", "deadline") == []
        assert kb.backlinks("Work", "Groceries") == []
        assert kb.backlinks("Personal", "Groceries") == ["Todo"]

        kb.delete_note("Work", "Todo")
        assert kb.search("Personal", "milk") == ["Todo"]


class TestLinks:
    def test_unresolved_links_preserved(self, personal: KnowledgeBase) -> None:
        personal.create_note("Personal", "Todo", "See [[Nowhere]] and [[Todo]]")
        assert personal.extract_links("Personal", "Todo") == ["Nowhere", "Todo"]
        edges = personal.link_edges("Personal")
        assert [(e.target, e.resolved) for e in edges] == [("Nowhere", False), ("Todo", True)]

    def test_link_resolves_once_target_exists(self, personal: KnowledgeBase) -> None:
        personal.create_note("Personal", "Todo", "[[groceries]]")
        assert not personal.link_edges("Personal")[0].resolved
        personal.create_note("Personal", "Groceries", "milk")
        (edge,) = personal.link_edges("Personal")
        assert edge.resolved
        assert edge.target == "Groceries"

    def test_extract_links_missing_note(self, personal: KnowledgeBase) -> None:
        with pytest.raises(NoteNotFound):
            personal.extract_links("Personal", "Ghost")

    def test_backlinks_follow_edits(self, personal: KnowledgeBase) -> None:
        personal.create_note("Personal", "Todo", "[[Groceries]]")
        personal.create_note("Personal", "Recipes", "[[groceries]] too")
        assert personal.backlinks("Personal", "Groceries") == ["Recipes", "Todo"]
        personal.create_note("Personal", "Todo", "nothing now")
        assert personal.backlinks("Personal", "Groceries") == ["Recipes"]

    def test_graph_data(self, personal: KnowledgeBase) -> None:
        personal.create_note("Personal", "Todo", "[[Groceries]]")
        data = personal.graph_data("Personal")
        nodes = {n["id"]: n["exists"] for n in data["nodes"]}
        assert nodes == {"Todo": True, "Groceries": False}
        assert [(e["source"], e["target"]) for e in data["edges"]] == [("Todo", "Groceries")]


class TestBestEffortIndexing:
    def test_index_note_uses_stored_content(self, personal: KnowledgeBase) -> None:
        personal.create_note("Personal", "Todo", "milk")
        assert personal.index_note("Personal", "Todo", "something else entirely")
        assert personal.search("Personal", "milk") == ["Todo"]
        assert personal.search("Personal", "entirely") == []
        _assert_consistent(personal, "Personal")

    def test_index_note_restores_dropped_postings(self, personal: KnowledgeBase) -> None:
        personal.create_note("Personal", "Todo", "milk")
        personal.index.remove_note("Personal", "Todo")
        assert personal.index_note("Personal", "Todo")
        assert personal.search("Personal", "milk") == ["Todo"]

    def test_index_note_for_missing_note(self, personal: KnowledgeBase) -> None:
        assert not personal.index_note("Personal", "Ghost", "phantom words")
        assert personal.search("Personal", "phantom") == []

    def test_index_note_never_raises(self, kb: KnowledgeBase) -> None:
        assert not kb.index_note("Nope", "Todo", "x")
        assert not kb.index_note("Nope", "../bad", "x")

    def test_delete_note_index_keeps_stored_notes(self, personal: KnowledgeBase) -> None:
        personal.create_note("Personal", "Todo", "milk")
        assert not personal.delete_note_index("Personal", "Todo")
        assert personal.search("Personal", "milk") == ["Todo"]

    def test_delete_note_index_drops_orphans(self, personal: KnowledgeBase) -> None:
        personal.create_note("Personal", "Todo", "milk")
        root = personal.vaults.get("Personal").root_path
        (root / "Todo.md").unlink()
        assert personal.delete_note_index("Personal", "Todo")
        assert personal.search("Personal", "milk") == []
        _assert_consistent(personal, "Personal")

    def test_delete_note_index_for_absent_title(self, personal: KnowledgeBase) -> None:
        assert personal.delete_note_index("Personal", "Ghost")
        assert not personal.delete_note_index("Nope", "Ghost")

    def test_indexing_failure_does_not_block_write(
        self, personal: KnowledgeBase, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def boom(*_args: object) -> int:
            raise RuntimeError("index bug")

        monkeypatch.setattr(personal.index, "index_note", boom)
        personal.create_note("Personal", "Todo", "milk")
        assert personal.read_note("Personal", "Todo") == "milk"
        assert personal.search("Personal", "milk") == []


class TestMetadata:
    def test_note_metadata(self, personal: KnowledgeBase) -> None:
        personal.create_note("Personal", "Groceries", "---\ntags: [shopping]\n---\nMilk #dairy")
        personal.create_note("Personal", "Todo", "Buy milk [[Groceries]]")
        meta = personal.note_metadata("Personal", "Groceries")
        assert meta.title == "Groceries"
        assert meta.tags == ["dairy", "shopping"]
        assert meta.backlinks == ["Todo"]
        assert meta.vault == "Personal"

    def test_metadata_missing_note(self, personal: KnowledgeBase) -> None:
        with pytest.raises(NoteNotFound):
            personal.note_metadata("Personal", "Ghost")


class TestMarkup:
    def test_render_and_plain_text(self, kb: KnowledgeBase) -> None:
        assert "<h1>Title</h1>" in kb.render("# Title\nThis is **bold**.")
        assert kb.plain_text("# Title\nThis is **bold**.") == "Title\nThis is bold."


class TestOpen:
    def test_creates_default_vault_once(self, settings: Settings) -> None:
        kb = KnowledgeBase.open(settings)
        assert kb.list_vaults() == ["Default"]
        again = KnowledgeBase.open(settings)
        assert again.list_vaults() == ["Default"]

    def test_rebuilds_caches_from_disk(self, settings: Settings) -> None:
        first = KnowledgeBase.open(settings)
        first.create_vault("Personal")
        first.create_note("Personal", "Todo", "Buy milk [[Groceries]]")
        first.create_note("Personal", "Groceries", "eggs")

        second = KnowledgeBase.open(settings)
        assert second.list_vaults() == ["Default", "Personal"]
        assert second.search("Personal", "milk") == ["Todo"]
        assert second.backlinks("Personal", "Groceries") == ["Todo"]
        _assert_consistent(second, "Personal")

    def test_cleans_interrupted_writes(self, settings: Settings) -> None:
        first = KnowledgeBase.open(settings)
        root = first.vaults.get("Default").root_path
        (root / ".Todo.md.0123.tmp").write_text("partial", encoding="utf-8")
        KnowledgeBase.open(settings)
        assert list(root.iterdir()) == []
