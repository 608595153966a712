"""Tests for the derived link graph."""

from __future__ import annotations

import networkx as nx
import pytest

from notevault.config import LinkConfig
from notevault.graph import LinkExtractor, LinkGraph, TitleResolver


@pytest.fixture
def graph() -> LinkGraph:
    extractor = LinkExtractor(LinkConfig())
    graph = LinkGraph()
    notes = {
        "Todo": "Buy milk [[Groceries]] and check [[recipes]]",
        "Recipes": "Pancakes need [[Groceries]] and [[Eggs]]",
        "Groceries": "Milk, bread. Back to [[Todo]]",
    }
    for title, content in notes.items():
        graph.update_note("v", title, extractor.extract(content))
    return graph


TITLES = ["Groceries", "Recipes", "Todo"]


class TestTitleResolver:
    def test_exact_match_preferred(self) -> None:
        resolver = TitleResolver(["Note", "note"])
        assert resolver.resolve("note") == "note"
        assert resolver.resolve("Note") == "Note"

    def test_case_insensitive_fallback(self) -> None:
        resolver = TitleResolver(["Groceries"])
        assert resolver.resolve("GROCERIES") == "Groceries"

    def test_unknown_target(self) -> None:
        assert TitleResolver(["A"]).resolve("B") is None


def test_edges_resolve_against_existing_titles(graph: LinkGraph) -> None:
    edges = graph.edges("v", TITLES)
    assert [(e.source, e.target, e.resolved) for e in edges] == [
        ("Groceries", "Todo", True),
        ("Recipes", "Groceries", True),
        ("Recipes", "Eggs", False),
        ("Todo", "Groceries", True),
        ("Todo", "Recipes", True),
    ]
    assert edges[-1].raw == "[[recipes]]"


def test_unresolved_targets(graph: LinkGraph) -> None:
    assert graph.unresolved("v", TITLES) == ["Eggs"]
    assert graph.unresolved("v", [*TITLES, "Eggs"]) == []


def test_backlinks_are_case_insensitive_and_sorted(graph: LinkGraph) -> None:
    assert graph.backlinks("v", "Groceries") == ["Recipes", "Todo"]
    assert graph.backlinks("v", "Recipes") == ["Todo"]
    assert graph.backlinks("v", "Nobody") == []


def test_self_links_are_not_backlinks() -> None:
    graph = LinkGraph()
    extractor = LinkExtractor(LinkConfig())
    graph.update_note("v", "Loop", extractor.extract("[[Loop]]"))
    assert graph.backlinks("v", "Loop") == []


def test_update_replaces_outgoing(graph: LinkGraph) -> None:
    graph.update_note("v", "Todo", LinkExtractor(LinkConfig()).extract("[[Eggs]]"))
    assert graph.snapshot("v")["Todo"] == ["Eggs"]
    assert graph.backlinks("v", "Recipes") == []


def test_remove_note(graph: LinkGraph) -> None:
    graph.remove_note("v", "Recipes")
    assert "Recipes" not in graph.snapshot("v")
    assert graph.backlinks("v", "Groceries") == ["Todo"]
    graph.remove_note("v", "Recipes")


def test_vault_isolation(graph: LinkGraph) -> None:
    assert graph.snapshot("other") == {}
    assert graph.backlinks("other", "Groceries") == []
    graph.drop_vault("v")
    assert graph.snapshot("v") == {}


def test_rebuild_swaps_contents(graph: LinkGraph) -> None:
    refs = LinkExtractor(LinkConfig()).extract("[[Only]]")
    graph.rebuild("v", [("Fresh", refs)])
    assert graph.snapshot("v") == {"Fresh": ["Only"]}


def test_networkx_export(graph: LinkGraph) -> None:
    g = graph.to_networkx("v", TITLES)
    assert isinstance(g, nx.MultiDiGraph)
    assert set(g.nodes) == {"Groceries", "Recipes", "Todo", "Eggs"}
    assert g.nodes["Eggs"]["exists"] is False
    assert g.nodes["Todo"]["exists"] is True
    assert g.number_of_edges() == 5
    assert g.has_edge("Todo", "Recipes")


def test_node_link_data(graph: LinkGraph) -> None:
    data = graph.node_link_data("v", TITLES)
    assert data["directed"] is True
    assert data["multigraph"] is True
    assert {n["id"] for n in data["nodes"]} == {"Groceries", "Recipes", "Todo", "Eggs"}
    assert len(data["edges"]) == 5
