"""Link graph — derived per-vault cache of outgoing references.

Holds, for every note, the references extracted from its current content.
Entries are replaced on every write and dropped on delete, so the cache is
never stale. Edges are resolved against the live title list at query time:
a reference to a note that does not exist yet stays in the graph as an
unresolved edge and resolves as soon as that note is created.

Resolution is case-insensitive (``str.casefold``) with an exact match
preferred, mirroring how titles are typed by hand.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

import networkx as nx

from notevault.vault.models import LinkEdge, LinkReference

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)


class TitleResolver:
    """Maps reference targets onto existing note titles."""

    def __init__(self, titles: Iterable[str]) -> None:
        self._exact = set(titles)
        self._folded: dict[str, str] = {}
        for title in sorted(self._exact):
            self._folded.setdefault(title.casefold(), title)

    def resolve(self, target: str) -> str | None:
        if target in self._exact:
            return target
        return self._folded.get(target.casefold())


class LinkGraph:
    """Per-vault outgoing-link cache with graph-style queries."""

    def __init__(self) -> None:
        self._outgoing: dict[str, dict[str, list[LinkReference]]] = {}
        self._lock = threading.Lock()

    # --- Mutation ---

    def update_note(self, vault: str, title: str, refs: list[LinkReference]) -> None:
        with self._lock:
            self._outgoing.setdefault(vault, {})[title] = list(refs)

    def remove_note(self, vault: str, title: str) -> None:
        with self._lock:
            self._outgoing.get(vault, {}).pop(title, None)

    def rebuild(self, vault: str, notes: Iterable[tuple[str, list[LinkReference]]]) -> None:
        fresh = {title: list(refs) for title, refs in notes}
        with self._lock:
            self._outgoing[vault] = fresh
        logger.info(
            "Rebuilt link graph for '%s' (%d notes, %d references)",
            vault,
            len(fresh),
            sum(len(r) for r in fresh.values()),
        )

    def drop_vault(self, vault: str) -> None:
        with self._lock:
            self._outgoing.pop(vault, None)

    # --- Queries ---

    def outgoing(self, vault: str, title: str) -> list[LinkReference]:
        with self._lock:
            return list(self._outgoing.get(vault, {}).get(title, []))

    def snapshot(self, vault: str) -> dict[str, list[str]]:
        """{source: [targets]} for *vault*, for consistency checks."""
        with self._lock:
            return {
                title: [ref.target for ref in refs]
                for title, refs in self._outgoing.get(vault, {}).items()
            }

    def _items(self, vault: str) -> list[tuple[str, list[LinkReference]]]:
        with self._lock:
            return sorted((t, list(r)) for t, r in self._outgoing.get(vault, {}).items())

    def edges(self, vault: str, existing_titles: Iterable[str]) -> list[LinkEdge]:
        """Every edge of *vault*, sources in title order, targets in text order."""
        resolver = TitleResolver(existing_titles)
        edges: list[LinkEdge] = []
        for source, refs in self._items(vault):
            for ref in refs:
                resolved = resolver.resolve(ref.target)
                edges.append(
                    LinkEdge(
                        vault=vault,
                        source=source,
                        target=resolved or ref.target,
                        raw=ref.raw,
                        resolved=resolved is not None,
                    )
                )
        return edges

    def backlinks(self, vault: str, title: str) -> list[str]:
        """Sorted titles of other notes that reference *title*."""
        wanted = title.casefold()
        return [
            source
            for source, refs in self._items(vault)
            if source != title and any(ref.target.casefold() == wanted for ref in refs)
        ]

    def unresolved(self, vault: str, existing_titles: Iterable[str]) -> list[str]:
        """Sorted targets referenced in *vault* that match no existing note."""
        return sorted(
            {edge.target for edge in self.edges(vault, existing_titles) if not edge.resolved}
        )

    def to_networkx(self, vault: str, existing_titles: Iterable[str]) -> nx.MultiDiGraph:
        """Directed multigraph: one node per note or unresolved target, one edge per reference."""
        titles = list(existing_titles)
        graph = nx.MultiDiGraph(vault=vault)
        for title in titles:
            graph.add_node(title, label=title, exists=True)
        for edge in self.edges(vault, titles):
            if not graph.has_node(edge.target):
                graph.add_node(edge.target, label=edge.target, exists=False)
            graph.add_edge(edge.source, edge.target, raw=edge.raw, resolved=edge.resolved)
        return graph

    def node_link_data(self, vault: str, existing_titles: Iterable[str]) -> dict[str, Any]:
        graph = self.to_networkx(vault, existing_titles)
        return nx.node_link_data(graph, edges="edges")
