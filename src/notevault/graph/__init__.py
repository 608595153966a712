"""Link graph — reference extraction and the derived note-to-note graph."""

from notevault.graph.link_graph import LinkGraph, TitleResolver
from notevault.graph.links import LinkExtractor

__all__ = ["LinkExtractor", "LinkGraph", "TitleResolver"]
