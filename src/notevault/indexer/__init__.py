"""Indexer — tokenization and the per-vault inverted index."""

from notevault.indexer.inverted_index import IndexEngine, SearchHit, build_postings
from notevault.indexer.tokenizer import query_terms, tokenize

__all__ = ["IndexEngine", "SearchHit", "build_postings", "query_terms", "tokenize"]
