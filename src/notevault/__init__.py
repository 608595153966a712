"""notevault — local knowledge-base backend for Markdown vaults."""

__version__ = "0.1.0"
