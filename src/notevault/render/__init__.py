"""Rendering — Markdown to sanitized HTML and plain text."""

from notevault.render.markup import MarkupRenderer, SafeMarkupExtension, is_safe_url

__all__ = ["MarkupRenderer", "SafeMarkupExtension", "is_safe_url"]
