"""Note parser — splits YAML frontmatter from the body and collects tags."""

from __future__ import annotations

import logging
import re
from typing import Any

import frontmatter

logger = logging.getLogger(__name__)

# Inline #tag, not preceded by a word char (skips URLs#anchors and headings)
TAG_PATTERN = re.compile(r"(?:^|(?<=\s))#([^\W\d_][\w/-]*)", re.MULTILINE)
_FENCED_CODE = re.compile(r"^(```|~~~).*?^\1[ \t]*$", re.MULTILINE | re.DOTALL)
_INLINE_CODE = re.compile(r"`[^`\n]*`")


def has_frontmatter(content: str) -> bool:
    return content.startswith("---\n") or content.startswith("---\r\n")


def parse_note(content: str) -> tuple[dict[str, Any], str]:
    """Return (frontmatter, body).

    Content without a frontmatter block, or with one that is not valid YAML
    mapping, comes back as ({}, content).
    """
    if not has_frontmatter(content):
        return {}, content
    try:
        post = frontmatter.loads(content)
    except Exception:
        logger.warning("Ignoring malformed frontmatter", exc_info=True)
        return {}, content
    meta = post.metadata if isinstance(post.metadata, dict) else {}
    return meta, post.content


def blank_code(text: str) -> str:
    """Replace fenced and inline code with spaces, keeping offsets stable."""

    def _blank(match: re.Match[str]) -> str:
        return re.sub(r"[^\n]", " ", match.group(0))

    return _INLINE_CODE.sub(_blank, _FENCED_CODE.sub(_blank, text))


def extract_tags(content: str) -> list[str]:
    """Sorted unique tags from frontmatter ``tags`` and inline ``#tags``."""
    meta, body = parse_note(content)

    fm_tags = meta.get("tags", [])
    if isinstance(fm_tags, str):
        fm_tags = [t.strip() for t in fm_tags.replace(",", " ").split()]
    elif not isinstance(fm_tags, list):
        fm_tags = []

    inline_tags = TAG_PATTERN.findall(blank_code(body))
    tags = {str(t).lstrip("#") for t in fm_tags if t} | set(inline_tags)
    return sorted(t for t in tags if t)
