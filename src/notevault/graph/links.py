"""Link extraction — finds cross-note references in raw note markup.

Recognised forms, reported in order of appearance:

* ``[[Target]]``, ``[[Target|alias]]``, ``[[Target#heading]]``, ``[[Target^block]]``
* embeds ``![[Target]]``
* relative Markdown links ``[text](Target.md)``, ``[text](<Target Name.md>)``,
  ``[text](Target%20Name)``

External URLs, pure anchors, attachments and anything inside code are ignored.
"""

from __future__ import annotations

import logging
import re
from pathlib import PurePosixPath
from typing import TYPE_CHECKING
from urllib.parse import unquote, urlsplit

from notevault.vault.models import LinkKind, LinkReference
from notevault.vault.parser import blank_code
from notevault.vault.security import NOTE_SUFFIX

if TYPE_CHECKING:
    from notevault.config import LinkConfig

logger = logging.getLogger(__name__)

LINK_PATTERN = re.compile(
    r"(?P<embed>!)?\[\[(?P<wiki>[^\[\]\n]+?)\]\]"
    r"|(?<!!)\[(?P<text>[^\[\]\n]*)\]\((?P<dest><[^<>\n]+>|[^\s()]+)(?:\s+\"[^\"\n]*\")?\)"
)
_SUBTARGET = re.compile(r"[#^]")


def _clean_target(target: str) -> str:
    """Drop directories and a trailing .md from a reference target."""
    target = target.strip()
    if "/" in target:
        target = PurePosixPath(target).name
    if target.lower().endswith(NOTE_SUFFIX):
        target = target[: -len(NOTE_SUFFIX)]
    return target.strip()


def parse_wikilink(inner: str) -> tuple[str, str | None]:
    """Split the inside of ``[[...]]`` into (target title, alias)."""
    target, _, alias = inner.partition("|")
    target = _SUBTARGET.split(target, maxsplit=1)[0]
    return _clean_target(target), (alias.strip() or None)


def _markdown_target(dest: str) -> str | None:
    if dest.startswith("<") and dest.endswith(">"):
        dest = dest[1:-1]
    dest = dest.strip()
    if not dest or dest.startswith("#"):
        return None
    parts = urlsplit(dest)
    if parts.scheme or parts.netloc:
        return None
    path = unquote(parts.path)
    suffix = PurePosixPath(path).suffix
    if suffix and suffix.lower() != NOTE_SUFFIX:
        return None
    return _clean_target(path) or None


class LinkExtractor:
    """Parses note content into an ordered list of link references.

    Extraction is advisory: a failure is logged and reported as "no links".
    """

    def __init__(self, config: LinkConfig) -> None:
        self.config = config

    def extract(self, content: str) -> list[LinkReference]:
        try:
            return self._scan(content)
        except Exception:
            logger.exception("Link extraction failed, treating note as link-free")
            return []

    def extract_titles(self, content: str) -> list[str]:
        """Referenced titles in text order, duplicates kept."""
        return [ref.target for ref in self.extract(content)]

    def _scan(self, content: str) -> list[LinkReference]:
        refs: list[LinkReference] = []
        searchable = blank_code(content)
        for match in LINK_PATTERN.finditer(searchable):
            raw = content[match.start() : match.end()]
            if match.group("wiki") is not None:
                embed = match.group("embed") is not None
                if embed and not self.config.include_embeds:
                    continue
                target, alias = parse_wikilink(match.group("wiki"))
                kind = LinkKind.EMBED if embed else LinkKind.WIKILINK
            else:
                if not self.config.include_markdown_links:
                    continue
                target = _markdown_target(match.group("dest"))
                alias = match.group("text").strip() or None
                kind = LinkKind.MARKDOWN
            if not target:
                continue
            refs.append(LinkReference(target=target, raw=raw, kind=kind, alias=alias))
        return refs
