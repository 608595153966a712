"""Markup renderer — Markdown to sanitized HTML and to plain text.

Note content is untrusted input. Rendering never passes author-written HTML
through: block and inline tags are escaped and shown as text. Link and image
URLs are limited to an allowlist of schemes, and event-handler attributes are
dropped even when an extension (e.g. ``attr_list``) would emit them.

Both entry points are pure and never raise; on an internal failure they log
and fall back to a literal rendition of the input.
"""

from __future__ import annotations

import html
import logging
import re
import xml.etree.ElementTree as etree
from html.parser import HTMLParser
from typing import TYPE_CHECKING
from urllib.parse import quote

import markdown
from markdown.extensions import Extension
from markdown.inlinepatterns import InlineProcessor
from markdown.treeprocessors import Treeprocessor
from markdown.util import AtomicString

from notevault.graph.links import parse_wikilink
from notevault.vault.parser import has_frontmatter, parse_note

if TYPE_CHECKING:
    from notevault.config import RenderConfig

logger = logging.getLogger(__name__)

WIKILINK_RE = r"(!)?\[\[([^\[\]\n]+?)\]\]"
_URL_JUNK = re.compile(r"[\x00-\x20\x7f]+")
_URL_ATTRS = ("href", "src")

# Tags whose boundaries become line breaks in the plain-text projection
_BLOCK_TAGS = {
    "address", "blockquote", "br", "dd", "div", "dl", "dt", "h1", "h2", "h3",
    "h4", "h5", "h6", "hr", "li", "ol", "p", "pre", "table", "tr", "ul",
}  # fmt: skip
_CELL_TAGS = {"td", "th"}
# Footnote "return to text" arrows carry no words
_SKIP_CLASSES = {"footnote-backref"}


def is_safe_url(url: str, allowed_schemes: set[str]) -> bool:
    """True for relative URLs and URLs whose scheme is allowlisted."""
    compact = _URL_JUNK.sub("", html.unescape(url)).lower()
    scheme, sep, _ = compact.partition(":")
    if not sep:
        return True
    # A colon after the path, query or fragment starts is not a scheme separator
    if any(c in scheme for c in "/?#"):
        return True
    return scheme in allowed_schemes


class WikiLinkInlineProcessor(InlineProcessor):
    """``[[Target|alias]]`` → ``<a class="wikilink" href="#Target" data-target="Target">``."""

    def handleMatch(self, m: re.Match[str], data: str) -> tuple[etree.Element, int, int]:  # noqa: N802
        inner = m.group(2)
        target, alias = parse_wikilink(inner)
        el = etree.Element("a")
        el.set("class", "wikilink embed" if m.group(1) else "wikilink")
        el.set("href", "#" + quote(target))
        el.set("data-target", target)
        el.text = AtomicString(alias or inner.partition("|")[0].strip())
        return el, m.start(0), m.end(0)


class UrlScrubber(Treeprocessor):
    """Removes unsafe URLs and event-handler attributes from the element tree."""

    def __init__(self, md: markdown.Markdown, allowed_schemes: set[str]) -> None:
        super().__init__(md)
        self.allowed_schemes = allowed_schemes

    def run(self, root: etree.Element) -> None:
        for el in root.iter():
            for attr in list(el.attrib):
                if attr.lower().startswith("on"):
                    del el.attrib[attr]
            for attr in _URL_ATTRS:
                value = el.get(attr)
                if value is not None and not is_safe_url(value, self.allowed_schemes):
                    logger.debug("Dropped unsafe %s=%r on <%s>", attr, value, el.tag)
                    del el.attrib[attr]


class SafeMarkupExtension(Extension):
    """Disables raw HTML, adds wikilinks and URL scrubbing."""

    def __init__(self, **kwargs: object) -> None:
        self.config = {
            "allowed_schemes": [["http", "https", "mailto"], "URL schemes kept in href/src"],
        }
        super().__init__(**kwargs)

    def extendMarkdown(self, md: markdown.Markdown) -> None:  # noqa: N802
        md.preprocessors.deregister("html_block")
        md.inlinePatterns.deregister("html")
        # Above 'reference' (170) so [[x]] is never read as a reference link
        md.inlinePatterns.register(WikiLinkInlineProcessor(WIKILINK_RE, md), "wikilink", 175)
        schemes = {s.lower() for s in self.getConfig("allowed_schemes")}
        md.treeprocessors.register(UrlScrubber(md, schemes), "url_scrubber", 1)


class _TextCollector(HTMLParser):
    """Collects visible text from rendered HTML."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.parts: list[str] = []
        self._skipping: str | None = None
        self._after_checkbox = False

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if self._skipping:
            return
        attributes = dict(attrs)
        classes = set((attributes.get("class") or "").split())
        if classes & _SKIP_CLASSES:
            self._skipping = tag
        elif tag in _BLOCK_TAGS:
            self.parts.append("\n")
        elif tag in _CELL_TAGS:
            self.parts.append(" ")
        elif tag == "img":
            alt = attributes.get("alt")
            if alt:
                self.parts.append(alt)
        elif tag == "input" and attributes.get("type") == "checkbox":
            self._after_checkbox = True

    def handle_endtag(self, tag: str) -> None:
        if self._skipping:
            if tag == self._skipping:
                self._skipping = None
            return
        if tag in _BLOCK_TAGS:
            self.parts.append("\n")

    def handle_data(self, data: str) -> None:
        if self._skipping:
            return
        if self._after_checkbox:
            # Task-list text follows its checkbox after a separating space
            data = data.lstrip()
            self._after_checkbox = False
        self.parts.append(data)

    def text(self) -> str:
        lines = (line.rstrip() for line in "".join(self.parts).splitlines())
        return "\n".join(line for line in lines if line.strip())


class MarkupRenderer:
    """Converts note markup to display HTML and to a plain-text projection."""

    def __init__(self, config: RenderConfig) -> None:
        self.config = config

    def _markdown(self) -> markdown.Markdown:
        # Markdown instances keep per-document state; one per call keeps this thread-safe
        return markdown.Markdown(
            extensions=[
                *self.config.extensions,
                SafeMarkupExtension(allowed_schemes=self.config.allowed_url_schemes),
            ],
            output_format="html",
        )

    def _body(self, content: str) -> str:
        if self.config.strip_frontmatter and has_frontmatter(content):
            return parse_note(content)[1]
        return content

    def render(self, content: str) -> str:
        """Sanitized HTML for *content*."""
        try:
            return self._markdown().convert(self._body(content))
        except Exception:
            logger.exception("Markdown rendering failed, falling back to preformatted text")
            return f'<pre class="render-fallback">{html.escape(content)}</pre>'

    def plain_text(self, content: str) -> str:
        """Visible words of *content* with formatting removed, one block per line."""
        try:
            collector = _TextCollector()
            collector.feed(self._markdown().convert(self._body(content)))
            collector.close()
            return collector.text()
        except Exception:
            logger.exception("Plain-text extraction failed, returning raw content")
            return content
