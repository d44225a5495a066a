"""
Renderer - Turn a reconciled post body into flat text and e-book markup.

Both outputs are driven by the same FootnoteEntry list, so the flat-text
[n] markers and the markup note references always carry identical numbers.
"""

import re

from bs4 import BeautifulSoup, Comment, NavigableString, Tag

from .footnotes import FOOTNOTE_TOKEN_RE, reconcile_footnotes
from .models import FootnoteEntry, RenderedBody
from .utils import escape_xml, normalize_plain_text

_WHITESPACE_RE = re.compile(r"\s+")

BLOCK_TAGS = frozenset({
    "address", "article", "aside", "blockquote", "dd", "details", "div", "dl", "dt",
    "figcaption", "figure", "footer", "h1", "h2", "h3", "h4", "h5", "h6", "header",
    "hr", "li", "main", "nav", "ol", "p", "pre", "section", "summary", "table",
    "tr", "ul",
})

# Dropped from text output entirely
SKIPPED_TEXT_TAGS = frozenset({
    "script", "style", "noscript", "template", "head", "svg", "button", "iframe",
})

# Not portable to e-book readers
UNSAFE_MARKUP_TAGS = (
    "script", "style", "iframe", "video", "audio", "noscript", "embed", "object",
    "svg", "button", "form", "input", "source", "track", "template",
)

KEPT_NAME_PREFIXES = ("epub", "xml")

# Any one of these means the markup still has paragraph structure
STRUCTURAL_TAGS = (
    "p", "div", "section", "blockquote", "h1", "h2", "h3", "h4", "h5", "h6",
    "ul", "ol", "pre", "table", "figure",
)


# ─────────────────────────────────────────────────────────────
# Flat text
# ─────────────────────────────────────────────────────────────

def _collect_text(node, parts: list[str], preformatted: bool = False) -> None:
    if isinstance(node, Comment):
        return
    if isinstance(node, NavigableString):
        text = str(node)
        if not preformatted:
            text = _WHITESPACE_RE.sub(" ", text)
        parts.append(text)
        return
    if not isinstance(node, Tag):
        return

    name = node.name
    if name in SKIPPED_TEXT_TAGS:
        return
    if name == "br":
        parts.append("\n")
        return

    is_block = name in BLOCK_TAGS
    if is_block:
        parts.append("\n\n")
    for child in node.children:
        _collect_text(child, parts, preformatted or name == "pre")
    if name in ("td", "th"):
        parts.append(" ")
    if is_block:
        parts.append("\n\n")


def html_to_text(html: str) -> str:
    """Convert an HTML fragment to text; blocks become blank-line separated paragraphs."""
    soup = BeautifulSoup(html, "html.parser")
    parts: list[str] = []
    _collect_text(soup, parts)

    return normalize_plain_text("".join(parts))


def render_plain_text(html_with_tokens: str, footnotes: list[FootnoteEntry]) -> str:
    """Flat text with [n] markers and a trailing Footnotes block."""
    text = html_to_text(html_with_tokens)
    text = FOOTNOTE_TOKEN_RE.sub(lambda m: f"[{m.group(1)}]", text)
    if not footnotes:
        return text

    lines = [f"[{note.number}] {note.text}" for note in sorted(footnotes, key=lambda n: n.number)]
    return f"{text}\n\nFootnotes\n" + "\n".join(lines)


# ─────────────────────────────────────────────────────────────
# Markup
# ─────────────────────────────────────────────────────────────

def _is_foreign_name(name: str) -> bool:
    """Prefixed names other than epub:/xml: have no bound namespace in a chapter."""
    prefix, sep, _ = name.partition(":")
    return bool(sep) and prefix not in KEPT_NAME_PREFIXES


def sanitize_markup(html: str) -> BeautifulSoup:
    """Drop non-portable elements and comments; unwrap foreign-prefixed tags like Word's <o:p>."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup.find_all(UNSAFE_MARKUP_TAGS):
        tag.decompose()
    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()
    for tag in soup.find_all(lambda t: _is_foreign_name(t.name)):
        tag.unwrap()
    for tag in soup.find_all(True):
        for attr in [name for name in tag.attrs if _is_foreign_name(name) or name.startswith("xmlns")]:
            del tag[attr]
    return soup


def _paragraphs_from_text(text: str) -> str:
    blocks = [block.strip() for block in text.split("\n\n") if block.strip()]
    if not blocks:
        return "<p>No content available.</p>"
    return "\n".join(f"<p>{escape_xml(block).replace(chr(10), '<br/>')}</p>" for block in blocks)


def _note_reference(number: int, with_id: bool) -> str:
    id_attr = f' id="footnote-ref-{number}"' if with_id else ""
    return (
        f'<a class="footnote-ref" href="#footnote-{number}"{id_attr} epub:type="noteref">'
        f'<sup class="footnote-ref-num">{number}</sup></a>'
    )


def _footnotes_section(footnotes: list[FootnoteEntry]) -> str:
    items = [
        f'<li id="footnote-{note.number}">{escape_xml(note.text)} '
        f'<a class="footnote-backref" href="#footnote-ref-{note.number}" epub:type="backlink">[back]</a></li>'
        for note in sorted(footnotes, key=lambda n: n.number)
    ]
    return (
        '<section class="footnotes">\n<h2>Footnotes</h2>\n<ol>\n'
        + "\n".join(items)
        + "\n</ol>\n</section>"
    )


def render_epub_body(html_with_tokens: str, footnotes: list[FootnoteEntry]) -> str:
    """Sanitized XHTML body fragment with note references and a footnotes section."""
    soup = sanitize_markup(html_with_tokens)
    if soup.find(STRUCTURAL_TAGS) is None:
        body = _paragraphs_from_text(html_to_text(str(soup)))
    else:
        body = soup.decode(formatter="minimal")

    numbers = {note.number for note in footnotes}
    referenced: set[int] = set()

    def _replace(match):
        number = int(match.group(1))
        if number not in numbers:
            return match.group(0)
        first = number not in referenced
        referenced.add(number)
        return _note_reference(number, with_id=first)

    body = FOOTNOTE_TOKEN_RE.sub(_replace, body)
    if footnotes:
        body = f"{body}\n{_footnotes_section(footnotes)}"
    return body


def process_body_for_exports(body_html: str) -> RenderedBody:
    """Reconcile footnotes once and render both output formats from the result."""
    reconciled = reconcile_footnotes(body_html)
    footnotes = list(reconciled.footnotes)
    return RenderedBody(
        plain_text=render_plain_text(reconciled.html, footnotes),
        epub_body=render_epub_body(reconciled.html, footnotes),
        footnotes=reconciled.footnotes,
    )
