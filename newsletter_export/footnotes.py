"""
Footnote Reconciler - Pair in-body footnote references with footnote bodies.

Publishing themes follow no single footnote convention, so candidate bodies come
from the first strategy whose probe matches the document:
- FlatBlockStrategy: one self-contained block per note, with number and content children
- ContainerStrategy: a footnotes/endnotes section whose list items are the notes
- BacklinkStrategy: any block carrying an explicit "back to article" marker

References are matched to candidates by exact id, then by alphanumeric key, and
only when nothing matched at all, by position. Notes are numbered in the order
their reference first appears in the body.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass

from bs4 import BeautifulSoup, NavigableString, Tag

from .models import FootnoteCandidate, FootnoteEntry, ReconciledBody
from .utils import normalize_whitespace

logger = logging.getLogger(__name__)

FOOTNOTE_TOKEN = "[[FN:{number}]]"
FOOTNOTE_TOKEN_RE = re.compile(r"\[\[FN:(\d+)\]\]")

CONTAINER_TAGS = ("section", "div", "aside", "ol", "ul")
BACKLINK_BLOCK_TAGS = ("li", "p", "div")

# Class words naming a part of a single note, never a container
NOTE_PART_PREFIXES = (
    "footnote-content",
    "footnote-anchor",
    "footnote-number",
    "footnote-ref",
    "footnote-backref",
    "footnote-back",
)
_CONTAINER_CLASS_RE = re.compile(r"^(?:foot|end)notes?(?:$|[-_])|[-_](?:foot|end)notes$")
_SIGNAL_RE = re.compile(r"footnote|endnote")

BACKLINK_TEXTS = {
    "↩",
    "&#8617;",
    "←",
    "^",
    "back",
    "[back]",
    "return",
    "back to content",
    "back to article",
    "back to text",
    "return to article",
    "return to content",
}
TRIVIAL_FOOTNOTE_TEXTS = {
    "back",
    "return",
    "back to content",
    "return to article",
    "return to content",
    "see above",
}

_LEADING_NUMBER_RE = re.compile(r"^\s*(?:\[\d+\]|\d+\s*[.)])\s*")
_TRAILING_BACKLINK_RE = re.compile(
    r"(?:↩[\ufe0e\ufe0f]?|&#8617;|&#x21a9;|&larr;|←|\[back\]|back to (?:content|article|text)"
    r"|return to (?:article|content))\s*$",
    re.I,
)

# Tag stream tokenizer used for depth-aware container removal
_TOKEN_RE = re.compile(
    r"<!--.*?-->"
    r"|<(?P<close>/)?(?P<name>[a-zA-Z][a-zA-Z0-9:-]*)"
    r"(?P<attrs>(?:\s+[^\s\"'>/=]+(?:\s*=\s*(?:\"[^\"]*\"|'[^']*'|[^\s\"'>]+))?)*)"
    r"\s*(?P<selfclose>/)?>",
    re.S,
)
_ATTR_RE = re.compile(r"""([^\s"'>/=]+)(?:\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s"'>]+)))?""")
_HREF_RE = re.compile(r"""href\s*=\s*["']([^"']*)["']""", re.I)

VOID_TAGS = frozenset({
    "area", "base", "br", "col", "embed", "hr", "img", "input",
    "link", "meta", "param", "source", "track", "wbr",
})


# ─────────────────────────────────────────────────────────────
# Identifier helpers
# ─────────────────────────────────────────────────────────────

def fragment_id(href: str | None) -> str | None:
    """Return the fragment of an href ('#x' or 'https://...#x'), or None."""
    if not href or "#" not in href:
        return None
    target = href.rsplit("#", 1)[1].strip()
    return target or None


def footnote_key(value: str) -> str:
    """Lowercase alphanumeric-only form of an identifier."""
    return "".join(ch for ch in value.lower() if ch.isalnum())


def is_reference_target(target: str) -> bool:
    """Whether a fragment id names a footnote body rather than a reference."""
    lower = target.lower()
    if "footnote-anchor" in lower or "ref" in lower:
        return False
    return "footnote" in lower or "endnote" in lower or lower.startswith("fn")


def _class_words(attrs: dict) -> list[str]:
    value = attrs.get("class") or []
    if isinstance(value, str):
        value = value.split()
    return [word.lower() for word in value]


def _attr_text(attrs: dict, name: str) -> str:
    value = attrs.get(name) or ""
    if isinstance(value, list):
        value = " ".join(value)
    return value.lower()


def is_flat_footnote_block(name: str, attrs: dict) -> bool:
    """A self-contained single-note block such as <div class="footnote">."""
    if name != "div":
        return False
    if _attr_text(attrs, "data-component-name") == "footnotetodom":
        return True
    return "footnote" in _class_words(attrs)


def is_footnote_container(name: str, attrs: dict) -> bool:
    """A section or list that holds several notes."""
    if name not in CONTAINER_TAGS or is_flat_footnote_block(name, attrs):
        return False

    element_id = _attr_text(attrs, "id")
    if _SIGNAL_RE.search(element_id) and "anchor" not in element_id and "ref" not in element_id:
        return True
    for word in _class_words(attrs):
        if word.startswith(NOTE_PART_PREFIXES):
            continue
        if _CONTAINER_CLASS_RE.search(word):
            return True
    if _SIGNAL_RE.search(_attr_text(attrs, "epub:type")):
        return True
    return "doc-endnotes" in _attr_text(attrs, "role") or "doc-footnotes" in _attr_text(attrs, "role")


# ─────────────────────────────────────────────────────────────
# Candidate text
# ─────────────────────────────────────────────────────────────

def cleanup_footnote_text(value: str) -> str:
    """Collapse whitespace, drop a leading note number and trailing back-links."""
    text = normalize_whitespace(value)
    text = _LEADING_NUMBER_RE.sub("", text, count=1)
    while _TRAILING_BACKLINK_RE.search(text):
        stripped = _TRAILING_BACKLINK_RE.sub("", text).strip()
        if stripped == text:
            break
        text = stripped
    return text.strip()


def is_meaningful_footnote_text(value: str) -> bool:
    """False for empty, purely numeric, or trivial back-link text."""
    lower = value.strip().lower()
    start, end = 0, len(lower)
    while start < end and not lower[start].isalnum():
        start += 1
    while end > start and not lower[end - 1].isalnum():
        end -= 1
    normalized = lower[start:end].strip()
    if not normalized:
        return False
    if normalized in TRIVIAL_FOOTNOTE_TEXTS:
        return False
    return not normalized.isdigit()


def _is_backlink(anchor: Tag) -> bool:
    """An anchor leading from a note back to its reference."""
    classes = _class_words(anchor.attrs)
    if any(word.startswith("footnote-back") for word in classes):
        return True
    target = (fragment_id(anchor.get("href")) or "").lower()
    if target.startswith(("fnref", "footnote-ref", "ref", "footnote-anchor")):
        return True
    text = anchor.get_text(strip=True).strip("\ufe0e\ufe0f").lower()
    return text in BACKLINK_TEXTS


def _is_navigation_anchor(anchor: Tag) -> bool:
    if _is_backlink(anchor):
        return True
    if "footnote-number" in _class_words(anchor.attrs):
        return True
    element_id = _attr_text(anchor.attrs, "id")
    return "fnref" in element_id or "footnote-ref" in element_id


def _text_without_navigation(element: Tag) -> str:
    fragment = BeautifulSoup(str(element), "html.parser")
    for anchor in fragment.find_all("a"):
        if _is_navigation_anchor(anchor):
            anchor.decompose()
    return cleanup_footnote_text(fragment.get_text(" "))


def _element_ids(element: Tag) -> set[str]:
    ids = set()
    own = (element.get("id") or "").strip()
    if own:
        ids.add(own)
    for node in element.find_all(id=True):
        value = node["id"].strip()
        if value:
            ids.add(value)
    return ids


def _href_targets(element: Tag) -> set[str]:
    targets = set()
    for anchor in element.find_all("a", href=True):
        target = fragment_id(anchor["href"])
        if target:
            targets.add(target)
    return targets


def build_candidate(element: Tag, text_source: Tag | None = None) -> FootnoteCandidate | None:
    """Build a candidate from a block; None when its text is not meaningful."""
    text = _text_without_navigation(text_source or element)
    if not is_meaningful_footnote_text(text):
        return None
    return FootnoteCandidate(
        ids=frozenset(_element_ids(element)),
        href_targets=frozenset(_href_targets(element)),
        text=text,
    )


def _has_ancestor_in(element: Tag, group: list[Tag]) -> bool:
    return any(parent is other for parent in element.parents for other in group)


# ─────────────────────────────────────────────────────────────
# Candidate strategies
# ─────────────────────────────────────────────────────────────

class FootnoteStrategy(ABC):
    """Base class for footnote candidate strategies."""

    name: str = "base"

    @abstractmethod
    def can_handle(self, soup: BeautifulSoup) -> bool:
        """Capability probe: does the document use this convention?"""
        pass

    @abstractmethod
    def collect(self, soup: BeautifulSoup) -> list[FootnoteCandidate]:
        """Collect candidate note bodies in document order."""
        pass


class FlatBlockStrategy(FootnoteStrategy):
    """
    One block per note, no shared container.

    Each note is a <div class="footnote"> holding a number anchor
    (<a class="footnote-number" id="footnote-1-...">) and a
    <div class="footnote-content"> with the text.
    """

    name = "flat_block"

    def _blocks(self, soup: BeautifulSoup) -> list[Tag]:
        blocks = [div for div in soup.find_all("div") if is_flat_footnote_block(div.name, div.attrs)]
        return [block for block in blocks if not _has_ancestor_in(block, blocks)]

    def can_handle(self, soup: BeautifulSoup) -> bool:
        return bool(self._blocks(soup))

    def collect(self, soup: BeautifulSoup) -> list[FootnoteCandidate]:
        result = []
        for block in self._blocks(soup):
            content = block.select_one(".footnote-content")
            candidate = build_candidate(block, text_source=content)
            if candidate:
                result.append(candidate)
        return result


class ContainerStrategy(FootnoteStrategy):
    """A footnotes/endnotes section (by id, class, epub:type or role) whose <li> items are notes."""

    name = "container"

    def _containers(self, soup: BeautifulSoup) -> list[Tag]:
        found = [tag for tag in soup.find_all(CONTAINER_TAGS) if is_footnote_container(tag.name, tag.attrs)]
        return [tag for tag in found if not _has_ancestor_in(tag, found)]

    def can_handle(self, soup: BeautifulSoup) -> bool:
        return bool(self._containers(soup))

    def collect(self, soup: BeautifulSoup) -> list[FootnoteCandidate]:
        result = []
        for container in self._containers(soup):
            for item in container.find_all("li"):
                parent_item = item.find_parent("li")
                if parent_item is not None and any(p is container for p in parent_item.parents):
                    continue
                candidate = build_candidate(item)
                if candidate:
                    result.append(candidate)
        return result


class BacklinkStrategy(FootnoteStrategy):
    """
    Fallback: blocks with an explicit back-to-article marker near a fragment link.

    Only the innermost marked blocks are kept, so a wrapper around the notes
    is never mistaken for a note.
    """

    name = "backlink"

    def can_handle(self, soup: BeautifulSoup) -> bool:
        return True

    @staticmethod
    def _has_backlink(block: Tag) -> bool:
        for anchor in block.find_all("a", href=True):
            if not fragment_id(anchor["href"]):
                continue
            if _is_backlink(anchor):
                return True
        return "back to content" in block.get_text(" ").lower()

    def collect(self, soup: BeautifulSoup) -> list[FootnoteCandidate]:
        marked = [block for block in soup.find_all(BACKLINK_BLOCK_TAGS) if self._has_backlink(block)]
        marked_ids = {id(block) for block in marked}
        result = []
        for block in marked:
            if any(id(inner) in marked_ids for inner in block.find_all(BACKLINK_BLOCK_TAGS)):
                continue
            if block.name != "li" and len(block.find_all("li", limit=2)) > 1:
                continue
            candidate = build_candidate(block)
            if candidate:
                result.append(candidate)
        return result


# Probed in order; the flat-block form takes precedence over structured containers
FOOTNOTE_STRATEGIES: tuple[FootnoteStrategy, ...] = (
    FlatBlockStrategy(),
    ContainerStrategy(),
    BacklinkStrategy(),
)


def collect_candidates(soup: BeautifulSoup) -> tuple[str | None, list[FootnoteCandidate]]:
    """Run the first strategy that applies and yields candidates."""
    for strategy in FOOTNOTE_STRATEGIES:
        if not strategy.can_handle(soup):
            continue
        candidates = strategy.collect(soup)
        if candidates:
            return strategy.name, candidates
    return None, []


# ─────────────────────────────────────────────────────────────
# Reference targets and matching
# ─────────────────────────────────────────────────────────────

def collect_reference_targets(soup: BeautifulSoup) -> list[str]:
    """Fragment ids referenced by in-body footnote links, in order of first appearance."""
    targets = []
    seen = set()
    for anchor in soup.find_all("a", href=True):
        target = fragment_id(anchor["href"])
        if not target:
            continue
        lower = target.lower()
        is_anchor_link = "footnote-anchor" in _class_words(anchor.attrs)
        if not (is_anchor_link or is_reference_target(target)):
            continue
        if "ref" in lower or "footnote-anchor" in lower:
            continue
        if lower not in seen:
            seen.add(lower)
            targets.append(target)
    return targets


def _matches_exact(candidate: FootnoteCandidate, target: str) -> bool:
    lower = target.lower()
    return any(value.lower() == lower for value in candidate.ids | candidate.href_targets)


def _matches_key(candidate: FootnoteCandidate, target: str) -> bool:
    key = footnote_key(target)
    if not key:
        return False
    return any(footnote_key(value) == key for value in candidate.ids | candidate.href_targets)


def match_footnotes(targets: list[str], candidates: list[FootnoteCandidate]) -> list[FootnoteEntry]:
    """
    Greedily pair reference targets with candidates; each candidate is used at most once.

    Exact id equality is tried across all free candidates before the alphanumeric
    key comparison. If nothing matched, the k-th target pairs with the k-th candidate.
    """
    notes: list[FootnoteEntry] = []
    used: set[int] = set()

    for target in targets:
        index = None
        for matcher in (_matches_exact, _matches_key):
            index = next(
                (i for i, candidate in enumerate(candidates) if i not in used and matcher(candidate, target)),
                None,
            )
            if index is not None:
                break
        if index is None:
            continue
        used.add(index)
        text = candidates[index].text
        if not is_meaningful_footnote_text(text):
            continue
        notes.append(FootnoteEntry(id=target, number=len(notes) + 1, text=text))

    if notes:
        return notes

    for target, candidate in zip(targets, candidates):
        if is_meaningful_footnote_text(candidate.text):
            notes.append(FootnoteEntry(id=target, number=len(notes) + 1, text=candidate.text))
    return notes


# ─────────────────────────────────────────────────────────────
# Body rewriting
# ─────────────────────────────────────────────────────────────

@dataclass
class _TagToken:
    name: str
    closing: bool
    self_closing: bool
    attrs: dict
    start: int
    end: int


def _tokenize_tags(html: str) -> list[_TagToken]:
    tokens = []
    for match in _TOKEN_RE.finditer(html):
        if match.group("name") is None:
            continue  # comment
        name = match.group("name").lower()
        attrs = {}
        for attr in _ATTR_RE.finditer(match.group("attrs") or ""):
            value = next((v for v in attr.groups()[1:] if v is not None), "")
            attrs[attr.group(1).lower()] = value
        tokens.append(_TagToken(
            name=name,
            closing=bool(match.group("close")),
            self_closing=bool(match.group("selfclose")) or name in VOID_TAGS,
            attrs=attrs,
            start=match.start(),
            end=match.end(),
        ))
    return tokens


def _find_closing_index(tokens: list[_TagToken], open_index: int) -> int | None:
    name = tokens[open_index].name
    depth = 1
    for index in range(open_index + 1, len(tokens)):
        token = tokens[index]
        if token.name != name or token.self_closing:
            continue
        depth += -1 if token.closing else 1
        if depth == 0:
            return index
    return None


def _links_to_any(fragment: str, note_ids: set[str]) -> bool:
    for href in _HREF_RE.findall(fragment):
        target = fragment_id(href)
        if target and target.lower() in note_ids:
            return True
    return False


def strip_footnote_containers(html: str, note_ids: set[str] | None = None) -> str:
    """
    Remove footnote containers and flat note blocks from raw HTML.

    Walks the tag stream counting nesting depth of the opening tag's name to find
    its matching close, so nested blocks of the same tag are handled. Blocks that
    link to one of note_ids hold in-body references and are left in place, as are
    blocks that never close.
    """
    note_ids = {value.lower() for value in (note_ids or set())}
    tokens = _tokenize_tags(html)
    parts = []
    cursor = 0
    index = 0
    while index < len(tokens):
        token = tokens[index]
        is_note_markup = not token.closing and not token.self_closing and (
            is_flat_footnote_block(token.name, token.attrs)
            or is_footnote_container(token.name, token.attrs)
        )
        if is_note_markup:
            close_index = _find_closing_index(tokens, index)
            if close_index is not None:
                end = tokens[close_index].end
                if not _links_to_any(html[token.start:end], note_ids):
                    parts.append(html[cursor:token.start])
                    cursor = end
                    index = close_index + 1
                    continue
        index += 1
    parts.append(html[cursor:])
    return "".join(parts)


def _only_child(element: Tag, parent: Tag) -> bool:
    meaningful = [
        child for child in parent.contents
        if not (isinstance(child, NavigableString) and not child.strip())
    ]
    return len(meaningful) == 1 and meaningful[0] is element


def replace_references(html: str, footnotes: list[FootnoteEntry]) -> str:
    """Replace every in-body link to a confirmed note with its placeholder token."""
    if not footnotes:
        return html

    numbers: dict[str, int] = {}
    for note in footnotes:
        numbers[note.id.lower()] = note.number
    for note in footnotes:
        key = footnote_key(note.id)
        if key:
            numbers.setdefault(key, note.number)

    soup = BeautifulSoup(html, "html.parser")
    for anchor in soup.find_all("a", href=True):
        target = fragment_id(anchor["href"])
        if not target:
            continue
        number = numbers.get(target.lower())
        if number is None:
            key = footnote_key(target)
            number = numbers.get(key) if key else None
        if number is None:
            continue

        replaced = anchor
        parent = anchor.parent
        if isinstance(parent, Tag) and parent.name == "sup" and _only_child(anchor, parent):
            replaced = parent
        replaced.replace_with(NavigableString(FOOTNOTE_TOKEN.format(number=number)))
    return str(soup)


def reconcile_footnotes(body_html: str) -> ReconciledBody:
    """
    Detect footnotes in a body fragment and rewrite the body with placeholder tokens.

    Never raises: any failure degrades to the untouched body with no footnotes.
    """
    try:
        soup = BeautifulSoup(body_html, "html.parser")
        targets = collect_reference_targets(soup)
        strategy, candidates = collect_candidates(soup)
        notes = match_footnotes(targets, candidates)
        logger.debug(
            f"Footnotes: {len(targets)} reference(s), {len(candidates)} candidate(s) "
            f"via {strategy}, {len(notes)} confirmed"
        )
        if not notes:
            return ReconciledBody(html=body_html, footnotes=(), strategy=strategy)

        body = strip_footnote_containers(body_html, {note.id for note in notes})
        body = replace_references(body, notes)
        return ReconciledBody(html=body, footnotes=tuple(notes), strategy=strategy)
    except Exception as e:
        logger.warning(f"Footnote reconciliation failed, keeping body as is: {e}")
        return ReconciledBody(html=body_html, footnotes=(), strategy=None)
