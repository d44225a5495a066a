"""
Content Extractor - Resolve a post page into a refined summary and rendered body.

Each metadata field is resolved by an ordered tuple of independent probes,
tried left to right; the first non-empty value wins. New theme heuristics are
added by appending a probe. When no probe matches, the discovery-time value is
kept and the fallback is logged at debug level.
"""

import json
import logging
import re
from typing import Callable

from bs4 import BeautifulSoup

from .fetcher import Fetcher
from .models import PostContent
from .renderer import process_body_for_exports
from .schemas import PostSummary
from .utils import escape_xml, normalize_whitespace

logger = logging.getLogger(__name__)

Probe = Callable[[BeautifulSoup], "str | None"]

READING_TIME_RE = re.compile(r"(\d+)\s*min\s*read", re.I)

# Platform placeholders that are never a real byline
PLACEHOLDER_AUTHORS = {"substack", "unknown"}

# First non-empty match is the post body
BODY_SELECTORS = (
    ".available-content",
    "article .body",
    "article .markup",
    ".body.markup",
    "article",
    "main",
)

# Page chrome removed from the body before rendering
UI_CHROME_SELECTORS = (
    ".subscribe-widget",
    ".subscription-widget-wrap",
    ".subscription-widget",
    ".post-ufi",
    ".share-dialog",
    ".paywall",
)


# ─────────────────────────────────────────────────────────────
# Probes
# ─────────────────────────────────────────────────────────────

def meta_property(prop: str) -> Probe:
    def probe(soup: BeautifulSoup) -> str | None:
        if tag := soup.find("meta", attrs={"property": prop}):
            return (tag.get("content") or "").strip() or None
        return None
    return probe


def meta_name(name: str) -> Probe:
    def probe(soup: BeautifulSoup) -> str | None:
        if tag := soup.find("meta", attrs={"name": name}):
            return (tag.get("content") or "").strip() or None
        return None
    return probe


def selector_text(selector: str) -> Probe:
    def probe(soup: BeautifulSoup) -> str | None:
        if node := soup.select_one(selector):
            return normalize_whitespace(node.get_text(" ")) or None
        return None
    return probe


def time_datetime(soup: BeautifulSoup) -> str | None:
    if time_elem := soup.find("time", datetime=True):
        return time_elem["datetime"].strip() or None
    return None


def _json_ld_documents(soup: BeautifulSoup) -> list:
    documents = []
    for script in soup.find_all("script", type="application/ld+json"):
        body = (script.string or script.get_text() or "").strip()
        if not body:
            continue
        try:
            documents.append(json.loads(body))
        except json.JSONDecodeError:
            continue
    return documents


def _collect_author_names(value, output: list[str]) -> None:
    if isinstance(value, dict):
        author = value.get("author")
        if isinstance(author, str):
            output.append(author)
        elif isinstance(author, dict) and isinstance(author.get("name"), str):
            output.append(author["name"])
        elif isinstance(author, list):
            for item in author:
                if isinstance(item, dict) and isinstance(item.get("name"), str):
                    output.append(item["name"])
        for child in value.values():
            _collect_author_names(child, output)
    elif isinstance(value, list):
        for item in value:
            _collect_author_names(item, output)


def json_ld_author(soup: BeautifulSoup) -> str | None:
    for document in _json_ld_documents(soup):
        names: list[str] = []
        _collect_author_names(document, names)
        for name in names:
            if cleaned := normalize_whitespace(name):
                return cleaned
    return None


def json_ld_value(key: str) -> Probe:
    """Top-level string value from the first JSON-LD block that has it."""
    def probe(soup: BeautifulSoup) -> str | None:
        for document in _json_ld_documents(soup):
            items = document if isinstance(document, list) else [document]
            for item in items:
                if isinstance(item, dict) and isinstance(item.get(key), str) and item[key].strip():
                    return item[key].strip()
        return None
    return probe


def run_probes(
    probes: tuple[Probe, ...],
    soup: BeautifulSoup,
    accept: Callable[[str], bool] | None = None,
) -> str | None:
    """Evaluate probes in order and return the first accepted non-empty value."""
    for probe in probes:
        value = probe(soup)
        if not value:
            continue
        if accept and not accept(value):
            continue
        return value
    return None


TITLE_PROBES: tuple[Probe, ...] = (
    meta_property("og:title"),
    meta_name("twitter:title"),
    json_ld_value("headline"),
    selector_text("h1.post-title"),
    selector_text("h1"),
)

AUTHOR_PROBES: tuple[Probe, ...] = (
    meta_name("author"),
    meta_name("parsely-author"),
    meta_property("article:author"),
    meta_property("og:article:author"),
    selector_text("[itemprop='author']"),
    selector_text("a[rel='author']"),
    selector_text(".pencraft .byline-name"),
    selector_text(".post-meta .author"),
    selector_text(".author-name"),
    json_ld_author,
)

PUBLISHED_PROBES: tuple[Probe, ...] = (
    meta_property("article:published_time"),
    json_ld_value("datePublished"),
    time_datetime,
)

SUBTITLE_PROBES: tuple[Probe, ...] = (
    meta_property("og:description"),
    meta_name("description"),
    selector_text("h3.subtitle"),
)

COVER_PROBES: tuple[Probe, ...] = (
    meta_property("og:image"),
    meta_name("twitter:image"),
)


def is_real_author(value: str) -> bool:
    """Reject empty values and platform placeholders."""
    cleaned = normalize_whitespace(value)
    return bool(cleaned) and cleaned.lower() not in PLACEHOLDER_AUTHORS


def extract_author(soup: BeautifulSoup) -> str | None:
    """Run the author cascade, skipping placeholder bylines."""
    value = run_probes(AUTHOR_PROBES, soup, accept=is_real_author)
    return normalize_whitespace(value) if value else None


def extract_tags(soup: BeautifulSoup) -> list[str]:
    tags = []
    for tag in soup.find_all("meta", attrs={"property": "article:tag"}):
        if value := (tag.get("content") or "").strip():
            tags.append(value)
    return tags


def extract_body_html(soup: BeautifulSoup) -> str | None:
    """Inner HTML of the first non-empty content container."""
    for selector in BODY_SELECTORS:
        node = soup.select_one(selector)
        if node is None:
            continue
        for chrome in UI_CHROME_SELECTORS:
            for elem in node.select(chrome):
                elem.decompose()
        inner = node.decode_contents()
        if inner.strip():
            return inner
    return None


def _fallback_body(soup: BeautifulSoup) -> str:
    for selector in ("main", "body"):
        if node := soup.select_one(selector):
            if text := normalize_whitespace(node.get_text(" ")):
                return f"<p>{escape_xml(text)}</p>"
    return "<p>No content extracted.</p>"


def parse_reading_time(html: str) -> int | None:
    if match := READING_TIME_RE.search(html):
        return int(match.group(1))
    return None


# ─────────────────────────────────────────────────────────────
# Extraction
# ─────────────────────────────────────────────────────────────

def _resolve(name: str, probes: tuple[Probe, ...], soup: BeautifulSoup, fallback):
    value = run_probes(probes, soup)
    if value is None:
        logger.debug(f"No page-level {name} found; using discovery value")
        return fallback
    return value


def extract_post(html: str, summary: PostSummary) -> PostContent:
    """
    Build PostContent from a fetched page.

    Never raises on markup variance: each field falls back to the summary value
    and the body falls back to a single paragraph of page text.
    """
    soup = BeautifulSoup(html, "html.parser")

    title = _resolve("title", TITLE_PROBES, soup, summary.title)
    author = extract_author(soup)
    if author is None:
        logger.debug(f"No page-level author found for {summary.url}; using discovery value")
        author = summary.author
    published_at = _resolve("publish time", PUBLISHED_PROBES, soup, summary.published_at)
    subtitle = _resolve("subtitle", SUBTITLE_PROBES, soup, summary.subtitle)
    cover = _resolve("cover", COVER_PROBES, soup, summary.cover_image_url)
    tags = extract_tags(soup) or summary.tags
    reading_time = parse_reading_time(html)

    body_html = extract_body_html(soup)
    if body_html is None:
        logger.debug(f"No content container matched for {summary.url}; using page text")
        body_html = _fallback_body(soup)

    rendered = process_body_for_exports(body_html)

    refined = summary.model_copy(update={
        "title": title,
        "author": author,
        "published_at": published_at,
        "subtitle": subtitle,
        "cover_image_url": cover,
        "tags": tags,
    })

    return PostContent(
        summary=refined,
        plain_text=rendered.plain_text,
        epub_body=rendered.epub_body,
        reading_time_minutes=reading_time,
        summary_text=summary.summary,
    )


async def fetch_post_content(fetcher: Fetcher, summary: PostSummary, retries: int) -> PostContent:
    """
    Fetch one post page and extract it.

    Raises:
        TransportError: If the page cannot be fetched
    """
    html = await fetcher.fetch_text(summary.url, retries)
    return extract_post(html, summary)
