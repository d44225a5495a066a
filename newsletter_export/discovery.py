"""
Publication Discovery - Turn a publication URL into its identity and post list.

Handles:
- Publication URL normalization ('name' -> https://name.substack.com)
- RSS/Atom feed candidates, first usable one wins
- Archive page scraping when no feed is usable
- Filling a missing author or cover from the publication's home page
"""

import logging
from datetime import datetime, timedelta, timezone
from urllib.parse import urljoin, urlparse

import feedparser
from bs4 import BeautifulSoup

from .config import config
from .exceptions import ConfigurationError, DiscoveryError, TransportError
from .extractor import extract_author, meta_property
from .fetcher import Fetcher
from .schemas import PostSummary, PublicationInfo, PublicationResponse
from .utils import normalize_whitespace, parse_datetime_flexible

logger = logging.getLogger(__name__)

og_image = meta_property("og:image")


def normalize_publication_url(value: str) -> str:
    """
    Reduce user input to 'scheme://host[:port]'.

    Raises:
        ConfigurationError: If the input is empty or has no usable host
    """
    trimmed = (value or "").strip()
    if not trimmed:
        raise ConfigurationError("Publication URL cannot be empty.")

    if trimmed.startswith(("http://", "https://")):
        candidate = trimmed
    elif "." in trimmed:
        candidate = f"https://{trimmed}"
    else:
        candidate = f"https://{trimmed}.substack.com"

    try:
        parsed = urlparse(candidate)
        port = parsed.port
    except ValueError as e:
        raise ConfigurationError(f"Invalid publication URL: {e}") from e
    if not parsed.hostname:
        raise ConfigurationError("Publication URL must include a valid host.")

    base = f"{parsed.scheme}://{parsed.hostname}"
    if port:
        base += f":{port}"
    return base


def feed_candidates(base_url: str) -> list[str]:
    candidates = [f"{base_url}/feed", f"{base_url}/rss"]
    if "substack.com" in base_url:
        candidates.append(f"{base_url}/feed?source=desktop")
    return candidates


# ─────────────────────────────────────────────────────────────
# Feed path
# ─────────────────────────────────────────────────────────────

def _entry_published(entry) -> datetime:
    if parsed := entry.get("published_parsed") or entry.get("updated_parsed"):
        try:
            return datetime(*parsed[:6], tzinfo=timezone.utc)
        except (TypeError, ValueError):
            pass
    return parse_datetime_flexible(entry.get("published")) or datetime.now(timezone.utc)


def _entry_cover(entry) -> str | None:
    for enclosure in entry.get("enclosures") or []:
        if href := enclosure.get("href"):
            return href
    return None


def parse_feed(base_url: str, content: str) -> PublicationResponse | None:
    """
    Map a feed document to a publication response.

    Returns None when the document is not a feed or has no linked entries.
    """
    parsed = feedparser.parse(content)
    if parsed.bozo and not parsed.entries:
        logger.warning(f"Unparsable feed for {base_url}: {parsed.bozo_exception}")
        return None

    dated_posts = []
    for entry in parsed.entries:
        url = entry.get("link")
        if not url:
            continue
        published = _entry_published(entry)
        dated_posts.append((published, PostSummary(
            id=entry.get("id") or url,
            title=entry.get("title") or "Untitled post",
            published_at=published.isoformat(),
            url=url,
            author=entry.get("author"),
            cover_image_url=_entry_cover(entry),
            subtitle=entry.get("summary"),
        )))
    if not dated_posts:
        return None

    dated_posts.sort(key=lambda item: item[0], reverse=True)
    posts = [post for _, post in dated_posts]

    image = parsed.feed.get("image") or {}
    publication = PublicationInfo(
        url=base_url,
        title=parsed.feed.get("title") or "Untitled publication",
        author=next((post.author for post in posts if post.author), None),
        author_cover_url=image.get("href") or image.get("url"),
    )
    return PublicationResponse(publication=publication, posts=posts)


async def load_from_feed(fetcher: Fetcher, base_url: str) -> PublicationResponse | None:
    """Try each feed candidate in order; None when none is usable."""
    for feed_url in feed_candidates(base_url):
        try:
            content = await fetcher.fetch_text(feed_url, config.FEED_RETRIES)
        except TransportError as e:
            logger.warning(f"Feed candidate {feed_url} failed: {e}")
            continue
        if response := parse_feed(base_url, content):
            logger.info(f"Loaded {len(response.posts)} post(s) from feed {feed_url}")
            return response
    return None


# ─────────────────────────────────────────────────────────────
# Archive path
# ─────────────────────────────────────────────────────────────

def parse_archive(base_url: str, html: str, now: datetime | None = None) -> PublicationResponse:
    """
    Map an archive listing page to a publication response.

    Listing order is kept through synthetic timestamps, one second apart.

    Raises:
        DiscoveryError: If the page links to no posts
    """
    now = now or datetime.now(timezone.utc)
    soup = BeautifulSoup(html, "html.parser")

    title_tag = soup.find("title")
    title = normalize_whitespace(title_tag.get_text(" ")) if title_tag else ""
    author = extract_author(soup)

    posts = []
    seen = set()
    for anchor in soup.select("a[href*='/p/']"):
        full_url = urljoin(f"{base_url}/", anchor["href"])
        if full_url in seen:
            continue
        seen.add(full_url)
        link_text = normalize_whitespace(anchor.get_text(" "))
        if not link_text:
            continue
        posts.append(PostSummary(
            id=full_url,
            title=link_text,
            published_at=(now - timedelta(seconds=len(posts))).isoformat(),
            url=full_url,
            author=author,
        ))

    if not posts:
        raise DiscoveryError("Could not discover any posts from feed or archive.")

    publication = PublicationInfo(
        url=base_url,
        title=title or "Untitled publication",
        author=author,
        author_cover_url=og_image(soup),
    )
    return PublicationResponse(publication=publication, posts=posts)


async def load_from_archive(fetcher: Fetcher, base_url: str) -> PublicationResponse:
    archive_url = f"{base_url}/archive"
    try:
        html = await fetcher.fetch_text(archive_url, config.FEED_RETRIES)
    except TransportError as e:
        raise DiscoveryError(f"Could not discover any posts from feed or archive: {e}") from e
    response = parse_archive(base_url, html)
    logger.info(f"Loaded {len(response.posts)} post(s) from archive {archive_url}")
    return response


async def hydrate_publication_identity(fetcher: Fetcher, publication: PublicationInfo) -> PublicationInfo:
    """Fill a missing author or cover from the home page; failures leave it unchanged."""
    needs_author = not (publication.author or "").strip()
    needs_cover = not (publication.author_cover_url or "").strip()
    if not needs_author and not needs_cover:
        return publication

    try:
        html = await fetcher.fetch_text(publication.url, 1)
    except TransportError as e:
        logger.debug(f"Could not hydrate publication identity from {publication.url}: {e}")
        return publication

    soup = BeautifulSoup(html, "html.parser")
    updates = {}
    if needs_author:
        updates["author"] = extract_author(soup)
    if needs_cover:
        updates["author_cover_url"] = og_image(soup)
    return publication.model_copy(update=updates)


async def load_publication(fetcher: Fetcher, url: str) -> PublicationResponse:
    """
    Discover a publication's identity and posts: feed first, then the archive page.

    Raises:
        ConfigurationError: If the URL is unusable
        DiscoveryError: If neither path produced posts
    """
    base_url = normalize_publication_url(url)

    response = await load_from_feed(fetcher, base_url)
    if response is None:
        logger.info(f"No usable feed for {base_url}; falling back to archive")
        response = await load_from_archive(fetcher, base_url)

    publication = await hydrate_publication_identity(fetcher, response.publication)
    return PublicationResponse(publication=publication, posts=response.posts)
