"""
Pytest fixtures for newsletter export tests.
"""

from io import BytesIO
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from newsletter_export.config import state
from newsletter_export.fetcher import Fetcher
from newsletter_export.models import PostContent
from newsletter_export.schemas import PostSummary
from newsletter_export.server import app


@pytest.fixture
def make_summary():
    """Factory for discovery-time post summaries."""
    def _make(post_id: str = "p1", title: str = "Post One", published_at: str = "2024-01-01T00:00:00Z", **kwargs):
        return PostSummary(
            id=post_id,
            title=title,
            published_at=published_at,
            url=kwargs.pop("url", f"https://example.com/p/{post_id}"),
            **kwargs,
        )
    return _make


@pytest.fixture
def make_content(make_summary):
    """Factory for extracted post content."""
    def _make(post_id: str = "p1", title: str = "Post One", body: str = "<p>Body text.</p>", **kwargs):
        summary = make_summary(post_id, title, **kwargs)
        return PostContent(
            summary=summary,
            plain_text="Body text.",
            epub_body=body,
        )
    return _make


@pytest.fixture
def post_page():
    """Factory for a minimal post page with an article body."""
    def _make(title: str = "Page Title", body: str = "<p>Article text.</p>", head: str = "") -> str:
        return f"""<html><head>
<meta property="og:title" content="{title}"/>
{head}
</head><body>
<article><div class="available-content">{body}</div></article>
</body></html>"""
    return _make


@pytest.fixture
def png_bytes():
    """A real 2x2 PNG image."""
    buf = BytesIO()
    Image.new("RGB", (2, 2), color=(200, 10, 10)).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def fake_fetcher():
    """Fetcher double with awaitable fetch methods."""
    fetcher = MagicMock(spec=Fetcher)
    fetcher.fetch_text = AsyncMock()
    fetcher.fetch_bytes = AsyncMock()
    return fetcher


@pytest.fixture
def client(fake_fetcher):
    """Create a test client with a fetcher double installed."""
    original_fetcher = state.fetcher
    state.fetcher = fake_fetcher

    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client

    state.fetcher = original_fetcher
