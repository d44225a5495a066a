"""
Tests for cover decoding, sniffing and acquisition.
"""

import base64
from io import BytesIO

import pytest
from PIL import Image

from newsletter_export.cover import normalize_cover_asset, resolve_cover, sniff_media_type
from newsletter_export.exceptions import CoverError
from newsletter_export.models import CoverMode
from newsletter_export.schemas import ExportJobRequest


def image_bytes(fmt: str) -> bytes:
    buf = BytesIO()
    Image.new("RGB", (3, 3)).save(buf, format=fmt)
    return buf.getvalue()


def cover_request(tmp_path, **kwargs) -> ExportJobRequest:
    return ExportJobRequest(publication_title="Pub", output_dir=str(tmp_path), **kwargs)


class TestNormalizeCover:
    """Tests for media type resolution."""

    @pytest.mark.parametrize("fmt,media_type,extension", [
        ("PNG", "image/png", "png"),
        ("JPEG", "image/jpeg", "jpg"),
        ("GIF", "image/gif", "gif"),
    ])
    def test_sniffed_format_wins(self, fmt, media_type, extension):
        """Magic bytes decide the type, whatever the hint says."""
        asset = normalize_cover_asset(image_bytes(fmt), "image/webp")
        assert asset.media_type == media_type
        assert asset.extension == extension

    def test_hint_used_for_unknown_bytes(self):
        """Unrecognized bytes keep the declared type."""
        asset = normalize_cover_asset(b"not an image", "image/jpg")
        assert asset.media_type == "image/jpeg"
        assert asset.extension == "jpg"

    def test_unknown_hint_gets_generic_extension(self):
        """Unsupported declared types map to the 'img' extension."""
        asset = normalize_cover_asset(b"<svg/>", "image/svg+xml")
        assert asset.media_type == "image/svg+xml"
        assert asset.extension == "img"

    def test_no_hint_assumes_jpeg(self):
        """Without a hint, JPEG is assumed."""
        asset = normalize_cover_asset(b"\x00\x01\x02")
        assert asset.media_type == "image/jpeg"

    def test_empty_bytes_rejected(self):
        """Empty cover input is an error."""
        with pytest.raises(CoverError):
            normalize_cover_asset(b"")

    def test_malformed_declared_type_rejected(self):
        """A declared type that is not a type/subtype token pair is an error."""
        with pytest.raises(CoverError):
            normalize_cover_asset(b"not an image", 'image/x"<bad')

    def test_sniff_returns_none_for_garbage(self):
        """Non-image bytes are not identified."""
        assert sniff_media_type(b"plain text") is None


class TestResolveCover:
    """Tests for cover acquisition by mode."""

    @pytest.mark.asyncio
    async def test_custom_cover_decoded(self, tmp_path, fake_fetcher, png_bytes):
        """A custom data URL is decoded without fetching."""
        data_url = "data:image/png;base64," + base64.b64encode(png_bytes).decode()
        request = cover_request(tmp_path, cover_mode=CoverMode.CUSTOM, custom_cover_data_url=data_url)
        asset = await resolve_cover(request, fake_fetcher)
        assert asset.data == png_bytes
        assert asset.extension == "png"
        fake_fetcher.fetch_bytes.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_custom_cover_missing(self, tmp_path, fake_fetcher):
        """Custom mode without an image is an error."""
        request = cover_request(tmp_path, cover_mode=CoverMode.CUSTOM)
        with pytest.raises(CoverError):
            await resolve_cover(request, fake_fetcher)

    @pytest.mark.asyncio
    async def test_custom_cover_not_base64(self, tmp_path, fake_fetcher):
        """Non-base64 data URLs are rejected."""
        request = cover_request(
            tmp_path, cover_mode=CoverMode.CUSTOM, custom_cover_data_url="data:image/png,rawdata"
        )
        with pytest.raises(CoverError):
            await resolve_cover(request, fake_fetcher)

    @pytest.mark.asyncio
    async def test_custom_cover_bad_media_type(self, tmp_path, fake_fetcher):
        """A data URL declaring markup characters in its type is rejected."""
        data_url = 'data:image/x"<bad;base64,' + base64.b64encode(b"not an image").decode()
        request = cover_request(tmp_path, cover_mode=CoverMode.CUSTOM, custom_cover_data_url=data_url)
        with pytest.raises(CoverError):
            await resolve_cover(request, fake_fetcher)

    @pytest.mark.asyncio
    async def test_publication_cover_fetched(self, tmp_path, fake_fetcher, png_bytes):
        """The publication cover URL is downloaded."""
        fake_fetcher.fetch_bytes.return_value = png_bytes
        request = cover_request(tmp_path, author_cover_url="https://cdn.example.com/c.png")
        asset = await resolve_cover(request, fake_fetcher)
        assert asset.media_type == "image/png"
        assert fake_fetcher.fetch_bytes.await_args.args[0] == "https://cdn.example.com/c.png"

    @pytest.mark.asyncio
    async def test_publication_without_cover(self, tmp_path, fake_fetcher):
        """No cover URL means no cover, not an error."""
        assert await resolve_cover(cover_request(tmp_path), fake_fetcher) is None
