"""
Tests for shared helpers.
"""

from datetime import datetime, timezone

import pytest

from newsletter_export.utils import (
    combined_filename,
    decode_data_url,
    escape_xml,
    media_type_to_extension,
    normalize_plain_text,
    parse_datetime_flexible,
    per_post_filenames,
    sanitize_filename,
)


class TestEscapeXml:
    """Tests for XML escaping."""

    def test_reserved_characters(self):
        """All five reserved characters are escaped."""
        assert escape_xml("<a href=\"x\">'&'</a>") == "&lt;a href=&quot;x&quot;&gt;&apos;&amp;&apos;&lt;/a&gt;"

    def test_plain_text_unchanged(self):
        """Text without reserved characters passes through."""
        assert escape_xml("plain text") == "plain text"


class TestFilenames:
    """Tests for output filenames."""

    def test_sanitize(self):
        """Unsafe characters become underscores and whitespace collapses."""
        assert sanitize_filename("a/b:c   d") == "a_b_c d"

    def test_sanitize_empty(self):
        """Nothing usable becomes 'untitled'."""
        assert sanitize_filename("   ") == "untitled"

    def test_sanitize_caps_length(self):
        """Long names are truncated."""
        assert len(sanitize_filename("x" * 500)) == 120

    def test_duplicates_suffixed(self):
        """Case-insensitive duplicates get numbered suffixes."""
        names = per_post_filenames("Pub", ["Same", "same", "Other", "Same"], "txt")
        assert names == [
            "Pub - Same.txt",
            "Pub - same (2).txt",
            "Pub - Other.txt",
            "Pub - Same (3).txt",
        ]

    def test_combined(self):
        """Combined outputs use a fixed suffix."""
        assert combined_filename("My: Pub", "epub") == "My_ Pub - combined.epub"


class TestDataUrl:
    """Tests for data URL decoding."""

    def test_decodes_base64(self):
        """Returns bytes and declared type."""
        assert decode_data_url("data:image/png;base64,aGVsbG8=") == (b"hello", "image/png")

    def test_missing_comma(self):
        """A URL without a payload separator is rejected."""
        with pytest.raises(ValueError):
            decode_data_url("data:image/png;base64")

    def test_invalid_base64(self):
        """Bad base64 is rejected."""
        with pytest.raises(ValueError):
            decode_data_url("data:image/png;base64,@@@")

    def test_extension_lookup(self):
        """Known image types map to extensions."""
        assert media_type_to_extension("IMAGE/PNG") == "png"
        assert media_type_to_extension("image/tiff") == "img"


class TestDates:
    """Tests for flexible timestamp parsing."""

    def test_rfc3339(self):
        """ISO timestamps with Z parse as UTC."""
        assert parse_datetime_flexible("2024-01-02T03:04:05Z") == datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    def test_rfc2822(self):
        """Feed-style dates parse too."""
        assert parse_datetime_flexible("Tue, 02 Jan 2024 03:04:05 GMT") == datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    def test_offset_converted(self):
        """Offsets are normalized to UTC."""
        assert parse_datetime_flexible("2024-01-02T05:00:00+02:00").hour == 3

    @pytest.mark.parametrize("value", [None, "", "   ", "yesterday"])
    def test_unparsable(self, value):
        """Missing or garbage values return None."""
        assert parse_datetime_flexible(value) is None


class TestPlainTextNormalization:
    """Tests for text cleanup."""

    def test_blank_runs_collapsed(self):
        """At most one blank line survives."""
        assert normalize_plain_text("a\r\n\r\n\r\n  b  \n\n\n") == "a\n\nb"
