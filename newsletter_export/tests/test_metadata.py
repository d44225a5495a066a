"""
Tests for chapter metadata blocks.
"""

from dataclasses import replace

from newsletter_export.metadata import (
    metadata_pairs,
    render_metadata_markup,
    render_metadata_text,
)
from newsletter_export.models import MetadataField


class TestMetadataText:
    """Tests for text metadata lines."""

    def test_includes_title(self, make_content):
        """Text output lists the title as a metadata line."""
        text = render_metadata_text(make_content(title="Hello"), [MetadataField.TITLE, MetadataField.URL])
        assert text == "Title: Hello\nURL: https://example.com/p/p1"

    def test_fixed_order(self, make_content):
        """Lines follow display order, not selection order."""
        post = make_content(author="Ann")
        text = render_metadata_text(post, [MetadataField.URL, MetadataField.AUTHOR])
        assert text.splitlines() == ["Author: Ann", "URL: https://example.com/p/p1"]

    def test_missing_values_have_placeholders(self, make_content):
        """Absent optional values render as placeholders."""
        pairs = dict(metadata_pairs(make_content(), list(MetadataField)))
        assert pairs["Author"] == "Unknown"
        assert pairs["Tags"] == "N/A"
        assert pairs["Subtitle"] == "N/A"
        assert pairs["Reading time"] == "N/A"
        assert pairs["Summary"] == "N/A"

    def test_reading_time_and_tags(self, make_content):
        """Reading time is shown in minutes and tags are comma separated."""
        post = replace(make_content(tags=["a", "b"]), reading_time_minutes=7)
        pairs = dict(metadata_pairs(post, [MetadataField.READING_TIME, MetadataField.TAGS]))
        assert pairs == {"Reading time": "7 min", "Tags": "a, b"}

    def test_nothing_selected(self, make_content):
        """No fields means no lines."""
        assert render_metadata_text(make_content(), []) == ""


class TestMetadataMarkup:
    """Tests for chapter metadata paragraphs."""

    def test_title_excluded(self, make_content):
        """The chapter heading already carries the title."""
        markup = render_metadata_markup(make_content(title="Hello"), [MetadataField.TITLE, MetadataField.URL])
        assert "Title" not in markup
        assert "<p><strong>URL:</strong> https://example.com/p/p1</p>" in markup

    def test_placeholder_when_empty(self, make_content):
        """An empty selection still renders one paragraph."""
        assert render_metadata_markup(make_content(), [MetadataField.TITLE]) == "<p>No metadata selected.</p>"

    def test_values_escaped(self, make_content):
        """Values are escaped for markup."""
        markup = render_metadata_markup(make_content(author="A & <B>"), [MetadataField.AUTHOR])
        assert markup == "<p><strong>Author:</strong> A &amp; &lt;B&gt;</p>"
