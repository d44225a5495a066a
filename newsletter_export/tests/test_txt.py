"""
Tests for the plain-text writer.
"""

import pytest

from newsletter_export.exceptions import AssemblyError
from newsletter_export.models import Granularity, MetadataField
from newsletter_export.txt import render_combined_txt, render_txt_post, write_txt_outputs


class TestRenderTxt:
    """Tests for text layout."""

    def test_post_layout(self, make_content):
        """Title, rule, metadata, blank line, body."""
        text = render_txt_post(make_content(title="Hello"), [MetadataField.TITLE])
        assert text == "Hello\n" + "-" * 60 + "\nTitle: Hello\n\nBody text.\n"

    def test_post_without_metadata(self, make_content):
        """No metadata lines when nothing is selected."""
        text = render_txt_post(make_content(title="Hello"), [])
        assert text == "Hello\n" + "-" * 60 + "\n\nBody text.\n"

    def test_combined_layout(self, make_content):
        """Combined output has a header and one ruled section per post."""
        posts = [make_content("p1", "One"), make_content("p2", "Two")]
        text = render_combined_txt("My Pub", posts, [], generated_at="2024-01-01T00:00:00Z")
        assert text.startswith("Publication: My Pub\nGenerated: 2024-01-01T00:00:00Z\n\n")
        assert text.count("=" * 60 + "\n") == 2
        assert text.index("One\n") < text.index("Two\n")


class TestWriteTxt:
    """Tests for writing text files."""

    def test_per_post_files(self, tmp_path, make_content):
        """One UTF-8 file per post."""
        posts = [make_content("p1", "Café"), make_content("p2", "Two")]
        files = write_txt_outputs(tmp_path, "Pub", posts, [], Granularity.PER_POST)
        assert len(files) == 2
        assert (tmp_path / "Pub - Caf_.txt").read_text(encoding="utf-8").startswith("Café\n")

    def test_combined_file(self, tmp_path, make_content):
        """One file for the whole batch."""
        posts = [make_content("p1", "One"), make_content("p2", "Two")]
        files = write_txt_outputs(tmp_path, "Pub", posts, [], Granularity.COMBINED)
        assert files == [str(tmp_path / "Pub - combined.txt")]
        assert "Publication: Pub" in (tmp_path / "Pub - combined.txt").read_text(encoding="utf-8")

    def test_write_failure(self, tmp_path, make_content):
        """Unwritable locations raise assembly errors."""
        with pytest.raises(AssemblyError):
            write_txt_outputs(tmp_path / "missing", "Pub", [make_content()], [], Granularity.PER_POST)
