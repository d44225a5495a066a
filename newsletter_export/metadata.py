"""
Per-chapter metadata block, rendered as text lines or as markup paragraphs.
"""

from typing import Callable, Iterable

from .models import MetadataField, PostContent
from .utils import escape_xml


def _author(post: PostContent) -> str:
    return post.summary.author or "Unknown"


def _tags(post: PostContent) -> str:
    return ", ".join(post.summary.tags) if post.summary.tags else "N/A"


def _reading_time(post: PostContent) -> str:
    if post.reading_time_minutes is None:
        return "N/A"
    return f"{post.reading_time_minutes} min"


# Rendering order of the block; unselected fields produce no line
METADATA_LINES: tuple[tuple[MetadataField, str, Callable[[PostContent], str]], ...] = (
    (MetadataField.TITLE, "Title", lambda post: post.summary.title),
    (MetadataField.AUTHOR, "Author", _author),
    (MetadataField.PUBLISHED_AT, "Published", lambda post: post.summary.published_at),
    (MetadataField.URL, "URL", lambda post: post.summary.url),
    (MetadataField.TAGS, "Tags", _tags),
    (MetadataField.SUBTITLE, "Subtitle", lambda post: post.summary.subtitle or "N/A"),
    (MetadataField.READING_TIME, "Reading time", _reading_time),
    (MetadataField.SUMMARY, "Summary", lambda post: post.summary_text or "N/A"),
)


def metadata_pairs(
    post: PostContent,
    fields: Iterable[MetadataField],
    include_title: bool = True,
) -> list[tuple[str, str]]:
    """Selected (label, value) pairs in display order."""
    selected = set(fields)
    pairs = []
    for field, label, getter in METADATA_LINES:
        if field not in selected:
            continue
        if field == MetadataField.TITLE and not include_title:
            continue
        pairs.append((label, getter(post)))
    return pairs


def render_metadata_text(post: PostContent, fields: Iterable[MetadataField]) -> str:
    """'Label: value' lines for the text output."""
    return "\n".join(f"{label}: {value}" for label, value in metadata_pairs(post, fields))


def render_metadata_markup(post: PostContent, fields: Iterable[MetadataField]) -> str:
    """
    Escaped <p> lines for a chapter's metadata section.

    The title is left out since the chapter heading already shows it.
    """
    pairs = metadata_pairs(post, fields, include_title=False)
    if not pairs:
        return "<p>No metadata selected.</p>"
    return "\n    ".join(
        f"<p><strong>{label}:</strong> {escape_xml(value)}</p>" for label, value in pairs
    )
