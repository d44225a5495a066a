"""
Enums and internal records for the export pipeline.

Records are frozen: each pipeline stage that needs a variant builds a new value.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .schemas import PostSummary


class ExportMode(str, Enum):
    ENTIRE_COLLECTION = "entire_collection"
    EXPLICIT_SUBSET = "explicit_subset"


class OrderMode(str, Enum):
    DATE = "date"
    MANUAL = "manual"


class SortDirection(str, Enum):
    DESC = "desc"
    ASC = "asc"


class ExportFormat(str, Enum):
    EPUB = "epub"
    TXT = "txt"


class Granularity(str, Enum):
    PER_POST = "per_post"
    COMBINED = "combined"


class CoverMode(str, Enum):
    PUBLICATION = "publication"  # the publication's own cover image
    CUSTOM = "custom"  # caller-supplied data URL


class MetadataField(str, Enum):
    TITLE = "title"
    AUTHOR = "author"
    PUBLISHED_AT = "published_at"
    URL = "url"
    TAGS = "tags"
    SUBTITLE = "subtitle"
    READING_TIME = "reading_time"
    SUMMARY = "summary"


@dataclass(frozen=True)
class FootnoteCandidate:
    """An HTML block suspected of being a footnote body."""
    ids: frozenset[str]
    href_targets: frozenset[str]
    text: str


@dataclass(frozen=True)
class FootnoteEntry:
    """A confirmed footnote, numbered by first reference in the body."""
    id: str
    number: int
    text: str


@dataclass(frozen=True)
class ReconciledBody:
    """Body HTML with footnote references replaced by placeholder tokens."""
    html: str
    footnotes: tuple[FootnoteEntry, ...] = field(default_factory=tuple)
    strategy: str | None = None


@dataclass(frozen=True)
class RenderedBody:
    """Flat-text and markup renderings of one reconciled post body."""
    plain_text: str
    epub_body: str
    footnotes: tuple[FootnoteEntry, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class PostContent:
    """Extractor output for one post."""
    summary: "PostSummary"
    plain_text: str
    epub_body: str
    reading_time_minutes: int | None = None
    summary_text: str | None = None


@dataclass(frozen=True)
class CoverAsset:
    """Cover image bytes with their resolved media type."""
    data: bytes
    media_type: str
    extension: str
