"""
Pydantic models for publication discovery and export job request/response.
"""

from pydantic import BaseModel, ConfigDict, Field

from .models import (
    CoverMode,
    ExportFormat,
    ExportMode,
    Granularity,
    MetadataField,
    OrderMode,
    SortDirection,
)


# ─────────────────────────────────────────────────────────────
# Publication Schemas
# ─────────────────────────────────────────────────────────────

class PostSummary(BaseModel):
    """Discovery-time record for one post."""
    model_config = ConfigDict(frozen=True)

    id: str  # may be the URL when no stronger identifier exists
    title: str
    published_at: str  # free-form, parsed lazily
    url: str
    author: str | None = None
    cover_image_url: str | None = None
    tags: list[str] | None = None
    subtitle: str | None = None
    summary: str | None = None


class PublicationInfo(BaseModel):
    """Publication identity."""
    url: str
    title: str
    author: str | None = None
    author_cover_url: str | None = None


class PublicationRequest(BaseModel):
    """Request to load a publication's post list."""
    url: str


class PublicationResponse(BaseModel):
    """Publication identity plus its discovered posts."""
    publication: PublicationInfo
    posts: list[PostSummary]


# ─────────────────────────────────────────────────────────────
# Export Job Schemas
# ─────────────────────────────────────────────────────────────

DEFAULT_METADATA_FIELDS = [
    MetadataField.TITLE,
    MetadataField.AUTHOR,
    MetadataField.PUBLISHED_AT,
    MetadataField.URL,
    MetadataField.TAGS,
    MetadataField.SUBTITLE,
    MetadataField.SUMMARY,
]


class ExportJobRequest(BaseModel):
    """Export job configuration (read-only input)."""
    publication_url: str = ""
    publication_title: str
    publication_author: str | None = None
    author_cover_url: str | None = None
    mode: ExportMode = ExportMode.ENTIRE_COLLECTION
    selected_post_ids: list[str] = Field(default_factory=list)
    order_mode: OrderMode = OrderMode.DATE
    manual_order: list[str] = Field(default_factory=list)
    sort_direction: SortDirection = SortDirection.DESC
    formats: list[ExportFormat] = Field(
        default_factory=lambda: [ExportFormat.EPUB, ExportFormat.TXT]
    )
    granularity: Granularity = Granularity.PER_POST
    cover_mode: CoverMode = CoverMode.PUBLICATION
    custom_cover_data_url: str | None = None
    metadata_fields: list[MetadataField] = Field(
        default_factory=lambda: list(DEFAULT_METADATA_FIELDS)
    )
    output_dir: str
    posts: list[PostSummary] = Field(default_factory=list)


class ExportFailure(BaseModel):
    """A post that could not be exported, with the reason."""
    post_id: str
    reason: str


class ExportJobResult(BaseModel):
    """Outcome of an export job."""
    succeeded: list[str] = Field(default_factory=list)
    failed: list[ExportFailure] = Field(default_factory=list)
    output_files: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
