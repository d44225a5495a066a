"""
Plain-text writer - one file per post, or one combined file for the batch.
"""

import logging
from pathlib import Path
from typing import Iterable

from .exceptions import AssemblyError
from .metadata import render_metadata_text
from .models import Granularity, MetadataField, PostContent
from .utils import combined_filename, per_post_filenames, utc_now_iso

logger = logging.getLogger(__name__)

RULE_WIDTH = 60


def render_txt_post(post: PostContent, fields: Iterable[MetadataField]) -> str:
    """Title, rule, metadata lines, blank line, body."""
    lines = [post.summary.title, "-" * RULE_WIDTH]
    if metadata := render_metadata_text(post, fields):
        lines.append(metadata)
    lines.append("")
    lines.append(post.plain_text.strip())
    return "\n".join(lines) + "\n"


def render_combined_txt(
    publication_title: str,
    posts: list[PostContent],
    fields: Iterable[MetadataField],
    generated_at: str | None = None,
) -> str:
    fields = list(fields)
    parts = [
        f"Publication: {publication_title}\n",
        f"Generated: {generated_at or utc_now_iso()}\n\n",
    ]
    for post in posts:
        parts.append("=" * RULE_WIDTH + "\n")
        parts.append(render_txt_post(post, fields))
        parts.append("\n")
    return "".join(parts)


def _write(path: Path, content: str) -> None:
    try:
        path.write_text(content, encoding="utf-8", newline="\n")
    except OSError as e:
        raise AssemblyError(f"Failed writing TXT file {path}: {e}") from e


def write_txt_outputs(
    output_dir: Path,
    publication_title: str,
    posts: list[PostContent],
    fields: Iterable[MetadataField],
    granularity: Granularity,
) -> list[str]:
    """
    Write the text output for a job.

    Returns:
        Paths of the written files

    Raises:
        AssemblyError: If a file cannot be written
    """
    fields = list(fields)
    if granularity == Granularity.COMBINED:
        path = output_dir / combined_filename(publication_title, "txt")
        _write(path, render_combined_txt(publication_title, posts, fields))
        logger.info(f"Wrote combined TXT: {path}")
        return [str(path)]

    written = []
    names = per_post_filenames(publication_title, [post.summary.title for post in posts], "txt")
    for post, name in zip(posts, names):
        path = output_dir / name
        _write(path, render_txt_post(post, fields))
        written.append(str(path))
    logger.info(f"Wrote {len(written)} TXT file(s) to {output_dir}")
    return written
