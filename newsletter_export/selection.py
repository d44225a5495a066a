"""
Selector/Orderer - Validate a job request and produce the ordered post sequence.

Pure functions; nothing here touches the network.
"""

import logging
import os
from pathlib import Path

from .exceptions import ConfigurationError
from .models import ExportMode, OrderMode, SortDirection
from .schemas import ExportJobRequest, PostSummary
from .utils import parse_datetime_flexible

logger = logging.getLogger(__name__)


def post_timestamp(post: PostSummary) -> float:
    """Publish time as epoch seconds; unparsable timestamps sort as the epoch."""
    parsed = parse_datetime_flexible(post.published_at)
    return parsed.timestamp() if parsed else 0.0


def date_sort_key(post: PostSummary, direction: SortDirection):
    """Timestamp in the requested direction, then case-insensitive title ascending."""
    ts = post_timestamp(post)
    return (-ts if direction == SortDirection.DESC else ts, post.title.lower())


def sort_by_date(posts: list[PostSummary], direction: SortDirection) -> list[PostSummary]:
    return sorted(posts, key=lambda post: date_sort_key(post, direction))


def select_posts(request: ExportJobRequest) -> list[PostSummary]:
    """
    Apply the selection mode.

    Raises:
        ConfigurationError: If an explicit subset is empty after filtering
    """
    if request.mode == ExportMode.ENTIRE_COLLECTION:
        return list(request.posts)

    wanted = set(request.selected_post_ids)
    selected = [post for post in request.posts if post.id in wanted]
    if not selected:
        raise ConfigurationError("No posts selected for export.")
    return selected


def order_posts(
    posts: list[PostSummary],
    order_mode: OrderMode,
    manual_order: list[str],
    direction: SortDirection,
) -> list[PostSummary]:
    """
    Order posts by date, or by a manual id sequence.

    Manual ids come first in the given order; unknown ids are skipped and
    the remaining posts follow in date order. An empty manual list means
    plain date order.
    """
    if order_mode != OrderMode.MANUAL or not manual_order:
        return sort_by_date(posts, direction)

    by_id = {post.id: post for post in posts}
    ordered = []
    placed = set()
    for post_id in manual_order:
        if post_id in by_id and post_id not in placed:
            ordered.append(by_id[post_id])
            placed.add(post_id)

    remaining = [post for post in posts if post.id not in placed]
    return ordered + sort_by_date(remaining, direction)


def ensure_output_dir(output_dir: str) -> Path:
    """
    Create the output directory if needed and check it is writable.

    Raises:
        ConfigurationError: If the location is empty, not a directory, or not writable
    """
    if not output_dir or not output_dir.strip():
        raise ConfigurationError("Output folder is required.")

    path = Path(output_dir.strip()).expanduser()
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ConfigurationError(f"Output folder {path} cannot be created: {e}") from e
    if not path.is_dir():
        raise ConfigurationError(f"Output location {path} is not a directory.")
    if not os.access(path, os.W_OK):
        raise ConfigurationError(f"Output folder {path} is not writable.")
    return path


def validate_job_request(request: ExportJobRequest) -> None:
    """
    Fail fast on bad job input, before any network activity.

    Raises:
        ConfigurationError: No format, no output location, or no posts
    """
    if not request.formats:
        raise ConfigurationError("Select at least one export format.")
    if not request.output_dir or not request.output_dir.strip():
        raise ConfigurationError("Output folder is required.")
    if request.mode == ExportMode.EXPLICIT_SUBSET and not request.selected_post_ids:
        raise ConfigurationError("No posts selected for export.")
    if not request.posts:
        raise ConfigurationError("No posts available to export.")


def resolve_post_sequence(request: ExportJobRequest) -> list[PostSummary]:
    """Selection then ordering; the exact sequence the job will export."""
    selected = select_posts(request)
    ordered = order_posts(selected, request.order_mode, request.manual_order, request.sort_direction)
    logger.debug(f"Resolved {len(ordered)} post(s) for export")
    return ordered
