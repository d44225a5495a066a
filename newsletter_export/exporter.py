"""
Export Orchestrator - Run one export job end to end.

Validating -> Selecting -> Fetching/Extracting (per post) -> Rendering -> Assembling.

Posts are fetched one at a time in the selected order. A post that cannot be
fetched is recorded as a failure and the job continues; the job fails only when
every post fails. Cover problems never fail a job.
"""

import logging

from .config import config, state
from .cover import resolve_cover
from .epub import write_epub_outputs
from .exceptions import AllPostsFailedError, ExportError, TransportError
from .extractor import fetch_post_content
from .fetcher import Fetcher
from .models import CoverAsset, ExportFormat, PostContent
from .schemas import ExportFailure, ExportJobRequest, ExportJobResult
from .selection import ensure_output_dir, resolve_post_sequence, validate_job_request
from .txt import write_txt_outputs

logger = logging.getLogger(__name__)

DEFAULT_BOOK_AUTHOR = "Unknown author"


async def _acquire_cover(request: ExportJobRequest, fetcher: Fetcher, warnings: list[str]) -> CoverAsset | None:
    try:
        return await resolve_cover(request, fetcher)
    except (ExportError, ValueError, OSError) as e:
        logger.warning(f"Cover setup issue, exporting without cover: {e}")
        warnings.append(f"Cover setup issue: {e}")
        return None


async def run_export_job(request: ExportJobRequest, fetcher: Fetcher | None = None) -> ExportJobResult:
    """
    Run an export job.

    Args:
        request: Job configuration
        fetcher: Fetch capability; defaults to the shared application fetcher

    Returns:
        Succeeded ids, per-post failures, written files and warnings

    Raises:
        ConfigurationError: Invalid input, before any network activity
        AllPostsFailedError: No post could be fetched; nothing is written
        AssemblyError: An output file could not be written
    """
    validate_job_request(request)
    posts = resolve_post_sequence(request)
    output_dir = ensure_output_dir(request.output_dir)

    fetcher = fetcher or state.fetcher or Fetcher()
    logger.info(f"Export started: {len(posts)} post(s) from '{request.publication_title}'")

    result = ExportJobResult()
    contents: list[PostContent] = []

    for summary in posts:
        try:
            content = await fetch_post_content(fetcher, summary, config.RETRIES_PER_REQUEST)
        except TransportError as e:
            logger.warning(f"Post {summary.id} failed: {e}")
            result.failed.append(ExportFailure(post_id=summary.id, reason=str(e)))
            continue
        except Exception as e:
            logger.exception(f"Unexpected error extracting post {summary.id}")
            result.failed.append(ExportFailure(post_id=summary.id, reason=str(e) or type(e).__name__))
            continue
        result.succeeded.append(content.summary.id)
        contents.append(content)

    if not contents:
        logger.warning(f"All {len(posts)} post(s) failed; no output generated")
        raise AllPostsFailedError(result.failed)

    cover = None
    if ExportFormat.EPUB in request.formats:
        cover = await _acquire_cover(request, fetcher, result.warnings)

    if ExportFormat.TXT in request.formats:
        result.output_files.extend(write_txt_outputs(
            output_dir,
            request.publication_title,
            contents,
            request.metadata_fields,
            request.granularity,
        ))
    if ExportFormat.EPUB in request.formats:
        result.output_files.extend(write_epub_outputs(
            output_dir,
            request.publication_title,
            request.publication_author or DEFAULT_BOOK_AUTHOR,
            contents,
            request.metadata_fields,
            request.granularity,
            cover,
        ))

    logger.info(
        f"Export finished: {len(result.succeeded)} succeeded, {len(result.failed)} failed, "
        f"{len(result.output_files)} file(s) written"
    )
    return result
