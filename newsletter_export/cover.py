"""
Cover acquisition - Decode or download a cover image and sniff its format.
"""

import logging
import re
from io import BytesIO

from PIL import Image, UnidentifiedImageError

from .config import config
from .exceptions import CoverError
from .fetcher import Fetcher
from .models import CoverAsset, CoverMode
from .schemas import ExportJobRequest
from .utils import decode_data_url, media_type_to_extension

logger = logging.getLogger(__name__)

# Pillow format name -> media type
SNIFFED_MEDIA_TYPES = {
    "PNG": "image/png",
    "JPEG": "image/jpeg",
    "GIF": "image/gif",
    "WEBP": "image/webp",
}

_MEDIA_TYPE_RE = re.compile(r"^[a-z0-9][a-z0-9!#$&^_.+-]*/[a-z0-9][a-z0-9!#$&^_.+-]*$")


def sniff_media_type(data: bytes) -> str | None:
    """Identify the image format from its leading bytes; None when unrecognized."""
    try:
        with Image.open(BytesIO(data)) as image:
            return SNIFFED_MEDIA_TYPES.get(image.format or "")
    except (UnidentifiedImageError, OSError):
        return None


def normalize_cover_asset(data: bytes, mime_hint: str | None = None) -> CoverAsset:
    """
    Resolve cover bytes to a media type and file extension.

    The sniffed format wins over the declared hint; without either,
    image/jpeg is assumed.

    Raises:
        CoverError: If the bytes are empty or the declared type is malformed
    """
    if not data:
        raise CoverError("Cover image is empty.")

    media_type = sniff_media_type(data)
    if media_type is None:
        hint = (mime_hint or "").split(";")[0].strip().lower()
        media_type = hint or "image/jpeg"
        if media_type == "image/jpg":
            media_type = "image/jpeg"
        if not _MEDIA_TYPE_RE.match(media_type):
            raise CoverError(f"Unsupported cover media type: {media_type!r}")

    return CoverAsset(
        data=data,
        media_type=media_type,
        extension=media_type_to_extension(media_type),
    )


async def resolve_cover(request: ExportJobRequest, fetcher: Fetcher) -> CoverAsset | None:
    """
    Acquire the job's cover image according to its cover mode.

    Returns None when the publication has no cover URL.

    Raises:
        CoverError: Missing or undecodable custom cover, or empty downloaded bytes
        TransportError: If the publication cover cannot be downloaded
    """
    if request.cover_mode == CoverMode.CUSTOM:
        if not request.custom_cover_data_url:
            raise CoverError("Custom cover selected, but no image was provided.")
        try:
            data, mime_type = decode_data_url(request.custom_cover_data_url)
        except ValueError as e:
            raise CoverError(str(e)) from e
        return normalize_cover_asset(data, mime_type)

    if not request.author_cover_url:
        logger.info("Publication has no cover image; exporting without cover")
        return None

    data = await fetcher.fetch_bytes(request.author_cover_url, config.RETRIES_PER_REQUEST)
    return normalize_cover_asset(data)
