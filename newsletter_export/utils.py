"""
Shared helpers: escaping, filenames, data URLs, dates and text cleanup.
"""

import base64
import binascii
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

_XML_ESCAPES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&apos;",
}
_XML_ESCAPE_RE = re.compile(r"[&<>\"']")

_MEDIA_TYPE_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}


def escape_xml(value: str) -> str:
    """Escape the five reserved XML characters. Applied exactly once per field."""
    return _XML_ESCAPE_RE.sub(lambda m: _XML_ESCAPES[m.group(0)], value)


def sanitize_filename(value: str) -> str:
    """
    Make a string safe to use as a filename component.

    Keeps ASCII letters, digits, '-', '_' and spaces; everything else becomes '_'.
    Collapses whitespace runs, trims dots at the edges and caps the length at 120.
    """
    cleaned = "".join(
        ch if (ch.isascii() and ch.isalnum()) or ch in "-_ " else "_"
        for ch in value
    )
    cleaned = re.sub(r" {2,}", " ", cleaned.strip()).strip(".")
    if not cleaned:
        return "untitled"
    return cleaned[:120]


def decode_data_url(data_url: str) -> tuple[bytes, str]:
    """
    Decode a base64 data URL.

    Returns:
        (bytes, declared mime type)

    Raises:
        ValueError: If the URL is malformed, not base64, or the payload is invalid
    """
    meta, sep, body = data_url.partition(",")
    if not sep:
        raise ValueError("Invalid data URL format.")
    if not meta.endswith(";base64"):
        raise ValueError("Only base64 data URLs are supported.")

    mime_type = meta.removeprefix("data:").removesuffix(";base64") or "application/octet-stream"
    try:
        data = base64.b64decode(body, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Failed to decode base64 cover image: {e}")
    return data, mime_type


def media_type_to_extension(media_type: str) -> str:
    """Map an image media type to a file extension ('img' when unknown)."""
    return _MEDIA_TYPE_EXTENSIONS.get(media_type.lower(), "img")


def parse_datetime_flexible(value: str | None) -> datetime | None:
    """Parse an RFC 3339 or RFC 2822 timestamp. Naive values are treated as UTC."""
    if not value or not value.strip():
        return None
    value = value.strip()

    parsed = None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        try:
            parsed = parsedate_to_datetime(value)
        except (TypeError, ValueError, IndexError):
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def utc_now_iso() -> str:
    """Current UTC time as RFC 3339 with a trailing Z."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def normalize_whitespace(value: str) -> str:
    """Collapse all whitespace runs to single spaces."""
    return " ".join(value.split())


def normalize_plain_text(value: str) -> str:
    """Normalize newlines, strip line ends and allow at most one blank line in a row."""
    lines = []
    blank_run = 0
    for raw_line in value.replace("\r\n", "\n").replace("\r", "\n").split("\n"):
        line = raw_line.strip()
        if not line:
            blank_run += 1
            if blank_run <= 1:
                lines.append("")
            continue
        blank_run = 0
        lines.append(line)
    return "\n".join(lines).strip()


def per_post_filenames(publication_title: str, post_titles: list[str], extension: str) -> list[str]:
    """
    '{publication} - {post title}.{ext}' for each post.

    Repeated names within one job get ' (2)', ' (3)', ... suffixes.
    """
    prefix = sanitize_filename(publication_title)
    seen: dict[str, int] = {}
    names = []
    for title in post_titles:
        stem = f"{prefix} - {sanitize_filename(title)}"
        key = stem.lower()
        seen[key] = seen.get(key, 0) + 1
        if seen[key] > 1:
            stem = f"{stem} ({seen[key]})"
        names.append(f"{stem}.{extension}")
    return names


def combined_filename(publication_title: str, extension: str) -> str:
    return f"{sanitize_filename(publication_title)} - combined.{extension}"
