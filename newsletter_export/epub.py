"""
EPUB Assembler - Package rendered posts into an EPUB 3 book with ebooklib.

Book layout under OEBPS/:
- images/cover.<ext> and cover.xhtml (optional, cover page first in the spine)
- nav.xhtml and toc.ncx listing the cover and every chapter
- styles/chapter.css
- text/chapter-N.xhtml, in spine order

ebooklib writes the stored mimetype entry first and serializes the package
and navigation documents itself, escaping titles and authors. Chapter markup
is built here with every user value escaped once.
"""

import logging
import uuid
import zipfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from ebooklib import epub

from .exceptions import AssemblyError
from .metadata import render_metadata_markup
from .models import CoverAsset, Granularity, MetadataField, PostContent
from .utils import combined_filename, escape_xml, per_post_filenames

logger = logging.getLogger(__name__)

FOLDER_NAME = "OEBPS"
COVER_IMAGE_ID = "cover-img"
COVER_PAGE_ID = "cover"
COVER_PAGE_FILE = "cover.xhtml"
STYLE_FILE = "styles/chapter.css"

CHAPTER_STYLE = """
body { font-family: Georgia, "Times New Roman", serif; line-height: 1.78; font-size: 1.05rem; color: #202020; }
.meta { background: #f4f4f4; border: 1px solid #ddd; padding: 0.75rem; margin-bottom: 1rem; }
.meta p { margin: 0.2rem 0; font-size: 0.92rem; }
section p { margin: 0 0 1.25em; }
section h2, section h3 { margin-top: 1.7em; margin-bottom: 0.7em; }
section ul, section ol { margin: 0.5em 0 1.25em 1.2em; }
section blockquote { margin: 1.2em 0; padding-left: 1em; border-left: 3px solid #cfd5e2; color: #444; }
.footnote-ref { text-decoration: none; line-height: 0; }
.footnote-ref-num { font-size: 0.72em; vertical-align: super; }
.footnotes { border-top: 1px solid #ddd; margin-top: 2em; padding-top: 1em; }
.footnotes li { margin-bottom: 0.6em; }
.footnote-backref { text-decoration: none; font-size: 0.9em; }
"""


def chapter_id(index: int) -> str:
    """Positional chapter id for a 0-based spine index."""
    return f"chapter-{index + 1}"


# ─────────────────────────────────────────────────────────────
# Book
# ─────────────────────────────────────────────────────────────

def build_chapter_html(post: PostContent, fields: Iterable[MetadataField]) -> str:
    """
    Body markup for one chapter.

    The post body is already sanitized markup and is inserted as is.
    """
    metadata = render_metadata_markup(post, fields)
    return f"""<html><body>
  <h1>{escape_xml(post.summary.title)}</h1>
  <section class="meta">
    {metadata}
  </section>
  <section>
    {post.epub_body}
  </section>
</body></html>"""


def _add_cover(book: epub.EpubBook, cover: CoverAsset) -> epub.EpubCoverHtml:
    book.set_cover(f"images/cover.{cover.extension}", cover.data)
    # set_cover guesses the type from the file name; the sniffed type is authoritative
    book.get_item_with_id(COVER_IMAGE_ID).media_type = cover.media_type
    return book.get_item_with_id(COVER_PAGE_ID)


def build_book(
    book_title: str,
    book_author: str,
    posts: list[PostContent],
    fields: Iterable[MetadataField],
    cover: CoverAsset | None = None,
    identifier: str | None = None,
    timestamp: datetime | None = None,
) -> epub.EpubBook:
    """Assemble an in-memory book: metadata, cover, navigation and one chapter per post."""
    fields = list(fields)
    timestamp = timestamp or datetime.now(timezone.utc)

    book = epub.EpubBook()
    book.FOLDER_NAME = FOLDER_NAME
    book.set_identifier(identifier or f"urn:uuid:{uuid.uuid4()}")
    book.set_title(book_title)
    book.set_language("en")
    book.add_author(book_author)
    book.add_metadata("DC", "date", timestamp.strftime("%Y-%m-%dT%H:%M:%SZ"))

    toc = []
    spine = []
    if cover:
        spine.append(_add_cover(book, cover))
        toc.append(epub.Link(COVER_PAGE_FILE, "Cover", COVER_PAGE_ID))

    book.add_item(epub.EpubNav())
    book.add_item(epub.EpubNcx())
    book.add_item(epub.EpubItem(uid="style", file_name=STYLE_FILE, media_type="text/css", content=CHAPTER_STYLE))

    for index, post in enumerate(posts):
        cid = chapter_id(index)
        chapter = epub.EpubHtml(
            uid=cid,
            file_name=f"text/{cid}.xhtml",
            title=post.summary.title,
            content=build_chapter_html(post, fields),
        )
        chapter.add_link(href=f"../{STYLE_FILE}", rel="stylesheet", type="text/css")
        book.add_item(chapter)
        toc.append(chapter)
        spine.append(chapter)

    book.toc = toc
    book.spine = spine
    return book


# ─────────────────────────────────────────────────────────────
# Archive
# ─────────────────────────────────────────────────────────────

def write_epub(
    output_file: Path,
    book_title: str,
    book_author: str,
    posts: list[PostContent],
    fields: Iterable[MetadataField],
    cover: CoverAsset | None = None,
) -> None:
    """
    Write one EPUB archive.

    Raises:
        AssemblyError: If the archive cannot be written
    """
    timestamp = datetime.now(timezone.utc)
    book = build_book(book_title, book_author, posts, fields, cover, timestamp=timestamp)
    try:
        epub.write_epub(str(output_file), book, {"raise_exceptions": True, "mtime": timestamp})
    except (OSError, zipfile.BadZipFile) as e:
        raise AssemblyError(f"Failed to write EPUB file {output_file}: {e}") from e


def write_epub_outputs(
    output_dir: Path,
    publication_title: str,
    publication_author: str,
    posts: list[PostContent],
    fields: Iterable[MetadataField],
    granularity: Granularity,
    cover: CoverAsset | None = None,
) -> list[str]:
    """
    Write the EPUB output for a job.

    Per-post books are titled by the post and credited to the post author,
    falling back to the publication author.

    Returns:
        Paths of the written files
    """
    fields = list(fields)
    if granularity == Granularity.COMBINED:
        path = output_dir / combined_filename(publication_title, "epub")
        write_epub(path, publication_title, publication_author, posts, fields, cover)
        logger.info(f"Wrote combined EPUB: {path}")
        return [str(path)]

    written = []
    names = per_post_filenames(publication_title, [post.summary.title for post in posts], "epub")
    for post, name in zip(posts, names):
        path = output_dir / name
        author = post.summary.author or publication_author
        write_epub(path, post.summary.title, author, [post], fields, cover)
        written.append(str(path))
    logger.info(f"Wrote {len(written)} EPUB file(s) to {output_dir}")
    return written
