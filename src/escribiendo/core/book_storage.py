"""EPUB upload storage and metadata reading.

Responsibilities:
- Validate and store uploaded EPUB files under the uploads directory
- Read OPF metadata (author, language, publisher, ISBN, description)
- Detect the text language when the OPF does not declare one
- Remove stored files when a book is deleted

Dependencies:
- ebooklib
- beautifulsoup4
- lxml
- langdetect
"""

from __future__ import annotations

import re
import uuid
import warnings
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import ebooklib
import structlog
from bs4 import BeautifulSoup, XMLParsedAsHTMLWarning
from ebooklib import epub
from langdetect import DetectorFactory, detect

from escribiendo.config.app_config import load_app_config

# Suppress XML parser warning for EPUB content
warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)

# Make langdetect deterministic
DetectorFactory.seed = 0

logger = structlog.get_logger(__name__)

EPUB_MEDIA_TYPE = "application/epub+zip"
DEFAULT_LANGUAGE = "es"

ISBN_PATTERN = re.compile(r"(97[89][\d-]{10,14}|\d{9}[\dXx])")


class BookUploadError(Exception):
    """Raised when an uploaded file cannot be stored as a book."""

    pass


@dataclass
class EpubMetadata:
    """Metadata read from an EPUB package."""

    title: str | None = None
    author: str | None = None
    language: str | None = None
    publisher: str | None = None
    description: str | None = None
    isbn: str | None = None
    date: str | None = None
    chapter_count: int = 0
    toc: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class StoredEpub:
    """An EPUB written to the uploads directory."""

    path: Path
    size: int


def uploads_dir() -> Path:
    return Path(load_app_config().storage.uploads_dir)


def validate_epub_filename(filename: str | None) -> None:
    """Reject uploads whose name does not end in .epub.

    Raises:
        BookUploadError: If the name is missing or has another extension
    """
    if not filename or not filename.lower().endswith(".epub"):
        raise BookUploadError("File must be an EPUB file")


def save_epub(filename: str | None, data: bytes, target_dir: Path | None = None) -> StoredEpub:
    """Store uploaded bytes under a random UUID name.

    Args:
        filename: Original client filename (only used for validation)
        data: File content
        target_dir: Destination directory (defaults to the configured uploads dir)

    Raises:
        BookUploadError: If the name is not an EPUB or the file is empty
    """
    validate_epub_filename(filename)
    if not data:
        raise BookUploadError("Uploaded EPUB is empty")

    target_dir = target_dir or uploads_dir()
    target_dir.mkdir(parents=True, exist_ok=True)

    path = target_dir / f"{uuid.uuid4()}.epub"
    path.write_bytes(data)

    logger.info("book_storage.saved", path=str(path), size=len(data), original=filename)
    return StoredEpub(path=path, size=len(data))


def remove_epub(path: str | Path) -> bool:
    """Delete a stored EPUB.

    Returns:
        True if a file was removed
    """
    file_path = Path(path)
    if not file_path.exists():
        return False
    file_path.unlink()
    logger.info("book_storage.removed", path=str(file_path))
    return True


def read_epub_metadata(path: str | Path) -> EpubMetadata | None:
    """Read OPF metadata from an EPUB.

    Returns:
        EpubMetadata, or None if the file is not a readable EPUB
    """
    try:
        book = epub.read_epub(str(path))
    except Exception as e:
        logger.warning("book_storage.unreadable_epub", path=str(path), error=str(e))
        return None

    def get_metadata(name: str) -> str | None:
        items = book.get_metadata("DC", name)
        if items:
            value = items[0][0] if isinstance(items[0], tuple) else items[0]
            return str(value).strip() or None
        return None

    documents = list(book.get_items_of_type(ebooklib.ITEM_DOCUMENT))
    description = get_metadata("description")

    metadata = EpubMetadata(
        title=get_metadata("title"),
        author=get_metadata("creator"),
        language=get_metadata("language"),
        publisher=get_metadata("publisher"),
        description=_html_to_text(description) if description else None,
        isbn=_find_isbn(book),
        date=get_metadata("date"),
        chapter_count=len(documents),
        toc=_toc_titles(book.toc),
    )

    if metadata.language is None and documents:
        sample = "\n".join(_html_to_text(item.get_content()) for item in documents[:3])
        metadata.language = _detect_language(sample)

    logger.debug(
        "book_storage.metadata",
        path=str(path),
        title=metadata.title,
        chapters=metadata.chapter_count,
    )
    return metadata


def _find_isbn(book: epub.EpubBook) -> str | None:
    for value, _attrs in book.get_metadata("DC", "identifier"):
        match = ISBN_PATTERN.search(str(value))
        if match:
            return match.group(1).replace("-", "")
    return None


def _toc_titles(toc: Any) -> list[str]:
    titles: list[str] = []
    for item in toc or []:
        if isinstance(item, epub.Link):
            titles.append(item.title or "")
        elif isinstance(item, tuple):
            section, sub_items = item
            if getattr(section, "title", None):
                titles.append(section.title)
            titles.extend(_toc_titles(sub_items))
    return titles


def _html_to_text(html_content: bytes | str) -> str:
    """Convert HTML to whitespace-normalized plain text."""
    if isinstance(html_content, bytes):
        html_content = html_content.decode("utf-8", errors="ignore")

    with warnings.catch_warnings():
        warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)
        soup = BeautifulSoup(html_content, "lxml")

    for element in soup(["script", "style", "head", "meta", "link"]):
        element.decompose()

    lines = [line.strip() for line in soup.get_text(separator="\n").splitlines()]
    return "\n".join(line for line in lines if line)


def _detect_language(text: str) -> str | None:
    """Detect ISO 639-1 language of text, or None if detection fails."""
    if not text.strip():
        return None
    try:
        return detect(text[:10000])
    except Exception as e:
        logger.debug("book_storage.language_detection_failed", error=str(e))
        return None
