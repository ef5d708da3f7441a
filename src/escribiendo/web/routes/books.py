"""Book library endpoints: EPUB upload and download, reading progress,
bookmarks and annotations.

Every endpoint takes an optional ``user_id`` query parameter that defaults
to the configured single user.
"""

from pathlib import Path

import structlog
from fastapi import APIRouter, File, Form, HTTPException, Response, UploadFile, status
from fastapi.responses import FileResponse

from escribiendo.core.book_storage import (
    DEFAULT_LANGUAGE,
    EPUB_MEDIA_TYPE,
    BookUploadError,
    read_epub_metadata,
    remove_epub,
    save_epub,
)
from escribiendo.db import books_repository as repo
from escribiendo.web.deps import resolve_user_id
from escribiendo.web.schemas import (
    AnnotationCreate,
    AnnotationResponse,
    AnnotationUpdate,
    BookDetail,
    BookmarkCreate,
    BookmarkResponse,
    BookResponse,
    BookUpdate,
    BookWithProgress,
    ReadingProgressResponse,
    ReadingProgressUpdate,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/books", tags=["books"])


def _book_not_found(book_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Book '{book_id}' not found",
    )


def _require_book(book_id: str) -> repo.BookRecord:
    book = repo.get_book_by_id(book_id)
    if book is None:
        raise _book_not_found(book_id)
    return book


# =============================================================================
# BOOKS
# =============================================================================


@router.get("", response_model=list[BookWithProgress])
async def list_books(user_id: str | None = None) -> list[dict]:
    """Books of the user with their reading progress."""
    return repo.get_books_with_progress(resolve_user_id(user_id))


@router.post("", response_model=BookResponse, status_code=status.HTTP_201_CREATED)
async def upload_book(
    epub: UploadFile = File(...),
    title: str = Form(..., min_length=1),
    author: str | None = Form(None),
    language: str | None = Form(None),
    user_id: str | None = None,
) -> repo.BookRecord:
    """Store an uploaded EPUB and register it.

    Metadata read from the EPUB package fills fields the form left blank;
    the language defaults to Spanish when neither declares one.
    """
    try:
        stored = save_epub(epub.filename, await epub.read())
    except BookUploadError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    metadata = read_epub_metadata(stored.path)

    book = repo.insert_book(
        user_id=resolve_user_id(user_id),
        title=title,
        file_path=str(stored.path),
        file_size=stored.size,
        author=author or (metadata.author if metadata else None),
        language=language or (metadata.language if metadata else None) or DEFAULT_LANGUAGE,
        description=metadata.description if metadata else None,
        isbn=metadata.isbn if metadata else None,
        publisher=metadata.publisher if metadata else None,
        metadata=metadata.to_dict() if metadata else None,
    )

    logger.info("books.uploaded", book_id=book.id, title=title, size=stored.size)
    return book


@router.get("/{book_id}", response_model=BookDetail)
async def get_book(book_id: str, user_id: str | None = None) -> dict:
    """A book with reading progress and bookmark count."""
    book = repo.get_book_with_progress(resolve_user_id(user_id), book_id)
    if book is None:
        raise _book_not_found(book_id)
    return book


@router.put("/{book_id}", response_model=BookResponse)
async def update_book(book_id: str, request: BookUpdate) -> repo.BookRecord:
    book = repo.update_book(book_id, **request.model_dump(exclude_none=True))
    if book is None:
        raise _book_not_found(book_id)
    return book


@router.delete("/{book_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_book(book_id: str) -> Response:
    """Delete a book, its reading data and the stored file."""
    book = _require_book(book_id)

    repo.delete_book(book_id)
    remove_epub(book.file_path)

    logger.info("books.deleted", book_id=book_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{book_id}/content.epub")
async def get_book_content(book_id: str) -> FileResponse:
    """Serve the stored EPUB file."""
    book = _require_book(book_id)

    path = Path(book.file_path)
    if not path.is_file():
        logger.warning("books.file_missing", book_id=book_id, path=book.file_path)
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"File for book '{book_id}' not found",
        )

    return FileResponse(
        path,
        media_type=EPUB_MEDIA_TYPE,
        filename=f"{book.title}.epub",
        content_disposition_type="inline",
        headers={"Cache-Control": "public, max-age=3600"},
    )


# =============================================================================
# READING PROGRESS
# =============================================================================


@router.get("/{book_id}/progress", response_model=ReadingProgressResponse | None)
async def get_progress(book_id: str, user_id: str | None = None) -> repo.ReadingProgressRecord | None:
    """Reading position of the user, or null when the book was never opened."""
    _require_book(book_id)
    return repo.get_reading_progress(resolve_user_id(user_id), book_id)


@router.put("/{book_id}/progress", response_model=ReadingProgressResponse)
async def save_progress(
    book_id: str, request: ReadingProgressUpdate, user_id: str | None = None
) -> repo.ReadingProgressRecord:
    _require_book(book_id)
    return repo.upsert_reading_progress(
        resolve_user_id(user_id),
        book_id,
        current_location=request.current_location,
        progress_percentage=request.progress_percentage,
        reading_time_ms=request.reading_time_ms,
    )


# =============================================================================
# BOOKMARKS
# =============================================================================


@router.get("/{book_id}/bookmarks", response_model=list[BookmarkResponse])
async def list_bookmarks(book_id: str, user_id: str | None = None) -> list[repo.BookmarkRecord]:
    _require_book(book_id)
    return repo.get_bookmarks(resolve_user_id(user_id), book_id)


@router.post(
    "/{book_id}/bookmarks",
    response_model=BookmarkResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_bookmark(
    book_id: str, request: BookmarkCreate, user_id: str | None = None
) -> repo.BookmarkRecord:
    _require_book(book_id)
    return repo.create_bookmark(
        resolve_user_id(user_id),
        book_id,
        location=request.location,
        text=request.text,
        note=request.note,
    )


@router.delete("/{book_id}/bookmarks/{bookmark_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_bookmark(book_id: str, bookmark_id: str, user_id: str | None = None) -> Response:
    if not repo.delete_bookmark(bookmark_id, resolve_user_id(user_id), book_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Bookmark '{bookmark_id}' not found",
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# ANNOTATIONS
# =============================================================================


@router.get("/{book_id}/annotations", response_model=list[AnnotationResponse])
async def list_annotations(book_id: str, user_id: str | None = None) -> list[repo.AnnotationRecord]:
    """Highlights of the user in a book."""
    _require_book(book_id)
    return repo.get_annotations(resolve_user_id(user_id), book_id)


@router.post(
    "/{book_id}/annotations",
    response_model=AnnotationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_annotation(
    book_id: str, request: AnnotationCreate, user_id: str | None = None
) -> repo.AnnotationRecord:
    _require_book(book_id)
    return repo.create_annotation(
        resolve_user_id(user_id),
        book_id,
        start_location=request.start_location,
        end_location=request.end_location,
        selected_text=request.selected_text,
        annotation=request.annotation,
        highlight_color=request.highlight_color,
    )


@router.patch("/{book_id}/annotations/{annotation_id}", response_model=AnnotationResponse)
async def update_annotation(
    book_id: str, annotation_id: str, request: AnnotationUpdate, user_id: str | None = None
) -> repo.AnnotationRecord:
    annotation = repo.update_annotation(
        annotation_id,
        resolve_user_id(user_id),
        book_id,
        annotation=request.annotation,
        highlight_color=request.highlight_color,
    )
    if annotation is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Annotation '{annotation_id}' not found",
        )
    return annotation


@router.delete(
    "/{book_id}/annotations/{annotation_id}", status_code=status.HTTP_204_NO_CONTENT
)
async def delete_annotation(
    book_id: str, annotation_id: str, user_id: str | None = None
) -> Response:
    if not repo.delete_annotation(annotation_id, resolve_user_id(user_id), book_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Annotation '{annotation_id}' not found",
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
