"""Journal endpoints: entries, AI correction and pending corrections."""

import sqlite3

import structlog
from fastapi import APIRouter, HTTPException, Response, status

from escribiendo.db import journal_repository as repo
from escribiendo.llm.client import LLMError
from escribiendo.web.deps import get_language_service, resolve_user_id
from escribiendo.web.schemas import (
    AnalyzeTextRequest,
    AnalyzeTextResponse,
    ClearCorrectionsResponse,
    CorrectionResponse,
    CorrectionStatusUpdate,
    CorrectTextRequest,
    CorrectTextResponse,
    JournalEntryCreate,
    JournalEntryDetail,
    JournalEntryResponse,
    JournalEntryUpdate,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/journal", tags=["journal"])


def _entry_not_found(entry_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Journal entry '{entry_id}' not found",
    )


# =============================================================================
# AI CORRECTION
# =============================================================================


@router.post("/correct", response_model=CorrectTextResponse)
def correct_text(request: CorrectTextRequest) -> dict:
    """Return a corrected version of the submitted Spanish text."""
    service = get_language_service(request.model)

    try:
        corrected = service.correct_text(request.text, request.context)
    except LLMError as e:
        logger.error("journal.correct_failed", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to correct text",
        )

    return {"corrected_text": corrected}


@router.post("/analyze", response_model=AnalyzeTextResponse)
def analyze_text(request: AnalyzeTextRequest) -> dict:
    """Span-level suggestions for a text.

    When ``entry_id`` is given, the entry's pending corrections are replaced
    by the new suggestions.
    """
    if request.entry_id and repo.get_entry_by_id(request.entry_id) is None:
        raise _entry_not_found(request.entry_id)

    service = get_language_service(request.model)

    try:
        suggestions = service.analyze_text(request.text, request.type)
    except LLMError as e:
        logger.error("journal.analyze_failed", kind=request.type, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to analyze text",
        )

    corrections = []
    if request.entry_id:
        repo.clear_pending_corrections(request.entry_id)
        corrections = [
            repo.create_correction(
                entry_id=request.entry_id,
                original_text=s.original_text,
                corrected_text=s.suggested_text,
                start_pos=s.start_offset,
                end_pos=s.end_offset,
                explanation=s.explanation or None,
            )
            for s in suggestions
        ]
        logger.info("journal.corrections_stored", entry_id=request.entry_id, count=len(corrections))

    return {"suggestions": suggestions, "corrections": corrections}


@router.patch("/corrections/{correction_id}", response_model=CorrectionResponse)
async def update_correction(correction_id: str, request: CorrectionStatusUpdate) -> repo.CorrectionRecord:
    """Accept or reject a pending correction."""
    correction = repo.update_correction_status(correction_id, request.status)
    if correction is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Correction '{correction_id}' not found",
        )
    return correction


# =============================================================================
# ENTRIES
# =============================================================================


@router.get("", response_model=list[JournalEntryResponse])
async def list_entries(user_id: str | None = None) -> list[repo.JournalEntryRecord]:
    """List a user's entries, most recently updated first."""
    return repo.get_entries_by_user(resolve_user_id(user_id))


@router.post("", response_model=JournalEntryResponse, status_code=status.HTTP_201_CREATED)
async def create_entry(request: JournalEntryCreate) -> repo.JournalEntryRecord:
    """Create an entry from a rich-text document."""
    try:
        entry = repo.create_entry(
            user_id=resolve_user_id(request.user_id),
            content=request.content,
            title=request.title,
            entry_id=request.id,
        )
    except sqlite3.IntegrityError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Journal entry '{request.id}' already exists",
        )

    logger.info("journal.entry_created", entry_id=entry.id, words=entry.word_count)
    return entry


@router.get("/{entry_id}", response_model=JournalEntryDetail)
async def get_entry(entry_id: str) -> dict:
    """Get an entry with its pending corrections."""
    entry = repo.get_entry_with_corrections(entry_id)
    if entry is None:
        raise _entry_not_found(entry_id)
    return entry


@router.put("/{entry_id}", response_model=JournalEntryResponse)
async def update_entry(entry_id: str, request: JournalEntryUpdate) -> repo.JournalEntryRecord:
    entry = repo.update_entry(entry_id, title=request.title, content=request.content)
    if entry is None:
        raise _entry_not_found(entry_id)
    return entry


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_entry(entry_id: str) -> Response:
    """Delete an entry and its corrections."""
    if not repo.delete_entry(entry_id):
        raise _entry_not_found(entry_id)

    logger.info("journal.entry_deleted", entry_id=entry_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{entry_id}/corrections", response_model=list[CorrectionResponse])
async def list_corrections(entry_id: str) -> list[repo.CorrectionRecord]:
    """Pending corrections of an entry, in text order."""
    if repo.get_entry_by_id(entry_id) is None:
        raise _entry_not_found(entry_id)
    return repo.get_pending_corrections(entry_id)


@router.delete("/{entry_id}/corrections", response_model=ClearCorrectionsResponse)
async def clear_corrections(entry_id: str) -> dict:
    if repo.get_entry_by_id(entry_id) is None:
        raise _entry_not_found(entry_id)
    return {"deleted": repo.clear_pending_corrections(entry_id)}
