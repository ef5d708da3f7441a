"""Conjugation endpoints: verb rules, drill generation, attempts and progress."""

import sqlite3

import structlog
from fastapi import APIRouter, HTTPException, status

from escribiendo.core.drill_generator import DrillGenerationError, generate_drills
from escribiendo.core.drill_selection import check_answer
from escribiendo.db import conjugation_repository as repo
from escribiendo.web.deps import get_language_service
from escribiendo.web.schemas import (
    DrillAttemptRequest,
    DrillAttemptResponse,
    DrillSessionDetail,
    DrillSessionResponse,
    GenerateDrillsRequest,
    GenerateDrillsResponse,
    ProgressAction,
    RuleProgressResponse,
    SessionAction,
    UnlockProgressResponse,
    UserProgressResponse,
    VerbRuleCreate,
    VerbRuleResponse,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/conjugation", tags=["conjugation"])


def _rule_not_found(rule_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Verb rule '{rule_id}' not found",
    )


def _session_not_found(session_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Drill session '{session_id}' not found",
    )


# =============================================================================
# RULES
# =============================================================================


@router.get("/rules", response_model=list[VerbRuleResponse])
async def list_rules() -> list[repo.VerbRuleRecord]:
    """All verb rules in curriculum order."""
    return repo.get_verb_rules()


@router.post("/rules", response_model=VerbRuleResponse, status_code=status.HTTP_201_CREATED)
async def create_rule(request: VerbRuleCreate) -> repo.VerbRuleRecord:
    try:
        return repo.create_verb_rule(
            rule_id=request.id,
            name=request.name,
            description=request.description,
            category=request.category,
            tenses=list(request.tenses),
            order=request.order,
            examples=request.examples,
            icon=request.icon,
            is_unlocked=request.is_unlocked,
        )
    except sqlite3.IntegrityError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Verb rule '{request.id}' already exists",
        )


# =============================================================================
# DRILLS
# =============================================================================


@router.post("/drills/generate", response_model=GenerateDrillsResponse)
def generate(request: GenerateDrillsRequest) -> dict:
    """Generate a new drill session for the user's focus rules.

    Completes any active session of the user first.
    """
    service = get_language_service(request.model)

    try:
        return generate_drills(
            request.user_id,
            count=request.count,
            focus_rule_id=request.focus_rule_id,
            service=service,
        )
    except DrillGenerationError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e),
        )


@router.post("/drills/attempt", response_model=DrillAttemptResponse)
async def record_attempt(request: DrillAttemptRequest) -> dict:
    """Record an answer and report any rule unlocked by it.

    ``is_correct`` is computed against the drill's answer when omitted.
    """
    drill = repo.get_drill_by_id(request.drill_id)
    if drill is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Drill '{request.drill_id}' not found",
        )

    is_correct = request.is_correct
    if is_correct is None:
        is_correct = check_answer(request.user_answer, drill.correct_answer)

    result = repo.record_drill_attempt(
        request.user_id,
        request.drill_id,
        request.user_answer,
        is_correct,
        request.time_spent,
    )

    if result["unlock_result"]:
        logger.info(
            "conjugation.unlock",
            user_id=request.user_id,
            rule_id=result["unlock_result"]["unlocked_rule"].id,
        )

    return {**result, "correct_answer": drill.correct_answer}


# =============================================================================
# PROGRESS
# =============================================================================


@router.get("/progress/{user_id}", response_model=UserProgressResponse)
async def get_progress(user_id: str) -> dict:
    """Rule progress of a user and the active session, if any."""
    return {
        "user_id": user_id,
        "progress": repo.get_user_progress_with_rules(user_id),
        "active_session": repo.get_active_drill_session(user_id),
    }


@router.post("/progress/{user_id}", response_model=RuleProgressResponse)
async def update_progress(user_id: str, request: ProgressAction) -> repo.RuleProgressRecord:
    """Apply a progress action; only ``unlock_rule`` is supported."""
    if repo.get_verb_rule_by_id(request.rule_id) is None:
        raise _rule_not_found(request.rule_id)
    return repo.unlock_user_rule(user_id, request.rule_id)


@router.get("/progress/{user_id}/rules/{rule_id}", response_model=UnlockProgressResponse)
async def get_rule_unlock_progress(user_id: str, rule_id: str) -> dict:
    """Recent accuracy of a rule against the unlock threshold."""
    if repo.get_verb_rule_by_id(rule_id) is None:
        raise _rule_not_found(rule_id)
    return repo.get_unlock_progress(user_id, rule_id)


# =============================================================================
# SESSIONS
# =============================================================================


@router.get("/sessions", response_model=list[DrillSessionResponse])
async def list_sessions(user_id: str) -> list[repo.DrillSessionRecord]:
    return repo.get_drill_sessions(user_id)


@router.get("/sessions/{session_id}", response_model=DrillSessionDetail)
async def get_session(session_id: str, user_id: str) -> dict:
    """A session of the user with its drills."""
    session = repo.get_drill_session_with_drills(user_id, session_id)
    if session is None:
        raise _session_not_found(session_id)
    return session


@router.patch("/sessions/{session_id}", response_model=DrillSessionResponse)
async def update_session(session_id: str, request: SessionAction) -> repo.DrillSessionRecord:
    """Apply a session action; only ``complete`` is supported."""
    session = repo.complete_drill_session(request.user_id, session_id)
    if session is None:
        raise _session_not_found(session_id)
    return session
