"""Pydantic schemas for the Web API.

Request bodies and response models for chats, journal, conjugation,
books and the LLM passthrough endpoints.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

MessageType = Literal["user", "assistant", "suggestion"]
Tense = Literal["present", "preterite", "imperfect", "future", "conditional", "present_subjunctive"]
AnalysisType = Literal["grammar", "natural-phrases", "english-words"]


# =============================================================================
# COMMON
# =============================================================================


class ErrorResponse(BaseModel):
    """Error body returned by exception handlers."""

    error: str
    detail: Any = None


class HealthResponse(BaseModel):
    status: str
    version: str
    database: str


class ModelInfo(BaseModel):
    id: str
    provider: str
    model: str
    display_name: str


class ModelListResponse(BaseModel):
    models: list[ModelInfo]
    default_model: str
    count: int


# =============================================================================
# CHAT SCHEMAS
# =============================================================================


class ChatCreate(BaseModel):
    """Request body for creating a chat."""

    id: str | None = None
    title: str = Field(..., min_length=1, max_length=200)
    model: str | None = None
    created_at: int | None = None


class ChatUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    model: str | None = None


class MessageResponse(BaseModel):
    id: str
    chat_id: str
    type: MessageType
    content: str
    timestamp: int
    is_complete: bool
    created_at: str

    model_config = {"from_attributes": True}


class ChatResponse(BaseModel):
    id: str
    title: str
    model: str
    created_at: int
    updated_at: str

    model_config = {"from_attributes": True}


class ChatDetail(ChatResponse):
    messages: list[MessageResponse] = []


class MessageCreate(BaseModel):
    """Request body for creating a message."""

    id: str | None = None
    chat_id: str
    type: MessageType
    content: str
    timestamp: int | None = None
    is_complete: bool = True


class MessageUpdate(BaseModel):
    content: str | None = None
    is_complete: bool | None = None
    type: MessageType | None = None


# =============================================================================
# JOURNAL SCHEMAS
# =============================================================================


class JournalEntryCreate(BaseModel):
    """Request body for creating a journal entry."""

    id: str | None = None
    user_id: str | None = None
    title: str | None = Field(default=None, max_length=200)
    content: dict[str, Any]


class JournalEntryUpdate(BaseModel):
    title: str | None = Field(default=None, max_length=200)
    content: dict[str, Any] | None = None


class CorrectionResponse(BaseModel):
    id: str
    entry_id: str
    original_text: str
    corrected_text: str
    explanation: str | None
    start_pos: int
    end_pos: int
    status: str
    created_at: str

    model_config = {"from_attributes": True}


class JournalEntryResponse(BaseModel):
    id: str
    user_id: str
    title: str
    content: dict[str, Any]
    plain_text: str
    word_count: int
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


class JournalEntryDetail(JournalEntryResponse):
    corrections: list[CorrectionResponse] = []


class CorrectTextRequest(BaseModel):
    text: str = Field(..., min_length=1)
    context: str | None = None
    model: str | None = None


class CorrectTextResponse(BaseModel):
    corrected_text: str


class AnalyzeTextRequest(BaseModel):
    """Request body for span-level analysis of journal text."""

    text: str = Field(..., min_length=1)
    type: AnalysisType = "grammar"
    model: str | None = None
    entry_id: str | None = None


class TextSuggestionResponse(BaseModel):
    original_text: str
    suggested_text: str
    explanation: str
    start_offset: int
    end_offset: int
    confidence: float


class AnalyzeTextResponse(BaseModel):
    suggestions: list[TextSuggestionResponse]
    corrections: list[CorrectionResponse] = []


class CorrectionStatusUpdate(BaseModel):
    status: Literal["accepted", "rejected"]


class ClearCorrectionsResponse(BaseModel):
    deleted: int


# =============================================================================
# CONJUGATION SCHEMAS
# =============================================================================


class VerbRuleResponse(BaseModel):
    id: str
    name: str
    description: str
    category: str
    tenses: list[str]
    examples: list[str]
    icon: str
    order: int
    is_unlocked: bool
    created_at: str

    model_config = {"from_attributes": True}


class VerbRuleCreate(BaseModel):
    id: str = Field(..., min_length=1)
    name: str
    description: str
    category: Literal["regular", "stem-changing", "irregular", "yo-irregular"]
    tenses: list[Tense]
    order: int
    examples: list[str] = []
    icon: str = ""
    is_unlocked: bool = False


class DrillResponse(BaseModel):
    id: str
    sentence: str
    verb: str
    pronoun: str
    tense: str
    correct_answer: str
    rule_id: str
    difficulty: int
    created_at: str

    model_config = {"from_attributes": True}


class DrillSessionResponse(BaseModel):
    id: str
    user_id: str
    drill_ids: list[str]
    status: str
    created_at: str
    completed_at: str | None

    model_config = {"from_attributes": True}


class DrillSessionDetail(DrillSessionResponse):
    drills: list[DrillResponse] = []


class GenerateDrillsRequest(BaseModel):
    """Request body for generating a drill batch."""

    user_id: str = Field(..., min_length=1)
    count: int = Field(default=5, ge=1, le=20)
    focus_rule_id: str | None = None
    model: str | None = None


class GenerateDrillsResponse(BaseModel):
    session: DrillSessionResponse
    drills: list[DrillResponse]


class DrillAttemptRequest(BaseModel):
    """Request body for recording an answer.

    ``is_correct`` is computed from the drill when omitted.
    """

    user_id: str = Field(..., min_length=1)
    drill_id: str = Field(..., min_length=1)
    user_answer: str
    is_correct: bool | None = None
    time_spent: int | None = None


class RuleProgressResponse(BaseModel):
    id: str
    user_id: str
    rule_id: str
    correct_count: int
    total_attempts: int
    last_attempt_at: str | None
    is_unlocked: bool
    unlocked_at: str | None
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


class AttemptResponse(BaseModel):
    id: str
    user_id: str
    drill_id: str
    user_answer: str
    is_correct: bool
    time_spent: int | None
    status: str
    created_at: str

    model_config = {"from_attributes": True}


class UnlockResultResponse(BaseModel):
    unlocked_rule: VerbRuleResponse
    progress: RuleProgressResponse
    trigger_rule_id: str
    accuracy: int


class DrillAttemptResponse(BaseModel):
    attempt: AttemptResponse
    unlock_result: UnlockResultResponse | None = None
    correct_answer: str


class ProgressEntry(BaseModel):
    progress: RuleProgressResponse
    rule: VerbRuleResponse


class UserProgressResponse(BaseModel):
    user_id: str
    progress: list[ProgressEntry]
    active_session: DrillSessionResponse | None = None


class ProgressAction(BaseModel):
    action: Literal["unlock_rule"]
    rule_id: str = Field(..., min_length=1)


class UnlockProgressResponse(BaseModel):
    total_attempts: int
    correct_count: int
    accuracy: float
    attempts_needed: int
    accuracy_needed: float


class SessionAction(BaseModel):
    action: Literal["complete"]
    user_id: str = Field(..., min_length=1)


# =============================================================================
# BOOK SCHEMAS
# =============================================================================


class ReadingProgressResponse(BaseModel):
    id: str
    user_id: str
    book_id: str
    current_location: str
    progress_percentage: int
    reading_time_ms: int
    last_read_at: str
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


class BookResponse(BaseModel):
    id: str
    user_id: str
    title: str
    author: str | None
    language: str
    description: str | None
    file_path: str
    file_size: int
    isbn: str | None
    publisher: str | None
    metadata: dict[str, Any] | None
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


class BookWithProgress(BookResponse):
    progress: ReadingProgressResponse | None = None


class BookDetail(BookWithProgress):
    bookmarks_count: int = 0


class BookUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1)
    author: str | None = None
    language: str | None = None
    description: str | None = None
    isbn: str | None = None
    publisher: str | None = None


class ReadingProgressUpdate(BaseModel):
    current_location: str = Field(..., min_length=1)
    progress_percentage: int | None = Field(default=None, ge=0, le=100)
    reading_time_ms: int | None = Field(default=None, ge=0)


class BookmarkCreate(BaseModel):
    location: str = Field(..., min_length=1)
    text: str | None = None
    note: str | None = None


class BookmarkResponse(BaseModel):
    id: str
    user_id: str
    book_id: str
    location: str
    text: str | None
    note: str | None
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


class AnnotationCreate(BaseModel):
    start_location: str = Field(..., min_length=1)
    end_location: str = Field(..., min_length=1)
    selected_text: str = Field(..., min_length=1)
    annotation: str | None = None
    highlight_color: str = "yellow"


class AnnotationUpdate(BaseModel):
    annotation: str | None = None
    highlight_color: str | None = None


class AnnotationResponse(BaseModel):
    id: str
    user_id: str
    book_id: str
    start_location: str
    end_location: str
    selected_text: str
    annotation: str | None
    highlight_color: str
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


# =============================================================================
# LLM PASSTHROUGH SCHEMAS
# =============================================================================


class SuggestionRequest(BaseModel):
    user_input: str = Field(..., min_length=1)
    chat_context: str = ""
    model: str | None = None


class SuggestionResponse(BaseModel):
    suggestion: str
    processing_time_ms: int
    error: str | None = None


class ChatRequest(BaseModel):
    """Request body for a conversational reply."""

    user_message: str = Field(..., min_length=1)
    chat_history: str = ""
    model: str | None = None
    stream: bool = False


class ChatReply(BaseModel):
    response: str
    processing_time_ms: int
    error: str | None = None


class SideChatRequest(BaseModel):
    original_context: str = Field(..., min_length=1)
    spanish_suggestion: str = Field(..., min_length=1)
    student_message: str = Field(..., min_length=1)
    model: str | None = None
    stream: bool = False


class TranslationRequest(BaseModel):
    selected_text: str = Field(..., min_length=1)
    context_message: str = ""
    chat_context: str = ""
    model: str | None = None


class TranslationResponse(BaseModel):
    translation: str
    processing_time_ms: int
    error: str | None = None


class StartersRequest(BaseModel):
    previous_assistant_questions: list[str] = []
    previous_user_questions: list[str] = []
    model: str | None = None


class StartersResponse(BaseModel):
    assistant_questions: list[str]
    user_questions: list[str]
    processing_time_ms: int
    error: str | None = None
