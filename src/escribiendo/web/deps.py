"""Shared helpers for route handlers."""

from fastapi import HTTPException, status

from escribiendo.config.app_config import load_app_config
from escribiendo.config.models import UnknownModelError, get_model
from escribiendo.llm.service import LanguageService


def get_language_service(model_id: str | None) -> LanguageService:
    """Service for the requested model.

    Raises:
        HTTPException: 400 if the model is not registered
    """
    try:
        return LanguageService(model_id)
    except UnknownModelError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


def resolve_user_id(user_id: str | None) -> str:
    """Requested user id, or the configured default user."""
    return user_id or load_app_config().default_user_id


def check_model(model_id: str | None) -> None:
    """Reject unknown model ids with a 400."""
    if model_id is None:
        return
    try:
        get_model(model_id)
    except UnknownModelError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
