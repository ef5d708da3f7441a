"""FastAPI application factory.

Main entry point for the escribiendo Web API.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from escribiendo import __version__
from escribiendo.db.conjugation_repository import seed_verb_rules
from escribiendo.db.database import init_db
from escribiendo.web.routes import books, chats, conjugation, health, journal, llm
from escribiendo.web.schemas import ErrorResponse

logger = structlog.get_logger(__name__)

# Bodies produced by the handlers below, documented on every route
ERROR_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse, "description": "Invalid request"},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse, "description": "Server error"},
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Create the schema and seed the verb rule catalog on startup."""
    db_path = init_db()
    inserted = seed_verb_rules()
    logger.info("api_startup", db_path=str(db_path), rules_seeded=inserted)
    yield


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse(
            error="Invalid request", detail=jsonable_encoder(exc.errors())
        ).model_dump(),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", path=request.url.path, method=request.method)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(error="Internal server error", detail=str(exc)).model_dump(),
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI app instance
    """
    app = FastAPI(
        title="Escribiendo API",
        description="Web API for the escribiendo Spanish practice app",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
        responses=ERROR_RESPONSES,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(health.router)
    app.include_router(chats.router)
    app.include_router(chats.messages_router)
    app.include_router(journal.router)
    app.include_router(conjugation.router)
    app.include_router(books.router)
    app.include_router(llm.router)

    return app


# Default app instance for uvicorn
app = create_app()
