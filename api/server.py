"""
FastAPI server for the Albi Mall assistant.

Provides the REST API the storefront calls.

Usage:
    uvicorn api.server:app --reload --port 8000
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.models import (
    ChatRequest,
    ChatResponse,
    ClearSessionResponse,
    ErrorResponse,
    HealthResponse,
    SessionResponse,
    SessionsResponse,
)
from api.validation import validate_chat_request
from config.settings import Settings, get_settings
from core.errors import InputValidationError
from core.orchestrator import Assistant, build_assistant
from core.structured_logging import get_logger, log_error, setup_logging

load_dotenv()

logger = get_logger("api.server")


def _error_response(status_code: int, error: str, code: Optional[str] = None) -> JSONResponse:
    body = ErrorResponse(error=error, code=code)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def create_app(assistant: Optional[Assistant] = None, settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        assistant: Pre-built assistant (built from settings when None)
        settings: Settings (defaults to get_settings())
    """
    settings = settings or get_settings()
    setup_logging(
        log_dir=settings.log_dir,
        console_level=getattr(logging, settings.log_level.upper(), logging.INFO),
        enable_file=settings.log_to_file,
        enable_error_log=settings.log_to_file,
    )
    if assistant is None:
        assistant = build_assistant(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        assistant.start()
        logger.info(f"{settings.app_name} started", extra={"event": "server_start"})
        try:
            yield
        finally:
            assistant.stop()
            logger.info(f"{settings.app_name} stopped", extra={"event": "server_stop"})

    app = FastAPI(
        title=settings.app_name,
        description="Albi Mall shopping assistant API",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.assistant = assistant
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ========================================================================
    # Error handlers
    # ========================================================================

    @app.exception_handler(InputValidationError)
    async def input_error_handler(request: Request, exc: InputValidationError):
        logger.info(
            f"Rejected request: {exc.code}",
            extra={"event": "input_rejected", "error_type": exc.code},
        )
        return _error_response(exc.status_code, exc.message, exc.code)

    @app.exception_handler(RequestValidationError)
    async def request_error_handler(request: Request, exc: RequestValidationError):
        return _error_response(400, "Request body is invalid", "VALIDATION_ERROR")

    @app.exception_handler(Exception)
    async def internal_error_handler(request: Request, exc: Exception):
        log_error(None, exc, context=f"{request.method} {request.url.path}")
        return _error_response(500, "Internal server error")

    # ========================================================================
    # Routes
    # ========================================================================

    prefix = settings.api_prefix.rstrip("/")

    @app.post(
        f"{prefix}/chat",
        response_model=ChatResponse,
        response_model_exclude_none=True,
        responses={400: {"model": ErrorResponse}},
    )
    def chat(request: ChatRequest):
        """
        Main conversation endpoint.

        Validates the message, runs one assistant turn and returns the reply
        with the (possibly generated) session id.
        """
        message, session_id = validate_chat_request(
            request.message,
            request.session_id,
            request.products,
            max_length=settings.max_message_length,
            min_length=settings.min_message_length,
        )
        reply = assistant.handle_message(message, session_id=session_id)
        return ChatResponse(data=reply.response.to_dict(), session_id=reply.session_id)

    @app.get(
        f"{prefix}/session/{{session_id}}",
        response_model=SessionResponse,
        responses={404: {"model": ErrorResponse}},
    )
    def get_session(session_id: str):
        """Get current session state."""
        snapshot = assistant.session_snapshot(session_id)
        if snapshot is None:
            return _error_response(404, "Session not found")
        return SessionResponse(data=snapshot)

    @app.delete(f"{prefix}/session/{{session_id}}", response_model=ClearSessionResponse)
    def clear_session(session_id: str):
        """Delete a session."""
        cleared = assistant.clear_session(session_id)
        return ClearSessionResponse(
            success=cleared,
            message="Session cleared" if cleared else "Session not found",
        )

    @app.get(f"{prefix}/sessions", response_model=SessionsResponse)
    def list_sessions():
        """List all active sessions."""
        sessions = assistant.active_sessions()
        return SessionsResponse(data={"activeSessions": sessions, "count": len(sessions)})

    @app.get(f"{prefix}/health", response_model=HealthResponse)
    def health():
        """Health check endpoint."""
        return HealthResponse(
            service=settings.app_name,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )

    return app


def __getattr__(name: str):
    # ``uvicorn api.server:app`` builds the app on first access
    if name == "app":
        application = create_app()
        globals()["app"] = application
        return application
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api.server:app", host="0.0.0.0", port=8000, reload=False)
