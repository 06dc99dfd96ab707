"""Error taxonomy and HTTP handlers."""

import logging
from typing import Optional
from uuid import uuid4

from fastapi import HTTPException
from fastapi.responses import JSONResponse
from starlette.requests import Request

from engagement.core.logging import get_session_id


class AppError(Exception):
    code = "app_error"
    status_code = 500

    def __init__(self, message: str, *, code: Optional[str] = None, status_code: Optional[int] = None, session_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.session_id = session_id


class ValidationError(AppError, ValueError):
    code = "validation_error"
    status_code = 400


class NotFoundError(AppError, ValueError):
    code = "not_found"
    status_code = 404


class CollaboratorError(AppError):
    """Raised when the activity store cannot be read."""
    code = "collaborator_unavailable"
    status_code = 503


def _error_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid4())


def _error_payload(code: str, message: str, request_id: str, session_id: Optional[str]) -> dict:
    return {
        "error": {"code": code, "message": message, "request_id": request_id, "session_id": session_id},
        "detail": message,
    }


async def app_error_handler(request: Request, exc: AppError):
    rid = _error_id(request)
    sid = exc.session_id or get_session_id()
    payload = _error_payload(exc.code, exc.message, rid, sid)
    logger = logging.getLogger("engagement")
    log_level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(
        log_level,
        "app.error",
        extra={"session_id": sid, "error_code": exc.code, "error_message": exc.message, "status": exc.status_code},
    )
    response = JSONResponse(status_code=exc.status_code, content=payload)
    response.headers["x-request-id"] = rid
    return response


async def http_error_handler(request: Request, exc: HTTPException):
    rid = _error_id(request)
    code = "not_found" if exc.status_code == 404 else "http_error"
    message = exc.detail if exc.detail else "HTTP error"
    payload = _error_payload(code, message, rid, get_session_id())
    logging.getLogger("engagement").warning("http.error", extra={"error_code": code, "status": exc.status_code})
    response = JSONResponse(status_code=exc.status_code, content=payload)
    response.headers["x-request-id"] = rid
    return response


async def unhandled_exception_handler(request: Request, exc: Exception):
    rid = _error_id(request)
    logging.getLogger("engagement").error("unhandled.exception", exc_info=True, extra={"error_code": "internal_error"})
    payload = _error_payload("internal_error", "Unexpected error", rid, get_session_id())
    response = JSONResponse(status_code=500, content=payload)
    response.headers["x-request-id"] = rid
    return response
