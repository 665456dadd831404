"""Error taxonomy and FastAPI exception handlers.

Every error body leaving the API has the shape ``{"message": ..., "details": ...}``
with ``details`` omitted when there is nothing to add. Validation details
are flattened into ``formErrors`` (whole-payload problems) and
``fieldErrors`` (messages keyed by field name).
"""

import logging
from typing import Any, Iterable

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from starlette.requests import Request

from core.logging_setup import get_request_id

logger = logging.getLogger(__name__)


class TrackerError(Exception):
    """Base exception for tracker errors."""

    status_code = 500

    def __init__(self, message: str, details: Any | None = None):
        self.message = message
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"message": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(TrackerError):
    """Malformed or missing input. Never retried."""

    status_code = 400


class NotFoundError(TrackerError):
    """Referenced project, task or dependency does not exist."""

    status_code = 404


class CycleError(TrackerError):
    """A dependency edge would close a cycle in the task graph."""

    status_code = 409


class InternalError(TrackerError):
    """Unexpected persistence failure. The message stays generic."""

    status_code = 500


# ---------------------------------------------------------------------------
# Validation detail flattening
# ---------------------------------------------------------------------------

def flatten_errors(errors: Iterable[dict[str, Any]]) -> dict[str, Any]:
    """Flatten pydantic error dicts into ``{formErrors, fieldErrors}``.

    The leading ``body``/``query``/``path`` location segment is dropped, and
    list indexes are kept so ``[0, "name"]`` becomes ``"0.name"``.
    """
    form_errors: list[str] = []
    field_errors: dict[str, list[str]] = {}
    for err in errors:
        loc = [str(part) for part in err.get("loc", ())]
        if loc and loc[0] in ("body", "query", "path"):
            loc = loc[1:]
        message = err.get("msg", "Invalid value")
        if not loc:
            form_errors.append(message)
        else:
            field_errors.setdefault(".".join(loc), []).append(message)
    return {"formErrors": form_errors, "fieldErrors": field_errors}


def validation_error_from_pydantic(
    exc: PydanticValidationError, message: str = "Invalid request data."
) -> ValidationError:
    return ValidationError(message, flatten_errors(exc.errors()))


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

async def _tracker_error_handler(request: Request, exc: TrackerError) -> JSONResponse:
    if isinstance(exc, InternalError):
        logger.error(
            "Internal error on %s %s (request %s): %s details=%s",
            request.method, request.url.path, get_request_id(), exc.message, exc.details,
        )
        return JSONResponse(status_code=exc.status_code, content={"message": exc.message})
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def _request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    error = ValidationError("Invalid request data.", flatten_errors(exc.errors()))
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "Unhandled error on %s %s (request %s)",
        request.method, request.url.path, get_request_id(),
    )
    return JSONResponse(status_code=500, content={"message": "Internal server error."})


def register_exception_handlers(app: FastAPI) -> None:
    """Install the tracker's error-to-response mapping on ``app``."""
    app.add_exception_handler(TrackerError, _tracker_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
