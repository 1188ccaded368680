from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException

from .exceptions import (
    EditConflict,
    ImportFormatError,
    PersistenceFailure,
    RecordNotFound,
    ValidationError,
)

logger = logging.getLogger(__name__)


class ErrorEnvelope(JSONResponse):
    def __init__(
        self,
        *,
        status_code: int,
        code: str,
        message: str,
        details: Any | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        payload: dict[str, Any] = {"code": code, "message": message}
        if details is not None:
            payload["details"] = details
        super().__init__(payload, status_code=status_code, headers=headers)


def _reason(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail
    code = "http_error"
    details = None
    if isinstance(detail, dict):
        # Routers raise structured denials as {"code": ..., "message": ...}.
        code = str(detail.get("code") or code)
        message = str(detail.get("message") or _reason(exc.status_code))
        details = {key: value for key, value in detail.items() if key not in ("code", "message")} or None
    elif isinstance(detail, str):
        message = detail
    else:
        message = _reason(exc.status_code)
    return ErrorEnvelope(
        status_code=exc.status_code,
        code=code,
        message=message,
        details=details,
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return ErrorEnvelope(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        code="validation_error",
        message="Validation failed",
        details={"errors": exc.errors()},
    )


async def ledger_validation_handler(request: Request, exc: ValidationError):
    return ErrorEnvelope(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        code="validation_error",
        message=str(exc),
    )


async def import_format_handler(request: Request, exc: ImportFormatError):
    return ErrorEnvelope(
        status_code=status.HTTP_400_BAD_REQUEST,
        code="import_format_error",
        message=str(exc),
        details={"missing": exc.missing},
    )


async def persistence_failure_handler(request: Request, exc: PersistenceFailure):
    logger.warning(
        "store.call_failed",
        extra={"extra_data": {"operation": exc.operation, "reason": exc.message}},
    )
    return ErrorEnvelope(
        status_code=status.HTTP_502_BAD_GATEWAY,
        code="persistence_failure",
        message=str(exc),
    )


async def record_not_found_handler(request: Request, exc: RecordNotFound):
    return ErrorEnvelope(status_code=status.HTTP_404_NOT_FOUND, code="not_found", message=str(exc))


async def edit_conflict_handler(request: Request, exc: EditConflict):
    return ErrorEnvelope(
        status_code=status.HTTP_409_CONFLICT,
        code="edit_in_flight",
        message=str(exc),
        details={"record_id": exc.record_id, "field": exc.field},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, ledger_validation_handler)
    app.add_exception_handler(ImportFormatError, import_format_handler)
    app.add_exception_handler(PersistenceFailure, persistence_failure_handler)
    app.add_exception_handler(RecordNotFound, record_not_found_handler)
    app.add_exception_handler(EditConflict, edit_conflict_handler)
