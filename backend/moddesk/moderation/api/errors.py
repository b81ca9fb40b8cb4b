"""JSON error bodies for failed moderation operations."""

from __future__ import annotations

from fastapi.responses import JSONResponse

from moddesk.moderation.domain.errors import ErrorKind
from moddesk.obs import logging as obs_logging

ERROR_STATUS: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.UNAUTHORIZED: 403,
    ErrorKind.VALIDATION_ERROR: 400,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INVALID_STATE: 409,
    ErrorKind.INTERNAL: 503,
}


def error_response(kind: ErrorKind, message: str | None) -> JSONResponse:
    payload = {
        "ok": False,
        "error_kind": kind.value,
        "message": message,
        "request_id": obs_logging.current_request_id(),
    }
    return JSONResponse(status_code=ERROR_STATUS.get(kind, 500), content=payload)
