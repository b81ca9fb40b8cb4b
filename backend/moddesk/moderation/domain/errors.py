"""Moderation workflow failures and the error kinds callers switch on."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    VALIDATION_ERROR = "validation_error"
    CONFLICT = "conflict"
    INVALID_STATE = "invalid_state"
    INTERNAL = "internal"


class ModerationWorkflowError(Exception):
    """Base class for moderation workflow failures."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ItemNotFoundError(ModerationWorkflowError):
    kind = ErrorKind.NOT_FOUND


class UnauthorizedActionError(ModerationWorkflowError):
    kind = ErrorKind.UNAUTHORIZED


class ValidationFailedError(ModerationWorkflowError):
    kind = ErrorKind.VALIDATION_ERROR


class ConcurrentModificationError(ModerationWorkflowError):
    """A conditional write matched zero rows; the caller should refetch."""

    kind = ErrorKind.CONFLICT


class InvalidStateError(ModerationWorkflowError):
    kind = ErrorKind.INVALID_STATE
