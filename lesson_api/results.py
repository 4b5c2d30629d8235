"""Result values returned by the catalogue, the ledger and order intake.

Failures are returned, not raised, so the order saga can always see them and
roll back whatever it already reserved. The HTTP layer maps `ErrorCode` to a
status code.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCode(Enum):
    """Error kinds surfaced to API callers."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_ID = "INVALID_ID"
    LESSON_NOT_FOUND = "LESSON_NOT_FOUND"
    INSUFFICIENT_SPACES = "INSUFFICIENT_SPACES"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"


@dataclass(frozen=True)
class Failure:
    """A failed operation with a code and a user-safe message.

    `details` carries field-level reasons for validation failures.
    """

    code: ErrorCode
    message: str
    details: tuple[dict[str, Any], ...] = field(default_factory=tuple)

    @property
    def retryable(self) -> bool:
        return self.code is ErrorCode.STORE_UNAVAILABLE

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "details": list(self.details),
        }


@dataclass(frozen=True)
class Reserved:
    lesson_id: str
    quantity: int
    spaces_before: int
    spaces_after: int


@dataclass(frozen=True)
class Released:
    lesson_id: str
    quantity: int
    # False when the lesson no longer exists and nothing was incremented.
    applied: bool


@dataclass(frozen=True)
class Updated:
    lesson_id: str


@dataclass(frozen=True)
class Created:
    order_id: str


class StoreUnavailableError(Exception):
    """Raised by read operations when MongoDB cannot be reached."""


def validation_failed(message: str, details=()) -> Failure:
    return Failure(ErrorCode.VALIDATION_ERROR, message, tuple(details))


def invalid_id(value: Any) -> Failure:
    return Failure(ErrorCode.INVALID_ID, f"Invalid lesson id: {value!r}")


def lesson_not_found(lesson_id: str) -> Failure:
    return Failure(ErrorCode.LESSON_NOT_FOUND, f"Lesson {lesson_id} not found")


def insufficient_spaces(lesson_id: str, quantity: int) -> Failure:
    return Failure(
        ErrorCode.INSUFFICIENT_SPACES,
        f"Lesson {lesson_id} does not have {quantity} space(s) left",
    )


def store_unavailable(reason: str = "Database unavailable") -> Failure:
    return Failure(ErrorCode.STORE_UNAVAILABLE, reason)
