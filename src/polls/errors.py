"""Error taxonomy shared by repositories and API handlers.

Repositories raise ``ApiError`` with an HTTP status and an ``ErrorCode``; the
API layer renders them with ``error_response``.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_TIMEZONE = "INVALID_TIMEZONE"
    INVALID_DATE_FORMAT = "INVALID_DATE_FORMAT"
    INVALID_TIME_FORMAT = "INVALID_TIME_FORMAT"

    POLL_NOT_FOUND = "POLL_NOT_FOUND"
    PARTICIPANT_NOT_FOUND = "PARTICIPANT_NOT_FOUND"
    TIME_SLOT_NOT_FOUND = "TIME_SLOT_NOT_FOUND"
    DATABASE_ERROR = "DATABASE_ERROR"

    POLL_EXPIRED = "POLL_EXPIRED"
    DUPLICATE_PARTICIPANT = "DUPLICATE_PARTICIPANT"
    INVALID_AVAILABILITY = "INVALID_AVAILABILITY"

    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    BAD_REQUEST = "BAD_REQUEST"


ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.VALIDATION_ERROR: "Please check your input and try again.",
    ErrorCode.INVALID_TIMEZONE: "The selected timezone is not valid.",
    ErrorCode.INVALID_DATE_FORMAT: "Please enter a valid date.",
    ErrorCode.INVALID_TIME_FORMAT: "Please enter a valid time.",
    ErrorCode.POLL_NOT_FOUND: "The requested poll could not be found.",
    ErrorCode.PARTICIPANT_NOT_FOUND: "Participant not found.",
    ErrorCode.TIME_SLOT_NOT_FOUND: "Time slot not found.",
    ErrorCode.DATABASE_ERROR: "A database error occurred. Please try again.",
    ErrorCode.POLL_EXPIRED: "This poll is no longer accepting responses.",
    ErrorCode.DUPLICATE_PARTICIPANT: "A participant with this email already exists.",
    ErrorCode.INVALID_AVAILABILITY: "Invalid availability data provided.",
    ErrorCode.INTERNAL_SERVER_ERROR: "An unexpected error occurred.",
    ErrorCode.UNAUTHORIZED: "You are not authorized to perform this action.",
    ErrorCode.FORBIDDEN: "Access to this resource is forbidden.",
    ErrorCode.BAD_REQUEST: "Invalid request. Please check your input.",
}


class ApiError(Exception):
    def __init__(
        self,
        status_code: int,
        code: ErrorCode,
        message: str | None = None,
        details: dict[str, str] | None = None,
    ) -> None:
        self.status_code = status_code
        self.code = code
        self.message = message or ERROR_MESSAGES[code]
        self.details = details
        super().__init__(self.message)

    def to_response(self) -> dict[str, Any]:
        return error_response(self.code, self.message, self.details)


def error_response(
    code: ErrorCode, message: str | None = None, details: dict[str, str] | None = None
) -> dict[str, Any]:
    body: dict[str, Any] = {"code": str(code), "message": message or ERROR_MESSAGES[code]}
    if details:
        body["details"] = details
    return {"error": body}
