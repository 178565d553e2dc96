"""Error taxonomy shared by the service client, save sink and orchestrators."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel


class ErrorKind(str, Enum):
    """Where a failure came from."""

    CONNECTIVITY = "connectivity"  # no HTTP reply at all
    VALIDATION = "validation"  # server rejected the request shape/constraints
    SERVER = "server"  # server-side generation/export failure
    PRECONDITION = "precondition"  # detected locally, no request made
    LOCAL = "local"  # saving the download on this machine failed


NETWORK_ERROR_MESSAGE = "No response from server. Please check your connection."

# Remote error codes that describe a bad request rather than a server fault.
VALIDATION_CODES = frozenset({
    "INSUFFICIENT_APIS",
    "INSUFFICIENT_CATEGORIES",
    "INVALID_REQUEST",
    "VALIDATION_ERROR",
    "API_VALIDATION_ERROR",
    "API_NOT_FOUND",
    "INVALID_FILENAME",
    "FILE_NOT_FOUND",
    "INVALID_MESSAGE",
})

SERVER_CODES = frozenset({
    "SERVER_ERROR",
    "INTERNAL_ERROR",
    "PIPELINE_ERROR",
    "API_SELECTION_FAILED",
    "IDEA_GENERATION_FAILED",
    "CODE_GENERATION_FAILED",
    "ZIP_EXPORT_FAILED",
    "STREAM_ERROR",
})


class ErrorInfo(BaseModel):
    """Normalized description of a failed operation."""

    kind: ErrorKind
    code: str
    message: str
    details: Any = None


class MashupServiceError(Exception):
    """Raised by the service client and save sink; caught by the orchestrators."""

    def __init__(self, info: ErrorInfo) -> None:
        super().__init__(info.message)
        self.info = info

    @property
    def kind(self) -> ErrorKind:
        return self.info.kind

    @property
    def code(self) -> str:
        return self.info.code

    @classmethod
    def from_envelope(
        cls, code: str | None, message: str | None, details: Any = None, *, status: int | None = None,
    ) -> "MashupServiceError":
        """Build an error from a ``{success: false, error: {...}}`` payload."""
        code = code or "SERVER_ERROR"
        if code in VALIDATION_CODES:
            kind = ErrorKind.VALIDATION
        elif code in SERVER_CODES or status is None or not 400 <= status < 500:
            kind = ErrorKind.SERVER
        else:
            # Unknown 4xx codes are still a rejection of what we sent.
            kind = ErrorKind.VALIDATION
        return cls(ErrorInfo(
            kind=kind,
            code=code,
            message=message or f"Request failed ({code})",
            details=details,
        ))

    @classmethod
    def connectivity(cls, details: Any = None) -> "MashupServiceError":
        return cls(ErrorInfo(
            kind=ErrorKind.CONNECTIVITY,
            code="NETWORK_ERROR",
            message=NETWORK_ERROR_MESSAGE,
            details=details,
        ))
