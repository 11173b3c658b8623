"""
Error types raised by the Mint client, testers and flows.

Remote errors are parsed into a MintAPIError whose `kind` is derived from the
HTTP status and the remote error schema ({"code": int, "message": str}), so
callers branch on a value instead of matching text.
"""

import enum
import json
from typing import Any, Optional


# Remote error codes the Mint API uses for "resource already exists".
DUPLICATE_ERROR_CODES = frozenset({2023})


class MintError(Exception):
    """Base class for all harness errors."""


class ConfigurationError(MintError):
    """Required configuration (e.g. the API key) is missing."""


class InsecureTransportError(MintError):
    """A request was about to be sent over a non-HTTPS URL."""


class TransportError(MintError):
    """The request never produced a response (connection failure, timeout)."""


class ValidationError(MintError):
    """Input was rejected before any network call was made."""


class FlowError(MintError):
    """A required step of a multi-step flow produced unusable output."""


class PropagationTimeout(MintError):
    """A remote resource did not reach the expected state in time."""

    def __init__(self, description: str, timeout: float, last_error: Optional[Exception] = None):
        self.description = description
        self.timeout = timeout
        self.last_error = last_error
        message = f"Timed out after {timeout:.1f}s waiting for {description}"
        if last_error is not None:
            message += f" (last error: {last_error})"
        super().__init__(message)


class ErrorKind(str, enum.Enum):
    """Classification of a remote API error."""

    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    INVALID_REQUEST = "invalid_request"
    SERVER = "server"
    OTHER = "other"


def classify(status_code: int, code: Optional[int], message: str) -> ErrorKind:
    """Map an HTTP status and remote error body to an ErrorKind."""
    if status_code == 409 or (code is not None and code in DUPLICATE_ERROR_CODES):
        return ErrorKind.CONFLICT
    # Duplicates are also reported as a generic 400 whose message says "already".
    if "already" in message.lower():
        return ErrorKind.CONFLICT
    if status_code == 404:
        return ErrorKind.NOT_FOUND
    if status_code in (401, 403):
        return ErrorKind.UNAUTHORIZED
    if status_code in (400, 422):
        return ErrorKind.INVALID_REQUEST
    if status_code >= 500:
        return ErrorKind.SERVER
    return ErrorKind.OTHER


class MintAPIError(MintError):
    """Non-2xx response from the Mint API."""

    def __init__(self, status_code: int, payload: Any):
        self.status_code = status_code
        self.payload = payload

        code: Optional[int] = None
        remote_message = ""
        if isinstance(payload, dict):
            raw_code = payload.get("code")
            if isinstance(raw_code, int) and not isinstance(raw_code, bool):
                code = raw_code
            elif isinstance(raw_code, str) and raw_code.isdigit():
                code = int(raw_code)
            remote_message = str(payload.get("message", ""))
        elif payload is not None:
            remote_message = str(payload)

        self.code = code
        self.remote_message = remote_message
        self.kind = classify(status_code, code, remote_message)
        super().__init__(f"Mint API Error ({status_code}): {json.dumps(payload)}")

    @property
    def is_conflict(self) -> bool:
        return self.kind is ErrorKind.CONFLICT

    @property
    def is_not_found(self) -> bool:
        return self.kind is ErrorKind.NOT_FOUND
