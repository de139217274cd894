"""Error taxonomy and transport-error classification."""

from __future__ import annotations

import asyncio
import re
from enum import Enum

from pydantic import ValidationError


class ErrorKind(str, Enum):
    NOT_AUTHENTICATED = "not_authenticated"
    CHANNEL_UNVERIFIED = "channel_unverified"
    ACTOR_UNAVAILABLE = "actor_unavailable"
    REMOTE_REJECTED = "remote_rejected"
    TRANSPORT_FAILURE = "transport_failure"
    VERIFICATION_FAILURE = "verification_failure"
    TIMEOUT = "timeout"
    INVALID_INPUT = "invalid_input"


NOT_AUTHENTICATED_MESSAGE = "Not authenticated"
ACTOR_UNAVAILABLE_MESSAGE = (
    "The MindSage service is unavailable for this session. Please log out and log in again."
)
VERIFICATION_FAILURE_MESSAGE = (
    "Could not verify the service's response. If you are running a local replica, "
    "make sure it is up, then log out and log in again."
)
TIMEOUT_MESSAGE = (
    "The request timed out. It may still complete on the service; "
    "check your profile before trying again."
)

# Structured codes surfaced by the transport layer (``error_code`` in HTTP
# error bodies).
VERIFICATION_ERROR_CODES = frozenset({
    "CERTIFICATE_VERIFICATION_FAILED",
    "SIGNATURE_VERIFICATION_FAILED",
    "ROOT_KEY_MISMATCH",
})
TIMEOUT_ERROR_CODES = frozenset({"TIMEOUT", "INGRESS_EXPIRED"})

# Fallback patterns for transports that only give us message text.
_VERIFICATION_PATTERNS = re.compile(
    r"certificate verification failed|signature could not be verified|invalid signature",
    re.IGNORECASE,
)
_TIMEOUT_PATTERNS = re.compile(r"timed out|timeout", re.IGNORECASE)


class MindSageError(Exception):
    """Base exception for platform failures."""


class IdentityError(MindSageError):
    """Raised when the identity client cannot produce a credential."""


class LoginCancelled(IdentityError):
    """Raised by an authorizer when the user abandons the login flow."""


class ChannelError(MindSageError):
    """Base exception for channel/transport failures."""

    error_code: str | None = None

    def __init__(self, message: str, error_code: str | None = None):
        super().__init__(message)
        if error_code is not None:
            self.error_code = error_code


class ChannelHTTPError(ChannelError):
    """Raised for non-success HTTP responses from the service endpoint."""

    def __init__(self, status_code: int, detail: str, error_code: str | None = None):
        super().__init__(f"Service error {status_code}: {detail}", error_code)
        self.status_code = status_code
        self.detail = detail


class ChannelVerificationError(ChannelError):
    """Raised when a reply cannot be verified against the channel's root key."""

    error_code = "CERTIFICATE_VERIFICATION_FAILED"


class ActorBindError(MindSageError):
    """Raised when a channel cannot be bound to the service interface."""


class CallTimeout(MindSageError):
    """Raised when a call loses its race against a client-side deadline."""

    error_code = "TIMEOUT"

    def __init__(self, operation: str, seconds: float):
        super().__init__(f"{operation} timeout after {seconds:g}s")
        self.operation = operation
        self.seconds = seconds


def classify_error(exc: BaseException) -> tuple[ErrorKind, str]:
    """Classify a raised exception into an ``ErrorKind`` and user-facing message.

    A structured ``error_code`` on the exception wins; message patterns are
    only consulted when no code is available.
    """
    code = getattr(exc, "error_code", None)
    if code in TIMEOUT_ERROR_CODES:
        return ErrorKind.TIMEOUT, TIMEOUT_MESSAGE
    if code in VERIFICATION_ERROR_CODES:
        return ErrorKind.VERIFICATION_FAILURE, VERIFICATION_FAILURE_MESSAGE

    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return ErrorKind.TIMEOUT, TIMEOUT_MESSAGE
    if isinstance(exc, ValidationError):
        return ErrorKind.INVALID_INPUT, _describe_validation_error(exc)

    message = str(exc)
    if code is None:
        if _VERIFICATION_PATTERNS.search(message):
            return ErrorKind.VERIFICATION_FAILURE, VERIFICATION_FAILURE_MESSAGE
        if _TIMEOUT_PATTERNS.search(message):
            return ErrorKind.TIMEOUT, TIMEOUT_MESSAGE

    return ErrorKind.TRANSPORT_FAILURE, message or exc.__class__.__name__


def _describe_validation_error(exc: ValidationError) -> str:
    problems = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()))
        problems.append(f"{loc}: {err.get('msg', 'invalid value')}" if loc else err.get("msg", "invalid value"))
    return "Invalid input: " + "; ".join(problems)
