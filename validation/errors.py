"""
Error taxonomy and classification for sparkwms-sync.

Every failure inside the core is one of a small closed set of categories,
each carrying a stable numeric code so the host bridge can report it
without letting an exception cross the boundary:

    VALIDATION     bad input, rejected before any I/O, never retried
    NETWORK        remote unreachable or timed out (transient)
    SERVER         remote answered with an error status
    UNAUTHORIZED   remote rejected the credentials
    SERIALIZATION  payload could not be encoded/decoded
    PERSISTENCE    queue file could not be read or written
    INTERNAL       anything unclassified
"""

import logging
from enum import IntEnum
from typing import Optional, Type

import httpx
import pydantic


logger = logging.getLogger(__name__)


class ErrorCode(IntEnum):
    """Stable numeric codes reported across the host boundary."""
    SUCCESS = 0
    VALIDATION = 1
    NETWORK = 2
    SERVER = 3
    UNAUTHORIZED = 4
    SERIALIZATION = 5
    PERSISTENCE = 6
    INTERNAL = 999


class SyncError(Exception):
    """Base class for all classified sparkwms-sync errors."""

    code = ErrorCode.INTERNAL

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    def describe(self) -> str:
        """Message reported to the host alongside the code."""
        return self.message


class InputValidationError(SyncError):
    """Commit fields or call arguments failed validation before any I/O."""
    code = ErrorCode.VALIDATION


class ConfigError(SyncError):
    """Settings are missing or out of range."""
    code = ErrorCode.VALIDATION


class PersistenceError(SyncError):
    """Queue (or other local) file could not be read or written.

    When raised from a mutating operation, the in-memory queue is ahead of
    the file on disk; the mutation is not durable.
    """
    code = ErrorCode.PERSISTENCE


class QueueCorruptError(PersistenceError):
    """Queue file exists but could not be parsed (raise policy only)."""


class RemoteError(SyncError):
    """Remote probe or submission failed."""
    code = ErrorCode.NETWORK


class NetworkError(RemoteError):
    """Remote unreachable: connection refused, DNS failure, timeout."""
    code = ErrorCode.NETWORK


class ServerRejectedError(RemoteError):
    """Remote answered with an error status."""
    code = ErrorCode.SERVER

    def __init__(self, status: int, message: str = ""):
        super().__init__(message)
        self.status = status

    def __str__(self) -> str:
        return f"server error: {self.status} {self.message}".rstrip()

    def describe(self) -> str:
        return f"{self.status} {self.message}".rstrip()


class UnauthorizedError(RemoteError):
    """Remote rejected the credentials."""
    code = ErrorCode.UNAUTHORIZED

    def describe(self) -> str:
        return "unauthorized"


class SerializationError(SyncError):
    """Payload could not be encoded or decoded."""
    code = ErrorCode.SERIALIZATION


class InternalError(SyncError):
    """Unclassified failure."""
    code = ErrorCode.INTERNAL


# 401/403 are credential problems, everything else non-2xx is a server error
UNAUTHORIZED_CODES = frozenset({401, 403})


def classify_http_error(status_code: int) -> Type[RemoteError]:
    """
    Classify a non-success HTTP status code.

    Args:
        status_code: HTTP response status code

    Returns:
        UnauthorizedError for 401/403, ServerRejectedError otherwise
    """
    if status_code in UNAUTHORIZED_CODES:
        logger.debug(f"HTTP {status_code} classified as unauthorized")
        return UnauthorizedError

    logger.debug(f"HTTP {status_code} classified as server rejection")
    return ServerRejectedError


def to_sync_error(exc: BaseException, context: Optional[str] = None) -> SyncError:
    """
    Normalize any exception into the sparkwms-sync taxonomy.

    - Already classified: returned unchanged
    - pydantic validation errors: InputValidationError
    - httpx connect/timeout errors and ConnectionError/TimeoutError: NetworkError
    - Other OSError: PersistenceError
    - ValueError/TypeError from JSON handling: SerializationError
    - Unknown: InternalError

    Args:
        exc: The exception to classify
        context: Optional prefix for the message (e.g. "enqueue")

    Returns:
        A SyncError instance carrying the original as __cause__
    """
    if isinstance(exc, SyncError):
        return exc

    prefix = f"{context}: " if context else ""

    if isinstance(exc, pydantic.ValidationError):
        err: SyncError = InputValidationError(f"{prefix}{exc}")
    elif isinstance(exc, (httpx.TransportError, ConnectionError, TimeoutError)):
        err = NetworkError(f"{prefix}{exc}")
    elif isinstance(exc, OSError):
        err = PersistenceError(f"{prefix}{exc}")
    elif isinstance(exc, (ValueError, TypeError)):
        err = SerializationError(f"{prefix}{exc}")
    else:
        err = InternalError(f"{prefix}{type(exc).__name__}: {exc}")

    err.__cause__ = exc
    logger.debug(f"{type(exc).__name__} classified as {type(err).__name__}")
    return err
