"""Result value returned by every host bridge call."""

from dataclasses import dataclass
from typing import Any, Optional

from validation.errors import ErrorCode, to_sync_error


@dataclass(frozen=True)
class CallResult:
    """
    Outcome of a bridge call.

    Success is ``code == ErrorCode.SUCCESS`` with ``message`` None; failures
    carry one of the closed set of error codes plus a human-readable
    message. ``value`` holds the call's return value (or the documented
    failure value, e.g. -1 for queue_len).
    """

    code: ErrorCode = ErrorCode.SUCCESS
    message: Optional[str] = None
    value: Any = None

    @property
    def ok(self) -> bool:
        return self.code == ErrorCode.SUCCESS

    @classmethod
    def success(cls, value: Any = None) -> 'CallResult':
        return cls(value=value)

    @classmethod
    def from_exception(cls, exc: BaseException, context: Optional[str] = None,
                       value: Any = None) -> 'CallResult':
        """Classify ``exc`` and wrap it; never raises."""
        err = to_sync_error(exc, context)
        message = err.describe() or str(err) or type(exc).__name__
        return cls(code=ErrorCode(err.code), message=message, value=value)

    def to_dict(self) -> dict:
        return {'code': int(self.code), 'message': self.message}
