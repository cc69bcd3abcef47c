"""
Result type returned by every governance service call.

Expected failures (permission, state, validation) are values, not exceptions.
Only the HTTP layer decides how a failure is rendered.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorCode(str, Enum):
    """Failure taxonomy shared by all services."""
    NOT_FOUND = "NOT_FOUND"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_STATE = "INVALID_STATE"
    CONFLICT = "CONFLICT"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    INTERNAL_ERROR = "INTERNAL_ERROR"


@dataclass(frozen=True)
class ServiceError:
    """Error payload carried by a failed Result."""
    code: ErrorCode
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.details:
            data["details"] = self.details
        return data


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Either a value (ok=True) or a ServiceError (ok=False).

    Build instances with success() and failure() rather than directly.
    """
    ok: bool
    value: Optional[T] = None
    error: Optional[ServiceError] = None

    def __bool__(self) -> bool:
        return self.ok

    @property
    def code(self) -> Optional[ErrorCode]:
        """Error code of a failed result, None on success."""
        return self.error.code if self.error else None

    def unwrap(self) -> T:
        """Return the value, raising if the result is a failure."""
        if not self.ok:
            raise ValueError(f"unwrap() on failed result: {self.error.code.value} {self.error.message}")
        return self.value


def success(value: Optional[T] = None) -> Result[T]:
    """Wrap a value in a successful Result."""
    return Result(ok=True, value=value)


def failure(
    code: ErrorCode,
    message: str,
    details: Optional[Dict[str, Any]] = None
) -> Result[Any]:
    """Build a failed Result."""
    return Result(ok=False, error=ServiceError(code=code, message=message, details=details or {}))
