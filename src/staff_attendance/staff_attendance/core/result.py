from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

from .enums import ErrorKind

T = TypeVar("T")


@dataclass(frozen=True)
class ResultError:
    """A classified failure. `cause` keeps the original exception for diagnostics."""

    kind: ErrorKind
    message: str
    op: Optional[str] = None
    resource: Optional[str] = None
    details: Any = None
    cause: Optional[BaseException] = None


@dataclass(frozen=True)
class Result(Generic[T]):
    """Tagged success/failure returned by the attendance port.

    Expected failure modes travel here instead of being raised.
    """

    value: Optional[T] = None
    error: Optional[ResultError] = None

    @property
    def is_ok(self) -> bool:
        return self.error is None

    @classmethod
    def ok(cls, value: Optional[T] = None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def err(cls, error: ResultError) -> "Result[T]":
        return cls(error=error)

    @classmethod
    def not_found(cls, message: str, *, resource: Optional[str] = None) -> "Result[T]":
        return cls(error=ResultError(kind=ErrorKind.NOT_FOUND, message=message, resource=resource))

    @classmethod
    def validation(cls, message: str, *, details: Any = None) -> "Result[T]":
        return cls(error=ResultError(kind=ErrorKind.VALIDATION, message=message, details=details))
