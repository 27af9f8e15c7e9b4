"""
Result pattern for error handling at service and route boundaries.
Services return Result[T] so callers never need to guess which exceptions escape.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Generic, Optional, TypeVar, cast

from .types import ErrorCode

T = TypeVar("T")
U = TypeVar("U")


@dataclass
class Result(Generic[T]):
    """
    Outcome of a service call.

    Usage:
        async def run(self) -> Result[ScanSummary]:
            if busy:
                return Result.Err(ErrorCode.SCAN_IN_PROGRESS, "Scan already in progress")
            return Result.Ok(summary)
    """
    ok: bool
    data: Optional[T] = None
    error: Optional[str] = None
    code: str = "OK"
    meta: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def Ok(data: T, **meta: Any) -> "Result[T]":
        return Result(ok=True, data=data, code=ErrorCode.OK.value, meta=meta)

    @staticmethod
    def Err(code: ErrorCode | str | Enum, error: str, **meta: Any) -> "Result[T]":
        code_value = code.value if isinstance(code, Enum) else code
        return Result(ok=False, error=error, code=str(code_value), meta=meta)

    def is_code(self, code: ErrorCode | str) -> bool:
        """True when this is an error result carrying `code`."""
        expected = code.value if isinstance(code, Enum) else str(code)
        return not self.ok and self.code == expected

    def map(self, fn: Callable[[T], U]) -> "Result[U]":
        """Transform the payload of a successful result; errors pass through untouched."""
        if self.ok and self.data is not None:
            return Result.Ok(fn(self.data), **self.meta)
        return cast(Result[U], self)

    def unwrap(self) -> T:
        """Return the payload or raise ValueError carrying the error code."""
        if self.ok and self.data is not None:
            return self.data
        raise ValueError(f"[{self.code}] {self.error}")

    def unwrap_or(self, default: T) -> T:
        return self.data if (self.ok and self.data is not None) else default
