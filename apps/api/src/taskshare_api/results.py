from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class ErrorCode(str, Enum):
    NOT_FOUND = "not_found"
    VALIDATION_ERROR = "validation_error"
    INVALID_OPERATION = "invalid_operation"


@dataclass(frozen=True)
class ResultError:
    code: ErrorCode
    message: str


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of a workflow: either a value or an expected business failure.

    Unexpected failures are raised, never wrapped here.
    """

    value: T | None = None
    error: ResultError | None = None

    @property
    def is_success(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> Result[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, code: ErrorCode, message: str) -> Result[T]:
        return cls(error=ResultError(code=code, message=message))
