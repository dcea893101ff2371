"""Result and Page containers returned by repositories and services"""

import math
from dataclasses import dataclass, field
from typing import Any, Generic, Optional, TypeVar

from .errors import ErrorCode, ServiceError

T = TypeVar("T")


@dataclass
class Result(Generic[T]):
    """Outcome of a repository or service call: either data or an error, never both"""

    data: Optional[T] = None
    error: Optional[ServiceError] = None

    def __post_init__(self):
        if self.data is not None and self.error is not None:
            raise ValueError("Result cannot carry both data and error")

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, data: Optional[T] = None) -> "Result[T]":
        return cls(data=data)

    @classmethod
    def fail(
        cls,
        code: ErrorCode,
        message: str,
        details: Optional[Any] = None,
        errors: Optional[list[str]] = None,
    ) -> "Result[T]":
        return cls(error=ServiceError(code=code, message=message, details=details, errors=errors or []))

    @classmethod
    def from_error(cls, error: ServiceError) -> "Result[T]":
        return cls(error=error)

    @classmethod
    def validation_failed(cls, errors: list[str]) -> "Result[T]":
        """Fail with VALIDATION_ERROR, using the first message as the headline"""
        message = errors[0] if errors else "Dados inválidos"
        return cls.fail(ErrorCode.VALIDATION_ERROR, message, errors=list(errors))


@dataclass
class Page(Generic[T]):
    """One page of a paginated query"""

    items: list[T] = field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 20

    @property
    def total_pages(self) -> int:
        if not self.page_size:
            return 0
        return math.ceil(self.total / self.page_size)

    def pagination(self) -> dict:
        return {
            "page": self.page,
            "page_size": self.page_size,
            "total": self.total,
            "total_pages": self.total_pages,
        }
