"""Base classes for data transfer objects"""

from dataclasses import dataclass, field
from typing import Any, ClassVar, Optional

from pydantic import BaseModel, ValidationError

from .validators import to_int


@dataclass
class ValidationResult:
    is_valid: bool
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"is_valid": self.is_valid, "errors": list(self.errors)}


class BaseDTO:
    """
    Validate-then-shape payloads before they reach a repository.

    Subclasses declare ALLOWED_FIELDS and implement collect_errors(). Keys outside
    the whitelist are dropped at construction time, and validate() never raises.
    """

    ALLOWED_FIELDS: ClassVar[tuple[str, ...]] = ()

    def __init__(self, data: Optional[dict] = None):
        data = data or {}
        self.raw = {key: value for key, value in data.items() if key in self.ALLOWED_FIELDS}
        self.values: dict[str, Any] = {}
        self.prepare(self.raw)

    def prepare(self, data: dict) -> None:
        """Normalize input values; defaults to copying them"""
        self.values.update(data)

    def collect_errors(self) -> list[str]:
        return []

    def validate(self) -> ValidationResult:
        errors = self.collect_errors()
        return ValidationResult(is_valid=not errors, errors=errors)

    def is_valid(self) -> bool:
        return self.validate().is_valid

    def to_object(self) -> dict:
        """Whitelisted, defined values only"""
        return {
            key: value
            for key, value in self.values.items()
            if key in self.ALLOWED_FIELDS and value is not None
        }

    def __getattr__(self, name: str) -> Any:
        if name in type(self).ALLOWED_FIELDS:
            return self.__dict__.get("values", {}).get(name)
        raise AttributeError(name)


class PaginationDTO:
    """page >= 1, page_size between 1 and 100"""

    MAX_PAGE_SIZE = 100

    def __init__(self, page: Any = 1, page_size: Any = 20):
        self.page = to_int(page, 1)
        self.page_size = to_int(page_size, 20)

    def validate(self) -> ValidationResult:
        errors = []
        if self.page < 1:
            errors.append("Página deve ser maior que zero")
        if self.page_size < 1 or self.page_size > self.MAX_PAGE_SIZE:
            errors.append("Tamanho da página deve estar entre 1 e 100")
        return ValidationResult(is_valid=not errors, errors=errors)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def limit(self) -> int:
        return self.page_size


def schema_errors(exc: ValidationError) -> list[str]:
    """Flatten a pydantic ValidationError into "field: message" strings"""
    errors = []
    for error in exc.errors():
        field_path = ".".join(str(part) for part in error["loc"])
        message = error["msg"]
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.append(f"{field_path}: {message}" if field_path else message)
    return errors


class SchemaDTO:
    """
    DTO backed by a pydantic model.

    The model does the parsing; validate() turns its ValidationError into
    the same ValidationResult the hand-written DTOs return.
    """

    SCHEMA: ClassVar[type[BaseModel]]
    FORBIDDEN_FIELDS: ClassVar[tuple[str, ...]] = ("id", "created_at", "updated_at", "is_active")

    def __init__(self, data: Optional[dict] = None):
        data = data or {}
        self.raw = {key: value for key, value in data.items() if key not in self.FORBIDDEN_FIELDS}
        self.model: Optional[BaseModel] = None
        self._result: Optional[ValidationResult] = None

    def validate(self) -> ValidationResult:
        if self._result is None:
            try:
                self.model = self.SCHEMA.model_validate(self.raw)
                self._result = ValidationResult(is_valid=True)
            except ValidationError as e:
                self._result = ValidationResult(is_valid=False, errors=schema_errors(e))
        return self._result

    def is_valid(self) -> bool:
        return self.validate().is_valid

    def to_object(self) -> dict:
        """Parsed values of the declared fields; empty when invalid"""
        if not self.is_valid():
            return {}
        return self.model.model_dump(exclude_none=True)
