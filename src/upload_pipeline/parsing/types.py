from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Mapping, TypeVar

from upload_pipeline.messages import Message

T = TypeVar("T")


class ViolationCode(str, Enum):
    """Typed field rule violations. The value doubles as the catalog message id."""
    missing_required = "missing_required"
    invalid_int = "invalid_int"
    invalid_length = "invalid_length"
    too_many_digits = "too_many_digits"
    invalid_value = "invalid_value"


@dataclass(frozen=True, slots=True)
class Record:
    """One decoded unit of an upload."""
    record_number: int              # 1-based, in source order
    values: Mapping[str, Any]

    def get(self, name: str, default: Any = None) -> Any:
        return self.values.get(name, default)


@dataclass(frozen=True)
class ValidationOutcome(Generic[T]):
    """
    Result of validating a single record.

    Exactly one of `messages` / `converted` is meaningful:
    an outcome with messages is invalid and carries no converted object.
    """
    record_number: int
    form_name: str
    validate_for: str
    messages: tuple[Message, ...] = ()
    converted: T | None = None

    @property
    def is_valid(self) -> bool:
        return not self.messages

    def create_object(self) -> T:
        """Return the converted object. Raises on an invalid outcome."""
        if not self.is_valid:
            raise ValueError(f"record {self.record_number} is invalid, no object was converted")
        return self.converted  # type: ignore[return-value]
