"""Input checks shared by the services. All of them raise ValidationError before any write."""
from __future__ import annotations

from typing import Iterable, Optional, Type, TypeVar

from pblab.errors import ValidationError

E = TypeVar("E")


def required_string(value: Optional[str], field: str, max_length: Optional[int] = None) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(field, "is required and must be a non-empty string", value)
    cleaned = value.strip()
    if max_length and len(cleaned) > max_length:
        raise ValidationError(field, f"cannot exceed {max_length} characters", None, {"actual_length": len(cleaned)})
    return cleaned


def optional_string(value: Optional[str], field: str, max_length: Optional[int] = None) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(field, "must be a string", value)
    cleaned = value.strip()
    if max_length and len(cleaned) > max_length:
        raise ValidationError(field, f"cannot exceed {max_length} characters", None, {"actual_length": len(cleaned)})
    return cleaned or None


def required_id(value: Optional[str], field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(field, "is required", value)
    return value.strip()


def validate_range(value: int, field: str, minimum: int, maximum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(field, "must be an integer", value)
    if value < minimum or value > maximum:
        raise ValidationError(field, f"must be between {minimum} and {maximum}", value)
    return value


def validate_enum(value: str, field: str, enum_cls: Type[E]) -> E:
    try:
        return enum_cls(value)  # type: ignore[call-arg]
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)  # type: ignore[attr-defined]
        raise ValidationError(field, f"must be one of: {allowed}", value) from None


def id_list(values: Optional[Iterable[str]], field: str) -> list[str]:
    result = []
    for value in values or []:
        result.append(required_id(value, field))
    return result
