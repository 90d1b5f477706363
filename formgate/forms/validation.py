"""Validation engine seam."""

from collections.abc import Mapping
from typing import Any, Protocol

from pydantic import BaseModel


class RecordValidator(Protocol):
    """Builds the typed record from mapped values or raises.

    A ``pydantic.ValidationError`` is reported to clients field by field;
    any other exception is treated as an engine failure.
    """

    def validate[T: BaseModel](self, model: type[T], data: Mapping[str, Any]) -> T: ...


class PydanticValidator:
    """Validates records against the constraints declared on the model fields."""

    def __init__(self, strict: bool | None = None, context: Mapping[str, Any] | None = None) -> None:
        self.strict = strict
        self.context = dict(context) if context else None

    def validate[T: BaseModel](self, model: type[T], data: Mapping[str, Any]) -> T:
        return model.model_validate(data, strict=self.strict, context=self.context)
