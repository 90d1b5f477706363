"""Field mapper: assigns flat request values onto pydantic record fields."""

import types
from collections.abc import Mapping
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Protocol, Union, get_args, get_origin

from pydantic import BaseModel, TypeAdapter, ValidationError
from pydantic.fields import FieldInfo

from formgate.forms.exceptions import FieldDecodeIssue
from formgate.models.core import MultiDict

SEQUENCE_ORIGINS = frozenset({list, tuple, set, frozenset})


@dataclass(frozen=True, slots=True)
class DecodeResult:
    """Values matched to record fields plus the ones that could not be coerced."""

    data: dict[str, Any]
    issues: tuple[FieldDecodeIssue, ...] = ()


class FieldMapper(Protocol):
    def decode(self, model: type[BaseModel], values: MultiDict | Mapping[str, Any]) -> DecodeResult: ...


@dataclass(frozen=True, slots=True)
class FieldSpec:
    """How one record field is looked up and coerced."""

    name: str
    key: str
    multiple: bool
    adapter: TypeAdapter


def is_sequence_annotation(annotation: Any) -> bool:
    """True for list/tuple/set annotations, optional ones included."""
    origin = get_origin(annotation)
    if origin in (Union, types.UnionType):
        return any(is_sequence_annotation(arg) for arg in get_args(annotation) if arg is not type(None))
    return origin in SEQUENCE_ORIGINS or annotation in SEQUENCE_ORIGINS


def input_key(name: str, info: FieldInfo) -> str:
    if isinstance(info.validation_alias, str):
        return info.validation_alias
    return info.alias or name


@lru_cache(maxsize=256)
def field_specs(model: type[BaseModel]) -> tuple[FieldSpec, ...]:
    """Field lookup table for ``model``, built once per model class."""
    return tuple(
        FieldSpec(
            name=name,
            key=input_key(name, info),
            multiple=is_sequence_annotation(info.annotation),
            adapter=TypeAdapter(info.annotation),
        )
        for name, info in model.model_fields.items()
    )


def is_coercion_error(error: Mapping[str, Any]) -> bool:
    """Pydantic errors that mean "wrong type" rather than "rule violated"."""
    kind = error.get("type", "")
    return kind.endswith("_parsing") or kind.endswith("_type")


class FormDecoder:
    """Match request values to record fields by name and coerce their types.

    Keys are matched against the field's validation alias, alias or name.
    Sequence fields collect every value of a repeated key, scalar fields
    take the first one. Unknown keys are ignored.

    Values that cannot be coerced to the field type are left out of the
    result and reported as issues. Values of the right type that break a
    field rule (formats, ranges) are passed through untouched so the
    validation engine reports them.
    """

    def decode(self, model: type[BaseModel], values: MultiDict | Mapping[str, Any]) -> DecodeResult:
        data: dict[str, Any] = {}
        issues: list[FieldDecodeIssue] = []

        for spec in field_specs(model):
            if spec.key not in values:
                continue
            raw = self._lookup(values, spec)
            try:
                data[spec.key] = spec.adapter.validate_python(raw)
            except ValidationError as ex:
                coercion = [error for error in ex.errors() if is_coercion_error(error)]
                if not coercion:
                    data[spec.key] = raw
                    continue
                issues.append(FieldDecodeIssue(field=spec.key, value=raw, reason=coercion[0]["msg"]))

        return DecodeResult(data=data, issues=tuple(issues))

    @staticmethod
    def _lookup(values: MultiDict | Mapping[str, Any], spec: FieldSpec) -> Any:
        if isinstance(values, MultiDict):
            return values.getlist(spec.key) if spec.multiple else values.get(spec.key)
        return values[spec.key]
