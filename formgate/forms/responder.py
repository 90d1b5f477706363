"""Client-facing responses for ingestion failures."""

from collections.abc import Mapping

import orjson
from pydantic import ValidationError
from robyn import Response

from formgate.forms.exceptions import FieldDecodeError, FormParserError, ValidationFailed

ROOT_FIELD = "__root__"


def build_field_errors(error: ValidationError, overrides: Mapping[str, str]) -> dict[str, str]:
    """Map each violated field to its display message.

    Field names are lower-cased. A configured override wins over the
    generic ``"<field> is <rule>"`` message. Only the first violation of a
    field is reported.
    """
    fields: dict[str, str] = {}
    for violation in error.errors():
        loc = violation.get("loc") or ()
        name = str(loc[0]).lower() if loc else ROOT_FIELD
        if name in fields:
            continue
        fields[name] = overrides.get(name, f"{name} is {violation['type']}")
    return fields


def validation_failure(error: Exception, overrides: Mapping[str, str]) -> ValidationFailed:
    """Wrap a validation engine error, structured when the engine says which fields failed."""
    if isinstance(error, ValidationError):
        return ValidationFailed(error, build_field_errors(error, overrides))
    return ValidationFailed(error)


def json_response(status_code: int, payload: dict) -> Response:
    return Response(
        status_code=int(status_code),
        headers={"content-type": "application/json"},
        description=orjson.dumps(payload).decode(),
    )


def error_response(error: FormParserError) -> Response:
    """Convert an ingestion error to the response sent to the client."""
    match error:
        case ValidationFailed(fields=dict() as fields):
            return json_response(error.status_code, {"message": error.message, "fields": fields})
        case FieldDecodeError(issues=issues):
            fields = {issue.field.lower(): issue.reason for issue in issues}
            return json_response(error.status_code, {"message": error.message, "fields": fields})
        case _:
            return Response(
                status_code=int(error.status_code),
                headers={"content-type": "text/plain; charset=utf-8"},
                description=error.message,
            )
