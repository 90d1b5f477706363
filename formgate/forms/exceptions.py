"""Errors raised while ingesting a request body.

Each error carries the HTTP status and the short client-facing message it
stands for. Turning them into responses is the job of
:mod:`formgate.forms.responder`.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from http import HTTPStatus


@dataclass(frozen=True, slots=True)
class FieldDecodeIssue:
    """A value the field mapper could not coerce onto the record field."""

    field: str
    value: object
    reason: str


class FormParserError(Exception):
    """Base class for request body ingestion failures."""

    status_code: int = HTTPStatus.BAD_REQUEST
    message: str = "Bad request"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.message
        super().__init__(self.detail)


class UnsupportedMediaType(FormParserError):
    status_code = HTTPStatus.UNSUPPORTED_MEDIA_TYPE
    message = "Unsupported Content-Type"

    def __init__(self, content_type: str | None) -> None:
        self.content_type = content_type
        super().__init__(f"unsupported content type: {content_type!r}")


class MalformedBody(FormParserError):
    """JSON or URL-encoded body that cannot be decoded."""

    message = "Invalid request body"


class MalformedMultipart(FormParserError):
    message = "Can't parse multipart"


class DisallowedFileType(FormParserError):
    message = "Unsupported file type"

    def __init__(self, content_type: str, filename: str | None = None) -> None:
        self.content_type = content_type
        self.filename = filename
        super().__init__(f"unsupported file type: {content_type}")


class FileTooLarge(FormParserError):
    status_code = HTTPStatus.REQUEST_ENTITY_TOO_LARGE
    message = "File too large"

    def __init__(self, filename: str, size: int, limit: int) -> None:
        self.filename = filename
        self.size = size
        self.limit = limit
        super().__init__(f"file too large: {filename!r} exceeds {limit} bytes")


class IOFailure(FormParserError):
    """Reading the request body failed mid-stream."""

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR
    message = "Error reading request body"


class FieldDecodeError(FormParserError):
    """Raised in strict decoding mode when values cannot be mapped onto the record."""

    message = "Invalid field values"

    def __init__(self, issues: Sequence[FieldDecodeIssue]) -> None:
        self.issues = tuple(issues)
        names = ", ".join(issue.field for issue in self.issues)
        super().__init__(f"cannot decode fields: {names}")


class ValidationFailed(FormParserError):
    """The validation engine rejected the decoded record.

    ``fields`` is the per-field error set when the engine reported
    structured violations and ``None`` for any other engine failure.
    """

    message = "Validation failed"

    def __init__(self, cause: Exception, fields: dict[str, str] | None = None) -> None:
        self.cause = cause
        self.fields = fields
        super().__init__(str(cause))

    @property
    def structured(self) -> bool:
        return self.fields is not None
