"""Request body ingestion entry point."""

from collections.abc import Iterable, Mapping
from typing import Any, Protocol
from urllib.parse import parse_qsl

import orjson
from pydantic import BaseModel

from formgate.core.logger import LogIcon, logger
from formgate.forms.config import ParseConfig
from formgate.forms.content import content_charset, multipart_boundary, resolve_content_kind
from formgate.forms.exceptions import FieldDecodeError, FieldDecodeIssue, IOFailure, MalformedBody
from formgate.forms.multipart import PartReader, extract_multipart, iter_chunks
from formgate.forms.responder import validation_failure
from formgate.models.core import ContentKind, MultiDict, ParseResult, UploadedFiles

type Body = bytes | str | Iterable[bytes]


class HeadersLike(Protocol):
    def get(self, key: str, default: str | None = None) -> str | None: ...


class RequestLike(Protocol):
    headers: HeadersLike
    body: bytes | str


def read_all(body: Body) -> bytes:
    """Join a body into one buffer."""
    match body:
        case bytes():
            return body
        case str():
            return body.encode("utf-8")
        case _:
            try:
                return b"".join(body)
            except Exception as ex:
                raise IOFailure(f"error reading request body: {ex}") from ex


class FormParser:
    """Parses request bodies into validated pydantic records.

    One parser is built per configuration and shared across requests. Every
    call allocates its own result, so concurrent requests never see each
    other's files.
    """

    def __init__(self, config: ParseConfig | None = None) -> None:
        self.config = config or ParseConfig()

    def parse[T: BaseModel](self, request: RequestLike, model: type[T]) -> ParseResult[T]:
        """Parse a Robyn request body into ``model``.

        Raises:
            FormParserError: any ingestion failure, see ``error_response``
                for the matching client response.
        """
        content_type = request.headers.get("content-type")
        kind = resolve_content_kind(content_type)
        return self._dispatch(kind, content_type or "", request.body, model)

    def parse_body[T: BaseModel](self, content_type: str | None, body: Body, model: type[T]) -> ParseResult[T]:
        """Parse a body given its declared content type.

        ``body`` may be a chunk iterable; multipart bodies are then consumed
        lazily, chunk by chunk.
        """
        kind = resolve_content_kind(content_type)
        return self._dispatch(kind, content_type or "", body, model)

    def _dispatch[T: BaseModel](self, kind: ContentKind, content_type: str, body: Body, model: type[T]) -> ParseResult[T]:
        logger.debug("Parsing request body", icon=LogIcon.DETECTION, kind=kind.value, model=model.__name__)
        match kind:
            case ContentKind.MULTIPART:
                return self._parse_multipart(content_type, body, model)
            case ContentKind.URLENCODED:
                return self._parse_urlencoded(content_type, body, model)
            case ContentKind.JSON:
                return self._parse_json(body, model)

    def _parse_json[T: BaseModel](self, body: Body, model: type[T]) -> ParseResult[T]:
        try:
            payload = orjson.loads(read_all(body))
        except orjson.JSONDecodeError as ex:
            logger.warning("Invalid JSON body", icon=LogIcon.JSON, error=str(ex))
            raise MalformedBody(f"invalid JSON body: {ex}") from ex
        if not isinstance(payload, dict):
            raise MalformedBody("JSON body must be an object")

        decoded = self.config.decoder.decode(model, payload)
        if decoded.issues:
            logger.warning("JSON body does not match record", icon=LogIcon.JSON, fields=_issue_fields(decoded.issues))
            raise MalformedBody(f"invalid JSON values for: {', '.join(_issue_fields(decoded.issues))}")

        record = self._validate(model, decoded.data)
        return ParseResult(record=record, kind=ContentKind.JSON)

    def _parse_urlencoded[T: BaseModel](self, content_type: str, body: Body, model: type[T]) -> ParseResult[T]:
        try:
            charset = content_charset(content_type)
            text = read_all(body).decode(charset)
            pairs = parse_qsl(text, keep_blank_values=True, encoding=charset, errors="strict")
        except (ValueError, LookupError) as ex:
            logger.warning("Invalid form body", icon=LogIcon.FORM, error=str(ex))
            raise MalformedBody(f"can't parse form: {ex}") from ex

        record = self._map_and_validate(model, MultiDict(pairs))
        return ParseResult(record=record, kind=ContentKind.URLENCODED)

    def _parse_multipart[T: BaseModel](self, content_type: str, body: Body, model: type[T]) -> ParseResult[T]:
        boundary = multipart_boundary(content_type)
        chunks = iter_chunks(body, self.config.chunk_size) if isinstance(body, (bytes, str)) else body

        values, files = extract_multipart(PartReader(chunks, boundary), self.config)

        record = self._map_and_validate(model, values)
        return ParseResult(record=record, kind=ContentKind.MULTIPART, files=UploadedFiles(files))

    def _map_and_validate[T: BaseModel](self, model: type[T], values: MultiDict) -> T:
        decoded = self.config.decoder.decode(model, values)
        if decoded.issues:
            if self.config.strict_decoding:
                logger.warning("Form fields rejected", icon=LogIcon.FORM, fields=_issue_fields(decoded.issues))
                raise FieldDecodeError(decoded.issues)
            # Lenient mode: validation alone decides.
            logger.debug("Ignoring undecodable form fields", icon=LogIcon.FORM, fields=_issue_fields(decoded.issues))
        return self._validate(model, decoded.data)

    def _validate[T: BaseModel](self, model: type[T], data: Mapping[str, Any]) -> T:
        try:
            return self.config.validator.validate(model, data)
        except Exception as ex:
            failure = validation_failure(ex, self.config.field_error_messages)
            logger.warning(
                "Validation failed",
                icon=LogIcon.VALIDATION,
                model=model.__name__,
                fields=list(failure.fields or ()),
            )
            raise failure from ex


def _issue_fields(issues: Iterable[FieldDecodeIssue]) -> list[str]:
    return [issue.field for issue in issues]
