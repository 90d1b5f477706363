"""Streaming multipart/form-data extraction.

The body is exposed as a forward-only sequence of parts. A part becomes
available only once the previous one has been read to its end or skipped,
and bytes are pulled from the underlying chunk source only when a consumer
asks for them. File uploads are checked against the MIME policy before
their content is read and are capped while streaming, so an oversized
upload is never held in memory beyond ``max_file_size + 1`` bytes plus one
parser chunk.
"""

from collections import deque
from collections.abc import Iterable, Iterator
from enum import StrEnum

from python_multipart import MultipartParser
from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import parse_options_header

from formgate.core.logger import LogIcon, logger
from formgate.forms.config import ParseConfig
from formgate.forms.digest import content_digest
from formgate.forms.exceptions import DisallowedFileType, FileTooLarge, IOFailure, MalformedMultipart
from formgate.forms.mime import is_allowed_mime_type
from formgate.models.core import MultiDict, UploadedFile


class PartEvent(StrEnum):
    """Parser events queued between the push parser and the part consumer."""

    HEADERS = "headers"
    DATA = "data"
    PART_END = "part_end"
    END = "end"


class Part:
    """One segment of a multipart body.

    Header names are lower-cased. Content can be read once, either chunk by
    chunk with :meth:`iter_chunks` or in one go with :meth:`read`.
    """

    def __init__(self, reader: "PartReader", headers: dict[str, str]) -> None:
        self.headers = headers
        self._reader = reader
        self._pending = b""
        self._finished = False

        _, options = parse_options_header(headers.get("content-disposition"))
        self.name = _decode_option(options.get(b"name"))
        self.filename = _decode_option(options.get(b"filename")) or None
        self.content_type = headers.get("content-type", "").strip()

    @property
    def is_file(self) -> bool:
        return self.filename is not None

    @property
    def finished(self) -> bool:
        return self._finished and not self._pending

    def iter_chunks(self) -> Iterator[bytes]:
        """Yield the remaining content of this part."""
        if self._pending:
            chunk, self._pending = self._pending, b""
            yield chunk
        while not self._finished:
            chunk = self._reader._next_part_data()
            if chunk is None:
                self._finished = True
                return
            yield chunk

    def read(self, limit: int | None = None) -> bytes:
        """Read up to ``limit`` bytes of content, everything when ``limit`` is None."""
        buffer = bytearray()
        for chunk in self.iter_chunks():
            buffer += chunk
            if limit is not None and len(buffer) >= limit:
                break
        if limit is not None and len(buffer) > limit:
            self._pending = bytes(buffer[limit:])
            del buffer[limit:]
        return bytes(buffer)

    def drain(self) -> None:
        """Discard whatever content is left."""
        for _ in self.iter_chunks():
            pass

    def __repr__(self) -> str:
        return f"Part(name={self.name!r}, filename={self.filename!r}, content_type={self.content_type!r})"


class PartReader:
    """Lazy iterator of :class:`Part` objects over a chunked multipart body.

    Wraps the ``python_multipart`` push parser: chunks are written to the
    parser on demand and the events it fires are queued until the consumer
    reaches them.

    Raises:
        MalformedMultipart: the body does not follow the multipart grammar or
            ends before the closing boundary.
        IOFailure: the chunk source failed while being read.
    """

    def __init__(self, chunks: Iterable[bytes], boundary: bytes | str) -> None:
        self._chunks = iter(chunks)
        self._events: deque[tuple[PartEvent, object]] = deque()
        self._current: Part | None = None
        self._source_exhausted = False
        self._done = False

        self._header_field = bytearray()
        self._header_value = bytearray()
        self._headers: dict[str, str] = {}

        try:
            self._parser = MultipartParser(
                boundary,
                callbacks={
                    "on_part_begin": self._on_part_begin,
                    "on_part_data": self._on_part_data,
                    "on_part_end": self._on_part_end,
                    "on_header_field": self._on_header_field,
                    "on_header_value": self._on_header_value,
                    "on_header_end": self._on_header_end,
                    "on_headers_finished": self._on_headers_finished,
                    "on_end": self._on_end,
                },
            )
        except ValueError as ex:
            raise MalformedMultipart(f"invalid boundary: {ex}") from ex

    def __iter__(self) -> Iterator[Part]:
        while (part := self.next_part()) is not None:
            yield part

    def next_part(self) -> Part | None:
        """Return the next part, or None once the closing boundary is reached."""
        if self._current is not None:
            self._current.drain()
            self._current = None

        while True:
            event, payload = self._pull()
            match event:
                case PartEvent.END:
                    return None
                case PartEvent.HEADERS:
                    self._current = Part(self, payload)  # type: ignore[arg-type]
                    return self._current
                case _:
                    # Data of a part nobody asked for.
                    continue

    def _next_part_data(self) -> bytes | None:
        """Next content chunk of the current part, None at its end."""
        while True:
            event, payload = self._pull()
            match event:
                case PartEvent.DATA:
                    return payload  # type: ignore[return-value]
                case PartEvent.PART_END:
                    return None
                case PartEvent.END:
                    # Keep END visible for next_part().
                    self._events.appendleft((event, payload))
                    return None
                case _:
                    raise MalformedMultipart("part headers received inside part content")

    def _pull(self) -> tuple[PartEvent, object]:
        while not self._events:
            if self._done:
                return PartEvent.END, None
            if self._source_exhausted:
                raise MalformedMultipart("unexpected end of multipart body")
            self._feed()
        event = self._events.popleft()
        if event[0] is PartEvent.END:
            self._done = True
        return event

    def _feed(self) -> None:
        try:
            chunk = next(self._chunks)
        except StopIteration:
            self._source_exhausted = True
            self._parser.finalize()
            return
        except Exception as ex:
            raise IOFailure(f"error reading multipart body: {ex}") from ex

        if not chunk:
            return
        try:
            self._parser.write(chunk)
        except MultipartParseError as ex:
            raise MalformedMultipart(str(ex)) from ex

    # -------------------------------------------------------------------------
    # Parser callbacks
    # -------------------------------------------------------------------------

    def _on_part_begin(self) -> None:
        self._header_field.clear()
        self._header_value.clear()
        self._headers = {}

    def _on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field += data[start:end]

    def _on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def _on_header_end(self) -> None:
        if self._header_field:
            # latin-1 keeps raw bytes, option values are decoded later.
            name = self._header_field.decode("latin-1").strip().lower()
            self._headers[name] = self._header_value.decode("latin-1").strip()
        self._header_field.clear()
        self._header_value.clear()

    def _on_headers_finished(self) -> None:
        self._events.append((PartEvent.HEADERS, self._headers))

    def _on_part_data(self, data: bytes, start: int, end: int) -> None:
        if end > start:
            self._events.append((PartEvent.DATA, data[start:end]))

    def _on_part_end(self) -> None:
        self._events.append((PartEvent.PART_END, None))

    def _on_end(self) -> None:
        self._events.append((PartEvent.END, None))


def _decode_option(value: bytes | None) -> str | None:
    if value is None:
        return None
    return value.decode("utf-8", errors="replace")


def iter_chunks(body: bytes | str, chunk_size: int) -> Iterator[bytes]:
    """Slice an already buffered body into parser-sized chunks."""
    if isinstance(body, str):
        body = body.encode("utf-8")
    view = memoryview(body)
    for offset in range(0, len(view), chunk_size):
        yield bytes(view[offset:offset + chunk_size])


def read_upload(part: Part, config: ParseConfig) -> UploadedFile:
    """Apply file policy to a file part and buffer its content.

    Raises:
        DisallowedFileType: declared type missing from the allow-list.
        FileTooLarge: content longer than ``config.max_file_size``.
    """
    filename = part.filename or ""
    if not is_allowed_mime_type(part.content_type, config.allowed_mime_types):
        logger.warning(
            "Upload rejected: type not allowed",
            icon=LogIcon.FORBIDDEN,
            field=part.name,
            filename=filename,
            content_type=part.content_type,
        )
        raise DisallowedFileType(part.content_type, filename)

    # One byte past the cap tells "exactly at the limit" from "over it".
    content = part.read(config.max_file_size + 1)
    if len(content) > config.max_file_size:
        logger.warning(
            "Upload rejected: file too large",
            icon=LogIcon.OVERSIZE,
            field=part.name,
            filename=filename,
            limit=config.max_file_size,
        )
        raise FileTooLarge(filename, len(content), config.max_file_size)

    return UploadedFile(
        filename=filename,
        content_type=part.content_type,
        content=content,
        hash=content_digest(content),
    )


def extract_multipart(reader: Iterable[Part], config: ParseConfig) -> tuple[MultiDict, dict[str, UploadedFile]]:
    """Consume every part, collecting scalar values and uploaded files.

    Each stored file also contributes its hex digest as the scalar value of
    its field, which is how file identity reaches the typed record.
    """
    values = MultiDict()
    files: dict[str, UploadedFile] = {}

    for part in reader:
        if part.name is None:
            logger.debug("Skipping multipart part without a name", icon=LogIcon.STREAMING)
            part.drain()
            continue

        if not part.is_file:
            values.add(part.name, part.read().decode("utf-8", errors="replace"))
            continue

        upload = read_upload(part, config)
        files[part.name] = upload
        values.add(part.name, upload.hash)
        logger.info(
            "Upload received",
            icon=LogIcon.UPLOAD,
            field=part.name,
            filename=upload.filename,
            size=upload.size,
            sha256=upload.hash,
        )

    return values, files
