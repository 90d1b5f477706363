"""Content-type dispatch for request bodies."""

from beartype import beartype
from python_multipart.multipart import parse_options_header

from formgate.forms.exceptions import MalformedMultipart, UnsupportedMediaType
from formgate.models.core import ContentKind

# Checked in order, first prefix wins.
CONTENT_KIND_PREFIXES: tuple[ContentKind, ...] = (
    ContentKind.MULTIPART,
    ContentKind.URLENCODED,
    ContentKind.JSON,
)


@beartype
def resolve_content_kind(content_type: str | None) -> ContentKind:
    """Select the body encoding from the declared content type.

    Raises:
        UnsupportedMediaType: header missing or not one of the supported types.
    """
    normalized = (content_type or "").strip().lower()
    if normalized:
        for kind in CONTENT_KIND_PREFIXES:
            if normalized.startswith(kind.value):
                return kind
    raise UnsupportedMediaType(content_type)


@beartype
def multipart_boundary(content_type: str) -> bytes:
    """Extract the multipart boundary parameter from a content type."""
    try:
        _, options = parse_options_header(content_type)
    except (ValueError, UnicodeError) as ex:
        raise MalformedMultipart(f"invalid content type: {ex}") from ex
    boundary = options.get(b"boundary")
    if not boundary:
        raise MalformedMultipart("missing multipart boundary")
    return boundary


def content_charset(content_type: str | None, default: str = "utf-8") -> str:
    """Charset parameter of a content type, ``default`` when absent."""
    _, options = parse_options_header(content_type)
    charset = options.get(b"charset")
    return charset.decode("latin-1") if charset else default
