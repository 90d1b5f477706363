"""Caller-owned parsing configuration."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from formgate.core.settings import Settings
from formgate.forms.decoder import FieldMapper, FormDecoder
from formgate.forms.validation import PydanticValidator, RecordValidator


@dataclass(frozen=True)
class ParseConfig:
    """Shared, read-only policy for request body parsing.

    Built once at setup and reused by every request. Parse calls never write
    into it; uploaded files are returned per call.

    ``allowed_mime_types`` is an exact allow-list. Leaving it empty rejects
    every file upload.
    """

    decoder: FieldMapper = field(default_factory=FormDecoder)
    validator: RecordValidator = field(default_factory=PydanticValidator)
    field_error_messages: Mapping[str, str] = field(default_factory=dict)
    allowed_mime_types: frozenset[str] = frozenset()
    max_file_size: int = 5 << 20
    strict_decoding: bool = False
    chunk_size: int = 64 * 1024

    def __post_init__(self) -> None:
        if self.max_file_size < 0:
            raise ValueError(f"max_file_size must be >= 0, not {self.max_file_size}")
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, not {self.chunk_size}")

        messages = {name.lower(): message for name, message in self.field_error_messages.items()}
        object.__setattr__(self, "field_error_messages", MappingProxyType(messages))
        object.__setattr__(self, "allowed_mime_types", frozenset(self.allowed_mime_types))

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> "ParseConfig":
        """Build a config from application settings, ``overrides`` win."""
        values: dict[str, Any] = {
            "allowed_mime_types": settings.FORM_ALLOWED_MIME_TYPES,
            "max_file_size": settings.FORM_MAX_FILE_SIZE,
            "strict_decoding": settings.FORM_STRICT_DECODING,
            "chunk_size": settings.FORM_CHUNK_SIZE,
        }
        values.update(overrides)
        return cls(**values)
