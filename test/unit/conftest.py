"""Test fixtures for formgate unit tests."""

from dataclasses import dataclass, field

import pytest
from pydantic import BaseModel, EmailStr, Field

from formgate.forms.config import ParseConfig
from formgate.forms.parser import FormParser

BOUNDARY = "formgate-test-boundary"
MULTIPART_CONTENT_TYPE = f"multipart/form-data; boundary={BOUNDARY}"


# -----------------------------------------------------------------------------
# Mock classes for Robyn Request
# -----------------------------------------------------------------------------


@dataclass
class MockHeaders:
    """Mock Headers object for Robyn Request, keys are case-insensitive."""

    _data: dict = field(default_factory=dict)

    def get(self, key: str, default: str | None = None) -> str | None:
        return self._data.get(key.lower(), default)

    def set(self, key: str, value: str) -> None:
        self._data[key.lower()] = value

    def __getitem__(self, key: str) -> str:
        return self._data[key.lower()]

    def __setitem__(self, key: str, value: str) -> None:
        self._data[key.lower()] = value


@dataclass
class MockRequest:
    """Mock Request object for Robyn."""

    body: bytes | str = b""
    headers: MockHeaders = field(default_factory=MockHeaders)
    method: str = "POST"
    path: str = "/"


# -----------------------------------------------------------------------------
# Records
# -----------------------------------------------------------------------------


class SignupForm(BaseModel):
    """Record with required name and email."""

    name: str = Field(min_length=1)
    email: EmailStr


class UploadForm(BaseModel):
    """Record receiving an uploaded file digest."""

    name: str = Field(min_length=1)
    email: EmailStr
    avatar: str | None = None


class TaggedForm(BaseModel):
    """Record with a multi-valued field."""

    tags: list[str] = []


class AgedForm(BaseModel):
    """Record with a numeric field that has a default."""

    name: str
    age: int = 0


# -----------------------------------------------------------------------------
# Multipart body builder
# -----------------------------------------------------------------------------


@dataclass
class FilePart:
    """File part description for encode_multipart."""

    filename: str
    content: bytes
    content_type: str | None = "application/octet-stream"


def encode_multipart(parts: list[tuple[str, str | FilePart]], boundary: str = BOUNDARY) -> bytes:
    """Encode (name, value) pairs as a multipart/form-data body."""
    body = bytearray()
    for name, value in parts:
        body += f"--{boundary}\r\n".encode()
        if isinstance(value, FilePart):
            body += f'Content-Disposition: form-data; name="{name}"; filename="{value.filename}"\r\n'.encode()
            if value.content_type is not None:
                body += f"Content-Type: {value.content_type}\r\n".encode()
            body += b"\r\n" + value.content + b"\r\n"
        else:
            body += f'Content-Disposition: form-data; name="{name}"\r\n\r\n'.encode()
            body += value.encode("utf-8") + b"\r\n"
    body += f"--{boundary}--\r\n".encode()
    return bytes(body)


# -----------------------------------------------------------------------------
# Parser fixtures
# -----------------------------------------------------------------------------


@pytest.fixture
def parse_config() -> ParseConfig:
    """Config allowing PNG uploads up to 1 MiB with custom messages."""
    return ParseConfig(
        field_error_messages={"name": "Name is required", "email": "Invalid email address"},
        allowed_mime_types=frozenset({"image/png"}),
        max_file_size=1024 * 1024,
    )


@pytest.fixture
def form_parser(parse_config: ParseConfig) -> FormParser:
    return FormParser(parse_config)


@pytest.fixture
def make_request():
    """Factory fixture to create mock requests."""

    def _make(body: bytes | str, content_type: str | None) -> MockRequest:
        headers = MockHeaders()
        if content_type is not None:
            headers["Content-Type"] = content_type
        return MockRequest(body=body, headers=headers)

    return _make
