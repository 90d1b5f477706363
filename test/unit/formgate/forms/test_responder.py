"""Tests for error responses and configuration."""

import orjson
import pytest
from pydantic import BaseModel, Field, ValidationError, model_validator

from formgate.core.settings import Settings
from formgate.forms.config import ParseConfig
from formgate.forms.exceptions import (
    DisallowedFileType,
    FileTooLarge,
    IOFailure,
    MalformedBody,
    MalformedMultipart,
    UnsupportedMediaType,
    ValidationFailed,
)
from formgate.forms.responder import ROOT_FIELD, build_field_errors, error_response, validation_failure


class Account(BaseModel):
    Username: str = Field(min_length=3)
    age: int = Field(ge=18)


class Passwords(BaseModel):
    password: str
    confirm: str

    @model_validator(mode="after")
    def check_match(self) -> "Passwords":
        if self.password != self.confirm:
            raise ValueError("passwords do not match")
        return self


def validation_error(model: type[BaseModel], data: dict) -> ValidationError:
    with pytest.raises(ValidationError) as exc_info:
        model.model_validate(data)
    return exc_info.value


# -----------------------------------------------------------------------------
# build_field_errors Tests
# -----------------------------------------------------------------------------


class TestBuildFieldErrors:
    """Tests for the per-field error set."""

    def test_generic_messages(self) -> None:
        """Verify fields are lower-cased and named with the violated rule."""
        error = validation_error(Account, {"Username": "ab", "age": 3})

        fields = build_field_errors(error, {})

        assert fields == {
            "username": "username is string_too_short",
            "age": "age is greater_than_equal",
        }

    def test_override_messages(self) -> None:
        error = validation_error(Account, {"Username": "ab", "age": 30})

        fields = build_field_errors(error, {"username": "Pick a longer username"})

        assert fields == {"username": "Pick a longer username"}

    def test_missing_field(self) -> None:
        error = validation_error(Account, {})
        assert build_field_errors(error, {})["age"] == "age is missing"

    def test_model_level_error_uses_root_key(self) -> None:
        error = validation_error(Passwords, {"password": "a", "confirm": "b"})
        assert list(build_field_errors(error, {})) == [ROOT_FIELD]


# -----------------------------------------------------------------------------
# error_response Tests
# -----------------------------------------------------------------------------


class TestErrorResponse:
    """Tests for converting errors to responses."""

    @pytest.mark.parametrize(
        ("error", "status", "text"),
        [
            (UnsupportedMediaType("text/plain"), 415, "Unsupported Content-Type"),
            (MalformedBody("bad json"), 400, "Invalid request body"),
            (MalformedMultipart("no boundary"), 400, "Can't parse multipart"),
            (DisallowedFileType("image/gif"), 400, "Unsupported file type"),
            (FileTooLarge("a.png", 11, 10), 413, "File too large"),
            (IOFailure("reset"), 500, "Error reading request body"),
        ],
    )
    def test_plain_text_errors(self, error, status: int, text: str) -> None:
        response = error_response(error)

        assert response.status_code == status
        assert response.description == text

    def test_structured_validation_failure(self) -> None:
        error = validation_failure(validation_error(Account, {"Username": "ab", "age": 30}), {})

        response = error_response(error)

        assert response.status_code == 400
        assert response.headers["content-type"] == "application/json"
        assert orjson.loads(response.description) == {
            "message": "Validation failed",
            "fields": {"username": "username is string_too_short"},
        }

    def test_unstructured_validation_failure(self) -> None:
        error = validation_failure(RuntimeError("boom"), {})

        assert isinstance(error, ValidationFailed)
        assert error.fields is None
        assert error_response(error).description == "Validation failed"


# -----------------------------------------------------------------------------
# ParseConfig Tests
# -----------------------------------------------------------------------------


class TestParseConfig:
    """Tests for the shared parsing configuration."""

    def test_defaults_fail_closed(self) -> None:
        config = ParseConfig()
        assert config.allowed_mime_types == frozenset()
        assert config.max_file_size == 5 << 20
        assert not config.strict_decoding

    def test_message_keys_lowercased_and_read_only(self) -> None:
        config = ParseConfig(field_error_messages={"Email": "Invalid email"})

        assert config.field_error_messages == {"email": "Invalid email"}
        with pytest.raises(TypeError):
            config.field_error_messages["name"] = "x"  # type: ignore[index]

    def test_allow_list_frozen(self) -> None:
        config = ParseConfig(allowed_mime_types=["image/png", "image/png"])  # type: ignore[arg-type]
        assert config.allowed_mime_types == frozenset({"image/png"})

    @pytest.mark.parametrize(("field", "value"), [("max_file_size", -1), ("chunk_size", 0)])
    def test_invalid_sizes(self, field: str, value: int) -> None:
        with pytest.raises(ValueError):
            ParseConfig(**{field: value})

    def test_from_settings(self) -> None:
        settings = Settings(
            FORM_ALLOWED_MIME_TYPES="image/png, application/pdf",
            FORM_MAX_FILE_SIZE=1024,
            FORM_STRICT_DECODING=True,
        )

        config = ParseConfig.from_settings(settings, field_error_messages={"name": "Name is required"})

        assert config.allowed_mime_types == frozenset({"image/png", "application/pdf"})
        assert config.max_file_size == 1024
        assert config.strict_decoding
        assert config.field_error_messages == {"name": "Name is required"}

    def test_settings_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("FORM_ALLOWED_MIME_TYPES", "image/jpeg,image/png")
        monkeypatch.setenv("FORM_MAX_FILE_SIZE", "2048")

        settings = Settings()

        assert settings.FORM_ALLOWED_MIME_TYPES == frozenset({"image/jpeg", "image/png"})
        assert settings.FORM_MAX_FILE_SIZE == 2048

    def test_settings_default_allow_list_empty(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("FORM_ALLOWED_MIME_TYPES", raising=False)
        assert Settings().FORM_ALLOWED_MIME_TYPES == frozenset()

    def test_settings_api_url(self) -> None:
        settings = Settings(API_HOST="127.0.0.1", API_PORT=9000)
        assert settings.api_url == "http://127.0.0.1:9000"
        assert "ENVIRONMENT" not in Settings.model_fields
