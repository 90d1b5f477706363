"""Unified settings for formgate."""

import importlib.metadata
import tomllib
from pathlib import Path
from typing import Annotated, ClassVar

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def read_pyproject(pyproject_path: Path) -> dict:
    """Read pyproject.toml into a dict, empty when the file is not shipped."""
    if not pyproject_path.is_file():
        return {}
    with pyproject_path.open("rb") as file_handle:
        return tomllib.load(file_handle)


def get_version(project: dict) -> str:
    """Get version from installed package metadata or fallback to pyproject."""
    try:
        return importlib.metadata.version("formgate")
    except importlib.metadata.PackageNotFoundError:
        return project.get("project", {}).get("version", "0.0.0")


class Settings(BaseSettings):
    """Unified settings for formgate service."""

    DEBUG: bool = True

    # ClassVar to prevent Pydantic from trying to load from env
    BASE_DIR: ClassVar[Path] = Path(__file__).parent.parent.parent
    PROJECT: ClassVar[dict] = read_pyproject(BASE_DIR / "pyproject.toml")
    API_NAME: ClassVar[str] = PROJECT.get("project", {}).get("name", "formgate")
    API_DESCRIPTION: ClassVar[str] = PROJECT.get("project", {}).get("description", "Request body ingestion")
    API_VERSION: ClassVar[str] = get_version(PROJECT)

    # Server
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000

    # Form parsing. No MIME type is allowed unless configured.
    FORM_MAX_FILE_SIZE: int = Field(default=5 << 20, ge=0)
    FORM_ALLOWED_MIME_TYPES: Annotated[frozenset[str], NoDecode] = frozenset()
    FORM_CHUNK_SIZE: int = Field(default=64 * 1024, gt=0)
    FORM_STRICT_DECODING: bool = False

    @field_validator("FORM_ALLOWED_MIME_TYPES", mode="before")
    @classmethod
    def split_mime_types(cls, value: object) -> object:
        """Accept a comma separated string from the environment."""
        if isinstance(value, str):
            return frozenset(item.strip() for item in value.split(",") if item.strip())
        return value

    @property
    def api_url(self) -> str:
        return f"http://{self.API_HOST}:{self.API_PORT}"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


settings = Settings()  # type: ignore
