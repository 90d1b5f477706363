"""Core models for request body ingestion."""

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import StrEnum

from pydantic import BaseModel


class ContentKind(StrEnum):
    """Request body encoding selected by the content router."""

    JSON = "application/json"
    URLENCODED = "application/x-www-form-urlencoded"
    MULTIPART = "multipart/form-data"


@dataclass(frozen=True, slots=True)
class UploadedFile:
    """File received in a multipart/form-data request, held in memory."""

    filename: str
    content_type: str
    content: bytes = field(repr=False)
    hash: str

    @property
    def size(self) -> int:
        return len(self.content)


class UploadedFiles(Mapping[str, UploadedFile]):
    """Read-only container of uploaded files keyed by form field name."""

    __slots__ = ("_files",)

    def __init__(self, files: Mapping[str, UploadedFile] | None = None) -> None:
        self._files = dict(files or {})

    def __getitem__(self, name: str) -> UploadedFile:
        return self._files[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._files)

    def __len__(self) -> int:
        return len(self._files)

    def __repr__(self) -> str:
        return f"UploadedFiles({list(self._files)})"


class MultiDict:
    """Insertion-ordered multimap of form values.

    Every value added under a key is kept, so repeated form fields never
    overwrite each other.
    """

    __slots__ = ("_data",)

    def __init__(self, items: Iterable[tuple[str, str]] | None = None) -> None:
        self._data: dict[str, list[str]] = {}
        for key, value in items or ():
            self.add(key, value)

    def add(self, key: str, value: str) -> None:
        self._data.setdefault(key, []).append(value)

    def get(self, key: str, default: str | None = None) -> str | None:
        values = self._data.get(key)
        return values[0] if values else default

    def getlist(self, key: str) -> list[str]:
        return list(self._data.get(key, ()))

    def keys(self) -> list[str]:
        return list(self._data)

    def items(self) -> Iterator[tuple[str, str]]:
        for key, values in self._data.items():
            for value in values:
                yield key, value

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MultiDict):
            return NotImplemented
        return self._data == other._data

    def __repr__(self) -> str:
        return f"MultiDict({list(self.items())})"


@dataclass(frozen=True)
class ParseResult[T: BaseModel]:
    """Outcome of one successful parse call."""

    record: T
    kind: ContentKind
    files: UploadedFiles = field(default_factory=UploadedFiles)
