import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from clipai.errors import InvalidItemError


class ContentType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    FILE = "file"


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class ClipboardItem:
    """A captured clipboard payload.

    The ``type`` tag decides which payload fields are legal: ``text`` for text
    items, ``image`` for images, ``file_path``/``file_name`` for file
    references. Anything else is rejected at construction time.
    """

    id: int | None
    type: ContentType
    timestamp: int
    text: str | None = None
    image: str | None = None
    file_path: str | None = None
    file_name: str | None = None
    embedding: list[float] | None = None
    embedding_model: str | None = None
    created_at: str | None = field(default=None, compare=False)
    original_id: int | None = None
    archived_at: int | None = None

    def __post_init__(self) -> None:
        try:
            self.type = ContentType(self.type)
        except ValueError as e:
            raise InvalidItemError(f"Unknown content type: {self.type!r}") from e

        if self.type == ContentType.FILE and self.file_path and not self.file_name:
            self.file_name = Path(self.file_path).name

        payload = {
            ContentType.TEXT: (self.text,),
            ContentType.IMAGE: (self.image,),
            ContentType.FILE: (self.file_path, self.file_name),
        }
        for content_type, values in payload.items():
            populated = any(v is not None for v in values)
            if content_type == self.type and not all(values):
                raise InvalidItemError(f"{self.type.value} item is missing its payload")
            if content_type != self.type and populated:
                raise InvalidItemError(f"{self.type.value} item carries {content_type.value} fields")

        if self.type == ContentType.TEXT and not self.text.strip():
            raise InvalidItemError("text item must not be blank")
        if self.embedding is not None and self.type != ContentType.TEXT:
            raise InvalidItemError("only text items carry embeddings")

    @classmethod
    def from_text(cls, text: str, embedding: list[float] | None = None, embedding_model: str | None = None) -> "ClipboardItem":
        return cls(
            id=None,
            type=ContentType.TEXT,
            timestamp=now_ms(),
            text=text,
            embedding=embedding,
            embedding_model=embedding_model if embedding else None,
        )

    @classmethod
    def from_image(cls, image: str) -> "ClipboardItem":
        return cls(id=None, type=ContentType.IMAGE, timestamp=now_ms(), image=image)

    @classmethod
    def from_file(cls, file_path: str) -> "ClipboardItem":
        return cls(id=None, type=ContentType.FILE, timestamp=now_ms(), file_path=file_path)

    @property
    def is_archived(self) -> bool:
        return self.archived_at is not None

    @property
    def content(self) -> str:
        """The populated payload field, whatever the type."""
        if self.type == ContentType.TEXT:
            return self.text
        if self.type == ContentType.IMAGE:
            return self.image
        return self.file_path


@dataclass
class SearchResult:
    item: ClipboardItem
    distance: float


@dataclass
class StoreStats:
    total: int
    by_type: dict[str, int]
    with_embedding: int = 0
