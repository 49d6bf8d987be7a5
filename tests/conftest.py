import pytest

from clipai.errors import EmbeddingProviderError, VectorExtensionError
from clipai.models import ClipboardItem, ContentType
from clipai.storage import StorageManager

# Sentinel to distinguish "not provided" from "explicitly None"
_UNSET = object()


@pytest.fixture
def storage():
    mgr = StorageManager(db_path=":memory:", require_vector=False)
    yield mgr
    mgr.close()


@pytest.fixture
def vector_storage():
    try:
        mgr = StorageManager(db_path=":memory:")
    except VectorExtensionError as e:
        pytest.skip(f"sqlite-vec not loadable here: {e}")
    yield mgr
    mgr.close()


@pytest.fixture
def make_item():
    """Factory fixture to create ClipboardItem instances for testing."""

    def _make_item(
        text: str = "hello world",
        content_type: ContentType = ContentType.TEXT,
        timestamp: int = 1_700_000_000_000,
        embedding: list[float] | None = None,
        embedding_model: str | None = _UNSET,
        image: str = "data:image/png;base64,iVBORw0KGgo=",
        file_path: str = "/Users/test/report.pdf",
    ) -> ClipboardItem:
        if content_type == ContentType.IMAGE:
            return ClipboardItem(id=None, type=content_type, timestamp=timestamp, image=image)
        if content_type == ContentType.FILE:
            return ClipboardItem(id=None, type=content_type, timestamp=timestamp, file_path=file_path)
        model = ("test-model" if embedding else None) if embedding_model is _UNSET else embedding_model
        return ClipboardItem(
            id=None,
            type=content_type,
            timestamp=timestamp,
            text=text,
            embedding=embedding,
            embedding_model=model,
        )

    return _make_item


class FakeClipboard:
    """Scriptable stand-in for the OS clipboard."""

    def __init__(self):
        self._count = 0
        self.url: str | None = None
        self.names: list[str] = []
        self.png: bytes | None = None
        self.text_value: str | None = None
        self.fail = False

    def set(self, *, text=None, png=None, url=None, names=None) -> None:
        self.text_value = text
        self.png = png
        self.url = url
        self.names = list(names or [])
        self._count += 1

    def change_count(self) -> int:
        return self._count

    def file_url(self) -> str | None:
        if self.fail:
            raise RuntimeError("pasteboard unavailable")
        return self.url

    def file_names(self) -> list[str]:
        return self.names

    def image_png(self) -> bytes | None:
        return self.png

    def text(self) -> str | None:
        return self.text_value


class FakeEmbeddings:
    """Embedding provider returning canned vectors."""

    model = "test-model"

    def __init__(self, vectors: dict[str, list[float]] | None = None, configured: bool = True):
        self.vectors = vectors or {}
        self.configured = configured
        self.calls: list[str] = []
        self.error: Exception | None = None

    @property
    def is_configured(self) -> bool:
        return self.configured

    def get_embedding(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        if text not in self.vectors:
            raise EmbeddingProviderError(f"no vector for {text!r}")
        return self.vectors[text]

    def refresh_api_key(self) -> None:
        pass


@pytest.fixture
def fake_clipboard():
    return FakeClipboard()


@pytest.fixture
def fake_embeddings():
    return FakeEmbeddings()


def make_png(width: int = 100, height: int = 50, fill: bytes = b"\x00") -> bytes:
    png_header = b"\x89PNG\r\n\x1a\n"
    ihdr_chunk = b"\x00\x00\x00\rIHDR"
    return png_header + ihdr_chunk + width.to_bytes(4, "big") + height.to_bytes(4, "big") + fill * 100
