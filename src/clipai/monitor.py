import logging
import threading
from collections.abc import Callable
from typing import Protocol

from clipai.config import HISTORY_CACHE_SIZE, MAX_IMAGE_SIZE, MAX_TEXT_SIZE, PAGE_SIZE, POLL_INTERVAL, PREVIEW_LENGTH
from clipai.embeddings import EmbeddingProvider
from clipai.errors import EmbeddingError, EmbeddingNotConfiguredError, StorageError
from clipai.models import ClipboardItem, ContentType, SearchResult
from clipai.storage import StorageManager
from clipai.utils import compute_hash, file_url_to_path, get_image_dimensions, is_proxy_path, png_to_data_url, truncate_text

logger = logging.getLogger(__name__)

# Returned by file resolution when a reference exists but has no real path
UNRESOLVED = object()


class ClipboardReader(Protocol):
    def change_count(self) -> int: ...

    def file_url(self) -> str | None: ...

    def file_names(self) -> list[str]: ...

    def image_png(self) -> bytes | None: ...

    def text(self) -> str | None: ...


class ClipboardMonitor:
    """Polls the clipboard and turns new content into stored history items.

    Each tick checks, in order, for a file reference, an image and text, and
    emits at most one item. The last emitted value of each kind is remembered
    so an unchanged clipboard never produces duplicates.
    """

    def __init__(
        self,
        storage: StorageManager,
        embeddings: EmbeddingProvider | None = None,
        reader: ClipboardReader | None = None,
        poll_interval: float = POLL_INTERVAL,
        cache_size: int = HISTORY_CACHE_SIZE,
        on_change: Callable[[ClipboardItem], None] | None = None,
    ):
        self._storage = storage
        self._embeddings = embeddings
        self._reader = reader
        self._poll_interval = poll_interval
        self._cache_size = cache_size

        self._items: list[ClipboardItem] = []
        self._items_lock = threading.RLock()
        self._subscribers: list[Callable[[ClipboardItem], None]] = []
        if on_change:
            self.subscribe(on_change)

        self._last_file_path: str | None = None
        self._last_image_hash: str | None = None
        self._last_text: str | None = None
        self._last_change_count: int | None = None

        self._tick_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def reader(self) -> ClipboardReader:
        if self._reader is None:
            from clipai.pasteboard import PasteboardReader

            self._reader = PasteboardReader()
        return self._reader

    # -- subscriptions ------------------------------------------------------

    def subscribe(self, callback: Callable[[ClipboardItem], None]) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self, item: ClipboardItem) -> None:
        for callback in list(self._subscribers):
            try:
                callback(item)
            except Exception:
                logger.exception("Subscriber failed handling new item")

    # -- lifecycle ------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        with self._state_lock:
            if self.is_running:
                return
            self.reader  # fail here, not on every tick, when no backend exists
            self._stop_event.clear()
            self._thread = threading.Thread(target=self._run, name="clipai-monitor", daemon=True)
            self._thread.start()
        logger.info("Clipboard monitor started (every %.2fs)", self._poll_interval)

    def stop(self, timeout: float = 15.0) -> None:
        with self._state_lock:
            thread = self._thread
            if thread is None:
                return
            self._stop_event.set()
            if thread is not threading.current_thread():
                thread.join(timeout)
            if thread.is_alive():
                logger.warning("Clipboard tick still running after %.1fs; leaving it to finish", timeout)
            self._thread = None
        logger.info("Clipboard monitor stopped")

    def _run(self) -> None:
        while not self._stop_event.wait(self._poll_interval):
            self.tick()

    def bootstrap(self) -> None:
        """Seed the last-seen values from the newest stored item."""
        latest = self._storage.get_latest_item()
        if latest is None:
            return
        if latest.type == ContentType.FILE:
            self._last_file_path = latest.file_path
        elif latest.type == ContentType.IMAGE:
            self._last_image_hash = compute_hash(latest.image)
        else:
            self._last_text = latest.text

    # -- polling --------------------------------------------------------------

    def tick(self) -> ClipboardItem | None:
        """Run one polling cycle. Returns the emitted item, if any."""
        if not self._tick_lock.acquire(blocking=False):
            logger.debug("Previous tick still in flight, skipping")
            return None
        try:
            change_count = self.reader.change_count()
            if change_count == self._last_change_count:
                return None
            item = self._capture()
            self._last_change_count = change_count
            return item
        except Exception:
            logger.exception("Error reading clipboard")
            return None
        finally:
            self._tick_lock.release()

    def _capture(self) -> ClipboardItem | None:
        file_path = self._resolve_file_path()
        if file_path is UNRESOLVED:
            logger.warning("Clipboard file reference has no resolvable path, skipping")
            return None
        if file_path is not None:
            if file_path == self._last_file_path:
                return None
            self._last_file_path = file_path
            return self._emit(ClipboardItem.from_file(file_path))

        png = self.reader.image_png()
        if png:
            item = self._capture_image(png)
            if item is not None:
                return item

        text = self.reader.text()
        if text and text.strip() and text != self._last_text:
            return self._capture_text(text)
        return None

    def _resolve_file_path(self):
        url = self.reader.file_url()
        names = self.reader.file_names()
        if not url and not names:
            return None

        path = file_url_to_path(url)
        if path and not is_proxy_path(path):
            return path
        for name in names:
            if name and not is_proxy_path(name):
                logger.debug("Resolved file reference %s via file name list", url)
                return name
        return UNRESOLVED

    def _capture_image(self, png: bytes) -> ClipboardItem | None:
        if len(png) > MAX_IMAGE_SIZE:
            logger.warning("Image too large (%d bytes), skipping", len(png))
            return None
        image = png_to_data_url(png)
        image_hash = compute_hash(image)
        if image_hash == self._last_image_hash:
            return None
        self._last_image_hash = image_hash
        width, height = get_image_dimensions(png)
        logger.info("Captured image %dx%d", width, height)
        return self._emit(ClipboardItem.from_image(image))

    def _capture_text(self, text: str) -> ClipboardItem | None:
        size = len(text.encode("utf-8"))
        if size > MAX_TEXT_SIZE:
            logger.warning("Text too large (%d bytes), skipping", size)
            return None
        self._last_text = text

        embedding = None
        if self._embeddings is not None and self._embeddings.is_configured:
            try:
                embedding = self._embeddings.get_embedding(text)
            except EmbeddingError as e:
                logger.warning("Storing item without embedding: %s", e)
            except Exception:
                logger.exception("Unexpected embedding failure; storing item without embedding")
        model = self._embeddings.model if embedding else None
        logger.info("Captured text: %s", truncate_text(text, PREVIEW_LENGTH))
        return self._emit(ClipboardItem.from_text(text, embedding=embedding, embedding_model=model))

    def _emit(self, item: ClipboardItem) -> ClipboardItem:
        # a row that is in the store is also in the cache once the lock drops
        with self._items_lock:
            try:
                item.id = self._storage.add_item(item)
            except StorageError:
                logger.exception("Failed to persist %s item; keeping it in memory only", item.type.value)
            self._items.insert(0, item)
        self._notify(item)
        return item

    def ignore_current(self) -> None:
        """Treat whatever is on the clipboard now as already seen.

        Used after the app itself writes to the clipboard, so restoring an old
        item does not capture it again.
        """
        with self._tick_lock:
            file_path = self._resolve_file_path()
            if isinstance(file_path, str):
                self._last_file_path = file_path
            png = self.reader.image_png()
            if png:
                self._last_image_hash = compute_hash(png_to_data_url(png))
            text = self.reader.text()
            if text:
                self._last_text = text
            self._last_change_count = self.reader.change_count()

    # -- history cache ----------------------------------------------------------

    def reload(self) -> list[ClipboardItem]:
        """Refill the cache from the store, keeping items that never reached it."""
        with self._items_lock:
            unsaved = [i for i in self._items if i.id is None]
            items = self._storage.get_items(limit=self._cache_size, offset=0)
            self._items = sorted(unsaved + items, key=lambda i: i.timestamp, reverse=True)
            return list(self._items)

    def get_history(self, limit: int | None = None, offset: int = 0) -> list[ClipboardItem]:
        with self._items_lock:
            offset = max(offset, 0)
            end = None if limit is None else offset + max(limit, 0)
            return self._items[offset:end]

    def load_more(self, limit: int = PAGE_SIZE) -> list[ClipboardItem]:
        """Fetch the next page past the cache. An empty page means no more data."""
        with self._items_lock:
            # in-memory-only items never reached the store, so they don't count
            offset = sum(1 for i in self._items if i.id is not None)
            page = self._storage.get_items(limit=limit, offset=offset)
            self._items.extend(page)
        return page

    def clear(self) -> None:
        with self._items_lock:
            self._items = []

    def forget(self, item_id: int) -> None:
        with self._items_lock:
            self._items = [i for i in self._items if i.id != item_id]

    def semantic_search(self, query: str, limit: int = 10, archived: bool = False) -> list[SearchResult]:
        if not query.strip():
            return []
        if self._embeddings is None or not self._embeddings.is_configured:
            raise EmbeddingNotConfiguredError("No embedding provider configured")
        vector = self._embeddings.get_embedding(query)
        if archived:
            return self._storage.semantic_search_archive(vector, limit, model=self._embeddings.model)
        return self._storage.semantic_search(vector, limit, model=self._embeddings.model)
