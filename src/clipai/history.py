import logging
from collections.abc import Callable

from clipai.config import ARCHIVE_SWEEP_INTERVAL, PAGE_SIZE
from clipai.embeddings import EmbeddingProvider
from clipai.models import ClipboardItem, SearchResult, StoreStats
from clipai.monitor import ClipboardMonitor, ClipboardReader
from clipai.retention import RetentionPolicy
from clipai.settings import SettingsManager
from clipai.storage import StorageManager

logger = logging.getLogger(__name__)


class ClipboardHistory:
    """Entry point for anything that displays or manages clipboard history.

    Owns the store, embedding provider, capture engine and retention policy,
    and keeps the engine's in-memory history in step with the store.
    """

    def __init__(
        self,
        storage: StorageManager,
        settings: SettingsManager,
        reader: ClipboardReader | None = None,
        embeddings: EmbeddingProvider | None = None,
        sweep_interval: float = ARCHIVE_SWEEP_INTERVAL,
    ):
        self._storage = storage
        self._settings = settings
        self._embeddings = embeddings or EmbeddingProvider(settings.get_openai_api_key)
        self._monitor = ClipboardMonitor(storage, embeddings=self._embeddings, reader=reader)
        self._retention = RetentionPolicy(
            storage,
            settings.get_retention_days,
            interval=sweep_interval,
            on_archived=lambda _count: self._monitor.reload(),
        )

    @property
    def monitor(self) -> ClipboardMonitor:
        return self._monitor

    def start(self) -> None:
        self._monitor.bootstrap()
        moved = self._retention.sweep()
        logger.info("Startup archive sweep moved %d items", moved)
        self._monitor.reload()
        self._monitor.start()
        self._retention.start()

    def stop(self) -> None:
        self._retention.stop()
        self._monitor.stop()

    def close(self) -> None:
        self.stop()
        self._storage.close()

    def subscribe(self, callback: Callable[[ClipboardItem], None]) -> Callable[[], None]:
        return self._monitor.subscribe(callback)

    # -- active history -----------------------------------------------------------

    def get_history(self, limit: int | None = None, offset: int = 0) -> list[ClipboardItem]:
        return self._monitor.get_history(limit, offset)

    def load_more(self, limit: int = PAGE_SIZE) -> list[ClipboardItem]:
        return self._monitor.load_more(limit)

    def search(self, query: str, limit: int = 100) -> list[ClipboardItem]:
        return self._storage.search_items(query, limit)

    def semantic_search(self, query: str, limit: int = 10) -> list[SearchResult]:
        return self._monitor.semantic_search(query, limit)

    def get_item(self, item_id: int) -> ClipboardItem | None:
        return self._storage.get_item_by_id(item_id)

    def delete_item(self, item_id: int) -> bool:
        deleted = self._storage.delete_item(item_id)
        if deleted:
            self._monitor.forget(item_id)
        return deleted

    def clear_history(self) -> None:
        self._storage.clear_all_history()
        self._monitor.clear()
        logger.info("History cleared by user")

    def get_stats(self) -> StoreStats:
        return self._storage.get_stats()

    # -- retention ------------------------------------------------------------------

    def get_retention_days(self) -> int:
        return self._settings.get_retention_days()

    def set_retention_days(self, days: int) -> None:
        self._settings.set_retention_days(days)

    def archive_now(self) -> int:
        moved = self._retention.sweep()
        self._monitor.reload()
        return moved

    # -- archive --------------------------------------------------------------------

    def get_archived_items(self, limit: int = PAGE_SIZE, offset: int = 0) -> list[ClipboardItem]:
        return self._storage.get_archived_items(limit, offset)

    def search_archive(self, query: str, limit: int = 100) -> list[ClipboardItem]:
        return self._storage.search_archive(query, limit)

    def semantic_search_archive(self, query: str, limit: int = 10) -> list[SearchResult]:
        return self._monitor.semantic_search(query, limit, archived=True)

    def unarchive_item(self, item_id: int) -> bool:
        restored = self._storage.unarchive_item(item_id)
        if restored:
            self._monitor.reload()
        return restored

    def delete_archived_item(self, item_id: int) -> bool:
        return self._storage.delete_archived_item(item_id)

    def clear_archive(self) -> None:
        self._storage.clear_archive()

    def get_archive_stats(self) -> StoreStats:
        return self._storage.get_archive_stats()

    # -- settings -------------------------------------------------------------------

    def set_openai_api_key(self, api_key: str | None) -> None:
        self._settings.set_openai_api_key(api_key)
        self._embeddings.refresh_api_key()

    def mark_clipboard_seen(self) -> None:
        """Call after writing a history item back to the clipboard."""
        self._monitor.ignore_current()
