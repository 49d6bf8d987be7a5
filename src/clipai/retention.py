import logging
import threading
from collections.abc import Callable

from clipai.config import ARCHIVE_SWEEP_INTERVAL
from clipai.storage import StorageManager

logger = logging.getLogger(__name__)


class RetentionPolicy:
    """Moves items past the retention period from active history to the archive.

    The period is read from ``retention_days_source`` on every sweep so setting
    changes apply without a restart. Zero or a negative period disables archival.
    """

    def __init__(
        self,
        storage: StorageManager,
        retention_days_source: Callable[[], int],
        interval: float = ARCHIVE_SWEEP_INTERVAL,
        on_archived: Callable[[int], None] | None = None,
    ):
        self._storage = storage
        self._retention_days_source = retention_days_source
        self._interval = interval
        self._on_archived = on_archived
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def sweep(self, now: int | None = None) -> int:
        retention_days = self._retention_days_source()
        if retention_days <= 0:
            logger.info("Archival disabled (retention period %d days)", retention_days)
            return 0
        moved = self._storage.archive_old_items(retention_days, now=now)
        if moved and self._on_archived:
            self._on_archived(moved)
        return moved

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="clipai-retention", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        if self._thread is None:
            return
        self._stop_event.set()
        if self._thread is not threading.current_thread():
            self._thread.join(timeout)
        self._thread = None

    def _run(self) -> None:
        while not self._stop_event.wait(self._interval):
            try:
                self.sweep()
            except Exception:
                logger.exception("Periodic archive sweep failed")
