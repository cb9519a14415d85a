"""Client-side fetch-and-cache service for PDFWatcher."""

import json
import logging
from enum import Enum
from typing import Callable, Optional

import requests

from .events import SCRAPING_COMPLETE, EventStreamListener
from .models import Record
from .signals import UPDATES_AVAILABLE, UPDATES_CLEARED, SignalBus
from .store import SEEN_COUNT_KEY, SNAPSHOT_KEY, KeyValueStore

logger = logging.getLogger(__name__)

Notifier = Callable[[str, str], None]


class RefreshState(str, Enum):
    """Where the service is in a refresh cycle."""

    IDLE = "idle"
    FETCHING = "fetching"
    CACHE_UPDATED = "cache_updated"
    FETCH_FAILED = "fetch_failed"


class FetchError(Exception):
    """Raised when the snapshot endpoint gives no usable document list."""

    pass


def _log_notification(message: str, level: str) -> None:
    logger.log(logging.ERROR if level == "error" else logging.INFO, message)


class DocumentService:
    """Pulls the server snapshot into a local cache and tracks unseen documents.

    Refreshes are not serialized. When two overlap, the response that
    resolves last is the one left in the cache.
    """

    def __init__(
        self,
        api_base_url: str,
        store: KeyValueStore,
        signals: Optional[SignalBus] = None,
        notify: Optional[Notifier] = None,
        timeout: int = 30,
    ):
        self.api_base_url = api_base_url.rstrip("/")
        self.store = store
        self.signals = signals or SignalBus()
        self.notify = notify or _log_notification
        self.timeout = timeout
        self.state = RefreshState.IDLE
        self.last_outcome: Optional[RefreshState] = None
        self._listener: Optional[EventStreamListener] = None

    def refresh(self, force: bool = False) -> list[Record]:
        """Fetch the current snapshot and replace the cache with it.

        Args:
            force: Announce the refresh to the user before the request

        Returns:
            The fetched snapshot, or an empty list if the fetch failed
        """
        if force:
            self.notify("Refreshing document list...", "info")

        self.state = RefreshState.FETCHING
        try:
            records = self._fetch_snapshot()
        except FetchError as e:
            logger.error("Failed to fetch document list: %s", e)
            self.last_outcome = RefreshState.FETCH_FAILED
            self.state = RefreshState.IDLE
            self.notify("Could not load the document list.", "error")
            return []

        self.store.set(SNAPSHOT_KEY, json.dumps([record.to_dict() for record in records]))
        self.last_outcome = RefreshState.CACHE_UPDATED
        self.state = RefreshState.IDLE

        self.check_for_new_documents(records)
        self.notify(f"Loaded {len(records)} documents.", "info")
        return records

    def _fetch_snapshot(self) -> list[Record]:
        try:
            response = requests.get(f"{self.api_base_url}/api/pdfs", timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            raise FetchError(str(e)) from e

        if not isinstance(data, list):
            raise FetchError(f"Invalid data format: expected a list, got {type(data).__name__}")

        try:
            return [Record.from_dict(item) for item in data]
        except ValueError as e:
            raise FetchError(f"Invalid document record: {e}") from e

    def cached_snapshot(self) -> Optional[list[Record]]:
        """Return the cached snapshot, or None if nothing usable is cached."""
        raw = self.store.get(SNAPSHOT_KEY)
        if raw is None:
            return None
        try:
            return [Record.from_dict(item) for item in json.loads(raw)]
        except (TypeError, ValueError) as e:
            logger.error("Failed to read cached documents: %s", e)
            return None

    def seen_count(self) -> int:
        raw = self.store.get(SEEN_COUNT_KEY)
        if raw is None:
            return 0
        try:
            return int(raw)
        except ValueError:
            logger.warning("Ignoring invalid seen count %r", raw)
            return 0

    def unseen_count(self) -> int:
        """Number of cached documents the user has not acknowledged yet."""
        cached = self.cached_snapshot() or []
        return max(0, len(cached) - self.seen_count())

    def check_for_new_documents(self, records: list[Record]) -> None:
        """Emit the badge signal for a snapshot against the seen-count."""
        seen = self.seen_count()
        if len(records) > seen:
            new_count = len(records) - seen
            logger.info("%d new documents since last visit", new_count)
            self.signals.emit(UPDATES_AVAILABLE, count=new_count)
        else:
            self.signals.emit(UPDATES_CLEARED)

    def mark_seen(self) -> None:
        """Acknowledge every cached document. Does nothing without a cache."""
        cached = self.cached_snapshot()
        if cached is None:
            return

        self.store.set(SEEN_COUNT_KEY, str(len(cached)))
        self.signals.emit(UPDATES_CLEARED)

    def on_remote_change_signal(
        self, callback: Optional[Callable[[list[Record]], None]] = None
    ) -> EventStreamListener:
        """Refresh whenever the server announces a finished scrape.

        Args:
            callback: Optional function called with each refreshed snapshot

        Returns:
            The started listener
        """
        if self._listener is not None:
            self._listener.stop()

        def handle(name: str, data: str) -> None:
            if name != SCRAPING_COMPLETE:
                return
            logger.debug("Received %s: %s", name, data)
            self.notify("New documents available!", "info")
            records = self.refresh(False)
            if callback is not None:
                callback(records)

        self._listener = EventStreamListener(
            f"{self.api_base_url}/api/events", handle, timeout=self.timeout
        ).start()
        return self._listener

    def get_server_status(self) -> Optional[dict]:
        """Fetch the scraper status, or None if the server cannot tell."""
        try:
            response = requests.get(f"{self.api_base_url}/api/status", timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning("Could not fetch server status: %s", e)
            return None

    def close(self) -> None:
        if self._listener is not None:
            self._listener.stop()
            self._listener = None


def search_records(records: list[Record], term: str) -> list[Record]:
    """Filter records whose title, type or date contains term (case-insensitive)."""
    term = term.lower()
    return [
        record
        for record in records
        if term in record.title.lower()
        or term in record.type.lower()
        or term in record.date.lower()
    ]
