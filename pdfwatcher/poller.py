"""Server-side polling of the remote document page."""

import asyncio
import json
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from .config import ScraperConfig
from .events import SCRAPING_COMPLETE, EventBroadcaster
from .extractor import ScrapeError, fetch_documents
from .models import Record

logger = logging.getLogger(__name__)


def scrape_from_config(config: ScraperConfig) -> Callable[[], list[Record]]:
    """Build the scrape callable for a scraper configuration."""

    def scrape() -> list[Record]:
        if not config.target_url:
            raise ScrapeError("TARGET_URL environment variable is not set")
        return fetch_documents(
            config.target_url,
            auth=config.auth,
            timeout=config.timeout_seconds,
            selector=config.selector,
        )

    return scrape


class ScrapePoller:
    """Keeps the latest snapshot of the remote page.

    Runs the scrape once at start and then again ``interval`` seconds after
    each run finishes. A failed run never replaces the snapshot, so the last
    good one keeps being served.
    """

    def __init__(
        self,
        scrape: Callable[[], list[Record]],
        interval: int = 3600,
        broadcaster: Optional[EventBroadcaster] = None,
        snapshot_file: Optional[Path] = None,
    ):
        self._scrape = scrape
        self.interval = interval
        self.broadcaster = broadcaster or EventBroadcaster()
        self.snapshot_file = snapshot_file
        self.last_scraping_time: Optional[str] = None
        self.scraping_error: Optional[str] = None
        self.in_progress = False
        self._snapshot: list[Record] = []
        self._task: Optional[asyncio.Task] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._started_at = time.monotonic()

    @property
    def snapshot(self) -> list[Record]:
        return list(self._snapshot)

    def load_snapshot(self) -> None:
        """Restore the snapshot saved by a previous process, if any."""
        if self.snapshot_file is None or not self.snapshot_file.exists():
            return
        try:
            data = json.loads(self.snapshot_file.read_text(encoding="utf-8"))
            self._snapshot = [Record.from_dict(item) for item in data]
        except (OSError, TypeError, ValueError) as e:
            logger.error("Failed to load saved snapshot from %s: %s", self.snapshot_file, e)
            return
        logger.info("Loaded %d records from %s", len(self._snapshot), self.snapshot_file)

    def _save_snapshot(self) -> None:
        if self.snapshot_file is None:
            return
        try:
            self.snapshot_file.parent.mkdir(parents=True, exist_ok=True)
            self.snapshot_file.write_text(
                json.dumps([record.to_dict() for record in self._snapshot], indent=2),
                encoding="utf-8",
            )
        except OSError as e:
            logger.error("Failed to save snapshot to %s: %s", self.snapshot_file, e)

    async def run_once(self) -> bool:
        """Run one scrape.

        Returns:
            True if the snapshot was replaced, False if the run failed or
            another run was already in progress
        """
        if self.in_progress:
            logger.info("Scraping already in progress, skipping")
            return False

        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1)

        self.in_progress = True
        self.scraping_error = None
        logger.info("Starting scrape")
        loop = asyncio.get_running_loop()
        try:
            documents = await loop.run_in_executor(self._executor, self._scrape)
            if not isinstance(documents, list):
                raise ScrapeError("Scraper returned invalid data")
        except Exception as e:
            self.scraping_error = str(e)
            logger.error("Scrape failed: %s", e)
            return False
        finally:
            self.in_progress = False

        self._snapshot = documents
        self.last_scraping_time = datetime.now(timezone.utc).isoformat()
        logger.info("Fetched %d documents", len(documents))
        if not documents:
            logger.warning("Scrape succeeded but found no documents")

        self._save_snapshot()
        self.broadcaster.publish(
            SCRAPING_COMPLETE,
            {"count": len(documents), "timestamp": self.last_scraping_time},
        )
        return True

    async def _loop(self) -> None:
        while True:
            await self.run_once()
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        """Start polling on the running event loop."""
        if self._task is None:
            self._task = asyncio.create_task(self._loop())
            logger.info("Poller started, interval %ds", self.interval)

    async def stop(self) -> None:
        """Stop polling. A scrape already running in the worker is abandoned."""
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None
        self.in_progress = False
        logger.info("Poller stopped")

    def status(self) -> dict:
        return {
            "documentsCount": len(self._snapshot),
            "lastScrapingTime": self.last_scraping_time,
            "isScrapingInProgress": self.in_progress,
            "scrapingError": self.scraping_error,
            "uptime": time.monotonic() - self._started_at,
        }
