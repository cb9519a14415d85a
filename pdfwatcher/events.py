"""Server-sent event push channel for PDFWatcher.

The channel only tells clients that a fresh snapshot exists. Clients re-fetch
``/api/pdfs`` when they hear ``scrapingComplete`` and never read data from the
event payload.
"""

import asyncio
import json
import logging
import threading
from datetime import datetime, timezone
from typing import AsyncIterator, Callable, Iterable, Iterator, Optional

import requests

logger = logging.getLogger(__name__)

CONNECTED = "connected"
SCRAPING_COMPLETE = "scrapingComplete"

HEARTBEAT_SECONDS = 30.0


def format_event(name: str, data: object) -> str:
    """Encode one named event in text/event-stream framing."""
    return f"event: {name}\ndata: {json.dumps(data)}\n\n"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class EventBroadcaster:
    """Fans published events out to every connected stream.

    Must be used from the event loop that serves the streams.
    """

    def __init__(self) -> None:
        self._clients: set[asyncio.Queue] = set()

    @property
    def client_count(self) -> int:
        return len(self._clients)

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        self._clients.add(queue)
        logger.info("Event client connected. Active clients: %d", len(self._clients))
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._clients.discard(queue)
        logger.info("Event client disconnected. Active clients: %d", len(self._clients))

    def publish(self, name: str, data: object) -> None:
        message = format_event(name, data)
        for queue in list(self._clients):
            queue.put_nowait(message)

    def close(self) -> None:
        """End every open stream."""
        for queue in list(self._clients):
            queue.put_nowait(None)
        self._clients.clear()


async def event_stream(
    broadcaster: EventBroadcaster, heartbeat: float = HEARTBEAT_SECONDS
) -> AsyncIterator[str]:
    """Yield the text/event-stream body for one client."""
    queue = broadcaster.subscribe()
    try:
        yield format_event(CONNECTED, {"timestamp": _now()})
        while True:
            try:
                message = await asyncio.wait_for(queue.get(), timeout=heartbeat)
            except asyncio.TimeoutError:
                yield ": heartbeat\n\n"
                continue
            if message is None:
                break
            yield message
    finally:
        broadcaster.unsubscribe(queue)


def iter_events(lines: Iterable[str]) -> Iterator[tuple[str, str]]:
    """Parse text/event-stream lines into (event name, data) pairs."""
    name = "message"
    data: list[str] = []

    for line in lines:
        if not line:
            if data:
                yield name, "\n".join(data)
            name = "message"
            data = []
            continue

        if line.startswith(":"):
            continue

        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]

        if field == "event":
            name = value
        elif field == "data":
            data.append(value)


class EventStreamListener:
    """Listens to the push channel on a background thread.

    The channel is best effort: a transport error closes and drops it for
    good, and the client falls back to polling only.
    """

    def __init__(
        self,
        url: str,
        on_event: Callable[[str, str], None],
        timeout: int = 30,
    ):
        self.url = url
        self.on_event = on_event
        self.timeout = timeout
        self._stopped = threading.Event()
        self._response: Optional[requests.Response] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> "EventStreamListener":
        self._thread = threading.Thread(
            target=self.run, name="pdfwatcher-events", daemon=True
        )
        self._thread.start()
        return self

    def stop(self) -> None:
        self._stopped.set()
        response = self._response
        if response is not None:
            response.close()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def run(self) -> None:
        """Read the stream until it ends, fails or the listener is stopped."""
        try:
            with requests.get(
                self.url,
                stream=True,
                timeout=(self.timeout, None),
                headers={"Accept": "text/event-stream"},
            ) as response:
                response.raise_for_status()
                self._response = response
                if self._stopped.is_set():
                    return
                for name, data in iter_events(response.iter_lines(decode_unicode=True)):
                    if self._stopped.is_set():
                        break
                    self._dispatch(name, data)
        except Exception as e:
            if not self._stopped.is_set():
                logger.warning("Push channel closed, continuing with polling only: %s", e)
        finally:
            self._response = None

    def _dispatch(self, name: str, data: str) -> None:
        try:
            self.on_event(name, data)
        except Exception:
            logger.exception("Push channel handler failed for event '%s'", name)
