"""In-process signals consumed by the UI badge."""

import logging
from collections import defaultdict
from typing import Callable

logger = logging.getLogger(__name__)

UPDATES_AVAILABLE = "updates-available"
UPDATES_CLEARED = "updates-cleared"


class SignalBus:
    """Dispatches named signals to connected callbacks."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[Callable[..., None]]] = defaultdict(list)

    def connect(self, name: str, callback: Callable[..., None]) -> None:
        self._handlers[name].append(callback)

    def disconnect(self, name: str, callback: Callable[..., None]) -> None:
        handlers = self._handlers.get(name, [])
        if callback in handlers:
            handlers.remove(callback)

    def emit(self, name: str, **detail) -> None:
        """Call every callback connected to name with the given detail.

        A failing callback is logged and does not stop delivery to the rest.
        """
        for callback in list(self._handlers.get(name, [])):
            try:
                callback(**detail)
            except Exception:
                logger.exception("Handler for signal '%s' failed", name)
