"""Change feed - subscribe/notify hub behind the stores' on_value().

Each store owns one ChangeFeed. Subscribers receive the full current
collection (a list of dicts) when they subscribe and again after every write.

Example Usage:
    >>> from src.services import measurement_unit_service
    >>> received = []
    >>> unsubscribe = measurement_unit_service.on_value(received.append)
    >>> # ... create/update/delete units ...
    >>> unsubscribe()
"""

import logging
from typing import Any, Callable, List

logger = logging.getLogger(__name__)

Callback = Callable[[Any], None]


class ChangeFeed:
    """Named list of subscribers notified with a snapshot value."""

    def __init__(self, name: str):
        self.name = name
        self._subscribers: List[Callback] = []

    @property
    def has_subscribers(self) -> bool:
        """True if at least one callback is subscribed."""
        return bool(self._subscribers)

    def subscribe(self, callback: Callback) -> Callable[[], None]:
        """
        Register a callback.

        Args:
            callback: Called with each published snapshot

        Returns:
            Function that removes the callback; calling it twice is harmless
        """
        self._subscribers.append(callback)
        logger.debug(f"{self.name}: subscriber added ({len(self._subscribers)} total)")

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)
                logger.debug(f"{self.name}: subscriber removed")

        return unsubscribe

    def publish(self, value: Any) -> None:
        """
        Deliver a snapshot to every subscriber.

        A failing subscriber is logged and does not prevent delivery to the
        others; the write that triggered the publish has already committed.

        Args:
            value: Snapshot to deliver
        """
        for callback in list(self._subscribers):
            try:
                callback(value)
            except Exception:
                logger.exception(f"{self.name}: subscriber {callback!r} failed")

    def clear(self) -> None:
        """Remove all subscribers."""
        self._subscribers.clear()
