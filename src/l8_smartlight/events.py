"""Per-session observer lists."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Observers(Generic[T]):
    """An ordered list of callbacks notified with one value each.

    ``subscribe`` returns a callable that removes the observer again.
    Observers may unsubscribe themselves while being notified. An observer
    that raises is logged and does not keep the others from being called.
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._callbacks: list[Callable[[T], None]] = []

    def __repr__(self) -> str:
        return f"Observers({self._name!r}, {len(self._callbacks)} subscribed)"

    def __len__(self) -> int:
        return len(self._callbacks)

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def notify(self, value: T) -> None:
        for callback in list(self._callbacks):
            try:
                callback(value)
            except Exception:
                logger.exception("%s observer %r failed", self._name, callback)
