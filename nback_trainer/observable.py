from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Observable(Generic[T]):
    """Read-only view of a value that notifies subscribers when it changes.

    Only distinct values are delivered: setting the current value again is
    silent. A subscriber that raises is logged and skipped; the rest still
    receive the value.
    """

    def __init__(self, name: str, value: T) -> None:
        self._name = name
        self._value = value
        self._subscribers: list[Callable[[T], None]] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def value(self) -> T:
        return self._value

    def subscribe(self, callback: Callable[[T], None], *, replay: bool = False) -> Callable[[], None]:
        """Register ``callback``; returns a function that unsubscribes it."""

        self._subscribers.append(callback)
        if replay:
            self._deliver(callback, self._value)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def _deliver(self, callback: Callable[[T], None], value: T) -> None:
        try:
            callback(value)
        except Exception:
            logger.exception("Subscriber of %r failed", self._name)


class MutableObservable(Observable[T]):
    def set(self, value: T) -> None:
        if value == self._value:
            return
        self._value = value
        for callback in list(self._subscribers):
            self._deliver(callback, value)
