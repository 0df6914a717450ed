"""Publish/subscribe channel for meal change notifications."""

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import StrEnum

_logger = logging.getLogger(__name__)


class MealEvent(StrEnum):
    """Notifications carry no payload; subscribers re-read the store."""

    SAVED = "meal_saved"
    DELETED = "meal_deleted"


MealListener = Callable[[MealEvent], None]


@dataclass
class MealEventBus:
    """In-process notifier for meal changes.

    Listeners are called synchronously. A failing listener is logged and
    does not prevent the others from running.
    """

    _listeners: list[MealListener] = field(default_factory=list, init=False)

    def subscribe(self, listener: MealListener) -> Callable[[], None]:
        """Register a listener and return a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            self.unsubscribe(listener)

        return unsubscribe

    def unsubscribe(self, listener: MealListener) -> bool:
        """Remove a listener; returns False if it was not subscribed."""
        try:
            self._listeners.remove(listener)
        except ValueError:
            return False
        return True

    @contextmanager
    def subscribed(self, listener: MealListener) -> Iterator[None]:
        """Keep a listener registered for the duration of a block."""
        unsubscribe = self.subscribe(listener)
        try:
            yield
        finally:
            unsubscribe()

    def publish(self, event: MealEvent) -> None:
        """Deliver an event to every current listener."""
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                _logger.exception("Meal event listener failed for %s", event)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)
