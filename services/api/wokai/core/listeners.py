import logging
from typing import Callable, Generic, TypeVar

logger = logging.getLogger("wokai.listeners")

T = TypeVar("T")


class Subscription:
    """Handle returned by ``subscribe``; call ``unsubscribe()`` to detach."""

    def __init__(self, detach: Callable[[], None]):
        self._detach = detach
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self._detach()


class Listeners(Generic[T]):
    """Ordered observer list.

    Listeners are called synchronously in subscription order. A listener that
    raises is logged and skipped so the remaining listeners still run.
    """

    def __init__(self, name: str):
        self.name = name
        self._listeners: list[Callable[[T], None]] = []

    def subscribe(self, listener: Callable[[T], None]) -> Subscription:
        self._listeners.append(listener)

        def detach():
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return Subscription(detach)

    def emit(self, payload: T) -> None:
        # Copy so a listener may unsubscribe itself mid-emit
        for listener in list(self._listeners):
            try:
                listener(payload)
            except Exception:
                logger.exception(f"Listener on {self.name} failed")

    def clear(self) -> None:
        self._listeners.clear()

    def __len__(self) -> int:
        return len(self._listeners)
