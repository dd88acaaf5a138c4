"""Change notifications for a single book store."""
from typing import Callable, List

from readlog.models import Book

Listener = Callable[[List[Book]], None]


class BookEvents:
    """Fan out full-collection snapshots to subscribers of one store."""

    def __init__(self):
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener.

        Args:
            listener: Called with the full collection on every change

        Returns:
            Function that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, books: List[Book]):
        """Deliver a snapshot to every current listener."""
        for listener in list(self._listeners):
            listener(list(books))

    def __len__(self):
        return len(self._listeners)
