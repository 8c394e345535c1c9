"""Pure Python signals for the list core and the view models.

``Signal`` is the observer primitive used by ``RowStore`` and the mutation
coordinator; ``ObservableProperty`` is the data-binding unit exposed by
view models. Neither depends on Qt, so the core runs headless and in tests.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional

_logger = logging.getLogger(__name__)


class Signal:
    """Thread-safe observer list.

    Handlers run on the emitting thread, in connection order. A handler that
    raises is logged and skipped; the remaining handlers still run.
    """

    def __init__(self, name: str = "") -> None:
        self._name = name
        self._handlers: list[Callable] = []
        self._lock = threading.Lock()
        self._blocked = 0

    def connect(self, handler: Callable) -> Callable:
        with self._lock:
            if handler not in self._handlers:
                self._handlers.append(handler)
        return handler

    def disconnect(self, handler: Callable) -> None:
        with self._lock:
            self._handlers.remove(handler)

    def disconnect_all(self) -> None:
        with self._lock:
            self._handlers.clear()

    @contextmanager
    def blocked(self) -> Iterator[None]:
        """Suppress emissions for the duration of the ``with`` block."""
        with self._lock:
            self._blocked += 1
        try:
            yield
        finally:
            with self._lock:
                self._blocked -= 1

    def emit(self, *args: Any, **kwargs: Any) -> int:
        """Call every handler; return how many ran without raising."""
        with self._lock:
            if self._blocked:
                return 0
            handlers = list(self._handlers)
        delivered = 0
        for handler in handlers:
            try:
                handler(*args, **kwargs)
            except Exception as exc:
                _logger.error("Signal %s handler %r failed: %s", self._name or "<anon>", handler, exc)
            else:
                delivered += 1
        return delivered

    @property
    def handler_count(self) -> int:
        with self._lock:
            return len(self._handlers)


class ObservableProperty:
    """A value that emits ``changed(new_value, old_value)`` when it changes.

    Equality decides whether a set is a change; pass *same* to override it
    (e.g. ``operator.is_`` for identity semantics on mutable lists).
    """

    def __init__(self, initial_value: Any = None, same: Optional[Callable[[Any, Any], bool]] = None) -> None:
        self._value = initial_value
        self._same = same or (lambda a, b: a == b)
        self.changed = Signal("changed")

    @property
    def value(self) -> Any:
        return self._value

    @value.setter
    def value(self, new_value: Any) -> None:
        if not self._same(self._value, new_value):
            old_value = self._value
            self._value = new_value
            self.changed.emit(new_value, old_value)

    def set_silently(self, new_value: Any) -> None:
        """Replace the value without notifying observers."""
        self._value = new_value
