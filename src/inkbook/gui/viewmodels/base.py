"""BaseViewModel: pure Python, no Qt dependency.

Tracks both ``EventBus`` subscriptions and plain ``Signal`` connections so
concrete ViewModels are detached from everything they observe on
``dispose()``.
"""

from __future__ import annotations

from typing import Callable, List, Tuple, Type

from inkbook.events.bus import EventBus, Subscription
from inkbook.gui.viewmodels.signal import Signal


class BaseViewModel:
    """ViewModel base class without any Qt dependency."""

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []
        self._connections: List[Tuple[Signal, Callable]] = []
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def subscribe_event(
        self,
        event_bus: EventBus,
        event_type: Type,
        handler: Callable,
    ) -> Subscription:
        """Subscribe to an event type and track the subscription."""
        sub = event_bus.subscribe(event_type, handler)
        self._subscriptions.append(sub)
        return sub

    def connect_signal(self, signal: Signal, handler: Callable) -> None:
        """Connect *handler* to *signal* and remember it for ``dispose()``."""
        signal.connect(handler)
        self._connections.append((signal, handler))

    def dispose(self) -> None:
        """Cancel all tracked event subscriptions and signal connections."""
        for sub in self._subscriptions:
            sub.cancel()
        self._subscriptions.clear()
        for signal, handler in self._connections:
            try:
                signal.disconnect(handler)
            except ValueError:
                pass
        self._connections.clear()
        self._disposed = True
