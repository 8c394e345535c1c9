"""In-process publish/subscribe bus shared by services and view models."""

from __future__ import annotations

import logging
import threading
import uuid
from collections import defaultdict
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Type


@dataclass(kw_only=True)
class Event:
    """Base event class. Handlers subscribed to a base class see subclasses too."""
    timestamp: datetime = field(default_factory=datetime.now)
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))


@dataclass
class Subscription:
    """Handle returned by subscribe(); can be used to unsubscribe."""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    event_type: Type = Event
    handler: Callable = field(default=lambda e: None)
    active: bool = True
    _bus: Optional["EventBus"] = field(default=None, repr=False, compare=False)

    def cancel(self):
        self.active = False
        if self._bus is not None:
            self._bus.unsubscribe(self)
            self._bus = None


class EventBus:
    def __init__(self, logger: logging.Logger = None, max_workers: int = 4):
        self._logger = logger or logging.getLogger(__name__)
        self._sync_handlers: Dict[Type[Event], List[Subscription]] = defaultdict(list)
        self._async_handlers: Dict[Type[Event], List[Subscription]] = defaultdict(list)
        self._max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = None
        self._lock = threading.Lock()

    def subscribe(self, event_type: Type[Event], handler: Callable, async_: bool = False) -> Subscription:
        sub = Subscription(event_type=event_type, handler=handler, _bus=self)
        with self._lock:
            if async_:
                self._async_handlers[event_type].append(sub)
            else:
                self._sync_handlers[event_type].append(sub)
        return sub

    def unsubscribe(self, subscription: Subscription):
        subscription.active = False
        with self._lock:
            for store in (self._sync_handlers, self._async_handlers):
                subs = store.get(subscription.event_type)
                if subs and subscription in subs:
                    subs.remove(subscription)

    def handler_count(self, event_type: Type[Event]) -> int:
        with self._lock:
            return len(self._sync_handlers.get(event_type, ())) + len(
                self._async_handlers.get(event_type, ())
            )

    def publish(self, event: Event):
        sync_subs, async_subs = self._collect(type(event))

        for sub in sync_subs:
            if not sub.active:
                continue
            try:
                sub.handler(event)
            except Exception as e:
                self._logger.error("Sync handler failed for %s: %s", type(event).__name__, e)

        for sub in async_subs:
            if not sub.active:
                continue
            self._pool().submit(self._safe_async_call, sub.handler, event)

    def publish_async(self, event: Event) -> List[Future]:
        """Submit all handlers (sync and async) to the thread pool, return futures."""
        sync_subs, async_subs = self._collect(type(event))
        futures: List[Future] = []
        for sub in sync_subs + async_subs:
            if not sub.active:
                continue
            futures.append(self._pool().submit(self._safe_async_call, sub.handler, event))
        return futures

    def shutdown(self):
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)

    def _collect(self, event_type: Type[Event]):
        # Walk the MRO so a subscription on ``Event`` observes everything.
        sync_subs: List[Subscription] = []
        async_subs: List[Subscription] = []
        with self._lock:
            for klass in event_type.__mro__:
                if klass in self._sync_handlers:
                    sync_subs.extend(self._sync_handlers[klass])
                if klass in self._async_handlers:
                    async_subs.extend(self._async_handlers[klass])
        return sync_subs, async_subs

    def _pool(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers, thread_name_prefix="inkbook-events"
                )
            return self._executor

    def _safe_async_call(self, handler, event):
        try:
            handler(event)
        except Exception as e:
            self._logger.error("Async handler failed: %s", e)
