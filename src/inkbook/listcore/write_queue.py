"""Serialized write queue: one per list instance.

Every store write (page merge, optimistic apply, confirm, rollback, reset)
is submitted here. Operations are synchronous callables and are drained
one at a time, so a reader never observes a half-applied merge. Separate
lists own separate queues and never block one another.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from concurrent.futures import Future
from typing import Any, Callable, Deque, Optional, Tuple

LOGGER = logging.getLogger(__name__)

_Job = Tuple[Callable[..., Any], tuple, dict, Future]


class WriteQueue:
    def __init__(self, name: str = "") -> None:
        self._name = name
        self._jobs: Deque[_Job] = deque()
        self._lock = threading.Lock()
        self._drainer: Optional[int] = None
        self._applied = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def applied_count(self) -> int:
        """Number of operations drained since construction."""
        return self._applied

    @property
    def draining(self) -> bool:
        with self._lock:
            return self._drainer is not None

    def submit(self, op: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        """Enqueue *op* and drain if nobody else is draining.

        The returned future is already resolved unless another thread is
        draining, or the call was made re-entrantly from inside an op.
        """
        future: Future = Future()
        with self._lock:
            self._jobs.append((op, args, kwargs, future))
            if self._drainer is not None:
                return future
            self._drainer = threading.get_ident()
        self._drain()
        return future

    def run(self, op: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Submit *op* and return its result, re-raising its exception."""
        with self._lock:
            reentrant = self._drainer == threading.get_ident()
        if reentrant:
            raise RuntimeError(f"Re-entrant write on queue {self._name or id(self)}")
        return self.submit(op, *args, **kwargs).result()

    def _drain(self) -> None:
        while True:
            with self._lock:
                if not self._jobs:
                    self._drainer = None
                    return
                op, args, kwargs, future = self._jobs.popleft()
            if not future.set_running_or_notify_cancel():
                LOGGER.debug("Skipping cancelled write on queue %s", self._name or id(self))
                continue
            try:
                result = op(*args, **kwargs)
            except BaseException as exc:
                future.set_exception(exc)
            else:
                future.set_result(result)
            self._applied += 1
