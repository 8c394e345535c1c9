"""Optimistic create/update/delete with server reconciliation.

``dispatch`` applies a change to the row store immediately and starts the
remote call as an asyncio task. The task either confirms the change (the
server row becomes authoritative) or rolls it back and reports
:class:`~inkbook.errors.MutationFailed`. Nothing is retried: a retried
create could duplicate a customer on the server.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import uuid
from collections import OrderedDict, deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, List, Mapping, Optional, Protocol, Set

from inkbook.config import DEFAULT_MUTATION_TIMEOUT_SEC, MAX_SETTLED_MUTATIONS
from inkbook.errors import (
    InvalidArgument,
    MutationConflict,
    MutationFailed,
    MutationTimeout,
    RollbackTargetMissing,
)
from inkbook.errors.handler import ErrorHandler, ErrorSeverity
from inkbook.events.bus import EventBus
from inkbook.events.list_events import MutationConfirmedEvent, MutationRolledBackEvent
from inkbook.gui.viewmodels.signal import Signal

from .row_store import RowStore
from .types import PLACEHOLDER_PREFIX, MutationKind, PendingMutation, RowId
from .write_queue import WriteQueue

LOGGER = logging.getLogger(__name__)


class RowMutator(Protocol):
    """Remote side of a list. Methods may be plain functions or coroutines."""

    def create_row(self, payload: Mapping[str, Any]) -> Any: ...

    def update_row(self, row_id: RowId, payload: Mapping[str, Any]) -> Any: ...

    def delete_row(self, row_id: RowId) -> Any: ...


@dataclass(frozen=True)
class MutationOutcome:
    mutation_id: str
    kind: MutationKind
    target_id: RowId
    confirmed: bool
    server_row: Any = None
    error: Optional[MutationFailed] = None
    superseded: bool = False

    @property
    def rolled_back(self) -> bool:
        return not self.confirmed and not self.superseded


class OptimisticMutationCoordinator:
    def __init__(
        self,
        store: RowStore,
        queue: WriteQueue,
        mutator: RowMutator,
        *,
        error_handler: Optional[ErrorHandler] = None,
        event_bus: Optional[EventBus] = None,
        timeout: float = DEFAULT_MUTATION_TIMEOUT_SEC,
        list_name: str = "",
        max_settled: int = MAX_SETTLED_MUTATIONS,
    ) -> None:
        if timeout is None or timeout <= 0:
            raise InvalidArgument(f"timeout must be positive, got {timeout!r}")
        if max_settled < 1:
            raise InvalidArgument(f"max_settled must be at least 1, got {max_settled!r}")
        self._store = store
        self._queue = queue
        self._mutator = mutator
        self._errors = error_handler
        self._events = event_bus
        self._timeout = float(timeout)
        self._list_name = list_name

        self._tasks: Dict[str, asyncio.Task] = {}
        self._records: Dict[str, PendingMutation] = {}
        self._max_settled = max_settled
        self._outcomes: OrderedDict[str, MutationOutcome] = OrderedDict()
        self._superseded: Set[str] = set()
        self.failures: Deque[MutationFailed] = deque(maxlen=max_settled)

        # Emitted with a MutationOutcome once the remote call settles.
        self.confirmed = Signal("mutations.confirmed")
        self.failed = Signal("mutations.failed")

    @property
    def timeout(self) -> float:
        return self._timeout

    # -- dispatch ----------------------------------------------------------

    def dispatch(
        self,
        kind: MutationKind,
        target_id: Optional[RowId],
        payload: Optional[Mapping[str, Any]] = None,
        *,
        supersede: bool = False,
    ) -> str:
        """Apply the change locally, start the remote call, return its id.

        Must be called with a running event loop. Raises
        :class:`MutationConflict` if *target_id* already has a pending
        mutation (unless superseding an update with an update) and
        :class:`InvalidArgument` for unknown rows.
        """
        kind = MutationKind(kind)
        loop = asyncio.get_running_loop()
        payload = dict(payload or {})
        adapter = self._store.adapter
        mutation_id = uuid.uuid4().hex

        if kind is MutationKind.CREATE:
            target = target_id if target_id is not None else f"{PLACEHOLDER_PREFIX}{uuid.uuid4().hex}"
        elif target_id is None:
            raise InvalidArgument(f"{kind.value} requires a target id")
        else:
            target = target_id

        previous = self._store.pending_for(target)
        if previous is not None and not supersede:
            raise MutationConflict(target, previous.mutation_id)

        if kind is MutationKind.CREATE:
            optimistic = adapter.build_created(target, payload)
        elif kind is MutationKind.UPDATE:
            current = self._store.get(target)
            if current is None:
                raise InvalidArgument(f"Unknown row {target!r}")
            optimistic = adapter.build_updated(current, payload)
        else:
            optimistic = None

        mutation = PendingMutation(
            mutation_id=mutation_id,
            kind=kind,
            target_id=target,
            optimistic_row=optimistic,
            payload=payload,
        )
        recorded = self._queue.run(self._store.apply_optimistic, mutation, supersede)

        if previous is not None:
            self._supersede(previous)

        LOGGER.debug("Dispatched %s %s on row %r", kind.value, mutation_id, target)
        task = loop.create_task(self._execute(recorded), name=f"mutation-{kind.value}-{mutation_id[:8]}")
        self._tasks[mutation_id] = task
        self._records[mutation_id] = recorded
        return mutation_id

    def create(self, payload: Mapping[str, Any], placeholder_id: Optional[RowId] = None) -> str:
        return self.dispatch(MutationKind.CREATE, placeholder_id, payload)

    def update(self, row_id: RowId, payload: Mapping[str, Any], *, supersede: bool = False) -> str:
        return self.dispatch(MutationKind.UPDATE, row_id, payload, supersede=supersede)

    def delete(self, row_id: RowId) -> str:
        return self.dispatch(MutationKind.DELETE, row_id)

    # -- inspection --------------------------------------------------------

    def pending_ids(self) -> List[str]:
        return [mid for mid, task in self._tasks.items() if not task.done()]

    def is_pending(self, target_id: RowId) -> bool:
        return self._store.pending_for(target_id) is not None

    def outcome(self, mutation_id: str) -> Optional[MutationOutcome]:
        return self._outcomes.get(mutation_id)

    async def wait(self, mutation_id: str) -> MutationOutcome:
        task = self._tasks.get(mutation_id)
        if task is not None:
            await asyncio.wait({task})
        try:
            return self._outcomes[mutation_id]
        except KeyError:
            raise InvalidArgument(f"Unknown mutation {mutation_id!r}") from None

    async def wait_all(self) -> None:
        while True:
            tasks = [task for task in self._tasks.values() if not task.done()]
            if not tasks:
                return
            await asyncio.wait(tasks)

    def cancel_all(self) -> int:
        """Cancel every in-flight remote call; their rows are rolled back quietly."""
        cancelled = 0
        for mutation_id, task in list(self._tasks.items()):
            if task.done():
                continue
            task.cancel()
            record = self._records.get(mutation_id)
            if record is not None:
                # A task cancelled before its first step never runs its
                # handlers, so roll back here as well.
                self._rollback_quietly(record)
            cancelled += 1
        return cancelled

    # -- remote execution --------------------------------------------------

    async def _execute(self, mutation: PendingMutation) -> None:
        try:
            server_row = await asyncio.wait_for(self._call_remote(mutation), self._timeout)
        except asyncio.CancelledError:
            if self._take_superseded(mutation):
                return
            self._rollback_quietly(mutation)
            raise
        except asyncio.TimeoutError:
            if self._take_superseded(mutation):
                return
            cause = MutationTimeout(
                f"{mutation.kind.value} of row {mutation.target_id!r} did not resolve within {self._timeout:g}s"
            )
            self._fail(mutation, cause)
        except Exception as exc:
            if self._take_superseded(mutation):
                return
            self._fail(mutation, exc)
        else:
            # wait_for can hand back a result that finished just as the task
            # was cancelled; a superseded mutation keeps its outcome.
            if self._take_superseded(mutation):
                return
            self._succeed(mutation, server_row)
        finally:
            self._tasks.pop(mutation.mutation_id, None)
            self._records.pop(mutation.mutation_id, None)

    async def _call_remote(self, mutation: PendingMutation) -> Any:
        payload = dict(mutation.payload)
        if mutation.kind is MutationKind.CREATE:
            result = self._mutator.create_row(payload)
        elif mutation.kind is MutationKind.UPDATE:
            result = self._mutator.update_row(mutation.target_id, payload)
        else:
            result = self._mutator.delete_row(mutation.target_id)
        if inspect.isawaitable(result):
            result = await result
        return None if mutation.kind is MutationKind.DELETE else result

    def _succeed(self, mutation: PendingMutation, server_row: Any) -> None:
        tracked = self._queue.run(self._store.confirm, mutation, server_row)
        outcome = MutationOutcome(
            mutation.mutation_id, mutation.kind, mutation.target_id,
            confirmed=True, server_row=server_row,
        )
        self._record(outcome)
        if not tracked:
            LOGGER.debug("Mutation %s settled after the list was reset", mutation.mutation_id)
            return
        LOGGER.debug("Confirmed %s %s", mutation.kind.value, mutation.mutation_id)
        if self._events is not None:
            self._events.publish(MutationConfirmedEvent(
                list_name=self._list_name,
                mutation_id=mutation.mutation_id,
                kind=mutation.kind,
                target_id=mutation.target_id,
                server_row=server_row,
            ))
        self.confirmed.emit(outcome)

    def _fail(self, mutation: PendingMutation, cause: BaseException) -> None:
        error = MutationFailed(mutation.kind, mutation.target_id, cause)
        outcome = MutationOutcome(
            mutation.mutation_id, mutation.kind, mutation.target_id,
            confirmed=False, error=error,
        )
        context = {
            "list": self._list_name,
            "mutation_id": mutation.mutation_id,
            "kind": mutation.kind.value,
            "target_id": mutation.target_id,
        }
        try:
            tracked = self._queue.run(self._store.rollback, mutation)
        except RollbackTargetMissing as missing:
            self._report(missing, ErrorSeverity.WARNING, context)
        else:
            if not tracked:
                # Nothing on screen to roll back, so nobody is told.
                LOGGER.warning("Mutation %s failed after the list was reset: %s", mutation.mutation_id, cause)
                self._record(outcome)
                return
        self.failures.append(error)
        self._report(error, ErrorSeverity.ERROR, context)

        if self._events is not None:
            self._events.publish(MutationRolledBackEvent(
                list_name=self._list_name,
                mutation_id=mutation.mutation_id,
                kind=mutation.kind,
                target_id=mutation.target_id,
                cause=cause,
            ))
        self._record(outcome)
        self.failed.emit(outcome)

    def _rollback_quietly(self, mutation: PendingMutation) -> None:
        try:
            self._queue.run(self._store.rollback, mutation)
        except RollbackTargetMissing:
            LOGGER.debug("Cancelled mutation %s had no rollback target", mutation.mutation_id)
        self._record(MutationOutcome(
            mutation.mutation_id, mutation.kind, mutation.target_id, confirmed=False,
        ))

    def _supersede(self, previous: PendingMutation) -> None:
        task = self._tasks.pop(previous.mutation_id, None)
        self._records.pop(previous.mutation_id, None)
        if task is not None and not task.done():
            self._superseded.add(previous.mutation_id)
            task.cancel()
        self._record(MutationOutcome(
            previous.mutation_id, previous.kind, previous.target_id,
            confirmed=False, superseded=True,
        ))
        LOGGER.debug("Mutation %s superseded", previous.mutation_id)

    def _take_superseded(self, mutation: PendingMutation) -> bool:
        if mutation.mutation_id not in self._superseded:
            return False
        self._superseded.discard(mutation.mutation_id)
        LOGGER.debug("Dropping result of superseded mutation %s", mutation.mutation_id)
        return True

    def _record(self, outcome: MutationOutcome) -> None:
        self._outcomes[outcome.mutation_id] = outcome
        self._outcomes.move_to_end(outcome.mutation_id)
        while len(self._outcomes) > self._max_settled:
            self._outcomes.popitem(last=False)

    def _report(self, error: Exception, severity: ErrorSeverity, context: dict) -> None:
        if self._errors is not None:
            self._errors.handle(error, severity, context)
        else:
            log = LOGGER.warning if severity is ErrorSeverity.WARNING else LOGGER.error
            log("%s: %s", error.__class__.__name__, error)
