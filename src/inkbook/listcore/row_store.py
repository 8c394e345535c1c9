"""Ordered, keyed row collection backing one admin list.

The store owns three pieces of state that must stay consistent:

* ``_rows`` maps row id to row,
* ``_order`` is the display order (every id in it is in ``_rows`` and the
  other way round, no duplicates),
* ``_pending`` holds at most one :class:`PendingMutation` per target id.

Writers are the paginator merge path and the mutation coordinator; both go
through the list's :class:`~inkbook.listcore.write_queue.WriteQueue`, so the
methods here are plain synchronous code and never suspend.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

from inkbook.errors import InvalidArgument, MutationConflict, RollbackTargetMissing
from inkbook.gui.viewmodels.signal import Signal

from .types import (
    ConflictPolicy,
    InsertPosition,
    MappingRowAdapter,
    MergePosition,
    MutationKind,
    Page,
    PendingMutation,
    RowAdapter,
    RowId,
    SyncState,
)

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoreChange:
    """Notification payload emitted on ``RowStore.changed``."""

    operation: str
    ids: Tuple[RowId, ...] = ()


class RowStore:
    def __init__(
        self,
        adapter: Optional[RowAdapter] = None,
        insert_position: InsertPosition = InsertPosition.FRONT,
        conflict_policy: ConflictPolicy = ConflictPolicy.CLIENT_WINS,
    ) -> None:
        self._adapter: RowAdapter = adapter or MappingRowAdapter()
        self._insert_position = InsertPosition(insert_position)
        self._conflict_policy = ConflictPolicy(conflict_policy)
        self._rows: Dict[RowId, Any] = {}
        self._order: List[RowId] = []
        self._sync: Dict[RowId, SyncState] = {}
        self._pending: Dict[RowId, PendingMutation] = {}
        # Ids the server has told us are gone; pages fetched earlier must not
        # resurrect them.
        self._tombstones: Set[RowId] = set()
        self.changed = Signal("row_store.changed")

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------
    @property
    def adapter(self) -> RowAdapter:
        return self._adapter

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, row_id: object) -> bool:
        return row_id in self._rows

    def __iter__(self) -> Iterator[Any]:
        return iter(self.rows())

    def get(self, row_id: RowId) -> Optional[Any]:
        return self._rows.get(row_id)

    def index_of(self, row_id: RowId) -> Optional[int]:
        if row_id not in self._rows:
            return None
        return self._order.index(row_id)

    def ids(self) -> List[RowId]:
        return list(self._order)

    def rows(self) -> List[Any]:
        return [self._rows[row_id] for row_id in self._order]

    def row_at(self, index: int) -> Optional[Any]:
        if 0 <= index < len(self._order):
            return self._rows[self._order[index]]
        return None

    def slice(self, start: int, end: int) -> List[Any]:
        """Return rows ``start..end`` inclusive, clamped to what is loaded."""
        start = max(start, 0)
        return [self._rows[row_id] for row_id in self._order[start:end + 1]]

    def sync_state(self, row_id: RowId) -> Optional[SyncState]:
        return self._sync.get(row_id)

    def pending_for(self, row_id: RowId) -> Optional[PendingMutation]:
        return self._pending.get(row_id)

    def pending_mutations(self) -> List[PendingMutation]:
        return list(self._pending.values())

    def is_optimistic(self, row_id: RowId) -> bool:
        pending = self._pending.get(row_id)
        return pending is not None and pending.kind is MutationKind.CREATE

    def is_tracked(self, mutation: PendingMutation) -> bool:
        return self._tracked(mutation) is not None

    # ------------------------------------------------------------------
    # Server-driven writes
    # ------------------------------------------------------------------
    def merge_page(self, page: Page, position: MergePosition = MergePosition.APPEND) -> List[RowId]:
        """Merge *page* and return the ids whose displayed row changed.

        Existing ids are updated in place; their display position never moves.
        A REPLACE keeps optimistic creates that are still waiting for the
        server. A page with a row lacking an id is rejected before anything
        changes.
        """
        position = MergePosition(position)
        ids = [self._adapter.row_id(row) for row in page.rows]

        carried: List[Tuple[PendingMutation, Any]] = []
        if position is MergePosition.REPLACE:
            carried = self._pending_creates()
            self._reset_contents()
            if self._insert_position is InsertPosition.FRONT:
                self._restore_creates(carried)

        touched: List[RowId] = []
        for row_id, row in zip(ids, page.rows):
            if row_id in self._tombstones:
                LOGGER.debug("Skipping row %r removed by the server", row_id)
                continue
            pending = self._pending.get(row_id)
            if pending is not None and pending.kind is not MutationKind.CREATE:
                # Rebase the rollback target onto the newest server state.
                self._pending[row_id] = dataclasses.replace(pending, snapshot_before=row)
                if pending.kind is MutationKind.UPDATE and self._conflict_policy is ConflictPolicy.SERVER_WINS:
                    self._rows[row_id] = row
                    touched.append(row_id)
                continue
            if row_id not in self._rows:
                self._order.append(row_id)
            self._rows[row_id] = row
            self._sync[row_id] = SyncState.CONFIRMED
            touched.append(row_id)

        if carried and self._insert_position is InsertPosition.BACK:
            self._restore_creates(carried)
        self._emit("merge_replace" if position is MergePosition.REPLACE else "merge_append", touched)
        return touched

    def remove(self, row_id: RowId) -> bool:
        """Drop *row_id* because the server reports it deleted."""
        self._tombstones.add(row_id)
        if row_id not in self._rows:
            return False
        self._drop(row_id)
        self._emit("remove", [row_id])
        return True

    def clear(self) -> None:
        self._reset_contents()
        self._emit("clear", [])

    # ------------------------------------------------------------------
    # Optimistic writes
    # ------------------------------------------------------------------
    def apply_optimistic(self, mutation: PendingMutation, supersede: bool = False) -> PendingMutation:
        """Apply *mutation* locally and return the record the store keeps.

        The returned record carries the snapshot and position the store
        captured, which is what a later rollback restores.
        """
        row_id = mutation.target_id
        existing = self._pending.get(row_id)
        if existing is not None:
            can_supersede = (
                supersede
                and existing.kind is MutationKind.UPDATE
                and mutation.kind is MutationKind.UPDATE
            )
            if not can_supersede:
                raise MutationConflict(row_id, existing.mutation_id)

        kind = mutation.kind
        if kind is MutationKind.CREATE:
            row = mutation.optimistic_row
            if row is None:
                raise InvalidArgument("Create requires an optimistic row")
            if self._adapter.row_id(row) != row_id:
                raise InvalidArgument(f"Optimistic row id does not match target {row_id!r}")
            if row_id in self._rows:
                raise InvalidArgument(f"Row {row_id!r} already exists")
            recorded = dataclasses.replace(mutation, snapshot_before=None, original_index=None)
            if self._insert_position is InsertPosition.FRONT:
                self._order.insert(0, row_id)
            else:
                self._order.append(row_id)
            self._rows[row_id] = row
        elif kind is MutationKind.UPDATE:
            if row_id not in self._rows:
                raise InvalidArgument(f"Unknown row {row_id!r}")
            if mutation.optimistic_row is None:
                raise InvalidArgument("Update requires an optimistic row")
            if existing is not None:
                recorded = dataclasses.replace(
                    mutation,
                    snapshot_before=existing.snapshot_before,
                    original_index=existing.original_index,
                )
            else:
                recorded = dataclasses.replace(
                    mutation,
                    snapshot_before=self._rows[row_id],
                    original_index=self._order.index(row_id),
                )
            self._rows[row_id] = mutation.optimistic_row
        elif kind is MutationKind.DELETE:
            if row_id not in self._rows:
                raise InvalidArgument(f"Unknown row {row_id!r}")
            recorded = dataclasses.replace(
                mutation,
                snapshot_before=self._rows[row_id],
                original_index=self._order.index(row_id),
                optimistic_row=None,
            )
            self._drop(row_id)
        else:  # pragma: no cover - enum is closed
            raise InvalidArgument(f"Unsupported mutation kind {kind!r}")

        self._pending[row_id] = recorded
        if row_id in self._rows:
            self._sync[row_id] = SyncState.PENDING
        self._emit(f"optimistic_{kind.value}", [row_id])
        return recorded

    def confirm(self, mutation: PendingMutation, server_row: Any = None) -> bool:
        """Make the server result authoritative. Returns ``False`` if untracked."""
        current = self._tracked(mutation)
        if current is None:
            LOGGER.debug("Ignoring confirm for untracked mutation %s", mutation.mutation_id)
            return False
        row_id = current.target_id
        del self._pending[row_id]

        if current.kind is MutationKind.CREATE:
            row = server_row if server_row is not None else self._rows.get(row_id)
            if row_id not in self._rows:
                # The placeholder was removed meanwhile; nothing to promote.
                return True
            server_id = self._adapter.row_id(row)
            index = self._order.index(row_id)
            del self._rows[row_id]
            self._sync.pop(row_id, None)
            if server_id != row_id and server_id in self._rows:
                # Already merged from a page; keep that position.
                self._order.pop(index)
            else:
                self._order[index] = server_id
            self._rows[server_id] = row
            self._sync[server_id] = SyncState.CONFIRMED
            self._emit("confirm_create", [row_id, server_id])
        elif current.kind is MutationKind.UPDATE:
            if row_id in self._rows:
                if server_row is not None:
                    self._rows[row_id] = server_row
                self._sync[row_id] = SyncState.CONFIRMED
                self._emit("confirm_update", [row_id])
        else:
            self._tombstones.add(row_id)
            if row_id in self._rows:
                self._drop(row_id)
            self._emit("confirm_delete", [row_id])
        return True

    def rollback(self, mutation: PendingMutation) -> bool:
        """Undo the optimistic effect of *mutation*.

        Returns ``False`` if the store no longer tracks it (reset or
        superseded). Raises :class:`RollbackTargetMissing` when the server
        removed the row in the meantime; the store is then left as it is.
        """
        current = self._tracked(mutation)
        if current is None:
            LOGGER.debug("Ignoring rollback for untracked mutation %s", mutation.mutation_id)
            return False
        row_id = current.target_id
        del self._pending[row_id]

        if current.kind is MutationKind.CREATE:
            if row_id in self._rows:
                self._drop(row_id)
            self._emit("rollback_create", [row_id])
            return True

        if row_id in self._tombstones:
            self._sync.pop(row_id, None)
            raise RollbackTargetMissing(row_id)

        if current.kind is MutationKind.UPDATE:
            if row_id not in self._rows:
                raise RollbackTargetMissing(row_id)
            self._rows[row_id] = current.snapshot_before
        else:
            if row_id not in self._rows:
                index = current.original_index if current.original_index is not None else 0
                self._order.insert(min(index, len(self._order)), row_id)
            self._rows[row_id] = current.snapshot_before
        self._sync[row_id] = SyncState.FAILED
        self._emit(f"rollback_{current.kind.value}", [row_id])
        return True

    def forget(self, mutation: PendingMutation) -> bool:
        """Stop tracking *mutation* without touching any row."""
        if self._tracked(mutation) is None:
            return False
        del self._pending[mutation.target_id]
        return True

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _tracked(self, mutation: PendingMutation) -> Optional[PendingMutation]:
        current = self._pending.get(mutation.target_id)
        if current is None or current.mutation_id != mutation.mutation_id:
            return None
        return current

    def _drop(self, row_id: RowId) -> None:
        self._order.remove(row_id)
        del self._rows[row_id]
        self._sync.pop(row_id, None)

    def _pending_creates(self) -> List[Tuple[PendingMutation, Any]]:
        return [
            (self._pending[row_id], self._rows[row_id])
            for row_id in self._order
            if self.is_optimistic(row_id)
        ]

    def _restore_creates(self, carried: List[Tuple[PendingMutation, Any]]) -> None:
        for record, row in carried:
            row_id = record.target_id
            if row_id in self._rows:
                continue
            self._order.append(row_id)
            self._rows[row_id] = row
            self._sync[row_id] = SyncState.PENDING
            self._pending[row_id] = record

    def _reset_contents(self) -> None:
        self._rows = {}
        self._order = []
        self._sync = {}
        self._pending = {}
        self._tombstones = set()

    def _emit(self, operation: str, ids: List[RowId]) -> None:
        self.changed.emit(StoreChange(operation, tuple(ids)))
