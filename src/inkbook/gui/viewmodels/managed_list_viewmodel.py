"""Pure Python list ViewModel (MVVM) over a :class:`ManagedList`.

Mirrors the list's rows and fetch state into observable properties so the
Qt adapter and the CLI can bind to them without touching the list core.
"""

from __future__ import annotations

import logging
import operator
from typing import Any, Mapping, Optional

from inkbook.domain.models.query import ListQuery, SortKey
from inkbook.events.bus import EventBus
from inkbook.events.list_events import MutationRolledBackEvent
from inkbook.gui.viewmodels.base import BaseViewModel
from inkbook.gui.viewmodels.signal import ObservableProperty, Signal
from inkbook.listcore.managed_list import ManagedList
from inkbook.listcore.types import RowId
from inkbook.listcore.windowing import ListState


class ManagedListViewModel(BaseViewModel):
    def __init__(self, managed_list: ManagedList, event_bus: Optional[EventBus] = None) -> None:
        super().__init__()
        self._list = managed_list
        self._logger = logging.getLogger(__name__)

        # Observable properties
        self.rows = ObservableProperty([], same=operator.is_)
        self.state = ObservableProperty(ListState.IDLE)
        self.loading = ObservableProperty(False)
        self.has_more = ObservableProperty(True)
        self.error = ObservableProperty(None)
        self.query = ObservableProperty(managed_list.query or ListQuery())

        # Signals
        self.mutation_failed = Signal("mutation_failed")  # emits the MutationFailed error

        self.connect_signal(managed_list.store.changed, self._on_store_changed)
        self.connect_signal(managed_list.renderer.state.changed, self._on_state_changed)
        self.connect_signal(managed_list.mutations.failed, self._on_mutation_failed)
        if event_bus is not None:
            self.subscribe_event(event_bus, MutationRolledBackEvent, self._on_rolled_back)

    @property
    def managed_list(self) -> ManagedList:
        return self._list

    @property
    def name(self) -> str:
        return self._list.name

    # -- fetching ----------------------------------------------------------

    async def ensure_visible(self, start: int, end: int) -> bool:
        ok = await self._list.ensure_range(start, end)
        self._sync_paging()
        return ok

    async def load_more(self) -> bool:
        ok = await self._list.load_more()
        self._sync_paging()
        return ok

    async def retry(self) -> bool:
        ok = await self._list.retry()
        self._sync_paging()
        return ok

    # -- filters -----------------------------------------------------------

    def set_search(self, search: Optional[str]) -> bool:
        return self._apply_query(self.query.value.with_search(search))

    def set_status(self, status: Optional[str]) -> bool:
        return self._apply_query(self.query.value.with_status(status))

    def set_sort(self, sort: SortKey) -> bool:
        return self._apply_query(self.query.value.sorted_by(SortKey(sort)))

    def reset(self) -> None:
        """Drop every loaded row and start again from the first page."""
        self._list.refresh()
        self.error.value = None
        self._sync_paging()

    # -- mutations ---------------------------------------------------------

    def create(self, payload: Mapping[str, Any]) -> str:
        return self._list.create(payload)

    def update(self, row_id: RowId, payload: Mapping[str, Any], *, supersede: bool = False) -> str:
        return self._list.update(row_id, payload, supersede=supersede)

    def delete(self, row_id: RowId) -> str:
        return self._list.delete(row_id)

    def dispose(self) -> None:
        super().dispose()
        self._list.close()

    # -- internals ---------------------------------------------------------

    def _apply_query(self, query: ListQuery) -> bool:
        changed = self._list.set_query(query)
        if changed:
            self.query.value = query
            self.error.value = None
            self._sync_paging()
        return changed

    def _sync_paging(self) -> None:
        self.has_more.value = self._list.has_more

    def _on_store_changed(self, change: Any) -> None:
        self.rows.value = self._list.rows()

    def _on_state_changed(self, new_state: ListState, old_state: ListState) -> None:
        self.state.value = new_state
        self.loading.value = new_state is ListState.FETCHING
        if new_state is ListState.ERROR:
            error = self._list.renderer.last_error
            self.error.value = str(error) if error is not None else "Failed to load"
        elif old_state is ListState.ERROR:
            self.error.value = None

    def _on_mutation_failed(self, outcome: Any) -> None:
        self.mutation_failed.emit(outcome.error)

    def _on_rolled_back(self, event: MutationRolledBackEvent) -> None:
        if event.list_name == self._list.name:
            self._logger.info("%s %s on %s rolled back", event.kind, event.target_id, event.list_name)
