"""Qt list model exposing one :class:`ManagedList` to views."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from PySide6.QtCore import QAbstractListModel, QModelIndex, Qt, Signal, Slot

from ....listcore.managed_list import ManagedList
from ....listcore.row_store import StoreChange
from ....listcore.windowing import ListState
from .roles import Roles, role_names

logger = logging.getLogger(__name__)


class RowListModel(QAbstractListModel):
    """Expose the rows of a managed list by role.

    The model never fetches on its own. ``fetchMore`` emits
    ``fetchRequested(start, end)`` and whoever owns the event loop calls
    ``ManagedList.ensure_range`` with those bounds.
    """

    fetchRequested = Signal(int, int)

    def __init__(
        self,
        managed_list: ManagedList,
        display: Optional[Callable[[Any], str]] = None,
        parent=None,
    ) -> None:  # type: ignore[override]
        super().__init__(parent)
        self._list = managed_list
        self._display = display
        self._ids: List[Any] = managed_list.store.ids()
        self._rows: List[Any] = managed_list.store.rows()
        managed_list.store.changed.connect(self._on_store_changed)

    # ------------------------------------------------------------------
    # Qt model implementation
    # ------------------------------------------------------------------
    def rowCount(self, parent: QModelIndex | None = None) -> int:  # type: ignore[override]
        if parent is not None and parent.isValid():
            return 0
        return len(self._rows)

    def data(self, index: QModelIndex, role: int = Qt.DisplayRole):  # type: ignore[override]
        if not index.isValid() or not (0 <= index.row() < len(self._rows)):
            return None
        row_id = self._ids[index.row()]
        row = self._rows[index.row()]
        store = self._list.store
        if role == Qt.DisplayRole:
            return self._display(row) if self._display is not None else str(row_id)
        if role == Roles.ROW_ID:
            return row_id
        if role == Roles.ROW:
            return row
        if role == Roles.SYNC_STATE:
            state = store.sync_state(row_id)
            return state.value if state is not None else None
        if role == Roles.IS_OPTIMISTIC:
            return store.is_optimistic(row_id)
        return None

    def roleNames(self) -> Dict[int, bytes]:  # type: ignore[override]
        return role_names(super().roleNames())

    # ------------------------------------------------------------------
    # Pagination support (Qt canFetchMore/fetchMore API)
    # ------------------------------------------------------------------
    def canFetchMore(self, parent: QModelIndex = QModelIndex()) -> bool:
        if parent.isValid():
            return False
        state = self._list.state.value
        return not self._list.renderer.exhausted and state not in (ListState.ERROR, ListState.FETCHING)

    def fetchMore(self, parent: QModelIndex = QModelIndex()) -> None:
        if parent.isValid():
            return
        start = len(self._rows)
        end = start + self._list.settings.page_size - 1
        logger.debug("fetchMore on %s: rows %d..%d", self._list.name, start, end)
        self.fetchRequested.emit(start, end)

    def row_for_id(self, row_id: Any) -> Optional[int]:
        try:
            return self._ids.index(row_id)
        except ValueError:
            return None

    # ------------------------------------------------------------------
    # Store synchronisation
    # ------------------------------------------------------------------
    @Slot()
    def refresh(self) -> None:
        self.beginResetModel()
        self._ids = self._list.store.ids()
        self._rows = self._list.store.rows()
        self.endResetModel()

    def _on_store_changed(self, change: StoreChange) -> None:
        self.refresh()

    def detach(self) -> None:
        """Stop following the store, e.g. before the list is closed."""
        try:
            self._list.store.changed.disconnect(self._on_store_changed)
        except ValueError:
            pass
