"""One admin list instance: store, write queue, paginator, renderer, mutations."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional

from inkbook.config import (
    DEFAULT_CONFLICT_POLICY,
    DEFAULT_CREATE_POSITION,
    DEFAULT_MUTATION_TIMEOUT_SEC,
    DEFAULT_OVERSCAN,
    DEFAULT_PAGE_SIZE,
)
from inkbook.errors.handler import ErrorHandler
from inkbook.events.bus import EventBus

from .mutations import OptimisticMutationCoordinator, RowMutator
from .paginator import CursorPaginator, FetchFn
from .row_store import RowStore
from .types import ConflictPolicy, InsertPosition, MutationKind, RowAdapter, RowId
from .windowing import WindowedRenderer
from .write_queue import WriteQueue

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ListSettings:
    page_size: int = DEFAULT_PAGE_SIZE
    overscan: int = DEFAULT_OVERSCAN
    mutation_timeout: float = DEFAULT_MUTATION_TIMEOUT_SEC
    create_position: InsertPosition = InsertPosition(DEFAULT_CREATE_POSITION)
    conflict_policy: ConflictPolicy = ConflictPolicy(DEFAULT_CONFLICT_POLICY)

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "ListSettings":
        data = data or {}
        return cls(
            page_size=int(data.get("page_size", DEFAULT_PAGE_SIZE)),
            overscan=int(data.get("overscan", DEFAULT_OVERSCAN)),
            mutation_timeout=float(data.get("mutation_timeout", DEFAULT_MUTATION_TIMEOUT_SEC)),
            create_position=InsertPosition(data.get("create_position", DEFAULT_CREATE_POSITION)),
            conflict_policy=ConflictPolicy(data.get("conflict_policy", DEFAULT_CONFLICT_POLICY)),
        )


class ManagedList:
    """Everything one list screen needs, wired together.

    *source* provides ``fetch_page(query, cursor, page_size)`` and, unless a
    separate *mutator* is given, ``create_row``/``update_row``/``delete_row``.
    Two ``ManagedList`` objects share nothing, so a failure or a reset in the
    bookings list never touches the customers list.
    """

    def __init__(
        self,
        name: str,
        source: Any,
        *,
        settings: Optional[ListSettings] = None,
        adapter: Optional[RowAdapter] = None,
        query: Any = None,
        mutator: Optional[RowMutator] = None,
        fetch: Optional[FetchFn] = None,
        error_handler: Optional[ErrorHandler] = None,
        event_bus: Optional[EventBus] = None,
    ) -> None:
        self._name = name
        self._settings = settings or ListSettings()
        self.store = RowStore(
            adapter,
            insert_position=self._settings.create_position,
            conflict_policy=self._settings.conflict_policy,
        )
        self.queue = WriteQueue(name)
        self.paginator = CursorPaginator(fetch or source.fetch_page, query)
        self.renderer = WindowedRenderer(
            self.store,
            self.paginator,
            self.queue,
            page_size=self._settings.page_size,
            overscan=self._settings.overscan,
            error_handler=error_handler,
            event_bus=event_bus,
            list_name=name,
        )
        self.mutations = OptimisticMutationCoordinator(
            self.store,
            self.queue,
            mutator or source,
            error_handler=error_handler,
            event_bus=event_bus,
            timeout=self._settings.mutation_timeout,
            list_name=name,
        )

    # -- read side ---------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def settings(self) -> ListSettings:
        return self._settings

    @property
    def query(self) -> Any:
        return self.paginator.query

    @property
    def state(self):
        return self.renderer.state

    @property
    def has_more(self) -> bool:
        return not self.renderer.exhausted

    def __len__(self) -> int:
        return len(self.store)

    def rows(self) -> List[Any]:
        return self.store.rows()

    # -- fetching ----------------------------------------------------------

    async def ensure_range(self, start: int, end: int) -> bool:
        return await self.renderer.ensure_range(start, end)

    async def load_more(self) -> bool:
        """Extend the loaded window by one page."""
        end = len(self.store) + self._settings.page_size - 1
        return await self.renderer.ensure_range(0, end)

    async def retry(self) -> bool:
        return await self.renderer.retry()

    def set_query(self, query: Any) -> bool:
        """Reset the list if *query* differs from the active one."""
        if query == self.paginator.query and self.paginator.started:
            return False
        LOGGER.debug("List %s switching query to %r", self._name, query)
        self.renderer.reset(query)
        return True

    def refresh(self) -> int:
        return self.renderer.reset(self.paginator.query)

    def remove_row(self, row_id: RowId) -> bool:
        """Apply a server-side deletion notice (e.g. from a realtime feed)."""
        return self.queue.run(self.store.remove, row_id)

    # -- mutations ---------------------------------------------------------

    def dispatch(self, kind: MutationKind, target_id: Optional[RowId], payload: Optional[Mapping[str, Any]] = None, *, supersede: bool = False) -> str:
        return self.mutations.dispatch(kind, target_id, payload, supersede=supersede)

    def create(self, payload: Mapping[str, Any]) -> str:
        return self.mutations.create(payload)

    def update(self, row_id: RowId, payload: Mapping[str, Any], *, supersede: bool = False) -> str:
        return self.mutations.update(row_id, payload, supersede=supersede)

    def delete(self, row_id: RowId) -> str:
        return self.mutations.delete(row_id)

    async def settle(self) -> None:
        """Wait until every dispatched mutation has confirmed or rolled back."""
        await self.mutations.wait_all()

    def close(self) -> None:
        self.renderer.close()
        self.mutations.cancel_all()
