"""Viewport-driven fetching for one list instance.

The renderer answers "are rows ``start..end`` loaded?" and, if not, pages
forward through the :class:`CursorPaginator` until they are or the source
runs dry. Pagination is forward only; there is no random seek.

State machine::

    IDLE -> FETCHING -> IDLE
    IDLE -> FETCHING -> ERROR -> (retry) -> IDLE
    any  -> RESETTING -> IDLE          (query change, store emptied)
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, List, Optional

from inkbook.config import DEFAULT_OVERSCAN, DEFAULT_PAGE_SIZE
from inkbook.errors import FetchFailed, InvalidArgument
from inkbook.errors.handler import ErrorHandler, ErrorSeverity
from inkbook.events.bus import EventBus
from inkbook.events.list_events import ListResetEvent, PageMergedEvent
from inkbook.gui.viewmodels.signal import ObservableProperty

from .paginator import CursorPaginator, validate_page_size
from .row_store import RowStore
from .types import MergePosition
from .viewport import ViewportRange
from .write_queue import WriteQueue

LOGGER = logging.getLogger(__name__)


class ListState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    ERROR = "error"
    RESETTING = "resetting"


class WindowedRenderer:
    def __init__(
        self,
        store: RowStore,
        paginator: CursorPaginator,
        queue: WriteQueue,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        overscan: int = DEFAULT_OVERSCAN,
        error_handler: Optional[ErrorHandler] = None,
        event_bus: Optional[EventBus] = None,
        list_name: str = "",
    ) -> None:
        validate_page_size(page_size)
        if isinstance(overscan, bool) or not isinstance(overscan, int) or overscan < 0:
            raise InvalidArgument(f"overscan must be a non-negative integer, got {overscan!r}")
        self._store = store
        self._paginator = paginator
        self._queue = queue
        self._page_size = page_size
        self._overscan = overscan
        self._errors = error_handler
        self._events = event_bus
        self._list_name = list_name

        self.state = ObservableProperty(ListState.IDLE)
        self.last_error: Optional[Exception] = None
        self._last_range: Optional[ViewportRange] = None
        self._wanted_end = -1
        self._pump: Optional[asyncio.Task] = None
        self._pump_generation = -1

    # -- properties --------------------------------------------------------

    @property
    def page_size(self) -> int:
        return self._page_size

    @property
    def overscan(self) -> int:
        return self._overscan

    @property
    def exhausted(self) -> bool:
        return self._paginator.started and not self._paginator.has_more

    @property
    def last_range(self) -> Optional[ViewportRange]:
        return self._last_range

    # -- window queries ----------------------------------------------------

    def missing_indices(self, start: int, end: int) -> List[int]:
        """Indices in ``[start, end + overscan]`` that have no backing row."""
        window = ViewportRange(start, end)
        loaded = len(self._store)
        return list(range(max(window.start, loaded), window.end + self._overscan + 1))

    def is_covered(self, start: int, end: int) -> bool:
        window = ViewportRange(start, end)
        return len(self._store) > window.end or self.exhausted

    def visible_rows(self, start: int, end: int) -> List[Any]:
        window = ViewportRange(start, end)
        return self._store.slice(window.start, window.end)

    # -- fetching ----------------------------------------------------------

    async def ensure_range(self, start: int, end: int) -> bool:
        """Fetch forward until ``start..end`` is loaded.

        Returns ``True`` once the visible range is backed by rows or the source
        has no more pages. Returns ``False`` if the fetch failed (state
        ``ERROR``; call :meth:`retry`) or the list was reset meanwhile.
        """
        window = ViewportRange(start, end)
        self._last_range = window
        if self.state.value is ListState.ERROR:
            return False
        self._wanted_end = max(self._wanted_end, window.end + self._overscan)
        generation = self._paginator.generation

        pump = self._ensure_pump()
        if pump is not None:
            await asyncio.wait({pump})
            if not pump.cancelled() and pump.exception() is not None:
                raise pump.exception()
        if generation != self._paginator.generation or self.state.value is ListState.ERROR:
            return False
        return self.is_covered(window.start, window.end)

    async def retry(self) -> bool:
        """Leave ``ERROR`` and re-request the last range."""
        if self.state.value is ListState.ERROR:
            self.last_error = None
            self.state.value = ListState.IDLE
        if self._last_range is None:
            return True
        return await self.ensure_range(self._last_range.start, self._last_range.end)

    def reset(self, query: Any = None) -> int:
        """Discard every loaded row and in-flight fetch, then install *query*."""
        self.state.value = ListState.RESETTING
        generation = self._paginator.reset(query)
        self._queue.run(self._store.clear)
        self._wanted_end = -1
        self._pump = None
        self.last_error = None
        if self._events is not None:
            self._events.publish(ListResetEvent(list_name=self._list_name, generation=generation))
        self.state.value = ListState.IDLE
        return generation

    def close(self) -> None:
        if self._pump is not None and not self._pump.done():
            self._pump.cancel()
        self._pump = None

    def _ensure_pump(self) -> Optional[asyncio.Task]:
        generation = self._paginator.generation
        if (
            self._pump is not None
            and not self._pump.done()
            and self._pump_generation == generation
        ):
            return self._pump
        if len(self._store) > self._wanted_end or self.exhausted:
            return None
        self._pump_generation = generation
        self._pump = asyncio.get_running_loop().create_task(
            self._pump_pages(generation), name=f"fetch-{self._list_name or id(self)}"
        )
        return self._pump

    async def _pump_pages(self, generation: int) -> None:
        paginator = self._paginator
        try:
            while generation == paginator.generation and len(self._store) <= self._wanted_end:
                if self.exhausted:
                    break
                self.state.value = ListState.FETCHING
                first = not paginator.started
                try:
                    page = await paginator.fetch_next(self._page_size)
                except FetchFailed as exc:
                    if generation != paginator.generation:
                        return
                    self.last_error = exc
                    self.state.value = ListState.ERROR
                    self._report(exc)
                    return
                if page is None:
                    LOGGER.debug("Fetch for %s went stale; result dropped", self._list_name)
                    return
                position = MergePosition.REPLACE if first else MergePosition.APPEND
                self._queue.run(self._store.merge_page, page, position)
                if self._events is not None:
                    self._events.publish(PageMergedEvent(
                        list_name=self._list_name,
                        row_count=len(page.rows),
                        has_more=paginator.has_more,
                        replaced=first,
                    ))
                if not page.rows and paginator.has_more:
                    LOGGER.warning("Empty page with has_more=True from %s; pausing", self._list_name)
                    break
        except Exception as exc:
            if generation == paginator.generation:
                self.last_error = exc
                self.state.value = ListState.ERROR
            raise
        finally:
            if generation == paginator.generation and self.state.value is ListState.FETCHING:
                self.state.value = ListState.IDLE

    def _report(self, error: FetchFailed) -> None:
        context = {"list": self._list_name, "cursor": error.cursor}
        if self._errors is not None:
            self._errors.handle(error, ErrorSeverity.ERROR, context)
        else:
            LOGGER.error("%s: %s", error.__class__.__name__, error)
