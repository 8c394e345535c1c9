"""Forward-only cursor pagination over a fetch collaborator."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, List, Optional, Union

from inkbook.errors import FetchFailed, InvalidArgument

from .types import Cursor, Page

LOGGER = logging.getLogger(__name__)

# fetch(query, cursor, page_size) -> Page, sync or async.
FetchFn = Callable[[Any, Optional[Cursor], int], Union[Page, Awaitable[Page]]]


def validate_page_size(page_size: Any) -> int:
    if isinstance(page_size, bool) or not isinstance(page_size, int) or page_size < 1:
        raise InvalidArgument(f"page_size must be a positive integer, got {page_size!r}")
    return page_size


class CursorPaginator:
    """Track known cursors for one query and fetch pages on demand.

    The paginator never mutates a store. It hands back :class:`Page` objects
    and drops results whose query was replaced while they were in flight.
    """

    def __init__(self, fetch: FetchFn, query: Any = None) -> None:
        self._fetch = fetch
        self._query = query
        self._generation = 0
        self._cursors: List[Optional[Cursor]] = []
        self._next_cursor: Optional[Cursor] = None
        self._has_more = True
        self._started = False

    # -- properties --------------------------------------------------------

    @property
    def query(self) -> Any:
        return self._query

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def cursors(self) -> List[Optional[Cursor]]:
        """Request cursors of every merged page, in fetch order."""
        return list(self._cursors)

    @property
    def next_cursor(self) -> Optional[Cursor]:
        return self._next_cursor

    @property
    def has_more(self) -> bool:
        return self._has_more

    @property
    def started(self) -> bool:
        return self._started

    # -- public API --------------------------------------------------------

    def reset(self, query: Any = None) -> int:
        """Install *query*, forget every cursor and invalidate in-flight fetches."""
        self._query = query
        self._generation += 1
        self._cursors.clear()
        self._next_cursor = None
        self._has_more = True
        self._started = False
        LOGGER.debug("Paginator reset to generation %d (query=%r)", self._generation, query)
        return self._generation

    async def fetch_page(self, cursor: Optional[Cursor], page_size: int) -> Optional[Page]:
        """Fetch the page starting at *cursor*.

        Returns ``None`` when the paginator was reset while the request was
        in flight; such a page must not be merged.
        """
        validate_page_size(page_size)
        generation = self._generation
        query = self._query
        try:
            result = self._fetch(query, cursor, page_size)
            if inspect.isawaitable(result):
                result = await result
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if generation != self._generation:
                LOGGER.debug("Dropping failure of stale fetch (cursor=%r): %s", cursor, exc)
                return None
            LOGGER.warning("Fetch failed for cursor %r: %s", cursor, exc)
            raise FetchFailed(exc, cursor=cursor) from exc

        if generation != self._generation:
            LOGGER.debug(
                "Dropping stale page (cursor=%r, generation %d != %d)",
                cursor,
                generation,
                self._generation,
            )
            return None
        if not isinstance(result, Page):
            raise FetchFailed(TypeError(f"fetch returned {type(result).__name__}, expected Page"), cursor=cursor)

        self._started = True
        self._cursors.append(cursor)
        self._next_cursor = result.next_cursor
        self._has_more = bool(result.has_more) and result.next_cursor is not None
        return result

    async def fetch_next(self, page_size: int) -> Optional[Page]:
        """Fetch the page after the last known cursor (or the first page)."""
        if self._started and not self._has_more:
            raise InvalidArgument("No more pages to fetch")
        cursor = self._next_cursor if self._started else None
        return await self.fetch_page(cursor, page_size)
