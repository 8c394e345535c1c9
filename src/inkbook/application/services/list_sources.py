"""Repository-backed fetch and mutate collaborators for :class:`ManagedList`.

SQLite calls are blocking, so each one runs in a worker thread via
:func:`asyncio.to_thread` and the event loop stays free for the UI.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, Mapping, Optional

from inkbook.domain.models import ListQuery
from inkbook.listcore.types import Page, RowId

from .booking_service import normalize_booking_input
from .customer_service import normalize_customer_input

LOGGER = logging.getLogger(__name__)

Normalizer = Callable[[Mapping[str, Any]], Dict[str, Any]]


class RepositoryListSource:
    """Adapts a customer or booking repository to the list core.

    ``create_row``/``update_row`` return the server row mapping, which the
    row store adopts on confirmation.
    """

    def __init__(
        self,
        repository: Any,
        normalize_create: Normalizer,
        normalize_update: Optional[Normalizer] = None,
    ) -> None:
        self._repository = repository
        self._normalize_create = normalize_create
        self._normalize_update = normalize_update or normalize_create

    @classmethod
    def for_customers(cls, repository: Any) -> "RepositoryListSource":
        return cls(
            repository,
            normalize_customer_input,
            lambda values: normalize_customer_input(values, partial=True),
        )

    @classmethod
    def for_bookings(cls, repository: Any) -> "RepositoryListSource":
        return cls(repository, normalize_booking_input)

    async def fetch_page(self, query: Optional[ListQuery], cursor: Optional[str], page_size: int) -> Page:
        return await asyncio.to_thread(self._repository.find_page, query or ListQuery(), cursor, page_size)

    async def create_row(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        values = self._normalize_create(payload)
        entity = await asyncio.to_thread(self._repository.create, values)
        return entity.to_row()

    async def update_row(self, row_id: RowId, payload: Mapping[str, Any]) -> Dict[str, Any]:
        values = self._normalize_update(payload)
        entity = await asyncio.to_thread(self._repository.update, row_id, values)
        return entity.to_row()

    async def delete_row(self, row_id: RowId) -> None:
        await asyncio.to_thread(self._repository.delete, row_id)
        LOGGER.debug("Deleted row %r", row_id)
