"""Value types shared by the list-management core."""

from __future__ import annotations

import dataclasses
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Hashable, Mapping, Optional, Protocol, Tuple, Union

from inkbook.errors import InvalidArgument

RowId = Union[str, int]
# Cursors are opaque; the client only ever compares them with ``==``.
Cursor = Hashable

PLACEHOLDER_PREFIX = "optimistic-"


class SyncState(str, Enum):
    CONFIRMED = "confirmed"
    PENDING = "pending"
    FAILED = "failed"


class MergePosition(str, Enum):
    APPEND = "append"
    REPLACE = "replace"


class MutationKind(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class InsertPosition(str, Enum):
    """Where optimistic creates land in the display order."""

    FRONT = "front"
    BACK = "back"


class ConflictPolicy(str, Enum):
    """What a merged server row does to a row with a pending update."""

    CLIENT_WINS = "client_wins"
    SERVER_WINS = "server_wins"


@dataclass(frozen=True)
class Page:
    """A fetched batch of rows.

    ``cursor`` is the request cursor (``None`` for the first page) and
    ``next_cursor`` the server-issued token for the following page.
    """

    cursor: Optional[Cursor] = None
    next_cursor: Optional[Cursor] = None
    rows: Tuple[Any, ...] = ()
    has_more: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.rows, tuple):
            object.__setattr__(self, "rows", tuple(self.rows))


@dataclass(frozen=True)
class PendingMutation:
    mutation_id: str
    kind: MutationKind
    target_id: RowId
    snapshot_before: Any = None
    optimistic_row: Any = None
    payload: Mapping[str, Any] = field(default_factory=dict)
    original_index: Optional[int] = None
    created_at: float = field(default_factory=time.monotonic)

    def age(self, now: Optional[float] = None) -> float:
        return (time.monotonic() if now is None else now) - self.created_at


def is_placeholder_id(row_id: Any) -> bool:
    return isinstance(row_id, str) and row_id.startswith(PLACEHOLDER_PREFIX)


class RowAdapter(Protocol):
    """How the core reads and derives rows of an arbitrary record type."""

    def row_id(self, row: Any) -> RowId: ...

    def build_created(self, placeholder_id: RowId, payload: Mapping[str, Any]) -> Any: ...

    def build_updated(self, row: Any, payload: Mapping[str, Any]) -> Any: ...


class MappingRowAdapter:
    """Rows are mappings carrying their key under ``id_field``."""

    def __init__(self, id_field: str = "id") -> None:
        self._id_field = id_field

    def row_id(self, row: Any) -> RowId:
        try:
            return row[self._id_field]
        except (KeyError, TypeError) as exc:
            raise InvalidArgument(f"Row has no {self._id_field!r}: {row!r}") from exc

    def build_created(self, placeholder_id: RowId, payload: Mapping[str, Any]) -> Any:
        row = dict(payload)
        row[self._id_field] = placeholder_id
        return row

    def build_updated(self, row: Any, payload: Mapping[str, Any]) -> Any:
        updated = dict(row)
        updated.update(payload)
        updated[self._id_field] = row[self._id_field]
        return updated


class DataclassRowAdapter:
    """Rows are dataclass instances; ``factory`` builds optimistic creates."""

    def __init__(self, factory: Any, id_field: str = "id") -> None:
        self._factory = factory
        self._id_field = id_field

    def row_id(self, row: Any) -> RowId:
        try:
            return getattr(row, self._id_field)
        except AttributeError as exc:
            raise InvalidArgument(f"Row has no {self._id_field!r}: {row!r}") from exc

    def build_created(self, placeholder_id: RowId, payload: Mapping[str, Any]) -> Any:
        values = dict(payload)
        values[self._id_field] = placeholder_id
        try:
            return self._factory(**values)
        except TypeError as exc:
            raise InvalidArgument(f"Cannot build row from payload: {exc}") from exc

    def build_updated(self, row: Any, payload: Mapping[str, Any]) -> Any:
        changes = {k: v for k, v in payload.items() if k != self._id_field}
        try:
            return dataclasses.replace(row, **changes)
        except TypeError as exc:
            raise InvalidArgument(f"Cannot apply payload to row: {exc}") from exc
