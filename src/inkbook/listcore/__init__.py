"""Optimistic, cursor-paginated list management for the admin screens."""

from .managed_list import ListSettings, ManagedList
from .mutations import MutationOutcome, OptimisticMutationCoordinator, RowMutator
from .paginator import CursorPaginator
from .row_store import RowStore, StoreChange
from .types import (
    ConflictPolicy,
    DataclassRowAdapter,
    InsertPosition,
    MappingRowAdapter,
    MergePosition,
    MutationKind,
    Page,
    PendingMutation,
    RowAdapter,
    SyncState,
)
from .viewport import ViewportRange, visible_range
from .windowing import ListState, WindowedRenderer
from .write_queue import WriteQueue

__all__ = [
    "ConflictPolicy",
    "CursorPaginator",
    "DataclassRowAdapter",
    "InsertPosition",
    "ListSettings",
    "ListState",
    "ManagedList",
    "MappingRowAdapter",
    "MergePosition",
    "MutationKind",
    "MutationOutcome",
    "OptimisticMutationCoordinator",
    "Page",
    "PendingMutation",
    "RowAdapter",
    "RowMutator",
    "RowStore",
    "StoreChange",
    "SyncState",
    "ViewportRange",
    "WindowedRenderer",
    "WriteQueue",
    "visible_range",
]
