"""Events published by list instances and the admin session."""

from dataclasses import dataclass, field
from typing import Any, Optional, Tuple

from .bus import Event


@dataclass(kw_only=True)
class ListEvent(Event):
    list_name: str = ""


@dataclass(kw_only=True)
class PageMergedEvent(ListEvent):
    row_count: int = 0
    has_more: bool = False
    replaced: bool = False


@dataclass(kw_only=True)
class ListResetEvent(ListEvent):
    generation: int = 0


@dataclass(kw_only=True)
class MutationConfirmedEvent(ListEvent):
    mutation_id: str = ""
    kind: Any = None
    target_id: Any = None
    server_row: Any = None


@dataclass(kw_only=True)
class MutationRolledBackEvent(ListEvent):
    mutation_id: str = ""
    kind: Any = None
    target_id: Any = None
    cause: Optional[BaseException] = None


@dataclass(kw_only=True)
class SignedInEvent(Event):
    user_id: str = ""


@dataclass(kw_only=True)
class SignedOutEvent(Event):
    user_id: str = ""
    reset_lists: Tuple[str, ...] = field(default_factory=tuple)
