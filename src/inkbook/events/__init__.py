from .bus import Event, EventBus, Subscription
from .list_events import (
    ListEvent,
    ListResetEvent,
    MutationConfirmedEvent,
    MutationRolledBackEvent,
    PageMergedEvent,
    SignedInEvent,
    SignedOutEvent,
)

__all__ = [
    "Event",
    "EventBus",
    "ListEvent",
    "ListResetEvent",
    "MutationConfirmedEvent",
    "MutationRolledBackEvent",
    "PageMergedEvent",
    "SignedInEvent",
    "SignedOutEvent",
    "Subscription",
]
