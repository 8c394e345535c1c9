"""Admin session state: who is signed in and which lists are alive.

One ``AppStateStore`` is created per application and handed to the views
through :class:`~inkbook.appctx.AppContext`. Nothing here is a module
global, so tests build as many independent stores as they like.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from inkbook.events.bus import EventBus
from inkbook.events.list_events import SignedInEvent, SignedOutEvent
from inkbook.gui.viewmodels.base import BaseViewModel
from inkbook.gui.viewmodels.managed_list_viewmodel import ManagedListViewModel
from inkbook.gui.viewmodels.signal import ObservableProperty


class AppStateStore(BaseViewModel):
    def __init__(self, event_bus: EventBus, settings=None) -> None:
        super().__init__()
        self._events = event_bus
        self._settings = settings
        self._lists: Dict[str, ManagedListViewModel] = {}
        self._initialized = False
        self._logger = logging.getLogger(__name__)

        self.current_user = ObservableProperty(None)
        self.sidebar_open = ObservableProperty(True)

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def signed_in(self) -> bool:
        return self.current_user.value is not None

    # -- lifecycle ---------------------------------------------------------

    def init(self) -> None:
        """Restore persisted UI state. Must run before ``sign_in``."""
        if self._initialized:
            return
        if self._settings is not None:
            self.sidebar_open.value = bool(self._settings.get("ui.sidebar_open", True))
            self.connect_signal(self.sidebar_open.changed, self._persist_sidebar)
        self._initialized = True

    def sign_in(self, user_id: str) -> None:
        if not self._initialized:
            raise RuntimeError("AppStateStore.init() must be called before sign_in()")
        if not user_id:
            raise ValueError("user_id must not be empty")
        self.current_user.value = user_id
        self._logger.info("Signed in as %s", user_id)
        self._events.publish(SignedInEvent(user_id=user_id))

    def sign_out(self) -> None:
        """Reset every registered list and forget the user."""
        user_id = self.current_user.value
        if user_id is None:
            return
        for view_model in self._lists.values():
            view_model.reset()
        self.current_user.value = None
        self._events.publish(SignedOutEvent(user_id=user_id, reset_lists=tuple(self._lists)))

    def toggle_sidebar(self) -> bool:
        self.sidebar_open.value = not self.sidebar_open.value
        return self.sidebar_open.value

    # -- list registry -----------------------------------------------------

    def register_list(self, view_model: ManagedListViewModel) -> None:
        if view_model.name in self._lists:
            raise ValueError(f"List {view_model.name!r} is already registered")
        self._lists[view_model.name] = view_model

    def unregister_list(self, name: str) -> Optional[ManagedListViewModel]:
        return self._lists.pop(name, None)

    def get_list(self, name: str) -> Optional[ManagedListViewModel]:
        return self._lists.get(name)

    def list_names(self) -> List[str]:
        return list(self._lists)

    def dispose(self) -> None:
        for view_model in self._lists.values():
            view_model.dispose()
        self._lists.clear()
        super().dispose()

    def _persist_sidebar(self, value: bool, _old: bool) -> None:
        self._settings.set("ui.sidebar_open", bool(value))
