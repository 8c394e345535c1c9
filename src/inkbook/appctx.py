"""Application-wide context shared by the GUI and the CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from .application.services.list_sources import RepositoryListSource
from .config import BOOKINGS_LIST, CUSTOMERS_LIST
from .di.bootstrap import bootstrap
from .di.container import Container
from .domain.models.query import ListQuery
from .domain.repositories import IBookingRepository, ICustomerRepository
from .errors.handler import ErrorHandler
from .events.bus import EventBus
from .gui.viewmodels.app_state import AppStateStore
from .gui.viewmodels.managed_list_viewmodel import ManagedListViewModel
from .infrastructure.db.pool import ConnectionPool
from .listcore.managed_list import ManagedList
from .listcore.types import MappingRowAdapter
from .settings.manager import SettingsManager


def create_di_container(
    settings_path: Optional[Path] = None,
    database_path: Optional[Path] = None,
) -> Container:
    container = Container()
    bootstrap(container, settings_path=settings_path, database_path=database_path)
    return container


@dataclass
class AppContext:
    """Container object shared across GUI components and CLI commands."""

    container: Container = field(default_factory=create_di_container)
    app_state: Optional[AppStateStore] = None

    def __post_init__(self) -> None:
        if self.app_state is None:
            self.app_state = AppStateStore(self.event_bus, self.settings)

    @property
    def settings(self) -> SettingsManager:
        return self.container.resolve(SettingsManager)

    @property
    def event_bus(self) -> EventBus:
        return self.container.resolve(EventBus)

    @property
    def error_handler(self) -> ErrorHandler:
        return self.container.resolve(ErrorHandler)

    def create_list(self, name: str, query: Optional[ListQuery] = None) -> ManagedList:
        """Build an independent list instance for *name* (``customers`` or ``bookings``)."""

        if name == CUSTOMERS_LIST:
            source: Any = RepositoryListSource.for_customers(self.container.resolve(ICustomerRepository))
        elif name == BOOKINGS_LIST:
            source = RepositoryListSource.for_bookings(self.container.resolve(IBookingRepository))
        else:
            raise ValueError(f"Unknown list {name!r}")
        return ManagedList(
            name,
            source,
            settings=self.settings.list_settings(name),
            adapter=MappingRowAdapter(),
            query=query or ListQuery(),
            error_handler=self.error_handler,
            event_bus=self.event_bus,
        )

    def open_list(self, name: str) -> ManagedListViewModel:
        """Return the registered view model for *name*, creating it on first use."""

        existing = self.app_state.get_list(name)
        if existing is not None:
            return existing
        view_model = ManagedListViewModel(self.create_list(name), self.event_bus)
        self.app_state.register_list(view_model)
        return view_model

    def shutdown(self) -> None:
        self.app_state.dispose()
        self.event_bus.shutdown()
        if ConnectionPool in self.container.singletons():
            self.container.resolve(ConnectionPool).close_all()
