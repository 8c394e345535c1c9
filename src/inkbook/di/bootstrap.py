import logging
import os
from pathlib import Path
from typing import Optional

from .container import Container
from .lifetime import Lifetime
from inkbook.application.services.booking_service import BookingService
from inkbook.application.services.customer_service import CustomerService
from inkbook.config import DATABASE_PATH_ENV, DEFAULT_DATABASE_NAME
from inkbook.domain.repositories import IBookingRepository, ICustomerRepository
from inkbook.errors.handler import ErrorHandler
from inkbook.events.bus import EventBus
from inkbook.infrastructure.db.pool import ConnectionPool
from inkbook.infrastructure.db.schema import initialise_schema
from inkbook.infrastructure.repositories.sqlite_booking_repository import SQLiteBookingRepository
from inkbook.infrastructure.repositories.sqlite_customer_repository import SQLiteCustomerRepository
from inkbook.settings.manager import SettingsManager


def resolve_database_path(settings: SettingsManager, explicit: Optional[Path] = None) -> Path:
    """Explicit path, then ``INKBOOK_DB``, then settings, then next to settings.json."""
    if explicit is not None:
        return Path(explicit)
    env_path = os.environ.get(DATABASE_PATH_ENV)
    if env_path:
        return Path(env_path).expanduser()
    configured = settings.get("database_path")
    if configured:
        return Path(configured).expanduser()
    return settings.path.parent / DEFAULT_DATABASE_NAME


def bootstrap(
    container: Container,
    *,
    settings_path: Optional[Path] = None,
    database_path: Optional[Path] = None,
) -> None:
    """Register all application services in the DI container."""
    container.register_singleton(EventBus, EventBus)

    def _error_handler() -> ErrorHandler:
        return ErrorHandler(logging.getLogger("inkbook"), container.resolve(EventBus))

    def _settings() -> SettingsManager:
        manager = SettingsManager(settings_path)
        manager.load()
        return manager

    def _pool() -> ConnectionPool:
        path = resolve_database_path(container.resolve(SettingsManager), database_path)
        pool = ConnectionPool(path)
        initialise_schema(pool)
        return pool

    container.register_factory(ErrorHandler, _error_handler, Lifetime.SINGLETON)
    container.register_factory(SettingsManager, _settings, Lifetime.SINGLETON)
    container.register_factory(ConnectionPool, _pool, Lifetime.SINGLETON)
    container.register_factory(
        ICustomerRepository,
        lambda: SQLiteCustomerRepository(container.resolve(ConnectionPool)),
        Lifetime.SINGLETON,
    )
    container.register_factory(
        IBookingRepository,
        lambda: SQLiteBookingRepository(container.resolve(ConnectionPool)),
        Lifetime.SINGLETON,
    )
    container.register_factory(CustomerService, lambda: CustomerService(container.resolve(ICustomerRepository)))
    container.register_factory(BookingService, lambda: BookingService(container.resolve(IBookingRepository)))
