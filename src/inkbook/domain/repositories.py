from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional

from inkbook.listcore.types import Page
from .models import Booking, Customer
from .models.query import ListQuery


class ICustomerRepository(ABC):
    @abstractmethod
    def get(self, id: str) -> Optional[Customer]:
        """Find single customer by ID"""
        pass

    @abstractmethod
    def find_page(self, query: ListQuery, cursor: Optional[str], limit: int) -> Page:
        """Return one keyset page; rows are ``Customer.to_row()`` mappings"""
        pass

    @abstractmethod
    def count(self, query: ListQuery) -> int:
        pass

    @abstractmethod
    def create(self, values: Mapping[str, Any]) -> Customer:
        pass

    @abstractmethod
    def update(self, id: str, values: Mapping[str, Any]) -> Customer:
        """Apply *values*; raises CustomerNotFoundError for unknown ids"""
        pass

    @abstractmethod
    def delete(self, id: str) -> None:
        pass


class IBookingRepository(ABC):
    @abstractmethod
    def get(self, id: str) -> Optional[Booking]:
        pass

    @abstractmethod
    def find_page(self, query: ListQuery, cursor: Optional[str], limit: int) -> Page:
        pass

    @abstractmethod
    def count(self, query: ListQuery) -> int:
        pass

    @abstractmethod
    def create(self, values: Mapping[str, Any]) -> Booking:
        pass

    @abstractmethod
    def update(self, id: str, values: Mapping[str, Any]) -> Booking:
        pass

    @abstractmethod
    def delete(self, id: str) -> None:
        pass
