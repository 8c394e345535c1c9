import logging
from typing import Any, Dict, Mapping, Optional

from inkbook.domain.models import Booking, BookingStatus, ListQuery
from inkbook.domain.models.core import format_timestamp, parse_timestamp
from inkbook.domain.repositories import IBookingRepository
from inkbook.errors import ValidationError
from inkbook.listcore.types import Page

_TEXT_FIELDS = ("customer_id", "name", "email", "tattoo_type", "size", "placement", "description")


def normalize_booking_input(values: Mapping[str, Any]) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for field in _TEXT_FIELDS:
        if field in values:
            value = values[field]
            result[field] = (str(value).strip() or None) if value is not None else None
    if result.get("email"):
        result["email"] = result["email"].lower()

    if "status" in values:
        try:
            result["status"] = BookingStatus(values["status"]).value
        except ValueError:
            raise ValidationError(f"Unknown booking status {values['status']!r}", "status") from None

    if "estimated_price" in values and values["estimated_price"] is not None:
        try:
            price = float(values["estimated_price"])
        except (TypeError, ValueError):
            raise ValidationError("Estimated price must be a number", "estimated_price") from None
        if price < 0:
            raise ValidationError("Estimated price cannot be negative", "estimated_price")
        result["estimated_price"] = price

    if "preferred_date" in values:
        try:
            parsed = parse_timestamp(values["preferred_date"])
        except (TypeError, ValueError):
            raise ValidationError("Preferred date is not a valid date", "preferred_date") from None
        result["preferred_date"] = format_timestamp(parsed) if parsed else None

    if "deposit_paid" in values:
        result["deposit_paid"] = bool(values["deposit_paid"])
    if values.get("id"):
        result["id"] = str(values["id"])
    return result


class BookingService:
    def __init__(self, repository: IBookingRepository):
        self._repository = repository
        self._logger = logging.getLogger(__name__)

    @property
    def repository(self) -> IBookingRepository:
        return self._repository

    def list_page(self, query: ListQuery, cursor: Optional[str] = None, limit: int = 20) -> Page:
        return self._repository.find_page(query, cursor, limit)

    def book(self, values: Mapping[str, Any]) -> Booking:
        return self._repository.create(normalize_booking_input(values))

    def set_status(self, booking_id: str, status: str) -> Booking:
        booking = self._repository.update(booking_id, normalize_booking_input({"status": status}))
        self._logger.info("Booking %s is now %s", booking_id, booking.status.value)
        return booking
