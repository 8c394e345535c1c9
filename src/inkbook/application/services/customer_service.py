import logging
import re
from typing import Any, Dict, Mapping, Optional

from inkbook.domain.models import Customer, CustomerStatus, ListQuery
from inkbook.domain.repositories import ICustomerRepository
from inkbook.errors import ValidationError
from inkbook.listcore.types import Page

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

_TEXT_FIELDS = ("phone", "address", "city", "state", "postal_code", "notes")


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def normalize_customer_input(values: Mapping[str, Any], *, partial: bool = False) -> Dict[str, Any]:
    """Trim, split and check customer form values.

    Older clients send a single ``name``; it is split into first name and
    the rest. With ``partial=True`` only the supplied fields are checked,
    which is what an edit form sends.
    """
    data = dict(values)
    if "name" in data and "first_name" not in data and "last_name" not in data:
        parts = (_clean(data.pop("name")) or "").split(None, 1)
        data["first_name"] = parts[0] if parts else ""
        data["last_name"] = parts[1] if len(parts) > 1 else ""
    else:
        data.pop("name", None)

    result: Dict[str, Any] = {}
    for field, label in (("first_name", "First name"), ("last_name", "Last name")):
        if field in data or not partial:
            value = _clean(data.get(field))
            if value is None:
                raise ValidationError(f"{label} is required", field)
            result[field] = value

    if "email" in data or not partial:
        email = _clean(data.get("email"))
        if email is None:
            raise ValidationError("Email is required", "email")
        email = email.lower()
        if not EMAIL_PATTERN.match(email):
            raise ValidationError("Please enter a valid email address", "email")
        result["email"] = email

    for field in _TEXT_FIELDS:
        if field in data:
            result[field] = _clean(data[field])

    if "status" in data and data["status"] is not None:
        try:
            result["status"] = CustomerStatus(data["status"]).value
        except ValueError:
            raise ValidationError(f"Unknown customer status {data['status']!r}", "status") from None

    if "id" in data and data["id"]:
        result["id"] = str(data["id"])
    return result


class CustomerService:
    """Validating facade over the customer repository."""

    def __init__(self, repository: ICustomerRepository):
        self._repository = repository
        self._logger = logging.getLogger(__name__)

    @property
    def repository(self) -> ICustomerRepository:
        return self._repository

    def list_page(self, query: ListQuery, cursor: Optional[str] = None, limit: int = 20) -> Page:
        return self._repository.find_page(query, cursor, limit)

    def add(self, values: Mapping[str, Any]) -> Customer:
        customer = self._repository.create(normalize_customer_input(values))
        self._logger.info("Added customer %s <%s>", customer.display_name, customer.email)
        return customer

    def edit(self, customer_id: str, values: Mapping[str, Any]) -> Customer:
        return self._repository.update(customer_id, normalize_customer_input(values, partial=True))

    def remove(self, customer_id: str) -> None:
        self._repository.delete(customer_id)
