from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional
import uuid


class CustomerStatus(str, Enum):
    NEW = "new"
    ACTIVE = "active"
    INACTIVE = "inactive"
    VIP = "vip"


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    IN_PROGRESS = "in-progress"
    NO_SHOW = "no-show"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    # Fixed-width UTC text so stored timestamps sort lexicographically.
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_timestamp(value: Any) -> Optional[datetime]:
    if not value:
        return None
    parsed = value if isinstance(value, datetime) else datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class Customer:
    id: str
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    notes: Optional[str] = None
    status: CustomerStatus = CustomerStatus.NEW
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def display_name(self) -> str:
        name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return name or "Unknown Customer"

    @classmethod
    def create(cls, first_name: str, last_name: str, email: str, **extra: Any) -> Customer:
        now = utcnow()
        return cls(
            id=new_id(),
            first_name=first_name,
            last_name=last_name,
            email=email,
            created_at=now,
            updated_at=now,
            **extra,
        )

    def to_row(self) -> Dict[str, Any]:
        """Flat mapping used as a list row by the admin screens."""
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
            "notes": self.notes,
            "status": self.status.value,
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
        }


@dataclass
class Booking:
    id: str
    status: BookingStatus = BookingStatus.PENDING
    customer_id: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    tattoo_type: Optional[str] = None
    size: Optional[str] = None
    placement: Optional[str] = None
    description: Optional[str] = None
    estimated_price: Optional[float] = None
    preferred_date: Optional[datetime] = None
    deposit_paid: bool = False
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_open(self) -> bool:
        return self.status in (BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS)

    @classmethod
    def create(cls, **values: Any) -> Booking:
        now = utcnow()
        values.setdefault("created_at", now)
        values.setdefault("updated_at", now)
        return cls(id=new_id(), **values)

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status.value,
            "customer_id": self.customer_id,
            "name": self.name,
            "email": self.email,
            "tattoo_type": self.tattoo_type,
            "size": self.size,
            "placement": self.placement,
            "description": self.description,
            "estimated_price": self.estimated_price,
            "preferred_date": format_timestamp(self.preferred_date) if self.preferred_date else None,
            "deposit_paid": self.deposit_paid,
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
        }


def customer_display_name(row: Mapping[str, Any]) -> str:
    """``display_name`` for a customer list row (a mapping, not a Customer)."""
    name = f"{row.get('first_name') or ''} {row.get('last_name') or ''}".strip()
    return name or "Unknown Customer"
