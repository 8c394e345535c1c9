from .core import Booking, BookingStatus, Customer, CustomerStatus, customer_display_name
from .query import ListQuery, SortKey

__all__ = [
    "Booking",
    "BookingStatus",
    "Customer",
    "CustomerStatus",
    "ListQuery",
    "SortKey",
    "customer_display_name",
]
