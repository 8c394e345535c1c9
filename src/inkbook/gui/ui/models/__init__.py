"""Expose Qt models used by the GUI."""

from .roles import Roles
from .row_list_model import RowListModel

__all__ = [
    "Roles",
    "RowListModel",
]
