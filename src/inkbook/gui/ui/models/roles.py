"""Role definitions shared by the admin list models."""

from __future__ import annotations

from enum import IntEnum
from typing import Dict

from PySide6.QtCore import Qt


class Roles(IntEnum):
    """Custom roles exposed to QML or widgets."""

    ROW_ID = Qt.UserRole + 1
    ROW = Qt.UserRole + 2
    SYNC_STATE = Qt.UserRole + 3
    IS_OPTIMISTIC = Qt.UserRole + 4


def role_names(base: Dict[int, bytes] | None = None) -> Dict[int, bytes]:
    """Return a mapping of Qt role numbers to byte names."""

    mapping: Dict[int, bytes] = {} if base is None else dict(base)
    mapping.update(
        {
            Roles.ROW_ID: b"rowId",
            Roles.ROW: b"row",
            Roles.SYNC_STATE: b"syncState",
            Roles.IS_OPTIMISTIC: b"isOptimistic",
        }
    )
    return mapping


__all__ = ["Roles", "role_names"]
