"""Keyset (cursor) pagination helpers shared by the SQLite repositories.

A cursor is url-safe base64 of the JSON pair ``[sort_value, id]`` taken from
the last row of a page. Callers treat it as opaque.
"""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any, List, Optional, Sequence, Tuple

from inkbook.errors import InvalidArgument

CursorKey = Tuple[Any, str]


def encode_cursor(sort_value: Any, row_id: str) -> str:
    raw = json.dumps([sort_value, row_id], separators=(",", ":"))
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii")


def decode_cursor(token: str) -> CursorKey:
    try:
        decoded = json.loads(base64.urlsafe_b64decode(token.encode("ascii")).decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError, AttributeError) as exc:
        raise InvalidArgument(f"Malformed cursor {token!r}") from exc
    if not isinstance(decoded, list) or len(decoded) != 2 or not isinstance(decoded[1], str):
        raise InvalidArgument(f"Malformed cursor {token!r}")
    return decoded[0], decoded[1]


def keyset_clause(sort_expr: str, descending: bool, key: Optional[CursorKey]) -> Tuple[str, List[Any]]:
    """``WHERE`` fragment selecting rows strictly after *key* in sort order."""
    if key is None:
        return "", []
    value, row_id = key
    op = "<" if descending else ">"
    clause = f"(({sort_expr}) {op} ? OR (({sort_expr}) = ? AND id {op} ?))"
    return clause, [value, value, row_id]


def order_clause(sort_expr: str, descending: bool) -> str:
    direction = "DESC" if descending else "ASC"
    return f"ORDER BY ({sort_expr}) {direction}, id {direction}"


def like_pattern(search: str) -> str:
    escaped = search.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def split_page(rows: Sequence[Any], limit: int) -> Tuple[List[Any], bool]:
    # Callers fetch limit + 1 rows; the extra one only signals has_more.
    return list(rows[:limit]), len(rows) > limit
