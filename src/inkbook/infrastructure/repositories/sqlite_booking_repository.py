import logging
import sqlite3
from typing import Any, List, Mapping, Optional, Tuple

from inkbook.domain.models import Booking, BookingStatus, ListQuery
from inkbook.domain.models.core import format_timestamp, new_id, parse_timestamp, utcnow
from inkbook.domain.repositories import IBookingRepository
from inkbook.errors import BookingNotFoundError
from inkbook.infrastructure.db.pool import ConnectionPool
from inkbook.listcore.types import Page

from .keyset import decode_cursor, encode_cursor, keyset_clause, like_pattern, order_clause, split_page

_logger = logging.getLogger(__name__)

_NAME_EXPR = "lower(coalesce(name, ''))"
_DATE_EXPR = "created_at"
_COLUMNS = (
    "customer_id", "name", "email", "tattoo_type", "size", "placement",
    "description", "estimated_price", "preferred_date", "status", "deposit_paid",
)


def _column_value(key: str, value: Any) -> Any:
    if key == "status":
        return BookingStatus(value).value
    if key == "deposit_paid":
        return 1 if value else 0
    if key == "preferred_date" and hasattr(value, "isoformat"):
        return format_timestamp(value)
    return value


class SQLiteBookingRepository(IBookingRepository):
    def __init__(self, pool: ConnectionPool):
        self._pool = pool

    def get(self, id: str) -> Optional[Booking]:
        with self._pool.connection() as conn:
            row = conn.execute("SELECT * FROM bookings WHERE id = ?", (id,)).fetchone()
            if row:
                return self._map_row_to_booking(row)
            return None

    def find_page(self, query: ListQuery, cursor: Optional[str], limit: int) -> Page:
        sort_expr = _NAME_EXPR if query.sort.by_name else _DATE_EXPR
        where, params = self._filters(query)
        if cursor is not None:
            clause, extra = keyset_clause(sort_expr, query.sort.descending, decode_cursor(cursor))
            where.append(clause)
            params.extend(extra)

        sql = f"SELECT *, {sort_expr} AS sort_value FROM bookings"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += f" {order_clause(sort_expr, query.sort.descending)} LIMIT ?"
        params.append(limit + 1)

        with self._pool.connection() as conn:
            fetched = conn.execute(sql, params).fetchall()
        rows, has_more = split_page(fetched, limit)
        next_cursor = encode_cursor(rows[-1]["sort_value"], rows[-1]["id"]) if has_more else None
        return Page(
            rows=[self._map_row_to_booking(row).to_row() for row in rows],
            next_cursor=next_cursor,
            has_more=has_more,
        )

    def count(self, query: ListQuery) -> int:
        where, params = self._filters(query)
        sql = "SELECT COUNT(*) FROM bookings"
        if where:
            sql += " WHERE " + " AND ".join(where)
        with self._pool.connection() as conn:
            return conn.execute(sql, params).fetchone()[0]

    def create(self, values: Mapping[str, Any]) -> Booking:
        now = utcnow()
        booking = Booking(
            id=values.get("id") or new_id(),
            status=BookingStatus(values.get("status") or BookingStatus.PENDING),
            customer_id=values.get("customer_id"),
            name=values.get("name"),
            email=values.get("email"),
            tattoo_type=values.get("tattoo_type"),
            size=values.get("size"),
            placement=values.get("placement"),
            description=values.get("description"),
            estimated_price=values.get("estimated_price"),
            preferred_date=parse_timestamp(values.get("preferred_date")),
            deposit_paid=bool(values.get("deposit_paid", False)),
            created_at=now,
            updated_at=now,
        )
        row = booking.to_row()
        row["deposit_paid"] = 1 if booking.deposit_paid else 0
        columns = ("id",) + _COLUMNS + ("created_at", "updated_at")
        placeholders = ", ".join("?" for _ in columns)
        with self._pool.connection() as conn:
            conn.execute(
                f"INSERT INTO bookings ({', '.join(columns)}) VALUES ({placeholders})",
                tuple(row[column] for column in columns),
            )
        _logger.info("Created booking %s", booking.id)
        return booking

    def update(self, id: str, values: Mapping[str, Any]) -> Booking:
        changes = {key: _column_value(key, values[key]) for key in _COLUMNS if key in values}
        changes["updated_at"] = format_timestamp(utcnow())
        assignments = ", ".join(f"{key} = ?" for key in changes)
        with self._pool.connection() as conn:
            cursor = conn.execute(
                f"UPDATE bookings SET {assignments} WHERE id = ?",
                tuple(changes.values()) + (id,),
            )
            if cursor.rowcount == 0:
                raise BookingNotFoundError(f"Booking {id!r} not found")
            row = conn.execute("SELECT * FROM bookings WHERE id = ?", (id,)).fetchone()
        return self._map_row_to_booking(row)

    def delete(self, id: str) -> None:
        with self._pool.connection() as conn:
            cursor = conn.execute("DELETE FROM bookings WHERE id = ?", (id,))
            if cursor.rowcount == 0:
                raise BookingNotFoundError(f"Booking {id!r} not found")
        _logger.info("Deleted booking %s", id)

    def _filters(self, query: ListQuery) -> Tuple[List[str], List[Any]]:
        where: List[str] = []
        params: List[Any] = []
        if query.status:
            where.append("status = ?")
            params.append(query.status)
        if query.search:
            pattern = like_pattern(query.search)
            fields = ("name", "email", "tattoo_type", "placement")
            where.append(
                "(" + " OR ".join(f"lower(coalesce({field}, '')) LIKE ? ESCAPE '\\'" for field in fields) + ")"
            )
            params.extend([pattern] * len(fields))
        return where, params

    def _map_row_to_booking(self, row: sqlite3.Row) -> Booking:
        return Booking(
            id=row["id"],
            status=BookingStatus(row["status"]),
            customer_id=row["customer_id"],
            name=row["name"],
            email=row["email"],
            tattoo_type=row["tattoo_type"],
            size=row["size"],
            placement=row["placement"],
            description=row["description"],
            estimated_price=row["estimated_price"],
            preferred_date=parse_timestamp(row["preferred_date"]),
            deposit_paid=bool(row["deposit_paid"]),
            created_at=parse_timestamp(row["created_at"]),
            updated_at=parse_timestamp(row["updated_at"]),
        )
