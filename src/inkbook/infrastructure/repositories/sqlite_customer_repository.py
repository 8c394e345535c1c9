import logging
import sqlite3
from typing import Any, List, Mapping, Optional, Tuple

from inkbook.domain.models import Customer, CustomerStatus, ListQuery
from inkbook.domain.models.core import format_timestamp, new_id, parse_timestamp, utcnow
from inkbook.domain.repositories import ICustomerRepository
from inkbook.errors import CustomerNotFoundError
from inkbook.infrastructure.db.pool import ConnectionPool
from inkbook.listcore.types import Page

from .keyset import decode_cursor, encode_cursor, keyset_clause, like_pattern, order_clause, split_page

_logger = logging.getLogger(__name__)

_NAME_EXPR = "lower(first_name || ' ' || last_name)"
_DATE_EXPR = "created_at"
_COLUMNS = (
    "first_name", "last_name", "email", "phone", "address", "city",
    "state", "postal_code", "notes", "status",
)


class SQLiteCustomerRepository(ICustomerRepository):
    def __init__(self, pool: ConnectionPool):
        self._pool = pool

    def get(self, id: str) -> Optional[Customer]:
        with self._pool.connection() as conn:
            row = conn.execute("SELECT * FROM customers WHERE id = ?", (id,)).fetchone()
            if row:
                return self._map_row_to_customer(row)
            return None

    def find_page(self, query: ListQuery, cursor: Optional[str], limit: int) -> Page:
        sort_expr = _NAME_EXPR if query.sort.by_name else _DATE_EXPR
        where, params = self._filters(query)
        if cursor is not None:
            clause, extra = keyset_clause(sort_expr, query.sort.descending, decode_cursor(cursor))
            where.append(clause)
            params.extend(extra)

        sql = f"SELECT *, {sort_expr} AS sort_value FROM customers"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += f" {order_clause(sort_expr, query.sort.descending)} LIMIT ?"
        params.append(limit + 1)

        with self._pool.connection() as conn:
            fetched = conn.execute(sql, params).fetchall()
        rows, has_more = split_page(fetched, limit)
        next_cursor = encode_cursor(rows[-1]["sort_value"], rows[-1]["id"]) if has_more else None
        _logger.debug("customers page: %d rows (cursor=%s, has_more=%s)", len(rows), cursor, has_more)
        return Page(
            rows=[self._map_row_to_customer(row).to_row() for row in rows],
            next_cursor=next_cursor,
            has_more=has_more,
        )

    def count(self, query: ListQuery) -> int:
        where, params = self._filters(query)
        sql = "SELECT COUNT(*) FROM customers"
        if where:
            sql += " WHERE " + " AND ".join(where)
        with self._pool.connection() as conn:
            return conn.execute(sql, params).fetchone()[0]

    def create(self, values: Mapping[str, Any]) -> Customer:
        now = utcnow()
        customer = Customer(
            id=values.get("id") or new_id(),
            first_name=values["first_name"],
            last_name=values["last_name"],
            email=values["email"],
            phone=values.get("phone"),
            address=values.get("address"),
            city=values.get("city"),
            state=values.get("state"),
            postal_code=values.get("postal_code"),
            notes=values.get("notes"),
            status=CustomerStatus(values.get("status") or CustomerStatus.NEW),
            created_at=now,
            updated_at=now,
        )
        row = customer.to_row()
        columns = ("id",) + _COLUMNS + ("created_at", "updated_at")
        placeholders = ", ".join("?" for _ in columns)
        with self._pool.connection() as conn:
            conn.execute(
                f"INSERT INTO customers ({', '.join(columns)}) VALUES ({placeholders})",
                tuple(row[column] for column in columns),
            )
        _logger.info("Created customer %s", customer.id)
        return customer

    def update(self, id: str, values: Mapping[str, Any]) -> Customer:
        changes = {key: values[key] for key in _COLUMNS if key in values}
        if "status" in changes:
            changes["status"] = CustomerStatus(changes["status"]).value
        changes["updated_at"] = format_timestamp(utcnow())
        assignments = ", ".join(f"{key} = ?" for key in changes)
        with self._pool.connection() as conn:
            cursor = conn.execute(
                f"UPDATE customers SET {assignments} WHERE id = ?",
                tuple(changes.values()) + (id,),
            )
            if cursor.rowcount == 0:
                raise CustomerNotFoundError(f"Customer {id!r} not found")
            row = conn.execute("SELECT * FROM customers WHERE id = ?", (id,)).fetchone()
        return self._map_row_to_customer(row)

    def delete(self, id: str) -> None:
        with self._pool.connection() as conn:
            cursor = conn.execute("DELETE FROM customers WHERE id = ?", (id,))
            if cursor.rowcount == 0:
                raise CustomerNotFoundError(f"Customer {id!r} not found")
        _logger.info("Deleted customer %s", id)

    def _filters(self, query: ListQuery) -> Tuple[List[str], List[Any]]:
        where: List[str] = []
        params: List[Any] = []
        if query.status:
            where.append("status = ?")
            params.append(query.status)
        if query.search:
            pattern = like_pattern(query.search)
            where.append(
                "(lower(first_name || ' ' || last_name) LIKE ? ESCAPE '\\'"
                " OR lower(email) LIKE ? ESCAPE '\\'"
                " OR lower(coalesce(phone, '')) LIKE ? ESCAPE '\\')"
            )
            params.extend([pattern, pattern, pattern])
        return where, params

    def _map_row_to_customer(self, row: sqlite3.Row) -> Customer:
        return Customer(
            id=row["id"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            email=row["email"],
            phone=row["phone"],
            address=row["address"],
            city=row["city"],
            state=row["state"],
            postal_code=row["postal_code"],
            notes=row["notes"],
            status=CustomerStatus(row["status"]),
            created_at=parse_timestamp(row["created_at"]),
            updated_at=parse_timestamp(row["updated_at"]),
        )
