"""DDL for the studio admin tables."""

from __future__ import annotations

import logging

from .pool import ConnectionPool

_logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

_DDL = (
    """
    CREATE TABLE IF NOT EXISTS customers (
        id TEXT PRIMARY KEY,
        first_name TEXT NOT NULL,
        last_name TEXT NOT NULL,
        email TEXT NOT NULL UNIQUE,
        phone TEXT,
        address TEXT,
        city TEXT,
        state TEXT,
        postal_code TEXT,
        notes TEXT,
        status TEXT NOT NULL DEFAULT 'new',
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS bookings (
        id TEXT PRIMARY KEY,
        customer_id TEXT REFERENCES customers(id) ON DELETE SET NULL,
        name TEXT,
        email TEXT,
        tattoo_type TEXT,
        size TEXT,
        placement TEXT,
        description TEXT,
        estimated_price REAL,
        preferred_date TEXT,
        status TEXT NOT NULL DEFAULT 'pending',
        deposit_paid INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_customers_created ON customers(created_at, id)",
    "CREATE INDEX IF NOT EXISTS idx_customers_name ON customers(last_name, first_name, id)",
    "CREATE INDEX IF NOT EXISTS idx_bookings_created ON bookings(created_at, id)",
    "CREATE INDEX IF NOT EXISTS idx_bookings_status ON bookings(status)",
)


def initialise_schema(pool: ConnectionPool) -> None:
    """Create tables and indices if they do not exist yet."""
    with pool.connection() as conn:
        for statement in _DDL:
            conn.execute(statement)
        conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
    _logger.info("Schema v%d ready at %s", SCHEMA_VERSION, pool.db_path)
