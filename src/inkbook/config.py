"""Default configuration values for inkbook."""

from __future__ import annotations

from typing import Final

APP_NAME: Final[str] = "inkbook"

# Environment variable that points the settings manager at a specific
# settings.json instead of the per-user default location.
SETTINGS_PATH_ENV: Final[str] = "INKBOOK_SETTINGS"
DATABASE_PATH_ENV: Final[str] = "INKBOOK_DB"
DEFAULT_DATABASE_NAME: Final[str] = "inkbook.db"

# ---------------------------------------------------------------------------
# List core defaults (all overridable through settings.json)
# ---------------------------------------------------------------------------

# Admin booking list requests 20 rows per page.
DEFAULT_PAGE_SIZE: Final[int] = 20
MAX_PAGE_SIZE: Final[int] = 500
# Rows fetched beyond the visible range to hide request latency.
DEFAULT_OVERSCAN: Final[int] = 5
# Pending mutations older than this are rolled back and reported.
DEFAULT_MUTATION_TIMEOUT_SEC: Final[float] = 30.0
# Settled outcomes and failures kept per list for inspection; oldest go first.
MAX_SETTLED_MUTATIONS: Final[int] = 256
DEFAULT_CREATE_POSITION: Final[str] = "front"
DEFAULT_CONFLICT_POLICY: Final[str] = "client_wins"

# Names of the list instances the admin dashboard keeps alive.
CUSTOMERS_LIST: Final[str] = "customers"
BOOKINGS_LIST: Final[str] = "bookings"
KNOWN_LISTS: Final[tuple[str, ...]] = (CUSTOMERS_LIST, BOOKINGS_LIST)

# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

DB_POOL_SIZE: Final[int] = 5
DB_POOL_TIMEOUT_SEC: Final[float] = 30.0
