import logging
import sqlite3
import queue
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from inkbook.config import DB_POOL_SIZE, DB_POOL_TIMEOUT_SEC
from inkbook.errors import ConnectionPoolExhausted, DatabaseError

_logger = logging.getLogger(__name__)


class ConnectionPool:
    """Bounded pool of SQLite connections shared by the repositories.

    Connections are created lazily up to ``pool_size``; ``connection()``
    commits on success, rolls back on error, and reports SQLite failures as
    :class:`DatabaseError`.
    """

    def __init__(self, db_path: Path, pool_size: int = DB_POOL_SIZE, timeout: float = DB_POOL_TIMEOUT_SEC):
        self._db_path = Path(db_path)
        self._pool_size = pool_size
        self._timeout = timeout
        self._pool: queue.Queue = queue.Queue(maxsize=pool_size)
        self._created = 0
        self._lock = threading.Lock()

    @property
    def db_path(self) -> Path:
        return self._db_path

    @property
    def created(self) -> int:
        return self._created

    def _create_connection(self) -> sqlite3.Connection:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("PRAGMA journal_mode = WAL")
        return conn

    def _acquire(self) -> sqlite3.Connection:
        try:
            return self._pool.get_nowait()
        except queue.Empty:
            pass

        with self._lock:
            if self._created < self._pool_size:
                self._created += 1
                try:
                    return self._create_connection()
                except sqlite3.Error as exc:
                    self._created -= 1
                    raise DatabaseError(f"Cannot open {self._db_path}: {exc}") from exc

        try:
            return self._pool.get(timeout=self._timeout)
        except queue.Empty:
            raise ConnectionPoolExhausted(
                f"No connections available within {self._timeout}s "
                f"(pool_size={self._pool_size})"
            )

    def _release(self, conn: sqlite3.Connection):
        try:
            self._pool.put_nowait(conn)
        except queue.Full:
            conn.close()

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = self._acquire()
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            _logger.error("Database operation failed on %s: %s", self._db_path, exc)
            raise DatabaseError(str(exc)) from exc
        except Exception:
            conn.rollback()
            raise
        finally:
            self._release(conn)

    def close_all(self):
        while not self._pool.empty():
            try:
                conn = self._pool.get_nowait()
                conn.close()
            except queue.Empty:
                break
        with self._lock:
            self._created = 0
