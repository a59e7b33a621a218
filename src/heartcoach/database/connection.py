"""SQLite connection management for HeartCoach.

Connections are pooled per database file and opened in WAL mode so the
teacher dashboard can read while a student's conversation is being saved.
"""

import os
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from queue import Empty, Full, Queue

from dotenv import load_dotenv

from heartcoach.logutils import get_logger

load_dotenv()

logger = get_logger(__name__)

SCHEMA_PATH = Path(__file__).parent / "schema.sql"

# Pool configuration, read once at import
_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "5"))
_POOL_TIMEOUT = float(os.getenv("DB_POOL_TIMEOUT", "30.0"))


class ConnectionPool:
    """Thread-safe SQLite connection pool with WAL mode support."""

    def __init__(self, db_path: Path, pool_size: int = 5, timeout: float = 30.0):
        """Initialize the connection pool.

        Args:
            db_path: Path to the SQLite database file
            pool_size: Maximum number of idle connections kept
            timeout: Seconds to wait for an available connection
        """
        self._db_path = self._validate_path(db_path)
        self._pool_size = pool_size
        self._timeout = timeout
        self._pool: Queue[sqlite3.Connection] = Queue(maxsize=pool_size)

    @staticmethod
    def _validate_path(db_path: Path) -> Path:
        """Reject relative paths that climb out of the working directory."""
        if ".." in Path(db_path).parts:
            raise ValueError(f"Invalid database path: {db_path}")
        return Path(db_path).resolve()

    def _create_connection(self) -> sqlite3.Connection:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(
            str(self._db_path),
            check_same_thread=False,  # Dashboard fan-out threads share the pool
            timeout=self._timeout,
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("PRAGMA busy_timeout = 5000")
        return conn

    def get_connection(self) -> sqlite3.Connection:
        """Get a pooled connection, or open a new one when none is idle."""
        try:
            conn = self._pool.get_nowait()
        except Empty:
            logger.debug("Pool empty, creating new connection")
            return self._create_connection()

        try:
            conn.execute("SELECT 1")
            return conn
        except sqlite3.Error:
            logger.debug("Dead connection detected, creating new one")
            return self._create_connection()

    def return_connection(self, conn: sqlite3.Connection) -> None:
        """Return a connection to the pool, closing it if the pool is full."""
        try:
            self._pool.put_nowait(conn)
        except Full:
            conn.close()

    def close_all(self) -> None:
        """Close all idle connections in the pool."""
        while True:
            try:
                self._pool.get_nowait().close()
            except Empty:
                break


_pools: dict[Path, ConnectionPool] = {}
_pools_lock = threading.Lock()


def _get_pool(db_path: Path) -> ConnectionPool:
    path = ConnectionPool._validate_path(db_path)
    with _pools_lock:
        if path not in _pools:
            _pools[path] = ConnectionPool(path, _POOL_SIZE, _POOL_TIMEOUT)
        return _pools[path]


@contextmanager
def get_db(db_path: Path):
    """Context manager for a pooled connection that commits on success.

    Example:
        with get_db(path) as conn:
            rows = conn.execute("SELECT name FROM accounts").fetchall()
    """
    pool = _get_pool(db_path)
    conn = pool.get_connection()
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        pool.return_connection(conn)


def close_pools() -> None:
    """Close every pooled connection (used on shutdown and between tests)."""
    with _pools_lock:
        for pool in _pools.values():
            pool.close_all()
        _pools.clear()


def init_database(db_path: Path, force: bool = False) -> Path:
    """Create the schema, optionally deleting an existing database first.

    Args:
        db_path: Path to database file
        force: If True, delete existing database and recreate

    Returns:
        Path to the database file
    """
    path = Path(db_path)

    if force and path.exists():
        logger.info("Removing existing database", extra={"extra_data": {"path": str(path)}})
        close_pools()
        path.unlink()

    with get_db(path) as conn:
        conn.executescript(SCHEMA_PATH.read_text())

    logger.info("Database initialized", extra={"extra_data": {"path": str(path)}})
    return path


def verify_database(db_path: Path) -> dict:
    """Report which tables exist and how many rows each holds."""
    path = Path(db_path)

    if not path.exists():
        return {"exists": False, "tables": [], "error": "Database file not found"}

    with get_db(path) as conn:
        cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name")
        tables = [row["name"] for row in cursor.fetchall()]

        counts = {}
        for table in tables:
            # Names come from sqlite_master; still only quote plain identifiers
            if table.replace("_", "").isalnum():
                counts[table] = conn.execute(f"SELECT COUNT(*) AS cnt FROM [{table}]").fetchone()["cnt"]

    return {"exists": True, "path": str(path), "tables": tables, "row_counts": counts}
