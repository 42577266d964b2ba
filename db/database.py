import sqlite3
from contextlib import contextmanager
from pathlib import Path

import structlog

from config import get_config_value, load_config
from .schema import SCHEMA_SQL, INDEXES_SQL, SCHEMA_VERSION

logger = structlog.get_logger(__name__)

def get_db_path() -> Path:
    """Resolve the database file from config (KOTOBA_DB_PATH overrides)."""
    return Path(get_config_value("database", "path"))

def init_db() -> None:
    """Initialize the database by creating tables and indexes if they don't exist."""
    db_path = get_db_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    with get_conn() as conn:
        conn.executescript(SCHEMA_SQL)
        conn.executescript(INDEXES_SQL)
        ensure_schema_version(conn)
        conn.commit()
    logger.info("database_initialized", path=str(db_path), schema_version=SCHEMA_VERSION)

def get_schema_version(conn: sqlite3.Connection) -> int:
    """Read the SQLite schema version from PRAGMA user_version."""
    cursor = conn.cursor()
    cursor.execute("PRAGMA user_version")
    row = cursor.fetchone()
    return int(row[0]) if row else 0

def set_schema_version(conn: sqlite3.Connection, version: int) -> None:
    """Set the SQLite schema version via PRAGMA user_version."""
    conn.execute(f"PRAGMA user_version = {int(version)}")

def ensure_schema_version(conn: sqlite3.Connection) -> None:
    """Ensure the current schema version is written to the database."""
    current = get_schema_version(conn)
    if current != SCHEMA_VERSION:
        set_schema_version(conn, SCHEMA_VERSION)

@contextmanager
def get_conn():
    """Context manager for SQLite connection, using row_factory for dict-like rows."""
    settings = load_config()["database"]
    conn = sqlite3.connect(
        Path(settings["path"]), timeout=float(settings["busy_timeout"]), check_same_thread=False
    )
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        yield conn
    finally:
        conn.close()

def get_db():
    """FastAPI dependency that yields a DB connection and closes it afterwards."""
    with get_conn() as conn:
        yield conn
