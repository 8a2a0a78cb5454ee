import logging
import os
from typing import Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

from msgcache.config import get_settings
from msgcache.errors import DatabaseInitializationError

logger = logging.getLogger(__name__)

# Base class for SQLAlchemy models
Base = declarative_base()


def _apply_pragmas(dbapi_connection, connection_record) -> None:
    """Enable foreign keys and WAL journaling on every new connection."""
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.execute("PRAGMA journal_mode = WAL")
    finally:
        cursor.close()


def _run_bootstrap_script(engine: Engine, init_sql_path: str) -> None:
    """
    Execute the schema bootstrap script inside a single transaction.

    SQLite DDL is transactional, so a failure part way through leaves no
    tables behind.
    """
    logger.debug(f"Reading bootstrap script: {init_sql_path}")
    with open(init_sql_path, encoding="utf-8") as f:
        script = f.read()

    raw = engine.raw_connection()
    try:
        conn = raw.driver_connection
        try:
            conn.executescript(f"BEGIN;\n{script}\n;\nCOMMIT;")
        except Exception:
            if conn.in_transaction:
                conn.rollback()
            raise
    finally:
        raw.close()
    logger.info("Bootstrap schema applied")


def _remove_database_files(db_path: str) -> None:
    for suffix in ("", "-wal", "-shm"):
        path = db_path + suffix
        if os.path.exists(path):
            os.remove(path)


def init_database(
    db_path: Optional[str] = None,
    init_sql_path: Optional[str] = None,
) -> Engine:
    """
    Open (or create) the SQLite database and return its engine.

    The engine holds exactly one connection for the process lifetime. The
    bootstrap script only runs when the database file did not exist before
    this call.

    Raises:
        DatabaseInitializationError: on any I/O or SQL failure
    """
    settings = get_settings()
    db_path = db_path or settings.MESSAGE_SQLITE_FILE
    init_sql_path = init_sql_path or settings.MESSAGE_INIT_SQL_FILE

    logger.info("Initializing database...")
    logger.debug(f"Database file: {db_path}")

    engine = None
    is_new = False
    try:
        db_dir = os.path.dirname(os.path.abspath(db_path))
        os.makedirs(db_dir, exist_ok=True)

        # Must be checked before connecting, connecting creates the file
        is_new = not os.path.exists(db_path)

        # check_same_thread=False: the single connection is shared with
        # FastAPI's threadpool and the TestClient portal thread.
        # timeout: lock waits are left to the retry policy, not the driver
        engine = create_engine(
            f"sqlite:///{db_path}",
            connect_args={
                "check_same_thread": False,
                "timeout": settings.MESSAGE_SQLITE_BUSY_TIMEOUT_SECONDS,
            },
            poolclass=StaticPool,
            echo=False,
        )
        event.listen(engine, "connect", _apply_pragmas)

        if is_new:
            logger.info("Database file not found, applying bootstrap schema")
            _run_bootstrap_script(engine, init_sql_path)
        else:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))

        logger.info("Database initialized successfully")
        return engine

    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        if engine is not None:
            engine.dispose()
        if is_new:
            _remove_database_files(db_path)
        raise DatabaseInitializationError(f"Failed to initialize database: {e}") from e


def check_db_health(engine: Engine) -> bool:
    """
    Check if the database is reachable and schema is applied.

    Returns:
        True if DB is healthy and the messages table exists, False otherwise.
    """
    logger.debug("Checking database health...")
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            logger.debug("Database connectivity OK")

            result = conn.execute(text(
                "SELECT COUNT(*) FROM sqlite_master WHERE type='table' AND name='messages'"
            )).scalar()
            if result == 0:
                logger.error("Database schema not applied: 'messages' table not found")
                return False
        logger.debug("Database health check passed")
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False
