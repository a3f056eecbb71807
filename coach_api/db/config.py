"""Database engine setup for the SQL-backed message store."""
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine
import logging

logger = logging.getLogger(__name__)


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create a SQLModel engine for ``database_url``.

    SQLite engines are shared across threads (store calls run in worker
    threads) and in-memory SQLite keeps a single connection so every session
    sees the same database.
    """
    if database_url.startswith("postgresql"):
        logger.info("[DB CONFIG] Using PostgreSQL database")
    else:
        logger.info(f"[DB CONFIG] Using database: {database_url}")

    if not database_url.startswith("sqlite"):
        return create_engine(database_url, echo=echo, pool_pre_ping=True)

    kwargs = {"connect_args": {"check_same_thread": False}}
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    engine = create_engine(database_url, echo=echo, **kwargs)

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine

