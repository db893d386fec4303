"""
Database utilities and connection management.

WHAT: SQLite/SQLAlchemy setup for durable session snapshots
WHY: Sessions must survive cache eviction and process restarts
HOW: SQLAlchemy 2 sync engine (WAL mode on SQLite), scoped session contextmanager
"""

from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from ..utils.logger import get_logger

logger = get_logger(__name__)

# Base for models
Base = declarative_base()


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create an engine, preparing the SQLite data directory when needed.

    Args:
        database_url: SQLAlchemy URL
        echo: Log SQL statements

    Returns:
        Engine instance
    """
    is_sqlite = database_url.startswith("sqlite")
    if database_url.startswith("sqlite:///") and ":memory:" not in database_url:
        data_dir = Path(database_url.replace("sqlite:///", "")).parent
        data_dir.mkdir(parents=True, exist_ok=True)

    engine = create_engine(
        database_url,
        connect_args={"check_same_thread": False} if is_sqlite else {},
        echo=echo,
    )

    if is_sqlite:
        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_conn, connection_record):
            """Enable WAL mode for better concurrency."""
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

    return engine


class Database:
    """Engine plus session factory for one database URL."""

    def __init__(self, database_url: str, echo: bool = False):
        self.url = database_url
        self.engine = create_db_engine(database_url, echo=echo)
        self.SessionLocal = sessionmaker(
            bind=self.engine,
            expire_on_commit=False,
            autoflush=False,
        )

    @contextmanager
    def get_db(self):
        """
        Context manager for database session.

        Usage:
            with database.get_db() as db:
                # use db session
                pass

        Yields:
            Session: SQLAlchemy session
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def ping_database(self) -> dict:
        """
        Check database connectivity.

        Returns:
            Dict with status and info
        """
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1")).fetchone()
            return {"available": True, "url": self.url, "error": None}
        except Exception as e:
            logger.error(f"Database ping failed: {e}")
            return {"available": False, "url": self.url, "error": str(e)}

    def init_db(self):
        """Create all tables."""
        # Import models so they register on Base.metadata
        from . import models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)
        logger.info(f"Database initialized ({self.url})")

    def close_db(self):
        """Close database connections."""
        self.engine.dispose()
        logger.info("Database connections closed")
