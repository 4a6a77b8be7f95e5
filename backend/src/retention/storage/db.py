"""Database connection and session management."""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from retention.errors import StoreNotConfiguredError
from retention.logging_config import get_logger
from retention.storage.models import Base

logger = get_logger(__name__)


class Database:
    """Database connection manager."""

    def __init__(self, database_url: str, echo: bool = False):
        """Initialize database connection.

        Args:
            database_url: SQLAlchemy database URL
            echo: Log emitted SQL
        """
        self.database_url = database_url
        connect_args = {}
        if database_url.startswith("sqlite"):
            # Requests are served from several threads
            connect_args = {"check_same_thread": False, "timeout": 30}

        self.engine = create_engine(
            self.database_url,
            echo=echo,
            pool_pre_ping=True,
            connect_args=connect_args,
        )
        self.SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=self.engine,
        )
        logger.info("database_initialized", url=self.engine.url.render_as_string(hide_password=True))

    def create_tables(self) -> None:
        """Create all tables in the database."""
        Base.metadata.create_all(bind=self.engine)
        logger.info("tables_created")

    def drop_tables(self) -> None:
        """Drop all tables from the database."""
        Base.metadata.drop_all(bind=self.engine)
        logger.warning("tables_dropped")

    def dispose(self) -> None:
        self.engine.dispose()

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """Provide a transactional scope for database operations.

        Yields:
            Database session
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


# Process-wide handle; None until init_db() runs.
_database: Database | None = None


def init_db(database_url: str, echo: bool = False, create_tables: bool = True) -> Database:
    """Initialise the process-wide database handle.

    Args:
        database_url: SQLAlchemy database URL
        echo: Log emitted SQL
        create_tables: Create missing tables after connecting

    Returns:
        The configured database
    """
    global _database
    if _database is not None:
        _database.dispose()
    _database = Database(database_url, echo=echo)
    if create_tables:
        _database.create_tables()
    return _database


def get_database() -> Database:
    """Return the configured database.

    Raises:
        StoreNotConfiguredError: If init_db() has not been called
    """
    if _database is None:
        raise StoreNotConfiguredError("Database not configured")
    return _database


def close_db() -> None:
    """Dispose of the process-wide handle and return to the unconfigured state."""
    global _database
    if _database is not None:
        _database.dispose()
        logger.info("database_closed")
    _database = None
