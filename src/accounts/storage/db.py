"""Database connection and session management."""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from accounts.errors import StoreError
from accounts.logging_config import get_logger
from accounts.settings import Settings
from accounts.storage.models import Base

logger = get_logger(__name__)


def _engine_options(database_url: str, settings: Settings) -> dict:
    """Pool options for the given backend."""
    if database_url.startswith("sqlite"):
        options: dict = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection so every session sees the same in-memory DB
            options["poolclass"] = StaticPool
        return options

    return {
        "pool_size": settings.db_pool_size,
        "max_overflow": 0,
        "pool_timeout": settings.db_pool_timeout,
        "pool_recycle": settings.db_pool_recycle,
    }


class Database:
    """Database connection manager."""

    def __init__(self, settings: Settings, database_url: str | None = None):
        """Initialize database connection.

        Args:
            settings: Application settings
            database_url: Database URL (defaults to settings)
        """
        self.settings = settings
        self.database_url = database_url or settings.database_url
        self.engine = create_engine(
            self.database_url,
            echo=False,
            pool_pre_ping=True,
            **_engine_options(self.database_url, settings),
        )
        if self.database_url.startswith("sqlite"):
            # SQLite ignores ON DELETE clauses unless foreign keys are switched on
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)

        self.SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=self.engine,
        )
        logger.info("database_initialized", url=self.engine.url.render_as_string(hide_password=True))

    def wait_until_ready(self) -> None:
        """Block until the database accepts connections.

        Raises:
            StoreError: If it is still unreachable after the configured attempts
        """
        retryer = Retrying(
            stop=stop_after_attempt(self.settings.db_connect_attempts),
            wait=wait_fixed(self.settings.db_connect_retry_seconds),
            retry=retry_if_exception_type(OperationalError),
            before_sleep=lambda state: logger.warning(
                "database_connect_failed",
                attempt=state.attempt_number,
                error=str(state.outcome.exception()),
            ),
            reraise=True,
        )
        try:
            for attempt in retryer:
                with attempt:
                    with self.engine.connect() as connection:
                        connection.execute(text("SELECT 1"))
        except OperationalError as e:
            logger.error("database_unreachable", attempts=self.settings.db_connect_attempts)
            raise StoreError("Database unreachable") from e

        logger.info("database_connected")

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


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()
