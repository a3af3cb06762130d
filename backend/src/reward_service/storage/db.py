"""Database connection and session management."""

from contextlib import contextmanager
from typing import Any, Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from reward_service.errors import StorageTimeoutError
from reward_service.logging_config import get_logger
from reward_service.settings import settings
from reward_service.storage.models import Base

logger = get_logger(__name__)


def _engine_options(database_url: str, timeout_seconds: float) -> dict[str, Any]:
    """Build backend-specific engine options that bound every call.

    SQLite waits up to the timeout on a locked database; PostgreSQL
    aborts any statement running longer than it.
    """
    url = make_url(database_url)
    options: dict[str, Any] = {}

    if url.get_backend_name() == "sqlite":
        options["connect_args"] = {
            "timeout": timeout_seconds,
            "check_same_thread": False,
        }
        if url.database in (None, "", ":memory:"):
            options["poolclass"] = StaticPool
    elif url.get_backend_name() == "postgresql":
        options["connect_args"] = {
            "connect_timeout": max(1, int(timeout_seconds)),
            "options": f"-c statement_timeout={int(timeout_seconds * 1000)}",
        }

    return options


# PostgreSQL SQLSTATEs for cancelled statements, lock waits, deadlocks and
# serialization failures
_TRANSIENT_PGCODES = {"57014", "55P03", "40P01", "40001"}
_TRANSIENT_MESSAGES = (
    "database is locked",  # sqlite busy timeout
    "database table is locked",
    "timeout expired",  # libpq connect_timeout
    "server closed the connection",
)


def is_transient(error: OperationalError) -> bool:
    """Whether a driver error is a timeout, lock wait or dropped connection.

    Permanent faults such as a missing table are not transient.
    """
    if error.connection_invalidated:
        return True
    if getattr(error.orig, "pgcode", None) in _TRANSIENT_PGCODES:
        return True
    message = str(error.orig).lower()
    return any(text in message for text in _TRANSIENT_MESSAGES)


class Database:
    """Database connection manager."""

    def __init__(
        self,
        database_url: str | None = None,
        timeout_seconds: float | None = None,
        echo: bool | None = None,
    ):
        """Initialize database connection.

        Args:
            database_url: Database URL (defaults to settings)
            timeout_seconds: Per-call timeout (defaults to settings)
            echo: Log SQL statements (defaults to True in development)
        """
        self.database_url = database_url or settings.database_url
        self.timeout_seconds = timeout_seconds or settings.db_timeout_seconds
        self.engine = create_engine(
            self.database_url,
            echo=settings.env == "development" if echo is None else echo,
            pool_pre_ping=True,
            **_engine_options(self.database_url, self.timeout_seconds),
        )
        self.SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=self.engine,
        )
        logger.info("database_initialized", url=make_url(self.database_url).render_as_string(hide_password=True))

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

        Commits when the block exits normally and rolls back on any
        exception. Lock waits, statement timeouts and dropped connections
        surface as StorageTimeoutError; other driver errors propagate.

        Yields:
            Database session
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except OperationalError as e:
            session.rollback()
            if not is_transient(e):
                logger.error("storage_operation_failed", error=str(e.orig))
                raise
            logger.warning("storage_operation_timed_out", error=str(e.orig))
            raise StorageTimeoutError() from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


# Global database instance
db = Database()
