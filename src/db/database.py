"""Engine and session management for the relational store."""

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from src.utils.config import DatabaseConfig
from src.utils.logger import get_logger

from .models import Base

logger = get_logger(__name__)


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:")


class Database:
    """Owns the SQLAlchemy engine and hands out transactional sessions.

    In-memory SQLite URLs share a single connection so that every
    session (and every worker thread) sees the same tables.

    Args:
        config: Database configuration with the connection URL.
    """

    def __init__(self, config: DatabaseConfig) -> None:
        self.config = config
        kwargs: dict = {"echo": config.echo}
        if config.url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if _is_memory_sqlite(config.url):
                kwargs["poolclass"] = StaticPool
        self.engine = create_engine(config.url, **kwargs)
        self._session_factory = sessionmaker(
            bind=self.engine, expire_on_commit=False
        )
        logger.info("Database engine created for %s", self.engine.url.drivername)

    def create_all(self) -> None:
        """Create any missing tables."""
        Base.metadata.create_all(self.engine)

    def drop_all(self) -> None:
        """Drop all tables."""
        Base.metadata.drop_all(self.engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Yield a session that commits on success and rolls back on error."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def ping(self) -> bool:
        """Return whether the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as exc:
            logger.error("Database ping failed: %s", exc)
            return False
