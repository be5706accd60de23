"""
Database Manager - Owns the async engine and the transaction boundary.
"""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.engine import make_url
from sqlalchemy.pool import NullPool
from sqlalchemy import event
from contextlib import asynccontextmanager
import logging

from .models import Base

logger = logging.getLogger(__name__)


class DatabaseManager:
    """
    Manages the store connection.

    One instance is constructed at startup and handed to every manager
    and route; nothing in the package reaches for a module-level engine.

    Usage:
        db = DatabaseManager("sqlite+aiosqlite:///./keepwise.db")
        await db.init_db()
        async with db.get_session() as session:
            ...
    """

    def __init__(self, db_url: str, echo: bool = False):
        self.db_url = db_url
        self.echo = echo
        self._initialized = False
        self._engine = None
        self._session_factory = None

    @property
    def is_sqlite(self) -> bool:
        return make_url(self.db_url).get_backend_name() == "sqlite"

    def _get_engine(self):
        """Lazy engine creation - ensures it's created in the right event loop context."""
        if self._engine is None:
            if self.is_sqlite:
                self._engine = create_async_engine(
                    self.db_url,
                    echo=self.echo,
                    connect_args={"check_same_thread": False},
                    # Each operation gets a fresh connection
                    poolclass=NullPool,
                )

                @event.listens_for(self._engine.sync_engine, "connect")
                def set_sqlite_pragmas(dbapi_conn, connection_record):
                    cursor = dbapi_conn.cursor()
                    cursor.execute("PRAGMA journal_mode=WAL")
                    cursor.execute("PRAGMA synchronous=NORMAL")
                    cursor.execute("PRAGMA busy_timeout=30000")
                    # Required for ON DELETE CASCADE
                    cursor.execute("PRAGMA foreign_keys=ON")
                    cursor.close()
                    # Take BEGIN away from the driver so SAVEPOINTs nest
                    # inside the session's transaction
                    dbapi_conn.isolation_level = None

                @event.listens_for(self._engine.sync_engine, "begin")
                def begin_sqlite_transaction(conn):
                    conn.exec_driver_sql("BEGIN")
            else:
                self._engine = create_async_engine(
                    self.db_url,
                    echo=self.echo,
                    pool_pre_ping=True,
                )

            self._session_factory = async_sessionmaker(
                bind=self._engine,
                expire_on_commit=False,
                class_=AsyncSession
            )
        return self._engine

    @property
    def engine(self):
        return self._get_engine()

    @property
    def SessionLocal(self):
        self._get_engine()  # Ensure engine is created
        return self._session_factory

    async def init_db(self):
        """Create tables if they do not exist yet."""
        if self._initialized:
            return

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        self._initialized = True
        logger.info(f"Database initialized at {self._safe_url()}")

    def _safe_url(self) -> str:
        return make_url(self.db_url).render_as_string(hide_password=True)

    @asynccontextmanager
    async def get_session(self):
        """Provide a transactional scope around a series of operations."""
        session = self.SessionLocal()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def close(self):
        """Dispose of the engine."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            self._initialized = False


def create_database(settings) -> DatabaseManager:
    """Build the store handle described by the given settings."""
    return DatabaseManager(settings.get_database_url())
