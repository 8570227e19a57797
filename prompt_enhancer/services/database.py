import os
import logging
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool
from prompt_enhancer.models.database_models import Base

logger = logging.getLogger(__name__)

def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; every stored value is UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)

def _use_immediate_transactions(engine):
    """
    Make every SQLite transaction take the write lock at BEGIN.
    Concurrent writers then queue on the busy timeout instead of failing with "database is locked".
    """
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

class DatabaseService:
    """
    Service for managing database connections for the enhancement stores.
    Handles engine creation, session management, and table creation.
    """

    def __init__(self, database_url: Optional[str] = None):
        self.database_url = database_url
        self.engine = None
        self.SessionLocal = None
        self._initialized = False

    def _get_database_url(self) -> str:
        """Returns the configured URL, or builds a PostgreSQL URL from environment variables."""
        if self.database_url:
            return self.database_url

        host = os.getenv("POSTGRES_HOST")
        port = os.getenv("POSTGRES_PORT", "5432")
        database = os.getenv("POSTGRES_DATABASE")
        user = os.getenv("POSTGRES_USER")
        password = os.getenv("POSTGRES_PASSWORD")

        if not all([host, database, user, password]):
            missing = [var for var, val in {
                "POSTGRES_HOST": host,
                "POSTGRES_DATABASE": database,
                "POSTGRES_USER": user,
                "POSTGRES_PASSWORD": password
            }.items() if not val]
            raise ValueError(f"Missing required PostgreSQL environment variables: {', '.join(missing)}")

        return f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{database}"

    @property
    def dialect_name(self) -> str:
        if self.engine is None:
            raise RuntimeError("Database service is not initialized")
        return self.engine.dialect.name

    async def initialize(self):
        """Initialize database connection and create tables if they don't exist."""
        if self._initialized:
            return

        try:
            database_url = self._get_database_url()
            logger.info("Initializing database connection...")

            self.engine = create_async_engine(
                database_url,
                poolclass=NullPool,  # Use NullPool for serverless environments
                echo=False,
            )

            if self.engine.dialect.name == "sqlite":
                _use_immediate_transactions(self.engine)

            self.SessionLocal = async_sessionmaker(
                bind=self.engine,
                class_=AsyncSession,
                expire_on_commit=False
            )

            logger.info("Database connection established successfully")

            await self.create_tables()

            self._initialized = True
            logger.info("Database service initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize database: {str(e)}")
            raise

    async def create_tables(self):
        """Create database tables if they don't exist."""
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("Database tables created/verified successfully")
        except Exception as e:
            logger.error(f"Failed to create database tables: {str(e)}")
            raise

    async def get_session(self) -> AsyncSession:
        """Get a database session."""
        if not self._initialized:
            await self.initialize()

        return self.SessionLocal()

    async def close(self):
        """Close database connections."""
        if self.engine:
            await self.engine.dispose()
            self._initialized = False
            logger.info("Database connections closed")
