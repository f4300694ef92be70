"""
Database Persistence Layer - Core Engine.

============================================================
PURPOSE
============================================================
SQLAlchemy engine, session and transaction management for the
AI risk score store.

Requirements:
- SQLAlchemy ORM, PostgreSQL in production, SQLite for tests
- Explicit transaction management
- Hard failures on persistence errors

============================================================
CONFIGURATION
============================================================
DATABASE_URL, or composed from:
DATABASE_HOST (localhost), DATABASE_PORT (5432),
DATABASE_USER (postgres), DATABASE_PASSWORD (postgres),
DATABASE_NAME (block-explorer)

============================================================
"""

import os
import logging
from typing import Generator, List, Optional
from contextlib import contextmanager

from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session, declarative_base
from sqlalchemy.exc import SQLAlchemyError, OperationalError
from sqlalchemy.pool import QueuePool, StaticPool

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

# =============================================================
# DECLARATIVE BASE
# =============================================================

Base = declarative_base()

# =============================================================
# DATABASE ENGINE
# =============================================================

_engine: Optional[Engine] = None
_SessionFactory: Optional[sessionmaker] = None

REQUIRED_TABLES = [
    "tx_ai_risk_scores",
]


def get_database_url() -> str:
    """Get database URL from environment."""
    url = os.getenv("DATABASE_URL")
    if url:
        return url

    host = os.getenv("DATABASE_HOST", "localhost")
    port = os.getenv("DATABASE_PORT", "5432")
    user = os.getenv("DATABASE_USER", "postgres")
    password = os.getenv("DATABASE_PASSWORD", "postgres")
    name = os.getenv("DATABASE_NAME", "block-explorer")
    return f"postgresql://{user}:{password}@{host}:{port}/{name}"


def create_database_engine(
    database_url: Optional[str] = None,
    pool_size: int = 10,
    max_overflow: int = 20,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    echo: bool = False,
) -> Engine:
    """
    Create SQLAlchemy engine.

    SQLite URLs get a single shared connection so in-memory
    databases survive across sessions and threads.

    Args:
        database_url: Explicit URL (defaults to get_database_url())
        pool_size: Number of connections to keep in pool
        max_overflow: Max connections beyond pool_size
        pool_timeout: Seconds to wait for available connection
        pool_recycle: Recycle connections after N seconds
        echo: Log SQL statements

    Returns:
        SQLAlchemy Engine
    """
    url = database_url or get_database_url()

    logger.info(f"Creating database engine for: {url.split('@')[-1]}")

    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
            echo=echo,
            future=True,
        )
    else:
        engine = create_engine(
            url,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            echo=echo,
            future=True,
        )

    @event.listens_for(engine, "connect")
    def on_connect(dbapi_conn, connection_record):
        logger.debug("Database connection established")

    return engine


def get_engine() -> Engine:
    """Get the database engine, creating if necessary."""
    global _engine
    if _engine is None:
        _engine = create_database_engine()
    return _engine


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


def get_session_factory() -> sessionmaker:
    """Get session factory, creating if necessary."""
    global _SessionFactory

    if _SessionFactory is None:
        _SessionFactory = create_session_factory(get_engine())

    return _SessionFactory


# =============================================================
# SESSION MANAGEMENT
# =============================================================


@contextmanager
def get_db_session(
    session_factory: Optional[sessionmaker] = None,
) -> Generator[Session, None, None]:
    """
    Context manager for database sessions with automatic cleanup.

    Usage:
        with get_db_session() as session:
            repository = TxAiRiskScoreRepository(session)
            record = repository.get_by_tx_hash(tx_hash)

    On exception:
        - Automatically rolls back
        - Re-raises the exception
    """
    session = (session_factory or get_session_factory())()
    try:
        yield session
    except Exception as e:
        logger.error(f"Database session error, rolling back: {e}")
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def transaction_scope(
    session_factory: Optional[sessionmaker] = None,
) -> Generator[Session, None, None]:
    """
    Context manager for explicit transaction boundaries.

    Commits only if no exception occurs.
    Rolls back on ANY exception and raises DatabasePersistenceError.

    Usage:
        with transaction_scope() as session:
            TxAiRiskScoreRepository(session).upsert_score(score)
            # Commits automatically at end
    """
    session = (session_factory or get_session_factory())()
    try:
        yield session
        session.commit()
        logger.debug("Database transaction committed successfully")
    except SQLAlchemyError as e:
        logger.error(f"Database transaction failed, rolling back: {e}")
        session.rollback()
        raise DatabasePersistenceError(f"Transaction failed: {e}") from e
    except Exception as e:
        logger.error(f"Transaction failed with unexpected error: {e}")
        session.rollback()
        raise DatabasePersistenceError(f"Transaction failed: {e}") from e
    finally:
        session.close()


# =============================================================
# DATABASE INITIALIZATION
# =============================================================


def verify_database_connection(engine: Optional[Engine] = None) -> bool:
    """
    Verify database connection is working.

    Raises:
        DatabaseConnectionError if connection fails
    """
    engine = engine or get_engine()

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
            logger.info("Database connection verified successfully")
            return True
    except OperationalError as e:
        logger.error(f"Database connection failed: {e}")
        raise DatabaseConnectionError(f"Cannot connect to database: {e}") from e


def create_all_tables(engine: Optional[Engine] = None) -> None:
    """
    Create all tables defined in ORM models.

    Raises:
        DatabaseInitializationError if table creation fails
    """
    engine = engine or get_engine()

    # Register models with Base
    from ai_risk_scoring import models  # noqa: F401

    try:
        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created successfully")
    except SQLAlchemyError as e:
        logger.error(f"Failed to create database tables: {e}")
        raise DatabaseInitializationError(f"Table creation failed: {e}") from e


def verify_required_tables(engine: Optional[Engine] = None) -> List[str]:
    """Return the required tables that are missing."""
    engine = engine or get_engine()
    existing = set(inspect(engine).get_table_names())

    missing = []
    for table in REQUIRED_TABLES:
        if table in existing:
            logger.info(f"  [OK] Table verified: {table}")
        else:
            logger.warning(f"  [!!] Table missing: {table}")
            missing.append(table)
    return missing


def initialize_database(engine: Optional[Engine] = None) -> None:
    """
    Full database initialization sequence.

    1. Verify connection
    2. Create tables if not exist
    3. Abort on any failure
    """
    engine = engine or get_engine()

    try:
        verify_database_connection(engine)
        create_all_tables(engine)
        missing = verify_required_tables(engine)
        if missing:
            raise DatabaseInitializationError(f"Missing tables after initialization: {missing}")
        logger.info("Database initialization complete")
    except Exception as e:
        logger.critical(f"DATABASE INITIALIZATION FAILED: {e}")
        raise


# =============================================================
# CUSTOM EXCEPTIONS
# =============================================================


class DatabasePersistenceError(Exception):
    """Raised when database persistence fails."""
    pass


class DatabaseConnectionError(DatabasePersistenceError):
    """Raised when database connection fails."""
    pass


class DatabaseInitializationError(DatabasePersistenceError):
    """Raised when database initialization fails."""
    pass


# =============================================================
# EXPORTS
# =============================================================

__all__ = [
    # Base
    "Base",
    # Engine & Session
    "get_database_url",
    "create_database_engine",
    "create_session_factory",
    "get_engine",
    "get_db_session",
    "get_session_factory",
    "transaction_scope",
    # Initialization
    "initialize_database",
    "verify_database_connection",
    "verify_required_tables",
    "create_all_tables",
    # Constants
    "REQUIRED_TABLES",
    # Exceptions
    "DatabasePersistenceError",
    "DatabaseConnectionError",
    "DatabaseInitializationError",
]
