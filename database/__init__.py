"""
Database Package Initialization.

============================================================
DATABASE PERSISTENCE LAYER
============================================================

Engine, session and transaction management for the AI risk
score store. ORM entities live next to the code that owns them
(ai_risk_scoring.models) and register on the shared Base.

REQUIRED:
- Every failure raises hard exceptions
- All transactions are explicit with commit/rollback

============================================================
"""

from .engine import (
    # Declarative base
    Base,

    # Engine creation
    get_database_url,
    create_database_engine,
    get_engine,

    # Session management
    create_session_factory,
    get_session_factory,
    get_db_session,
    transaction_scope,

    # Database initialization
    initialize_database,
    verify_database_connection,
    verify_required_tables,
    create_all_tables,
    REQUIRED_TABLES,

    # Exceptions
    DatabasePersistenceError,
    DatabaseConnectionError,
    DatabaseInitializationError,
)


__all__ = [
    "Base",
    "get_database_url",
    "create_database_engine",
    "get_engine",
    "create_session_factory",
    "get_session_factory",
    "get_db_session",
    "transaction_scope",
    "initialize_database",
    "verify_database_connection",
    "verify_required_tables",
    "create_all_tables",
    "REQUIRED_TABLES",
    "DatabasePersistenceError",
    "DatabaseConnectionError",
    "DatabaseInitializationError",
]
