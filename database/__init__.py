"""
Database Package Initialization.

============================================================
ASYNC DATABASE PERSISTENCE LAYER
============================================================

Engine, session and table-initialization plumbing for the
risk assessment store. ORM models live in
risk_assessment.models; this package only owns the base class
and connection lifecycle.

============================================================
"""

from .engine import (
    # Declarative base
    Base,

    # Engine creation
    DEFAULT_DATABASE_URL,
    get_database_url,
    create_database_engine,

    # Session management
    create_session_factory,

    # Lifecycle
    verify_database_connection,
    initialize_database,

    # Exceptions
    DatabasePersistenceError,
    DatabaseConnectionError,
    DatabaseInitializationError,
)


__version__ = "1.0.0"


__all__ = [
    "__version__",
    "Base",
    "DEFAULT_DATABASE_URL",
    "get_database_url",
    "create_database_engine",
    "create_session_factory",
    "verify_database_connection",
    "initialize_database",
    "DatabasePersistenceError",
    "DatabaseConnectionError",
    "DatabaseInitializationError",
]
