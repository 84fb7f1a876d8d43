"""
Database connection and session management for the Patient Flow Engine.

Uses SQLAlchemy with SQLite for development and any SQLAlchemy URL
(e.g. PostgreSQL) for production.
"""
import logging
from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session, declarative_base
from sqlalchemy.pool import StaticPool

from patientflow.core.config import Config

logger = logging.getLogger(__name__)

# Create declarative base for ORM models
Base = declarative_base()

# Database engine
engine: Optional[Engine] = None
SessionLocal: Optional[sessionmaker] = None


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine, with SQLite-specific settings where needed."""
    if database_url.startswith("sqlite"):
        db_engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=echo
        )

        # Enable foreign keys for SQLite
        @event.listens_for(db_engine, "connect")
        def set_sqlite_pragma(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()
    else:
        db_engine = create_engine(
            database_url,
            pool_pre_ping=True,
            echo=echo
        )
    return db_engine


def init_db(database_url: Optional[str] = None) -> Engine:
    """Initialize database connection and create tables."""
    global engine, SessionLocal

    # Register ORM tables on Base.metadata
    from patientflow.db import models  # noqa: F401

    db_url = database_url or Config.DATABASE_URL
    logger.info(f"Initializing database: {db_url}")

    engine = create_db_engine(db_url, echo=Config.DEBUG)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    Base.metadata.create_all(bind=engine)

    logger.info("Database initialized successfully")
    return engine


def get_session_factory() -> sessionmaker:
    """Session factory for the configured database, initializing it on first use."""
    if SessionLocal is None:
        init_db()
    return SessionLocal


def get_db() -> Session:
    """Get a database session."""
    return get_session_factory()()
