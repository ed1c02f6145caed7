"""
Database configuration and session management
"""

import logging
from typing import Generator

import sentry_sdk
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from assessment.core.config import settings

logger = logging.getLogger(__name__)

# Create Base class for models
Base = declarative_base()


def build_engine(database_url: str) -> Engine:
    """
    Create an engine for the given URL

    SQLite connections wait for the busy timeout instead of failing
    immediately when another writer holds the lock.
    """
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            echo=settings.DB_ECHO,
            connect_args={
                "check_same_thread": False,
                "timeout": settings.SQLITE_BUSY_TIMEOUT,
            },
        )

        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    return create_engine(
        database_url,
        echo=settings.DB_ECHO,
        pool_pre_ping=True,
        pool_recycle=300,
    )


engine = build_engine(settings.get_database_url())

# Create SessionLocal class
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


def init_db(bind: Engine = None) -> None:
    """Initialize database, create tables if they don't exist"""
    bind = bind or engine
    try:
        # Import all models here to ensure they're registered
        from assessment import models  # noqa

        Base.metadata.create_all(bind=bind)
        logger.info("Database tables created successfully")

        with bind.connect() as conn:
            if conn.execute(text("SELECT 1")).scalar() == 1:
                logger.info("Database connection successful")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        if settings.SENTRY_DSN:
            sentry_sdk.capture_exception(e)
        raise


def get_db() -> Generator[Session, None, None]:
    """
    Dependency to get database session
    Ensures proper cleanup after request
    """
    db = SessionLocal()
    try:
        yield db
    except SQLAlchemyError as e:
        logger.error(f"Database error occurred: {e}")
        db.rollback()
        if settings.SENTRY_DSN:
            sentry_sdk.capture_exception(e)
        raise
    finally:
        db.close()


def check_connection(db: Session) -> bool:
    """Run a trivial query; used by the detailed health check"""
    try:
        return db.execute(text("SELECT 1")).scalar() == 1
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        return False
