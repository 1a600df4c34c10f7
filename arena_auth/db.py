"""
Database connection and session management for the auth service
"""
import logging
from typing import Generator, Optional, Tuple

from fastapi import Request
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .config import Settings

logger = logging.getLogger(__name__)

Base = declarative_base()


def build_engine(settings: Settings) -> Engine:
    """
    Create the SQLAlchemy engine for the configured store.

    Server databases get a bounded pool: DB_POOL_SIZE connections, no overflow,
    and DB_POOL_TIMEOUT seconds of waiting before sqlalchemy.exc.TimeoutError.
    """
    url = settings.database_url
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})

    return create_engine(
        url,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=0,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_IDLE_TIMEOUT,
        pool_pre_ping=True,
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


def init_db(engine: Engine) -> None:
    """
    Create all tables.
    Should be called on application startup.
    """
    # Import models to ensure they are registered with Base
    from . import models  # noqa: F401

    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database initialized successfully")
    except SQLAlchemyError as e:
        logger.error("Failed to initialize database: %s", e)
        raise


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    Dependency function to get database session.

    Yields:
        Session: SQLAlchemy database session bound to the app's engine
    """
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def check_db_connection(engine: Engine) -> Tuple[bool, Optional[str]]:
    """
    Check if database connection is working.

    Returns:
        (connected, error message or None)
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True, None
    except SQLAlchemyError as e:
        logger.error("Database connection check failed: %s", e)
        return False, str(e)
