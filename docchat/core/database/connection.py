"""
Database connection and session management.
"""
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.exc import OperationalError, DBAPIError
from typing import Generator, Optional
import logging
import time

from docchat.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

engine = None
SessionLocal = None


def init_db(settings: Optional[Settings] = None, max_retries: int = 3, retry_delay: float = 1.0):
    """
    Initialize the database engine and session factory with retry logic.
    Call this once at application startup.

    Args:
        settings: Application settings (default: global settings)
        max_retries: Number of connection attempts
        retry_delay: Seconds to wait between retries

    Raises:
        RuntimeError: If connection fails after all retries
    """
    global engine, SessionLocal

    settings = settings or get_settings()
    database_url = settings.database_url_normalized
    if not database_url:
        logger.warning("DATABASE_URL not set - database features disabled")
        return

    last_error = None
    for attempt in range(max_retries):
        try:
            engine = create_engine(
                database_url,
                pool_pre_ping=True,  # Verify connections before using
                pool_size=settings.database_pool_size,
                max_overflow=settings.database_max_overflow,
                pool_recycle=3600,
                echo=False,
            )

            # Test connection
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))

            SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

            logger.info(f"Database initialized: {database_url.split('@')[1] if '@' in database_url else 'local'}")
            return

        except (OperationalError, DBAPIError) as e:
            last_error = e
            logger.warning(f"Database connection attempt {attempt + 1}/{max_retries} failed: {e}")
            if attempt < max_retries - 1:
                time.sleep(retry_delay * (attempt + 1))

    logger.error(f"Database initialization failed after {max_retries} attempts")
    raise RuntimeError(f"Failed to connect to database: {last_error}") from last_error


def get_db() -> Generator[Session, None, None]:
    """
    Get a database session.

    Usage:
        from docchat.core.database import get_db

        db = next(get_db())
    """
    if not SessionLocal:
        raise RuntimeError("Database not initialized. Call init_db() first.")

    db = SessionLocal()
    try:
        yield db
    except (OperationalError, DBAPIError) as e:
        logger.error(f"Database session error: {e}")
        db.rollback()
        raise
    finally:
        db.close()


def create_all(bind=None) -> None:
    """
    Create tables directly from the models (development and tests).

    Production schemas are managed by Alembic.
    """
    from docchat.core.database.models import Base

    bind = bind or engine
    if bind is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")

    if bind.dialect.name == "postgresql":
        with bind.begin() as conn:
            conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
    Base.metadata.create_all(bind=bind)
    logger.info("Database tables created")
