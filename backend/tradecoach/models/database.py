"""
Database configuration and session management
"""
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from tradecoach.config import settings
from tradecoach.logger import logger


def build_engine(db_url: str) -> Engine:
    """Create a synchronous engine, creating the SQLite directory if needed."""
    if db_url.startswith("sqlite:///") and ":memory:" not in db_url:
        Path(db_url.replace("sqlite:///", "")).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(
        db_url,
        echo=False,
        pool_pre_ping=True,  # Verify connections before using
        # Loops run on their own threads
        connect_args={"check_same_thread": False} if db_url.startswith("sqlite") else {},
    )


def build_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(
        bind=bind,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


engine = build_engine(settings.DATABASE.url)
SessionLocal = build_session_factory(engine)

# Base class for models
Base = declarative_base()


def init_db(bind: Engine = None):
    """Initialize database tables"""
    # Register every model on Base.metadata
    from tradecoach.models import batch_analysis, chat_message, market_data, screenshot, ticker_session  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
    logger.info("Database tables initialized")


def close_db():
    """Close database connections"""
    engine.dispose()
    logger.info("Database connections closed")
