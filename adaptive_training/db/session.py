from __future__ import annotations

from loguru import logger
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from adaptive_training.config.settings import settings
from adaptive_training.db.models import Base


def make_engine(database_url: str) -> Engine:
    """Create an engine with the connect args the backend needs."""
    connect_args = {}
    if "sqlite" in database_url.lower():
        connect_args = {"check_same_thread": False}
        logger.warning("Using SQLite database (local development only)")
    return create_engine(database_url, connect_args=connect_args, echo=False, pool_pre_ping=True)


def make_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_db(engine: Engine) -> None:
    """Create all tables that do not exist yet."""
    Base.metadata.create_all(engine)
    logger.info("Database tables initialized")


# Lazy initialization to avoid import-time database connections
_engine: Engine | None = None
_SessionLocal: sessionmaker[Session] | None = None


def get_engine() -> Engine:
    """Get or create the engine for ``settings.database_url``."""
    global _engine
    if _engine is None:
        logger.info(f"Initializing database engine: {settings.database_url}")
        _engine = make_engine(settings.database_url)
        logger.info("Database engine initialized")
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = make_session_factory(get_engine())
        logger.info("Database session factory initialized")
    return _SessionLocal

