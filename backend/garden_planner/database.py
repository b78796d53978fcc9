from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
import logging

from . import config

logger = logging.getLogger(__name__)

DATABASE_URL = config.DATABASE_URL


def engine_options(url: str) -> dict:
    """SQLAlchemy engine keyword arguments for a database URL"""
    if url.startswith("sqlite"):
        options = {"connect_args": {"check_same_thread": False}}
        # In-memory SQLite lives inside one connection; share it across sessions
        if url in ("sqlite://", "sqlite:///:memory:"):
            options["poolclass"] = StaticPool
        return options

    return {"pool_pre_ping": True, "pool_recycle": 3600}


# Create database engine
engine = create_engine(DATABASE_URL, echo=False, **engine_options(DATABASE_URL))
logger.info(f"Database engine created for {DATABASE_URL.split('://')[0]}")

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for models
Base = declarative_base()


# Dependency function for FastAPI routes
def get_db():
    """Database session dependency for FastAPI"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
