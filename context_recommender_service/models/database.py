"""Engine and session factory for the database holding ratings and recommenders."""
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from context_recommender_service.config import get_database_url


def create_database_engine(url: str, echo: bool = False) -> Engine:
    """
    Create an engine for a database URL.

    SQLite engines share one connection across threads (and, in memory,
    across sessions) so every session sees the same tables; server
    databases get a pre-pinged, recycled pool.

    Args:
        url: SQLAlchemy database URL
        echo: Log every SQL statement

    Returns:
        SQLAlchemy Engine
    """
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, echo=echo, **kwargs)

    return create_engine(url, pool_pre_ping=True, pool_recycle=3600, echo=echo)


# Get database URL
DATABASE_URL = get_database_url()

# Validate database URL is provided
if DATABASE_URL is None:
    raise ValueError("DATABASE_URL is not configured. Set the DATABASE_URL environment variable.")

engine = create_database_engine(DATABASE_URL)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
