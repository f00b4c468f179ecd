"""Database engine. SQLite compatible with connection pooling."""
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from apotek.core.config import settings


def build_engine(url: Optional[str] = None) -> Engine:
    url = url or settings.DATABASE_URL

    if url.startswith("sqlite"):
        # timeout: how long a writer waits on the file lock before "database is locked"
        connect_args = {"check_same_thread": False, "timeout": 30}
        if ":memory:" in url or url in ("sqlite://", "sqlite:///"):
            # In-memory: every connection must share the one database
            return create_engine(url, connect_args=connect_args, poolclass=StaticPool)
        # SQLite file: Use NullPool for thread-safety
        return create_engine(url, connect_args=connect_args, poolclass=NullPool)

    # PostgreSQL/MySQL: Use QueuePool with sensible defaults
    return create_engine(
        url,
        pool_size=5,  # Number of persistent connections
        max_overflow=10,  # Max temporary connections
        pool_timeout=30,  # Seconds to wait for connection
        pool_recycle=3600,  # Recycle connections after 1 hour
        pool_pre_ping=True  # Verify connection health
    )


def build_sessionmaker(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
