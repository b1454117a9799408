from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


def build_engine(database_url: str) -> Engine:
    """Create the engine for DATABASE_URL. SQLite connections are shared across worker threads."""
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        # an in-memory database only exists inside a single connection
        if ":memory:" in database_url or database_url.rstrip("/").endswith("sqlite+pysqlite:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)

    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=2,
        pool_recycle=1800,
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
