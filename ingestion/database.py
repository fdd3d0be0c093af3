"""Database connection and session management."""
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import JSON, create_engine, event
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from ingestion.config import get_settings

settings = get_settings()

# JSON column that uses JSONB on PostgreSQL
JSONType = JSON().with_variant(postgresql.JSONB(), "postgresql")


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True, "pool_size": 5, "max_overflow": 10}


engine = create_engine(settings.database_url, **_engine_options(settings.database_url))


@event.listens_for(engine, "connect")
def set_statement_timeout(dbapi_connection, connection_record):
    """Bound long-running statements on PostgreSQL."""
    if engine.dialect.name != "postgresql":
        return
    cursor = dbapi_connection.cursor()
    cursor.execute("SET statement_timeout = '30s'")
    cursor.close()


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Dependency for getting database sessions."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def unit_of_work(db: Session) -> Iterator[Session]:
    """
    Commit everything written inside the block, or nothing.

    Status readers never observe half of a pipeline stage.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def dialect_insert(db: Session, model):
    """Return an INSERT supporting ON CONFLICT for the session's dialect."""
    if db.get_bind().dialect.name == "postgresql":
        return postgresql.insert(model)
    return sqlite.insert(model)
