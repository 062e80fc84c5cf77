"""
database.py — SQLAlchemy Engine & Session Factory

Purpose:
- Build the SQLAlchemy engine + session factory used by the "sql" Entity Store.
- Own the shared declarative `Base` every ORM table in app/models registers on.

Key Characteristics:
- Synchronous SQLAlchemy engine.
- No Alembic migrations — the schema is expected to exist in Supabase;
  `create_schema()` exists for sqlite test databases and local development.
- Engines are built on demand from a URL, so tests can point at sqlite
  without touching the Supabase settings.

This module does NOT:
- Define ORM models (see app/models/*).
- Perform any queries or business logic.
"""

from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


def normalize_db_url(db_url: str) -> str:
    """
    Use psycopg (v3) driver - SQLAlchemy 2.0+ supports psycopg3.
    Convert postgresql:// to postgresql+psycopg:// if not already specified.
    """
    db_url = db_url.strip()
    if db_url.startswith("postgres://"):
        db_url = db_url.replace("postgres://", "postgresql://", 1)
    if db_url.startswith("postgresql://") and "+" not in db_url.split("://")[0]:
        db_url = db_url.replace("postgresql://", "postgresql+psycopg://", 1)
    return db_url


def make_engine(db_url: str) -> Engine:
    """
    Create an engine for `db_url`.

    sqlite engines get foreign key enforcement switched on so reference
    conflicts behave the same as on Postgres.
    """
    if not db_url or not db_url.strip():
        raise RuntimeError(
            "Database is not configured. Please set SUPABASE_DB_URL environment variable."
        )
    url = normalize_db_url(db_url)

    if url.startswith("sqlite"):
        from sqlalchemy.pool import StaticPool

        engine = create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

        @event.listens_for(engine, "connect")
        def _enable_sqlite_fks(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    return create_engine(
        url,
        pool_pre_ping=True  # Ensures connections are valid before use
    )


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
        expire_on_commit=False,
    )


def create_schema(engine: Engine, base: Optional[object] = None) -> None:
    """Create every registered table (sqlite / local development only)."""
    # Importing the models package registers every table on Base.metadata
    import app.models  # noqa: F401

    (base or Base).metadata.create_all(bind=engine)
