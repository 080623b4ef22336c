# shopflow/database.py
from typing import Any

from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine, Session

from shopflow.core.config import get_settings

settings = get_settings()

# ---------------------------------------------------------
# Supabase Postgres connection (via pooler)
#
# - sslmode=require   : enforce SSL when running in the cloud
# - pool_size=1       : keep only 1 connection to the Supabase pooler
# - max_overflow=0    : do not open extra connections beyond the pool
# - pool_pre_ping=True: validate connections before using them
#
# Supabase Session mode limits the number of clients, so each process
# holds a single pooled connection.
#
# SQLite URLs (local runs, tests) share one in-process connection.
# ---------------------------------------------------------


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def build_database_url(raw_url: str) -> str:
    """Append sslmode=require to Postgres URLs that don't set it."""
    if _is_sqlite(raw_url) or "sslmode=" in raw_url:
        return raw_url
    if "?" in raw_url:
        return raw_url + "&sslmode=require"
    return raw_url + "?sslmode=require"


def engine_options(url: str) -> dict[str, Any]:
    if _is_sqlite(url):
        return {
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        }
    return {
        "pool_pre_ping": True,
        "pool_size": 1,
        "max_overflow": 0,
    }


db_url = build_database_url(settings.DATABASE_URL)

engine = create_engine(
    db_url,
    echo=False,  # set to True if you want to debug SQL queries
    **engine_options(db_url),
)


def create_db_and_tables() -> None:
    """
    Create all tables defined in SQLModel metadata if they do not exist.

    This is called once on application startup.
    """
    SQLModel.metadata.create_all(engine)


def get_session():
    """
    FastAPI dependency that yields a SQLModel Session.

    Usage:

        from fastapi import Depends

        @router.get("/example")
        def example_endpoint(session: Session = Depends(get_session)):
            ...
    """
    with Session(engine) as session:
        yield session
