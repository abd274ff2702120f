# app/database.py
from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping, Optional, Sequence

from dotenv import load_dotenv
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import URL
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import ArgumentError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker

load_dotenv()


def _default_db_url() -> str:
    """File-based SQLite next to the project root, used when nothing else is configured."""
    root = Path(__file__).resolve().parents[1]
    return f"sqlite+aiosqlite:///{(root / 'ctf.db').as_posix()}"


def _translate_sslmode(value: str) -> Optional[str]:
    """Map a libpq ``sslmode`` onto asyncpg's ``ssl`` flag (None = driver default)."""

    mode = value.strip().lower()
    if mode in {"require", "verify-ca", "verify-full"}:
        return "true"
    if mode == "disable":
        return "false"
    return None


def _normalize_database_url(raw_url: Optional[str]) -> Optional[str]:
    """Force async drivers onto sync-looking URLs (postgres:// -> postgresql+asyncpg://)."""

    if not raw_url:
        return raw_url

    try:
        url = make_url(raw_url)
    except ArgumentError:
        return raw_url

    driver = url.drivername.lower()
    if driver in {"postgres", "postgresql"} or (
        driver.startswith("postgresql+") and driver != "postgresql+asyncpg"
    ):
        url = url.set(drivername="postgresql+asyncpg")
    elif driver == "sqlite":
        url = url.set(drivername="sqlite+aiosqlite")

    if url.drivername == "postgresql+asyncpg" and "sslmode" in url.query:
        query = dict(url.query)
        ssl = _translate_sslmode(query.pop("sslmode"))
        if ssl is not None:
            query["ssl"] = ssl
        url = url.set(query=query)

    return url.render_as_string(hide_password=False)


def _pg_env_database_url(env: Mapping[str, str]) -> Optional[str]:
    """Build a Postgres URL from the PG* variables hosted platforms inject."""

    host, name, user = env.get("PGHOST"), env.get("PGDATABASE"), env.get("PGUSER")
    if not (host and name and user):
        return None

    try:
        port = int(env["PGPORT"]) if env.get("PGPORT") else None
    except ValueError:
        port = None

    query: dict[str, str] = {}
    if env.get("PGSSLMODE"):
        ssl = _translate_sslmode(env["PGSSLMODE"])
        if ssl is not None:
            query["ssl"] = ssl

    return URL.create(
        drivername="postgresql+asyncpg",
        username=user,
        password=env.get("PGPASSWORD") or None,
        host=host,
        port=port,
        database=name,
        query=query,
    ).render_as_string(hide_password=False)


def _database_url_from_env(env: Mapping[str, str]) -> Optional[str]:
    for key in ("DATABASE_URL", "POSTGRES_URL"):
        normalized = _normalize_database_url(env.get(key))
        if normalized:
            return normalized
    return _pg_env_database_url(env)


DEFAULT_SQLITE_URL: str = _default_db_url()
DATABASE_URL: str = _database_url_from_env(os.environ) or DEFAULT_SQLITE_URL

ECHO = os.getenv("SQLALCHEMY_ECHO", "0").lower() in {"1", "true", "yes"}

Base = declarative_base()

engine: AsyncEngine
SessionLocal: sessionmaker
CURRENT_DATABASE_URL: str


def build_session_factory(bind_engine: AsyncEngine) -> sessionmaker:
    return sessionmaker(
        bind=bind_engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )


def configure_engine(database_url: str) -> None:
    """(Re)build the global engine and session factory.

    Startup uses this to fall back to the bundled SQLite database when the
    configured server never becomes reachable.
    """

    global engine, SessionLocal, CURRENT_DATABASE_URL

    engine = create_async_engine(database_url, echo=ECHO, pool_pre_ping=True)
    SessionLocal = build_session_factory(engine)
    CURRENT_DATABASE_URL = database_url


configure_engine(DATABASE_URL)


async def get_db():
    """FastAPI dependency that yields an AsyncSession."""

    async with SessionLocal() as session:
        yield session


async def init_models(bind: Optional[AsyncEngine] = None) -> None:
    """Register every mapped class and create missing tables."""

    import app.models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


_UPSERT_INSERTS = {"postgresql": postgresql.insert, "sqlite": sqlite.insert}


async def insert_or_ignore(
    db: AsyncSession,
    model,
    values: dict,
    *,
    conflict_columns: Sequence[str],
    returning,
):
    """Atomically insert ``values`` unless a row with the same unique key exists.

    Returns the ``returning`` column of the new row, or None when the unique
    constraint on ``conflict_columns`` already holds a row. The caller commits.
    Only the SQLite and Postgres drivers this service ships with are supported.
    """

    dialect = db.get_bind().dialect.name
    if dialect not in _UPSERT_INSERTS:
        raise NotImplementedError(f"insert_or_ignore does not support {dialect!r}")

    stmt = (
        _UPSERT_INSERTS[dialect](model)
        .values(**values)
        .on_conflict_do_nothing(index_elements=list(conflict_columns))
        .returning(returning)
    )
    return (await db.execute(stmt)).scalar_one_or_none()
