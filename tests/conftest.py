"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of vybes.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine, event  # noqa: E402

# ---------------------------------------------------------------------------
# Make JSONB columns work in SQLite for testing.
# SQLite doesn't support JSONB natively, but SQLAlchemy's JSON type works.
# We register a custom type compiler so SQLite renders JSONB as TEXT.
# ---------------------------------------------------------------------------
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from vybes.database.models import Base  # noqa: E402
from vybes.database.seed import seed_quest_definitions  # noqa: E402
from vybes.engine.catalog import DEFAULT_CATALOG, RewardCatalog  # noqa: E402

_jsonb_sqlite_registered = False


def _register_jsonb_sqlite_compat():
    """Register SQLite compilation for PG JSONB type (idempotent).

    Also maps BigInteger → INTEGER so autoincrement works on SQLite.
    """
    global _jsonb_sqlite_registered
    if _jsonb_sqlite_registered:
        return
    from sqlalchemy import BigInteger
    from sqlalchemy.ext.compiler import compiles

    @compiles(PG_JSONB, "sqlite")
    def _compile_jsonb_as_text(type_, compiler, **kw):
        return "TEXT"

    @compiles(BigInteger, "sqlite")
    def _compile_bigint_as_integer(type_, compiler, **kw):
        return "INTEGER"

    _jsonb_sqlite_registered = True


_register_jsonb_sqlite_compat()


def enable_sqlite_transactions(engine: Engine, begin: str = "BEGIN") -> Engine:
    """Let SQLAlchemy own BEGIN so SAVEPOINTs nest correctly on pysqlite.

    Without this the driver defers BEGIN until the first write, and a
    ``RELEASE SAVEPOINT`` at the outermost level silently commits.
    ``begin="BEGIN IMMEDIATE"`` takes the write lock up front, which
    serializes concurrent writers on a file database instead of failing
    them with "database is locked".
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_autobegin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql(begin)

    return engine


def make_file_engine(path) -> Engine:
    """A file-backed SQLite engine safe to share between threads."""
    engine = create_engine(
        f"sqlite:///{path}",
        echo=False,
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    enable_sqlite_transactions(engine, begin="BEGIN IMMEDIATE")
    Base.metadata.create_all(engine)
    seed_quest_definitions(engine, DEFAULT_CATALOG)
    return engine


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all Vybes tables.

    JSONB columns are transparently mapped to TEXT for SQLite compatibility.
    Uses StaticPool so all threads share the same in-memory database.
    """
    from sqlalchemy.pool import StaticPool

    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_transactions(engine)
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def engine(db_engine: Engine) -> Engine:
    """``db_engine`` with the default quest definitions seeded."""
    seed_quest_definitions(db_engine, DEFAULT_CATALOG)
    return db_engine


@pytest.fixture
def catalog() -> RewardCatalog:
    return DEFAULT_CATALOG


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a transactional session that rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


def make_token(
    sub: str = "user-1",
    *,
    is_admin: bool = False,
    is_service: bool = False,
) -> str:
    """Create a signed JWT.  Usable from fixtures and directly in tests."""
    import jwt

    from vybes.api.deps import JWT_ALGORITHM, JWT_SECRET

    return jwt.encode(
        {"sub": sub, "is_admin": is_admin, "is_service": is_service},
        JWT_SECRET,
        algorithm=JWT_ALGORITHM,
    )


@pytest.fixture
def admin_token() -> str:
    return make_token("admin-1", is_admin=True)


@pytest.fixture
def user_token() -> str:
    return make_token("user-1")


@pytest.fixture
def client(engine: Engine):
    """FastAPI TestClient bound to the seeded in-memory database.

    The lifespan hook is not entered (no ``with`` block), so no real
    DATABASE_URL is needed.
    """
    from fastapi.testclient import TestClient

    from vybes.api.deps import get_config, get_engine
    from vybes.api.main import app
    from vybes.config import VybesConfig

    app.dependency_overrides[get_engine] = lambda: engine
    app.dependency_overrides[get_config] = lambda: VybesConfig(
        app_name="Vybes Test", api_port=8000
    )
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
