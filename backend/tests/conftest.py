"""Pytest fixtures: SQLite-backed document store for fast, isolated tests."""
import os
from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

os.environ.setdefault("DATABASE_URL", "sqlite://")

from markets.database import Base, get_db  # noqa: E402
from markets.dependencies import get_now  # noqa: E402
from markets.main import app  # noqa: E402
from markets.store.document_store import DocumentStore  # noqa: E402

# Import all models so they register with Base.metadata
from markets.models.document import Document  # noqa: E402,F401

# Friday 2026-10-23 08:00 UTC
FIXED_NOW = datetime(2026, 10, 23, 8, 0, tzinfo=timezone.utc)

FRI_NIGHT_MARKET = {"open": {"day": 5, "time": "2000"}, "close": {"day": 6, "time": "0200"}}
SAT_MORNING_MARKET = {"open": {"day": 6, "time": "0800"}, "close": {"day": 6, "time": "1200"}}


@pytest.fixture(scope="function")
def db_engine(tmp_path):
    """Create a fresh SQLite engine for each test."""
    engine = create_engine(f"sqlite:///{tmp_path / 'test.db'}", connect_args={"check_same_thread": False})

    # WAL lets a second session write while the first one holds a read
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db(session_factory):
    """Yield a database session, closed after the test."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def store(db):
    return DocumentStore(db)


@pytest.fixture(scope="function")
def other_store(session_factory):
    """A second store on its own connection, standing in for a concurrent writer."""
    session = session_factory()
    try:
        yield DocumentStore(session)
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(session_factory):
    """FastAPI TestClient with the database and clock dependencies overridden."""

    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_now] = lambda: FIXED_NOW
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
