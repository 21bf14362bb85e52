"""
Pytest fixtures for testing
"""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from app.infrastructure.db.session import Base
from app.infrastructure.db import models  # noqa: F401  (registers tables)
from app.infrastructure.remote.sql_store import SqlBackend

PASSWORD = "secret123"


@pytest.fixture
def db_engine():
    """In-memory SQLite engine shared across threads (TestClient runs sync routes in a pool)"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, autoflush=False, autocommit=False)


@pytest.fixture
def db_session(session_factory) -> Session:
    """Create database session for tests"""
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def backend(session_factory) -> SqlBackend:
    return SqlBackend(session_factory)


@pytest.fixture
def make_client(backend):
    """Factory: new client holding an active session for a freshly registered user"""
    created = []

    def _make(email: str, password: str = PASSWORD):
        client = backend.client()
        data, error = client.sign_up(email, password)
        assert error is None, error
        assert data["session"] is not None
        created.append(client)
        return client

    yield _make
    for client in created:
        client.close()


@pytest.fixture
def alice_client(make_client):
    return make_client("alice@example.com")


@pytest.fixture
def bob_client(make_client):
    return make_client("bob@example.com")
