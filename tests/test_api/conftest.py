"""
Fixtures for API tests: the app wired to the in-memory hosted store
"""
from datetime import date

import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_backend, get_today
from app.main import app

PASSWORD = "secret123"


@pytest.fixture
def today():
    return date(2026, 3, 10)


@pytest.fixture
def client(backend, today):
    """Test client for FastAPI, no session cookie yet"""
    app.dependency_overrides[get_backend] = lambda: backend
    app.dependency_overrides[get_today] = lambda: today
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def authenticated_client(client):
    """Client signed in as alice@example.com"""
    response = client.post("/api/v1/auth/signup", json={"email": "alice@example.com", "password": PASSWORD})
    assert response.status_code == 200, response.text
    return client


@pytest.fixture
def other_client(client):
    """Second browser signed in as bob@example.com (shares the app overrides)"""
    other = TestClient(app)
    response = other.post("/api/v1/auth/signup", json={"email": "bob@example.com", "password": PASSWORD})
    assert response.status_code == 200, response.text
    return other
