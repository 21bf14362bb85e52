"""
Tests for Auth API endpoints
"""
import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_backend
from app.infrastructure.db.models import User
from app.infrastructure.remote.sql_store import SqlBackend
from app.main import app

PASSWORD = "secret123"
ALICE = {"email": "alice@example.com", "password": PASSWORD}


def test_signup_starts_session(client):
    response = client.post("/api/v1/auth/signup", json=ALICE)

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "session_active"
    assert data["user"]["email"] == "alice@example.com"

    session = client.get("/api/v1/auth/session").json()
    assert session["state"] == "AUTHENTICATED"
    assert session["user"]["id"] == data["user"]["id"]


def test_signup_duplicate(authenticated_client):
    response = authenticated_client.post("/api/v1/auth/signup", json=ALICE)
    assert response.status_code == 400
    assert response.json() == {"error": "User already registered"}


def test_signup_short_password(client):
    response = client.post("/api/v1/auth/signup", json={"email": "x@example.com", "password": "123"})
    assert response.status_code == 400
    assert "at least" in response.json()["error"]


def test_anonymous_session(client):
    assert client.get("/api/v1/auth/session").json() == {"state": "ANONYMOUS", "user": None}


def test_login_wrong_password(authenticated_client):
    authenticated_client.post("/api/v1/auth/logout")
    response = authenticated_client.post(
        "/api/v1/auth/login", json={"email": "alice@example.com", "password": "wrong-one"},
    )
    assert response.status_code == 401
    assert response.json() == {"error": "Invalid login credentials"}


def test_logout_then_login(authenticated_client):
    response = authenticated_client.post("/api/v1/auth/logout")
    assert response.json() == {"status": "signed_out"}
    assert authenticated_client.get("/api/v1/auth/session").json()["state"] == "ANONYMOUS"

    response = authenticated_client.post("/api/v1/auth/login", json=ALICE)
    assert response.status_code == 200
    assert response.json()["status"] == "session_active"
    assert authenticated_client.get("/api/v1/auth/session").json()["state"] == "AUTHENTICATED"


def test_logout_is_global(client, backend):
    client.post("/api/v1/auth/signup", json=ALICE)
    second_browser = TestClient(app)
    second_browser.post("/api/v1/auth/login", json=ALICE)

    client.post("/api/v1/auth/logout")

    assert second_browser.get("/api/v1/auth/session").json()["state"] == "ANONYMOUS"


class TestEmailConfirmation:
    @pytest.fixture(autouse=True)
    def confirming_backend(self, client, session_factory):
        backend = SqlBackend(session_factory, require_email_confirmation=True)
        app.dependency_overrides[get_backend] = lambda: backend
        return backend

    def test_pending_then_confirmed(self, client, db_session):
        response = client.post("/api/v1/auth/signup", json=ALICE)
        assert response.json()["status"] == "pending_confirmation"
        assert client.get("/api/v1/auth/session").json()["state"] == "ANONYMOUS"

        response = client.post("/api/v1/auth/login", json=ALICE)
        assert response.status_code == 401
        assert response.json() == {"error": "Email not confirmed"}

        token = db_session.query(User).filter(User.email == "alice@example.com").one().confirmation_token
        response = client.get("/api/v1/auth/confirm", params={"token": token})
        assert response.status_code == 200
        assert response.json()["status"] == "confirmed"

        assert client.post("/api/v1/auth/login", json=ALICE).status_code == 200

    def test_bad_confirmation_token(self, client):
        response = client.get("/api/v1/auth/confirm", params={"token": "bogus"})
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid or expired confirmation link"}
