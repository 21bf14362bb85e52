"""
Tests for Subscriptions API endpoints
"""
from datetime import timedelta
from unittest.mock import Mock

import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from app.api.deps import get_backend
from app.application.remote import FAILURE_ERROR, FAILURE_UNREACHABLE, RemoteFailure, RemoteResponse
from app.infrastructure.remote.sql_store import SqlBackend, SqlRemoteStoreClient
from app.main import app

BASE = "/api/v1/subscriptions/"


def _create(client, **fields):
    payload = {"name": "Netflix", "price": "15.49", "cycle": "monthly"}
    payload.update(fields)
    response = client.post(BASE, json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def test_requires_authentication(client):
    assert client.get(BASE).status_code == 401
    assert client.post(BASE, json={"name": "X", "price": "1"}).status_code == 401


def test_create_subscription(authenticated_client, today):
    renewal = (today + timedelta(days=3)).isoformat()
    item = _create(authenticated_client, price=9.99, renewal_date=renewal, category="Streaming")

    assert item["id"]
    assert item["price"] == "9.99"
    assert item["price_formatted"] == "$9.99/mo"
    assert item["renewal_date"] == renewal
    assert item["days_until"] == 3
    assert item["bucket"] == "DUE_SOON"
    assert item["renewal_label"] == "Renews in 3 days"

    listing = authenticated_client.get(BASE).json()
    assert listing["count"] == 1
    assert listing["items"][0]["id"] == item["id"]


def test_create_accepts_decimal_comma(authenticated_client):
    assert _create(authenticated_client, price="4,99")["price"] == "4.99"


@pytest.mark.parametrize("payload,message", [
    ({"name": "  ", "price": "1"}, "Name is required"),
    ({"name": "X", "price": "abc"}, "Valid price is required"),
    ({"name": "X", "price": "-3"}, "Valid price is required"),
    ({"name": "X", "price": "1.999"}, "At most 2 decimal places"),
])
def test_create_rejects_invalid_input(authenticated_client, payload, message):
    response = authenticated_client.post(BASE, json=payload)
    assert response.status_code == 400
    assert response.json()["detail"] == message
    assert authenticated_client.get(BASE).json()["count"] == 0


def test_create_rejects_unknown_cycle(authenticated_client):
    response = authenticated_client.post(BASE, json={"name": "X", "price": "1", "cycle": "weekly"})
    assert response.status_code == 422


def test_list_totals_and_order(authenticated_client, today):
    _create(authenticated_client, name="Undated")
    _create(authenticated_client, name="Domain", price="120", cycle="yearly",
            renewal_date=(today + timedelta(days=40)).isoformat())
    _create(authenticated_client, name="Music", price="9.99",
            renewal_date=today.isoformat())

    listing = authenticated_client.get(BASE).json()

    assert [i["name"] for i in listing["items"]] == ["Music", "Domain", "Undated"]
    # 15.49 + 10 + 9.99
    assert listing["monthly_total"] == "35.48"
    assert listing["monthly_total_formatted"] == "$35.48"
    assert listing["yearly_total"] == "425.76"


def test_list_filters(authenticated_client, today):
    _create(authenticated_client, name="Netflix", category="Streaming",
            renewal_date=(today + timedelta(days=5)).isoformat())
    _create(authenticated_client, name="Spotify", category="Music",
            renewal_date=(today + timedelta(days=45)).isoformat())
    _create(authenticated_client, name="Notes app")

    def names(**params):
        return [i["name"] for i in authenticated_client.get(BASE, params=params).json()["items"]]

    assert names(search="net") == ["Netflix"]
    assert names(category="Music") == ["Spotify"]
    assert names(days=30) == ["Netflix", "Notes app"]
    assert names(days=90) == ["Netflix", "Spotify", "Notes app"]


def test_list_rejects_unsupported_window(authenticated_client):
    response = authenticated_client.get(BASE, params={"days": 15})
    assert response.status_code == 400


def test_categories(authenticated_client, today):
    _create(authenticated_client, name="A", category="Streaming", renewal_date=today.isoformat())
    _create(authenticated_client, name="B", renewal_date=(today + timedelta(days=1)).isoformat())
    _create(authenticated_client, name="C", category="Cloud", renewal_date=(today + timedelta(days=2)).isoformat())

    assert authenticated_client.get(BASE + "categories").json() == ["Streaming", "Cloud"]


def test_update_subscription(authenticated_client):
    item = _create(authenticated_client)

    response = authenticated_client.patch(BASE + item["id"], json={"price": "17.99", "cycle": "yearly"})

    assert response.status_code == 200
    data = response.json()
    assert data["price"] == "17.99"
    assert data["cycle"] == "yearly"
    assert data["name"] == "Netflix"


def test_update_clears_renewal_date(authenticated_client, today):
    item = _create(authenticated_client, renewal_date=today.isoformat())
    data = authenticated_client.patch(BASE + item["id"], json={"renewal_date": None}).json()
    assert data["renewal_date"] is None


def test_update_with_empty_body(authenticated_client):
    item = _create(authenticated_client)
    response = authenticated_client.patch(BASE + item["id"], json={})
    assert response.status_code == 400
    assert response.json()["detail"] == "Nothing to update"


def test_delete_subscription(authenticated_client):
    item = _create(authenticated_client)

    assert authenticated_client.delete(BASE + item["id"]).json() == {"success": True}
    assert authenticated_client.get(BASE).json()["count"] == 0
    assert authenticated_client.delete(BASE + item["id"]).status_code == 404


def test_other_users_subscription_is_invisible(authenticated_client, other_client):
    item = _create(authenticated_client)

    assert other_client.get(BASE).json()["count"] == 0
    response = other_client.patch(BASE + item["id"], json={"name": "pwned"})
    assert response.status_code == 404
    assert response.json()["detail"] == "Subscription not found"
    assert other_client.delete(BASE + item["id"]).status_code == 404

    assert authenticated_client.get(BASE).json()["items"][0]["name"] == "Netflix"


def test_missing_id_and_foreign_id_look_the_same(authenticated_client, other_client):
    item = _create(authenticated_client)

    foreign = other_client.delete(BASE + item["id"])
    missing = other_client.delete(BASE + "00000000-0000-0000-0000-000000000000")
    assert foreign.status_code == missing.status_code == 404
    assert foreign.json() == missing.json()


@pytest.mark.parametrize("exc,status", [
    (OperationalError("SELECT 1", {}, Exception("connection refused")), 503),
    (SQLAlchemyError("boom"), 502),
])
def test_signed_in_user_sees_store_outage_not_401(authenticated_client, exc, status):
    broken = SqlBackend(Mock(side_effect=exc))
    app.dependency_overrides[get_backend] = lambda: broken

    assert authenticated_client.get(BASE).status_code == status
    assert authenticated_client.post(BASE, json={"name": "X", "price": "1"}).status_code == status
    assert authenticated_client.get("/api/v1/dashboard/").status_code == status


@pytest.mark.parametrize("code,status", [(FAILURE_UNREACHABLE, 503), (FAILURE_ERROR, 502)])
def test_failed_load_is_reported_on_every_read(authenticated_client, monkeypatch, code, status):
    _create(authenticated_client)
    monkeypatch.setattr(
        SqlRemoteStoreClient, "select_subscriptions",
        lambda self, user_id: RemoteResponse(error=RemoteFailure("connection refused", code)),
    )

    for path in (BASE, BASE + "categories", "/api/v1/dashboard/"):
        response = authenticated_client.get(path)
        assert response.status_code == status, path
        assert "connection refused" in response.json()["detail"]


def test_create_succeeds_when_reload_fails(authenticated_client, monkeypatch):
    monkeypatch.setattr(
        SqlRemoteStoreClient, "select_subscriptions",
        lambda self, user_id: RemoteResponse(error=RemoteFailure("timeout", FAILURE_ERROR)),
    )

    item = _create(authenticated_client)

    monkeypatch.undo()
    assert [i["id"] for i in authenticated_client.get(BASE).json()["items"]] == [item["id"]]
