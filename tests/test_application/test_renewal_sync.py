"""Tests for the cross-user renewal sync"""
from datetime import date
from decimal import Decimal
from unittest.mock import Mock

import pytest

from app.application.errors import ConfigurationError, RemoteError
from app.application.remote import FAILURE_ERROR, FAILURE_UNREACHABLE, RemoteFailure, RemoteResponse
from app.application.renewal_sync import sync_renewals

TODAY = date(2026, 3, 10)


def _insert(client, name, renewal_date, price="9.99"):
    data, error = client.insert_subscription({
        "user_id": client.get_session().user.user_id,
        "name": name,
        "price": Decimal(price),
        "cycle": "monthly",
        "renewal_date": renewal_date,
    })
    assert error is None
    return data


def test_collects_renewals_of_all_users(backend, alice_client, bob_client):
    _insert(alice_client, "Netflix", date(2026, 3, 12))
    _insert(alice_client, "Today", TODAY)
    _insert(bob_client, "Gym", date(2026, 3, 17))
    _insert(bob_client, "Too late", date(2026, 3, 18))
    _insert(bob_client, "Overdue", date(2026, 3, 9))

    report = sync_renewals(backend, TODAY, days=7)

    assert [s.name for s in report.subscriptions] == ["Today", "Netflix", "Gym"]
    assert report.count == 3
    assert report.users == 2
    alice_id = alice_client.get_session().user.user_id
    assert [s.name for s in report.by_user[alice_id]] == ["Today", "Netflix"]


def test_report_payload(backend, alice_client):
    row = _insert(alice_client, "Netflix", date(2026, 3, 12), price="15.49")

    payload = sync_renewals(backend, TODAY).to_dict()

    assert payload == {
        "success": True,
        "count": 1,
        "users": 1,
        "subscriptions": [
            {"id": row["id"], "name": "Netflix", "renewal_date": "2026-03-12", "price": "15.49"},
        ],
    }


def test_nothing_due(backend):
    report = sync_renewals(backend, TODAY)
    assert report.count == 0
    assert report.to_dict()["subscriptions"] == []


@pytest.mark.parametrize("code,exc", [
    (FAILURE_ERROR, RemoteError),
    (FAILURE_UNREACHABLE, ConfigurationError),
])
def test_query_failure_raises(code, exc):
    backend = Mock()
    backend.select_renewing_between.return_value = RemoteResponse(error=RemoteFailure("down", code))
    with pytest.raises(exc):
        sync_renewals(backend, TODAY)


class _FixedSource:
    def __init__(self, rows):
        self.rows = rows
        self.windows = []

    def select_renewing_between(self, start, end):
        self.windows.append((start, end))
        return RemoteResponse(data=self.rows)


def test_any_renewal_source_will_do():
    source = _FixedSource([
        {"id": "1", "user_id": "u1", "name": "Netflix", "price": "9.99",
         "cycle": "monthly", "renewal_date": "2026-03-12"},
    ])

    report = sync_renewals(source, TODAY, days=30)

    assert source.windows == [(TODAY, date(2026, 4, 9))]
    assert [s.name for s in report.subscriptions] == ["Netflix"]
    assert report.users == 1
