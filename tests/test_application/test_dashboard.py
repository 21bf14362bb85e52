"""Tests for DashboardService."""
import pytest
from datetime import date, timedelta
from decimal import Decimal

from app.application.dashboard import DashboardService, subscription_item
from app.domain.subscription import Subscription


TODAY = date(2026, 2, 14)


# ---- helpers ----

def _sub(sub_id, price, cycle="monthly", days=None, category=None, name=None):
    return Subscription(
        id=sub_id, user_id="u1", name=name or sub_id.title(),
        price=Decimal(price), cycle=cycle,
        renewal_date=TODAY + timedelta(days=days) if days is not None else None,
        category=category,
    )


@pytest.fixture
def subs():
    return [
        _sub("netflix", "15.49", days=3, category="Streaming"),
        _sub("domain", "120", cycle="yearly", days=40),
        _sub("spotify", "9.99", days=0, category="Streaming"),
        _sub("gym", "30", days=-2, category="Health"),
        _sub("notes", "4.99"),
    ]


class TestSummary:
    def test_totals(self, subs):
        summary = DashboardService(subs).get_summary()
        assert summary["count"] == 5
        # 15.49 + 10 + 9.99 + 30 + 4.99
        assert summary["monthly_total"] == "70.47"
        assert summary["monthly_total_formatted"] == "$70.47"
        assert summary["yearly_total"] == "845.64"

    def test_empty(self):
        summary = DashboardService([]).get_summary()
        assert summary["count"] == 0
        assert summary["monthly_total"] == "0.00"
        assert summary["yearly_total_formatted"] == "$0.00"

    def test_scenario_monthly_plus_yearly(self):
        service = DashboardService([_sub("a", "9.99", days=3), _sub("b", "120", cycle="yearly", days=40)])
        assert service.get_summary()["monthly_total"] == "19.99"
        assert [u["id"] for u in service.get_upcoming_renewals(TODAY, days=7)] == ["a"]


class TestUpcoming:
    def test_window_and_order(self, subs):
        upcoming = DashboardService(subs).get_upcoming_renewals(TODAY, days=30)
        assert [u["id"] for u in upcoming] == ["spotify", "netflix"]
        assert upcoming[0]["bucket"] == "TODAY"
        assert upcoming[0]["renewal_label"] == "Renews today"
        assert upcoming[1]["days_until"] == 3

    def test_limit(self):
        subs = [_sub(f"s{i}", "1", days=i) for i in range(10)]
        upcoming = DashboardService(subs).get_upcoming_renewals(TODAY, days=30, limit=5)
        assert [u["id"] for u in upcoming] == ["s0", "s1", "s2", "s3", "s4"]


class TestBreakdown:
    def test_categories_in_first_seen_order(self, subs):
        breakdown = DashboardService(subs).get_category_breakdown()
        assert breakdown == [
            {"name": "Streaming", "value": "25.48"},
            {"name": "Uncategorized", "value": "14.99"},
            {"name": "Health", "value": "30.00"},
        ]

    def test_top_subscriptions(self, subs):
        top = DashboardService(subs).get_top_subscriptions(limit=2)
        assert top == [
            {"name": "Gym", "amount": "30.00"},
            {"name": "Netflix", "amount": "15.49"},
        ]


def test_subscription_item_fields():
    item = subscription_item(_sub("domain", "120", cycle="yearly", days=40), TODAY)
    assert item["price_formatted"] == "$120.00/yr"
    assert item["monthly_equivalent"] == "10.00"
    assert item["renewal_date"] == "2026-03-26"
    assert item["bucket"] == "SCHEDULED"
    assert item["renewal_label"] == "Renews Mar 26, 2026"


def test_undated_item():
    item = subscription_item(_sub("notes", "4.99"), TODAY)
    assert item["renewal_date"] is None
    assert item["days_until"] is None
    assert item["bucket"] is None


def test_get_dashboard_blocks(subs):
    dashboard = DashboardService(subs).get_dashboard(TODAY)
    assert set(dashboard) == {"summary", "upcoming", "categories", "top_subscriptions"}
