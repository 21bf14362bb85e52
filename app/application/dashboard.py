"""
Dashboard — aggregated spending view over a subscriptions snapshot.

Pure read-layer: no remote calls, no mutations. Blocks:
  1. Spending summary (monthly / yearly totals, count)
  2. Upcoming renewals
  3. Category breakdown (monthly equivalent per category)
  4. Top subscriptions by monthly cost
"""
from datetime import date
from typing import Sequence

from app.domain import renewals
from app.domain.subscription import Subscription
from app.utils.money import format_money, format_price, round_money


def subscription_item(sub: Subscription, today: date) -> dict:
    """One subscription as rendered in lists and cards."""
    days_until = renewals.days_until_renewal(sub, today)
    return {
        "id": sub.id,
        "name": sub.name,
        "price": str(sub.price),
        "price_formatted": format_price(sub.price, sub.cycle),
        "cycle": sub.cycle,
        "renewal_date": sub.renewal_date.isoformat() if sub.renewal_date else None,
        "category": sub.category,
        "notes": sub.notes,
        "days_until": days_until,
        "bucket": renewals.renewal_bucket(days_until),
        "renewal_label": renewals.renewal_label(sub, today),
        "monthly_equivalent": str(round_money(renewals.monthly_equivalent(sub))),
    }


class DashboardService:
    def __init__(self, subscriptions: Sequence[Subscription]):
        self.subscriptions = list(subscriptions)

    # ------------------------------------------------------------------
    # 1. Summary
    # ------------------------------------------------------------------

    def get_summary(self) -> dict:
        monthly = round_money(renewals.total_monthly(self.subscriptions))
        yearly = round_money(renewals.total_yearly(self.subscriptions))
        return {
            "count": len(self.subscriptions),
            "monthly_total": str(monthly),
            "monthly_total_formatted": format_money(monthly),
            "yearly_total": str(yearly),
            "yearly_total_formatted": format_money(yearly),
        }

    # ------------------------------------------------------------------
    # 2. Upcoming renewals
    # ------------------------------------------------------------------

    def get_upcoming_renewals(self, today: date, days: int = 30, limit: int = 5) -> list[dict]:
        """Renewals within `days`, soonest first, first `limit` entries."""
        upcoming = renewals.upcoming_within(self.subscriptions, days, today)
        return [subscription_item(s, today) for s in upcoming[:limit]]

    # ------------------------------------------------------------------
    # 3. Category breakdown
    # ------------------------------------------------------------------

    def get_category_breakdown(self) -> list[dict]:
        totals = renewals.aggregate_by_category(self.subscriptions)
        return [
            {"name": name, "value": str(round_money(amount))}
            for name, amount in totals.items()
        ]

    # ------------------------------------------------------------------
    # 4. Top by monthly cost
    # ------------------------------------------------------------------

    def get_top_subscriptions(self, limit: int = 10) -> list[dict]:
        return [
            {"name": s.name, "amount": str(round_money(renewals.monthly_equivalent(s)))}
            for s in renewals.top_by_monthly_cost(self.subscriptions, limit)
        ]

    def get_dashboard(self, today: date, upcoming_days: int = 30, upcoming_limit: int = 5) -> dict:
        return {
            "summary": self.get_summary(),
            "upcoming": self.get_upcoming_renewals(today, upcoming_days, upcoming_limit),
            "categories": self.get_category_breakdown(),
            "top_subscriptions": self.get_top_subscriptions(),
        }
