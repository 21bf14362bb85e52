"""
Renewal & spend calculator.

Pure functions over a sequence of Subscription records and a reference
instant. Every consumer (dashboard, subscriptions list, renewal sync job)
derives its figures from here so they cannot drift apart.

Money is summed as Decimal and only rounded at presentation time
(see app.utils.money.round_money).
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence

from app.domain.subscription import CYCLE_MONTHLY, CYCLE_YEARLY, UNCATEGORIZED, Subscription

# Renewal buckets
BUCKET_OVERDUE = "OVERDUE"
BUCKET_TODAY = "TODAY"
BUCKET_DUE_SOON = "DUE_SOON"
BUCKET_SCHEDULED = "SCHEDULED"

DUE_SOON_DAYS = 7
MONTHS_PER_YEAR = 12

# Windows offered by the subscriptions list filter
DAY_FILTERS = (7, 30, 90)


def _as_date(now) -> date:
    if isinstance(now, datetime):
        return now.date()
    return now


def days_until_renewal(sub: Subscription, now) -> Optional[int]:
    """
    Whole calendar days from `now` to the renewal date.

    Negative when overdue, 0 on the renewal day at any time of day,
    None when the subscription has no renewal date.
    """
    if sub.renewal_date is None:
        return None
    return (sub.renewal_date - _as_date(now)).days


def renewal_bucket(days_until: Optional[int]) -> Optional[str]:
    """0 -> TODAY, 1..7 -> DUE_SOON (7 inclusive)."""
    if days_until is None:
        return None
    if days_until < 0:
        return BUCKET_OVERDUE
    if days_until == 0:
        return BUCKET_TODAY
    if days_until <= DUE_SOON_DAYS:
        return BUCKET_DUE_SOON
    return BUCKET_SCHEDULED


def monthly_equivalent(sub: Subscription) -> Decimal:
    if sub.cycle == CYCLE_YEARLY:
        return sub.price / MONTHS_PER_YEAR
    return sub.price


def yearly_equivalent(sub: Subscription) -> Decimal:
    if sub.cycle == CYCLE_MONTHLY:
        return sub.price * MONTHS_PER_YEAR
    return sub.price


def total_monthly(subs: Iterable[Subscription]) -> Decimal:
    return sum((monthly_equivalent(s) for s in subs), Decimal("0"))


def total_yearly(subs: Iterable[Subscription]) -> Decimal:
    return sum((yearly_equivalent(s) for s in subs), Decimal("0"))


def category_of(sub: Subscription) -> str:
    """Aggregation key; blank categories fall into UNCATEGORIZED."""
    if sub.category and sub.category.strip():
        return sub.category
    return UNCATEGORIZED


def aggregate_by_category(subs: Iterable[Subscription]) -> Dict[str, Decimal]:
    """
    Monthly-equivalent spend per category, in first-seen category order.
    """
    totals: Dict[str, Decimal] = {}
    for sub in subs:
        key = category_of(sub)
        totals[key] = totals.get(key, Decimal("0")) + monthly_equivalent(sub)
    return totals


def upcoming_within(subs: Sequence[Subscription], days: int, now) -> List[Subscription]:
    """
    Subscriptions renewing in [0, days] days, soonest first.

    The sort is stable so equal dates keep input order; callers that
    take the first K entries get the same K on every call.
    """
    window = []
    for sub in subs:
        d = days_until_renewal(sub, now)
        if d is not None and 0 <= d <= days:
            window.append(sub)
    return sorted(window, key=lambda s: s.renewal_date)


def sort_for_listing(subs: Iterable[Subscription]) -> List[Subscription]:
    """Renewal date ascending, records without a date last (stable)."""
    return sorted(
        subs,
        key=lambda s: (s.renewal_date is None, s.renewal_date or date.min),
    )


def filter_subscriptions(
    subs: Iterable[Subscription],
    now,
    search: Optional[str] = None,
    category: Optional[str] = None,
    days: Optional[int] = None,
) -> List[Subscription]:
    """
    Subscriptions list filters.

    search:   case-insensitive substring of the name
    category: exact match on the stored category
    days:     drop records renewing later than `days` from now; records
              without a renewal date are kept
    """
    needle = search.strip().lower() if search else ""
    result = []
    for sub in subs:
        if needle and needle not in sub.name.lower():
            continue
        if category and sub.category != category:
            continue
        if days is not None:
            d = days_until_renewal(sub, now)
            if d is not None and d > days:
                continue
        result.append(sub)
    return result


def categories(subs: Iterable[Subscription]) -> List[str]:
    """Distinct stored (non-empty) categories, first-seen order."""
    seen: List[str] = []
    for sub in subs:
        if sub.category and sub.category not in seen:
            seen.append(sub.category)
    return seen


def top_by_monthly_cost(subs: Iterable[Subscription], limit: int = 10) -> List[Subscription]:
    """Most expensive subscriptions by monthly equivalent."""
    return sorted(subs, key=monthly_equivalent, reverse=True)[:limit]


def renewal_label(sub: Subscription, now) -> Optional[str]:
    """Human-readable renewal status shown next to a subscription."""
    d = days_until_renewal(sub, now)
    if d is None:
        return None
    if d < 0:
        return "Overdue"
    if d == 0:
        return "Renews today"
    if d == 1:
        return "Renews tomorrow"
    if d <= DUE_SOON_DAYS:
        return f"Renews in {d} days"
    return f"Renews {sub.renewal_date.strftime('%b')} {sub.renewal_date.day}, {sub.renewal_date.year}"
