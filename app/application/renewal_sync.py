"""
Renewal sync — finds subscriptions renewing in the next N days across
all users (service role), grouped by user.

Runs from the cron-triggered endpoint POST /api/sync-renewals and,
when enabled, from the in-process scheduler. Notification delivery is
not wired yet: results are logged and returned.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, List

from app.application.remote import RenewalSource, raise_for_failure
from app.domain.renewals import upcoming_within
from app.domain.subscription import Subscription

logger = logging.getLogger(__name__)


@dataclass
class RenewalSyncReport:
    subscriptions: List[Subscription] = field(default_factory=list)
    by_user: Dict[str, List[Subscription]] = field(default_factory=dict)

    @property
    def count(self) -> int:
        return len(self.subscriptions)

    @property
    def users(self) -> int:
        return len(self.by_user)

    def to_dict(self) -> dict:
        return {
            "success": True,
            "count": self.count,
            "users": self.users,
            "subscriptions": [
                {
                    "id": s.id,
                    "name": s.name,
                    "renewal_date": s.renewal_date.isoformat(),
                    "price": str(s.price),
                }
                for s in self.subscriptions
            ],
        }


def sync_renewals(backend: RenewalSource, today: date, days: int = 7) -> RenewalSyncReport:
    """
    Collect renewals in [today, today + days].

    Raises:
        RemoteError / ConfigurationError: the query failed
    """
    rows, error = backend.select_renewing_between(today, today + timedelta(days=days))
    if error:
        logger.error("Error fetching subscriptions: %s", error.message)
        raise_for_failure(error)

    subs = upcoming_within([Subscription.from_row(r) for r in rows], days, today)

    by_user: Dict[str, List[Subscription]] = defaultdict(list)
    for sub in subs:
        by_user[sub.user_id].append(sub)

    logger.info("Found %d subscriptions renewing in the next %d days", len(subs), days)
    logger.info("Affected users: %d", len(by_user))
    return RenewalSyncReport(subscriptions=subs, by_user=dict(by_user))
