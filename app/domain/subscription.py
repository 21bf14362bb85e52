"""
Subscription domain entity - the one record users track
"""
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from app.application.errors import ValidationError
from app.utils.validation import parse_iso_date, parse_price

# Billing cycles
CYCLE_MONTHLY = "monthly"
CYCLE_YEARLY = "yearly"
CYCLES = (CYCLE_MONTHLY, CYCLE_YEARLY)

# Aggregation bucket for records without a category (never stored)
UNCATEGORIZED = "Uncategorized"

EDITABLE_FIELDS = ("name", "price", "cycle", "renewal_date", "category", "notes")


@dataclass(frozen=True)
class Subscription:
    """
    A recurring subscription owned by exactly one user.

    `price` is denominated in the billing period given by `cycle`.
    `id` and `user_id` are assigned by the remote store and never edited.
    """
    id: str
    user_id: str
    name: str
    price: Decimal
    cycle: str
    renewal_date: Optional[date] = None
    category: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Subscription":
        """Build from a row dict as returned by the remote store."""
        return cls(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            name=row["name"],
            price=Decimal(str(row["price"])),
            cycle=row["cycle"],
            renewal_date=parse_iso_date(row.get("renewal_date")),
            category=row.get("category") or None,
            notes=row.get("notes") or None,
            created_at=row.get("created_at"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "price": str(self.price),
            "cycle": self.cycle,
            "renewal_date": self.renewal_date.isoformat() if self.renewal_date else None,
            "category": self.category,
            "notes": self.notes,
        }


def _optional_text(value) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def validate_subscription_data(data: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
    """
    Validate and normalize user input for a create (or, with partial=True,
    an update).

    Returns:
        Normalized payload: trimmed name, Decimal price, date object,
        None for blank category/notes.

    Raises:
        ValidationError: on the first invalid field
    """
    if not isinstance(data, dict):
        raise ValidationError("Subscription data must be a mapping")

    for key in ("id", "user_id"):
        if key in data:
            raise ValidationError(f"Field '{key}' cannot be set")
    unknown = set(data) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")

    if partial and not data:
        raise ValidationError("Nothing to update")

    clean: Dict[str, Any] = {}

    if "name" in data or not partial:
        raw_name = data.get("name")
        name = raw_name.strip() if isinstance(raw_name, str) else ""
        if not name:
            raise ValidationError("Name is required")
        clean["name"] = name

    if "price" in data or not partial:
        try:
            clean["price"] = parse_price(data.get("price"))
        except ValueError as exc:
            raise ValidationError(str(exc))

    if "cycle" in data or not partial:
        cycle = data.get("cycle", CYCLE_MONTHLY if not partial else None)
        if cycle not in CYCLES:
            raise ValidationError(f"Cycle must be one of: {', '.join(CYCLES)}")
        clean["cycle"] = cycle

    if "renewal_date" in data or not partial:
        try:
            clean["renewal_date"] = parse_iso_date(data.get("renewal_date"))
        except ValueError as exc:
            raise ValidationError(str(exc))

    if "category" in data or not partial:
        clean["category"] = _optional_text(data.get("category"))

    if "notes" in data or not partial:
        clean["notes"] = _optional_text(data.get("notes"))

    return clean
