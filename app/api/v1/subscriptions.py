"""
Subscriptions API endpoints
"""
from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, field_validator

from app.api.deps import get_loaded_store, get_store, get_today, require_identity, to_http_exception
from app.application.dashboard import subscription_item
from app.application.errors import SubscriptionError
from app.application.subscription_store import SubscriptionStore
from app.domain import renewals
from app.utils.money import format_money, round_money
from app.utils.validation import normalize_decimal_input


router = APIRouter(
    prefix="/api/v1/subscriptions",
    tags=["subscriptions"],
    dependencies=[Depends(require_identity)],
)


# === Request models ===

class CreateSubscriptionRequest(BaseModel):
    name: str
    price: str
    cycle: Literal["monthly", "yearly"] = "monthly"
    renewal_date: Optional[date] = None
    category: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("price", mode="before")
    @classmethod
    def price_as_text(cls, v) -> str:
        """Accept numbers and decimal commas, keep exact text for Decimal"""
        return normalize_decimal_input(str(v))


class UpdateSubscriptionRequest(BaseModel):
    name: Optional[str] = None
    price: Optional[str] = None
    cycle: Optional[Literal["monthly", "yearly"]] = None
    renewal_date: Optional[date] = None
    category: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("price", mode="before")
    @classmethod
    def price_as_text(cls, v) -> Optional[str]:
        return None if v is None else normalize_decimal_input(str(v))


# === Endpoints ===

@router.get("/")
def list_subscriptions(
    store: SubscriptionStore = Depends(get_loaded_store),
    today: date = Depends(get_today),
    search: Optional[str] = None,
    category: Optional[str] = None,
    days: Optional[int] = Query(default=None, description="7, 30 or 90"),
):
    """Current user's subscriptions with list filters and totals of the filtered set"""
    if days is not None and days not in renewals.DAY_FILTERS:
        raise HTTPException(status_code=400, detail="days must be one of 7, 30, 90")

    items = renewals.filter_subscriptions(store.list(), today, search=search, category=category, days=days)
    monthly = round_money(renewals.total_monthly(items))
    yearly = round_money(renewals.total_yearly(items))
    return {
        "count": len(items),
        "monthly_total": str(monthly),
        "monthly_total_formatted": format_money(monthly),
        "yearly_total": str(yearly),
        "yearly_total_formatted": format_money(yearly),
        "items": [subscription_item(s, today) for s in items],
    }


@router.get("/categories")
def list_categories(store: SubscriptionStore = Depends(get_loaded_store)):
    return renewals.categories(store.list())


@router.post("/", status_code=201)
def create_subscription(
    req: CreateSubscriptionRequest,
    store: SubscriptionStore = Depends(get_store),
    today: date = Depends(get_today),
):
    try:
        created = store.create(req.model_dump())
    except SubscriptionError as exc:
        raise to_http_exception(exc)
    return subscription_item(created, today)


@router.patch("/{sub_id}")
def update_subscription(
    sub_id: str,
    req: UpdateSubscriptionRequest,
    store: SubscriptionStore = Depends(get_store),
    today: date = Depends(get_today),
):
    try:
        updated = store.update(sub_id, req.model_dump(exclude_unset=True))
    except SubscriptionError as exc:
        raise to_http_exception(exc)
    return subscription_item(updated, today)


@router.delete("/{sub_id}")
def delete_subscription(sub_id: str, store: SubscriptionStore = Depends(get_store)):
    try:
        store.delete(sub_id)
    except SubscriptionError as exc:
        raise to_http_exception(exc)
    return {"success": True}
