"""
Unified money formatting for the whole project.

Usage:
    from app.utils.money import format_money, format_price

    format_money(Decimal("19.99"))           -> "$19.99"
    format_money(Decimal("1200"), "EUR")     -> "1,200.00 EUR"
    format_price(Decimal("120"), "yearly")   -> "$120.00/yr"
"""
from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")

_CURRENCY_PREFIX = {
    "USD": "$",
}

_CYCLE_SUFFIX = {
    "monthly": "mo",
    "yearly": "yr",
}


def round_money(amount) -> Decimal:
    """Round to 2 fraction digits (presentation precision), half-up."""
    if not isinstance(amount, Decimal):
        amount = Decimal(str(amount))
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(amount, currency: str = "USD") -> str:
    """
    Format an amount with thousands separators and 2 decimals.

    Known currencies get a symbol prefix, others an ISO-code suffix.
    """
    formatted = f"{round_money(amount):,.2f}"
    prefix = _CURRENCY_PREFIX.get(currency)
    if prefix:
        return f"{prefix}{formatted}"
    return f"{formatted} {currency}"


def format_price(amount, cycle: str, currency: str = "USD") -> str:
    """Price per billing period: "$9.99/mo"."""
    return f"{format_money(amount, currency)}/{_CYCLE_SUFFIX.get(cycle, 'mo')}"
