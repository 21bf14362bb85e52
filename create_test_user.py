"""
Create test user (confirmed) with a couple of subscriptions
"""
from datetime import date, timedelta
from decimal import Decimal

from app.infrastructure.remote.sql_store import SqlBackend

EMAIL = "test@example.com"
PASSWORD = "test123456"

backend = SqlBackend.from_settings()
client = backend.client()

data, error = client.sign_up(EMAIL, PASSWORD)
if error:
    print(f"Sign up failed: {error.message}")
    data, error = client.sign_in(EMAIL, PASSWORD)
    if error:
        raise SystemExit(f"Sign in failed: {error.message}")
elif data["session"] is None:
    raise SystemExit("Email confirmation is enabled; confirm the account before seeding")

user_id = data["user"].user_id
today = date.today()
for name, price, cycle, days, category in [
    ("Netflix", "15.49", "monthly", 3, "Streaming"),
    ("iCloud+", "2.99", "monthly", 12, "Storage"),
    ("Domain renewal", "120", "yearly", 40, None),
]:
    _, error = client.insert_subscription({
        "user_id": user_id,
        "name": name,
        "price": Decimal(price),
        "cycle": cycle,
        "renewal_date": today + timedelta(days=days),
        "category": category,
    })
    if error:
        print(f"  ✗ {name}: {error.message}")
    else:
        print(f"  ✓ {name}")

client.close()
print("Test user:")
print(f"  Email: {EMAIL}")
print(f"  Password: {PASSWORD}")
