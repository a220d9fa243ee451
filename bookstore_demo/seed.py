from __future__ import annotations

from decimal import Decimal

from bookstore_demo.models import CouponKind
from bookstore_demo.store import Store

DEFAULT_SHIPPING_KEY = "standard"

# (id, title, author, price, stock)
CATALOG = [
    (1, "The Great Gatsby", "F. Scott Fitzgerald", Decimal("12.99"), 5),
    (2, "To Kill a Mockingbird", "Harper Lee", Decimal("14.99"), 3),
    (3, "1984", "George Orwell", Decimal("13.99"), 0),
    (4, "Pride and Prejudice", "Jane Austen", Decimal("11.99"), 7),
    (5, "The Catcher in the Rye", "J.D. Salinger", Decimal("12.49"), 4),
    (6, "Brave New World", "Aldous Huxley", Decimal("13.49"), 2),
]

# (code, kind, value, minimum subtotal)
COUPONS = [
    ("SAVE10", CouponKind.PERCENTAGE, Decimal("10"), Decimal("0.00")),
    ("SAVE20", CouponKind.PERCENTAGE, Decimal("20"), Decimal("50.00")),
    ("FLAT5", CouponKind.FIXED, Decimal("5.00"), Decimal("20.00")),
    ("FREESHIP", CouponKind.FREE_SHIPPING, Decimal("0"), Decimal("25.00")),
]

# (key, display name, cost)
SHIPPING_OPTIONS = [
    (DEFAULT_SHIPPING_KEY, "Standard Shipping", Decimal("5.99")),
    ("express", "Express Shipping", Decimal("12.99")),
    ("overnight", "Overnight Shipping", Decimal("24.99")),
]


def seed_store(store: Store) -> Store:
    for item_id, title, author, price, stock in CATALOG:
        store.add_item(item_id, title=title, author=author, price=price, stock=stock)

    for code, kind, value, minimum in COUPONS:
        store.add_coupon(code, kind=kind, value=value, minimum_subtotal=minimum)

    for key, name, cost in SHIPPING_OPTIONS:
        store.add_shipping_option(key, display_name=name, cost=cost)

    return store
