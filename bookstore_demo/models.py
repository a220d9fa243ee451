from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional


@dataclass(slots=True)
class CatalogItem:
    id: int
    title: str
    author: str
    unit_price: Decimal
    stock: int


@dataclass(frozen=True, slots=True)
class CartLine:
    item: CatalogItem
    quantity: int

    @property
    def line_total(self) -> Decimal:
        return self.item.unit_price * Decimal(self.quantity)


class CouponKind(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"
    FREE_SHIPPING = "free_shipping"


@dataclass(frozen=True, slots=True)
class Coupon:
    code: str
    kind: CouponKind
    value: Decimal
    minimum_subtotal: Decimal = Decimal("0.00")


@dataclass(frozen=True, slots=True)
class ShippingOption:
    key: str
    display_name: str
    cost: Decimal


@dataclass(slots=True)
class CouponResult:
    valid: bool
    discount: Decimal
    message: str
    kind: Optional[CouponKind] = None
    free_shipping: bool = False


@dataclass(slots=True)
class PriceBreakdown:
    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    shipping_cost: Decimal
    shipping_method_name: Optional[str]
    total: Decimal
    coupon_applied: bool = False
    coupon_message: str = "no coupon provided"

    @classmethod
    def zero(cls, coupon_message: str = "no coupon provided") -> "PriceBreakdown":
        zero = Decimal("0.00")
        return cls(
            subtotal=zero,
            discount=zero,
            tax=zero,
            shipping_cost=zero,
            shipping_method_name=None,
            total=zero,
            coupon_applied=False,
            coupon_message=coupon_message,
        )


@dataclass(slots=True)
class PaymentOutcome:
    accepted: bool
    amount: Decimal
    method: str
    transaction_id: Optional[str] = None


@dataclass(frozen=True, slots=True)
class EmailRecord:
    id: str
    recipient: str
    subject: str
    payload: Mapping[str, Any]
    timestamp: str
    status: str = "sent"


@dataclass(slots=True)
class EmailOutcome:
    sent: bool
    email_id: Optional[str] = None
    error: Optional[str] = None


@dataclass(slots=True)
class Order:
    order_id: str
    transaction_id: str
    lines: Dict[int, CartLine]
    pricing: PriceBreakdown
    updated_stock_levels: Dict[int, int]
    email_sent: bool = False
    email_id: Optional[str] = None

    @property
    def total(self) -> Decimal:
        return self.pricing.total


@dataclass(slots=True)
class PurchaseRequest:
    """
    Входные данные одной попытки покупки.

    with_extras=False: базовый расчёт (только налог), без купона, доставки и письма.
    """

    query: str
    book_id: int
    quantity: int
    payment_method: str
    coupon_code: Optional[str] = None
    shipping_key: Optional[str] = None
    email: Optional[str] = None
    with_extras: bool = False


@dataclass(slots=True)
class PurchaseResult:
    success: bool
    message: str
    state: str
    error: Optional[str] = None
    order: Optional[Order] = None
    history: List[str] = field(default_factory=list)
