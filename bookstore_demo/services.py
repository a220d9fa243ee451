from __future__ import annotations

import copy
import random
import time
from dataclasses import replace
from types import MappingProxyType
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Mapping, Optional
from uuid import uuid4

from bookstore_demo.errors import (
    InsufficientStock,
    InvalidAmount,
    InvalidQuantity,
    InvalidRecipient,
    NotFound,
    UnsupportedMethod,
)
from bookstore_demo.models import (
    CartLine,
    CatalogItem,
    CouponKind,
    CouponResult,
    EmailOutcome,
    EmailRecord,
    PaymentOutcome,
    PriceBreakdown,
)
from bookstore_demo.seed import DEFAULT_SHIPPING_KEY
from bookstore_demo.store import Store

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

DEFAULT_TAX_RATE = Decimal("0.10")
DEFAULT_SUCCESS_RATE = 0.8
ALLOWED_PAYMENT_METHODS = ("credit", "debit", "paypal")


def round2(value) -> Decimal:
    """Округление денежной суммы до копеек, половина вверх."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def copy_cart(cart: Mapping[int, CartLine]) -> Dict[int, CartLine]:
    return {item_id: CartLine(item=replace(line.item), quantity=line.quantity) for item_id, line in cart.items()}


class CatalogService:
    def __init__(self, store: Store):
        self.store = store

    def find_by_text(self, query: Any) -> List[CatalogItem]:
        if not query or not isinstance(query, str):
            return []
        needle = query.lower()
        return [
            replace(item)
            for item in self.store.items.values()
            if needle in item.title.lower() or needle in item.author.lower()
        ]

    def find_by_id(self, item_id: int) -> Optional[CatalogItem]:
        item = self.store.items.get(item_id)
        return replace(item) if item is not None else None

    def get(self, item_id: int) -> CatalogItem:
        item = self.find_by_id(item_id)
        if item is None:
            raise NotFound(f"Book with ID {item_id} not found")
        return item


class CartService:
    def __init__(self, store: Store):
        self.store = store
        self.catalog = CatalogService(store)

    def add(self, item_id: int, quantity: int) -> Dict[int, CartLine]:
        item = self.catalog.get(item_id)

        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise InvalidQuantity("Quantity must be greater than 0")

        line = self.store.cart.get(item.id)
        in_cart = line.quantity if line else 0
        # проверяем по живому остатку, а не по снимку в корзине
        available = max(self.store.items[item.id].stock - in_cart, 0)
        if quantity > available:
            raise InsufficientStock(f"Only {available} copies available", available=available)

        if line:
            self.store.cart[item.id] = CartLine(item=line.item, quantity=in_cart + quantity)
        else:
            self.store.cart[item.id] = CartLine(item=item, quantity=quantity)
        self.store.log(f"cart: added book={item.id} qty={quantity} (in cart={in_cart + quantity})")
        return self.get_cart()

    def get_cart(self) -> Dict[int, CartLine]:
        return copy_cart(self.store.cart)

    def reset(self) -> None:
        self.store.reset_cart()

    def snapshot(self) -> Dict[int, CartLine]:
        return self.get_cart()

    def restore(self, snapshot: Mapping[int, CartLine]) -> None:
        self.store.cart = copy_cart(snapshot)


class CouponService:
    def __init__(self, store: Store):
        self.store = store

    def apply_coupon(self, code: Optional[str], subtotal: Decimal) -> CouponResult:
        if not code:
            return CouponResult(valid=False, discount=ZERO, message="no coupon provided")

        coupon = self.store.coupons.get(str(code).strip().upper())
        if coupon is None:
            return CouponResult(valid=False, discount=ZERO, message="invalid coupon code")

        subtotal = round2(subtotal)
        if subtotal < coupon.minimum_subtotal:
            return CouponResult(
                valid=False,
                discount=ZERO,
                kind=coupon.kind,
                message=f"minimum subtotal of ${coupon.minimum_subtotal:.2f} required for coupon {coupon.code}",
            )

        if coupon.kind is CouponKind.PERCENTAGE:
            discount = round2(subtotal * coupon.value / Decimal(100))
            message = f"coupon {coupon.code} applied: {coupon.value}% off"
        elif coupon.kind is CouponKind.FIXED:
            discount = min(round2(coupon.value), subtotal)
            message = f"coupon {coupon.code} applied: ${coupon.value:.2f} off"
        else:
            discount = ZERO
            message = f"coupon {coupon.code} applied: free shipping"

        return CouponResult(
            valid=True,
            discount=discount,
            kind=coupon.kind,
            free_shipping=coupon.kind is CouponKind.FREE_SHIPPING,
            message=message,
        )


class PricingService:
    """
    Расчёт стоимости корзины.

    Порядок шагов важен для воспроизводимого округления: каждая сумма
    округляется сразу в момент вычисления.
    """

    def __init__(self, store: Store, tax_rate: Decimal = DEFAULT_TAX_RATE):
        self.store = store
        self.tax_rate = tax_rate
        self.coupons = CouponService(store)

    def subtotal(self, cart: Mapping[int, CartLine]) -> Decimal:
        return round2(sum((line.line_total for line in cart.values()), ZERO))

    def calculate_total(self, cart: Optional[Mapping[int, CartLine]]) -> Decimal:
        return self.price_basic(cart).total

    def price_basic(self, cart: Optional[Mapping[int, CartLine]]) -> PriceBreakdown:
        if not cart:
            return PriceBreakdown.zero()

        subtotal = self.subtotal(cart)
        tax = round2(subtotal * self.tax_rate)
        return PriceBreakdown(
            subtotal=subtotal,
            discount=ZERO,
            tax=tax,
            shipping_cost=ZERO,
            shipping_method_name=None,
            total=round2(subtotal + tax),
        )

    def price(
        self,
        cart: Optional[Mapping[int, CartLine]],
        coupon_code: Optional[str] = None,
        shipping_key: Optional[str] = DEFAULT_SHIPPING_KEY,
    ) -> PriceBreakdown:
        if not cart:
            return PriceBreakdown.zero()

        subtotal = self.subtotal(cart)
        coupon = self.coupons.apply_coupon(coupon_code, subtotal)
        discount = coupon.discount if coupon.valid else ZERO
        after_discount = subtotal - discount
        tax = round2(after_discount * self.tax_rate)

        shipping = None
        if isinstance(shipping_key, str):
            shipping = self.store.shipping_options.get(shipping_key)
        if shipping is None:
            shipping = self.store.shipping_options[DEFAULT_SHIPPING_KEY]
        shipping_cost = ZERO if coupon.free_shipping else shipping.cost

        return PriceBreakdown(
            subtotal=subtotal,
            discount=discount,
            tax=tax,
            shipping_cost=shipping_cost,
            shipping_method_name=shipping.display_name,
            total=round2(after_discount + tax + shipping_cost),
            coupon_applied=coupon.valid,
            coupon_message=coupon.message,
        )

    def calculate_total_with_extras(
        self,
        cart: Optional[Mapping[int, CartLine]],
        coupon_code: Optional[str] = None,
        shipping_key: Optional[str] = DEFAULT_SHIPPING_KEY,
    ) -> PriceBreakdown:
        return self.price(cart, coupon_code, shipping_key)


class PaymentService:
    """
    Имитация платёжного шлюза.

    rng — любой объект с методом random(); по умолчанию свой random.Random(),
    в тестах подменяется детерминированной заглушкой.
    """

    def __init__(self, store: Store, rng: Optional[Any] = None, success_rate: float = DEFAULT_SUCCESS_RATE):
        self.store = store
        self.rng = rng if rng is not None else random.Random()
        self.success_rate = success_rate

    def charge(self, amount: Decimal, method: str) -> PaymentOutcome:
        if amount is None or amount <= 0:
            raise InvalidAmount(f"Invalid payment amount: {amount}")
        if method not in ALLOWED_PAYMENT_METHODS:
            raise UnsupportedMethod("Invalid payment method")

        if self.rng.random() >= self.success_rate:
            self.store.log(f"payment declined: amount={amount} method={method}")
            return PaymentOutcome(accepted=False, amount=amount, method=method)

        transaction_id = self._new_transaction_id()
        self.store.log(f"payment accepted: amount={amount} method={method} txn={transaction_id}")
        return PaymentOutcome(accepted=True, amount=amount, method=method, transaction_id=transaction_id)

    def void(self, transaction_id: str) -> None:
        self.store.voided_transactions.append(transaction_id)
        self.store.log(f"payment voided: txn={transaction_id}")

    def _new_transaction_id(self) -> str:
        # счётчик сессии исключает совпадение даже при одинаковом time_ns
        return f"TXN-{time.time_ns()}-{self.store.next_sequence()}-{uuid4().hex[:9].upper()}"


class InventoryService:
    def __init__(self, store: Store):
        self.store = store

    def commit(self, cart: Mapping[int, CartLine]) -> Dict[int, int]:
        """
        Списание в две фазы: сначала все строки проверяются по живому остатку,
        затем списываются все сразу. Либо проходят все строки, либо ни одна.
        """
        with self.store.inventory_lock:
            for item_id, line in cart.items():
                item = self.store.items.get(item_id)
                if item is None:
                    raise NotFound(f"Book with ID {item_id} not found in inventory")
                if line.quantity <= 0:
                    raise InvalidQuantity("Quantity must be greater than 0")
                if item.stock < line.quantity:
                    raise InsufficientStock(
                        f'Insufficient stock for "{item.title}". Available: {item.stock}, Requested: {line.quantity}',
                        available=item.stock,
                    )

            updates: Dict[int, int] = {}
            for item_id, line in cart.items():
                item = self.store.items[item_id]
                item.stock -= line.quantity
                updates[item_id] = item.stock
                self.store.log(f"inventory committed: book={item_id} qty={line.quantity} (stock={item.stock})")

        return updates


class NotificationService:
    def __init__(self, store: Store):
        self.store = store

    def notify(self, recipient: Any, subject: str, payload: Mapping[str, Any]) -> EmailOutcome:
        try:
            self._validate_recipient(recipient)
        except InvalidRecipient as e:
            self.store.log(f"email not sent: {e}")
            return EmailOutcome(sent=False, error=str(e))

        record = EmailRecord(
            id=str(uuid4()),
            recipient=recipient,
            subject=subject,
            payload=MappingProxyType(copy.deepcopy(dict(payload))),
            timestamp=datetime.now(timezone.utc).isoformat(),
        )
        self.store.email_log.append(record)
        self.store.log(f"email sent: id={record.id} to={recipient} subject={subject!r}")
        return EmailOutcome(sent=True, email_id=record.id)

    def get_email_log(self) -> List[EmailRecord]:
        # записи не меняются после добавления: отдаём копии с read-only payload
        return [
            replace(record, payload=MappingProxyType(copy.deepcopy(dict(record.payload))))
            for record in self.store.email_log
        ]

    def clear_email_log(self) -> None:
        self.store.clear_email_log()

    @staticmethod
    def _validate_recipient(recipient: Any) -> None:
        if not isinstance(recipient, str) or "@" not in recipient:
            raise InvalidRecipient(f"Invalid email address: {recipient}")
