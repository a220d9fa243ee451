from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from bookstore_demo.errors import InvalidCartTotal, NoSearchResults, PaymentDeclined, PurchaseInProgress
from bookstore_demo.models import (
    CartLine,
    CatalogItem,
    Order,
    PaymentOutcome,
    PriceBreakdown,
    PurchaseRequest,
    PurchaseResult,
)
from bookstore_demo.seed import DEFAULT_SHIPPING_KEY
from bookstore_demo.services import (
    DEFAULT_SUCCESS_RATE,
    CartService,
    CatalogService,
    InventoryService,
    NotificationService,
    PaymentService,
    PricingService,
)
from bookstore_demo.store import Store

SUCCESS_MESSAGE = "Purchase completed successfully!"
FAILURE_MESSAGE = "Purchase failed"


class PurchaseError(Exception):
    pass


class PurchaseState(str, Enum):
    SEARCHING = "searching"
    CARTING = "carting"
    PRICING = "pricing"
    PAYING = "paying"
    COMMITTING = "committing"
    NOTIFYING = "notifying"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(slots=True)
class PurchaseContext:
    """Всё, что шаги накапливают за одну попытку покупки."""

    request: PurchaseRequest
    purchase_id: int
    rollback_point: Dict[int, CartLine]
    state: Optional[PurchaseState] = None
    history: List[str] = field(default_factory=list)

    search_results: List[CatalogItem] = field(default_factory=list)
    cart: Dict[int, CartLine] = field(default_factory=dict)
    pricing: Optional[PriceBreakdown] = None
    payment: Optional[PaymentOutcome] = None
    stock_updates: Dict[int, int] = field(default_factory=dict)


class Step(ABC):
    state: PurchaseState

    def __init__(self, store: Store, ctx: PurchaseContext):
        self.store = store
        self.ctx = ctx

    @property
    def prefix(self) -> str:
        return f"[purchase={self.ctx.purchase_id}]"

    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    def execute(self) -> None: ...

    def compensate(self) -> None:
        self.store.log(f"{self.prefix} {self.name()} has no compensation")

    def run(self) -> None:
        self.store.log(f"{self.prefix} STEP {self.name()}")
        self.execute()
        self.store.log(f"{self.prefix} STEP {self.name()} OK")

    def run_compensation(self) -> None:
        self.store.log(f"{self.prefix} COMPENSATE {self.name()}")
        self.compensate()
        self.store.log(f"{self.prefix} COMPENSATE {self.name()} OK")


class SearchCatalog(Step):
    state = PurchaseState.SEARCHING

    def name(self) -> str:
        return "SearchCatalog"

    def execute(self) -> None:
        results = CatalogService(self.store).find_by_text(self.ctx.request.query)
        if not results:
            raise NoSearchResults("No books found matching your search")
        self.ctx.search_results = results
        self.store.log(f"{self.prefix} search found {len(results)} book(s)")


class FillCart(Step):
    state = PurchaseState.CARTING

    def name(self) -> str:
        return "FillCart"

    def execute(self) -> None:
        cart = CartService(self.store)
        # каждая попытка начинает с пустой корзины
        cart.reset()
        self.ctx.cart = cart.add(self.ctx.request.book_id, self.ctx.request.quantity)


class PriceCart(Step):
    state = PurchaseState.PRICING

    def name(self) -> str:
        return "PriceCart"

    def execute(self) -> None:
        req = self.ctx.request
        pricing = PricingService(self.store)
        if req.with_extras:
            breakdown = pricing.price(self.ctx.cart, req.coupon_code, req.shipping_key)
        else:
            breakdown = pricing.price_basic(self.ctx.cart)

        if breakdown.total <= 0:
            raise InvalidCartTotal("Invalid cart total")

        self.ctx.pricing = breakdown
        self.store.log(
            f"{self.prefix} pricing: subtotal={breakdown.subtotal} discount={breakdown.discount} "
            f"tax={breakdown.tax} shipping={breakdown.shipping_cost} total={breakdown.total}"
        )


class ChargePayment(Step):
    state = PurchaseState.PAYING

    def __init__(self, store: Store, ctx: PurchaseContext, payments: PaymentService):
        super().__init__(store, ctx)
        self.payments = payments

    def name(self) -> str:
        return "ChargePayment"

    def execute(self) -> None:
        outcome = self.payments.charge(self.ctx.pricing.total, self.ctx.request.payment_method)
        self.ctx.payment = outcome
        if not outcome.accepted:
            raise PaymentDeclined("Payment processing failed. Please try again.")

    def compensate(self) -> None:
        if self.ctx.payment and self.ctx.payment.accepted:
            self.payments.void(self.ctx.payment.transaction_id)


class CommitInventory(Step):
    state = PurchaseState.COMMITTING

    def name(self) -> str:
        return "CommitInventory"

    def execute(self) -> None:
        self.ctx.stock_updates = InventoryService(self.store).commit(self.ctx.cart)


class PurchaseOrchestrator:
    """
    Одна покупка = одна атомарная транзакция:
    поиск -> корзина -> расчёт -> оплата -> списание со склада -> (письмо).

    Любая ошибка до конца списания переводит попытку в FAILED: выполненные шаги
    компенсируются в обратном порядке, корзина возвращается к точке отката,
    остатки на складе не меняются. Исключения наружу не выходят.
    """

    def __init__(self, store: Store, rng: Optional[Any] = None, success_rate: float = DEFAULT_SUCCESS_RATE):
        self.store = store
        self.cart = CartService(store)
        self.payments = PaymentService(store, rng=rng, success_rate=success_rate)
        self.notifications = NotificationService(store)

    def complete_purchase(
        self,
        query: str,
        book_id: int,
        quantity: int,
        payment_method: str,
        fail_at_step: Optional[str] = None,
    ) -> PurchaseResult:
        req = PurchaseRequest(query=query, book_id=book_id, quantity=quantity, payment_method=payment_method)
        return self.execute(req, fail_at_step=fail_at_step)

    def complete_purchase_with_extras(
        self,
        query: str,
        book_id: int,
        quantity: int,
        payment_method: str,
        coupon_code: Optional[str] = None,
        shipping_key: Optional[str] = DEFAULT_SHIPPING_KEY,
        email: Optional[str] = None,
        fail_at_step: Optional[str] = None,
    ) -> PurchaseResult:
        req = PurchaseRequest(
            query=query,
            book_id=book_id,
            quantity=quantity,
            payment_method=payment_method,
            coupon_code=coupon_code,
            shipping_key=shipping_key,
            email=email,
            with_extras=True,
        )
        return self.execute(req, fail_at_step=fail_at_step)

    def execute(self, req: PurchaseRequest, fail_at_step: Optional[str] = None) -> PurchaseResult:
        if not self.store.purchase_lock.acquire(blocking=False):
            error = PurchaseInProgress("Another purchase is already in progress")
            self.store.log(f"purchase rejected: {error}")
            return PurchaseResult(
                success=False,
                message=FAILURE_MESSAGE,
                state=PurchaseState.FAILED.value,
                error=str(error),
            )
        try:
            return self._execute(req, fail_at_step)
        finally:
            self.store.purchase_lock.release()

    def _build_steps(self, ctx: PurchaseContext) -> List[Step]:
        return [
            SearchCatalog(self.store, ctx),
            FillCart(self.store, ctx),
            PriceCart(self.store, ctx),
            ChargePayment(self.store, ctx, self.payments),
            CommitInventory(self.store, ctx),
        ]

    def _transition(self, ctx: PurchaseContext, state: PurchaseState) -> None:
        ctx.state = state
        ctx.history.append(state.value)
        self.store.log(f"[purchase={ctx.purchase_id}] STATE {state.value}")

    def _execute(self, req: PurchaseRequest, fail_at_step: Optional[str]) -> PurchaseResult:
        ctx = PurchaseContext(
            request=req,
            purchase_id=self.store.next_sequence(),
            rollback_point=self.cart.snapshot(),
        )
        prefix = f"[purchase={ctx.purchase_id}]"
        self.store.log(
            f"{prefix} PURCHASE START query={req.query!r} book={req.book_id} qty={req.quantity} "
            f"method={req.payment_method} coupon={req.coupon_code} shipping={req.shipping_key}"
        )

        completed: List[Step] = []
        try:
            for step in self._build_steps(ctx):
                self._transition(ctx, step.state)
                if fail_at_step == step.name():
                    raise PurchaseError(f"Artificial failure at step {step.name()}")
                step.run()
                completed.append(step)
        except Exception as e:
            return self._fail(ctx, e, completed)

        order = Order(
            order_id=f"ORD-{uuid4().hex[:12].upper()}",
            transaction_id=ctx.payment.transaction_id,
            lines=ctx.cart,
            pricing=ctx.pricing,
            updated_stock_levels=ctx.stock_updates,
        )

        if req.email is not None:
            self._transition(ctx, PurchaseState.NOTIFYING)
            outcome = self.notifications.notify(req.email, f"Order confirmation {order.order_id}", _email_payload(order))
            order.email_sent = outcome.sent
            order.email_id = outcome.email_id

        self.cart.reset()
        self._transition(ctx, PurchaseState.SUCCEEDED)
        self.store.log(f"{prefix} PURCHASE OK order={order.order_id} total={order.total}")
        return PurchaseResult(
            success=True,
            message=SUCCESS_MESSAGE,
            state=ctx.state.value,
            order=order,
            history=list(ctx.history),
        )

    def _fail(self, ctx: PurchaseContext, error: Exception, completed: List[Step]) -> PurchaseResult:
        prefix = f"[purchase={ctx.purchase_id}]"
        failed_in = ctx.state.value if ctx.state else None
        self._transition(ctx, PurchaseState.FAILED)
        self.store.log(f"{prefix} PURCHASE FAILED in {failed_in}: {error}")

        for step in reversed(completed):
            try:
                step.run_compensation()
            except Exception as comp_exc:
                self.store.log(f"{prefix} COMPENSATION FAILED at {step.name()}: {comp_exc}")

        self.cart.restore(ctx.rollback_point)
        self.store.log(f"{prefix} PURCHASE END (failed)")
        return PurchaseResult(
            success=False,
            message=FAILURE_MESSAGE,
            state=ctx.state.value,
            error=str(error),
            history=list(ctx.history),
        )


def _email_payload(order: Order) -> Dict[str, Any]:
    return {
        "order_id": order.order_id,
        "transaction_id": order.transaction_id,
        "items": [
            {"book_id": item_id, "title": line.item.title, "quantity": line.quantity, "unit_price": str(line.item.unit_price)}
            for item_id, line in order.lines.items()
        ],
        "shipping": order.pricing.shipping_method_name,
        "total": str(order.total),
    }
