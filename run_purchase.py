from __future__ import annotations

import argparse
import logging
import random

from bookstore_demo.purchase import PurchaseOrchestrator
from bookstore_demo.seed import DEFAULT_SHIPPING_KEY, seed_store
from bookstore_demo.services import DEFAULT_SUCCESS_RATE
from bookstore_demo.store import Store


def main() -> None:
    # максимально простые логи без "шумных" префиксов
    logging.basicConfig(level=logging.INFO, format="%(message)s")

    p = argparse.ArgumentParser(description="Run one bookstore purchase and print logs.")
    p.add_argument("--query", type=str, default="gatsby")
    p.add_argument("--book-id", type=int, default=1)
    p.add_argument("--qty", type=int, default=1)
    p.add_argument("--method", type=str, default="credit", help="credit, debit или paypal")
    p.add_argument("--coupon", type=str, default=None)
    p.add_argument("--shipping", type=str, default=None, help=f"Способ доставки (по умолчанию {DEFAULT_SHIPPING_KEY})")
    p.add_argument("--email", type=str, default=None)
    p.add_argument("--seed", type=int, default=None, help="Seed для имитации платёжного шлюза")
    p.add_argument("--success-rate", type=float, default=DEFAULT_SUCCESS_RATE)
    p.add_argument("--fail-at", type=str, default=None, help="Имя шага для искусственного падения (например CommitInventory)")
    args = p.parse_args()

    store = seed_store(Store())
    orchestrator = PurchaseOrchestrator(store, rng=random.Random(args.seed), success_rate=args.success_rate)

    extended = args.coupon is not None or args.shipping is not None or args.email is not None
    if extended:
        result = orchestrator.complete_purchase_with_extras(
            args.query,
            args.book_id,
            args.qty,
            args.method,
            coupon_code=args.coupon,
            shipping_key=args.shipping or DEFAULT_SHIPPING_KEY,
            email=args.email,
            fail_at_step=args.fail_at,
        )
    else:
        result = orchestrator.complete_purchase(args.query, args.book_id, args.qty, args.method, fail_at_step=args.fail_at)

    print("\n=== RESULT ===")
    print("success:", result.success)
    print("message:", result.message)
    if result.error:
        print("error:", result.error)
    if result.order:
        print("order:", result.order.order_id)
        print("transaction:", result.order.transaction_id)
        print("pricing:", result.order.pricing)
        print("email sent:", result.order.email_sent)
    print("states:", " -> ".join(result.history))
    print("stock:", {item_id: item.stock for item_id, item in store.items.items()})


if __name__ == "__main__":
    main()
