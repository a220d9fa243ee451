from __future__ import annotations

import itertools
import logging
import threading
from decimal import Decimal
from typing import Dict, List

from bookstore_demo.models import CartLine, CatalogItem, Coupon, CouponKind, EmailRecord, ShippingOption

logger = logging.getLogger(__name__)


class Store:
    """
    Состояние одной сессии магазина в памяти.

    Храним:
    - каталог (меняется только поле stock, и только через InventoryService)
    - справочники купонов и способов доставки
    - единственную корзину сессии
    - журнал писем и список логов (для демонстрации и тестов)

    Корзина одна на Store: это упрощение, а не модель конкурентного доступа.
    """

    def __init__(self) -> None:
        self.items: Dict[int, CatalogItem] = {}
        self.coupons: Dict[str, Coupon] = {}
        self.shipping_options: Dict[str, ShippingOption] = {}

        self.cart: Dict[int, CartLine] = {}
        self.email_log: List[EmailRecord] = []
        self.voided_transactions: List[str] = []

        self.logs: List[str] = []

        self.inventory_lock = threading.Lock()
        self.purchase_lock = threading.Lock()

        self._seed_stock: Dict[int, int] = {}
        self._sequence = itertools.count(1)

    def log(self, message: str) -> None:
        self.logs.append(message)
        logger.info(message)

    def next_sequence(self) -> int:
        return next(self._sequence)

    # Seed helpers (удобно для тестов/демо)
    def add_item(self, item_id: int, title: str, author: str, price: Decimal, stock: int) -> None:
        if stock < 0:
            raise ValueError(f"Stock for item {item_id} must be >= 0")
        self.items[item_id] = CatalogItem(id=item_id, title=title, author=author, unit_price=price, stock=stock)
        self._seed_stock[item_id] = stock

    def add_coupon(self, code: str, kind: CouponKind, value: Decimal, minimum_subtotal: Decimal = Decimal("0.00")) -> None:
        self.coupons[code.upper()] = Coupon(code=code.upper(), kind=kind, value=value, minimum_subtotal=minimum_subtotal)

    def add_shipping_option(self, key: str, display_name: str, cost: Decimal) -> None:
        self.shipping_options[key] = ShippingOption(key=key, display_name=display_name, cost=cost)

    # Test/ops helpers
    def reset_cart(self) -> None:
        self.cart = {}

    def reset_inventory(self) -> None:
        for item_id, stock in self._seed_stock.items():
            self.items[item_id].stock = stock

    def clear_email_log(self) -> None:
        self.email_log.clear()
