"""Tests for the two-phase inventory commit."""
import threading

import pytest

from bookstore_demo.errors import InsufficientStock, NotFound
from bookstore_demo.services import CartService, InventoryService


def test_commit_decrements_every_line(store):
    cart = CartService(store)
    cart.add(1, 2)
    snapshot = cart.add(4, 3)

    updates = InventoryService(store).commit(snapshot)

    assert updates == {1: 3, 4: 4}
    assert store.items[1].stock == 3
    assert store.items[4].stock == 4


def test_commit_revalidates_against_live_stock(store):
    cart = CartService(store)
    cart.add(1, 1)
    snapshot = cart.add(2, 3)

    # между добавлением в корзину и списанием кто-то забрал экземпляр
    store.items[2].stock = 2

    with pytest.raises(InsufficientStock, match='"To Kill a Mockingbird". Available: 2, Requested: 3') as exc_info:
        InventoryService(store).commit(snapshot)

    assert exc_info.value.available == 2
    # ни одна строка не списана, включая прошедшую проверку
    assert store.items[1].stock == 5
    assert store.items[2].stock == 2


def test_commit_unknown_item_changes_nothing(store):
    snapshot = CartService(store).add(1, 1)
    del store.items[1]
    store.items[4].stock = 7

    with pytest.raises(NotFound, match="not found in inventory"):
        InventoryService(store).commit(snapshot)

    assert store.items[4].stock == 7


def test_empty_cart_commit_is_a_no_op(store):
    assert InventoryService(store).commit({}) == {}


def test_commit_waits_for_inventory_lock(store):
    snapshot = CartService(store).add(1, 1)
    worker = threading.Thread(target=InventoryService(store).commit, args=(snapshot,))

    store.inventory_lock.acquire()
    try:
        worker.start()
        worker.join(timeout=0.2)
        assert worker.is_alive()
        assert store.items[1].stock == 5
    finally:
        store.inventory_lock.release()

    worker.join(timeout=5)
    assert not worker.is_alive()
    assert store.items[1].stock == 4


def test_reset_inventory_restores_seeded_stock(store):
    snapshot = CartService(store).add(6, 2)
    InventoryService(store).commit(snapshot)
    assert store.items[6].stock == 0

    store.reset_inventory()

    assert store.items[6].stock == 2
