"""Pytest fixtures for the bookstore checkout demo."""

import pytest

from bookstore_demo.purchase import PurchaseOrchestrator
from bookstore_demo.seed import seed_store
from bookstore_demo.store import Store


class FixedRandom:
    """Stands in for random.Random: always returns the same draw."""

    def __init__(self, value: float):
        self.value = value
        self.calls = 0

    def random(self) -> float:
        self.calls += 1
        return self.value


@pytest.fixture
def store() -> Store:
    # 1: Gatsby (5), 2: Mockingbird (3), 3: 1984 (0, out of stock),
    # 4: Pride and Prejudice (7), 5: Catcher (4), 6: Brave New World (2)
    return seed_store(Store())


@pytest.fixture
def approving_rng() -> FixedRandom:
    return FixedRandom(0.0)


@pytest.fixture
def declining_rng() -> FixedRandom:
    return FixedRandom(0.99)


@pytest.fixture
def orchestrator(store, approving_rng) -> PurchaseOrchestrator:
    return PurchaseOrchestrator(store, rng=approving_rng)


@pytest.fixture
def declining_orchestrator(store, declining_rng) -> PurchaseOrchestrator:
    return PurchaseOrchestrator(store, rng=declining_rng)
