"""Tests for coupon resolution and the pricing engine."""
from decimal import Decimal

import pytest

from bookstore_demo.models import CouponKind
from bookstore_demo.services import CartService, CouponService, PricingService, round2


@pytest.fixture
def pricing(store) -> PricingService:
    return PricingService(store)


@pytest.fixture
def gatsby_cart(store):
    return CartService(store).add(1, 1)


def test_round2_is_half_up():
    assert round2(Decimal("1.299")) == Decimal("1.30")
    assert round2(Decimal("0.125")) == Decimal("0.13")
    assert round2(Decimal("2.798")) == Decimal("2.80")


def test_basic_total_single_book(pricing, gatsby_cart):
    breakdown = pricing.price_basic(gatsby_cart)

    assert breakdown.subtotal == Decimal("12.99")
    assert breakdown.tax == Decimal("1.30")
    assert breakdown.shipping_cost == Decimal("0.00")
    assert breakdown.total == Decimal("14.29")
    assert pricing.calculate_total(gatsby_cart) == Decimal("14.29")


def test_basic_total_two_books(store, pricing):
    cart = CartService(store)
    cart.add(1, 1)
    snapshot = cart.add(2, 1)

    assert pricing.calculate_total(snapshot) == Decimal("30.78")


def test_standard_shipping_without_coupon(pricing, gatsby_cart):
    breakdown = pricing.price(gatsby_cart, None, "standard")

    assert breakdown.tax == Decimal("1.30")
    assert breakdown.shipping_cost == Decimal("5.99")
    assert breakdown.shipping_method_name == "Standard Shipping"
    assert breakdown.total == Decimal("20.28")
    assert breakdown.coupon_applied is False
    assert breakdown.coupon_message == "no coupon provided"


def test_percentage_coupon_with_standard_shipping(pricing, gatsby_cart):
    breakdown = pricing.calculate_total_with_extras(gatsby_cart, "SAVE10", "standard")

    assert breakdown.subtotal == Decimal("12.99")
    assert breakdown.discount == Decimal("1.30")
    assert breakdown.tax == Decimal("1.17")
    assert breakdown.total == Decimal("18.85")
    assert breakdown.coupon_applied is True


def test_unknown_shipping_key_falls_back_to_standard(pricing, gatsby_cart):
    breakdown = pricing.price(gatsby_cart, None, "teleport")

    assert breakdown.shipping_method_name == "Standard Shipping"
    assert breakdown.shipping_cost == Decimal("5.99")


def test_express_shipping(pricing, gatsby_cart):
    breakdown = pricing.price(gatsby_cart, None, "express")

    assert breakdown.shipping_cost == Decimal("12.99")
    assert breakdown.total == Decimal("27.28")


def test_free_shipping_coupon_zeroes_shipping(store, pricing):
    # 2 x 14.99 = 29.98, выше минимума FREESHIP
    cart = CartService(store).add(2, 2)

    breakdown = pricing.price(cart, "freeship", "overnight")

    assert breakdown.shipping_method_name == "Overnight Shipping"
    assert breakdown.shipping_cost == Decimal("0.00")
    assert breakdown.discount == Decimal("0.00")
    assert breakdown.total == Decimal("32.98")


def test_invalid_coupon_is_not_an_error(pricing, gatsby_cart):
    breakdown = pricing.price(gatsby_cart, "BOGUS", "standard")

    assert breakdown.coupon_applied is False
    assert breakdown.coupon_message == "invalid coupon code"
    assert breakdown.discount == Decimal("0.00")
    assert breakdown.total == Decimal("20.28")


@pytest.mark.parametrize("cart", [None, {}])
def test_empty_cart_prices_to_zero(pricing, cart):
    for breakdown in (pricing.price(cart, "SAVE10", "express"), pricing.price_basic(cart)):
        assert breakdown.subtotal == Decimal("0")
        assert breakdown.total == Decimal("0")
        assert breakdown.coupon_applied is False
    assert pricing.calculate_total(cart) == Decimal("0")


class TestApplyCoupon:
    def test_percentage(self, store):
        result = CouponService(store).apply_coupon("SAVE10", Decimal("100"))

        assert result.valid is True
        assert result.discount == Decimal("10")
        assert result.kind is CouponKind.PERCENTAGE
        assert result.free_shipping is False

    def test_minimum_not_met(self, store):
        result = CouponService(store).apply_coupon("SAVE20", Decimal("30"))

        assert result.valid is False
        assert result.discount == Decimal("0")
        assert "$50.00" in result.message

    def test_fixed(self, store):
        result = CouponService(store).apply_coupon("FLAT5", Decimal("30"))

        assert result.valid is True
        assert result.discount == Decimal("5")

    def test_free_shipping(self, store):
        result = CouponService(store).apply_coupon("FREESHIP", Decimal("50"))

        assert result.valid is True
        assert result.free_shipping is True
        assert result.discount == Decimal("0")

    def test_code_is_case_insensitive(self, store):
        assert CouponService(store).apply_coupon("save10", Decimal("100")).valid is True

    @pytest.mark.parametrize("code", [None, ""])
    def test_no_code(self, store, code):
        result = CouponService(store).apply_coupon(code, Decimal("100"))

        assert result.valid is False
        assert result.message == "no coupon provided"

    def test_unknown_code(self, store):
        result = CouponService(store).apply_coupon("NOPE", Decimal("100"))

        assert result.valid is False
        assert result.message == "invalid coupon code"


@pytest.mark.parametrize("shipping_key", [None, ["express"], 42])
def test_non_string_shipping_key_falls_back_to_standard(pricing, gatsby_cart, shipping_key):
    breakdown = pricing.price(gatsby_cart, None, shipping_key)

    assert breakdown.shipping_method_name == "Standard Shipping"
    assert breakdown.total == Decimal("20.28")
