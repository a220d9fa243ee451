from __future__ import annotations


class CheckoutError(Exception):
    """Базовая ошибка валидации в конвейере покупки."""

    kind = "checkout_error"


class NotFound(CheckoutError):
    kind = "not_found"


class InvalidQuantity(CheckoutError):
    kind = "invalid_quantity"


class InsufficientStock(CheckoutError):
    kind = "insufficient_stock"

    def __init__(self, message: str, available: int):
        super().__init__(message)
        self.available = available


class InvalidAmount(CheckoutError):
    kind = "invalid_amount"


class UnsupportedMethod(CheckoutError):
    kind = "unsupported_method"


class InvalidRecipient(CheckoutError):
    kind = "invalid_recipient"


class NoSearchResults(CheckoutError):
    kind = "no_search_results"


class InvalidCartTotal(CheckoutError):
    kind = "invalid_cart_total"


class PaymentDeclined(CheckoutError):
    kind = "payment_declined"


class PurchaseInProgress(CheckoutError):
    kind = "purchase_in_progress"
