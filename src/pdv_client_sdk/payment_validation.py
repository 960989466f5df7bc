from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from .cart import ZERO, Cart, CartTotals
from .exceptions import EmptyCartError, InsufficientPaymentError
from .models_sales import accepts_cash_tender


@dataclass(frozen=True)
class PaymentValidationIssue:
    field: str
    reason: str


@dataclass(frozen=True)
class PaymentValidationResult:
    ok: bool
    totals: CartTotals
    issues: list[PaymentValidationIssue]

    @property
    def missing_amount(self) -> Decimal:
        if self.totals.change is None or self.totals.change >= 0:
            return ZERO
        return -self.totals.change


def validate_cart_payment(cart: Cart) -> PaymentValidationResult:
    """Check the cart can be checked out without talking to any service."""
    totals = cart.compute_totals()
    issues: list[PaymentValidationIssue] = []
    if cart.is_empty:
        issues.append(PaymentValidationIssue(field="lines", reason="cart is empty"))
    if totals.total < 0:
        issues.append(PaymentValidationIssue(field="total", reason="total must not be negative"))
    if accepts_cash_tender(cart.payment_method) and cart.amount_tendered < totals.total:
        issues.append(
            PaymentValidationIssue(field="amount_tendered", reason="amount tendered does not cover total")
        )
    return PaymentValidationResult(ok=not issues, totals=totals, issues=issues)


def ensure_checkout_allowed(cart: Cart) -> CartTotals:
    """Raise the first blocking error for a checkout of ``cart``; return its totals otherwise."""
    result = validate_cart_payment(cart)
    if cart.is_empty:
        raise EmptyCartError()
    if any(issue.field == "amount_tendered" for issue in result.issues):
        raise InsufficientPaymentError(total=result.totals.total, tendered=cart.amount_tendered)
    return result.totals


def checkout_enabled(cart: Cart) -> bool:
    return validate_cart_payment(cart).ok
