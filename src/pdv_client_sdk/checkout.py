from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Protocol

from .cart import Cart, CartTotals
from .error_mapper import rewrap
from .exceptions import ApiError, CheckoutInProgressError, SaleSubmissionError
from .idempotency import new_idempotency_keys
from .log import log_json
from .models_sales import SalePayload, SaleResult
from .payment_validation import ensure_checkout_allowed
from .telemetry import TelemetryLogger

logger = logging.getLogger(__name__)

CompletionCallback = Callable[[SalePayload, SaleResult], None]


class SaleSubmitter(Protocol):
    def submit_sale(self, payload: SalePayload, idempotency_key: str | None = None) -> SaleResult:
        ...


@dataclass(frozen=True)
class CheckoutResult:
    payload: SalePayload
    sale: SaleResult
    totals: CartTotals
    idempotency_key: str


class Checkout:
    """Submits the cart as a sale, once, and resets it only when the sale went through.

    Validation happens before any request. One submission may be in flight per
    cart; a concurrent ``submit`` is refused with ``CheckoutInProgressError``.
    After a failure the cart stays as it was; retrying without touching it
    reuses the idempotency key of the failed attempt, so a sale that did reach
    the service is not recorded twice.
    """

    def __init__(
        self,
        cart: Cart,
        sales: SaleSubmitter,
        *,
        on_complete: CompletionCallback | None = None,
        telemetry: TelemetryLogger | None = None,
    ) -> None:
        self.cart = cart
        self.sales = sales
        self.on_complete = on_complete
        self.telemetry = telemetry
        self._lock = threading.Lock()
        self._listeners: list[Callable[[SaleResult], None]] = []
        self._retry_key: tuple[int, str] | None = None

    @property
    def in_flight(self) -> bool:
        return self._lock.locked()

    def add_sale_completed_listener(self, listener: Callable[[SaleResult], None]) -> None:
        self._listeners.append(listener)

    def build_payload(self, totals: CartTotals | None = None) -> SalePayload:
        totals = totals or self.cart.compute_totals()
        return SalePayload(
            items=self.cart.sale_items(),
            total_value=totals.total,
            payment_method=self.cart.payment_method,
            customer_id=self.cart.customer_id,
        )

    def submit(self, on_complete: CompletionCallback | None = None) -> CheckoutResult:
        if not self._lock.acquire(blocking=False):
            raise CheckoutInProgressError()
        try:
            totals = ensure_checkout_allowed(self.cart)
            payload = self.build_payload(totals)
            revision = self.cart.revision
            key = self._idempotency_key(revision)
            started = time.monotonic()
            try:
                sale = self.sales.submit_sale(payload, idempotency_key=key)
            except Exception as exc:
                # the sale may have been stored; a retry of this cart must carry the same key
                self._retry_key = (revision, key)
                error = _as_submission_error(exc)
                self._record(False, started, error.code)
                log_json(
                    logger,
                    {"event": "sale_submission_failed", "code": error.code, "trace_id": error.trace_id},
                    level=logging.WARNING,
                )
                if error is exc:
                    raise
                raise error from exc

            self._retry_key = None
            self._record(True, started, None)
            callback = on_complete or self.on_complete
            try:
                if callback is not None:
                    callback(payload, sale)
            finally:
                self.cart.clear()
                self._notify_listeners(sale)
            return CheckoutResult(payload=payload, sale=sale, totals=totals, idempotency_key=key)
        finally:
            self._lock.release()

    def _notify_listeners(self, sale: SaleResult) -> None:
        for listener in list(self._listeners):
            try:
                listener(sale)
            except Exception:
                logger.exception("sale completed listener failed")

    def _idempotency_key(self, revision: int) -> str:
        if self._retry_key is not None and self._retry_key[0] == revision:
            return self._retry_key[1]
        return new_idempotency_keys().idempotency_key

    def _record(self, success: bool, started: float, error_code: str | None) -> None:
        if self.telemetry is None:
            return
        self.telemetry.record(
            category="checkout",
            name="sale_submitted",
            module="checkout",
            action="submit",
            success=success,
            error_code=error_code,
            duration_ms=int((time.monotonic() - started) * 1000),
            context={"lines": len(self.cart), "payment_method": self.cart.payment_method.value},
        )


def _as_submission_error(exc: Exception) -> SaleSubmissionError:
    if isinstance(exc, SaleSubmissionError):
        return exc
    if isinstance(exc, ApiError):
        return rewrap(exc, SaleSubmissionError)
    return SaleSubmissionError(
        code="SALE_SUBMISSION_FAILED",
        message=str(exc) or "Sale submission failed",
        details={"type": type(exc).__name__},
        trace_id=None,
        status_code=0,
    )
