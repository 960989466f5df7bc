from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ApiError(Exception):
    code: str
    message: str
    details: object | None
    trace_id: str | None
    status_code: int
    raw_payload: object | None = None

    def __str__(self) -> str:
        trace = f" trace_id={self.trace_id}" if self.trace_id else ""
        return f"[{self.status_code}] {self.code}: {self.message}{trace}"


class UnauthorizedError(ApiError):
    pass


class ForbiddenError(ApiError):
    pass


class NotFoundError(ApiError):
    pass


class ValidationError(ApiError):
    pass


class AuthError(UnauthorizedError):
    """Identity context rejected by the service."""


class PermissionError(ForbiddenError):
    """Employee permissions deny the action."""


class ConflictError(ApiError):
    """409 or conflict-style errors."""


class RateLimitError(ApiError):
    """429 throttling error."""


class ServerError(ApiError):
    """5xx server-side failures."""


class TransportError(ApiError):
    """Network/transport failure before an HTTP response was returned."""


class InvalidResponseError(ApiError):
    """The service answered 2xx with a body that is not the expected JSON."""


class SaleSubmissionError(ApiError):
    """The sales service refused or never received the sale. The cart is kept for retry."""


class CashRegisterApiError(ApiError):
    pass


class PdvError(Exception):
    """Raised locally, before any request is sent."""


class EmptyCartError(PdvError):
    def __init__(self, message: str = "Cart is empty") -> None:
        super().__init__(message)


class InsufficientPaymentError(PdvError):
    def __init__(self, total: object, tendered: object) -> None:
        self.total = total
        self.tendered = tendered
        super().__init__(f"Amount tendered {tendered} does not cover total {total}")


class InvalidAmountError(PdvError, ValueError):
    pass


class CheckoutInProgressError(PdvError):
    def __init__(self, message: str = "A sale submission is already in progress") -> None:
        super().__init__(message)


class CashRegisterTransitionError(PdvError):
    pass


class NoOpenSessionError(CashRegisterTransitionError):
    def __init__(self, message: str = "No open cash register session") -> None:
        super().__init__(message)


class ProductNotFoundError(PdvError):
    def __init__(self, barcode: str, cause: Exception | None = None) -> None:
        self.barcode = barcode
        self.cause = cause
        super().__init__(f"Product not found for barcode {barcode!r}")


class NoOpenSessionApiError(CashRegisterApiError, NoOpenSessionError):
    """The caixa service answered that no session is open."""


class CashRegisterConflictError(CashRegisterApiError, CashRegisterTransitionError):
    """The caixa service rejected an open/close transition (already open, already closed)."""
