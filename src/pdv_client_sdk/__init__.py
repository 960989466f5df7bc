from .cart import Cart, CartLine, CartTotals, parse_amount
from .cash_register import CashRegister, CashRegisterSnapshot, ClosingReport, RegisterState
from .cash_register_validation import (
    CashValidationError,
    CashValidationIssue,
    CashValidationResult,
    validate_close_payload,
    validate_movement_payload,
    validate_open_payload,
)
from .checkout import Checkout, CheckoutResult
from .config import ClientConfig, ConfigError, load_config
from .exceptions import (
    ApiError,
    CashRegisterApiError,
    CashRegisterTransitionError,
    CheckoutInProgressError,
    EmptyCartError,
    InsufficientPaymentError,
    InvalidAmountError,
    InvalidResponseError,
    NoOpenSessionError,
    NotFoundError,
    PdvError,
    ProductNotFoundError,
    SaleSubmissionError,
    TransportError,
    ValidationError,
)
from .history import HistorySummary, recent_movements, sessions_due_for_archival, summarize_history
from .http_client import HttpClient
from .idempotency import IdempotencyKeys, new_idempotency_keys
from .identity import IdentityContext, UserType
from .identity_store import IdentityStore
from .log import configure_logging
from .models_cash_register import CashRegisterSession, Movement, MovementType, SessionStatus
from .models_catalog import Product
from .models_sales import PaymentMethod, SaleItem, SalePayload, SaleResult
from .monitor import CashRegisterMonitor
from .payment_validation import validate_cart_payment
from .scanner import ScanOutcome, ScanPipeline, ScanResult, TerminalBellFeedback
from .session import ApiSession
from .telemetry import TelemetryLogger
from .tracing import TraceContext
from .ui_errors import UserFacingError, to_user_facing_error

__all__ = [
    "ApiError",
    "ApiSession",
    "Cart",
    "CartLine",
    "CartTotals",
    "CashRegister",
    "CashRegisterApiError",
    "CashRegisterMonitor",
    "CashRegisterSession",
    "CashRegisterSnapshot",
    "CashRegisterTransitionError",
    "CashValidationError",
    "CashValidationIssue",
    "CashValidationResult",
    "Checkout",
    "CheckoutInProgressError",
    "CheckoutResult",
    "ClientConfig",
    "ClosingReport",
    "ConfigError",
    "EmptyCartError",
    "HistorySummary",
    "HttpClient",
    "IdempotencyKeys",
    "IdentityContext",
    "IdentityStore",
    "InsufficientPaymentError",
    "InvalidAmountError",
    "InvalidResponseError",
    "Movement",
    "MovementType",
    "NoOpenSessionError",
    "NotFoundError",
    "PaymentMethod",
    "PdvError",
    "Product",
    "ProductNotFoundError",
    "RegisterState",
    "SaleItem",
    "SalePayload",
    "SaleResult",
    "SaleSubmissionError",
    "ScanOutcome",
    "ScanPipeline",
    "ScanResult",
    "SessionStatus",
    "TelemetryLogger",
    "TerminalBellFeedback",
    "TraceContext",
    "TransportError",
    "UserFacingError",
    "UserType",
    "ValidationError",
    "configure_logging",
    "load_config",
    "new_idempotency_keys",
    "parse_amount",
    "recent_movements",
    "sessions_due_for_archival",
    "summarize_history",
    "to_user_facing_error",
    "validate_cart_payment",
    "validate_close_payload",
    "validate_movement_payload",
    "validate_open_payload",
]
