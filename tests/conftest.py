from __future__ import annotations

import sys
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any

import pytest

BASE_DIR = Path(__file__).resolve().parents[1]
SDK_SRC = BASE_DIR / "src"

sys.path.insert(0, str(SDK_SRC))

from pdv_client_sdk.config import ClientConfig  # noqa: E402
from pdv_client_sdk.exceptions import NoOpenSessionApiError  # noqa: E402
from pdv_client_sdk.http_client import HttpClient  # noqa: E402
from pdv_client_sdk.identity import IdentityContext, UserType  # noqa: E402
from pdv_client_sdk.models_cash_register import (  # noqa: E402
    CashRegisterSession,
    Movement,
    MovementType,
    SessionStatus,
)
from pdv_client_sdk.models_catalog import Product  # noqa: E402
from pdv_client_sdk.models_sales import SalePayload, SaleResult  # noqa: E402
from pdv_client_sdk.tracing import TraceContext  # noqa: E402

BASE_URL = "https://pdv.example.com"


def make_product(barcode: str = "7891000100103", price: str = "10.00", stock: int = 5, **extra: Any) -> Product:
    return Product(id=extra.pop("id", barcode[-3:]), name=extra.pop("name", f"Produto {barcode}"), barcode=barcode, price=Decimal(price), stock=stock, **extra)


@pytest.fixture
def config() -> ClientConfig:
    return ClientConfig(env_name="test", api_base_url=BASE_URL, retries=0, retry_backoff_seconds=0)


@pytest.fixture
def http(config: ClientConfig) -> HttpClient:
    return HttpClient(config, trace=TraceContext())


@pytest.fixture
def owner() -> IdentityContext:
    return IdentityContext(user_id="user-1", user_type=UserType.OWNER, access_token="token-1")


@pytest.fixture
def employee() -> IdentityContext:
    return IdentityContext(user_id="func-7", user_type=UserType.EMPLOYEE, account_id="user-1")


@dataclass
class FakeSales:
    """Records submissions; ``fail_with`` makes the next calls raise."""

    fail_with: Exception | None = None
    calls: list[tuple[SalePayload, str | None]] = field(default_factory=list)

    def submit_sale(self, payload: SalePayload, idempotency_key: str | None = None) -> SaleResult:
        self.calls.append((payload, idempotency_key))
        if self.fail_with is not None:
            raise self.fail_with
        return SaleResult(
            id=len(self.calls),
            total_value=payload.total_value,
            quantity_sold=sum(item.quantity for item in payload.items),
            payment_method=payload.payment_method.value,
            customer_id=payload.customer_id,
        )


@dataclass
class FakeCashRegisterService:
    """In-memory caixa service that aggregates totals the way the real one does."""

    open_session: CashRegisterSession | None = None
    movements: list[Movement] = field(default_factory=list)
    archived: list[Any] = field(default_factory=list)
    calls: list[str] = field(default_factory=list)
    next_id: int = 1

    def get_open_cash_register(self, *, use_get_cache: bool = True, context_key: str | None = None, context_version: int | None = None):
        self.calls.append("get_open")
        return self.open_session

    def list_movements(self, session_id, *, use_get_cache: bool = True, context_key: str | None = None, context_version: int | None = None):
        self.calls.append("list_movements")
        return [movement for movement in self.movements if movement.session_id == session_id]

    def open_cash_register(self, opening_balance: Decimal, notes: str | None = None, idempotency_key: str | None = None):
        self.calls.append("open")
        self.open_session = CashRegisterSession(
            id=self.next_id,
            opening_balance=opening_balance,
            opening_notes=notes,
            status=SessionStatus.OPEN,
        )
        self.next_id += 1
        return self.open_session

    def close_cash_register(self, session_id, closing_balance: Decimal, notes: str | None = None, idempotency_key: str | None = None):
        self.calls.append("close")
        if self.open_session is None or self.open_session.id != session_id:
            raise NoOpenSessionApiError(
                code="HTTP_ERROR",
                message="Nenhum caixa aberto",
                details=None,
                trace_id=None,
                status_code=400,
            )
        closed = self.open_session.model_copy(
            update={"status": SessionStatus.CLOSED, "closing_balance": closing_balance, "closing_notes": notes}
        )
        self.open_session = None
        return closed

    def record_cash_movement(self, session_id, movement_type: MovementType, value: Decimal, description: str | None = None, idempotency_key: str | None = None):
        self.calls.append("movement")
        session = self.open_session
        if session is None or session.id != session_id:
            raise NoOpenSessionApiError(
                code="HTTP_ERROR",
                message="Caixa não está aberto",
                details=None,
                trace_id=None,
                status_code=400,
            )
        movement = Movement(id=len(self.movements) + 1, session_id=session_id, type=movement_type, value=value, description=description)
        self.movements.append(movement)
        if movement_type is MovementType.SUPPLEMENT:
            update = {"total_supplements": session.total_supplements + value}
        else:
            update = {"total_withdrawals": session.total_withdrawals + value}
        self.open_session = session.model_copy(update=update)
        return movement

    def record_sale(self, total: Decimal) -> None:
        session = self.open_session
        assert session is not None
        self.open_session = session.model_copy(update={"total_sales": session.total_sales + total})

    def archive_cash_register(self, session_id, idempotency_key: str | None = None):
        self.calls.append("archive")
        self.archived.append(session_id)
        return CashRegisterSession(id=session_id, status=SessionStatus.ARCHIVED)

    def list_cash_register_history(self, account_id: str | None = None, include_archived: bool = False, *, use_get_cache: bool = True):
        self.calls.append(f"history:{account_id}:{include_archived}")
        return []


@pytest.fixture
def fake_sales() -> FakeSales:
    return FakeSales()


@pytest.fixture
def caixa_service() -> FakeCashRegisterService:
    return FakeCashRegisterService()
