from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models_common import WireDecimal

ZERO = Decimal("0.00")


class SessionStatus(str, Enum):
    OPEN = "aberto"
    CLOSED = "fechado"
    ARCHIVED = "arquivado"


class MovementType(str, Enum):
    SUPPLEMENT = "suprimento"
    WITHDRAWAL = "retirada"


class CashRegisterSession(BaseModel):
    """A caixa session as reported by the caixa service.

    Totals are aggregated server-side; the balance is always derived from them.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: int | str
    operator_id: str | None = Field(default=None, alias="user_id")
    operator_name: str | None = Field(default=None, alias="operador")
    opened_at: datetime | None = Field(default=None, alias="data_abertura")
    closed_at: datetime | None = Field(default=None, alias="data_fechamento")
    opening_balance: Decimal = Field(default=ZERO, alias="saldo_inicial")
    closing_balance: Decimal | None = Field(default=None, alias="saldo_final")
    opening_notes: str | None = Field(default=None, alias="observacoes_abertura")
    closing_notes: str | None = Field(default=None, alias="observacoes_fechamento")
    status: SessionStatus = SessionStatus.OPEN
    total_sales: Decimal = Field(default=ZERO, alias="total_vendas")
    total_supplements: Decimal = Field(default=ZERO, alias="total_suprimentos")
    total_withdrawals: Decimal = Field(default=ZERO, alias="total_retiradas")

    @field_validator("opening_balance", "total_sales", "total_supplements", "total_withdrawals", mode="before")
    @classmethod
    def _null_as_zero(cls, value: object) -> object:
        return ZERO if value is None else value

    @property
    def is_open(self) -> bool:
        return self.status is SessionStatus.OPEN

    @property
    def archived(self) -> bool:
        return self.status is SessionStatus.ARCHIVED

    @property
    def current_balance(self) -> Decimal:
        return self.opening_balance + self.total_sales + self.total_supplements - self.total_withdrawals

    @property
    def closing_difference(self) -> Decimal | None:
        """Counted minus expected cash; negative means the drawer came up short."""
        if self.closing_balance is None:
            return None
        return self.closing_balance - self.current_balance


class Movement(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: int | str
    session_id: int | str | None = Field(default=None, alias="caixa_id")
    type: MovementType = Field(alias="tipo")
    value: Decimal = Field(alias="valor", gt=0)
    description: str | None = Field(default=None, alias="descricao")
    timestamp: datetime | None = Field(default=None, alias="data")


class OpenCashRegisterRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    opening_balance: WireDecimal = Field(alias="saldo_inicial", ge=0)
    opening_notes: str | None = Field(default=None, alias="observacoes_abertura")


class CloseCashRegisterRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    closing_balance: WireDecimal = Field(alias="saldo_final", ge=0)
    closing_notes: str | None = Field(default=None, alias="observacoes_fechamento")


class MovementRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: MovementType = Field(alias="tipo")
    value: WireDecimal = Field(alias="valor", gt=0)
    description: str | None = Field(default=None, alias="descricao")
