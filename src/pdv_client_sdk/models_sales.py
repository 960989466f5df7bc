from __future__ import annotations

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from .models_common import WireDecimal


class PaymentMethod(str, Enum):
    CASH = "cash"
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    PIX = "pix"


def accepts_cash_tender(method: PaymentMethod) -> bool:
    """Whether the operator types a tendered amount and change is handed back."""
    if method is PaymentMethod.CASH:
        return True
    if method in (PaymentMethod.CREDIT_CARD, PaymentMethod.DEBIT_CARD, PaymentMethod.PIX):
        return False
    raise ValueError(f"Unsupported payment method: {method!r}")


class SaleItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    barcode: str = Field(alias="codigo_barras")
    quantity: int = Field(alias="quantidade", ge=1)


class SalePayload(BaseModel):
    """Body of ``POST /api/vendas``.

    Prices and names are left out on purpose: the sales service re-reads them
    from the catalog, so the terminal cannot dictate what a product costs.
    """

    model_config = ConfigDict(populate_by_name=True)

    items: list[SaleItem] = Field(alias="itens", min_length=1)
    total_value: WireDecimal = Field(alias="valorTotal", ge=0)
    payment_method: PaymentMethod = Field(alias="forma_pagamento")
    customer_id: int | str | None = Field(default=None, alias="cliente_id")

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class SoldItem(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str | None = Field(default=None, alias="nome")
    quantity: int | None = Field(default=None, alias="quantidade")
    unit_price: Decimal | None = Field(default=None, alias="preco_unitario")
    subtotal: Decimal | None = None


class SaleResult(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: int | str
    total_value: Decimal | None = Field(default=None, alias="valor_total")
    quantity_sold: int | None = Field(default=None, alias="quantidade_vendida")
    sold_at: str | None = Field(default=None, alias="data")
    payment_method: str | None = Field(default=None, alias="forma_pagamento")
    customer_id: int | str | None = Field(default=None, alias="cliente_id")
    items: list[SoldItem] = Field(default_factory=list, alias="itens")
