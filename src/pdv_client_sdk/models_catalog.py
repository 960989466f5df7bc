from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class Product(BaseModel):
    """Catalog entry as returned by ``GET /api/produtos/codigo/{barcode}``."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: int | str
    name: str = Field(alias="nome")
    barcode: str | None = Field(default=None, alias="codigo_barras")
    price: Decimal = Field(alias="preco", ge=0)
    stock: int = Field(default=0, alias="quantidade")
    category: str | None = Field(default=None, alias="categoria")
    minimum_stock: int | None = Field(default=None, alias="estoque_minimo")
    expires_on: str | None = Field(default=None, alias="vencimento")
