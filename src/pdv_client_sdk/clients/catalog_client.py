from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import quote

from ..exceptions import NotFoundError
from ..models_catalog import Product
from .base import BaseClient


@dataclass
class CatalogClient(BaseClient):
    def lookup_product_by_barcode(self, barcode: str) -> Product | None:
        """Exact barcode match; ``None`` when the catalog has no such product."""
        try:
            data = self._request(
                "GET",
                f"/api/produtos/codigo/{quote(barcode, safe='')}",
                module="catalog",
                operation="lookup_product_by_barcode",
            )
        except NotFoundError:
            return None
        if data is None:
            return None
        if not isinstance(data, dict):
            raise ValueError("Expected product response to be a JSON object")
        return Product.model_validate(data)
