from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

import pydantic

from ..error_mapper import rewrap, unreadable_response
from ..exceptions import ApiError, SaleSubmissionError
from ..idempotency import idempotency_headers, resolve_idempotency_keys
from ..models_sales import SalePayload, SaleResult
from .base import BaseClient, coerce_model


@dataclass
class SalesClient(BaseClient):
    def submit_sale(
        self,
        payload: SalePayload | Mapping[str, Any],
        idempotency_key: str | None = None,
    ) -> SaleResult:
        """POST the sale once. Any failure, including an unreadable 2xx answer, is a ``SaleSubmissionError``."""
        request = coerce_model(payload, SalePayload)
        keys = resolve_idempotency_keys(idempotency_key=idempotency_key)
        try:
            data = self._request(
                "POST",
                "/api/vendas",
                json_body=request.to_wire(),
                headers=idempotency_headers(keys),
                module="sales",
                operation="submit_sale",
                invalidate_paths=["/api/caixas"],
            )
        except ApiError as exc:
            raise rewrap(exc, SaleSubmissionError) from exc
        if not isinstance(data, dict):
            raise unreadable_response(SaleSubmissionError, "submit_sale", data, self._trace_id())
        try:
            return SaleResult.model_validate(data)
        except pydantic.ValidationError as exc:
            raise unreadable_response(SaleSubmissionError, "submit_sale", data, self._trace_id(), exc) from exc
