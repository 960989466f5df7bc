from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from ..error_mapper import rewrap, unreadable_response
from ..exceptions import (
    ApiError,
    CashRegisterApiError,
    CashRegisterConflictError,
    NoOpenSessionApiError,
    NotFoundError,
)
from ..idempotency import idempotency_headers, resolve_idempotency_keys
from ..models_cash_register import (
    CashRegisterSession,
    CloseCashRegisterRequest,
    Movement,
    MovementRequest,
    MovementType,
    OpenCashRegisterRequest,
)
from .base import BaseClient

CAIXAS_PATH = "/api/caixas"

_NO_OPEN_SESSION_HINTS = (
    "nenhum caixa aberto",
    "caixa não está aberto",
    "caixa nao esta aberto",
    "caixa fechado",
    "no open cash register",
    "cash register is not open",
    "session is not open",
)
_ALREADY_OPEN_HINTS = (
    "já existe um caixa aberto",
    "ja existe um caixa aberto",
    "caixa já está aberto",
    "already open",
    "already closed",
    "já foi fechado",
)


@dataclass
class CashRegisterClient(BaseClient):
    def get_open_cash_register(
        self,
        *,
        use_get_cache: bool = True,
        context_key: str | None = None,
        context_version: int | None = None,
    ) -> CashRegisterSession | None:
        try:
            data = self._request(
                "GET",
                f"{CAIXAS_PATH}/aberto",
                module="cash_register",
                operation="get_open_cash_register",
                use_get_cache=use_get_cache,
                context_key=context_key,
                context_version=context_version,
            )
        except NotFoundError:
            return None
        except ApiError as exc:
            mapped = _map_cash_register_error(exc)
            if mapped is exc:
                raise
            raise mapped from exc
        if data is None or data == {}:
            return None
        if not isinstance(data, dict):
            raise ValueError("Expected open cash register response to be a JSON object")
        return CashRegisterSession.model_validate(data)

    def open_cash_register(
        self,
        opening_balance: Decimal,
        notes: str | None = None,
        idempotency_key: str | None = None,
    ) -> CashRegisterSession:
        request = OpenCashRegisterRequest(opening_balance=opening_balance, opening_notes=notes or None)
        data = self._mutate(f"{CAIXAS_PATH}/abrir", request.model_dump(mode="json", by_alias=True, exclude_none=True), "open_cash_register", idempotency_key)
        return CashRegisterSession.model_validate(data)

    def close_cash_register(
        self,
        session_id: int | str,
        closing_balance: Decimal,
        notes: str | None = None,
        idempotency_key: str | None = None,
    ) -> CashRegisterSession:
        request = CloseCashRegisterRequest(closing_balance=closing_balance, closing_notes=notes or None)
        data = self._mutate(
            f"{CAIXAS_PATH}/{session_id}/fechar",
            request.model_dump(mode="json", by_alias=True, exclude_none=True),
            "close_cash_register",
            idempotency_key,
        )
        return CashRegisterSession.model_validate(data)

    def record_cash_movement(
        self,
        session_id: int | str,
        movement_type: MovementType,
        value: Decimal,
        description: str | None = None,
        idempotency_key: str | None = None,
    ) -> Movement:
        request = MovementRequest(type=movement_type, value=value, description=description or None)
        data = self._mutate(
            f"{CAIXAS_PATH}/{session_id}/movimentacoes",
            request.model_dump(mode="json", by_alias=True, exclude_none=True),
            "record_cash_movement",
            idempotency_key,
        )
        movement = Movement.model_validate(data)
        if movement.session_id is None:
            movement = movement.model_copy(update={"session_id": session_id})
        return movement

    def archive_cash_register(self, session_id: int | str, idempotency_key: str | None = None) -> CashRegisterSession:
        data = self._mutate(f"{CAIXAS_PATH}/{session_id}/arquivar", None, "archive_cash_register", idempotency_key)
        return CashRegisterSession.model_validate(data)

    def list_cash_register_history(
        self,
        account_id: str | None = None,
        include_archived: bool = False,
        *,
        use_get_cache: bool = True,
    ) -> list[CashRegisterSession]:
        params: dict[str, Any] = {"incluir_arquivados": "true" if include_archived else "false"}
        if account_id:
            params["conta_id"] = account_id
        try:
            data = self._request(
                "GET",
                CAIXAS_PATH,
                params=params,
                module="cash_register",
                operation="list_cash_register_history",
                use_get_cache=use_get_cache,
            )
        except ApiError as exc:
            mapped = _map_cash_register_error(exc)
            if mapped is exc:
                raise
            raise mapped from exc
        sessions = [CashRegisterSession.model_validate(row) for row in _rows(data, "caixas")]
        if not include_archived:
            # older services ignore the filter
            sessions = [session for session in sessions if not session.archived]
        return sessions

    def list_movements(
        self,
        session_id: int | str,
        *,
        use_get_cache: bool = True,
        context_key: str | None = None,
        context_version: int | None = None,
    ) -> list[Movement]:
        try:
            data = self._request(
                "GET",
                f"{CAIXAS_PATH}/{session_id}/movimentacoes",
                module="cash_register",
                operation="list_movements",
                use_get_cache=use_get_cache,
                context_key=context_key,
                context_version=context_version,
            )
        except ApiError as exc:
            mapped = _map_cash_register_error(exc)
            if mapped is exc:
                raise
            raise mapped from exc
        movements = [Movement.model_validate(row) for row in _rows(data, "movimentacoes")]
        return [
            movement if movement.session_id is not None else movement.model_copy(update={"session_id": session_id})
            for movement in movements
        ]

    def _mutate(
        self,
        path: str,
        body: dict[str, Any] | None,
        operation: str,
        idempotency_key: str | None,
    ) -> dict[str, Any]:
        keys = resolve_idempotency_keys(idempotency_key=idempotency_key)
        try:
            data = self._request(
                "POST",
                path,
                json_body=body,
                headers=idempotency_headers(keys),
                module="cash_register",
                operation=operation,
                invalidate_paths=[CAIXAS_PATH],
            )
        except ApiError as exc:
            mapped = _map_cash_register_error(exc)
            if mapped is exc:
                raise
            raise mapped from exc
        if not isinstance(data, dict):
            raise unreadable_response(CashRegisterApiError, operation, data, self._trace_id())
        return data


def _rows(data: Any, key: str) -> list[Any]:
    if data is None:
        return []
    if isinstance(data, list):
        return data
    if isinstance(data, dict) and isinstance(data.get(key), list):
        return data[key]
    raise ValueError(f"Expected {key} response to be a JSON list")


def _map_cash_register_error(exc: ApiError) -> ApiError:
    detail_message = ""
    if isinstance(exc.details, dict):
        detail_message = str(exc.details.get("message") or "")
    elif exc.details is not None:
        detail_message = str(exc.details)
    combined = f"{exc.message} {detail_message}".lower()
    if exc.status_code <= 0 or exc.status_code in {401, 403} or exc.status_code >= 500:
        return exc
    if any(hint in combined for hint in _NO_OPEN_SESSION_HINTS):
        return rewrap(exc, NoOpenSessionApiError)
    if exc.status_code == 409 or any(hint in combined for hint in _ALREADY_OPEN_HINTS):
        return rewrap(exc, CashRegisterConflictError)
    if exc.status_code in {400, 404, 422}:
        return rewrap(exc, CashRegisterApiError)
    return exc
