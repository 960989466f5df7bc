from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from .cash_register_validation import (
    ensure_valid,
    validate_close_payload,
    validate_movement_payload,
    validate_open_payload,
)
from .clients.cash_register_client import CashRegisterClient
from .exceptions import (
    CashRegisterTransitionError,
    InvalidAmountError,
    NoOpenSessionApiError,
    NoOpenSessionError,
)
from .history import recent_movements
from .log import log_json
from .models_cash_register import CashRegisterSession, Movement, MovementType
from .telemetry import TelemetryLogger

logger = logging.getLogger(__name__)

CONTEXT_KEY = "cash_register"
DEFAULT_MOVEMENT_DISPLAY_LIMIT = 5


class RegisterState(str, Enum):
    NO_SESSION = "no_session"
    OPEN = "open"
    CLOSED = "closed"


@dataclass(frozen=True)
class ClosingReport:
    session: CashRegisterSession
    expected_balance: Decimal
    counted_balance: Decimal

    @property
    def difference(self) -> Decimal:
        """Counted minus expected; negative means the drawer came up short."""
        return self.counted_balance - self.expected_balance


@dataclass(frozen=True)
class CashRegisterSnapshot:
    session: CashRegisterSession | None
    movements: tuple[Movement, ...] = ()
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def current_balance(self) -> Decimal | None:
        if self.session is None:
            return None
        return self.session.current_balance


def _as_amount(value: Decimal | int | float | str | None) -> Decimal | None:
    if value is None or isinstance(value, Decimal):
        return value
    text = str(value).strip()
    if "," in text and "." not in text:
        text = text.replace(",", ".")
    try:
        return Decimal(text)
    except InvalidOperation as exc:
        raise InvalidAmountError(f"Invalid amount: {value!r}") from exc


class CashRegister:
    """Client-side view of the operator's caixa.

    The caixa service is the only writer; this object keeps the last state it
    saw, checks transition guards against it before calling out, and re-checks
    the service before opening. Totals and the balance always come from the
    service, never from local arithmetic.

    Every mutation bumps an internal generation, and a ``refresh`` that started
    before a mutation is thrown away instead of overwriting the newer state.
    """

    def __init__(
        self,
        client: CashRegisterClient,
        *,
        movement_display_limit: int = DEFAULT_MOVEMENT_DISPLAY_LIMIT,
        account_id: str | None = None,
        telemetry: TelemetryLogger | None = None,
    ) -> None:
        if movement_display_limit < 1:
            raise ValueError("movement_display_limit must be >= 1")
        self.client = client
        self.movement_display_limit = movement_display_limit
        self.account_id = account_id
        self.telemetry = telemetry
        self._lock = threading.RLock()
        self._session: CashRegisterSession | None = None
        self._last_closed: CashRegisterSession | None = None
        self._movements: list[Movement] = []
        self._generation = 0

    @property
    def session(self) -> CashRegisterSession | None:
        return self._session

    @property
    def last_closed(self) -> CashRegisterSession | None:
        return self._last_closed

    @property
    def state(self) -> RegisterState:
        with self._lock:
            if self._session is not None and self._session.is_open:
                return RegisterState.OPEN
            if self._last_closed is not None:
                return RegisterState.CLOSED
            return RegisterState.NO_SESSION

    @property
    def movements(self) -> tuple[Movement, ...]:
        with self._lock:
            return tuple(self._movements[: self.movement_display_limit])

    @property
    def current_balance(self) -> Decimal | None:
        session = self._session
        return session.current_balance if session is not None else None

    @property
    def can_open(self) -> bool:
        return self.state is not RegisterState.OPEN

    @property
    def can_close(self) -> bool:
        return self.state is RegisterState.OPEN

    @property
    def can_record_movement(self) -> bool:
        return self.state is RegisterState.OPEN

    def snapshot(self) -> CashRegisterSnapshot:
        with self._lock:
            return CashRegisterSnapshot(session=self._session, movements=self.movements)

    def refresh(
        self,
        *,
        context_key: str | None = None,
        context_version: int | None = None,
    ) -> CashRegisterSnapshot:
        """Re-read the open session and its movements, bypassing the GET cache."""
        generation = self._generation
        session = self.client.get_open_cash_register(
            use_get_cache=False,
            context_key=context_key,
            context_version=context_version,
        )
        movements: list[Movement] = []
        if session is not None:
            movements = self.client.list_movements(
                session.id,
                use_get_cache=False,
                context_key=context_key,
                context_version=context_version,
            )
        with self._lock:
            if generation != self._generation:
                logger.debug("discarding stale cash register refresh")
            else:
                self._session = session
                self._movements = recent_movements(movements)
            return self.snapshot()

    def open(self, opening_balance: Decimal | int | float | str, notes: str | None = None) -> CashRegisterSession:
        amount = _as_amount(opening_balance)
        ensure_valid(validate_open_payload(amount))
        started = time.monotonic()

        existing = self.client.get_open_cash_register(use_get_cache=False)
        if existing is not None:
            with self._lock:
                self._replace(existing, self._movements if self._same_session(existing) else [])
            self._record("open", False, started, "ALREADY_OPEN")
            raise CashRegisterTransitionError(f"Cash register session {existing.id} is already open")

        session = self.client.open_cash_register(amount, notes)
        with self._lock:
            self._replace(session, [])
            self._last_closed = None
        log_json(logger, {"event": "cash_register_opened", "session_id": session.id, "opening_balance": str(session.opening_balance)})
        self._record("open", True, started, None)
        return session

    def close(self, closing_balance: Decimal | int | float | str, notes: str | None = None) -> ClosingReport:
        current = self._require_open()
        amount = _as_amount(closing_balance)
        ensure_valid(validate_close_payload(amount))
        started = time.monotonic()

        try:
            closed = self.client.close_cash_register(current.id, amount, notes)
        except NoOpenSessionApiError:
            self._forget_session()
            raise

        counted = closed.closing_balance if closed.closing_balance is not None else amount
        report = ClosingReport(session=closed, expected_balance=closed.current_balance, counted_balance=counted)
        with self._lock:
            self._replace(None, [])
            self._last_closed = closed
        log_json(
            logger,
            {
                "event": "cash_register_closed",
                "session_id": closed.id,
                "expected": str(report.expected_balance),
                "counted": str(report.counted_balance),
                "difference": str(report.difference),
            },
        )
        self._record("close", True, started, None)
        return report

    def record_movement(
        self,
        movement_type: MovementType | str,
        value: Decimal | int | float | str,
        description: str | None = None,
    ) -> Movement:
        current = self._require_open()
        kind = MovementType(movement_type)
        amount = _as_amount(value)
        ensure_valid(validate_movement_payload(amount))
        started = time.monotonic()

        try:
            movement = self.client.record_cash_movement(current.id, kind, amount, description)
        except NoOpenSessionApiError:
            self._forget_session()
            raise

        with self._lock:
            self._generation += 1
            self._movements.insert(0, movement)
        self._record("record_movement", True, started, None, {"type": kind.value})
        try:
            # totals are recomputed server-side
            self.refresh()
        except Exception as exc:
            logger.warning("could not refresh cash register after movement: %s", exc)
        return movement

    def supplement(self, value: Decimal | int | float | str, description: str | None = None) -> Movement:
        return self.record_movement(MovementType.SUPPLEMENT, value, description)

    def withdraw(self, value: Decimal | int | float | str, description: str | None = None) -> Movement:
        return self.record_movement(MovementType.WITHDRAWAL, value, description)

    def archive(self, session_id: int | str) -> CashRegisterSession:
        current = self._session
        if current is not None and current.is_open and str(current.id) == str(session_id):
            raise CashRegisterTransitionError("An open cash register session cannot be archived")
        archived = self.client.archive_cash_register(session_id)
        log_json(logger, {"event": "cash_register_archived", "session_id": archived.id})
        return archived

    def history(self, include_archived: bool = False) -> list[CashRegisterSession]:
        return self.client.list_cash_register_history(self.account_id, include_archived)

    def _require_open(self) -> CashRegisterSession:
        current = self._session
        if current is None or not current.is_open:
            raise NoOpenSessionError()
        return current

    def _same_session(self, session: CashRegisterSession) -> bool:
        return self._session is not None and str(self._session.id) == str(session.id)

    def _replace(self, session: CashRegisterSession | None, movements: list[Movement]) -> None:
        self._generation += 1
        self._session = session
        self._movements = list(movements)

    def _forget_session(self) -> None:
        with self._lock:
            self._replace(None, [])

    def _record(
        self,
        action: str,
        success: bool,
        started: float,
        error_code: str | None,
        context: dict[str, Any] | None = None,
    ) -> None:
        if self.telemetry is None:
            return
        self.telemetry.record(
            category="cash_register",
            name=f"cash_register_{action}",
            module="cash_register",
            action=action,
            success=success,
            error_code=error_code,
            duration_ms=int((time.monotonic() - started) * 1000),
            context=context,
        )
