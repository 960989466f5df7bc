from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Iterable

from .models_cash_register import ZERO, CashRegisterSession, Movement, SessionStatus

DEFAULT_ARCHIVE_AFTER_DAYS = 365

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class HistorySummary:
    session_count: int
    total_sales: Decimal
    total_supplements: Decimal
    total_withdrawals: Decimal
    expected_closing: Decimal
    counted_closing: Decimal

    @property
    def total_difference(self) -> Decimal:
        return self.counted_closing - self.expected_closing


def _aware(value: datetime | None) -> datetime | None:
    # the service sends naive UTC stamps
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _movement_order(movement: Movement) -> tuple[datetime, int]:
    stamp = _aware(movement.timestamp) or _EPOCH
    return stamp, movement.id if isinstance(movement.id, int) else 0


def recent_movements(movements: Iterable[Movement], limit: int | None = None) -> list[Movement]:
    """Most recent first: by timestamp, then by id, which is how the caixa service orders them."""
    ordered = sorted(movements, key=_movement_order, reverse=True)
    if limit is not None:
        if limit < 0:
            raise ValueError("limit must be >= 0")
        ordered = ordered[:limit]
    return ordered


def summarize_history(
    sessions: Iterable[CashRegisterSession],
    start: datetime | None = None,
    end: datetime | None = None,
) -> HistorySummary:
    """Aggregate sessions closed in ``[start, end)``; open sessions are ignored."""
    start = _aware(start)
    end = _aware(end)
    picked: list[CashRegisterSession] = []
    for session in sessions:
        if session.is_open or session.closing_balance is None:
            continue
        closed_at = _aware(session.closed_at)
        if start is not None and (closed_at is None or closed_at < start):
            continue
        if end is not None and (closed_at is None or closed_at >= end):
            continue
        picked.append(session)
    return HistorySummary(
        session_count=len(picked),
        total_sales=sum((s.total_sales for s in picked), ZERO),
        total_supplements=sum((s.total_supplements for s in picked), ZERO),
        total_withdrawals=sum((s.total_withdrawals for s in picked), ZERO),
        expected_closing=sum((s.current_balance for s in picked), ZERO),
        counted_closing=sum((s.closing_balance or ZERO for s in picked), ZERO),
    )


def sessions_due_for_archival(
    sessions: Iterable[CashRegisterSession],
    older_than_days: int = DEFAULT_ARCHIVE_AFTER_DAYS,
    now: datetime | None = None,
) -> list[CashRegisterSession]:
    """Closed sessions whose closing (or, failing that, opening) date is past the retention window."""
    if older_than_days < 0:
        raise ValueError("older_than_days must be >= 0")
    cutoff = (_aware(now) or datetime.now(timezone.utc)) - timedelta(days=older_than_days)
    due: list[CashRegisterSession] = []
    for session in sessions:
        if session.status is not SessionStatus.CLOSED:
            continue
        stamp = _aware(session.closed_at or session.opened_at)
        if stamp is not None and stamp < cutoff:
            due.append(session)
    return due
