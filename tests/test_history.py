from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from pdv_client_sdk.history import recent_movements, sessions_due_for_archival, summarize_history
from pdv_client_sdk.models_cash_register import CashRegisterSession, Movement, MovementType, SessionStatus

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def _closed(session_id: int, closed_at: datetime, counted: str, **totals: str) -> CashRegisterSession:
    return CashRegisterSession(
        id=session_id,
        status=SessionStatus.CLOSED,
        opening_balance=Decimal("100"),
        closing_balance=Decimal(counted),
        opened_at=closed_at - timedelta(hours=8),
        closed_at=closed_at,
        total_sales=Decimal(totals.get("sales", "0")),
        total_supplements=Decimal(totals.get("supplements", "0")),
        total_withdrawals=Decimal(totals.get("withdrawals", "0")),
    )


def test_summarize_history_window() -> None:
    sessions = [
        _closed(1, NOW - timedelta(days=2), "160", sales="30", supplements="50", withdrawals="20"),
        _closed(2, NOW - timedelta(days=1), "95"),
        _closed(3, NOW - timedelta(days=40), "500", sales="400"),
        CashRegisterSession(id=4, status=SessionStatus.OPEN, opening_balance=Decimal("10")),
    ]

    summary = summarize_history(sessions, start=NOW - timedelta(days=7), end=NOW)

    assert summary.session_count == 2
    assert summary.total_sales == Decimal("30")
    assert summary.total_supplements == Decimal("50")
    assert summary.total_withdrawals == Decimal("20")
    assert summary.expected_closing == Decimal("260")
    assert summary.counted_closing == Decimal("255")
    assert summary.total_difference == Decimal("-5")


def test_summarize_history_without_bounds_counts_all_closed() -> None:
    sessions = [_closed(1, NOW, "100"), _closed(2, NOW - timedelta(days=900), "100")]
    assert summarize_history(sessions).session_count == 2


def test_summarize_history_accepts_naive_bounds() -> None:
    sessions = [_closed(1, NOW - timedelta(hours=1), "100")]
    summary = summarize_history(sessions, start=datetime(2025, 6, 1), end=datetime(2025, 6, 2))
    assert summary.session_count == 1


def test_sessions_due_for_archival() -> None:
    old = _closed(1, NOW - timedelta(days=400), "100")
    recent = _closed(2, NOW - timedelta(days=10), "100")
    already = CashRegisterSession(id=3, status=SessionStatus.ARCHIVED, closed_at=NOW - timedelta(days=800))
    still_open = CashRegisterSession(id=4, status=SessionStatus.OPEN, opened_at=NOW - timedelta(days=800))

    due = sessions_due_for_archival([old, recent, already, still_open], now=NOW)

    assert [session.id for session in due] == [1]
    assert [s.id for s in sessions_due_for_archival([old, recent], older_than_days=5, now=NOW)] == [1, 2]


def test_recent_movements_orders_and_limits() -> None:
    movements = [
        Movement(id=1, type=MovementType.SUPPLEMENT, value=Decimal("10"), timestamp=NOW - timedelta(hours=3)),
        Movement(id=2, type=MovementType.WITHDRAWAL, value=Decimal("5"), timestamp=NOW - timedelta(hours=1)),
        Movement(id=3, type=MovementType.SUPPLEMENT, value=Decimal("7"), timestamp=NOW - timedelta(hours=2)),
    ]
    assert [m.id for m in recent_movements(movements)] == [2, 3, 1]
    assert [m.id for m in recent_movements(movements, limit=2)] == [2, 3]
    with pytest.raises(ValueError):
        recent_movements(movements, limit=-1)
