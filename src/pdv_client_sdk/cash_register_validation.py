from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from .exceptions import PdvError


@dataclass(frozen=True)
class CashValidationIssue:
    field: str
    reason: str


@dataclass(frozen=True)
class CashValidationResult:
    ok: bool
    issues: list[CashValidationIssue]


class CashValidationError(PdvError, ValueError):
    def __init__(self, issues: list[CashValidationIssue]) -> None:
        self.issues = issues
        super().__init__("; ".join(f"{issue.field} {issue.reason}" for issue in issues))


def _require_non_negative(value: Decimal | None, field: str, issues: list[CashValidationIssue]) -> None:
    if value is None:
        issues.append(CashValidationIssue(field=field, reason="is required"))
    elif not value.is_finite():
        issues.append(CashValidationIssue(field=field, reason="must be a number"))
    elif value < 0:
        issues.append(CashValidationIssue(field=field, reason="must be >= 0"))


def validate_open_payload(opening_balance: Decimal | None) -> CashValidationResult:
    issues: list[CashValidationIssue] = []
    _require_non_negative(opening_balance, "opening_balance", issues)
    return CashValidationResult(ok=not issues, issues=issues)


def validate_movement_payload(value: Decimal | None) -> CashValidationResult:
    issues: list[CashValidationIssue] = []
    if value is None:
        issues.append(CashValidationIssue(field="value", reason="is required"))
    elif not value.is_finite():
        issues.append(CashValidationIssue(field="value", reason="must be a number"))
    elif value <= 0:
        issues.append(CashValidationIssue(field="value", reason="must be greater than 0"))
    return CashValidationResult(ok=not issues, issues=issues)


def validate_close_payload(closing_balance: Decimal | None) -> CashValidationResult:
    issues: list[CashValidationIssue] = []
    _require_non_negative(closing_balance, "closing_balance", issues)
    return CashValidationResult(ok=not issues, issues=issues)


def ensure_valid(result: CashValidationResult) -> None:
    if not result.ok:
        raise CashValidationError(result.issues)
