from __future__ import annotations

from dataclasses import dataclass

from .exceptions import ApiError, PdvError


@dataclass(frozen=True)
class UserFacingError:
    message: str
    details: str | None = None
    trace_id: str | None = None

    @property
    def technical_details(self) -> str | None:
        if self.details:
            return self.details
        return None


def to_user_facing_error(exc: Exception) -> UserFacingError:
    if isinstance(exc, ApiError):
        primary = exc.message.strip() or "Request failed"
        details = f"{exc.code} (HTTP {exc.status_code})"
        if exc.details:
            details = f"{details}: {exc.details}"
        return UserFacingError(message=primary, details=details, trace_id=exc.trace_id)
    if isinstance(exc, PdvError):
        return UserFacingError(message=str(exc), details=type(exc).__name__)
    return UserFacingError(message=str(exc) or "Unexpected error", details=type(exc).__name__)
