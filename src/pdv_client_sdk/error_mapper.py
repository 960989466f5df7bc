from __future__ import annotations

from typing import Mapping

from .exceptions import (
    ApiError,
    AuthError,
    ConflictError,
    NotFoundError,
    PermissionError,
    RateLimitError,
    ServerError,
    ValidationError,
)

INVALID_RESPONSE = "INVALID_RESPONSE"

_STATUS_ERRORS: dict[int, type[ApiError]] = {
    400: ValidationError,
    401: AuthError,
    403: PermissionError,
    404: NotFoundError,
    409: ConflictError,
    422: ValidationError,
    429: RateLimitError,
}


def map_error(status_code: int, payload: Mapping[str, object] | None, trace_id: str | None) -> ApiError:
    """Build the error for a non-2xx answer.

    The PDV services answer ``{"error": "...", "details": [...]}`` where
    ``details`` lists schema issues (``{"path": [...], "message": ...}``); those
    are flattened to ``{"field.path": message}``.
    """
    payload = payload or {}
    message = str(payload.get("error") or payload.get("message") or "Request failed")
    payload_trace_id = payload.get("trace_id")
    error_type = _STATUS_ERRORS.get(status_code) or (ServerError if status_code >= 500 else ApiError)
    return error_type(
        code=str(payload.get("code") or "HTTP_ERROR"),
        message=message,
        details=_field_issues(payload.get("details")),
        trace_id=str(payload_trace_id) if payload_trace_id is not None else trace_id,
        status_code=status_code,
        raw_payload=dict(payload),
    )


def rewrap(exc: ApiError, error_type: type[ApiError]) -> ApiError:
    return error_type(
        code=exc.code,
        message=exc.message,
        details=exc.details,
        trace_id=exc.trace_id,
        status_code=exc.status_code,
        raw_payload=exc.raw_payload,
    )


def unreadable_response(
    error_type: type[ApiError],
    operation: str,
    payload: object,
    trace_id: str | None,
    cause: Exception | None = None,
) -> ApiError:
    """Error for a 2xx answer whose body is not what ``operation`` returns."""
    details: dict[str, object] = {"operation": operation}
    if cause is not None:
        details["type"] = type(cause).__name__
    return error_type(
        code=INVALID_RESPONSE,
        message=f"Response to {operation} could not be read",
        details=details,
        trace_id=trace_id,
        status_code=200,
        raw_payload=payload,
    )


def _field_issues(details: object) -> object:
    if not isinstance(details, list):
        return details
    issues: dict[str, str] = {}
    for issue in details:
        if not isinstance(issue, Mapping):
            return details
        path = ".".join(str(part) for part in issue.get("path") or []) or "_"
        issues.setdefault(path, str(issue.get("message") or "invalid"))
    return issues or None
