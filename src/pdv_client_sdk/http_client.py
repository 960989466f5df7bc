from __future__ import annotations

import json
import logging
import threading
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urljoin

import requests
from requests.adapters import HTTPAdapter

from .config import ClientConfig
from .error_mapper import INVALID_RESPONSE, map_error
from .exceptions import InvalidResponseError, TransportError
from .identity import ACCOUNT_ID_HEADER, USER_ID_HEADER, USER_TYPE_HEADER
from .log import log_json
from .tracing import TRACE_HEADER, TraceContext

logger = logging.getLogger(__name__)

JsonBody = dict[str, Any] | list[Any] | None

REQUEST_CANCELLED = "REQUEST_CANCELLED"
# Cached reads are scoped to the operator: an employee never sees the owner's cached caixa.
_CACHE_KEY_HEADERS = {"Authorization", USER_ID_HEADER, USER_TYPE_HEADER, ACCOUNT_ID_HEADER}


class ReadCache:
    """Short-lived GET answers, keyed by URL, params and operator identity.

    Shared by the UI thread and the caixa monitor thread.
    """

    def __init__(self, ttl_seconds: float = 3.0) -> None:
        self.ttl_seconds = ttl_seconds
        self._entries: dict[str, tuple[float, JsonBody]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    @staticmethod
    def key_for(url: str, headers: Mapping[str, str], params: dict[str, Any] | None) -> str:
        scoped = {key: value for key, value in headers.items() if key in _CACHE_KEY_HEADERS}
        return json.dumps({"url": url, "headers": scoped, "params": params or {}}, sort_keys=True)

    def get(self, key: str) -> JsonBody:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if time.monotonic() >= entry[0]:
                del self._entries[key]
                return None
            return entry[1]

    def put(self, key: str, payload: JsonBody) -> None:
        if payload is None:
            return
        with self._lock:
            self._entries[key] = (time.monotonic() + self.ttl_seconds, payload)

    def drop_matching(self, paths: list[str]) -> None:
        with self._lock:
            for key in [key for key in self._entries if any(path in key for path in paths)]:
                del self._entries[key]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


@dataclass
class LastOperation:
    module: str
    operation: str
    duration_ms: int
    result: str
    trace_id: str | None


@dataclass
class HttpClient:
    """Shared connection pool for the catalog, sales and caixa services.

    Reads are retried on transport errors and 5xx answers and may be served
    from a short-lived cache; writes are sent exactly once. Requests tagged with
    a ``context_key`` are cancelled when that context is switched while they are
    in flight, so a late caixa read never overwrites newer state.
    """

    config: ClientConfig
    trace: TraceContext | None = None
    session: requests.Session | None = None
    cache: ReadCache = field(default_factory=ReadCache, repr=False)
    last_operation: LastOperation | None = None
    _context_versions: dict[str, int] = field(default_factory=dict, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def __post_init__(self) -> None:
        if self.session is None:
            self.session = requests.Session()
            adapter = HTTPAdapter(
                pool_connections=self.config.max_connections,
                pool_maxsize=self.config.max_connections,
            )
            self.session.mount("http://", adapter)
            self.session.mount("https://", adapter)

    def request(
        self,
        method: str,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        json_body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        module: str = "unknown",
        operation: str = "unknown",
        use_get_cache: bool = True,
        context_key: str | None = None,
        context_version: int | None = None,
        invalidate_paths: list[str] | None = None,
    ) -> JsonBody:
        """Send one request and return the decoded JSON body (``None`` when empty).

        Raises the ``ApiError`` subclass matching the status, ``TransportError``
        when no response arrived, ``InvalidResponseError`` when a 2xx body is not
        JSON, and ``TransportError`` with code ``REQUEST_CANCELLED`` when the
        context was switched.
        """
        trace_context = self.trace or TraceContext()
        request_headers = {"Accept": "application/json", **(headers or {})}
        request_headers[TRACE_HEADER] = trace_context.ensure()

        method = method.upper()
        is_read = method == "GET"
        cache_key = ReadCache.key_for(self._url(path), request_headers, params) if is_read and use_get_cache else None
        if cache_key is not None:
            cached = self.cache.get(cache_key)
            if cached is not None:
                self.last_operation = LastOperation(module, operation, 0, "success(cache)", trace_context.trace_id)
                return cached

        if context_key and context_version is None:
            context_version = self.get_context_version(context_key)
        if context_key and not self._context_is_current(context_key, context_version):
            raise self._cancelled(trace_context, "Request cancelled before dispatch")

        started = time.monotonic()
        try:
            response = self._send(method, path, request_headers, json_body, params, retry=is_read)
        except requests.RequestException as exc:
            self._record_operation(module, operation, started, "error", trace_context.trace_id)
            raise TransportError(
                code="TRANSPORT_ERROR",
                message=str(exc),
                details={"type": type(exc).__name__},
                trace_id=trace_context.trace_id,
                status_code=0,
            ) from exc

        if context_key and not self._context_is_current(context_key, context_version):
            raise self._cancelled(trace_context, "Request cancelled due to context switch")

        trace_context.update_from_headers(response.headers)
        if not response.ok:
            self._record_operation(module, operation, started, "error", trace_context.trace_id)
            payload = _error_payload(response)
            trace_context.update_from_payload(payload)
            raise map_error(response.status_code, payload, trace_context.trace_id)

        # a 2xx write has already happened server-side, so stale reads go even if the body is bad
        if not is_read and invalidate_paths:
            self.cache.drop_matching(invalidate_paths)
        parsed = self._decode(response, trace_context)
        if cache_key is not None:
            self.cache.put(cache_key, parsed)
        self._record_operation(module, operation, started, "success", trace_context.trace_id)
        return parsed

    def switch_context(self, context_key: str) -> int:
        """Invalidate every in-flight request tagged with ``context_key``."""
        with self._lock:
            version = self._context_versions.get(context_key, 0) + 1
            self._context_versions[context_key] = version
        self.cache.clear()
        return version

    def get_context_version(self, context_key: str) -> int:
        with self._lock:
            return self._context_versions.get(context_key, 0)

    def close(self) -> None:
        if self.session is not None:
            self.session.close()

    def _url(self, path: str) -> str:
        return urljoin(self.config.api_base_url.rstrip("/") + "/", path.lstrip("/"))

    def _send(
        self,
        method: str,
        path: str,
        headers: dict[str, str],
        json_body: dict[str, Any] | None,
        params: dict[str, Any] | None,
        *,
        retry: bool,
    ) -> requests.Response:
        if self.session is None:
            raise RuntimeError("HTTP session not initialized")
        attempts = self.config.retries + 1 if retry else 1
        for attempt in range(attempts):
            last = attempt >= attempts - 1
            try:
                response = self.session.request(
                    method=method,
                    url=self._url(path),
                    headers=headers,
                    json=json_body,
                    params=params,
                    timeout=(self.config.connect_timeout_seconds, self.config.read_timeout_seconds),
                    verify=self.config.verify_ssl,
                )
            except requests.RequestException as exc:
                logger.warning("%s %s failed on attempt %s: %s", method, path, attempt + 1, exc)
                if last:
                    raise
            else:
                if response.status_code < 500 or last:
                    return response
                logger.info("%s %s answered %s, retrying", method, path, response.status_code)
            time.sleep(self.config.retry_backoff_seconds * (2**attempt))
        raise RuntimeError("retry loop ended without a response")

    def _decode(self, response: requests.Response, trace_context: TraceContext) -> JsonBody:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise InvalidResponseError(
                code=INVALID_RESPONSE,
                message="Service answered with a body that is not JSON",
                details={"content_type": response.headers.get("Content-Type")},
                trace_id=trace_context.trace_id,
                status_code=response.status_code,
                raw_payload=response.text[:500],
            ) from exc

    def _cancelled(self, trace_context: TraceContext, message: str) -> TransportError:
        return TransportError(
            code=REQUEST_CANCELLED,
            message=message,
            details={"type": "context_switched"},
            trace_id=trace_context.trace_id,
            status_code=0,
        )

    def _record_operation(self, module: str, operation: str, started: float, result: str, trace_id: str | None) -> None:
        self.last_operation = LastOperation(
            module=module,
            operation=operation,
            duration_ms=int((time.monotonic() - started) * 1000),
            result=result,
            trace_id=trace_id,
        )
        log_json(
            logger,
            {
                "event": "api_call",
                "module": module,
                "operation": operation,
                "result": result,
                "duration_ms": self.last_operation.duration_ms,
                "trace_id": trace_id,
            },
            level=logging.DEBUG,
        )

    def _context_is_current(self, context_key: str, context_version: int | None) -> bool:
        if context_version is None:
            return True
        return self.get_context_version(context_key) == context_version


def _error_payload(response: requests.Response) -> dict[str, Any]:
    try:
        payload = response.json()
    except ValueError:
        return {"message": response.text}
    if not isinstance(payload, dict):
        return {"message": str(payload)}
    return payload
