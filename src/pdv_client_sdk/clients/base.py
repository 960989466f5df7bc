from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..http_client import HttpClient
from ..identity import IdentityContext


@dataclass
class BaseClient:
    http: HttpClient
    identity: IdentityContext | None = None
    device_id: str | None = None

    def _identity_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self.identity is not None:
            headers.update(self.identity.headers())
        if self.device_id:
            headers["X-Device-ID"] = self.device_id
        return headers

    def _trace_id(self) -> str | None:
        return self.http.trace.trace_id if self.http.trace is not None else None

    def _request(self, method: str, path: str, **kwargs: Any):
        headers = kwargs.pop("headers", {})
        merged = {**self._identity_headers(), **headers}
        return self.http.request(method, path, headers=merged, **kwargs)


def coerce_model(value: Any, model_type: type[Any]):
    if isinstance(value, model_type):
        return value
    return model_type.model_validate(value)
