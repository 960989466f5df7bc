from __future__ import annotations

import json
import os
import sys
import threading
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, TextIO

from platformdirs import user_log_dir

TELEMETRY_CATEGORIES = {"scan", "checkout", "cash_register", "error"}

# Customer identity, operator credentials and card data never leave the terminal.
_FORBIDDEN_CONTEXT_KEYS = {
    "cpf",
    "cnpj",
    "cpf_cnpj",
    "rg",
    "nome",
    "cliente_nome",
    "customer_name",
    "full_name",
    "email",
    "telefone",
    "phone",
    "endereco",
    "address",
    "senha",
    "password",
    "token",
    "authorization",
    "numero_cartao",
    "card_number",
}
_SCALAR_TYPES = (str, int, float, bool, Decimal, type(None))


@dataclass(frozen=True)
class TelemetryEvent:
    category: str
    name: str
    module: str
    action: str
    timestamp_utc: str
    trace_id: str | None = None
    duration_ms: int | None = None
    success: bool | None = None
    error_code: str | None = None
    context: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {key: value for key, value in asdict(self).items() if value is not None}


def _normalize_key(key: str) -> str:
    return key.strip().lower().replace("-", "_")


def _check_context(context: dict[str, Any] | None) -> None:
    if not context:
        return
    leaked = sorted(key for key in context if _normalize_key(key) in _FORBIDDEN_CONTEXT_KEYS)
    if leaked:
        raise ValueError(f"Telemetry context carries PII-like keys: {leaked}")
    nested = sorted(key for key, value in context.items() if not isinstance(value, _SCALAR_TYPES))
    if nested:
        raise ValueError(f"Telemetry context values must be scalars: {nested}")


def build_event(category: str, name: str, *, now: datetime | None = None, **fields: Any) -> TelemetryEvent:
    """Validate and stamp one event; ``fields`` are the remaining ``TelemetryEvent`` attributes."""
    if category not in TELEMETRY_CATEGORIES:
        raise ValueError(f"Unknown telemetry category {category!r}, expected one of {sorted(TELEMETRY_CATEGORIES)}")
    _check_context(fields.get("context"))
    stamp = (now or datetime.now(timezone.utc)).isoformat()
    return TelemetryEvent(category=category, name=name, timestamp_utc=stamp, **fields)


class TelemetryLogger:
    """Appends terminal events as JSON lines; disabled unless PDV_TELEMETRY_ENABLED is set.

    Each line carries the app name and, when known, the terminal's device id so
    files collected from several checkouts can be merged.
    """

    def __init__(
        self,
        *,
        app_name: str,
        device_id: str | None = None,
        enabled: bool | None = None,
        log_file: str | Path | None = None,
        stdout_sink: bool = False,
        stdout_stream: TextIO | None = None,
    ) -> None:
        self.app_name = app_name
        self.device_id = device_id
        self.enabled = _telemetry_switch() if enabled is None else enabled
        self.log_file = Path(log_file) if log_file else Path(user_log_dir(app_name, "PDV")) / "telemetry.jsonl"
        self.echo_to = (stdout_stream or sys.stdout) if stdout_sink else None
        self._lock = threading.Lock()

    def emit(self, event: TelemetryEvent) -> bool:
        if not self.enabled:
            return False
        record = {**event.to_dict(), "app_name": self.app_name}
        if self.device_id:
            record["device_id"] = self.device_id
        self._append(json.dumps(record, sort_keys=True, default=str))
        return True

    def record(self, category: str, name: str, **fields: Any) -> bool:
        if not self.enabled:
            return False
        return self.emit(build_event(category, name, **fields))

    def _append(self, line: str) -> None:
        # the caixa monitor emits from its polling thread
        with self._lock:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)
            with self.log_file.open("a", encoding="utf-8") as out:
                out.write(line + "\n")
            if self.echo_to is not None:
                self.echo_to.write(line + "\n")
                self.echo_to.flush()


def _telemetry_switch() -> bool:
    return os.getenv("PDV_TELEMETRY_ENABLED", "0").strip().lower() in {"1", "true", "yes", "on"}
