from __future__ import annotations

import io
import json
import logging

import pytest

from conftest import FakeSales, make_product
from pdv_client_sdk.cart import Cart
from pdv_client_sdk.cash_register import CashRegister
from pdv_client_sdk.checkout import Checkout
from pdv_client_sdk.log import log_json
from pdv_client_sdk.scanner import ScanPipeline
from pdv_client_sdk.session import ApiSession
from pdv_client_sdk.telemetry import TelemetryLogger, build_event


def test_build_event_validates_category() -> None:
    with pytest.raises(ValueError):
        build_event(category="navigation", name="n", module="pdv", action="a")


def test_build_event_blocks_pii_context_keys() -> None:
    with pytest.raises(ValueError):
        build_event(category="checkout", name="sale_submitted", module="checkout", action="submit", context={"cpf": "123"})


def test_logger_writes_local_file_and_stdout(tmp_path) -> None:
    stream = io.StringIO()
    telemetry = TelemetryLogger(
        app_name="pdv",
        enabled=True,
        log_file=tmp_path / "telemetry.jsonl",
        stdout_sink=True,
        stdout_stream=stream,
    )

    assert telemetry.record(category="scan", name="scan_resolved", module="scanner", action="resolve") is True

    written = (tmp_path / "telemetry.jsonl").read_text().strip().splitlines()
    payload = json.loads(written[0])
    assert payload["category"] == "scan"
    assert payload["app_name"] == "pdv"
    assert "scan_resolved" in stream.getvalue()


def test_logger_disabled_by_default(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("PDV_TELEMETRY_ENABLED", raising=False)
    telemetry = TelemetryLogger(app_name="pdv", log_file=tmp_path / "telemetry.jsonl")
    assert telemetry.record(category="error", name="request_failed", module="sdk", action="fetch") is False
    assert not (tmp_path / "telemetry.jsonl").exists()


def test_env_toggle_enables_logger(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PDV_TELEMETRY_ENABLED", "true")
    assert TelemetryLogger(app_name="pdv", log_file=tmp_path / "t.jsonl").enabled is True


def test_scan_and_checkout_emit_events(tmp_path, fake_sales: FakeSales) -> None:
    telemetry = TelemetryLogger(app_name="pdv", enabled=True, log_file=tmp_path / "telemetry.jsonl")
    cart = Cart()
    ScanPipeline(cart, lambda code: make_product(code), telemetry=telemetry).scan("7891234567890")
    cart.set_amount_tendered("10")
    Checkout(cart, fake_sales, telemetry=telemetry).submit()

    events = [json.loads(line) for line in (tmp_path / "telemetry.jsonl").read_text().splitlines()]
    assert [(event["category"], event["success"]) for event in events] == [("scan", True), ("checkout", True)]
    assert events[0]["context"]["outcome"] == "accepted"


def test_log_json_emits_one_json_line(caplog: pytest.LogCaptureFixture) -> None:
    logger = logging.getLogger("pdv_client_sdk.test")
    with caplog.at_level(logging.INFO, logger="pdv_client_sdk.test"):
        log_json(logger, {"event": "cash_register_opened", "session_id": 1})
        log_json(logger, {"event": "hidden"}, level=logging.DEBUG)
    assert [json.loads(record.getMessage()) for record in caplog.records] == [
        {"event": "cash_register_opened", "session_id": 1}
    ]



@pytest.mark.parametrize("key", ["CPF", "cliente_nome", "numero-cartao", "senha"])
def test_customer_and_credential_keys_are_rejected(key: str) -> None:
    with pytest.raises(ValueError, match="PII"):
        build_event(category="checkout", name="sale_submitted", module="checkout", action="submit", context={key: "x"})


def test_context_values_must_be_flat() -> None:
    with pytest.raises(ValueError, match="scalars"):
        build_event(category="scan", name="scan_resolved", module="scanner", action="resolve", context={"items": ["1"]})


def test_session_logger_stamps_device_id(tmp_path, config, owner) -> None:
    telemetry = ApiSession(config=config, identity=owner, device_id="pdv-03").telemetry_logger(
        enabled=True, log_file=tmp_path / "telemetry.jsonl"
    )
    telemetry.record(category="cash_register", name="cash_register_open", module="cash_register", action="open")

    payload = json.loads((tmp_path / "telemetry.jsonl").read_text())
    assert payload["device_id"] == "pdv-03"
    assert payload["app_name"] == "pdv"


def test_cash_register_actions_emit_events(tmp_path, caixa_service) -> None:
    telemetry = TelemetryLogger(app_name="pdv", enabled=True, log_file=tmp_path / "telemetry.jsonl")
    register = CashRegister(caixa_service, telemetry=telemetry)

    register.open(100)
    register.supplement(50)
    register.close(150)

    events = [json.loads(line) for line in (tmp_path / "telemetry.jsonl").read_text().splitlines()]
    assert [event["action"] for event in events] == ["open", "record_movement", "close"]
    assert {event["category"] for event in events} == {"cash_register"}
    assert events[1]["context"] == {"type": "suprimento"}
