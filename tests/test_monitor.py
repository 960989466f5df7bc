from __future__ import annotations

import threading
from decimal import Decimal

import pytest
import responses

from conftest import BASE_URL, FakeCashRegisterService
from pdv_client_sdk.cash_register import CONTEXT_KEY, CashRegister
from pdv_client_sdk.clients.cash_register_client import CashRegisterClient
from pdv_client_sdk.exceptions import ServerError, TransportError
from pdv_client_sdk.http_client import REQUEST_CANCELLED
from pdv_client_sdk.monitor import CashRegisterMonitor


class FailingService(FakeCashRegisterService):
    error: Exception | None = None

    def get_open_cash_register(self, **kwargs):
        if self.error is not None:
            raise self.error
        return super().get_open_cash_register(**kwargs)


def test_refresh_publishes_snapshot(caixa_service: FakeCashRegisterService) -> None:
    register = CashRegister(caixa_service)
    register.open(100)
    caixa_service.record_sale(Decimal("42"))
    monitor = CashRegisterMonitor(register)
    seen = []
    monitor.subscribe(seen.append)

    snapshot = monitor.refresh()

    assert snapshot is not None
    assert seen == [snapshot]
    assert snapshot.current_balance == Decimal("142")
    assert register.current_balance == Decimal("142")


def test_unsubscribe_stops_delivery(caixa_service: FakeCashRegisterService) -> None:
    monitor = CashRegisterMonitor(CashRegister(caixa_service))
    seen = []
    unsubscribe = monitor.subscribe(seen.append)
    unsubscribe()
    monitor.refresh()
    assert seen == []


def test_sale_completed_triggers_refresh_when_idle(caixa_service: FakeCashRegisterService) -> None:
    monitor = CashRegisterMonitor(CashRegister(caixa_service))
    monitor.notify_sale_completed()
    assert caixa_service.calls == ["get_open"]


@pytest.mark.parametrize(
    "error",
    [
        ServerError(code="HTTP_ERROR", message="down", details=None, trace_id=None, status_code=503),
        TransportError(code=REQUEST_CANCELLED, message="cancelled", details=None, trace_id=None, status_code=0),
        RuntimeError("unexpected"),
    ],
)
def test_failed_refresh_is_swallowed(error: Exception) -> None:
    service = FailingService()
    service.error = error
    monitor = CashRegisterMonitor(CashRegister(service))
    seen = []
    monitor.subscribe(seen.append)

    assert monitor.refresh() is None
    assert seen == []


def test_listener_failure_does_not_stop_other_listeners(caixa_service: FakeCashRegisterService) -> None:
    monitor = CashRegisterMonitor(CashRegister(caixa_service))
    seen = []
    monitor.subscribe(lambda snapshot: 1 / 0)
    monitor.subscribe(seen.append)
    monitor.refresh()
    assert len(seen) == 1


def test_polling_thread_refreshes_and_stops(caixa_service: FakeCashRegisterService) -> None:
    monitor = CashRegisterMonitor(CashRegister(caixa_service), interval=0.01)
    ticks = threading.Event()
    count = []

    def listener(snapshot) -> None:
        count.append(snapshot)
        if len(count) >= 2:
            ticks.set()

    monitor.subscribe(listener)
    monitor.start()
    try:
        assert ticks.wait(2)
        assert monitor.running
    finally:
        monitor.stop(timeout=2)
    assert not monitor.running


def test_interval_must_be_positive(caixa_service: FakeCashRegisterService) -> None:
    with pytest.raises(ValueError):
        CashRegisterMonitor(CashRegister(caixa_service), interval=0)


@responses.activate
def test_monitor_reads_bypass_cache_and_stop_switches_context(http, owner) -> None:
    responses.add(
        responses.GET,
        f"{BASE_URL}/api/caixas/aberto",
        json={"id": 3, "saldo_inicial": 100, "status": "aberto", "total_vendas": 10},
        status=200,
    )
    responses.add(responses.GET, f"{BASE_URL}/api/caixas/3/movimentacoes", json=[], status=200)
    register = CashRegister(CashRegisterClient(http=http, identity=owner))
    monitor = CashRegisterMonitor(register)

    monitor.refresh()
    monitor.refresh()

    assert monitor.http is http
    assert len(responses.calls) == 4
    assert register.current_balance == Decimal("110")

    before = http.get_context_version(CONTEXT_KEY)
    monitor.stop()
    assert http.get_context_version(CONTEXT_KEY) == before + 1
