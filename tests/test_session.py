from __future__ import annotations

from dataclasses import replace
from decimal import Decimal

import responses

from conftest import BASE_URL
from pdv_client_sdk.cart import Cart
from pdv_client_sdk.exceptions import EmptyCartError, SaleSubmissionError
from pdv_client_sdk.identity_store import IdentityStore
from pdv_client_sdk.scanner import ScanOutcome
from pdv_client_sdk.session import ApiSession
from pdv_client_sdk.ui_errors import to_user_facing_error


def test_from_store_without_saved_identity(tmp_path, config) -> None:
    assert ApiSession.from_store(config, IdentityStore(base_dir=tmp_path)) is None


def test_from_store_restores_identity(tmp_path, config, employee) -> None:
    store = IdentityStore(base_dir=tmp_path)
    store.save(employee)
    session = ApiSession.from_store(config, store)
    assert session is not None
    assert session.identity == employee


def test_clients_share_one_http_pool(config, owner) -> None:
    session = ApiSession(config=config, identity=owner)
    assert session.catalog_client().http is session.sales_client().http is session.cash_register_client().http
    session.close()


def test_register_and_scanner_take_config_values(config, employee) -> None:
    session = ApiSession(config=replace(config, scan_min_length=13, movement_display_limit=2, poll_interval_seconds=1.5), identity=employee)

    register = session.cash_register()
    monitor = session.cash_register_monitor(register)
    pipeline = session.scan_pipeline(Cart())

    assert register.movement_display_limit == 2
    assert register.account_id == "user-1"
    assert monitor.interval == 1.5
    assert monitor.http is session.http
    assert pipeline.min_length == 13


@responses.activate
def test_scan_then_checkout_end_to_end(config, owner) -> None:
    responses.add(
        responses.GET,
        f"{BASE_URL}/api/produtos/codigo/7891234567890",
        json={"id": 1, "nome": "Arroz 5kg", "preco": "25.50", "quantidade": 50},
        status=200,
    )
    responses.add(responses.POST, f"{BASE_URL}/api/vendas", json={"id": 501, "valor_total": 25.5}, status=201)
    session = ApiSession(config=config, identity=owner, device_id="pdv-01")
    cart = Cart()
    completed = []

    result = session.scan_pipeline(cart).scan("7891234567890")
    cart.set_amount_tendered("30")
    sale = session.checkout(cart, on_complete=lambda payload, sale: completed.append(sale.id)).submit()

    assert result.outcome is ScanOutcome.ACCEPTED
    assert sale.totals.change == Decimal("4.50")
    assert completed == [501]
    assert cart.is_empty
    assert responses.calls[1].request.headers["X-Device-ID"] == "pdv-01"


def test_user_facing_errors() -> None:
    api = to_user_facing_error(
        SaleSubmissionError(code="HTTP_ERROR", message="Estoque insuficiente", details=None, trace_id="t-7", status_code=400)
    )
    assert api.message == "Estoque insuficiente"
    assert api.trace_id == "t-7"
    assert api.technical_details == "HTTP_ERROR (HTTP 400)"

    local = to_user_facing_error(EmptyCartError())
    assert local.message == "Cart is empty"
    assert local.details == "EmptyCartError"

    other = to_user_facing_error(RuntimeError(""))
    assert other.message == "Unexpected error"
