from __future__ import annotations

from dataclasses import dataclass, field

from .cart import Cart
from .cash_register import CashRegister
from .checkout import Checkout
from .clients.cash_register_client import CashRegisterClient
from .clients.catalog_client import CatalogClient
from .clients.sales_client import SalesClient
from .config import ClientConfig
from .http_client import HttpClient
from .identity import IdentityContext
from .identity_store import IdentityStore
from .monitor import CashRegisterMonitor
from .scanner import ScanPipeline
from .telemetry import TelemetryLogger
from .tracing import TraceContext


@dataclass
class ApiSession:
    """Builds service clients that share one HTTP pool and one identity context."""

    config: ClientConfig
    identity: IdentityContext
    trace: TraceContext | None = None
    device_id: str | None = None
    http: HttpClient | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        self.trace = self.trace or TraceContext()
        if self.http is None:
            self.http = HttpClient(config=self.config, trace=self.trace)

    @classmethod
    def from_store(cls, config: ClientConfig, store: IdentityStore, **kwargs) -> "ApiSession | None":
        identity = store.load()
        if identity is None:
            return None
        return cls(config=config, identity=identity, **kwargs)

    def catalog_client(self) -> CatalogClient:
        return CatalogClient(http=self.http, identity=self.identity, device_id=self.device_id)

    def sales_client(self) -> SalesClient:
        return SalesClient(http=self.http, identity=self.identity, device_id=self.device_id)

    def cash_register_client(self) -> CashRegisterClient:
        return CashRegisterClient(http=self.http, identity=self.identity, device_id=self.device_id)

    def telemetry_logger(self, app_name: str = "pdv", **kwargs) -> TelemetryLogger:
        return TelemetryLogger(app_name=app_name, device_id=self.device_id, **kwargs)

    def cash_register(self, telemetry: TelemetryLogger | None = None) -> CashRegister:
        return CashRegister(
            self.cash_register_client(),
            movement_display_limit=self.config.movement_display_limit,
            account_id=self.identity.effective_account_id,
            telemetry=telemetry,
        )

    def cash_register_monitor(self, register: CashRegister) -> CashRegisterMonitor:
        return CashRegisterMonitor(register, http=self.http, interval=self.config.poll_interval_seconds)

    def scan_pipeline(self, cart: Cart, **kwargs) -> ScanPipeline:
        kwargs.setdefault("min_length", self.config.scan_min_length)
        return ScanPipeline(cart, self.catalog_client().lookup_product_by_barcode, **kwargs)

    def checkout(self, cart: Cart, **kwargs) -> Checkout:
        return Checkout(cart, self.sales_client(), **kwargs)

    def close(self) -> None:
        if self.http is not None:
            self.http.close()
