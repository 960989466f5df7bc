from __future__ import annotations

import logging
import threading
from typing import Callable

from .cash_register import CONTEXT_KEY, CashRegister, CashRegisterSnapshot
from .exceptions import ApiError
from .http_client import REQUEST_CANCELLED, HttpClient
from .models_sales import SaleResult

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 5.0

SnapshotListener = Callable[[CashRegisterSnapshot], None]


class CashRegisterMonitor:
    """Keeps a ``CashRegister`` in step with the caixa service.

    Totals change on the server (sales from other terminals, movements), so the
    open session and its movements are re-read every ``interval`` seconds on a
    daemon thread and right away when a sale completes on this terminal. Reads
    are tagged with the ``cash_register`` context; ``stop`` bumps it so any read
    still in flight is discarded. A failed refresh is logged and polling goes on.
    """

    def __init__(
        self,
        register: CashRegister,
        *,
        http: HttpClient | None = None,
        interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be > 0")
        self.register = register
        self.http = http if http is not None else getattr(register.client, "http", None)
        self.interval = interval
        self._listeners: list[SnapshotListener] = []
        self._wake = threading.Event()
        self._stopped = threading.Event()
        self._thread: threading.Thread | None = None
        self._refresh_lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def start(self) -> None:
        if self.running:
            return
        self._stopped.clear()
        self._wake.clear()
        self._thread = threading.Thread(target=self._run, name="cash-register-monitor", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stopped.set()
        self._wake.set()
        if self.http is not None:
            self.http.switch_context(CONTEXT_KEY)
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None

    def notify_sale_completed(self, sale: SaleResult | None = None) -> None:
        """Hook for ``Checkout.add_sale_completed_listener``: refresh now instead of at the next tick."""
        if self.running:
            self._wake.set()
        else:
            self.refresh()

    def refresh(self) -> CashRegisterSnapshot | None:
        snapshot = self._fetch()
        if snapshot is not None:
            self._publish(snapshot)
        return snapshot

    def _fetch(self) -> CashRegisterSnapshot | None:
        with self._refresh_lock:
            version = self.http.get_context_version(CONTEXT_KEY) if self.http is not None else None
            try:
                snapshot = self.register.refresh(context_key=CONTEXT_KEY, context_version=version)
            except ApiError as exc:
                if exc.code == REQUEST_CANCELLED:
                    logger.debug("cash register refresh discarded after context switch")
                else:
                    logger.warning("cash register refresh failed: %s", exc)
                return None
            except Exception:
                logger.exception("cash register refresh failed")
                return None
        return snapshot

    def _run(self) -> None:
        while not self._stopped.is_set():
            self._wake.clear()
            snapshot = self._fetch()
            if snapshot is not None and not self._stopped.is_set():
                self._publish(snapshot)
            self._wake.wait(self.interval)

    def _publish(self, snapshot: CashRegisterSnapshot) -> None:
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("cash register snapshot listener failed")
