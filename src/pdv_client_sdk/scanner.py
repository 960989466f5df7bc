from __future__ import annotations

import logging
import sys
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Protocol, TextIO

from .cart import Cart, CartLine
from .exceptions import ProductNotFoundError
from .models_catalog import Product
from .telemetry import TelemetryLogger

logger = logging.getLogger(__name__)

# Scanner double-fires land well inside this window. Not adjustable per call.
DEBOUNCE_SECONDS = 0.1
# Quiet time after the last keystroke before a long-enough buffer is resolved.
SETTLE_SECONDS = 0.1
DEFAULT_MIN_LENGTH = 8

ProductLookup = Callable[[str], "Product | None"]


class ScanState(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    RESOLVING = "resolving"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class ScanOutcome(str, Enum):
    ACCEPTED = "accepted"
    NOT_FOUND = "not_found"
    OUT_OF_STOCK = "out_of_stock"


class ScanFeedback(Protocol):
    def signal(self, accepted: bool) -> None:
        """Play the success or failure cue. Must return immediately."""


class NullFeedback:
    def signal(self, accepted: bool) -> None:
        return None


class TerminalBellFeedback:
    """One bell for an accepted scan, two for a rejected one."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self.stream = stream

    def signal(self, accepted: bool) -> None:
        stream = self.stream or sys.stdout
        stream.write("\a" if accepted else "\a\a")
        stream.flush()


@dataclass(frozen=True)
class ScanResult:
    barcode: str
    outcome: ScanOutcome
    line: CartLine | None = None
    error: ProductNotFoundError | None = None

    @property
    def accepted(self) -> bool:
        return self.outcome is ScanOutcome.ACCEPTED


class ScanPipeline:
    """Turns scanner/keyboard input into cart mutations.

    ``type_text`` feeds characters, ``tick`` resolves a buffer of at least
    ``min_length`` characters once input has settled, ``enter`` resolves
    whatever is buffered right away. Any resolution attempt less than 100 ms
    after the previous one is dropped and the buffer is left untouched; the
    window is global, so two different barcodes inside it also collapse into
    one. Lookups run in call order and a failing lookup counts as "not found".
    """

    def __init__(
        self,
        cart: Cart,
        lookup: ProductLookup,
        *,
        feedback: ScanFeedback | None = None,
        on_not_found: Callable[[ProductNotFoundError], None] | None = None,
        on_accepted: Callable[[CartLine], None] | None = None,
        on_refocus: Callable[[], None] | None = None,
        min_length: int = DEFAULT_MIN_LENGTH,
        clock: Callable[[], float] = time.monotonic,
        telemetry: TelemetryLogger | None = None,
    ) -> None:
        if min_length < 1:
            raise ValueError("min_length must be >= 1")
        self.cart = cart
        self.lookup = lookup
        self.feedback = feedback or NullFeedback()
        self.on_not_found = on_not_found
        self.on_accepted = on_accepted
        self.on_refocus = on_refocus
        self.min_length = min_length
        self.clock = clock
        self.telemetry = telemetry
        self._buffer = ""
        self._state = ScanState.IDLE
        self._last_input_at: float | None = None
        self._last_attempt_at: float | None = None

    @property
    def buffer(self) -> str:
        return self._buffer

    @property
    def state(self) -> ScanState:
        return self._state

    def type_text(self, text: str) -> None:
        if not text:
            return
        self._buffer += text
        self._state = ScanState.SCANNING
        self._last_input_at = self.clock()

    def set_buffer(self, text: str) -> None:
        self._buffer = text
        self._state = ScanState.SCANNING if text else ScanState.IDLE
        self._last_input_at = self.clock()

    def tick(self) -> ScanResult | None:
        if self._state is not ScanState.SCANNING or len(self._buffer) < self.min_length:
            return None
        if self._last_input_at is not None and self.clock() - self._last_input_at < SETTLE_SECONDS:
            return None
        return self._resolve()

    def enter(self) -> ScanResult | None:
        return self._resolve()

    def scan(self, barcode: str) -> ScanResult | None:
        """Feed a complete code, as delivered by a scanner that sends a trailing Enter."""
        self.set_buffer(barcode)
        return self.enter()

    def _resolve(self) -> ScanResult | None:
        barcode = self._buffer.strip()
        if not barcode:
            self._reset()
            return None
        now = self.clock()
        if self._last_attempt_at is not None and now - self._last_attempt_at < DEBOUNCE_SECONDS:
            logger.debug("scan of %s dropped by debounce", barcode)
            self._reset()
            return None
        self._last_attempt_at = now
        self._state = ScanState.RESOLVING

        product: Product | None = None
        failure: Exception | None = None
        try:
            product = self.lookup(barcode)
        except Exception as exc:
            logger.warning("product lookup failed for %s: %s", barcode, exc)
            failure = exc

        if product is None:
            result = ScanResult(
                barcode=barcode,
                outcome=ScanOutcome.NOT_FOUND,
                error=ProductNotFoundError(barcode, cause=failure),
            )
            self._state = ScanState.REJECTED
            self._notify(False)
            if self.on_not_found is not None:
                self._safe_call("on_not_found", self.on_not_found, result.error)
        else:
            line = self.cart.add_or_increment(barcode, product)
            if line is None:
                logger.info("product %s has no stock, not added", barcode)
                result = ScanResult(barcode=barcode, outcome=ScanOutcome.OUT_OF_STOCK)
                self._state = ScanState.REJECTED
                self._notify(False)
            else:
                result = ScanResult(barcode=barcode, outcome=ScanOutcome.ACCEPTED, line=line)
                self._state = ScanState.ACCEPTED
                self._notify(True)
                if self.on_accepted is not None:
                    self._safe_call("on_accepted", self.on_accepted, line)

        self._record(result)
        self._reset()
        if result.accepted and self.on_refocus is not None:
            self._safe_call("on_refocus", self.on_refocus)
        return result

    def _reset(self) -> None:
        self._buffer = ""
        self._state = ScanState.IDLE
        self._last_input_at = None

    def _notify(self, accepted: bool) -> None:
        self._safe_call("feedback", self.feedback.signal, accepted)

    def _record(self, result: ScanResult) -> None:
        if self.telemetry is None:
            return
        self._safe_call(
            "telemetry",
            self.telemetry.record,
            category="scan",
            name="scan_resolved",
            module="scanner",
            action="resolve",
            success=result.accepted,
            context={"barcode": result.barcode, "outcome": result.outcome.value},
        )

    @staticmethod
    def _safe_call(label: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        # Collaborator failures must never stop the scanner.
        try:
            func(*args, **kwargs)
        except Exception:
            logger.exception("scan pipeline %s callback failed", label)
