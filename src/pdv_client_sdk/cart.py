from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from .exceptions import InvalidAmountError
from .models_catalog import Product
from .models_sales import PaymentMethod, SaleItem, accepts_cash_tender

ZERO = Decimal("0.00")
CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def to_money(value: Decimal | int | float | str) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def parse_amount(value: Decimal | int | float | str | None) -> Decimal:
    """Parse an amount typed by the operator.

    Blank input counts as zero. A lone comma is read as the decimal separator
    ("12,50"); negative or unparseable input raises ``InvalidAmountError``.
    """
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        parsed = value
    elif isinstance(value, (int, float)):
        parsed = Decimal(str(value))
    else:
        text = value.strip()
        if not text:
            return ZERO
        if "," in text and "." not in text:
            text = text.replace(",", ".")
        try:
            parsed = Decimal(text)
        except InvalidOperation as exc:
            raise InvalidAmountError(f"Invalid amount: {value!r}") from exc
    if not parsed.is_finite():
        raise InvalidAmountError(f"Invalid amount: {value!r}")
    if parsed < 0:
        raise InvalidAmountError(f"Amount must be >= 0, got {value!r}")
    return parsed


@dataclass
class CartLine:
    product_id: int | str
    barcode: str
    name: str
    unit_price: Decimal
    quantity: int
    stock_available: int

    @property
    def line_subtotal(self) -> Decimal:
        return self.unit_price * self.quantity

    @property
    def at_stock_limit(self) -> bool:
        return self.quantity >= self.stock_available


@dataclass(frozen=True)
class CartTotals:
    subtotal: Decimal
    discount_amount: Decimal
    total: Decimal
    # None unless the payment method takes a cash tender
    change: Decimal | None


class Cart:
    """Line items of the sale being rung up on one PDV terminal.

    Quantities are clamped to the stock snapshot taken when the product was
    scanned: asking for more than is available caps silently instead of
    failing. Every mutation bumps ``revision``.
    """

    def __init__(self) -> None:
        self._lines: list[CartLine] = []
        self.discount_percent: Decimal = ZERO
        self.payment_method: PaymentMethod = PaymentMethod.CASH
        self.amount_tendered: Decimal = ZERO
        self.customer_id: int | str | None = None
        self.revision = 0

    @property
    def lines(self) -> tuple[CartLine, ...]:
        return tuple(self._lines)

    @property
    def is_empty(self) -> bool:
        return not self._lines

    def __len__(self) -> int:
        return len(self._lines)

    def _line(self, line_index: int) -> CartLine:
        # lines are addressed by their on-screen position; no counting from the end
        if not 0 <= line_index < len(self._lines):
            raise IndexError(f"cart has no line {line_index}")
        return self._lines[line_index]

    def index_of(self, barcode: str) -> int | None:
        for idx, line in enumerate(self._lines):
            if line.barcode == barcode:
                return idx
        return None

    def add_or_increment(self, barcode: str, product: Product) -> CartLine | None:
        idx = self.index_of(barcode)
        if idx is not None:
            line = self._lines[idx]
            line.quantity = min(line.quantity + 1, line.stock_available)
            self._touch()
            return line
        if product.stock < 1:
            return None
        line = CartLine(
            product_id=product.id,
            barcode=barcode,
            name=product.name,
            unit_price=Decimal(product.price),
            quantity=1,
            stock_available=product.stock,
        )
        self._lines.append(line)
        self._touch()
        return line

    def set_quantity(self, line_index: int, requested: int) -> CartLine:
        line = self._line(line_index)
        line.quantity = max(1, min(int(requested), line.stock_available))
        self._touch()
        return line

    def change_quantity(self, line_index: int, delta: int) -> CartLine:
        return self.set_quantity(line_index, self._line(line_index).quantity + delta)

    def remove_line(self, line_index: int) -> CartLine:
        line = self._line(line_index)
        del self._lines[line_index]
        self._touch()
        return line

    def apply_customer(self, customer_id: int | str | None, discount_percent: Decimal | int | float | str | None = None) -> None:
        """Select the customer for this sale and take over their discount tier."""
        self.customer_id = customer_id
        self.set_discount_percent(discount_percent)

    def set_discount_percent(self, discount_percent: Decimal | int | float | str | None) -> None:
        value = parse_amount(discount_percent)
        if value > HUNDRED:
            raise InvalidAmountError(f"Discount must be between 0 and 100, got {discount_percent!r}")
        self.discount_percent = value
        self._touch()

    def set_payment_method(self, method: PaymentMethod | str) -> None:
        self.payment_method = PaymentMethod(method)
        self._touch()

    def set_amount_tendered(self, amount: Decimal | int | float | str | None) -> None:
        self.amount_tendered = parse_amount(amount)
        self._touch()

    def clear(self) -> None:
        self._lines.clear()
        self.discount_percent = ZERO
        self.payment_method = PaymentMethod.CASH
        self.amount_tendered = ZERO
        self.customer_id = None
        self._touch()

    def compute_totals(self) -> CartTotals:
        subtotal = sum((line.line_subtotal for line in self._lines), ZERO)
        discount_amount = min(to_money(subtotal * self.discount_percent / HUNDRED), subtotal)
        total = subtotal - discount_amount
        change = self.amount_tendered - total if accepts_cash_tender(self.payment_method) else None
        return CartTotals(subtotal=subtotal, discount_amount=discount_amount, total=total, change=change)

    def sale_items(self) -> list[SaleItem]:
        return [SaleItem(barcode=line.barcode, quantity=line.quantity) for line in self._lines]

    def _touch(self) -> None:
        self.revision += 1
