"""Quote calculator.

Turns a quote request plus resolved catalog prices into an itemized breakdown.
Everything here is pure: no I/O, no clock, no shared state. Preview and submit
both call `compute`, so a saved quote always matches the preview it came from.

Arithmetic is done on `Decimal` and rounded exactly once, after discount and tax.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, DecimalException, InvalidOperation, localcontext

from services.api.app.services.errors import ValidationError

_ZERO = Decimal("0")
_ONE = Decimal("1")

# Largest amount an Integer column holds.
MAX_AMOUNT = 2**63 - 1
# Wide enough that products of in-range amounts and rates stay exact.
_PRECISION = 1000


@dataclass(frozen=True, slots=True)
class QuoteRequest:
    base_item_id: str
    quantity: int
    option_ids: tuple[str, ...] = ()
    discount_rate: Decimal = _ZERO
    tax_rate: Decimal = _ZERO

    def unique_option_ids(self) -> tuple[str, ...]:
        # First appearance wins; later duplicates collapse.
        return tuple(dict.fromkeys(self.option_ids))


@dataclass(frozen=True, slots=True)
class PricedOption:
    option_id: str
    name: str
    unit_price: int


@dataclass(frozen=True, slots=True)
class ResolvedPrices:
    base_item_id: str
    item_name: str
    base_unit_price: int
    options: dict[str, PricedOption]


@dataclass(frozen=True, slots=True)
class OptionLine:
    option_id: str
    name: str
    unit_price: int
    quantity: int
    line_total: int


@dataclass(frozen=True, slots=True)
class QuoteBreakdown:
    base_item_id: str
    item_name: str
    base_unit_price: int
    quantity: int
    options: tuple[OptionLine, ...]
    items_total: int
    options_total: int
    subtotal: int
    discount_rate: Decimal
    tax_rate: Decimal
    final_total: int

    @property
    def after_discount(self) -> Decimal:
        with localcontext() as ctx:
            ctx.prec = _PRECISION
            return Decimal(self.subtotal) * (_ONE - self.discount_rate)


@dataclass(frozen=True, slots=True)
class DisplayAmounts:
    discount_amount: int
    tax_amount: int


def round_half_up(value: Decimal) -> int:
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        return int(value.quantize(_ONE, rounding=ROUND_HALF_UP))


def compute(request: QuoteRequest, prices: ResolvedPrices) -> QuoteBreakdown:
    quantity = _validate_quantity(request.quantity)
    discount_rate = _as_rate(request.discount_rate, "discount_rate")
    if not (_ZERO <= discount_rate < _ONE):
        raise ValidationError("discount_rate", "must be >= 0 and < 1")

    tax_rate = _as_rate(request.tax_rate, "tax_rate")
    if tax_rate < _ZERO:
        raise ValidationError("tax_rate", "must be >= 0")

    if prices.base_item_id != request.base_item_id:
        raise ValidationError(
            "base_item_id",
            f"prices were resolved for {prices.base_item_id!r}, "
            f"not {request.base_item_id!r}",
        )
    _validate_price(prices.base_unit_price, "base_unit_price")

    lines: list[OptionLine] = []
    for option_id in request.unique_option_ids():
        priced = prices.options.get(option_id)
        if priced is None:
            raise ValidationError("option_ids", f"unknown option {option_id!r}")
        _validate_price(priced.unit_price, f"option {option_id} unit_price")

        # One unit per selected option, independent of the base quantity.
        lines.append(
            OptionLine(
                option_id=option_id,
                name=priced.name,
                unit_price=priced.unit_price,
                quantity=1,
                line_total=priced.unit_price,
            )
        )

    items_total = prices.base_unit_price * quantity
    if items_total > MAX_AMOUNT:
        raise ValidationError("quantity", "pushes the total past the largest supported amount")
    options_total = sum(line.line_total for line in lines)
    subtotal = items_total + options_total
    if subtotal > MAX_AMOUNT:
        raise ValidationError(
            "option_ids", "push the total past the largest supported amount"
        )

    final_total = _final_total(subtotal, discount_rate, tax_rate)

    return QuoteBreakdown(
        base_item_id=prices.base_item_id,
        item_name=prices.item_name,
        base_unit_price=prices.base_unit_price,
        quantity=quantity,
        options=tuple(lines),
        items_total=items_total,
        options_total=options_total,
        subtotal=subtotal,
        discount_rate=discount_rate,
        tax_rate=tax_rate,
        final_total=final_total,
    )


def display_amounts(breakdown: QuoteBreakdown) -> DisplayAmounts:
    """Split the difference between subtotal and final total for display.

    Both amounts are measured against the rounded post-discount amount, so
    `subtotal - discount_amount + tax_amount == final_total` always holds.
    They are derived values and never stored.
    """

    pre_tax = round_half_up(breakdown.after_discount)
    return DisplayAmounts(
        discount_amount=breakdown.subtotal - pre_tax,
        tax_amount=breakdown.final_total - pre_tax,
    )


def _validate_quantity(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("quantity", "must be an integer")
    if value < 1:
        raise ValidationError("quantity", "must be >= 1")
    return value


def _validate_price(value: object, field: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(field, "must be a non-negative integer")


def _as_rate(value: object, field: str) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(field, "must be a decimal number")

    try:
        if isinstance(value, Decimal):
            rate = value
        elif isinstance(value, int):
            rate = Decimal(value)
        elif isinstance(value, (float, str)):
            # str() keeps 0.1 as 0.1 instead of its binary expansion.
            rate = Decimal(str(value))
        else:
            raise ValidationError(field, "must be a decimal number")
    except InvalidOperation as e:
        raise ValidationError(field, "must be a decimal number") from e

    if not rate.is_finite():
        raise ValidationError(field, "must be finite")
    return rate


def _final_total(subtotal: int, discount_rate: Decimal, tax_rate: Decimal) -> int:
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        try:
            value = Decimal(subtotal) * (_ONE - discount_rate) * (_ONE + tax_rate)
        except DecimalException as e:
            raise ValidationError("tax_rate", "is too large") from e

    if value > MAX_AMOUNT:
        raise ValidationError("tax_rate", "pushes the total past the largest supported amount")
    return round_half_up(value)
