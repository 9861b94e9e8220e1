from __future__ import annotations

from decimal import Decimal

import pytest
from services.api.app.services.catalog_base import resolve_prices
from services.api.app.services.catalog_memory import InMemoryCatalog
from services.api.app.services.errors import ValidationError
from services.api.app.services.pricing import (
    MAX_AMOUNT,
    PricedOption,
    QuoteRequest,
    ResolvedPrices,
    compute,
    display_amounts,
    round_half_up,
)


def _prices(base_price: int, **options: int) -> ResolvedPrices:
    return ResolvedPrices(
        base_item_id="item",
        item_name="Item",
        base_unit_price=base_price,
        options={
            oid: PricedOption(option_id=oid, name=oid.upper(), unit_price=price)
            for oid, price in options.items()
        },
    )


def test_end_to_end_breakdown(catalog: InMemoryCatalog) -> None:
    request = QuoteRequest(
        base_item_id="cake-choco",
        quantity=2,
        option_ids=("opt-a", "opt-b"),
        discount_rate=Decimal("0"),
        tax_rate=Decimal("0.10"),
    )

    b = compute(request, resolve_prices(catalog, request))

    assert b.item_name == "Chocolate Cake"
    assert b.items_total == 70000
    assert b.options_total == 8000
    assert b.subtotal == 78000
    assert b.final_total == 85800
    assert [line.option_id for line in b.options] == ["opt-a", "opt-b"]
    assert all(line.quantity == 1 for line in b.options)


def test_compute_is_deterministic(catalog: InMemoryCatalog) -> None:
    request = QuoteRequest(
        base_item_id="cake-choco",
        quantity=3,
        option_ids=("opt-b", "opt-a"),
        discount_rate=Decimal("0.15"),
        tax_rate=Decimal("0.1"),
    )
    prices = resolve_prices(catalog, request)

    assert compute(request, prices) == compute(request, prices)


@pytest.mark.parametrize(
    ("subtotal", "expected"),
    [
        (10000, 9900),
        # 10001 * 0.9 = 9000.9, * 1.1 = 9900.99 -> rounded once, after tax.
        (10001, 9901),
    ],
)
def test_rounding_happens_once_after_tax(subtotal: int, expected: int) -> None:
    request = QuoteRequest(
        base_item_id="item",
        quantity=1,
        discount_rate=Decimal("0.10"),
        tax_rate=Decimal("0.10"),
    )

    b = compute(request, _prices(subtotal))

    assert b.subtotal == subtotal
    assert b.final_total == expected


def test_round_half_up_rounds_halves_away_from_zero() -> None:
    assert round_half_up(Decimal("2.5")) == 3
    assert round_half_up(Decimal("3.5")) == 4
    assert round_half_up(Decimal("2.49")) == 2


def test_duplicate_options_collapse_keeping_first_appearance() -> None:
    request = QuoteRequest(
        base_item_id="item",
        quantity=1,
        option_ids=("b", "a", "b", "a"),
    )

    b = compute(request, _prices(1000, a=100, b=200))

    assert [line.option_id for line in b.options] == ["b", "a"]
    assert b.options_total == 300
    assert b.subtotal == 1300


def test_options_are_not_multiplied_by_quantity() -> None:
    request = QuoteRequest(base_item_id="item", quantity=4, option_ids=("a",))

    b = compute(request, _prices(1000, a=500))

    assert b.items_total == 4000
    assert b.options_total == 500


def test_float_rates_are_read_as_their_decimal_text() -> None:
    request = QuoteRequest(
        base_item_id="item",
        quantity=1,
        discount_rate=0.1,  # type: ignore[arg-type]
        tax_rate=0.1,  # type: ignore[arg-type]
    )

    b = compute(request, _prices(10001))

    assert b.discount_rate == Decimal("0.1")
    assert b.final_total == 9901


@pytest.mark.parametrize(
    ("overrides", "field"),
    [
        ({"quantity": 0}, "quantity"),
        ({"quantity": -3}, "quantity"),
        ({"discount_rate": Decimal("1")}, "discount_rate"),
        ({"discount_rate": Decimal("-0.01")}, "discount_rate"),
        ({"tax_rate": Decimal("-0.1")}, "tax_rate"),
        ({"tax_rate": Decimal("NaN")}, "tax_rate"),
        ({"option_ids": ("missing",)}, "option_ids"),
        ({"base_item_id": "other"}, "base_item_id"),
    ],
)
def test_invalid_input_names_the_field(overrides: dict, field: str) -> None:
    fields = {"base_item_id": "item", "quantity": 1, "option_ids": ()}
    fields.update(overrides)

    with pytest.raises(ValidationError) as exc_info:
        compute(QuoteRequest(**fields), _prices(1000))

    assert exc_info.value.field == field


def test_negative_catalog_price_is_rejected() -> None:
    with pytest.raises(ValidationError, match="base_unit_price"):
        compute(QuoteRequest(base_item_id="item", quantity=1), _prices(-1))


def test_display_amounts_reconcile_with_final_total() -> None:
    request = QuoteRequest(
        base_item_id="item",
        quantity=1,
        discount_rate=Decimal("0.10"),
        tax_rate=Decimal("0.10"),
    )

    b = compute(request, _prices(10001))
    amounts = display_amounts(b)

    # after discount 9000.9 -> 9001 pre-tax
    assert amounts.discount_amount == 1000
    assert amounts.tax_amount == 900
    assert b.subtotal - amounts.discount_amount + amounts.tax_amount == b.final_total


def test_zero_rates_leave_subtotal_unchanged() -> None:
    request = QuoteRequest(base_item_id="item", quantity=2, option_ids=("a",))

    b = compute(request, _prices(50, a=7))

    assert b.final_total == b.subtotal == 107
    assert display_amounts(b).tax_amount == 0


@pytest.mark.parametrize(
    ("overrides", "field"),
    [
        ({"quantity": 10**25, "tax_rate": Decimal("0.1")}, "quantity"),
        ({"tax_rate": Decimal("1e30")}, "tax_rate"),
        ({"tax_rate": Decimal("1e999999")}, "tax_rate"),
    ],
)
def test_oversized_totals_are_rejected(overrides: dict, field: str) -> None:
    fields = {"base_item_id": "item", "quantity": 1}
    fields.update(overrides)

    with pytest.raises(ValidationError) as exc_info:
        compute(QuoteRequest(**fields), _prices(38500))

    assert exc_info.value.field == field


def test_largest_supported_total_still_computes() -> None:
    request = QuoteRequest(base_item_id="item", quantity=1, tax_rate=Decimal("0"))

    b = compute(request, _prices(MAX_AMOUNT))

    assert b.final_total == MAX_AMOUNT
    assert display_amounts(b).tax_amount == 0


def test_long_rates_round_the_same_as_short_ones() -> None:
    # 30+ significant digits: more than the default decimal context keeps.
    request = QuoteRequest(
        base_item_id="item",
        quantity=1,
        discount_rate=Decimal("0.100000000000000000000000000000001"),
        tax_rate=Decimal("0.1"),
    )

    b = compute(request, _prices(10001))

    assert b.final_total == 9901
