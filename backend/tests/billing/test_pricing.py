from decimal import Decimal

import pytest

from src.billing.domain.entities import BillingMode, Discount, DiscountType, ItemType, PricedItem
from src.billing.domain.pricing import (
    compute_quote_totals, discount_total, is_included, item_line_total, item_unit_price, to_money,
)

def item(**kwargs) -> PricedItem:
    kwargs.setdefault("id", 1)
    kwargs.setdefault("name", "Item")
    return PricedItem(**kwargs)

def test_to_money_rounds_half_up():
    assert to_money(Decimal("0.005")) == Decimal("0.01")
    assert to_money(Decimal("2.675")) == Decimal("2.68")
    assert to_money(Decimal("10")) == Decimal("10.00")

def test_free_item_costs_nothing():
    free = item(unit_price=Decimal("250"), item_types=["SERVICE", "FREE"])
    assert item_line_total(free) == 0

def test_hourly_item_uses_rate_times_hours():
    hourly = item(
        billing_mode=BillingMode.HOURLY, unit_price=Decimal("999"),
        hourly_rate=Decimal("85"), hours=Decimal("3.5"),
    )
    assert item_line_total(hourly) == Decimal("297.5")

def test_hourly_item_without_hours_falls_back_to_unit_price():
    hourly = item(billing_mode=BillingMode.HOURLY, unit_price=Decimal("120"), quantity=2, hourly_rate=Decimal("85"))
    assert item_line_total(hourly) == Decimal("240")

def test_selected_variant_price_times_quantity():
    logo = item(
        unit_price=Decimal("100"), quantity=2, selected_variant=1,
        variants=[{"label": "Simple", "price": "80"}, {"label": "Premium", "price": "150"}],
    )
    assert item_line_total(logo) == Decimal("300")
    assert item_unit_price(logo) == Decimal("150")

def test_out_of_range_variant_falls_back_to_unit_price():
    logo = item(unit_price=Decimal("100"), selected_variant=5, variants=[{"label": "Simple", "price": "80"}])
    assert item_line_total(logo) == Decimal("100")

def test_unselected_a_la_carte_item_is_excluded():
    option = item(unit_price=Decimal("50"), item_types=["A_LA_CARTE"], is_selected=False)
    assert not is_included(option)
    assert is_included(item(unit_price=Decimal("50"), item_types=["A_LA_CARTE"]))
    assert not is_included(item(unit_price=Decimal("50"), include_in_total=False))

def test_discounts_are_computed_on_the_pre_discount_subtotal():
    discounts = [
        Discount(type=DiscountType.PERCENTAGE, value=Decimal("10")),
        Discount(type=DiscountType.FIXED, value=Decimal("25")),
        Discount(type=DiscountType.PERCENTAGE, value=Decimal("10")),
    ]
    assert discount_total(Decimal("1000"), discounts) == Decimal("225")

def test_compute_quote_totals_with_quebec_taxes():
    items = [
        item(id=1, unit_price=Decimal("600")),
        item(id=2, unit_price=Decimal("400")),
        item(id=3, unit_price=Decimal("300"), item_types=["FREE"]),
    ]
    discounts = [Discount(type=DiscountType.PERCENTAGE, value=Decimal("10"))]

    totals = compute_quote_totals(items, discounts, Decimal("0.05"), Decimal("0.09975"))

    assert totals.subtotal == Decimal("1000.00")
    assert totals.discount_total == Decimal("100.00")
    assert totals.tps_amount == Decimal("45.00")
    assert totals.tvq_amount == Decimal("89.78")
    assert totals.total == Decimal("1034.78")

def test_item_types_round_trip_through_names():
    flags = ItemType.from_names(["service", "A_LA_CARTE"])
    assert ItemType.A_LA_CARTE in flags
    assert ItemType.FREE not in flags
    assert flags.to_names() == ["SERVICE", "A_LA_CARTE"]

def test_unknown_item_type_is_rejected():
    with pytest.raises(ValueError):
        ItemType.from_names(["GRATUIT"])
