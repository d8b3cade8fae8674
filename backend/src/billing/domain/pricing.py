"""Résolution des prix d'items de devis.

Seul endroit où le prix d'un item est calculé: la création/édition de devis,
l'approbation client, la facturation et les PDF passent tous par ici.

Ordre de résolution du prix d'une ligne:
    FREE -> 0
    HOURLY (taux et heures renseignés) -> taux horaire x heures
    variante sélectionnée -> prix de la variante x quantité
    sinon -> prix unitaire x quantité
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from src.billing.domain.entities import (
    BillingMode, Discount, DiscountType, ItemType, ItemVariant, PricedItem, QuoteTotals,
)

CENT = Decimal("0.01")
ZERO = Decimal(0)

def to_money(value: Decimal) -> Decimal:
    """Arrondit au cent (arrondi commercial)."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)

def selected_variant(item: PricedItem) -> Optional[ItemVariant]:
    if not item.variants or item.selected_variant is None:
        return None
    if 0 <= item.selected_variant < len(item.variants):
        return item.variants[item.selected_variant]
    return None

def is_hourly(item: PricedItem) -> bool:
    return item.billing_mode == BillingMode.HOURLY and bool(item.hourly_rate) and bool(item.hours)

def item_line_total(item: PricedItem) -> Decimal:
    if item.has_type(ItemType.FREE):
        return ZERO
    if is_hourly(item):
        return item.hourly_rate * item.hours
    variant = selected_variant(item)
    if variant is not None:
        return variant.price * item.quantity
    return item.unit_price * item.quantity

def item_unit_price(item: PricedItem) -> Decimal:
    """Prix unitaire affiché (ligne / quantité)."""
    line_total = item_line_total(item)
    if not item.quantity:
        return line_total
    return line_total / item.quantity

def is_included(item: PricedItem) -> bool:
    """Item retenu dans le devis: inclus au total et, s'il est à la carte, choisi."""
    if not item.include_in_total:
        return False
    if item.has_type(ItemType.A_LA_CARTE) and not item.is_selected:
        return False
    return True

def counts_toward_total(item: PricedItem) -> bool:
    return is_included(item) and not item.has_type(ItemType.FREE)

def quote_subtotal(items: Iterable[PricedItem]) -> Decimal:
    return sum((item_line_total(item) for item in items if counts_toward_total(item)), ZERO)

def discount_total(subtotal: Decimal, discounts: Iterable[Discount]) -> Decimal:
    """Somme des rabais, chacun calculé sur le sous-total avant rabais (pas de cumul)."""
    total = ZERO
    for discount in discounts:
        if discount.type == DiscountType.PERCENTAGE:
            total += subtotal * (discount.value / 100)
        else:
            total += discount.value
    return total

def compute_quote_totals(
    items: Iterable[PricedItem],
    discounts: Iterable[Discount],
    tps_rate: Decimal,
    tvq_rate: Decimal,
) -> QuoteTotals:
    subtotal = quote_subtotal(items)
    discounts_sum = discount_total(subtotal, discounts)
    after_discount = subtotal - discounts_sum
    tps = after_discount * tps_rate
    tvq = after_discount * tvq_rate
    return QuoteTotals(
        subtotal=to_money(subtotal),
        discount_total=to_money(discounts_sum),
        tps_amount=to_money(tps),
        tvq_amount=to_money(tvq),
        total=to_money(after_discount + tps + tvq),
    )
