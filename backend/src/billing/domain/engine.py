"""Dérivation des factures à partir d'un devis accepté.

Calcul pur: aucune E/S. Le service appelant relit le devis, les factures et les
dépenses dans une transaction sérialisée par devis, puis persiste le résultat.
"""
import logging
from decimal import Decimal
from typing import Iterable, List, Mapping, Optional, Sequence

from src.billing.domain.entities import (
    BillableExpense, BillableQuote, DerivedInvoice, DerivedInvoiceLine, InvoiceRequest,
    InvoiceStatus, InvoiceType, PriorInvoice, QuoteStatus, QuoteTotals,
)
from src.billing.domain.exceptions import (
    AmountExceedsBalanceException, DuplicateDepositException, InvalidStateException,
    QuoteItemNotFoundException,
)
from src.billing.domain.pricing import ZERO, compute_quote_totals, is_included, to_money

logger = logging.getLogger(__name__)

# Marge d'arrondi sur les soldes TTC: les conversions HT <-> TTC répétées
# (division puis multiplication par 1 + TPS + TVQ) dérivent de quelques cents.
BALANCE_TOLERANCE = Decimal("0.10")

# En deçà, un montant HT de base est considéré comme nul.
ZERO_AMOUNT_THRESHOLD = Decimal("0.01")

APPROVABLE_QUOTE_STATUSES = (QuoteStatus.SENT, QuoteStatus.VIEWED)

def _format_percent(value: Decimal) -> str:
    return f"{Decimal(value).normalize():f}"

def _expense_label(expense: BillableExpense, prefix: str = "") -> str:
    label = f"{prefix}{expense.description}"
    if expense.vendor:
        label += f" ({expense.vendor})"
    return label

def active_invoices(invoices: Iterable[PriorInvoice]) -> List[PriorInvoice]:
    return [invoice for invoice in invoices if invoice.status != InvoiceStatus.CANCELLED]

def invoiced_against_quote(quote: BillableQuote, invoice: PriorInvoice) -> Decimal:
    """Part TTC d'une facture imputée au solde du devis (dépenses exclues)."""
    return invoice.total - to_money(invoice.expenses_subtotal * quote.tax_multiplier)

def remaining_balance(quote: BillableQuote, prior_invoices: Iterable[PriorInvoice]) -> Decimal:
    """Solde restant TTC du devis: total du devis moins les factures non annulées."""
    total_invoiced = sum((invoiced_against_quote(quote, invoice) for invoice in active_invoices(prior_invoices)), ZERO)
    return quote.total - total_invoiced

def resolve_invoice_type(
    requested_type: InvoiceType,
    remaining: Decimal,
    base_subtotal: Decimal,
    base_total: Decimal,
    expenses_total: Decimal,
) -> InvoiceType:
    """Détermine le type effectif de la facture.

    Pour un paiement, le type demandé est ignoré: FINAL si le solde est
    consommé (à la marge d'arrondi près), sinon PARTIAL.
    """
    if remaining < BALANCE_TOLERANCE and expenses_total > 0 and base_subtotal < ZERO_AMOUNT_THRESHOLD:
        return InvoiceType.STANDALONE
    if requested_type == InvoiceType.DEPOSIT:
        return InvoiceType.DEPOSIT
    new_remaining = remaining - base_total
    return InvoiceType.FINAL if new_remaining < BALANCE_TOLERANCE else InvoiceType.PARTIAL

def _payment_description(quote: BillableQuote) -> str:
    titles = "\n".join(f"• {item.name}" for item in quote.items if is_included(item))
    description = f"Paiement — Devis {quote.quote_number}"
    if titles:
        description += f"\n\n{titles}"
    return description

def _build_lines(
    invoice_type: InvoiceType,
    quote: BillableQuote,
    base_subtotal: Decimal,
    expenses: Sequence[BillableExpense],
) -> List[DerivedInvoiceLine]:
    if invoice_type == InvoiceType.STANDALONE:
        return [
            DerivedInvoiceLine(
                description=_expense_label(expense),
                unit_price=to_money(expense.amount),
                total=to_money(expense.amount),
                sort_order=index,
            )
            for index, expense in enumerate(expenses)
        ]

    amount = to_money(base_subtotal)
    if invoice_type == InvoiceType.DEPOSIT:
        description = f"Dépôt ({_format_percent(quote.deposit_percent)}%) — Devis {quote.quote_number}"
    else:
        description = _payment_description(quote)
    lines = [DerivedInvoiceLine(description=description, unit_price=amount, total=amount)]
    # Les dépenses suivent la ligne de base, elles ne comptent pas dans le solde du devis
    for index, expense in enumerate(expenses, start=1):
        lines.append(DerivedInvoiceLine(
            description=_expense_label(expense, prefix="Dépense: "),
            unit_price=to_money(expense.amount),
            total=to_money(expense.amount),
            sort_order=index,
        ))
    return lines

def derive_invoice(
    quote: BillableQuote,
    prior_invoices: Iterable[PriorInvoice],
    request: InvoiceRequest,
    expenses: Sequence[BillableExpense] = (),
) -> DerivedInvoice:
    """Calcule la prochaine facture d'un devis accepté.

    Args:
        quote: le devis (total TTC, taux de taxes, pourcentage de dépôt, items).
        prior_invoices: les factures déjà émises contre ce devis. Les factures
            annulées sont ignorées.
        request: type demandé, montant TTC optionnel, dépenses à inclure.
        expenses: les dépenses facturables correspondant à `request.expense_ids`.

    Returns:
        Le type effectif, les montants arrondis au cent et les lignes à persister.

    Raises:
        InvalidStateException: devis non accepté, ou rien à facturer.
        DuplicateDepositException: un dépôt non annulé existe déjà.
        AmountExceedsBalanceException: le montant dépasse le solde restant.
    """
    if quote.status != QuoteStatus.ACCEPTED:
        raise InvalidStateException("Seul un devis accepté peut être converti en facture.")

    prior = active_invoices(prior_invoices)
    requested_type = request.requested_invoice_type
    if requested_type == InvoiceType.DEPOSIT and any(inv.invoice_type == InvoiceType.DEPOSIT for inv in prior):
        raise DuplicateDepositException(quote.id)

    remaining = remaining_balance(quote, prior)
    tax_multiplier = quote.tax_multiplier

    if requested_type == InvoiceType.DEPOSIT:
        base_subtotal = quote.total * (quote.deposit_percent / 100) / tax_multiplier
    else:
        amount = request.requested_amount if request.requested_amount is not None else remaining
        base_subtotal = amount / tax_multiplier

    expenses_total = sum((expense.amount for expense in expenses), ZERO)
    base_total = base_subtotal * tax_multiplier

    invoice_type = resolve_invoice_type(requested_type, remaining, base_subtotal, base_total, expenses_total)

    if invoice_type == InvoiceType.STANDALONE:
        # Le devis est déjà soldé: seule la refacturation des dépenses subsiste
        base_subtotal = ZERO
    else:
        if base_total > remaining + BALANCE_TOLERANCE:
            logger.warning(f"[Billing] Devis {quote.quote_number}: montant {base_total:.2f} > solde {remaining:.2f}")
            raise AmountExceedsBalanceException(remaining_balance=to_money(remaining))
        if base_subtotal < ZERO_AMOUNT_THRESHOLD and expenses_total == 0:
            raise InvalidStateException(f"Rien à facturer sur le devis {quote.quote_number}.")
        if invoice_type == InvoiceType.FINAL:
            # La facture finale solde le devis au cent près
            base_subtotal = to_money(remaining) / tax_multiplier

    lines = _build_lines(invoice_type, quote, base_subtotal, expenses)
    subtotal = sum((line.total for line in lines), ZERO)
    expenses_subtotal = sum((to_money(expense.amount) for expense in expenses), ZERO)
    tps_amount = to_money(subtotal * quote.tps_rate)
    if invoice_type == InvoiceType.FINAL:
        # L'écart d'arrondi des deux taxes est absorbé par la TVQ
        target_total = to_money(remaining) + to_money(expenses_subtotal * tax_multiplier)
        tvq_amount = target_total - subtotal - tps_amount
    else:
        tvq_amount = to_money(subtotal * quote.tvq_rate)

    logger.debug(
        f"[Billing] Devis {quote.quote_number}: solde={remaining:.2f}, demandé={requested_type.value}, "
        f"effectif={invoice_type.value}, sous-total={subtotal}"
    )
    return DerivedInvoice(
        invoice_type=invoice_type,
        subtotal=subtotal,
        tps_amount=tps_amount,
        tvq_amount=tvq_amount,
        total=subtotal + tps_amount + tvq_amount,
        expenses_subtotal=expenses_subtotal,
        items=lines,
        expense_ids=[expense.id for expense in expenses],
    )

def ensure_approvable(quote: BillableQuote) -> None:
    if quote.status not in APPROVABLE_QUOTE_STATUSES:
        raise InvalidStateException(
            f"Le devis {quote.quote_number} ne peut pas être approuvé dans son état actuel ({quote.status.value})."
        )

def apply_selections(
    quote: BillableQuote,
    item_selections: Optional[Mapping[int, bool]] = None,
    variant_selections: Optional[Mapping[int, Optional[int]]] = None,
) -> None:
    """Reporte les choix du client (items à la carte, variantes) sur le devis."""
    items_by_id = {item.id: item for item in quote.items}
    for item_id, is_selected in (item_selections or {}).items():
        if item_id not in items_by_id:
            raise QuoteItemNotFoundException(item_id, quote.id)
        items_by_id[item_id].is_selected = bool(is_selected)
    for item_id, variant_index in (variant_selections or {}).items():
        if item_id not in items_by_id:
            raise QuoteItemNotFoundException(item_id, quote.id)
        items_by_id[item_id].selected_variant = variant_index

def recompute_quote_total(
    quote: BillableQuote,
    item_selections: Optional[Mapping[int, bool]] = None,
    variant_selections: Optional[Mapping[int, Optional[int]]] = None,
) -> QuoteTotals:
    """Recalcule les totaux d'un devis au moment de son approbation par le client.

    Le devis doit être SENT ou VIEWED. Le passage à ACCEPTED est fait par
    l'appelant une fois les totaux persistés.
    """
    ensure_approvable(quote)
    apply_selections(quote, item_selections, variant_selections)
    return compute_quote_totals(quote.items, quote.discounts, quote.tps_rate, quote.tvq_rate)
