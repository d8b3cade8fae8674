"""Transitions de statut permises pour les factures."""

from typing import Dict, FrozenSet

from src.billing.domain.entities import InvoiceStatus

INVOICE_STATUS_TRANSITIONS: Dict[InvoiceStatus, FrozenSet[InvoiceStatus]] = {
    InvoiceStatus.DRAFT: frozenset({InvoiceStatus.SENT, InvoiceStatus.CANCELLED}),
    InvoiceStatus.SENT: frozenset({InvoiceStatus.OVERDUE, InvoiceStatus.PAID, InvoiceStatus.CANCELLED}),
    InvoiceStatus.OVERDUE: frozenset({InvoiceStatus.PAID, InvoiceStatus.CANCELLED}),
    InvoiceStatus.PAID: frozenset(),
    InvoiceStatus.CANCELLED: frozenset(),
}

def allowed_transitions(current: InvoiceStatus) -> FrozenSet[InvoiceStatus]:
    return INVOICE_STATUS_TRANSITIONS.get(current, frozenset())

def can_transition(current: InvoiceStatus, requested: InvoiceStatus) -> bool:
    return requested in allowed_transitions(current)
