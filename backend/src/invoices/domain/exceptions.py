"""Exceptions spécifiques au domaine Invoice."""

from typing import List

from src.core.exceptions import InvalidStateException, NotFoundException

class InvoiceNotFoundException(NotFoundException):
    def __init__(self, invoice_id: int):
        super().__init__(f"Facture avec ID {invoice_id} non trouvée.")
        self.invoice_id = invoice_id

class InvoiceTokenNotFoundException(NotFoundException):
    def __init__(self):
        super().__init__("Aucune facture ne correspond à ce lien.")

class InvalidInvoiceStatusException(InvalidStateException):
    """Levée lorsque la transition de statut demandée n'est pas permise."""
    def __init__(self, current: str, requested: str, allowed: List[str]):
        allowed_str = ", ".join(allowed) or "aucun"
        super().__init__(
            f"Transition de statut invalide: {current} -> {requested}. Statuts autorisés: {allowed_str}."
        )
        self.current = current
        self.requested = requested
        self.allowed = allowed

class AmountPaidExceedsTotalException(InvalidStateException):
    def __init__(self, amount_paid, invoice_total):
        super().__init__(f"Montant payé {amount_paid} supérieur au total de la facture ({invoice_total}).")
        self.amount_paid = amount_paid
        self.invoice_total = invoice_total
