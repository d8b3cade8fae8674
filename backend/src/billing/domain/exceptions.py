"""Exceptions du moteur de facturation (dérivation devis -> factures)."""

from decimal import Decimal

from src.core.exceptions import ConflictException, DomainException, InvalidStateException, NotFoundException

__all__ = [
    "InvalidStateException",
    "DuplicateDepositException",
    "AmountExceedsBalanceException",
    "QuoteItemNotFoundException",
    "NotFoundException",
]

class DuplicateDepositException(ConflictException):
    """Levée lorsqu'une facture de dépôt non annulée existe déjà pour le devis."""
    def __init__(self, quote_id: int):
        super().__init__(f"Une facture de dépôt existe déjà pour le devis ID {quote_id}.")
        self.quote_id = quote_id

class AmountExceedsBalanceException(DomainException):
    """Levée lorsque le montant demandé dépasse le solde restant du devis."""
    def __init__(self, remaining_balance: Decimal):
        super().__init__(f"Le montant dépasse le solde restant ({remaining_balance:.2f} $).")
        self.remaining_balance = remaining_balance

class QuoteItemNotFoundException(NotFoundException):
    """Levée lorsqu'une sélection vise un item qui n'appartient pas au devis."""
    def __init__(self, item_id: int, quote_id: int):
        super().__init__(f"Item ID {item_id} non trouvé dans le devis ID {quote_id}.")
        self.item_id = item_id
        self.quote_id = quote_id
