"""Exceptions spécifiques au domaine Quote."""

from typing import List

from src.core.exceptions import InvalidStateException, NotFoundException

class QuoteNotFoundException(NotFoundException):
    """Levée lorsqu'un devis spécifique n'est pas trouvé."""
    def __init__(self, quote_id: int):
        super().__init__(f"Devis avec ID {quote_id} non trouvé.")
        self.quote_id = quote_id

class QuoteTokenNotFoundException(NotFoundException):
    def __init__(self):
        super().__init__("Aucun devis ne correspond à ce lien.")

class InvalidQuoteStatusException(InvalidStateException):
    """Levée lorsque la transition de statut demandée n'est pas permise."""
    def __init__(self, current: str, requested: str, allowed: List[str]):
        allowed_str = ", ".join(allowed) or "aucun"
        super().__init__(
            f"Transition de statut invalide: {current} -> {requested}. Statuts autorisés: {allowed_str}."
        )
        self.current = current
        self.requested = requested
        self.allowed = allowed

class QuoteDeletionForbiddenException(InvalidStateException):
    def __init__(self, quote_id: int, invoice_count: int):
        super().__init__(f"Le devis ID {quote_id} a {invoice_count} facture(s) et ne peut pas être supprimé.")
        self.quote_id = quote_id
