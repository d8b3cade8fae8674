"""Exceptions spécifiques au domaine PDF."""

from typing import Optional

class PDFDomainException(Exception):
    """Classe de base pour les exceptions du domaine PDF."""
    pass

class PDFGenerationException(PDFDomainException):
    """Levée lorsque le PDF d'un devis ou d'une facture ne peut être produit."""
    def __init__(self, message: str, original_exception: Optional[Exception] = None, document: Optional[str] = None):
        target = f" ({document})" if document else ""
        full_message = f"Erreur lors de la génération du PDF{target}: {message}"
        if original_exception:
            full_message += f" (Erreur originale: {original_exception})"
        super().__init__(full_message)
        self.original_exception = original_exception
        self.document = document
