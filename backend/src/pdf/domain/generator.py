from abc import ABC, abstractmethod
from typing import Dict, Any

class AbstractPDFGenerator(ABC):
    """Interface abstraite pour un générateur de documents PDF.
    Approche orientée données, l'implémentation gère la mise en page.
    """

    @abstractmethod
    async def generate_quote_pdf(self, quote_data: Dict[str, Any]) -> bytes:
        """Génère le PDF d'un devis.

        Args:
            quote_data: Dictionnaire contenant les données formatées du devis
                        (numéro, client, sections et lignes, totaux, dépôt).

        Returns:
            Le contenu binaire du PDF généré.

        Raises:
            PDFGenerationException: Si une erreur survient durant la génération.
        """
        raise NotImplementedError

    @abstractmethod
    async def generate_invoice_pdf(self, invoice_data: Dict[str, Any]) -> bytes:
        """Génère le PDF d'une facture.

        Args:
            invoice_data: Dictionnaire contenant les données formatées de la facture
                          (numéro, échéance, lignes, taxes, montant payé, solde dû).

        Raises:
            PDFGenerationException: Si une erreur survient durant la génération.
        """
        raise NotImplementedError
