from abc import ABC, abstractmethod
from datetime import date
from typing import Optional, List, Dict, Any, Tuple

from src.billing.domain.entities import PriorInvoice
from .entities import Invoice

class AbstractInvoiceRepository(ABC):
    """Interface abstraite pour le repository des Factures."""

    @abstractmethod
    async def get_by_id(self, invoice_id: int) -> Optional[Invoice]:
        raise NotImplementedError

    @abstractmethod
    async def get_by_token(self, public_token: str) -> Optional[Invoice]:
        raise NotImplementedError

    @abstractmethod
    async def list(self, filters: Dict[str, Any], limit: int, offset: int) -> Tuple[List[Invoice], int]:
        raise NotImplementedError

    @abstractmethod
    async def list_for_quote(self, quote_id: int) -> List[Invoice]:
        raise NotImplementedError

    @abstractmethod
    async def prior_invoices_for_quote(self, quote_id: int) -> List[PriorInvoice]:
        """Factures non annulées du devis, vues par le moteur de facturation."""
        raise NotImplementedError

    @abstractmethod
    async def count_for_quote(self, quote_id: int) -> int:
        raise NotImplementedError

    @abstractmethod
    async def add(self, invoice_data: Dict[str, Any], items_data: List[Dict[str, Any]]) -> Invoice:
        raise NotImplementedError

    @abstractmethod
    async def update(self, invoice_id: int, changes: Dict[str, Any]) -> Optional[Invoice]:
        raise NotImplementedError

    @abstractmethod
    async def allocate_number(self, client_code: str) -> str:
        """Réserve le prochain numéro F-<CODE>-NNN, en réutilisant d'abord un numéro annulé."""
        raise NotImplementedError

    @abstractmethod
    async def list_overdue_candidates(self, today: date) -> List[Invoice]:
        raise NotImplementedError
