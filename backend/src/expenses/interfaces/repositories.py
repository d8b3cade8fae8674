from abc import ABC, abstractmethod
from typing import Optional, List, Dict, Any, Sequence, Tuple

from src.expenses.models import ExpenseRead

class AbstractExpenseRepository(ABC):
    """Interface abstraite pour le repository des Dépenses."""

    @abstractmethod
    async def get_by_id(self, expense_id: int) -> Optional[ExpenseRead]:
        raise NotImplementedError

    @abstractmethod
    async def get_many(self, expense_ids: Sequence[int]) -> List[ExpenseRead]:
        raise NotImplementedError

    @abstractmethod
    async def list(self, filters: Dict[str, Any], limit: int, offset: int) -> Tuple[List[ExpenseRead], int]:
        raise NotImplementedError

    @abstractmethod
    async def list_billable_unbilled(self, project_id: int) -> List[ExpenseRead]:
        """Dépenses candidates à la facturation pour un projet."""
        raise NotImplementedError

    @abstractmethod
    async def add(self, expense_data: Dict[str, Any]) -> ExpenseRead:
        raise NotImplementedError

    @abstractmethod
    async def update(self, expense_id: int, changes: Dict[str, Any]) -> Optional[ExpenseRead]:
        raise NotImplementedError

    @abstractmethod
    async def claim_for_invoice(self, expense_ids: Sequence[int], invoice_id: int) -> int:
        """Rattache atomiquement les dépenses non facturées à une facture.

        Returns:
            Le nombre de dépenses effectivement rattachées.
        """
        raise NotImplementedError
