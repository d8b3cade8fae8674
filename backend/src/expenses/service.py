import logging
from typing import List, Optional, Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from src.billing.domain.entities import BillableExpense
from src.expenses.models import ExpenseCreate, ExpenseRead, ExpenseUpdate
from src.expenses.exceptions import (
    ExpenseAlreadyBilledException, ExpenseNotBillableException, ExpenseNotFoundException,
)
from src.expenses.interfaces.repositories import AbstractExpenseRepository

logger = logging.getLogger(__name__)

class ExpenseService:
    """Service applicatif pour les dépenses et leur refacturation."""

    def __init__(self, db: AsyncSession, expense_repo: AbstractExpenseRepository):
        self.db = db
        self.expense_repo = expense_repo

    async def create_expense(self, expense_data: ExpenseCreate) -> ExpenseRead:
        logger.info(f"[ExpenseService] Création dépense '{expense_data.description}' ({expense_data.amount})")
        created = await self.expense_repo.add(expense_data.model_dump())
        await self.db.commit()
        return created

    async def get_expense(self, expense_id: int) -> ExpenseRead:
        expense = await self.expense_repo.get_by_id(expense_id)
        if not expense:
            raise ExpenseNotFoundException(expense_id)
        return expense

    async def list_expenses(
        self,
        limit: int,
        offset: int,
        project_id: Optional[int] = None,
        is_billable: Optional[bool] = None,
        is_billed: Optional[bool] = None,
    ) -> Tuple[List[ExpenseRead], int]:
        filters = {"project_id": project_id, "is_billable": is_billable, "is_billed": is_billed}
        return await self.expense_repo.list(filters=filters, limit=limit, offset=offset)

    async def update_expense(self, expense_id: int, expense_data: ExpenseUpdate) -> ExpenseRead:
        logger.info(f"[ExpenseService] MAJ dépense ID {expense_id}")
        expense = await self.get_expense(expense_id)
        if expense.is_billed:
            raise ExpenseAlreadyBilledException([expense_id])
        changes = expense_data.model_dump(exclude_unset=True)
        if not changes:
            return expense
        updated = await self.expense_repo.update(expense_id, changes)
        await self.db.commit()
        return updated

    async def list_billable_unbilled(self, project_id: int) -> List[ExpenseRead]:
        return await self.expense_repo.list_billable_unbilled(project_id)

    async def resolve_billable(self, expense_ids: Sequence[int], project_id: Optional[int]) -> List[BillableExpense]:
        """Valide les dépenses demandées pour une facture et les convertit pour le calcul.

        Ne modifie rien: le rattachement se fait via `claim_for_invoice` dans
        la transaction de création de la facture.
        """
        unique_ids = list(dict.fromkeys(expense_ids))
        if not unique_ids:
            return []
        expenses = {expense.id: expense for expense in await self.expense_repo.get_many(unique_ids)}
        billable = []
        for expense_id in unique_ids:
            expense = expenses.get(expense_id)
            if expense is None:
                raise ExpenseNotFoundException(expense_id)
            if expense.is_billed:
                raise ExpenseAlreadyBilledException([expense_id])
            if not expense.is_billable:
                raise ExpenseNotBillableException(expense_id, "dépense non refacturable")
            if project_id is not None and expense.project_id != project_id:
                raise ExpenseNotBillableException(expense_id, "elle appartient à un autre projet")
            billable.append(BillableExpense.model_validate(expense))
        return billable

    async def claim_for_invoice(self, expense_ids: Sequence[int], invoice_id: int) -> None:
        """Marque les dépenses comme facturées. Ne commit pas."""
        unique_ids = list(dict.fromkeys(expense_ids))
        if not unique_ids:
            return
        claimed = await self.expense_repo.claim_for_invoice(unique_ids, invoice_id)
        if claimed != len(unique_ids):
            logger.warning(f"[ExpenseService] Réclamation concurrente détectée pour les dépenses {unique_ids}")
            raise ExpenseAlreadyBilledException(unique_ids)
