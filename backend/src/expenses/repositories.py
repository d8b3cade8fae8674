import logging
from datetime import datetime
from typing import Optional, List, Dict, Any, Sequence, Tuple

from sqlalchemy import select, func, update as sqlalchemy_update
from sqlalchemy.ext.asyncio import AsyncSession

from src.expenses.models import Expense, ExpenseRead
from src.expenses.interfaces.repositories import AbstractExpenseRepository

logger = logging.getLogger(__name__)

FILTERABLE_FIELDS = ("project_id", "is_billable", "is_billed", "invoice_id")

class SQLAlchemyExpenseRepository(AbstractExpenseRepository):
    """Implémentation SQLAlchemy du repository des dépenses."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, expense_id: int) -> Optional[ExpenseRead]:
        expense_db = await self.session.get(Expense, expense_id)
        if not expense_db:
            logger.debug(f"Dépense ID {expense_id} non trouvée.")
            return None
        return ExpenseRead.model_validate(expense_db)

    async def get_many(self, expense_ids: Sequence[int]) -> List[ExpenseRead]:
        if not expense_ids:
            return []
        stmt = select(Expense).where(Expense.id.in_(list(expense_ids))).order_by(Expense.id)
        result = await self.session.execute(stmt)
        return [ExpenseRead.model_validate(e) for e in result.scalars().all()]

    async def list(self, filters: Dict[str, Any], limit: int, offset: int) -> Tuple[List[ExpenseRead], int]:
        conditions = [
            getattr(Expense, field) == value
            for field, value in filters.items()
            if field in FILTERABLE_FIELDS and value is not None
        ]
        stmt = (
            select(Expense)
            .where(*conditions)
            .order_by(Expense.expense_date.desc(), Expense.id.desc())
            .limit(limit)
            .offset(offset)
        )
        count_stmt = select(func.count()).select_from(Expense).where(*conditions)
        result = await self.session.execute(stmt)
        total = await self.session.scalar(count_stmt)
        return [ExpenseRead.model_validate(e) for e in result.scalars().all()], total or 0

    async def list_billable_unbilled(self, project_id: int) -> List[ExpenseRead]:
        stmt = (
            select(Expense)
            .where(
                Expense.project_id == project_id,
                Expense.is_billable.is_(True),
                Expense.is_billed.is_(False),
            )
            .order_by(Expense.expense_date, Expense.id)
        )
        result = await self.session.execute(stmt)
        return [ExpenseRead.model_validate(e) for e in result.scalars().all()]

    async def add(self, expense_data: Dict[str, Any]) -> ExpenseRead:
        expense_db = Expense(**expense_data)
        self.session.add(expense_db)
        await self.session.flush()
        await self.session.refresh(expense_db)
        logger.info(f"Dépense ID {expense_db.id} ajoutée ({expense_db.amount}).")
        return ExpenseRead.model_validate(expense_db)

    async def update(self, expense_id: int, changes: Dict[str, Any]) -> Optional[ExpenseRead]:
        expense_db = await self.session.get(Expense, expense_id)
        if not expense_db:
            return None
        for field, value in changes.items():
            setattr(expense_db, field, value)
        expense_db.updated_at = datetime.utcnow()
        await self.session.flush()
        await self.session.refresh(expense_db)
        return ExpenseRead.model_validate(expense_db)

    async def claim_for_invoice(self, expense_ids: Sequence[int], invoice_id: int) -> int:
        if not expense_ids:
            return 0
        # Compare-and-set sur is_billed: une dépense ne peut être réclamée qu'une fois
        stmt = (
            sqlalchemy_update(Expense)
            .where(Expense.id.in_(list(expense_ids)), Expense.is_billed.is_(False))
            .values(is_billed=True, invoice_id=invoice_id, updated_at=datetime.utcnow())
        )
        result = await self.session.execute(stmt)
        logger.info(f"{result.rowcount}/{len(expense_ids)} dépense(s) rattachée(s) à la facture ID {invoice_id}.")
        return result.rowcount
