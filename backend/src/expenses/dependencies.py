from typing import Annotated
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.database import get_db_session
from src.expenses.interfaces.repositories import AbstractExpenseRepository
from src.expenses.repositories import SQLAlchemyExpenseRepository
from src.expenses.service import ExpenseService

def get_expense_repository(
    session: Annotated[AsyncSession, Depends(get_db_session)]
) -> AbstractExpenseRepository:
    return SQLAlchemyExpenseRepository(session)

def get_expense_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
    expense_repo: Annotated[AbstractExpenseRepository, Depends(get_expense_repository)],
) -> ExpenseService:
    """Fournit une instance du service des dépenses."""
    return ExpenseService(db=session, expense_repo=expense_repo)

ExpenseServiceDep = Annotated[ExpenseService, Depends(get_expense_service)]
