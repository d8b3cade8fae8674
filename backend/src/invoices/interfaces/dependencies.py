from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.database import get_db_session

from src.invoices.domain.repositories import AbstractInvoiceRepository
from src.invoices.infrastructure.persistence import SQLAlchemyInvoiceRepository
from src.quotes.domain.repositories import AbstractQuoteRepository
from src.quotes.infrastructure.persistence import SQLAlchemyQuoteRepository
from src.invoices.application.services import InvoiceService
from src.expenses.dependencies import ExpenseServiceDep
from src.pdf.interfaces.dependencies import PDFServiceDep
from src.email.interfaces.dependencies import EmailServiceDep

# --- Dépendances Repository ---
def get_invoice_repository(db: AsyncSession = Depends(get_db_session)) -> AbstractInvoiceRepository:
    return SQLAlchemyInvoiceRepository(session=db)

InvoiceRepositoryDep = Annotated[AbstractInvoiceRepository, Depends(get_invoice_repository)]

def _get_quote_repository(db: AsyncSession = Depends(get_db_session)) -> AbstractQuoteRepository:
    return SQLAlchemyQuoteRepository(session=db)

# --- Dépendances Service ---
def get_invoice_service(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    invoice_repo: InvoiceRepositoryDep,
    quote_repo: Annotated[AbstractQuoteRepository, Depends(_get_quote_repository)],
    expense_service: ExpenseServiceDep,
    pdf_service: PDFServiceDep,
    email_service: EmailServiceDep,
) -> InvoiceService:
    """Injecte InvoiceService avec ses dépendances."""
    return InvoiceService(
        db=db,
        invoice_repo=invoice_repo,
        quote_repo=quote_repo,
        expense_service=expense_service,
        pdf_service=pdf_service,
        email_service=email_service,
    )

InvoiceServiceDep = Annotated[InvoiceService, Depends(get_invoice_service)]
