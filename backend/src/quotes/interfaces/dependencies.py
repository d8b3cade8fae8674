import logging
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.database import get_db_session

# Repositories
from src.quotes.domain.repositories import AbstractQuoteRepository
from src.quotes.infrastructure.persistence import SQLAlchemyQuoteRepository
from src.invoices.interfaces.dependencies import InvoiceRepositoryDep

# Services
from src.quotes.application.services import QuoteService
from src.clients.dependencies import ClientServiceDep
from src.pdf.interfaces.dependencies import PDFServiceDep
from src.email.interfaces.dependencies import EmailServiceDep

logger = logging.getLogger(__name__)

# --- Dépendances Repository ---
def get_quote_repository(db: AsyncSession = Depends(get_db_session)) -> AbstractQuoteRepository:
    """Injecte SQLAlchemyQuoteRepository."""
    return SQLAlchemyQuoteRepository(session=db)

QuoteRepositoryDep = Annotated[AbstractQuoteRepository, Depends(get_quote_repository)]

# --- Dépendances Service ---
def get_quote_service(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    quote_repo: QuoteRepositoryDep,
    invoice_repo: InvoiceRepositoryDep,
    client_service: ClientServiceDep,
    pdf_service: PDFServiceDep,
    email_service: EmailServiceDep,
) -> QuoteService:
    """Injecte QuoteService avec ses dépendances."""
    logger.debug("Fourniture de QuoteService")
    return QuoteService(
        db=db,
        quote_repo=quote_repo,
        invoice_repo=invoice_repo,
        client_service=client_service,
        pdf_service=pdf_service,
        email_service=email_service,
    )

QuoteServiceDep = Annotated[QuoteService, Depends(get_quote_service)]
