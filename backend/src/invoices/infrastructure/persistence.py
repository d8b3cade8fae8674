import logging
from datetime import date, datetime
from typing import Optional, List, Dict, Any, Tuple

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.billing.domain.entities import InvoiceStatus, InvoiceType, PriorInvoice
from src.billing.domain.exceptions import DuplicateDepositException
from src.clients.models import Project
from src.core.exceptions import ConflictException
from src.core.numbering import INVOICE_PREFIX, format_document_number, next_sequence, number_prefix
from src.invoices import models
from src.invoices.domain.entities import Invoice
from src.invoices.domain.repositories import AbstractInvoiceRepository

logger = logging.getLogger(__name__)

FILTERABLE_FIELDS = ("project_id", "quote_id", "status", "invoice_type")

def _invoice_load_options():
    return (
        selectinload(models.Invoice.items),
        selectinload(models.Invoice.project).selectinload(Project.client),
    )

class SQLAlchemyInvoiceRepository(AbstractInvoiceRepository):
    """Implémentation SQLAlchemy du repository de Factures."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, invoice_id: int) -> Optional[Invoice]:
        stmt = (
            select(models.Invoice)
            .where(models.Invoice.id == invoice_id)
            .options(*_invoice_load_options())
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        invoice_db = result.scalar_one_or_none()
        if not invoice_db:
            logger.debug(f"Facture ID {invoice_id} non trouvée dans get_by_id().")
            return None
        return Invoice.model_validate(invoice_db)

    async def get_by_token(self, public_token: str) -> Optional[Invoice]:
        stmt = (
            select(models.Invoice)
            .where(models.Invoice.public_token == public_token)
            .options(*_invoice_load_options())
        )
        result = await self.session.execute(stmt)
        invoice_db = result.scalar_one_or_none()
        return Invoice.model_validate(invoice_db) if invoice_db else None

    async def list(self, filters: Dict[str, Any], limit: int, offset: int) -> Tuple[List[Invoice], int]:
        conditions = [
            getattr(models.Invoice, field) == value
            for field, value in filters.items()
            if field in FILTERABLE_FIELDS and value is not None
        ]
        stmt = (
            select(models.Invoice)
            .where(*conditions)
            .options(*_invoice_load_options())
            .order_by(models.Invoice.issue_date.desc(), models.Invoice.id.desc())
            .limit(limit)
            .offset(offset)
        )
        count_stmt = select(func.count()).select_from(models.Invoice).where(*conditions)
        result = await self.session.execute(stmt)
        total = await self.session.scalar(count_stmt)
        return [Invoice.model_validate(i_db) for i_db in result.scalars().all()], total or 0

    async def list_for_quote(self, quote_id: int) -> List[Invoice]:
        stmt = (
            select(models.Invoice)
            .where(models.Invoice.quote_id == quote_id)
            .options(*_invoice_load_options())
            .order_by(models.Invoice.created_at, models.Invoice.id)
        )
        result = await self.session.execute(stmt)
        return [Invoice.model_validate(i_db) for i_db in result.scalars().all()]

    async def prior_invoices_for_quote(self, quote_id: int) -> List[PriorInvoice]:
        stmt = select(
            models.Invoice.invoice_type, models.Invoice.total, models.Invoice.expenses_subtotal, models.Invoice.status,
        ).where(
            models.Invoice.quote_id == quote_id,
            models.Invoice.status != InvoiceStatus.CANCELLED.value,
        )
        result = await self.session.execute(stmt)
        return [
            PriorInvoice(
                invoice_type=row.invoice_type,
                total=row.total,
                expenses_subtotal=row.expenses_subtotal,
                status=row.status,
            )
            for row in result.all()
        ]

    async def count_for_quote(self, quote_id: int) -> int:
        stmt = select(func.count()).select_from(models.Invoice).where(models.Invoice.quote_id == quote_id)
        return await self.session.scalar(stmt) or 0

    async def add(self, invoice_data: Dict[str, Any], items_data: List[Dict[str, Any]]) -> Invoice:
        new_invoice_db = models.Invoice(**invoice_data)
        new_invoice_db.items = [models.InvoiceItem(**item) for item in items_data]
        self.session.add(new_invoice_db)
        try:
            await self.session.flush()
        except IntegrityError as e:
            logger.error(f"Erreur intégrité ajout facture {invoice_data.get('invoice_number')}: {e}", exc_info=True)
            # L'index partiel sur les dépôts signale un dépôt concurrent
            if invoice_data.get("invoice_type") == InvoiceType.DEPOSIT.value and invoice_data.get("quote_id"):
                raise DuplicateDepositException(invoice_data["quote_id"]) from e
            raise ConflictException(f"Violation de contrainte à l'ajout de la facture: {e.orig}") from e
        logger.info(f"Facture ID {new_invoice_db.id} ({new_invoice_db.invoice_number}) ajoutée.")
        return await self.get_by_id(new_invoice_db.id)

    async def update(self, invoice_id: int, changes: Dict[str, Any]) -> Optional[Invoice]:
        invoice_db = await self.session.get(models.Invoice, invoice_id)
        if not invoice_db:
            logger.warning(f"Tentative MAJ facture ID {invoice_id} non trouvée.")
            return None
        for field, value in changes.items():
            setattr(invoice_db, field, value)
        invoice_db.updated_at = datetime.utcnow()
        await self.session.flush()
        return await self.get_by_id(invoice_id)

    async def allocate_number(self, client_code: str) -> str:
        prefix = number_prefix(INVOICE_PREFIX, client_code)
        reusable_stmt = (
            select(models.Invoice)
            .where(
                models.Invoice.invoice_number.startswith(prefix),
                models.Invoice.is_number_reusable.is_(True),
                models.Invoice.status == InvoiceStatus.CANCELLED.value,
            )
            .order_by(models.Invoice.invoice_number)
            .limit(1)
            .with_for_update()
        )
        reusable = (await self.session.execute(reusable_stmt)).scalar_one_or_none()
        if reusable:
            # Le numéro n'est réattribuable qu'une seule fois
            reusable.is_number_reusable = False
            await self.session.flush()
            logger.info(f"Numéro de facture {reusable.invoice_number} réattribué (facture annulée ID {reusable.id}).")
            return reusable.invoice_number

        numbers_stmt = select(models.Invoice.invoice_number).where(models.Invoice.invoice_number.startswith(prefix))
        numbers = list((await self.session.execute(numbers_stmt)).scalars().all())
        return format_document_number(INVOICE_PREFIX, client_code, next_sequence(numbers))

    async def list_overdue_candidates(self, today: date) -> List[Invoice]:
        stmt = (
            select(models.Invoice)
            .where(
                models.Invoice.status == InvoiceStatus.SENT.value,
                models.Invoice.due_date.is_not(None),
                models.Invoice.due_date < today,
            )
            .options(*_invoice_load_options())
            .order_by(models.Invoice.due_date)
        )
        result = await self.session.execute(stmt)
        return [Invoice.model_validate(i_db) for i_db in result.scalars().all()]
