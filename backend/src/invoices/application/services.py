import asyncio
import logging
import secrets
import weakref
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional, List, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.core.exceptions import InvalidStateException

# Moteur de facturation
from src.billing.domain.engine import derive_invoice
from src.billing.domain.entities import InvoiceStatus

# Domaines
from src.invoices.domain.entities import Invoice
from src.invoices.domain.exceptions import (
    AmountPaidExceedsTotalException, InvalidInvoiceStatusException, InvoiceNotFoundException,
    InvoiceTokenNotFoundException,
)
from src.invoices.domain.repositories import AbstractInvoiceRepository
from src.invoices.domain.transitions import allowed_transitions, can_transition
from src.quotes.domain.exceptions import QuoteNotFoundException
from src.quotes.domain.repositories import AbstractQuoteRepository
from .schemas import InvoiceFromQuoteCreate, InvoiceResponse, InvoiceSummaryResponse

# Collaborateurs
from src.expenses.service import ExpenseService
from src.pdf.application.services import PDFService
from src.email.application.services import EmailService
from src.email.domain.exceptions import EmailDeliveryFailedException

logger = logging.getLogger(__name__)

# Sérialise la facturation d'un même devis au sein du processus.
# Le verrou de ligne (SELECT ... FOR UPDATE) couvre les autres processus.
# Un verrou vit tant qu'une requête le détient ou l'attend.
_quote_locks: "weakref.WeakValueDictionary[int, asyncio.Lock]" = weakref.WeakValueDictionary()

def _quote_lock(quote_id: int) -> asyncio.Lock:
    lock = _quote_locks.get(quote_id)
    if lock is None:
        lock = asyncio.Lock()
        _quote_locks[quote_id] = lock
    return lock

SENDABLE_INVOICE_STATUSES = (InvoiceStatus.DRAFT, InvoiceStatus.SENT, InvoiceStatus.OVERDUE)

class InvoiceService:
    """Service applicatif pour la facturation."""

    def __init__(self,
                 db: AsyncSession,
                 invoice_repo: AbstractInvoiceRepository,
                 quote_repo: AbstractQuoteRepository,
                 expense_service: ExpenseService,
                 pdf_service: PDFService,
                 email_service: EmailService):
        self.db = db
        self.invoice_repo = invoice_repo
        self.quote_repo = quote_repo
        self.expense_service = expense_service
        self.pdf_service = pdf_service
        self.email_service = email_service

    async def _get_or_raise(self, invoice_id: int) -> Invoice:
        invoice = await self.invoice_repo.get_by_id(invoice_id)
        if not invoice:
            logger.warning(f"[InvoiceService] Facture ID {invoice_id} non trouvée.")
            raise InvoiceNotFoundException(invoice_id)
        return invoice

    async def create_invoice_from_quote(self, quote_id: int, request: InvoiceFromQuoteCreate) -> InvoiceResponse:
        """Émet la prochaine facture d'un devis accepté.

        Le devis, ses factures et les dépenses sont relus sous verrou; le calcul,
        la numérotation, l'insertion et le rattachement des dépenses forment une
        seule transaction.
        """
        logger.info(
            f"[InvoiceService] Facturation devis ID {quote_id}: type={request.requested_invoice_type.value}, "
            f"montant={request.requested_amount}, dépenses={request.expense_ids}"
        )
        async with _quote_lock(quote_id):
            try:
                quote = await self.quote_repo.get_by_id(quote_id, for_update=True)
                if not quote:
                    raise QuoteNotFoundException(quote_id)
                prior_invoices = await self.invoice_repo.prior_invoices_for_quote(quote_id)
                expenses = await self.expense_service.resolve_billable(request.expense_ids, quote.project_id)

                derived = derive_invoice(quote, prior_invoices, request, expenses)

                if not quote.client:
                    raise InvalidStateException(f"Le devis {quote.quote_number} n'est rattaché à aucun client.")
                invoice_number = await self.invoice_repo.allocate_number(quote.client.code)
                issue_date = date.today()
                invoice_data = {
                    "project_id": quote.project_id,
                    "quote_id": quote.id,
                    "invoice_number": invoice_number,
                    "invoice_type": derived.invoice_type.value,
                    "status": InvoiceStatus.DRAFT.value,
                    "subtotal": derived.subtotal,
                    "tps_amount": derived.tps_amount,
                    "tvq_amount": derived.tvq_amount,
                    "total": derived.total,
                    "expenses_subtotal": derived.expenses_subtotal,
                    "issue_date": issue_date,
                    "due_date": issue_date + timedelta(days=settings.INVOICE_PAYMENT_TERMS_DAYS),
                    "public_token": secrets.token_hex(16),
                    "notes": request.notes,
                }
                items_data = [line.model_dump() for line in derived.items]
                invoice = await self.invoice_repo.add(invoice_data, items_data)
                await self.expense_service.claim_for_invoice(derived.expense_ids, invoice.id)
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise

        logger.info(
            f"[InvoiceService] Facture {invoice.invoice_number} ({invoice.invoice_type.value}) créée "
            f"pour devis {quote.quote_number}: total {invoice.total}"
        )
        return InvoiceResponse.model_validate(invoice)

    async def get_invoice(self, invoice_id: int) -> InvoiceResponse:
        return InvoiceResponse.model_validate(await self._get_or_raise(invoice_id))

    async def get_invoice_by_token(self, public_token: str) -> InvoiceResponse:
        invoice = await self.invoice_repo.get_by_token(public_token)
        if not invoice:
            raise InvoiceTokenNotFoundException()
        return InvoiceResponse.model_validate(invoice)

    async def list_invoices(
        self,
        limit: int,
        offset: int,
        project_id: Optional[int] = None,
        quote_id: Optional[int] = None,
        status: Optional[InvoiceStatus] = None,
    ) -> Tuple[List[InvoiceSummaryResponse], int]:
        filters = {"project_id": project_id, "quote_id": quote_id, "status": status.value if status else None}
        invoices, total = await self.invoice_repo.list(filters=filters, limit=limit, offset=offset)
        return [InvoiceSummaryResponse.model_validate(i) for i in invoices], total

    async def list_quote_invoices(self, quote_id: int) -> List[InvoiceResponse]:
        if not await self.quote_repo.get_by_id(quote_id):
            raise QuoteNotFoundException(quote_id)
        return [InvoiceResponse.model_validate(i) for i in await self.invoice_repo.list_for_quote(quote_id)]

    async def update_invoice_status(
        self,
        invoice_id: int,
        status: InvoiceStatus,
        amount_paid: Optional[Decimal] = None,
        payment_date: Optional[date] = None,
    ) -> InvoiceResponse:
        invoice = await self._get_or_raise(invoice_id)
        logger.info(f"[InvoiceService] MAJ statut facture {invoice.invoice_number}: {invoice.status.value} -> {status.value}")
        if not can_transition(invoice.status, status):
            allowed = sorted(s.value for s in allowed_transitions(invoice.status))
            logger.warning(f"[InvoiceService] Transition refusée pour {invoice.invoice_number}")
            raise InvalidInvoiceStatusException(invoice.status.value, status.value, allowed)

        changes = {"status": status.value}
        if status == InvoiceStatus.CANCELLED:
            changes["is_number_reusable"] = True
        elif status == InvoiceStatus.PAID:
            if amount_paid is not None and amount_paid > invoice.total:
                logger.warning(f"[InvoiceService] Paiement {amount_paid} refusé pour {invoice.invoice_number} (total {invoice.total})")
                raise AmountPaidExceedsTotalException(amount_paid, invoice.total)
            changes["payment_date"] = payment_date or date.today()
            changes["amount_paid"] = amount_paid if amount_paid is not None else invoice.total

        try:
            updated = await self.invoice_repo.update(invoice_id, changes)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        if status == InvoiceStatus.PAID:
            try:
                await self.email_service.send_payment_received_email(updated)
            except Exception as e:
                logger.error(f"[InvoiceService] Email de paiement non envoyé pour {updated.invoice_number}: {e}", exc_info=True)
        return InvoiceResponse.model_validate(updated)

    async def mark_overdue_invoices(self, today: Optional[date] = None) -> int:
        """Passe OVERDUE toutes les factures SENT dont l'échéance est dépassée."""
        today = today or date.today()
        candidates = await self.invoice_repo.list_overdue_candidates(today)
        if not candidates:
            return 0
        updated_invoices = []
        try:
            for invoice in candidates:
                updated_invoices.append(
                    await self.invoice_repo.update(invoice.id, {"status": InvoiceStatus.OVERDUE.value})
                )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        logger.info(f"[InvoiceService] {len(updated_invoices)} facture(s) passée(s) en retard au {today}.")

        for invoice in updated_invoices:
            try:
                await self.email_service.send_invoice_overdue_email(invoice, today)
            except Exception as e:
                logger.error(f"[InvoiceService] Rappel de retard non envoyé pour {invoice.invoice_number}: {e}", exc_info=True)
        return len(updated_invoices)

    async def send_invoice(self, invoice_id: int) -> InvoiceResponse:
        invoice = await self._get_or_raise(invoice_id)
        if invoice.status not in SENDABLE_INVOICE_STATUSES:
            raise InvalidStateException(f"La facture {invoice.invoice_number} ne peut pas être envoyée ({invoice.status.value}).")
        if not invoice.client or not invoice.client.email:
            raise InvalidStateException(f"Le client de la facture {invoice.invoice_number} n'a pas d'adresse email.")

        pdf_content = await self.pdf_service.generate_invoice_pdf(invoice)
        sent = await self.email_service.send_invoice_email(invoice, pdf_content)
        if not sent:
            raise EmailDeliveryFailedException(invoice.client.email)

        if invoice.status == InvoiceStatus.DRAFT:
            invoice = await self.invoice_repo.update(invoice_id, {"status": InvoiceStatus.SENT.value})
            await self.db.commit()
        logger.info(f"[InvoiceService] Facture {invoice.invoice_number} envoyée à {invoice.client.email}.")
        return InvoiceResponse.model_validate(invoice)

    async def render_invoice_pdf(self, invoice_id: int) -> Tuple[bytes, str]:
        invoice = await self._get_or_raise(invoice_id)
        pdf_content = await self.pdf_service.generate_invoice_pdf(invoice)
        return pdf_content, f"{invoice.invoice_number}.pdf"
