import logging
import secrets
from datetime import date, timedelta
from typing import Optional, List, Dict, Any, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.core.exceptions import InvalidStateException
from src.core.numbering import QUOTE_PREFIX, format_document_number, next_sequence, number_prefix

# Moteur de facturation
from src.billing.domain.entities import PricedItem, QuoteStatus
from src.billing.domain.engine import apply_selections, ensure_approvable, recompute_quote_total
from src.billing.domain.pricing import compute_quote_totals

# Domaine Quotes
from src.quotes.domain.entities import Quote
from src.quotes.domain.repositories import AbstractQuoteRepository
from src.quotes.domain.exceptions import (
    InvalidQuoteStatusException, QuoteDeletionForbiddenException, QuoteNotFoundException,
    QuoteTokenNotFoundException,
)
from .schemas import QuoteApproval, QuoteCreate, QuoteResponse, QuoteSectionCreate, QuoteSummaryResponse, QuoteUpdate

# Collaborateurs
from src.clients.service import ClientService
from src.invoices.domain.repositories import AbstractInvoiceRepository
from src.pdf.application.services import PDFService
from src.email.application.services import EmailService
from src.email.domain.exceptions import EmailDeliveryFailedException

logger = logging.getLogger(__name__)

# Transitions manuelles permises (l'approbation client passe par approve_quote)
QUOTE_STATUS_TRANSITIONS = {
    QuoteStatus.DRAFT: {QuoteStatus.SENT},
    QuoteStatus.SENT: {QuoteStatus.VIEWED, QuoteStatus.ACCEPTED, QuoteStatus.REJECTED, QuoteStatus.EXPIRED},
    QuoteStatus.VIEWED: {QuoteStatus.ACCEPTED, QuoteStatus.REJECTED, QuoteStatus.EXPIRED},
    QuoteStatus.ACCEPTED: set(),
    QuoteStatus.REJECTED: set(),
    QuoteStatus.EXPIRED: set(),
}

SENDABLE_QUOTE_STATUSES = (QuoteStatus.DRAFT, QuoteStatus.SENT, QuoteStatus.VIEWED)

def generate_public_token() -> str:
    return secrets.token_hex(16)

def build_sections(sections: List[QuoteSectionCreate]) -> Tuple[List[Dict[str, Any]], List[PricedItem]]:
    """Prépare les sections à persister et les items à chiffrer, dans l'ordre de saisie."""
    sections_data: List[Dict[str, Any]] = []
    priced_items: List[PricedItem] = []
    for section_index, section in enumerate(sections):
        items_data = []
        for item_index, item in enumerate(section.items):
            item_data = item.model_dump(mode="json")
            item_data.update(
                unit_price=item.unit_price,
                hourly_rate=item.hourly_rate,
                hours=item.hours,
                sort_order=item_index,
            )
            items_data.append(item_data)
            priced_items.append(PricedItem(id=len(priced_items), **item.model_dump(exclude={"description"})))
        sections_data.append({"title": section.title, "sort_order": section_index, "items": items_data})
    return sections_data, priced_items

class QuoteService:
    """Service applicatif pour la gestion des devis."""

    def __init__(self,
                 db: AsyncSession,
                 quote_repo: AbstractQuoteRepository,
                 invoice_repo: AbstractInvoiceRepository,
                 client_service: ClientService,
                 pdf_service: PDFService,
                 email_service: EmailService):
        self.db = db
        self.quote_repo = quote_repo
        self.invoice_repo = invoice_repo
        self.client_service = client_service
        self.pdf_service = pdf_service
        self.email_service = email_service

    async def _get_or_raise(self, quote_id: int) -> Quote:
        quote = await self.quote_repo.get_by_id(quote_id)
        if not quote:
            logger.warning(f"[QuoteService] Devis ID {quote_id} non trouvé.")
            raise QuoteNotFoundException(quote_id)
        return quote

    async def _next_quote_number(self, client_code: str) -> str:
        numbers = await self.quote_repo.numbers_with_prefix(number_prefix(QUOTE_PREFIX, client_code))
        return format_document_number(QUOTE_PREFIX, client_code, next_sequence(numbers))

    async def create_quote(self, quote_data: QuoteCreate) -> QuoteResponse:
        """Crée un devis DRAFT numéroté, avec ses sections et ses totaux calculés."""
        logger.info(f"[QuoteService] Création devis pour projet ID: {quote_data.project_id}")
        project = await self.client_service.get_project(quote_data.project_id)
        client = await self.client_service.get_client(project.client_id)

        tps_rate = quote_data.tps_rate if quote_data.tps_rate is not None else settings.DEFAULT_TPS_RATE
        tvq_rate = quote_data.tvq_rate if quote_data.tvq_rate is not None else settings.DEFAULT_TVQ_RATE

        sections_data, priced_items = build_sections(quote_data.sections)

        totals = compute_quote_totals(priced_items, quote_data.discounts, tps_rate, tvq_rate)

        quote_main_data = {
            "project_id": project.id,
            "quote_number": await self._next_quote_number(client.code),
            "status": QuoteStatus.DRAFT.value,
            "public_token": generate_public_token(),
            "valid_until": date.today() + timedelta(days=settings.QUOTE_VALIDITY_DAYS),
            "deposit_percent": quote_data.deposit_percent if quote_data.deposit_percent is not None else settings.DEFAULT_DEPOSIT_PERCENT,
            "tps_rate": tps_rate,
            "tvq_rate": tvq_rate,
            "discounts": [discount.model_dump(mode="json") for discount in quote_data.discounts],
            "subtotal": totals.subtotal,
            "total": totals.total,
            "notes": quote_data.notes,
        }

        try:
            created = await self.quote_repo.add(quote_data=quote_main_data, sections_data=sections_data)
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"[QuoteService] Erreur création devis projet {quote_data.project_id}: {e}", exc_info=True)
            raise
        logger.info(f"[QuoteService] Devis {created.quote_number} (ID {created.id}) créé, total {created.total}.")
        return QuoteResponse.model_validate(created)

    async def get_quote(self, quote_id: int) -> QuoteResponse:
        logger.debug(f"[QuoteService] Récupération devis ID: {quote_id}")
        return QuoteResponse.model_validate(await self._get_or_raise(quote_id))

    async def list_quotes(
        self,
        limit: int,
        offset: int,
        project_id: Optional[int] = None,
        status: Optional[QuoteStatus] = None,
    ) -> Tuple[List[QuoteSummaryResponse], int]:
        filters = {"project_id": project_id, "status": status.value if status else None}
        quotes, total = await self.quote_repo.list(filters=filters, limit=limit, offset=offset)
        return [QuoteSummaryResponse.model_validate(q) for q in quotes], total

    async def _expire_if_needed(self, quote: Quote) -> Quote:
        if quote.status in (QuoteStatus.SENT, QuoteStatus.VIEWED) and quote.is_expired(date.today()):
            logger.info(f"[QuoteService] Devis {quote.quote_number} expiré le {quote.valid_until}.")
            quote = await self.quote_repo.update(quote.id, {"status": QuoteStatus.EXPIRED.value})
            await self.db.commit()
        return quote

    async def get_quote_by_token(self, public_token: str) -> QuoteResponse:
        """Vue publique du devis. Une première consultation fait passer SENT -> VIEWED."""
        quote = await self.quote_repo.get_by_token(public_token)
        if not quote:
            raise QuoteTokenNotFoundException()
        quote = await self._expire_if_needed(quote)
        if quote.status == QuoteStatus.SENT:
            quote = await self.quote_repo.update(quote.id, {"status": QuoteStatus.VIEWED.value})
            await self.db.commit()
            logger.info(f"[QuoteService] Devis {quote.quote_number} consulté par le client.")
        return QuoteResponse.model_validate(quote)

    async def update_quote(self, quote_id: int, quote_data: QuoteUpdate) -> QuoteResponse:
        """Édite un devis DRAFT et recalcule ses totaux. Un devis envoyé est figé."""
        logger.info(f"[QuoteService] Édition devis ID: {quote_id}")
        quote = await self._get_or_raise(quote_id)
        if quote.status != QuoteStatus.DRAFT:
            logger.warning(f"[QuoteService] Édition refusée pour devis {quote.quote_number} ({quote.status.value}).")
            raise InvalidStateException(
                f"Seul un devis brouillon est modifiable ({quote.quote_number} est {quote.status.value})."
            )

        changes: Dict[str, Any] = quote_data.model_dump(
            include={"deposit_percent", "tps_rate", "tvq_rate", "valid_until"}, exclude_none=True
        )
        if "notes" in quote_data.model_fields_set:
            changes["notes"] = quote_data.notes

        sections_data: Optional[List[Dict[str, Any]]] = None
        priced_items = quote.items
        if quote_data.sections is not None:
            sections_data, priced_items = build_sections(quote_data.sections)

        discounts = quote.discounts
        if quote_data.discounts is not None:
            discounts = quote_data.discounts
            changes["discounts"] = [discount.model_dump(mode="json") for discount in discounts]

        totals = compute_quote_totals(
            priced_items,
            discounts,
            changes.get("tps_rate", quote.tps_rate),
            changes.get("tvq_rate", quote.tvq_rate),
        )
        changes.update(subtotal=totals.subtotal, total=totals.total)

        try:
            if sections_data is not None:
                await self.quote_repo.replace_sections(quote_id, sections_data)
            updated = await self.quote_repo.update(quote_id, changes)
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"[QuoteService] Erreur édition devis {quote.quote_number}: {e}", exc_info=True)
            raise
        logger.info(f"[QuoteService] Devis {updated.quote_number} modifié, total {updated.total}.")
        return QuoteResponse.model_validate(updated)

    async def update_quote_status(self, quote_id: int, status: QuoteStatus) -> QuoteResponse:
        logger.info(f"[QuoteService] MAJ statut devis ID: {quote_id} -> {status.value}")
        quote = await self._get_or_raise(quote_id)
        allowed = QUOTE_STATUS_TRANSITIONS.get(quote.status, set())
        if status not in allowed:
            logger.warning(f"[QuoteService] Transition refusée pour devis {quote.quote_number}: {quote.status.value} -> {status.value}")
            raise InvalidQuoteStatusException(quote.status.value, status.value, sorted(s.value for s in allowed))

        if status == QuoteStatus.ACCEPTED:
            # Acceptation manuelle: mêmes recalculs que l'approbation client, sans nouvelle sélection
            return await self._accept(quote)

        updated = await self.quote_repo.update(quote_id, {"status": status.value})
        await self.db.commit()
        return QuoteResponse.model_validate(updated)

    async def _accept(self, quote: Quote) -> QuoteResponse:
        totals = recompute_quote_total(quote)
        try:
            updated = await self.quote_repo.update(quote.id, {
                "status": QuoteStatus.ACCEPTED.value,
                "subtotal": totals.subtotal,
                "total": totals.total,
            })
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        logger.info(f"[QuoteService] Devis {quote.quote_number} accepté, nouveau total {totals.total}.")

        # Best-effort: un échec d'envoi ne remet pas en cause l'acceptation
        try:
            await self.email_service.send_quote_approved_email(updated)
        except Exception as e:
            logger.error(f"[QuoteService] Email d'approbation non envoyé pour {quote.quote_number}: {e}", exc_info=True)
        return QuoteResponse.model_validate(updated)

    async def approve_quote(self, public_token: str, approval: QuoteApproval) -> QuoteResponse:
        """Approbation par le client depuis le lien public.

        Les choix (items à la carte, variantes) sont d'abord enregistrés, puis les
        totaux sont recalculés et le devis passe ACCEPTED.
        """
        quote = await self.quote_repo.get_by_token(public_token)
        if not quote:
            raise QuoteTokenNotFoundException()
        quote = await self._expire_if_needed(quote)
        ensure_approvable(quote)
        logger.info(f"[QuoteService] Approbation client du devis {quote.quote_number}")

        # Valide les IDs (QuoteItemNotFoundException) avant toute écriture
        apply_selections(quote, approval.item_selections, approval.variant_selections)
        items_changes: Dict[int, Dict[str, Any]] = {}
        for item_id, is_selected in approval.item_selections.items():
            items_changes.setdefault(item_id, {})["is_selected"] = bool(is_selected)
        for item_id, variant_index in approval.variant_selections.items():
            items_changes.setdefault(item_id, {})["selected_variant"] = variant_index
        try:
            await self.quote_repo.update_items(quote.id, items_changes)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        refreshed = await self._get_or_raise(quote.id)
        return await self._accept(refreshed)

    async def send_quote(self, quote_id: int) -> QuoteResponse:
        """Génère le PDF, l'envoie au client avec le lien public et passe le devis SENT."""
        quote = await self._get_or_raise(quote_id)
        if quote.status not in SENDABLE_QUOTE_STATUSES:
            raise InvalidStateException(f"Le devis {quote.quote_number} ne peut pas être envoyé ({quote.status.value}).")
        if not quote.client or not quote.client.email:
            raise InvalidStateException(f"Le client du devis {quote.quote_number} n'a pas d'adresse email.")

        pdf_content = await self.pdf_service.generate_quote_pdf(quote)
        sent = await self.email_service.send_quote_email(quote, pdf_content)
        if not sent:
            raise EmailDeliveryFailedException(quote.client.email)

        if quote.status == QuoteStatus.DRAFT:
            quote = await self.quote_repo.update(quote_id, {"status": QuoteStatus.SENT.value})
            await self.db.commit()
        logger.info(f"[QuoteService] Devis {quote.quote_number} envoyé à {quote.client.email}.")
        return QuoteResponse.model_validate(quote)

    async def render_quote_pdf(self, quote_id: int) -> Tuple[bytes, str]:
        quote = await self._get_or_raise(quote_id)
        pdf_content = await self.pdf_service.generate_quote_pdf(quote)
        return pdf_content, f"{quote.quote_number}.pdf"

    async def delete_quote(self, quote_id: int) -> None:
        quote = await self._get_or_raise(quote_id)
        invoice_count = await self.invoice_repo.count_for_quote(quote_id)
        if invoice_count:
            logger.warning(f"[QuoteService] Suppression refusée: devis {quote.quote_number} facturé.")
            raise QuoteDeletionForbiddenException(quote_id, invoice_count)
        await self.quote_repo.delete(quote_id)
        await self.db.commit()
        logger.info(f"[QuoteService] Devis {quote.quote_number} supprimé.")
