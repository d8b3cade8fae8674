import logging
from datetime import date
from decimal import Decimal
from typing import Optional, List, Dict, Any
from pathlib import Path
import jinja2

from src.config import settings
from src.email.domain.sender import AbstractEmailSender
from src.email.domain.exceptions import EmailSendingException
from src.invoices.domain.entities import Invoice
from src.quotes.domain.entities import Quote
from src.billing.domain.pricing import to_money

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"

env = jinja2.Environment(
    loader=jinja2.FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=jinja2.select_autoescape(['html', 'xml']),
    undefined=jinja2.StrictUndefined,
)

def format_money(value: Decimal) -> str:
    """Format monétaire québécois: 1 234,50 $"""
    formatted = f"{to_money(value):,.2f}".replace(",", " ").replace(".", ",")
    return f"{formatted} $"

def format_date(value: Optional[date]) -> str:
    return value.strftime("%d/%m/%Y") if value else ""

env.filters["money"] = format_money
env.filters["date_fr"] = format_date

def quote_public_url(quote: Quote) -> str:
    return f"{settings.PUBLIC_APP_URL.rstrip('/')}/devis/public/{quote.public_token}"

def invoice_public_url(invoice: Invoice) -> str:
    return f"{settings.PUBLIC_APP_URL.rstrip('/')}/factures/public/{invoice.public_token}"

def _first_name(contact_name: Optional[str]) -> str:
    return contact_name.split(" ")[0] if contact_name else ""

class EmailService:
    """Service applicatif pour l'envoi des emails aux clients du studio.

    Chaque méthode retourne True si l'email est parti, False sinon; les
    erreurs d'envoi sont journalisées et ne remontent jamais à l'appelant.
    """

    def __init__(self, email_sender: AbstractEmailSender):
        self.email_sender = email_sender

    def _studio_context(self) -> Dict[str, Any]:
        return {
            "studio_name": settings.STUDIO_NAME,
            "studio_email": settings.STUDIO_EMAIL,
            "studio_phone": settings.STUDIO_PHONE,
        }

    def _render_template(self, template_name: str, context: Dict[str, Any]) -> str:
        template = env.get_template(template_name)
        return template.render({**self._studio_context(), **context})

    async def _send(
        self,
        recipient_email: Optional[str],
        subject: str,
        template_name: str,
        context: Dict[str, Any],
        attachments: Optional[List[Dict[str, Any]]] = None,
    ) -> bool:
        if not recipient_email:
            logger.warning(f"[EmailService] Aucun destinataire pour '{subject}', envoi annulé.")
            return False
        html_content = self._render_template(template_name, context)
        try:
            success = await self.email_sender.send_email(
                recipient_email=recipient_email,
                subject=subject,
                html_content=html_content,
                attachments=attachments or [],
            )
        except EmailSendingException as e:
            logger.error(f"[EmailService] Erreur lors de l'envoi '{subject}' à {recipient_email}: {e}", exc_info=True)
            return False
        if success:
            logger.info(f"[EmailService] Email '{subject}' envoyé à {recipient_email}")
        else:
            logger.warning(f"[EmailService] L'envoi de '{subject}' a échoué (retour sender: False) pour {recipient_email}")
        return success

    async def send_quote_email(self, quote: Quote, pdf_content: Optional[bytes] = None) -> bool:
        """Envoie le devis au client avec le lien public d'approbation."""
        client = quote.client
        context = {
            "contact_first_name": _first_name(client.contact_name if client else None),
            "quote": quote,
            "project_name": quote.project.name if quote.project else "",
            "quote_url": quote_public_url(quote),
        }
        attachments = []
        if pdf_content:
            attachments.append({"filename": f"{quote.quote_number}.pdf", "content": pdf_content, "subtype": "pdf"})
        return await self._send(
            client.email if client else None,
            f"Devis {quote.quote_number} - {settings.STUDIO_NAME}",
            "quote_send.html",
            context,
            attachments,
        )

    async def send_quote_approved_email(self, quote: Quote) -> bool:
        client = quote.client
        deposit_amount = quote.total * quote.deposit_percent / 100
        context = {
            "contact_first_name": _first_name(client.contact_name if client else None),
            "quote": quote,
            "project_name": quote.project.name if quote.project else "",
            "deposit_amount": deposit_amount,
        }
        return await self._send(
            client.email if client else None,
            f"Devis {quote.quote_number} approuvé",
            "quote_approved.html",
            context,
        )

    async def send_invoice_email(self, invoice: Invoice, pdf_content: Optional[bytes] = None) -> bool:
        client = invoice.client
        context = {
            "contact_first_name": _first_name(client.contact_name if client else None),
            "invoice": invoice,
            "project_name": invoice.project.name if invoice.project else "",
            "invoice_url": invoice_public_url(invoice),
        }
        attachments = []
        if pdf_content:
            attachments.append({"filename": f"{invoice.invoice_number}.pdf", "content": pdf_content, "subtype": "pdf"})
        return await self._send(
            client.email if client else None,
            f"Facture {invoice.invoice_number} - {settings.STUDIO_NAME}",
            "invoice_send.html",
            context,
            attachments,
        )

    async def send_payment_received_email(self, invoice: Invoice) -> bool:
        client = invoice.client
        context = {
            "contact_first_name": _first_name(client.contact_name if client else None),
            "invoice": invoice,
            "project_name": invoice.project.name if invoice.project else "",
        }
        return await self._send(
            client.email if client else None,
            f"Paiement reçu - Facture {invoice.invoice_number}",
            "payment_received.html",
            context,
        )

    async def send_invoice_overdue_email(self, invoice: Invoice, today: date) -> bool:
        client = invoice.client
        days_overdue = (today - invoice.due_date).days if invoice.due_date else 0
        context = {
            "contact_first_name": _first_name(client.contact_name if client else None),
            "invoice": invoice,
            "project_name": invoice.project.name if invoice.project else "",
            "invoice_url": invoice_public_url(invoice),
            "days_overdue": days_overdue,
        }
        return await self._send(
            client.email if client else None,
            f"Facture {invoice.invoice_number} en retard",
            "invoice_overdue.html",
            context,
        )
