import logging
from typing import Dict, Any

from src.billing.domain.pricing import compute_quote_totals, discount_total, item_unit_price, to_money
from src.billing.domain.entities import DiscountType, ItemType
from src.invoices.domain.entities import Invoice
from src.quotes.domain.entities import Quote
from src.pdf.domain.generator import AbstractPDFGenerator
from src.pdf.domain.exceptions import PDFGenerationException

logger = logging.getLogger(__name__)

INVOICE_TYPE_LABELS = {
    "DEPOSIT": "Facture de dépôt",
    "PARTIAL": "Facture partielle",
    "FINAL": "Facture finale",
    "STANDALONE": "Facture",
}

def _client_data(entity) -> Dict[str, Any]:
    client = entity.client
    if not client:
        return {}
    return {
        "code": client.code,
        "company_name": client.company_name,
        "contact_name": client.contact_name,
        "email": client.email,
        "address": client.address,
    }

def build_quote_pdf_data(quote: Quote) -> Dict[str, Any]:
    """Met à plat un devis pour le générateur PDF. Les prix viennent de la tarification partagée."""
    totals = compute_quote_totals(quote.items, quote.discounts, quote.tps_rate, quote.tvq_rate)
    subtotal = totals.subtotal
    discounts = []
    for discount in quote.discounts:
        amount = discount_total(subtotal, [discount])
        label = discount.label or ("Rabais" if discount.type == DiscountType.FIXED else f"Rabais ({discount.value.normalize():f}%)")
        discounts.append({"label": label, "amount": to_money(amount)})

    return {
        "number": quote.quote_number,
        "date": quote.created_at.date(),
        "valid_until": quote.valid_until,
        "client": _client_data(quote),
        "project_name": quote.project.name if quote.project else "",
        "sections": [
            {
                "title": section.title,
                "items": [
                    {
                        "name": item.name,
                        "description": item.description,
                        "quantity": item.quantity,
                        "unit_price": to_money(item_unit_price(item)),
                        "total": item.line_total,
                        "is_included": item.is_included,
                        "is_free": item.has_type(ItemType.FREE),
                    }
                    for item in section.items
                ],
            }
            for section in quote.sections
        ],
        "subtotal": totals.subtotal,
        "discounts": discounts,
        "tps_rate": quote.tps_rate,
        "tvq_rate": quote.tvq_rate,
        "tps_amount": totals.tps_amount,
        "tvq_amount": totals.tvq_amount,
        "total": totals.total,
        "deposit_percent": quote.deposit_percent,
        "deposit_amount": to_money(totals.total * quote.deposit_percent / 100),
        "notes": quote.notes,
    }

def build_invoice_pdf_data(invoice: Invoice) -> Dict[str, Any]:
    return {
        "number": invoice.invoice_number,
        "title": INVOICE_TYPE_LABELS.get(invoice.invoice_type.value, "Facture"),
        "status": invoice.status.value,
        "issue_date": invoice.issue_date,
        "due_date": invoice.due_date,
        "client": _client_data(invoice),
        "project_name": invoice.project.name if invoice.project else "",
        "items": [
            {
                "description": item.description,
                "quantity": item.quantity,
                "unit_price": item.unit_price,
                "total": item.total,
            }
            for item in invoice.items
        ],
        "subtotal": invoice.subtotal,
        "tps_amount": invoice.tps_amount,
        "tvq_amount": invoice.tvq_amount,
        "total": invoice.total,
        "amount_paid": invoice.amount_paid,
        "balance_due": invoice.balance_due,
        "notes": invoice.notes,
    }

class PDFService:
    """Service applicatif pour la génération des PDF de devis et de factures."""

    def __init__(self, pdf_generator: AbstractPDFGenerator):
        self.pdf_generator = pdf_generator

    async def generate_quote_pdf(self, quote: Quote) -> bytes:
        logger.info(f"[PDFService] Demande de génération PDF pour devis {quote.quote_number}.")
        try:
            return await self.pdf_generator.generate_quote_pdf(build_quote_pdf_data(quote))
        except PDFGenerationException as e:
            logger.error(f"[PDFService] Échec génération PDF devis {quote.quote_number}: {e}")
            raise
        except Exception as e:
            logger.error(f"[PDFService] Erreur inattendue génération PDF devis {quote.quote_number}: {e}", exc_info=True)
            raise PDFGenerationException("erreur inattendue", original_exception=e, document=f"devis {quote.quote_number}")

    async def generate_invoice_pdf(self, invoice: Invoice) -> bytes:
        logger.info(f"[PDFService] Demande de génération PDF pour facture {invoice.invoice_number}.")
        try:
            return await self.pdf_generator.generate_invoice_pdf(build_invoice_pdf_data(invoice))
        except PDFGenerationException as e:
            logger.error(f"[PDFService] Échec génération PDF facture {invoice.invoice_number}: {e}")
            raise
        except Exception as e:
            logger.error(f"[PDFService] Erreur inattendue génération PDF facture {invoice.invoice_number}: {e}", exc_info=True)
            raise PDFGenerationException("erreur inattendue", original_exception=e, document=f"facture {invoice.invoice_number}")
