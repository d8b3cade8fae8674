import logging
import io
from typing import Dict, Any, List, Optional
from decimal import Decimal
from xml.sax.saxutils import escape

# ReportLab Imports
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.lib.pagesizes import letter
from reportlab.lib import colors

from src.config import settings
from src.pdf.domain.generator import AbstractPDFGenerator
from src.pdf.domain.exceptions import PDFGenerationException

logger = logging.getLogger(__name__)

PRIMARY_COLOR = colors.HexColor("#111827")
MUTED_COLOR = colors.HexColor("#6b7280")

def _money(value: Optional[Decimal]) -> str:
    amount = Decimal(value or 0)
    return f"{amount:,.2f}".replace(",", " ").replace(".", ",") + " $"

def _date(value) -> str:
    return value.strftime('%d/%m/%Y') if value else ""

def _percent(rate: Decimal) -> str:
    return f"{(Decimal(rate) * 100).normalize():f}"

def _text(value: Optional[str]) -> str:
    return escape(value or "").replace("\n", "<br/>")

class ReportLabPDFGenerator(AbstractPDFGenerator):
    """Implémentation du générateur PDF utilisant ReportLab."""

    def __init__(self, studio: Optional[Dict[str, Any]] = None):
        self.studio = studio or {
            "name": settings.STUDIO_NAME,
            "address": settings.STUDIO_ADDRESS,
            "email": settings.STUDIO_EMAIL,
            "phone": settings.STUDIO_PHONE,
            "tps_number": settings.TPS_NUMBER,
            "tvq_number": settings.TVQ_NUMBER,
        }
        styles = getSampleStyleSheet()
        self.styles = {
            "title": ParagraphStyle(name="DocTitle", parent=styles["Heading1"], textColor=PRIMARY_COLOR),
            "h3": ParagraphStyle(name="SectionTitle", parent=styles["Heading3"], textColor=PRIMARY_COLOR),
            "normal": styles["Normal"],
            "small": ParagraphStyle(name="Small", parent=styles["Normal"], fontSize=8, textColor=MUTED_COLOR),
            "right": ParagraphStyle(name="Right", parent=styles["Normal"], alignment=2),
            "bold": ParagraphStyle(name="Bold", parent=styles["Normal"], fontName="Helvetica-Bold"),
        }

    # --- Blocs communs ---

    def _header(self, title: str, number: str, dates: List[str]) -> List[Any]:
        studio_lines = [f"<b>{_text(self.studio.get('name'))}</b>"]
        for key in ("address", "email", "phone"):
            if self.studio.get(key):
                studio_lines.append(_text(self.studio[key]))
        doc_lines = [f"<b>{_text(title)}</b>", _text(number)] + dates
        table = Table(
            [[Paragraph("<br/>".join(studio_lines), self.styles["normal"]),
              Paragraph("<br/>".join(doc_lines), self.styles["right"])]],
            colWidths=[3.5 * inch, 3.5 * inch],
        )
        table.setStyle(TableStyle([("VALIGN", (0, 0), (-1, -1), "TOP")]))
        return [table, Spacer(1, 0.3 * inch)]

    def _client_block(self, client: Dict[str, Any], project_name: str) -> List[Any]:
        if not client:
            return []
        lines = ["<b>Client</b>", _text(client.get("company_name"))]
        for key in ("contact_name", "address", "email"):
            if client.get(key):
                lines.append(_text(client[key]))
        if project_name:
            lines.append(f"Projet: {_text(project_name)}")
        return [Paragraph("<br/>".join(lines), self.styles["normal"]), Spacer(1, 0.25 * inch)]

    def _items_table(self, rows: List[List[Any]]) -> Table:
        header = [Paragraph(f"<b>{label}</b>", self.styles["normal"]) for label in ("Description", "Qté", "Prix unitaire", "Total")]
        table = Table([header] + rows, colWidths=[3.9 * inch, 0.6 * inch, 1.25 * inch, 1.25 * inch], repeatRows=1)
        table.setStyle(TableStyle([
            ('LINEBELOW', (0, 0), (-1, 0), 1, PRIMARY_COLOR),
            ('LINEBELOW', (0, 1), (-1, -1), 0.25, colors.lightgrey),
            ('ALIGN', (1, 0), (-1, -1), 'RIGHT'),
            ('VALIGN', (0, 0), (-1, -1), 'TOP'),
            ('FONTSIZE', (0, 1), (-1, -1), 9),
        ]))
        return table

    def _totals_table(self, lines: List[tuple]) -> Table:
        data = [[label, value] for label, value in lines]
        table = Table(data, colWidths=[5.0 * inch, 2.0 * inch], hAlign="RIGHT")
        table.setStyle(TableStyle([
            ('ALIGN', (0, 0), (-1, -1), 'RIGHT'),
            ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
            ('LINEABOVE', (0, -1), (-1, -1), 1, PRIMARY_COLOR),
        ]))
        return table

    def _tax_numbers(self) -> List[Any]:
        numbers = []
        if self.studio.get("tps_number"):
            numbers.append(f"TPS: {_text(self.studio['tps_number'])}")
        if self.studio.get("tvq_number"):
            numbers.append(f"TVQ: {_text(self.studio['tvq_number'])}")
        if not numbers:
            return []
        return [Spacer(1, 0.2 * inch), Paragraph(" · ".join(numbers), self.styles["small"])]

    def _build(self, elements: List[Any], label: str) -> bytes:
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(buffer, pagesize=letter, title=label)
        try:
            doc.build(elements)
        except Exception as e:
            logger.error(f"[PDFGen] Erreur ReportLab build() pour {label}: {e}", exc_info=True)
            raise PDFGenerationException("échec de la mise en page ReportLab", original_exception=e, document=label)
        pdf_bytes = buffer.getvalue()
        buffer.close()
        logger.info(f"[PDFGen] PDF {label} généré en mémoire ({len(pdf_bytes)} bytes).")
        return pdf_bytes

    # --- Documents ---

    async def generate_quote_pdf(self, quote_data: Dict[str, Any]) -> bytes:
        number = quote_data.get("number", "N/A")
        logger.info(f"[PDFGen] Génération PDF devis {number}")

        dates = [f"Date: {_date(quote_data.get('date'))}"]
        if quote_data.get("valid_until"):
            dates.append(f"Valide jusqu'au: {_date(quote_data['valid_until'])}")
        elements = self._header("Devis", number, dates)
        elements += self._client_block(quote_data.get("client", {}), quote_data.get("project_name", ""))

        for section in quote_data.get("sections", []):
            elements.append(Paragraph(_text(section.get("title")), self.styles["h3"]))
            rows = []
            for item in section.get("items", []):
                description = f"<b>{_text(item.get('name'))}</b>"
                if item.get("description"):
                    description += f"<br/>{_text(item['description'])}"
                if not item.get("is_included", True):
                    description += " <i>(optionnel, non retenu)</i>"
                total = "Gratuit" if item.get("is_free") else _money(item.get("total"))
                rows.append([
                    Paragraph(description, self.styles["normal"]),
                    str(item.get("quantity", 0)),
                    _money(item.get("unit_price")),
                    total,
                ])
            elements.append(self._items_table(rows))
            elements.append(Spacer(1, 0.15 * inch))

        totals = [("Sous-total", _money(quote_data.get("subtotal")))]
        for discount in quote_data.get("discounts", []):
            totals.append((discount["label"], f"- {_money(discount['amount'])}"))
        totals += [
            (f"TPS ({_percent(quote_data.get('tps_rate', 0))}%)", _money(quote_data.get("tps_amount"))),
            (f"TVQ ({_percent(quote_data.get('tvq_rate', 0))}%)", _money(quote_data.get("tvq_amount"))),
            ("Total", _money(quote_data.get("total"))),
        ]
        elements.append(Spacer(1, 0.2 * inch))
        elements.append(self._totals_table(totals))

        if quote_data.get("deposit_percent"):
            elements.append(Spacer(1, 0.2 * inch))
            elements.append(Paragraph(
                f"Dépôt requis à l'approbation ({Decimal(quote_data['deposit_percent']).normalize():f}%): "
                f"<b>{_money(quote_data.get('deposit_amount'))}</b>",
                self.styles["normal"],
            ))
        if quote_data.get("notes"):
            elements.append(Spacer(1, 0.2 * inch))
            elements.append(Paragraph(_text(quote_data["notes"]), self.styles["normal"]))
        elements += self._tax_numbers()

        return self._build(elements, f"devis {number}")

    async def generate_invoice_pdf(self, invoice_data: Dict[str, Any]) -> bytes:
        number = invoice_data.get("number", "N/A")
        logger.info(f"[PDFGen] Génération PDF facture {number}")

        dates = [f"Date: {_date(invoice_data.get('issue_date'))}"]
        if invoice_data.get("due_date"):
            dates.append(f"Échéance: {_date(invoice_data['due_date'])}")
        elements = self._header(invoice_data.get("title", "Facture"), number, dates)
        elements += self._client_block(invoice_data.get("client", {}), invoice_data.get("project_name", ""))

        rows = [
            [
                Paragraph(_text(item.get("description")), self.styles["normal"]),
                str(item.get("quantity", 1)),
                _money(item.get("unit_price")),
                _money(item.get("total")),
            ]
            for item in invoice_data.get("items", [])
        ]
        elements.append(self._items_table(rows))
        elements.append(Spacer(1, 0.3 * inch))

        totals = [
            ("Sous-total", _money(invoice_data.get("subtotal"))),
            ("TPS", _money(invoice_data.get("tps_amount"))),
            ("TVQ", _money(invoice_data.get("tvq_amount"))),
        ]
        if invoice_data.get("amount_paid"):
            totals += [
                ("Total", _money(invoice_data.get("total"))),
                ("Montant payé", f"- {_money(invoice_data.get('amount_paid'))}"),
                ("Solde dû", _money(invoice_data.get("balance_due"))),
            ]
        else:
            totals.append(("Total", _money(invoice_data.get("total"))))
        elements.append(self._totals_table(totals))

        if invoice_data.get("notes"):
            elements.append(Spacer(1, 0.2 * inch))
            elements.append(Paragraph(_text(invoice_data["notes"]), self.styles["normal"]))
        elements += self._tax_numbers()

        return self._build(elements, f"facture {number}")
