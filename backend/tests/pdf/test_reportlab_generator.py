from datetime import date, datetime
from decimal import Decimal

import pytest

from src.billing.domain.entities import BillingMode, Discount, DiscountType, InvoiceStatus, InvoiceType, ItemType, QuoteStatus
from src.invoices.domain.entities import Invoice, InvoiceItem
from src.pdf.application.services import PDFService, build_invoice_pdf_data, build_quote_pdf_data
from src.pdf.domain.exceptions import PDFGenerationException
from src.pdf.infrastructure.reportlab_generator import ReportLabPDFGenerator
from src.quotes.domain.entities import ClientSummary, ProjectSummary, Quote, QuoteItem, QuoteSection

STUDIO = {
    "name": "Studio Test",
    "address": "123 rue Principale\nMontréal, QC",
    "email": "bonjour@studio.test",
    "phone": "514-555-0000",
    "tps_number": "123456789 RT0001",
    "tvq_number": "1234567890 TQ0001",
}

@pytest.fixture
def project():
    client = ClientSummary(id=1, code="ABC", company_name="Acme & Fils", contact_name="Marie Tremblay", email="marie@acme.test")
    return ProjectSummary(id=1, name="Refonte du site", project_number=1, client=client)

@pytest.fixture
def quote(project):
    items = [
        QuoteItem(id=1, name="Maquettes", quantity=2, unit_price=Decimal("500")),
        QuoteItem(id=2, name="Audit offert", item_types=ItemType.FREE, unit_price=Decimal("100")),
        QuoteItem(id=3, name="Intégration", billing_mode=BillingMode.HOURLY, hourly_rate=Decimal("75"), hours=Decimal("10")),
        QuoteItem(id=4, name="Blogue", item_types=ItemType.SERVICE | ItemType.A_LA_CARTE, is_selected=False, unit_price=Decimal("300")),
    ]
    now = datetime(2024, 3, 1, 10, 0)
    return Quote(
        id=1, project_id=1, quote_number="D-ABC-001", status=QuoteStatus.DRAFT,
        public_token="a" * 32, valid_until=date(2024, 3, 31),
        tps_rate=Decimal("0.05"), tvq_rate=Decimal("0.09975"),
        discounts=[Discount(type=DiscountType.PERCENTAGE, value=Decimal("10"))],
        sections=[QuoteSection(id=1, title="Design <web>", items=items)],
        notes="Merci de votre confiance.",
        created_at=now, updated_at=now, project=project,
    )

@pytest.fixture
def invoice(project):
    now = datetime(2024, 3, 2, 10, 0)
    return Invoice(
        id=1, project_id=1, quote_id=1, invoice_number="F-ABC-001",
        invoice_type=InvoiceType.DEPOSIT, status=InvoiceStatus.PAID,
        subtotal=Decimal("500.00"), tps_amount=Decimal("25.00"), tvq_amount=Decimal("49.88"), total=Decimal("574.88"),
        amount_paid=Decimal("200.00"),
        issue_date=date(2024, 3, 2), due_date=date(2024, 4, 1),
        public_token="b" * 32, created_at=now, updated_at=now, project=project,
        items=[InvoiceItem(id=1, invoice_id=1, description="Dépôt (50%) — Devis D-ABC-001", unit_price=Decimal("500.00"), total=Decimal("500.00"))],
    )

def test_build_quote_pdf_data(quote):
    data = build_quote_pdf_data(quote)

    assert data["number"] == "D-ABC-001"
    assert data["date"] == date(2024, 3, 1)
    assert data["client"]["company_name"] == "Acme & Fils"
    items = {item["name"]: item for item in data["sections"][0]["items"]}
    assert items["Maquettes"]["unit_price"] == Decimal("500.00")
    assert items["Maquettes"]["total"] == Decimal("1000.00")
    assert items["Audit offert"]["is_free"] is True
    assert items["Intégration"]["total"] == Decimal("750.00")
    assert items["Blogue"]["is_included"] is False
    assert data["subtotal"] == Decimal("1750.00")
    assert data["discounts"] == [{"label": "Rabais (10%)", "amount": Decimal("175.00")}]
    assert data["tps_amount"] == Decimal("78.75")
    assert data["tvq_amount"] == Decimal("157.11")
    assert data["total"] == Decimal("1810.86")
    assert data["deposit_amount"] == Decimal("905.43")

def test_build_invoice_pdf_data(invoice):
    data = build_invoice_pdf_data(invoice)

    assert data["title"] == "Facture de dépôt"
    assert data["balance_due"] == Decimal("374.88")
    assert data["items"][0]["description"].startswith("Dépôt (50%)")

@pytest.mark.asyncio
async def test_generate_quote_pdf(quote):
    generator = ReportLabPDFGenerator(studio=STUDIO)

    pdf = await generator.generate_quote_pdf(build_quote_pdf_data(quote))

    assert pdf.startswith(b"%PDF")

@pytest.mark.asyncio
async def test_generate_invoice_pdf(invoice):
    generator = ReportLabPDFGenerator(studio=STUDIO)

    pdf = await generator.generate_invoice_pdf(build_invoice_pdf_data(invoice))

    assert pdf.startswith(b"%PDF")

@pytest.mark.asyncio
async def test_generate_pdf_with_minimal_data():
    generator = ReportLabPDFGenerator(studio={"name": "Studio"})

    pdf = await generator.generate_invoice_pdf({"number": "F-XYZ-001"})

    assert pdf.startswith(b"%PDF")

@pytest.mark.asyncio
async def test_pdf_service_wraps_unexpected_errors(invoice, mocker):
    generator = ReportLabPDFGenerator(studio=STUDIO)
    mocker.patch.object(generator, "generate_invoice_pdf", side_effect=RuntimeError("police introuvable"))
    service = PDFService(pdf_generator=generator)

    with pytest.raises(PDFGenerationException) as exc_info:
        await service.generate_invoice_pdf(invoice)

    assert isinstance(exc_info.value.original_exception, RuntimeError)
    assert exc_info.value.document == "facture F-ABC-001"
    assert "F-ABC-001" in str(exc_info.value)

@pytest.mark.asyncio
async def test_pdf_service_propagates_generation_errors(quote, mocker):
    generator = ReportLabPDFGenerator(studio=STUDIO)
    mock_generate = mocker.patch.object(generator, "generate_quote_pdf", side_effect=PDFGenerationException("build"))
    service = PDFService(pdf_generator=generator)

    with pytest.raises(PDFGenerationException):
        await service.generate_quote_pdf(quote)

    assert mock_generate.call_args[0][0]["number"] == "D-ABC-001"
