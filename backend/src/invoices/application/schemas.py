from typing import Optional, List
from decimal import Decimal
from datetime import date, datetime
from pydantic import BaseModel, Field

from src.billing.domain.entities import InvoiceRequest, InvoiceStatus, InvoiceType
from src.quotes.domain.entities import ProjectSummary

class InvoiceFromQuoteCreate(InvoiceRequest):
    """Demande de facture sur un devis accepté (dépôt, paiement ou dépenses seules)."""
    notes: Optional[str] = None

class InvoiceStatusUpdate(BaseModel):
    status: InvoiceStatus
    amount_paid: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    payment_date: Optional[date] = None

class InvoiceItemResponse(BaseModel):
    id: int
    description: str
    quantity: int
    unit_price: Decimal
    total: Decimal
    sort_order: int

    class Config:
        from_attributes = True

class InvoiceResponse(BaseModel):
    id: int
    project_id: int
    quote_id: Optional[int] = None
    invoice_number: str
    invoice_type: InvoiceType
    status: InvoiceStatus
    subtotal: Decimal
    tps_amount: Decimal
    tvq_amount: Decimal
    total: Decimal
    expenses_subtotal: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    issue_date: date
    due_date: Optional[date] = None
    payment_date: Optional[date] = None
    public_token: str
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    items: List[InvoiceItemResponse] = []
    project: Optional[ProjectSummary] = None

    class Config:
        from_attributes = True

class InvoiceSummaryResponse(BaseModel):
    id: int
    project_id: int
    quote_id: Optional[int] = None
    invoice_number: str
    invoice_type: InvoiceType
    status: InvoiceStatus
    total: Decimal
    amount_paid: Decimal
    issue_date: date
    due_date: Optional[date] = None

    class Config:
        from_attributes = True

class OverdueRunResponse(BaseModel):
    run_date: date
    marked_overdue: int
