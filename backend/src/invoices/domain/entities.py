from typing import Optional, List
from decimal import Decimal
from datetime import date, datetime
from pydantic import BaseModel, ConfigDict, computed_field

from src.billing.domain.entities import InvoiceStatus, InvoiceType
from src.quotes.domain.entities import ClientSummary, ProjectSummary

# Entités du Domaine "Invoices"

class InvoiceItem(BaseModel):
    id: int
    invoice_id: int
    description: str
    quantity: int = 1
    unit_price: Decimal
    total: Decimal
    sort_order: int = 0

    model_config = ConfigDict(from_attributes=True)

class Invoice(BaseModel):
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
    expenses_subtotal: Decimal = Decimal(0)
    amount_paid: Decimal = Decimal(0)
    issue_date: date
    due_date: Optional[date] = None
    payment_date: Optional[date] = None
    is_number_reusable: bool = False
    public_token: str
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    items: List[InvoiceItem] = []
    project: Optional[ProjectSummary] = None

    model_config = ConfigDict(from_attributes=True)

    @computed_field
    @property
    def balance_due(self) -> Decimal:
        return self.total - self.amount_paid

    @property
    def client(self) -> Optional[ClientSummary]:
        return self.project.client if self.project else None

    def is_past_due(self, today: date) -> bool:
        return self.due_date is not None and self.due_date < today
