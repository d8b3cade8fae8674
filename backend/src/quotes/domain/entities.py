from typing import Optional, List
from datetime import date, datetime
from pydantic import BaseModel, ConfigDict, computed_field
from decimal import Decimal

from src.billing.domain.entities import BillableQuote, PricedItem, PricedSection
from src.billing.domain.pricing import item_line_total, is_included, to_money

# Entités du Domaine "Quotes"

class ClientSummary(BaseModel):
    id: int
    code: str
    company_name: str
    contact_name: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

class ProjectSummary(BaseModel):
    id: int
    name: str
    project_number: int
    client: Optional[ClientSummary] = None

    model_config = ConfigDict(from_attributes=True)

class QuoteItem(PricedItem):
    section_id: Optional[int] = None
    description: Optional[str] = None
    sort_order: int = 0

    @computed_field
    @property
    def line_total(self) -> Decimal:
        return to_money(item_line_total(self))

    @computed_field
    @property
    def is_included(self) -> bool:
        return is_included(self)

class QuoteSection(PricedSection):
    quote_id: Optional[int] = None
    sort_order: int = 0
    items: List[QuoteItem] = []

class Quote(BillableQuote):
    project_id: int
    public_token: str
    valid_until: Optional[date] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    sections: List[QuoteSection] = []
    project: Optional[ProjectSummary] = None

    @property
    def client(self) -> Optional[ClientSummary]:
        return self.project.client if self.project else None

    def is_expired(self, today: date) -> bool:
        return self.valid_until is not None and self.valid_until < today
