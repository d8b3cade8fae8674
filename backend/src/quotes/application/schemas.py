from typing import Optional, List, Dict
from decimal import Decimal
from datetime import date, datetime
from pydantic import BaseModel, Field, field_validator

from src.billing.domain.entities import BillingMode, Discount, ItemType, ItemVariant, QuoteStatus
from src.quotes.domain.entities import ProjectSummary, QuoteSection

# --- Schémas pour QuoteItem ---

class QuoteItemCreate(BaseModel):
    name: str = Field(..., max_length=255)
    description: Optional[str] = None
    item_types: List[str] = ["SERVICE"]
    billing_mode: BillingMode = BillingMode.FIXED
    quantity: int = Field(1, ge=0)
    unit_price: Decimal = Field(Decimal(0), ge=0, max_digits=12, decimal_places=2)
    hourly_rate: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    hours: Optional[Decimal] = Field(None, ge=0, max_digits=8, decimal_places=2)
    include_in_total: bool = True
    is_selected: bool = True
    variants: List[ItemVariant] = []
    selected_variant: Optional[int] = Field(None, ge=0)

    @field_validator("item_types")
    @classmethod
    def _validate_item_types(cls, value: List[str]) -> List[str]:
        # Lève ValueError sur un type inconnu
        return ItemType.from_names(value).to_names()

# --- Schémas pour QuoteSection ---

class QuoteSectionCreate(BaseModel):
    title: str = Field(..., max_length=255)
    items: List[QuoteItemCreate] = []

# --- Schémas pour Quote ---

class QuoteCreate(BaseModel):
    project_id: int
    sections: List[QuoteSectionCreate] = []
    discounts: List[Discount] = []
    deposit_percent: Optional[Decimal] = Field(None, ge=0, le=100)
    tps_rate: Optional[Decimal] = Field(None, ge=0, le=1)
    tvq_rate: Optional[Decimal] = Field(None, ge=0, le=1)
    notes: Optional[str] = None

class QuoteUpdate(BaseModel):
    """Édition d'un devis brouillon. Les champs omis sont conservés; `sections` remplace tout le contenu."""
    sections: Optional[List[QuoteSectionCreate]] = None
    discounts: Optional[List[Discount]] = None
    deposit_percent: Optional[Decimal] = Field(None, ge=0, le=100)
    tps_rate: Optional[Decimal] = Field(None, ge=0, le=1)
    tvq_rate: Optional[Decimal] = Field(None, ge=0, le=1)
    valid_until: Optional[date] = None
    notes: Optional[str] = None

class QuoteStatusUpdate(BaseModel):
    status: QuoteStatus

class QuoteApproval(BaseModel):
    """Choix du client sur la page publique du devis."""
    item_selections: Dict[int, bool] = {}
    variant_selections: Dict[int, Optional[int]] = {}

class QuoteResponse(BaseModel):
    id: int
    project_id: int
    quote_number: str
    status: QuoteStatus
    public_token: str
    valid_until: Optional[date] = None
    deposit_percent: Decimal
    tps_rate: Decimal
    tvq_rate: Decimal
    discounts: List[Discount] = []
    subtotal: Decimal
    total: Decimal
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    sections: List[QuoteSection] = []
    project: Optional[ProjectSummary] = None

    class Config:
        from_attributes = True

class QuoteSummaryResponse(BaseModel):
    """Version allégée pour les listes."""
    id: int
    project_id: int
    quote_number: str
    status: QuoteStatus
    subtotal: Decimal
    total: Decimal
    valid_until: Optional[date] = None
    created_at: datetime

    class Config:
        from_attributes = True
