from typing import Optional, List, Dict, Any
from decimal import Decimal
from datetime import date, datetime
from sqlalchemy import JSON
from sqlmodel import SQLModel, Field, Relationship

from src.clients.models import Project

# --- Modèles pour QuoteItem ---

class QuoteItem(SQLModel, table=True):
    """Ligne de devis. Les types et variantes sont stockés en JSON."""
    id: Optional[int] = Field(default=None, primary_key=True)
    section_id: int = Field(foreign_key="quote_sections.id", index=True)
    name: str = Field(..., max_length=255)
    description: Optional[str] = Field(default=None)
    item_types: List[str] = Field(default_factory=lambda: ["SERVICE"], sa_type=JSON)
    billing_mode: str = Field(default="FIXED", max_length=10)
    quantity: int = Field(default=1, ge=0)
    unit_price: Decimal = Field(default=Decimal(0), max_digits=12, decimal_places=2)
    hourly_rate: Optional[Decimal] = Field(default=None, max_digits=10, decimal_places=2)
    hours: Optional[Decimal] = Field(default=None, max_digits=8, decimal_places=2)
    include_in_total: bool = Field(default=True)
    is_selected: bool = Field(default=True)
    variants: Optional[List[Dict[str, Any]]] = Field(default=None, sa_type=JSON)
    selected_variant: Optional[int] = Field(default=None)
    sort_order: int = Field(default=0)

    section: Optional["QuoteSection"] = Relationship(back_populates="items")

    __tablename__ = "quote_items"

# --- Modèles pour QuoteSection ---

class QuoteSection(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    quote_id: int = Field(foreign_key="quotes.id", index=True)
    title: str = Field(..., max_length=255)
    sort_order: int = Field(default=0)

    quote: Optional["Quote"] = Relationship(back_populates="sections")
    items: List[QuoteItem] = Relationship(
        back_populates="section",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "order_by": "QuoteItem.sort_order"},
    )

    __tablename__ = "quote_sections"

# --- Modèles pour Quote ---

class Quote(SQLModel, table=True):
    """Modèle de table pour un devis."""
    id: Optional[int] = Field(default=None, primary_key=True)
    project_id: int = Field(foreign_key="projects.id", index=True)
    quote_number: str = Field(..., max_length=30, index=True, unique=True)
    status: str = Field(default="DRAFT", max_length=20, index=True)
    public_token: str = Field(..., max_length=64, index=True, unique=True)
    valid_until: Optional[date] = Field(default=None)
    deposit_percent: Decimal = Field(default=Decimal(50), max_digits=5, decimal_places=2)
    tps_rate: Decimal = Field(..., max_digits=6, decimal_places=5)
    tvq_rate: Decimal = Field(..., max_digits=6, decimal_places=5)
    discounts: Optional[List[Dict[str, Any]]] = Field(default=None, sa_type=JSON)
    subtotal: Decimal = Field(default=Decimal(0), max_digits=12, decimal_places=2)
    total: Decimal = Field(default=Decimal(0), max_digits=12, decimal_places=2)
    notes: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    # Relations
    project: Optional[Project] = Relationship()
    sections: List[QuoteSection] = Relationship(
        back_populates="quote",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "order_by": "QuoteSection.sort_order"},
    )

    __tablename__ = "quotes"
