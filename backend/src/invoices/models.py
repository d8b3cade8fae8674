from typing import Optional, List
from decimal import Decimal
from datetime import date, datetime
from sqlalchemy import Index, text
from sqlmodel import SQLModel, Field, Relationship

from src.clients.models import Project

# --- Modèles pour InvoiceItem ---

class InvoiceItem(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    invoice_id: int = Field(foreign_key="invoices.id", index=True)
    description: str = Field(...)
    quantity: int = Field(default=1, ge=0)
    unit_price: Decimal = Field(..., max_digits=12, decimal_places=2)
    total: Decimal = Field(..., max_digits=12, decimal_places=2)
    sort_order: int = Field(default=0)

    invoice: Optional["Invoice"] = Relationship(back_populates="items")

    __tablename__ = "invoice_items"

# --- Modèles pour Invoice ---

class Invoice(SQLModel, table=True):
    """Modèle de table pour une facture."""
    id: Optional[int] = Field(default=None, primary_key=True)
    project_id: int = Field(foreign_key="projects.id", index=True)
    quote_id: Optional[int] = Field(default=None, foreign_key="quotes.id", index=True)
    invoice_number: str = Field(..., max_length=30, index=True)
    invoice_type: str = Field(default="FINAL", max_length=20)
    status: str = Field(default="DRAFT", max_length=20, index=True)
    subtotal: Decimal = Field(default=Decimal(0), max_digits=12, decimal_places=2)
    tps_amount: Decimal = Field(default=Decimal(0), max_digits=12, decimal_places=2)
    tvq_amount: Decimal = Field(default=Decimal(0), max_digits=12, decimal_places=2)
    total: Decimal = Field(default=Decimal(0), max_digits=12, decimal_places=2)
    # Dépenses refacturées (HT), non imputées au solde du devis
    expenses_subtotal: Decimal = Field(default=Decimal(0), max_digits=12, decimal_places=2)
    amount_paid: Decimal = Field(default=Decimal(0), max_digits=12, decimal_places=2)
    issue_date: date = Field(default_factory=date.today)
    due_date: Optional[date] = Field(default=None, index=True)
    payment_date: Optional[date] = Field(default=None)
    # Un numéro de facture annulée peut être réattribué
    is_number_reusable: bool = Field(default=False)
    public_token: str = Field(..., max_length=64, index=True, unique=True)
    notes: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    # Relations
    project: Optional[Project] = Relationship()
    items: List[InvoiceItem] = Relationship(
        back_populates="invoice",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "order_by": "InvoiceItem.sort_order"},
    )

    __tablename__ = "invoices"
    __table_args__ = (
        # Au plus un dépôt non annulé par devis
        Index(
            "uq_invoices_active_deposit_per_quote",
            "quote_id",
            unique=True,
            postgresql_where=text("invoice_type = 'DEPOSIT' AND status <> 'CANCELLED'"),
            sqlite_where=text("invoice_type = 'DEPOSIT' AND status <> 'CANCELLED'"),
        ),
    )
