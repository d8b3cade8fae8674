from typing import Optional
from datetime import date, datetime
from decimal import Decimal
from sqlmodel import SQLModel, Field

class ExpenseBase(SQLModel):
    """Dépense du studio, éventuellement refacturable au client."""
    project_id: Optional[int] = Field(default=None, foreign_key="projects.id", index=True)
    description: str = Field(..., max_length=255)
    vendor: Optional[str] = Field(default=None, max_length=200)
    # Montant HT
    amount: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    expense_date: date = Field(default_factory=date.today)
    is_billable: bool = Field(default=False)
    notes: Optional[str] = Field(default=None)

class Expense(ExpenseBase, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    is_billed: bool = Field(default=False, index=True)
    invoice_id: Optional[int] = Field(default=None, foreign_key="invoices.id", index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    __tablename__ = "expenses"

class ExpenseCreate(ExpenseBase):
    pass

class ExpenseRead(ExpenseBase):
    id: int
    is_billed: bool
    invoice_id: Optional[int] = None
    created_at: datetime

class ExpenseUpdate(SQLModel):
    project_id: Optional[int] = None
    description: Optional[str] = None
    vendor: Optional[str] = None
    amount: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    expense_date: Optional[date] = None
    is_billable: Optional[bool] = None
    notes: Optional[str] = None
