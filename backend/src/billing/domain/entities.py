import enum
from decimal import Decimal
from functools import reduce
from typing import Optional, List, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, field_serializer

# Entités du Domaine "Billing"
# Vue minimale d'un devis et de ses factures, suffisante pour le calcul.

class QuoteStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    VIEWED = "VIEWED"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"

class InvoiceType(str, enum.Enum):
    DEPOSIT = "DEPOSIT"
    PARTIAL = "PARTIAL"
    FINAL = "FINAL"
    STANDALONE = "STANDALONE"

class InvoiceStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"

class BillingMode(str, enum.Enum):
    FIXED = "FIXED"
    HOURLY = "HOURLY"

class DiscountType(str, enum.Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED = "FIXED"

class ItemType(enum.Flag):
    """Étiquettes d'un item de devis. Seuls les tests d'appartenance comptent."""
    NONE = 0
    SERVICE = enum.auto()
    PRODUCT = enum.auto()
    FREE = enum.auto()
    A_LA_CARTE = enum.auto()

    @classmethod
    def from_names(cls, names) -> "ItemType":
        try:
            return reduce(lambda acc, name: acc | cls[str(name).upper()], names or [], cls.NONE)
        except KeyError as e:
            raise ValueError(f"Type d'item inconnu: {e.args[0]}") from e

    def to_names(self) -> List[str]:
        return [member.name for member in ItemType if member.value and member in self]

class ItemVariant(BaseModel):
    label: str
    price: Decimal = Field(..., ge=0)

class Discount(BaseModel):
    type: DiscountType
    value: Decimal = Field(..., ge=0)
    label: Optional[str] = None
    reason: Optional[str] = None

class PricedItem(BaseModel):
    """Item de devis tel que vu par le calcul de prix."""
    id: int
    name: str
    item_types: ItemType = ItemType.SERVICE
    billing_mode: BillingMode = BillingMode.FIXED
    quantity: int = Field(1, ge=0)
    unit_price: Decimal = Decimal(0)
    hourly_rate: Optional[Decimal] = None
    hours: Optional[Decimal] = None
    include_in_total: bool = True
    is_selected: bool = True
    variants: List[ItemVariant] = []
    selected_variant: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("item_types", mode="before")
    @classmethod
    def _parse_item_types(cls, value: Any) -> ItemType:
        if isinstance(value, ItemType):
            return value
        if isinstance(value, str):
            return ItemType.from_names([value])
        if isinstance(value, (list, tuple, set, frozenset)):
            return ItemType.from_names(value)
        return value

    @field_validator("variants", mode="before")
    @classmethod
    def _parse_variants(cls, value: Any) -> Any:
        return value or []

    @field_serializer("item_types")
    def _serialize_item_types(self, value: ItemType) -> List[str]:
        return value.to_names()

    def has_type(self, item_type: ItemType) -> bool:
        return item_type in self.item_types

class PricedSection(BaseModel):
    id: int
    title: str
    items: List[PricedItem] = []

    model_config = ConfigDict(from_attributes=True)

class BillableQuote(BaseModel):
    """Devis tel que vu par le moteur de facturation."""
    id: int
    quote_number: str
    status: QuoteStatus
    subtotal: Decimal = Decimal(0)
    total: Decimal = Decimal(0)
    tps_rate: Decimal
    tvq_rate: Decimal
    deposit_percent: Decimal = Field(Decimal(50), ge=0, le=100)
    discounts: List[Discount] = []
    sections: List[PricedSection] = []

    model_config = ConfigDict(from_attributes=True)

    @field_validator("discounts", mode="before")
    @classmethod
    def _parse_discounts(cls, value: Any) -> Any:
        return value or []

    @property
    def items(self) -> List[PricedItem]:
        return [item for section in self.sections for item in section.items]

    @property
    def tax_multiplier(self) -> Decimal:
        return 1 + self.tps_rate + self.tvq_rate

class PriorInvoice(BaseModel):
    """Facture déjà émise contre le devis."""
    invoice_type: InvoiceType
    total: Decimal
    # Part HT des dépenses refacturées, hors solde du devis
    expenses_subtotal: Decimal = Decimal(0)
    status: InvoiceStatus = InvoiceStatus.DRAFT

    model_config = ConfigDict(from_attributes=True)

class BillableExpense(BaseModel):
    id: int
    description: str
    vendor: Optional[str] = None
    amount: Decimal # Montant HT

    model_config = ConfigDict(from_attributes=True)

class InvoiceRequest(BaseModel):
    """Demande de facturation sur un devis accepté.

    Le type demandé n'est qu'indicatif pour les paiements: FINAL ou PARTIAL
    est déterminé par le solde restant.
    """
    requested_invoice_type: InvoiceType = InvoiceType.FINAL
    requested_amount: Optional[Decimal] = Field(None, ge=0, description="Montant TTC, hors dépenses")
    expense_ids: List[int] = []

class DerivedInvoiceLine(BaseModel):
    description: str
    quantity: int = 1
    unit_price: Decimal
    total: Decimal
    sort_order: int = 0

class DerivedInvoice(BaseModel):
    invoice_type: InvoiceType
    subtotal: Decimal
    tps_amount: Decimal
    tvq_amount: Decimal
    total: Decimal
    expenses_subtotal: Decimal = Decimal(0)
    items: List[DerivedInvoiceLine]
    expense_ids: List[int] = []

class QuoteTotals(BaseModel):
    subtotal: Decimal
    discount_total: Decimal
    tps_amount: Decimal
    tvq_amount: Decimal
    total: Decimal
