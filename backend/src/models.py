"""Registre des tables SQLModel: importer ce module enregistre toutes les tables dans les métadonnées."""

from src.clients.models import Client, Project  # noqa: F401
from src.quotes.models import Quote, QuoteSection, QuoteItem  # noqa: F401
from src.invoices.models import Invoice, InvoiceItem  # noqa: F401
from src.expenses.models import Expense  # noqa: F401
