"""
Module principal de l'application FastAPI de gestion du studio.

Configure le logging, les middlewares (CORS) et inclut les routeurs des
contextes clients, devis, factures et dépenses sous le préfixe /api/v1.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.config import settings
from src.database import create_tables

# --- Importer les routeurs ---
from src.clients.router import client_router
from src.expenses.router import expense_router
from src.quotes.interfaces.api import quote_router
from src.invoices.interfaces.api import invoice_router, quote_invoice_router

# Configurer le logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.DB_CREATE_TABLES_ON_STARTUP:
        logger.info("Création des tables au démarrage.")
        await create_tables()
    yield

app = FastAPI(
    title=f"{settings.STUDIO_NAME} - API de gestion",
    description="API de gestion du studio: clients, devis, factures et dépenses.",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Range"],
)

# ======================================================
# Inclure les routeurs
# ======================================================
app.include_router(client_router, prefix=settings.API_V1_PREFIX)
app.include_router(expense_router, prefix=settings.API_V1_PREFIX)
app.include_router(quote_router, prefix=settings.API_V1_PREFIX)
app.include_router(quote_invoice_router, prefix=settings.API_V1_PREFIX)
app.include_router(invoice_router, prefix=settings.API_V1_PREFIX)

@app.get("/health", tags=["Santé"])
async def health():
    return {"status": "ok"}
