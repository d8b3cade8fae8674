import logging
from datetime import date
from typing import Optional, List

from fastapi import APIRouter, HTTPException, status, Query, Path, Body, Response

from .dependencies import InvoiceServiceDep
from src.invoices.application.schemas import (
    InvoiceFromQuoteCreate, InvoiceResponse, InvoiceStatusUpdate, InvoiceSummaryResponse, OverdueRunResponse,
)
from src.billing.domain.entities import InvoiceStatus
from src.core.exceptions import ConflictException, DomainException, NotFoundException
from src.email.domain.exceptions import EmailDeliveryFailedException
from src.pdf.domain.exceptions import PDFGenerationException

logger = logging.getLogger(__name__)

invoice_router = APIRouter(
    prefix="/invoices",
    tags=["Invoices"]
)

# Facturation depuis un devis: /quotes/{id}/invoices
quote_invoice_router = APIRouter(
    prefix="/quotes",
    tags=["Invoices"]
)

def handle_invoice_service_errors(e: Exception):
    if isinstance(e, HTTPException):
        raise e
    if isinstance(e, NotFoundException):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, ConflictException):
        logger.warning(f"[Invoice API] Conflit: {e}")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    if isinstance(e, EmailDeliveryFailedException):
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    if isinstance(e, DomainException):
        logger.warning(f"[Invoice API] Opération refusée: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if isinstance(e, PDFGenerationException):
        logger.error(f"[Invoice API] Génération PDF échouée: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Erreur lors de la génération du PDF.")
    logger.error(f"[Invoice API] Unexpected error: {e}", exc_info=True)
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Erreur interne (factures).")

# --- Depuis un devis ---

@quote_invoice_router.post("/{quote_id}/invoices", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED, summary="Facturer un devis accepté")
async def create_invoice_from_quote(
    invoice_service: InvoiceServiceDep,
    quote_id: int = Path(..., ge=1),
    invoice_in: InvoiceFromQuoteCreate = Body(...),
):
    logger.info(f"API create_invoice_from_quote: devis ID={quote_id}")
    try:
        return await invoice_service.create_invoice_from_quote(quote_id, invoice_in)
    except Exception as e:
        handle_invoice_service_errors(e)

@quote_invoice_router.get("/{quote_id}/invoices", response_model=List[InvoiceResponse], summary="Factures émises contre un devis")
async def list_quote_invoices(invoice_service: InvoiceServiceDep, quote_id: int = Path(..., ge=1)):
    try:
        return await invoice_service.list_quote_invoices(quote_id)
    except Exception as e:
        handle_invoice_service_errors(e)

# --- Factures ---

@invoice_router.get("", response_model=List[InvoiceSummaryResponse], summary="Lister les factures")
async def list_invoices(
    response: Response,
    invoice_service: InvoiceServiceDep,
    limit: int = Query(20, ge=1, le=200),
    offset: int = Query(0, ge=0),
    project_id: Optional[int] = Query(None, ge=1),
    quote_id: Optional[int] = Query(None, ge=1),
    status_filter: Optional[InvoiceStatus] = Query(None, alias="status"),
):
    try:
        invoices, total_count = await invoice_service.list_invoices(
            limit=limit, offset=offset, project_id=project_id, quote_id=quote_id, status=status_filter
        )
        end_range = offset + len(invoices) - 1 if invoices else offset
        response.headers["Content-Range"] = f"invoices {offset}-{end_range}/{total_count}"
        return invoices
    except Exception as e:
        handle_invoice_service_errors(e)

@invoice_router.post("/mark-overdue", response_model=OverdueRunResponse, summary="Passer en retard les factures échues")
async def mark_overdue_invoices(invoice_service: InvoiceServiceDep, today: Optional[date] = Query(None)):
    run_date = today or date.today()
    try:
        count = await invoice_service.mark_overdue_invoices(run_date)
        return OverdueRunResponse(run_date=run_date, marked_overdue=count)
    except Exception as e:
        handle_invoice_service_errors(e)

@invoice_router.get("/public/{public_token}", response_model=InvoiceResponse, summary="Consulter une facture via son lien public")
async def read_public_invoice(invoice_service: InvoiceServiceDep, public_token: str = Path(..., min_length=16, max_length=64)):
    try:
        return await invoice_service.get_invoice_by_token(public_token)
    except Exception as e:
        handle_invoice_service_errors(e)

@invoice_router.get("/{invoice_id}", response_model=InvoiceResponse, summary="Récupérer une facture")
async def read_invoice(invoice_service: InvoiceServiceDep, invoice_id: int = Path(..., ge=1)):
    try:
        return await invoice_service.get_invoice(invoice_id)
    except Exception as e:
        handle_invoice_service_errors(e)

@invoice_router.patch("/{invoice_id}/status", response_model=InvoiceResponse, summary="Changer le statut d'une facture")
async def update_invoice_status(
    invoice_service: InvoiceServiceDep,
    invoice_id: int = Path(..., ge=1),
    status_update: InvoiceStatusUpdate = Body(...),
):
    logger.info(f"API update_invoice_status: ID={invoice_id} à '{status_update.status.value}'")
    try:
        return await invoice_service.update_invoice_status(
            invoice_id,
            status_update.status,
            amount_paid=status_update.amount_paid,
            payment_date=status_update.payment_date,
        )
    except Exception as e:
        handle_invoice_service_errors(e)

@invoice_router.post("/{invoice_id}/send", response_model=InvoiceResponse, summary="Envoyer la facture au client")
async def send_invoice(invoice_service: InvoiceServiceDep, invoice_id: int = Path(..., ge=1)):
    logger.info(f"API send_invoice: ID={invoice_id}")
    try:
        return await invoice_service.send_invoice(invoice_id)
    except Exception as e:
        handle_invoice_service_errors(e)

@invoice_router.get("/{invoice_id}/pdf", summary="Télécharger le PDF de la facture")
async def download_invoice_pdf(invoice_service: InvoiceServiceDep, invoice_id: int = Path(..., ge=1)):
    try:
        pdf_content, filename = await invoice_service.render_invoice_pdf(invoice_id)
    except Exception as e:
        handle_invoice_service_errors(e)
    return Response(
        content=pdf_content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{filename}"'},
    )
