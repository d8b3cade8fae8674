import logging
from typing import Optional, List

from fastapi import APIRouter, HTTPException, status, Query, Path, Body, Response

from .dependencies import QuoteServiceDep
from src.quotes.application.schemas import (
    QuoteApproval, QuoteCreate, QuoteResponse, QuoteStatusUpdate, QuoteSummaryResponse, QuoteUpdate,
)
from src.billing.domain.entities import QuoteStatus
from src.core.exceptions import ConflictException, DomainException, NotFoundException
from src.email.domain.exceptions import EmailDeliveryFailedException
from src.pdf.domain.exceptions import PDFGenerationException

logger = logging.getLogger(__name__)

quote_router = APIRouter(
    prefix="/quotes",
    tags=["Quotes"]
)

def handle_quote_service_errors(e: Exception):
    if isinstance(e, HTTPException):
        raise e
    if isinstance(e, NotFoundException):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, ConflictException):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    if isinstance(e, EmailDeliveryFailedException):
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    if isinstance(e, DomainException):
        logger.warning(f"[Quote API] Opération refusée: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if isinstance(e, PDFGenerationException):
        logger.error(f"[Quote API] Génération PDF échouée: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Erreur lors de la génération du PDF.")
    logger.error(f"[Quote API] Unexpected error: {e}", exc_info=True)
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Erreur interne (devis).")

@quote_router.post("", response_model=QuoteResponse, status_code=status.HTTP_201_CREATED, summary="Créer un devis")
async def create_quote(quote_service: QuoteServiceDep, quote_in: QuoteCreate):
    logger.info(f"API create_quote pour projet ID: {quote_in.project_id}")
    try:
        return await quote_service.create_quote(quote_in)
    except Exception as e:
        handle_quote_service_errors(e)

@quote_router.get("", response_model=List[QuoteSummaryResponse], summary="Lister les devis")
async def list_quotes(
    response: Response,
    quote_service: QuoteServiceDep,
    limit: int = Query(20, ge=1, le=200, description="Nombre max de devis à retourner"),
    offset: int = Query(0, ge=0, description="Nombre de devis à sauter"),
    project_id: Optional[int] = Query(None, ge=1),
    status_filter: Optional[QuoteStatus] = Query(None, alias="status"),
):
    try:
        quotes, total_count = await quote_service.list_quotes(
            limit=limit, offset=offset, project_id=project_id, status=status_filter
        )
        end_range = offset + len(quotes) - 1 if quotes else offset
        response.headers["Content-Range"] = f"quotes {offset}-{end_range}/{total_count}"
        return quotes
    except Exception as e:
        handle_quote_service_errors(e)

# --- Lien public (client) ---

@quote_router.get("/public/{public_token}", response_model=QuoteResponse, summary="Consulter un devis via son lien public")
async def read_public_quote(quote_service: QuoteServiceDep, public_token: str = Path(..., min_length=16, max_length=64)):
    try:
        return await quote_service.get_quote_by_token(public_token)
    except Exception as e:
        handle_quote_service_errors(e)

@quote_router.post("/public/{public_token}/approve", response_model=QuoteResponse, summary="Approuver un devis via son lien public")
async def approve_public_quote(
    quote_service: QuoteServiceDep,
    public_token: str = Path(..., min_length=16, max_length=64),
    approval: Optional[QuoteApproval] = Body(None),
):
    logger.info("API approve_public_quote")
    try:
        return await quote_service.approve_quote(public_token, approval or QuoteApproval())
    except Exception as e:
        handle_quote_service_errors(e)

# --- Administration ---

@quote_router.get("/{quote_id}", response_model=QuoteResponse, summary="Récupérer un devis")
async def read_quote(quote_service: QuoteServiceDep, quote_id: int = Path(..., title="ID du devis", ge=1)):
    try:
        return await quote_service.get_quote(quote_id)
    except Exception as e:
        handle_quote_service_errors(e)

@quote_router.patch("/{quote_id}", response_model=QuoteResponse, summary="Modifier un devis brouillon")
async def update_quote(
    quote_service: QuoteServiceDep,
    quote_id: int = Path(..., title="ID du devis à modifier", ge=1),
    quote_update: QuoteUpdate = Body(...)
):
    logger.info(f"API update_quote: ID={quote_id}, champs={sorted(quote_update.model_fields_set)}")
    try:
        return await quote_service.update_quote(quote_id, quote_update)
    except Exception as e:
        handle_quote_service_errors(e)

@quote_router.delete("/{quote_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Supprimer un devis non facturé")
async def delete_quote(quote_service: QuoteServiceDep, quote_id: int = Path(..., ge=1)):
    logger.info(f"API delete_quote: ID={quote_id}")
    try:
        await quote_service.delete_quote(quote_id)
    except Exception as e:
        handle_quote_service_errors(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

@quote_router.patch("/{quote_id}/status", response_model=QuoteResponse, summary="Changer le statut d'un devis")
async def update_quote_status(
    quote_service: QuoteServiceDep,
    quote_id: int = Path(..., title="ID du devis à MAJ", ge=1),
    status_update: QuoteStatusUpdate = Body(...)
):
    logger.info(f"API update_quote_status: ID={quote_id} à '{status_update.status.value}'")
    try:
        return await quote_service.update_quote_status(quote_id, status_update.status)
    except Exception as e:
        handle_quote_service_errors(e)

@quote_router.post("/{quote_id}/send", response_model=QuoteResponse, summary="Envoyer le devis au client")
async def send_quote(quote_service: QuoteServiceDep, quote_id: int = Path(..., ge=1)):
    logger.info(f"API send_quote: ID={quote_id}")
    try:
        return await quote_service.send_quote(quote_id)
    except Exception as e:
        handle_quote_service_errors(e)

@quote_router.get("/{quote_id}/pdf", summary="Télécharger le PDF du devis")
async def download_quote_pdf(quote_service: QuoteServiceDep, quote_id: int = Path(..., ge=1)):
    try:
        pdf_content, filename = await quote_service.render_quote_pdf(quote_id)
    except Exception as e:
        handle_quote_service_errors(e)
    return Response(
        content=pdf_content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{filename}"'},
    )
