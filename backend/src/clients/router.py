import logging
from typing import List, Annotated, Tuple

from fastapi import APIRouter, Depends, HTTPException, status, Query, Path, Body, Response

from .models import ClientRead, ClientCreate, ClientUpdate, ProjectRead, ProjectCreate
from .dependencies import ClientServiceDep

from src.core.exceptions import NotFoundException, ConflictException

logger = logging.getLogger(__name__)

client_router = APIRouter(tags=["Clients"])

def get_pagination_params(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0)
) -> Tuple[int, int]:
    return limit, offset

PaginationParams = Annotated[Tuple[int, int], Depends(get_pagination_params)]

def handle_client_service_errors(e: Exception):
    if isinstance(e, HTTPException):
        raise e
    if isinstance(e, NotFoundException):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, ConflictException):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    logger.error(f"[Client API] Unexpected error: {e}", exc_info=True)
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Erreur interne (clients).")

@client_router.post("/clients", response_model=ClientRead, status_code=status.HTTP_201_CREATED, summary="Créer un client")
async def create_client(service: ClientServiceDep, client_in: ClientCreate):
    logger.info(f"API create_client: code={client_in.code}")
    try:
        return await service.create_client(client_in)
    except Exception as e:
        handle_client_service_errors(e)

@client_router.get("/clients", response_model=List[ClientRead], summary="Lister les clients")
async def list_clients(response: Response, service: ClientServiceDep, pagination: PaginationParams):
    limit, offset = pagination
    try:
        clients, total = await service.list_clients(limit=limit, offset=offset)
        end_range = offset + len(clients) - 1 if clients else offset
        response.headers["Content-Range"] = f"clients {offset}-{end_range}/{total}"
        return clients
    except Exception as e:
        handle_client_service_errors(e)

@client_router.get("/clients/{client_id}", response_model=ClientRead, summary="Récupérer un client")
async def get_client(service: ClientServiceDep, client_id: int = Path(..., ge=1)):
    try:
        return await service.get_client(client_id)
    except Exception as e:
        handle_client_service_errors(e)

@client_router.patch("/clients/{client_id}", response_model=ClientRead, summary="Mettre à jour un client")
async def update_client(service: ClientServiceDep, client_id: int = Path(..., ge=1), client_in: ClientUpdate = Body(...)):
    logger.info(f"API update_client: ID={client_id}")
    try:
        return await service.update_client(client_id, client_in)
    except Exception as e:
        handle_client_service_errors(e)

@client_router.post("/clients/{client_id}/projects", response_model=ProjectRead, status_code=status.HTTP_201_CREATED, summary="Créer un projet pour un client")
async def create_project(service: ClientServiceDep, client_id: int = Path(..., ge=1), project_in: ProjectCreate = Body(...)):
    logger.info(f"API create_project: client={client_id}, name={project_in.name}")
    try:
        return await service.create_project(client_id, project_in)
    except Exception as e:
        handle_client_service_errors(e)

@client_router.get("/clients/{client_id}/projects", response_model=List[ProjectRead], summary="Lister les projets d'un client")
async def list_projects(service: ClientServiceDep, client_id: int = Path(..., ge=1)):
    try:
        return await service.list_projects(client_id)
    except Exception as e:
        handle_client_service_errors(e)

@client_router.get("/projects/{project_id}", response_model=ProjectRead, summary="Récupérer un projet")
async def get_project(service: ClientServiceDep, project_id: int = Path(..., ge=1)):
    try:
        return await service.get_project(project_id)
    except Exception as e:
        handle_client_service_errors(e)
