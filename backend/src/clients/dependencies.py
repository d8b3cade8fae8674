from typing import Annotated
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession
from fastcrud import FastCRUD

from src.database import get_db_session
from src.clients.models import Client, Project
from src.clients.service import ClientService

def get_client_crud() -> FastCRUD:
    """Fournit une instance de FastCRUD pour les clients."""
    return FastCRUD(Client)

def get_project_crud() -> FastCRUD:
    """Fournit une instance de FastCRUD pour les projets."""
    return FastCRUD(Project)

def get_client_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
    client_crud: Annotated[FastCRUD, Depends(get_client_crud)],
    project_crud: Annotated[FastCRUD, Depends(get_project_crud)],
) -> ClientService:
    """Fournit une instance du service de gestion des clients."""
    return ClientService(db=session, client_crud=client_crud, project_crud=project_crud)

ClientServiceDep = Annotated[ClientService, Depends(get_client_service)]
