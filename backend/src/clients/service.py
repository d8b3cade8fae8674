import logging
from typing import List, Tuple

from fastcrud import FastCRUD
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Client, ClientCreate, ClientRead, ClientUpdate, Project, ProjectCreate, ProjectRead
from .exceptions import ClientNotFoundException, DuplicateClientCodeException, ProjectNotFoundException

logger = logging.getLogger(__name__)

class ClientService:
    """Service applicatif pour la gestion des clients et de leurs projets."""

    def __init__(self, db: AsyncSession, client_crud: FastCRUD, project_crud: FastCRUD):
        self.db = db
        self.client_crud = client_crud
        self.project_crud = project_crud

    async def create_client(self, client_data: ClientCreate) -> ClientRead:
        code = client_data.code
        logger.info(f"[ClientService] Création client code={code}")
        if await self.client_crud.exists(db=self.db, code=code):
            logger.warning(f"[ClientService] Code client déjà utilisé: {code}")
            raise DuplicateClientCodeException(code)

        created = await self.client_crud.create(db=self.db, object=client_data)
        logger.info(f"[ClientService] Client ID {created.id} créé.")
        return ClientRead.model_validate(created)

    async def get_client(self, client_id: int) -> ClientRead:
        client = await self.client_crud.get(
            db=self.db, schema_to_select=ClientRead, return_as_model=True, id=client_id
        )
        if not client:
            raise ClientNotFoundException(client_id)
        return client

    async def list_clients(self, limit: int, offset: int) -> Tuple[List[ClientRead], int]:
        result = await self.client_crud.get_multi(
            db=self.db,
            offset=offset,
            limit=limit,
            schema_to_select=ClientRead,
            return_as_model=True,
            sort_columns="company_name",
        )
        return result["data"], result["total_count"]

    async def update_client(self, client_id: int, client_data: ClientUpdate) -> ClientRead:
        logger.info(f"[ClientService] MAJ client ID {client_id}")
        await self.get_client(client_id)
        changes = client_data.model_dump(exclude_unset=True)
        if changes:
            await self.client_crud.update(db=self.db, object=changes, id=client_id)
        return await self.get_client(client_id)

    async def create_project(self, client_id: int, project_data: ProjectCreate) -> ProjectRead:
        await self.get_client(client_id)
        # Numérotation séquentielle des projets par client
        existing = await self.project_crud.count(db=self.db, client_id=client_id)
        payload = {**project_data.model_dump(), "client_id": client_id, "project_number": existing + 1}
        created = await self.project_crud.create(db=self.db, object=Project(**payload))
        logger.info(f"[ClientService] Projet ID {created.id} (#{created.project_number}) créé pour client {client_id}.")
        return ProjectRead.model_validate(created)

    async def list_projects(self, client_id: int) -> List[ProjectRead]:
        await self.get_client(client_id)
        result = await self.project_crud.get_multi(
            db=self.db,
            schema_to_select=ProjectRead,
            return_as_model=True,
            sort_columns="project_number",
            client_id=client_id,
        )
        return result["data"]

    async def get_project(self, project_id: int) -> ProjectRead:
        project = await self.project_crud.get(
            db=self.db, schema_to_select=ProjectRead, return_as_model=True, id=project_id
        )
        if not project:
            raise ProjectNotFoundException(project_id)
        return project
