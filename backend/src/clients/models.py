from typing import Optional, List
from datetime import datetime
from pydantic import field_validator
from sqlmodel import SQLModel, Field, Relationship

# --- Modèles Client ---

class ClientBase(SQLModel):
    """Champs communs d'un client du studio."""
    # Code court servant aux numéros de devis/factures (D-ABC-001, F-ABC-001)
    code: str = Field(..., min_length=2, max_length=10, index=True, unique=True)
    company_name: str = Field(..., max_length=200)
    contact_name: Optional[str] = Field(default=None, max_length=200)
    email: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=50)
    address: Optional[str] = Field(default=None)

class Client(ClientBase, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    projects: List["Project"] = Relationship(back_populates="client")

    __tablename__ = "clients"

class ClientCreate(ClientBase):

    @field_validator("code")
    @classmethod
    def _normalize_code(cls, value: str) -> str:
        code = value.strip().upper()
        if not code.isalpha():
            raise ValueError("Le code client ne doit contenir que des lettres.")
        return code

class ClientRead(ClientBase):
    id: int
    created_at: datetime

class ClientUpdate(SQLModel):
    company_name: Optional[str] = None
    contact_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None

# --- Modèles Projet ---

class ProjectBase(SQLModel):
    name: str = Field(..., max_length=200)
    description: Optional[str] = Field(default=None)
    status: str = Field(default="ACTIVE", max_length=20)

class Project(ProjectBase, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    client_id: int = Field(foreign_key="clients.id", index=True)
    # Numéro séquentiel propre au client
    project_number: int = Field(default=1)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    client: Optional[Client] = Relationship(back_populates="projects")

    __tablename__ = "projects"

class ProjectCreate(ProjectBase):
    pass

class ProjectRead(ProjectBase):
    id: int
    client_id: int
    project_number: int
    created_at: datetime
