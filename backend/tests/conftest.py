# Standard Library
import os
from typing import AsyncGenerator, Optional, List, Dict, Any

# La configuration est lue à l'import de src.config: base SQLite avant tout import applicatif
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

# Third-Party Libraries
import pytest
import pytest_asyncio

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, AsyncEngine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

# First-Party Libraries (Your project)
import src.models  # noqa: F401
from src.main import app
from src.database import get_db_session
from src.clients.models import Client, Project
from src.email.domain.sender import AbstractEmailSender
from src.email.interfaces.dependencies import get_email_sender
from src.pdf.domain.exceptions import PDFGenerationException
from src.pdf.domain.generator import AbstractPDFGenerator
from src.pdf.interfaces.dependencies import get_pdf_generator

# URL de base pour la DB en mémoire
TEST_DATABASE_BASE_URL = "sqlite+aiosqlite:///:memory:"

API = "/api/v1"

# --- Fixtures de Base ---

@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Crée un engine, des tables, et fournit une session DB en mémoire pour chaque test."""
    engine: AsyncEngine = create_async_engine(TEST_DATABASE_BASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    TestingSessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with TestingSessionLocal() as session:
        yield session

    await engine.dispose()

# --- Doublures PDF et Email ---

class MockPDFGenerator(AbstractPDFGenerator):
    """Un générateur PDF simulé pour les tests."""

    def __init__(self, fail: bool = False):
        self.fail = fail

    async def generate_quote_pdf(self, quote_data: Dict[str, Any]) -> bytes:
        if self.fail:
            raise PDFGenerationException("Mock quote generation failed intentionally.")
        return f"%PDF-mock devis {quote_data['number']}".encode("utf-8")

    async def generate_invoice_pdf(self, invoice_data: Dict[str, Any]) -> bytes:
        if self.fail:
            raise PDFGenerationException("Mock invoice generation failed intentionally.")
        return f"%PDF-mock facture {invoice_data['number']}".encode("utf-8")

class RecordingEmailSender(AbstractEmailSender):
    """Enregistre les emails au lieu de les envoyer."""

    def __init__(self, succeed: bool = True):
        self.succeed = succeed
        self.sent: List[Dict[str, Any]] = []

    async def send_email(
        self,
        recipient_email: str,
        subject: str,
        html_content: str,
        sender_email: Optional[str] = None,
        attachments: Optional[List[Dict[str, Any]]] = None
    ) -> bool:
        self.sent.append({
            "recipient_email": recipient_email,
            "subject": subject,
            "html_content": html_content,
            "attachments": attachments or [],
        })
        return self.succeed

@pytest.fixture
def email_sender() -> RecordingEmailSender:
    return RecordingEmailSender()

@pytest.fixture
def pdf_generator() -> MockPDFGenerator:
    return MockPDFGenerator()

@pytest_asyncio.fixture(scope="function")
async def test_client(
    db_session: AsyncSession,
    email_sender: RecordingEmailSender,
    pdf_generator: MockPDFGenerator,
) -> AsyncGenerator[AsyncClient, None]:
    """Fournit un AsyncClient httpx avec la session DB de test, un PDF et un SMTP simulés."""
    async def override_get_db_session() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db_session] = override_get_db_session
    app.dependency_overrides[get_pdf_generator] = lambda: pdf_generator
    app.dependency_overrides[get_email_sender] = lambda: email_sender
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()

# --- Fixtures Métier ---

@pytest_asyncio.fixture(scope="function")
async def studio_project(db_session: AsyncSession) -> Dict[str, int]:
    """Crée le client ABC et son premier projet. Retourne leurs IDs."""
    client = Client(
        code="ABC",
        company_name="Acme Inc.",
        contact_name="Marie Tremblay",
        email="marie@acme.test",
    )
    db_session.add(client)
    await db_session.commit()
    await db_session.refresh(client)

    project = Project(name="Refonte du site", client_id=client.id, project_number=1)
    db_session.add(project)
    await db_session.commit()
    await db_session.refresh(project)
    return {"client_id": client.id, "project_id": project.id}

def build_quote_payload(project_id: int, **overrides) -> Dict[str, Any]:
    """Devis de 1000 $ HT (600 + 400), TPS 5 %, TVQ 10 %: 1150 $ TTC."""
    payload = {
        "project_id": project_id,
        "tps_rate": "0.05",
        "tvq_rate": "0.10",
        "deposit_percent": "50",
        "sections": [
            {
                "title": "Design",
                "items": [
                    {"name": "Maquettes", "unit_price": "600.00"},
                    {"name": "Intégration", "unit_price": "400.00"},
                ],
            }
        ],
    }
    payload.update(overrides)
    return payload

@pytest_asyncio.fixture(scope="function")
async def draft_quote(test_client: AsyncClient, studio_project: Dict[str, int]) -> Dict[str, Any]:
    response = await test_client.post(f"{API}/quotes", json=build_quote_payload(studio_project["project_id"]))
    assert response.status_code == 201, response.text
    return response.json()

@pytest_asyncio.fixture(scope="function")
async def accepted_quote(test_client: AsyncClient, draft_quote: Dict[str, Any]) -> Dict[str, Any]:
    quote_id = draft_quote["id"]
    response = await test_client.patch(f"{API}/quotes/{quote_id}/status", json={"status": "SENT"})
    assert response.status_code == 200, response.text
    response = await test_client.patch(f"{API}/quotes/{quote_id}/status", json={"status": "ACCEPTED"})
    assert response.status_code == 200, response.text
    return response.json()

@pytest.fixture
def quote_payload():
    return build_quote_payload
