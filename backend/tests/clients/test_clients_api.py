import pytest
from httpx import AsyncClient

API = "/api/v1"

@pytest.mark.asyncio
async def test_create_client_normalizes_code(test_client: AsyncClient):
    response = await test_client.post(
        f"{API}/clients",
        json={"code": " xyz ", "company_name": "Studio XYZ", "email": "info@xyz.test"},
    )
    assert response.status_code == 201, response.text
    data = response.json()
    assert data["code"] == "XYZ"
    assert data["company_name"] == "Studio XYZ"
    assert "id" in data

@pytest.mark.asyncio
async def test_create_client_invalid_code(test_client: AsyncClient):
    response = await test_client.post(f"{API}/clients", json={"code": "A1", "company_name": "Mauvais code"})
    assert response.status_code == 422

@pytest.mark.asyncio
async def test_create_client_duplicate_code(test_client: AsyncClient, studio_project):
    response = await test_client.post(f"{API}/clients", json={"code": "ABC", "company_name": "Autre"})
    assert response.status_code == 409

@pytest.mark.asyncio
async def test_get_client(test_client: AsyncClient, studio_project):
    response = await test_client.get(f"{API}/clients/{studio_project['client_id']}")
    assert response.status_code == 200
    assert response.json()["code"] == "ABC"

@pytest.mark.asyncio
async def test_get_nonexistent_client(test_client: AsyncClient):
    response = await test_client.get(f"{API}/clients/999")
    assert response.status_code == 404

@pytest.mark.asyncio
async def test_list_clients(test_client: AsyncClient, studio_project):
    await test_client.post(f"{API}/clients", json={"code": "BCD", "company_name": "Boulangerie"})

    response = await test_client.get(f"{API}/clients")

    assert response.status_code == 200
    assert [c["company_name"] for c in response.json()] == ["Acme Inc.", "Boulangerie"]
    assert response.headers["Content-Range"] == "clients 0-1/2"

@pytest.mark.asyncio
async def test_update_client(test_client: AsyncClient, studio_project):
    response = await test_client.patch(
        f"{API}/clients/{studio_project['client_id']}", json={"contact_name": "Julie Roy"}
    )
    assert response.status_code == 200
    assert response.json()["contact_name"] == "Julie Roy"
    assert response.json()["company_name"] == "Acme Inc."

@pytest.mark.asyncio
async def test_projects_are_numbered_per_client(test_client: AsyncClient, studio_project):
    client_id = studio_project["client_id"]

    response = await test_client.post(f"{API}/clients/{client_id}/projects", json={"name": "Boutique en ligne"})

    assert response.status_code == 201, response.text
    project = response.json()
    assert project["project_number"] == 2
    assert project["client_id"] == client_id

    response = await test_client.get(f"{API}/clients/{client_id}/projects")
    assert [p["project_number"] for p in response.json()] == [1, 2]

    response = await test_client.get(f"{API}/projects/{project['id']}")
    assert response.json()["name"] == "Boutique en ligne"

@pytest.mark.asyncio
async def test_create_project_for_unknown_client(test_client: AsyncClient):
    response = await test_client.post(f"{API}/clients/999/projects", json={"name": "Orphelin"})
    assert response.status_code == 404
