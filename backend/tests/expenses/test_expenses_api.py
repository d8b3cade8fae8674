import pytest
from decimal import Decimal
from httpx import AsyncClient

API = "/api/v1"

@pytest.mark.asyncio
async def test_create_and_get_expense(test_client: AsyncClient, studio_project):
    payload = {
        "project_id": studio_project["project_id"],
        "description": "Photos de banque d'images",
        "vendor": "Unsplash+",
        "amount": "120.00",
        "is_billable": True,
    }
    response = await test_client.post(f"{API}/expenses", json=payload)
    assert response.status_code == 201, response.text
    created = response.json()
    assert created["is_billed"] is False
    assert created["invoice_id"] is None
    assert Decimal(created["amount"]) == Decimal("120")

    response = await test_client.get(f"{API}/expenses/{created['id']}")
    assert response.status_code == 200
    assert response.json()["description"] == "Photos de banque d'images"

@pytest.mark.asyncio
async def test_get_nonexistent_expense(test_client: AsyncClient):
    response = await test_client.get(f"{API}/expenses/999")
    assert response.status_code == 404

@pytest.mark.asyncio
async def test_negative_amount_is_rejected(test_client: AsyncClient, studio_project):
    payload = {"project_id": studio_project["project_id"], "description": "Erreur", "amount": "-5"}
    response = await test_client.post(f"{API}/expenses", json=payload)
    assert response.status_code == 422

@pytest.mark.asyncio
async def test_list_expenses_with_filters(test_client: AsyncClient, studio_project):
    project_id = studio_project["project_id"]
    for description, billable in (("Licence", True), ("Café", False)):
        await test_client.post(
            f"{API}/expenses",
            json={"project_id": project_id, "description": description, "amount": "10", "is_billable": billable},
        )

    response = await test_client.get(f"{API}/expenses", params={"project_id": project_id})
    assert response.status_code == 200
    assert len(response.json()) == 2
    assert response.headers["Content-Range"] == "expenses 0-1/2"

    response = await test_client.get(f"{API}/expenses", params={"is_billable": "true"})
    assert [e["description"] for e in response.json()] == ["Licence"]

    response = await test_client.get(f"{API}/projects/{project_id}/billable-expenses")
    assert [e["description"] for e in response.json()] == ["Licence"]

@pytest.mark.asyncio
async def test_update_unbilled_expense(test_client: AsyncClient, studio_project):
    created = (await test_client.post(
        f"{API}/expenses",
        json={"project_id": studio_project["project_id"], "description": "Police", "amount": "30"},
    )).json()

    response = await test_client.patch(f"{API}/expenses/{created['id']}", json={"amount": "35.50", "is_billable": True})

    assert response.status_code == 200, response.text
    assert Decimal(response.json()["amount"]) == Decimal("35.50")
    assert response.json()["is_billable"] is True
