"""
Tests de l'API des devis: création, lien public, approbation et transitions.
"""
from datetime import date, timedelta
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from src.quotes import models as quote_models

API = "/api/v1"

@pytest.mark.asyncio
async def test_create_quote_numbers_and_totals(test_client: AsyncClient, draft_quote):
    assert draft_quote["quote_number"] == "D-ABC-001"
    assert draft_quote["status"] == "DRAFT"
    assert Decimal(draft_quote["subtotal"]) == Decimal("1000")
    assert Decimal(draft_quote["total"]) == Decimal("1150")
    assert len(draft_quote["public_token"]) == 32
    assert draft_quote["valid_until"] == (date.today() + timedelta(days=30)).isoformat()
    items = draft_quote["sections"][0]["items"]
    assert [i["name"] for i in items] == ["Maquettes", "Intégration"]
    assert items[0]["item_types"] == ["SERVICE"]
    assert Decimal(items[0]["line_total"]) == Decimal("600")
    assert draft_quote["project"]["client"]["code"] == "ABC"

@pytest.mark.asyncio
async def test_quote_numbers_increment_per_client(test_client: AsyncClient, studio_project, draft_quote, quote_payload):
    response = await test_client.post(f"{API}/quotes", json=quote_payload(studio_project["project_id"]))
    assert response.status_code == 201
    assert response.json()["quote_number"] == "D-ABC-002"

@pytest.mark.asyncio
async def test_create_quote_unknown_project(test_client: AsyncClient, quote_payload):
    response = await test_client.post(f"{API}/quotes", json=quote_payload(999))
    assert response.status_code == 404

@pytest.mark.asyncio
async def test_create_quote_rejects_unknown_item_type(test_client: AsyncClient, studio_project, quote_payload):
    payload = quote_payload(
        studio_project["project_id"],
        sections=[{"title": "X", "items": [{"name": "Y", "unit_price": "10", "item_types": ["GRATUIT"]}]}],
    )
    response = await test_client.post(f"{API}/quotes", json=payload)
    assert response.status_code == 422

@pytest.mark.asyncio
async def test_list_quotes_with_content_range(test_client: AsyncClient, draft_quote):
    response = await test_client.get(f"{API}/quotes", params={"status": "DRAFT"})
    assert response.status_code == 200
    assert [q["id"] for q in response.json()] == [draft_quote["id"]]
    assert response.headers["Content-Range"] == "quotes 0-0/1"

    response = await test_client.get(f"{API}/quotes", params={"status": "ACCEPTED"})
    assert response.json() == []

@pytest.mark.asyncio
async def test_public_view_marks_sent_quote_as_viewed(test_client: AsyncClient, draft_quote):
    token = draft_quote["public_token"]
    await test_client.patch(f"{API}/quotes/{draft_quote['id']}/status", json={"status": "SENT"})

    response = await test_client.get(f"{API}/quotes/public/{token}")

    assert response.status_code == 200
    assert response.json()["status"] == "VIEWED"

@pytest.mark.asyncio
async def test_public_view_unknown_token(test_client: AsyncClient):
    response = await test_client.get(f"{API}/quotes/public/{'0' * 32}")
    assert response.status_code == 404

@pytest.mark.asyncio
async def test_public_view_expires_outdated_quote(test_client: AsyncClient, db_session: AsyncSession, draft_quote):
    quote_id = draft_quote["id"]
    await test_client.patch(f"{API}/quotes/{quote_id}/status", json={"status": "SENT"})
    quote_db = await db_session.get(quote_models.Quote, quote_id)
    quote_db.valid_until = date.today() - timedelta(days=1)
    await db_session.commit()

    response = await test_client.get(f"{API}/quotes/public/{draft_quote['public_token']}")
    assert response.json()["status"] == "EXPIRED"

    response = await test_client.post(f"{API}/quotes/public/{draft_quote['public_token']}/approve")
    assert response.status_code == 400

@pytest.mark.asyncio
async def test_client_approval_recomputes_total(test_client: AsyncClient, studio_project, quote_payload, email_sender):
    payload = quote_payload(
        studio_project["project_id"],
        sections=[{
            "title": "Identité",
            "items": [
                {
                    "name": "Logo",
                    "unit_price": "100",
                    "variants": [{"label": "Simple", "price": "80"}, {"label": "Premium", "price": "150"}],
                },
                {"name": "Carte d'affaires", "unit_price": "50", "item_types": ["SERVICE", "A_LA_CARTE"]},
            ],
        }],
    )
    created = (await test_client.post(f"{API}/quotes", json=payload)).json()
    assert Decimal(created["total"]) == Decimal("172.50")
    logo_id, card_id = [i["id"] for i in created["sections"][0]["items"]]
    await test_client.patch(f"{API}/quotes/{created['id']}/status", json={"status": "SENT"})

    response = await test_client.post(
        f"{API}/quotes/public/{created['public_token']}/approve",
        json={"item_selections": {str(card_id): False}, "variant_selections": {str(logo_id): 0}},
    )

    assert response.status_code == 200, response.text
    data = response.json()
    assert data["status"] == "ACCEPTED"
    assert Decimal(data["subtotal"]) == Decimal("80")
    assert Decimal(data["total"]) == Decimal("92")
    card = next(i for i in data["sections"][0]["items"] if i["id"] == card_id)
    assert card["is_selected"] is False
    assert card["is_included"] is False
    assert email_sender.sent[-1]["subject"].endswith("approuvé")

@pytest.mark.asyncio
async def test_approval_with_foreign_item_is_rejected(test_client: AsyncClient, draft_quote):
    await test_client.patch(f"{API}/quotes/{draft_quote['id']}/status", json={"status": "SENT"})

    response = await test_client.post(
        f"{API}/quotes/public/{draft_quote['public_token']}/approve",
        json={"item_selections": {"9999": False}},
    )

    assert response.status_code == 404
    quote = (await test_client.get(f"{API}/quotes/{draft_quote['id']}")).json()
    assert quote["status"] == "SENT"

@pytest.mark.asyncio
async def test_draft_quote_cannot_be_approved(test_client: AsyncClient, draft_quote):
    response = await test_client.post(f"{API}/quotes/public/{draft_quote['public_token']}/approve")
    assert response.status_code == 400

@pytest.mark.asyncio
async def test_invalid_status_transition(test_client: AsyncClient, draft_quote):
    response = await test_client.patch(f"{API}/quotes/{draft_quote['id']}/status", json={"status": "ACCEPTED"})
    assert response.status_code == 400
    assert "DRAFT" in response.json()["detail"]

@pytest.mark.asyncio
async def test_accepted_quote_is_terminal(test_client: AsyncClient, accepted_quote):
    assert accepted_quote["status"] == "ACCEPTED"
    response = await test_client.patch(f"{API}/quotes/{accepted_quote['id']}/status", json={"status": "REJECTED"})
    assert response.status_code == 400

@pytest.mark.asyncio
async def test_send_quote_emails_pdf_and_marks_sent(test_client: AsyncClient, draft_quote, email_sender):
    response = await test_client.post(f"{API}/quotes/{draft_quote['id']}/send")

    assert response.status_code == 200, response.text
    assert response.json()["status"] == "SENT"
    sent = email_sender.sent[-1]
    assert sent["recipient_email"] == "marie@acme.test"
    assert sent["attachments"][0]["filename"] == "D-ABC-001.pdf"
    assert draft_quote["public_token"] in sent["html_content"]

@pytest.mark.asyncio
async def test_send_quote_email_failure_returns_502(test_client: AsyncClient, draft_quote, email_sender):
    email_sender.succeed = False

    response = await test_client.post(f"{API}/quotes/{draft_quote['id']}/send")

    assert response.status_code == 502
    quote = (await test_client.get(f"{API}/quotes/{draft_quote['id']}")).json()
    assert quote["status"] == "DRAFT"

@pytest.mark.asyncio
async def test_download_quote_pdf(test_client: AsyncClient, draft_quote):
    response = await test_client.get(f"{API}/quotes/{draft_quote['id']}/pdf")
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.content.startswith(b"%PDF")
    assert "D-ABC-001.pdf" in response.headers["content-disposition"]

@pytest.mark.asyncio
async def test_pdf_failure_returns_500(test_client: AsyncClient, draft_quote, pdf_generator):
    pdf_generator.fail = True
    response = await test_client.get(f"{API}/quotes/{draft_quote['id']}/pdf")
    assert response.status_code == 500

@pytest.mark.asyncio
async def test_delete_quote(test_client: AsyncClient, draft_quote):
    response = await test_client.delete(f"{API}/quotes/{draft_quote['id']}")
    assert response.status_code == 204
    response = await test_client.get(f"{API}/quotes/{draft_quote['id']}")
    assert response.status_code == 404

@pytest.mark.asyncio
async def test_invoiced_quote_cannot_be_deleted(test_client: AsyncClient, accepted_quote):
    quote_id = accepted_quote["id"]
    response = await test_client.post(f"{API}/quotes/{quote_id}/invoices", json={"requested_invoice_type": "DEPOSIT"})
    assert response.status_code == 201

    response = await test_client.delete(f"{API}/quotes/{quote_id}")
    assert response.status_code == 400

@pytest.mark.asyncio
async def test_update_draft_quote_replaces_content_and_recomputes(test_client: AsyncClient, draft_quote):
    quote_id = draft_quote["id"]
    response = await test_client.patch(f"{API}/quotes/{quote_id}", json={
        "sections": [{"title": "Développement", "items": [{"name": "API", "unit_price": "800.00"}]}],
        "discounts": [{"type": "FIXED", "value": "100"}],
        "deposit_percent": "30",
    })

    assert response.status_code == 200, response.text
    quote = response.json()
    assert Decimal(quote["subtotal"]) == Decimal("800")
    assert Decimal(quote["total"]) == Decimal("805")
    assert Decimal(quote["deposit_percent"]) == Decimal("30")
    assert [s["title"] for s in quote["sections"]] == ["Développement"]
    assert [i["name"] for i in quote["sections"][0]["items"]] == ["API"]

    reloaded = (await test_client.get(f"{API}/quotes/{quote_id}")).json()
    assert len(reloaded["sections"]) == 1
    assert Decimal(reloaded["total"]) == Decimal("805")

@pytest.mark.asyncio
async def test_update_draft_quote_rates_keeps_sections(test_client: AsyncClient, draft_quote):
    response = await test_client.patch(f"{API}/quotes/{draft_quote['id']}", json={
        "tps_rate": "0.05",
        "tvq_rate": "0.09975",
        "notes": "Taux québécois",
    })

    assert response.status_code == 200, response.text
    quote = response.json()
    assert Decimal(quote["subtotal"]) == Decimal("1000")
    assert Decimal(quote["total"]) == Decimal("1149.75")
    assert quote["notes"] == "Taux québécois"
    assert [i["name"] for i in quote["sections"][0]["items"]] == ["Maquettes", "Intégration"]

@pytest.mark.asyncio
async def test_sent_quote_cannot_be_edited(test_client: AsyncClient, draft_quote):
    quote_id = draft_quote["id"]
    await test_client.patch(f"{API}/quotes/{quote_id}/status", json={"status": "SENT"})

    response = await test_client.patch(f"{API}/quotes/{quote_id}", json={"deposit_percent": "10"})

    assert response.status_code == 400
    assert "SENT" in response.json()["detail"]
    reloaded = (await test_client.get(f"{API}/quotes/{quote_id}")).json()
    assert Decimal(reloaded["deposit_percent"]) == Decimal("50")
    assert Decimal(reloaded["total"]) == Decimal("1150")

@pytest.mark.asyncio
async def test_update_unknown_quote(test_client: AsyncClient):
    response = await test_client.patch(f"{API}/quotes/999", json={"notes": "Introuvable"})
    assert response.status_code == 404

@pytest.mark.asyncio
async def test_update_quote_rejects_invalid_deposit(test_client: AsyncClient, draft_quote):
    response = await test_client.patch(f"{API}/quotes/{draft_quote['id']}", json={"deposit_percent": "150"})
    assert response.status_code == 422
