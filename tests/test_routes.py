import asyncio
from dataclasses import replace

import pytest
from fastapi.testclient import TestClient

from inmo24x7.config import get_settings
from inmo24x7.dependencies import get_lead_repository, get_orchestrator
from inmo24x7.main import create_app
from inmo24x7.services.conversation import FALLBACK_REPLY
from inmo24x7.services.tool_dispatcher import HANDOFF_TO_HUMAN

from conftest import text_reply, tool_reply


@pytest.fixture()
def app(settings, orchestrator, lead_repo):
    app = create_app()
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_lead_repository] = lambda: lead_repo
    yield app
    app.dependency_overrides.clear()


@pytest.fixture()
def client(app):
    with TestClient(app) as client:
        yield client


def _seed(lead_repo, tenant_id="tenant-test", visitor_id="visitor-1", source_type="web_chat"):
    return asyncio.run(
        lead_repo.create(
            {
                "tenant_id": tenant_id,
                "visitor_id": visitor_id,
                "source_type": source_type,
                "operacion": "venta",
                "zona": "Palermo",
                "presupuesto_max": 500000,
            }
        )
    )


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"ok": True, "service": "inmo24x7-mvp"}


def test_post_message_returns_bot_reply(client, model):
    model.queue(text_reply("¡Hola! ¿Buscás comprar o alquilar?"))

    response = client.post("/message", json={"userId": "visitor-1", "text": "hola"})

    assert response.status_code == 200
    assert response.json() == {"messages": ["¡Hola! ¿Buscás comprar o alquilar?"]}


def test_post_message_includes_handoff(client, model):
    model.queue(
        tool_reply(("c1", HANDOFF_TO_HUMAN, {"summary": "Quiere visitar Palermo"})),
        text_reply("Te paso con un asesor."),
    )

    response = client.post("/message", json={"userId": "visitor-1", "text": "quiero visitar"})

    assert response.json() == {"messages": ["Te paso con un asesor."], "handoff": {"summary": "Quiere visitar Palermo"}}


def test_message_uses_default_tenant_when_auth_is_off(client, model, lead_repo):
    model.queue(
        tool_reply(("c1", "search_properties", {"operacion": "venta", "zona": "Palermo", "presupuestoMax": 600000})),
        text_reply("Hay una opción."),
    )

    client.post("/message", json={"userId": "visitor-9", "text": "comprar en palermo"})

    [row] = lead_repo.rows.values()
    assert row["tenant_id"] == "tenant-test"
    assert row["source_type"] == "web_chat"
    assert row["visitor_id"] == "visitor-9"


@pytest.mark.parametrize(
    "body",
    [
        {"text": "hola"},
        {"userId": "visitor-1"},
        {"userId": "", "text": "hola"},
        {"userId": "visitor-1", "text": ""},
    ],
)
def test_invalid_payload_is_rejected(client, model, body):
    response = client.post("/message", json=body)

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid payload"
    assert model.calls == []


def test_model_failure_still_returns_200(client, model):
    model.queue(RuntimeError("boom"))

    response = client.post("/message", json={"userId": "visitor-1", "text": "hola"})

    assert response.status_code == 200
    assert response.json() == {"messages": [FALLBACK_REPLY]}


def test_auth_required_without_token(app, settings):
    app.dependency_overrides[get_settings] = lambda: replace(settings, require_auth=True)
    with TestClient(app) as client:
        response = client.post("/message", json={"userId": "visitor-1", "text": "hola"})
        leads = client.get("/leads")

    assert response.status_code == 401
    assert leads.status_code == 401


def test_list_leads_is_tenant_scoped(client, lead_repo):
    own = _seed(lead_repo)
    _seed(lead_repo, tenant_id="other-tenant")
    whatsapp = _seed(lead_repo, visitor_id="visitor-2", source_type="whatsapp")

    response = client.get("/leads")
    assert response.status_code == 200
    assert [lead["id"] for lead in response.json()] == [whatsapp, own]

    filtered = client.get("/leads", params={"source_type": "whatsapp"})
    assert [lead["id"] for lead in filtered.json()] == [whatsapp]


def test_get_and_delete_lead(client, lead_repo):
    lead_id = _seed(lead_repo)
    foreign = _seed(lead_repo, tenant_id="other-tenant")

    response = client.get(f"/leads/{lead_id}")
    assert response.status_code == 200
    assert response.json()["zona"] == "Palermo"

    assert client.get(f"/leads/{foreign}").status_code == 404
    assert client.delete(f"/leads/{foreign}").status_code == 404
    assert foreign in lead_repo.rows

    assert client.delete(f"/leads/{lead_id}").json() == {"ok": True}
    assert client.get(f"/leads/{lead_id}").status_code == 404
