"""End-to-end tests for the FastAPI application."""

import pytest
from fastapi.testclient import TestClient

from agent_routing.api.main import create_app
from agent_routing.database.connection import DatabaseManager
from agent_routing.service import build_service

from .conftest import ADMIN_TOKEN, SQLITE_URL, HashingBackend

API = "/api/v1"
AUTH = {"Authorization": f"Bearer {ADMIN_TOKEN}"}


@pytest.fixture
def client(test_settings):
    service = build_service(
        test_settings,
        db_manager=DatabaseManager(SQLITE_URL),
        embedding_backend=HashingBackend()
    )
    app = create_app(service=service, create_tables=True)
    with TestClient(app) as test_client:
        yield test_client


def submit_correction(client, query="how much did I spend on groceries", correct_agent="finance"):
    return client.post(f"{API}/feedback", json={
        "original_query": query,
        "selected_agent": "researcher",
        "routing_confidence": 0.62,
        "routing_source": "classifier",
        "feedback_type": "incorrect",
        "correct_agent": correct_agent
    })


class TestRouteEndpoint:

    def test_explicit_route(self, client):
        response = client.post(f"{API}/route", json={"text": "ask the coder to review my PR"})

        assert response.status_code == 200
        body = response.json()
        assert body["target_agent"] == "coder"
        assert body["source"] == "explicit"
        assert body["confidence"] >= 0.99
        assert body["latency_ms"] is not None

    def test_fallback_route(self, client):
        body = client.post(f"{API}/route", json={"text": "hmm interesting"}).json()

        assert body["target_agent"] == "orchestrator"
        assert body["source"] == "fallback"

    def test_empty_text_is_rejected_by_schema(self, client):
        assert client.post(f"{API}/route", json={"text": ""}).status_code == 422

    def test_blank_text_is_a_validation_error(self, client):
        response = client.post(f"{API}/route", json={"text": "   "})

        assert response.status_code == 400
        assert response.json()["error"]["type"] == "ValidationError"

    def test_unknown_role(self, client):
        response = client.post(f"{API}/route", json={"text": "debug python", "current_role": "plumber"})

        assert response.status_code == 400
        assert response.json()["error"]["field"] == "current_role"

    def test_contradictory_flags(self, client):
        response = client.post(f"{API}/route", json={
            "text": "debug python", "skip_classifier": True, "force_classifier": True
        })

        assert response.status_code == 400

    def test_decisions_show_up_in_stats(self, client):
        client.post(f"{API}/route", json={"text": "ask the coder to review my PR"})
        client.post(f"{API}/route", json={"text": "turn off the living room lights"})

        stats = client.get(f"{API}/routing/stats", params={"days": 1}).json()

        assert stats["total_decisions"] == 2
        assert stats["decisions_by_source"] == {"explicit": 1, "keyword": 1}

    def test_stats_window_validated(self, client):
        assert client.get(f"{API}/routing/stats", params={"days": 0}).status_code == 422


class TestHandoffEndpoints:

    def test_decide(self, client):
        response = client.post(f"{API}/handoff/decide", json={
            "text": "turn off the living room lights", "current_role": "orchestrator"
        })

        body = response.json()
        assert body["should_handoff"] is True
        assert body["handoff"]["target_agent"] == "home"
        assert body["handoff_message"].startswith("Transferring to HomeBot: ")

    def test_decide_same_role(self, client):
        body = client.post(f"{API}/handoff/decide", json={
            "text": "turn off the living room lights", "current_role": "home"
        }).json()

        assert body["should_handoff"] is False
        assert body["handoff"] is None

    def test_execute(self, client):
        response = client.post(f"{API}/handoff/execute", json={
            "target_agent": "coder",
            "reason": "PR review",
            "context": {"repo": "api"},
            "message": "please review my PR",
            "user_id": "user-1",
            "from_agent": "orchestrator"
        })

        body = response.json()
        assert response.status_code == 200
        assert body["success"] is True
        assert body["recorded"] is True
        assert body["context"]["_handoff"]["to_agent"] == "coder"
        assert body["handoff_message"] == "Transferring to DevBot: PR review (repo: api)"

    def test_execute_specialist_to_specialist(self, client):
        response = client.post(f"{API}/handoff/execute", json={
            "target_agent": "home",
            "reason": "thermostat",
            "message": "turn the heat up",
            "user_id": "user-1",
            "from_agent": "finance"
        })

        body = response.json()
        assert response.status_code == 200
        assert body["success"] is False
        assert body["failure_code"] == "disallowed_transition"
        assert body["handoff_message"] is None

    def test_execute_requires_from_agent(self, client):
        response = client.post(f"{API}/handoff/execute", json={
            "target_agent": "home",
            "reason": "thermostat",
            "message": "turn the heat up",
            "user_id": "user-1"
        })

        assert response.status_code == 422


class TestFeedbackEndpoints:

    def test_submit(self, client):
        response = submit_correction(client)

        assert response.status_code == 201
        assert response.json()["status"] == "accepted"
        assert isinstance(response.json()["id"], int)

    def test_incorrect_requires_correct_agent(self, client):
        response = submit_correction(client, correct_agent=None)

        assert response.status_code == 400
        assert response.json()["error"]["field"] == "correct_agent"


class TestAdminEndpoints:

    def test_requires_token(self, client):
        assert client.post(f"{API}/admin/feedback/process").status_code in (401, 403)

    def test_rejects_wrong_token(self, client):
        response = client.post(f"{API}/admin/feedback/process", headers={"Authorization": "Bearer nope"})

        assert response.status_code == 403

    def test_feedback_promotion_flow(self, client):
        submit_correction(client)
        submit_correction(client, query="turn the heating up", correct_agent="home")

        first = client.post(f"{API}/admin/feedback/process", headers=AUTH).json()
        second = client.post(f"{API}/admin/feedback/process", headers=AUTH).json()

        assert first == {"count": 2, "corpus_version": 1}
        assert second == {"count": 0, "corpus_version": 1}

        corpus = client.get(f"{API}/admin/corpus", headers=AUTH).json()
        assert corpus["total_examples"] == 2
        assert corpus["loaded_examples"] == 2

        retired = client.post(f"{API}/admin/examples/retire", headers=AUTH, json={"example_ids": [1]}).json()
        assert retired == {"count": 1, "corpus_version": 2}

    def test_seed_embeddings_when_complete(self, client):
        body = client.post(f"{API}/admin/examples/seed-embeddings", headers=AUTH).json()

        assert body == {"count": 0, "corpus_version": 0}


class TestHealthAndMetrics:

    def test_health(self, client):
        response = client.get("/health")

        body = response.json()
        assert response.status_code == 200
        components = {component["name"]: component for component in body["components"]}
        assert components["database"]["status"] == "healthy"
        assert components["example_corpus"]["status"] == "degraded"
        assert "redis" not in components
        assert body["status"] == "degraded"

    def test_metrics(self, client):
        client.post(f"{API}/route", json={"text": "ask the coder to review my PR"})

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "routing_decisions_total" in response.text
