"""HTTP surface: validation, status mapping and health reporting."""
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from app.services.errors import InvalidCredentials, RateLimited

from conftest import SAMPLE_ANALYSIS, ScriptedAdapter


@pytest.fixture
def client_for(make_container):
    clients = []

    def _client(*adapters, degraded_mode: bool = False, **overrides) -> TestClient:
        client = TestClient(create_app(make_container(*adapters, degraded_mode=degraded_mode, **overrides)))
        client.__enter__()
        clients.append(client)
        return client

    yield _client
    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(client_for) -> TestClient:
    return client_for(ScriptedAdapter("gemini", [SAMPLE_ANALYSIS]))


# ── analyze ──

def test_analyze_returns_camel_case_report(client):
    resp = client.post(
        "/api/medicine/analyze",
        json={"medicineName": " Dolo 650 ", "patientInfo": {"age": 30, "gender": "male"}},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["medicine"] == "Dolo 650"
    assert body["patientInfo"]["age"] == 30
    assert body["analysis"]["medicineNames"] == {
        "original": "Dolo 650",
        "resolved": "Paracetamol 650mg",
        "wasResolved": True,
    }
    assert body["analysis"]["riskLevel"] == "low-moderate"
    assert body["disclaimer"].startswith("This analysis is for informational purposes only")


@pytest.mark.parametrize(
    "payload",
    [
        {"medicineName": "Dolo<script>"},
        {"medicineName": "   "},
        {"medicineName": "x" * 201},
        {"medicineName": "Dolo", "patientInfo": {"age": 150}},
        {"medicineName": "Dolo", "patientInfo": {"gender": "unknown"}},
        {},
    ],
)
def test_analyze_validation_errors(client, payload):
    resp = client.post("/api/medicine/analyze", json=payload)

    assert resp.status_code == 400
    assert resp.json()["error"] == "Validation failed"
    assert resp.json()["details"]


def test_analyze_rate_limit_maps_to_429(client_for):
    client = client_for(ScriptedAdapter("gemini", [RateLimited("slow down", provider="gemini")]))

    resp = client.post("/api/medicine/analyze", json={"medicineName": "Dolo"})

    assert resp.status_code == 429
    assert resp.json()["error"] == "Rate limit exceeded"


def test_analyze_bad_credentials_map_to_configuration_error(client_for):
    client = client_for(ScriptedAdapter("gemini", [InvalidCredentials("bad key", provider="gemini")]))

    resp = client.post("/api/medicine/analyze", json={"medicineName": "Dolo"})

    assert resp.status_code == 500
    assert resp.json()["error"] == "AI service configuration error"


def test_analyze_other_failures_are_500(client_for):
    client = client_for(ScriptedAdapter("gemini", [RuntimeError("down")]))

    resp = client.post("/api/medicine/analyze", json={"medicineName": "Dolo"})

    assert resp.status_code == 500
    assert resp.json() == {"error": "Analysis failed", "message": "Internal server error"}


def test_error_detail_shown_in_development(client_for):
    client = client_for(ScriptedAdapter("gemini", [RuntimeError("down")]), environment="development")

    resp = client.post("/api/medicine/analyze", json={"medicineName": "Dolo"})

    assert resp.status_code == 500
    assert resp.json()["error"] == "Analysis failed"
    assert "down" in resp.json()["message"]


# ── interactions ──

@pytest.mark.parametrize("count, status", [(1, 400), (2, 200), (10, 200), (11, 400)])
def test_interaction_medicine_count_bounds(client, count, status):
    resp = client.post("/api/medicine/interactions", json={"medicines": [f"Drug{i}" for i in range(count)]})
    assert resp.status_code == status


def test_interactions_response_shape(client):
    resp = client.post("/api/medicine/interactions", json={"medicines": ["Aspirin", "Warfarin"]})

    body = resp.json()
    assert body["medicines"] == ["Aspirin", "Warfarin"]
    assert body["interactions"]["medicines"] == ["Aspirin", "Warfarin"]
    assert "pharmacokineticInteractions" in body["interactions"]
    assert body["disclaimer"].startswith("Interaction information")


def test_interactions_reject_blank_names(client):
    resp = client.post("/api/medicine/interactions", json={"medicines": ["Aspirin", "  "]})
    assert resp.status_code == 400


# ── alternatives ──

def test_alternatives_requires_medicine(client):
    resp = client.get("/api/medicine/alternatives")

    assert resp.status_code == 400
    assert resp.json() == {"error": "Medicine parameter is required"}


def test_alternatives_default_condition(client):
    resp = client.get("/api/medicine/alternatives", params={"medicine": "Ibuprofen"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["originalMedicine"] == "Ibuprofen"
    assert body["condition"] == "general"
    assert "byPopulation" in body["alternatives"]


# ── search and suggestions ──

def test_search_requires_query(client):
    resp = client.get("/api/medicine/search", params={"q": "   "})
    assert resp.status_code == 400


def test_search_exact_match(client):
    resp = client.get("/api/medicine/search", params={"q": " dolo "})

    body = resp.json()
    assert body["query"] == "dolo"
    assert body["results"]["exactMatch"] == {
        "commonName": "Dolo",
        "genericName": "Paracetamol",
        "source": "exact_mapping",
    }
    assert body["results"]["searchQuery"] == "dolo"


def test_suggestions_for_short_query_are_empty(client):
    resp = client.get("/api/medicine/suggestions", params={"q": "d"})
    assert resp.json() == {"success": True, "query": "d", "suggestions": []}


def test_suggestions(client):
    resp = client.get("/api/medicine/suggestions", params={"q": "pan", "limit": 2})

    suggestions = resp.json()["suggestions"]
    assert suggestions == [
        {
            "display": "Pan D (Pantoprazole + Domperidone)",
            "commonName": "Pan D",
            "genericName": "Pantoprazole + Domperidone",
            "value": "Pantoprazole + Domperidone",
        },
        {
            "display": "Pantop (Pantoprazole)",
            "commonName": "Pantop",
            "genericName": "Pantoprazole",
            "value": "Pantoprazole",
        },
    ]


# ── health ──

def test_health_all_providers_down_is_503(client_for):
    client = client_for(
        ScriptedAdapter("gemini", ["ok"], healthy=False),
        ScriptedAdapter("perplexity", ["ok"], healthy=False),
        ScriptedAdapter("huggingface", ["ok"], healthy=False),
    )

    resp = client.get("/api/health")

    assert resp.status_code == 503
    body = resp.json()
    assert body["services"] == {
        "api": "operational",
        "gemini": "error",
        "perplexity": "error",
        "huggingface": "error",
    }
    assert "Gemini API connection failed" in body["warnings"]


def test_health_partial_outage_is_200_with_warnings(client_for):
    client = client_for(
        ScriptedAdapter("gemini", ["ok"], healthy=False),
        ScriptedAdapter("perplexity", ["ok"]),
        ScriptedAdapter("huggingface", ["ok"]),
    )

    resp = client.get("/api/health")

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "healthy"
    assert body["version"] == "1.0.0"
    assert body["warnings"] == ["Gemini API connection failed"]


def test_detailed_health(client):
    body = client.get("/api/health/detailed").json()

    assert body["status"] == "healthy"
    assert isinstance(body["system"]["pid"], int)
    assert body["services"]["providers"] == ["gemini"]
    assert body["services"]["rateLimit"] == "active"


# ── rate limiting ──

def test_requests_over_the_limit_get_429(client_for):
    client = client_for(ScriptedAdapter("gemini", ["ok"]), rate_limit_max=2, rate_limit_window=15)

    assert client.get("/").status_code == 200
    assert client.get("/api/medicine/suggestions", params={"q": "dolo"}).status_code == 200

    resp = client.get("/")
    assert resp.status_code == 429
    assert resp.json() == {
        "error": "Too many requests from this IP, please try again later.",
        "retryAfter": "15 minutes",
    }


def test_rate_limit_can_be_disabled(client_for):
    client = client_for(ScriptedAdapter("gemini", ["ok"]), rate_limit_max=1, rate_limit_enabled=False)

    assert [client.get("/").status_code for _ in range(3)] == [200, 200, 200]


def test_root_banner(client):
    body = client.get("/").json()

    assert body["message"] == "AI Medicine Safety Checker API"
    assert body["endpoints"] == {"health": "/api/health", "medicine": "/api/medicine"}
