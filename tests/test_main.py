"""
test_main.py
------------
CareGate — Consent-aware FHIR Access Gateway — Test Suite for main.py
----------------------------------------------------------------------
Uses FastAPI TestClient so no running server is needed. The upstream
repository is replaced by patching ``main._build_client`` with an
in-memory ``FakeRepository``.

Tests cover:
    - GET /health returns 200 and required fields
    - GET /Patient, /Device, /Observation return filtered searchset Bundles
    - missing Authorization → 401 with no upstream calls
    - unknown practitioner → 403
    - ambiguous role or upstream failure → 500

Run:
    pytest tests/test_main.py -v --tb=short
"""

import os
import sys
from unittest.mock import patch

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import httpx
import pytest
from fastapi.testclient import TestClient

from tests.factories import (
    BASE_URL,
    ORG_1,
    bearer,
    consent,
    device,
    grant,
    observation,
    practitioner_role,
    standard_repository,
)


@pytest.fixture
def scenario_repo():
    """P1 in Org1, P2 in Org2, D1 on P2 owned by Org1 with a consent for R1."""
    return standard_repository(
        Device=[device("D0", "P1"), device("D1", "P2", owner=ORG_1), device("D2", "P2", owner=ORG_1)],
        Consent=[consent("P2", [grant("R1")])],
        Observation=[observation("O1", "P1"), observation("O2", "P2", "D1"), observation("O3", "P2", "D9")],
    )


def _get(repo, path, headers=None):
    with patch("main._build_client", repo.client), patch("config.FHIR_BASE_URL", BASE_URL):
        from main import app
        client = TestClient(app)
        return client.get(path, headers=headers or {})


def _ids(response):
    return [entry["resource"]["id"] for entry in response.json()["entry"]]


# ── GET /health ────────────────────────────────────────────────────────────────

def test_health_returns_200():
    from main import app
    response = TestClient(app).get("/health")
    assert response.status_code == 200


def test_health_required_fields():
    from main import app
    data = TestClient(app).get("/health").json()
    for field in ["service", "version", "status", "timestamp"]:
        assert field in data, f"Missing field in /health response: {field}"
    assert data["status"] == "ok"


# ── Success ───────────────────────────────────────────────────────────────────

def test_patient_returns_searchset(scenario_repo):
    response = _get(scenario_repo, "/Patient", {"Authorization": bearer("oid-alice")})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/json")
    data = response.json()
    assert data["resourceType"] == "Bundle"
    assert data["type"] == "searchset"
    assert data["entry"][0]["fullUrl"] == f"{BASE_URL}/Patient/P1"
    assert data["entry"][0]["search"] == {"mode": "match"}
    assert _ids(response) == ["P1"]


def test_device_includes_consented_device(scenario_repo):
    response = _get(scenario_repo, "/Device", {"Authorization": bearer("oid-alice")})
    assert response.status_code == 200
    # D2 shares patient P2 and owner Org1 with D1, so the same consent covers it.
    assert _ids(response) == ["D0", "D1", "D2"]


def test_device_excluded_without_consent():
    repo = standard_repository(Device=[device("D1", "P2", owner=ORG_1)])
    response = _get(repo, "/Device", {"Authorization": bearer("oid-alice")})
    assert response.status_code == 200
    assert _ids(response) == []


def test_observation_returns_filtered(scenario_repo):
    response = _get(scenario_repo, "/Observation", {"Authorization": bearer("oid-alice")})
    assert response.status_code == 200
    assert _ids(response) == ["O1", "O2"]


def test_responses_are_identical_across_requests(scenario_repo):
    headers = {"Authorization": bearer("oid-alice")}
    first = _get(scenario_repo, "/Observation", headers).json()
    second = _get(scenario_repo, "/Observation", headers).json()
    assert first == second


# ── Failures ──────────────────────────────────────────────────────────────────

@pytest.mark.parametrize("path", ["/Patient", "/Device", "/Observation"])
def test_missing_authorization_is_401(scenario_repo, path):
    response = _get(scenario_repo, path)
    assert response.status_code == 401
    assert scenario_repo.requests == []


def test_malformed_token_is_401(scenario_repo):
    response = _get(scenario_repo, "/Patient", {"Authorization": "Bearer nope"})
    assert response.status_code == 401
    assert response.json()["error"] == "malformed_credential"


def test_unknown_practitioner_is_403(scenario_repo):
    response = _get(scenario_repo, "/Patient", {"Authorization": bearer("oid-mallory")})
    assert response.status_code == 403
    assert response.json()["error"] == "forbidden"


def test_ambiguous_role_is_500():
    repo = standard_repository(
        PractitionerRole=[practitioner_role("R1", "PR1"), practitioner_role("R1b", "PR1")]
    )
    response = _get(repo, "/Device", {"Authorization": bearer("oid-alice")})
    assert response.status_code == 500
    assert response.json()["error"] == "internal_inconsistency"


def test_upstream_failure_is_500(scenario_repo):
    scenario_repo.responses["Observation"] = httpx.Response(502, text="bad gateway")
    response = _get(scenario_repo, "/Observation", {"Authorization": bearer("oid-alice")})
    assert response.status_code == 500


def test_upstream_non_bundle_is_500(scenario_repo):
    scenario_repo.responses["Practitioner"] = httpx.Response(200, json={"resourceType": "Practitioner", "id": "PR1"})
    response = _get(scenario_repo, "/Patient", {"Authorization": bearer("oid-alice")})
    assert response.status_code == 500
