"""
main.py
-------
CareGate — Consent-aware FHIR Access Gateway — FastAPI server
--------------------------------------------------------------
Exposes the filtered FHIR read endpoints. Every protected request resolves
the caller to a PractitionerRole, reads the upstream collections with the
caller's own credential, and returns only the records that role may see.

Endpoints:
    GET /health       Service health check
    GET /Patient      Patients managed by the caller's organization
    GET /Device       Devices of those patients, plus consented devices
    GET /Observation  Observations about visible patients or from visible devices

Status mapping:
    200  searchset Bundle (application/json)
    401  Authorization header missing, or no usable subject id in the token
    403  no single Practitioner matches the caller
    500  role missing/ambiguous, or the upstream repository failed

Project: CareGate — Consent-aware FHIR Access Gateway
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import FastAPI, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import config
from bundle import build_search_bundle
from errors import Outcome
from fhir_client import FhirRepositoryClient
from pipeline import authorize
from schemas import FhirResource

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

# ── FastAPI app ────────────────────────────────────────────────────────────────

app = FastAPI(
    title=config.SERVICE_NAME,
    version=config.VERSION,
    description="Consent-aware, organization-scoped read access to a FHIR R4 repository.",
)

if config.CORS_ALLOW_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ALLOW_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET"],
        allow_headers=["Authorization", "Content-Type"],
    )


# ── Helpers ────────────────────────────────────────────────────────────────────

def _build_client(authorization: str) -> FhirRepositoryClient:
    """Upstream client for one request, carrying the caller's credential."""
    return FhirRepositoryClient(authorization)


def _to_response(outcome: Outcome[List[FhirResource]]) -> JSONResponse:
    """
    Map a pipeline outcome to the HTTP response.

    Args:
        outcome: Result of ``pipeline.authorize``.

    Returns:
        JSONResponse: 200 with a searchset Bundle, or the error's status with
                      ``{"error", "detail"}``.
    """
    if not outcome.ok:
        error = outcome.error
        logger.info("Request refused: %d %s", error.status_code, error.code)
        return JSONResponse(status_code=error.status_code, content=error.to_dict())
    return JSONResponse(status_code=200, content=build_search_bundle(outcome.value))


async def _filtered_search(resource_kind: str, request: Request, authorization: Optional[str]) -> JSONResponse:
    logger.info('Processing request for url "%s"', request.url)
    outcome = await authorize(resource_kind, authorization, client_factory=_build_client)
    return _to_response(outcome)


# ── Endpoints ──────────────────────────────────────────────────────────────────

@app.get("/health")
def health_check() -> dict:
    """
    Return service health status.

    Returns:
        dict: service, version, status, timestamp.
    """
    return {
        "service": config.SERVICE_NAME,
        "version": config.VERSION,
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/Patient")
async def search_patients(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> JSONResponse:
    """Patients whose managing organization is the caller's organization."""
    return await _filtered_search("Patient", request, authorization)


@app.get("/Device")
async def search_devices(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> JSONResponse:
    """
    Devices the caller may read: those attached to a visible patient, and
    those owned by the caller's organization whose patient granted the
    caller's role access through a permit Consent.
    """
    return await _filtered_search("Device", request, authorization)


@app.get("/Observation")
async def search_observations(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> JSONResponse:
    """Observations about a visible patient or recorded by a visible device."""
    return await _filtered_search("Observation", request, authorization)
