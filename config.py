"""
config.py
---------
CareGate — Consent-aware FHIR Access Gateway — Configuration
-------------------------------------------------------------
Centralised configuration constants read from the environment. A local
``.env`` file is loaded once on import so development setups do not need
exported variables.

Variables:
    FHIR_BASE_URL         Upstream FHIR repository base URL. Also used as the
                          ``fullUrl`` prefix of every returned Bundle entry.
    FHIR_TIMEOUT_SECONDS  Per-request timeout for upstream calls.
    SUBJECT_CLAIM         Token claim carrying the caller's external subject id.
    GRANTEE_ROLE_CODE     Consent actor role code that grants access.
    CORS_ALLOW_ORIGINS    Comma-separated origins allowed to call the gateway.
    LOG_LEVEL             Root log level (``DEBUG``, ``INFO``, ...).

Project: CareGate — Consent-aware FHIR Access Gateway
"""

import os

from dotenv import load_dotenv

load_dotenv()

# ── Service ────────────────────────────────────────────────────────────────────

VERSION = "1.0.0"
SERVICE_NAME = "CareGate FHIR Access Gateway"

# ── Upstream repository ────────────────────────────────────────────────────────

FHIR_BASE_URL = os.getenv("FHIR_BASE_URL", "http://localhost:8080/fhir").rstrip("/")
FHIR_TIMEOUT_SECONDS = float(os.getenv("FHIR_TIMEOUT_SECONDS", "30"))

# ── Access rules ───────────────────────────────────────────────────────────────

SUBJECT_CLAIM = os.getenv("SUBJECT_CLAIM", "oid")
GRANTEE_ROLE_CODE = os.getenv("GRANTEE_ROLE_CODE", "GRANTEE")

# ── HTTP surface ───────────────────────────────────────────────────────────────

CORS_ALLOW_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ALLOW_ORIGINS", "").split(",")
    if origin.strip()
]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
