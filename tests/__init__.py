"""
tests/
------
CareGate — Consent-aware FHIR Access Gateway — Test Package
------------------------------------------------------------
Test Modules:
    - test_references.py: suffix vs exact reference matching
    - test_schemas.py: resource models and batch parsing
    - test_identity.py: Authorization header and claim decoding
    - test_resolution.py: practitioner / role cardinality
    - test_access_filters.py: membership, consent, cascading filters
    - test_fhir_client.py: upstream Bundle contract via httpx.MockTransport
    - test_bundle.py: searchset Bundle assembly
    - test_pipeline.py: stage chaining and short-circuiting
    - test_main.py: HTTP surface via FastAPI TestClient

Project: CareGate — Consent-aware FHIR Access Gateway
"""
