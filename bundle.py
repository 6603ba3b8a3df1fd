"""
bundle.py
---------
CareGate — Consent-aware FHIR Access Gateway — Search Bundle assembly
----------------------------------------------------------------------
Wraps filtered resources in a FHIR ``searchset`` Bundle. Pure and total:
the same resources always produce the same Bundle.

Project: CareGate — Consent-aware FHIR Access Gateway
"""

from typing import Any, Dict, List, Optional, Sequence

import config
from schemas import FhirResource


def full_url(resource: FhirResource, base_url: Optional[str] = None) -> str:
    """``{base_url}/{resourceType}/{id}`` for one resource."""
    base = (base_url or config.FHIR_BASE_URL).rstrip("/")
    return f"{base}/{resource.resourceType}/{resource.id}"


def build_search_bundle(
    resources: Sequence[FhirResource], base_url: Optional[str] = None
) -> Dict[str, Any]:
    """
    Build the searchset Bundle returned to the caller.

    Args:
        resources: Filtered resources, emitted in the given order.
        base_url:  ``fullUrl`` prefix. Defaults to ``config.FHIR_BASE_URL``.

    Returns:
        dict: ``{"resourceType": "Bundle", "type": "searchset", "entry": [...]}``
              where each entry is ``{"fullUrl", "resource", "search": {"mode": "match"}}``.
    """
    entries: List[Dict[str, Any]] = [
        {
            "fullUrl": full_url(resource, base_url),
            "resource": resource.to_payload(),
            "search": {"mode": "match"},
        }
        for resource in resources
    ]
    return {
        "resourceType": "Bundle",
        "type": "searchset",
        "entry": entries,
    }
