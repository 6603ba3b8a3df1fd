"""
pipeline.py
-----------
CareGate — Consent-aware FHIR Access Gateway — Request pipeline
----------------------------------------------------------------
Runs one authorization decision end to end as an explicit chain of stages.
Each stage yields an ``Outcome``; the first failed outcome is returned as-is
and no later stage runs, so a request either gets its full filtered
collection or a single error.

Stages:
    1. credential     Authorization header present           (no I/O)
    2. identity       subject id decoded from the claims      (no I/O)
    3. practitioner   GET /Practitioner, exactly one match
    4. role           GET /PractitionerRole, exactly one match
    5. collections    independent reads issued concurrently, joined here
    6. filter         patient → device → observation cascade (pure)

Stages 1–2 fail before any upstream call is made.

Project: CareGate — Consent-aware FHIR Access Gateway
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from access_filters import filter_devices, filter_observations, filter_patients
from errors import AccessError, Outcome
from fhir_client import FhirRepositoryClient
from identity import decode_subject_id, require_credential
from resolution import select_practitioner, select_practitioner_role
from schemas import FhirResource, PractitionerRole

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str], FhirRepositoryClient]

# Unfiltered collections each endpoint needs once the role is known.
REQUIRED_COLLECTIONS: Dict[str, Tuple[str, ...]] = {
    "Patient": ("Patient",),
    "Device": ("Patient", "Consent", "Device"),
    "Observation": ("Patient", "Consent", "Device", "Observation"),
}

PROTECTED_KINDS = tuple(REQUIRED_COLLECTIONS)


# ── Stage helpers ─────────────────────────────────────────────────────────────

def _attempt(fn: Callable[..., Any], *args: Any) -> Outcome:
    try:
        return Outcome.success(fn(*args))
    except AccessError as exc:
        return Outcome.failure(exc)


async def _attempt_async(awaitable: Awaitable[Any]) -> Outcome:
    try:
        return Outcome.success(await awaitable)
    except AccessError as exc:
        return Outcome.failure(exc)


# ── Stages ────────────────────────────────────────────────────────────────────

async def resolve_role(client: FhirRepositoryClient, subject_id: str) -> Outcome[PractitionerRole]:
    """Stages 3–4: subject id → Practitioner → PractitionerRole."""
    practitioners = await _attempt_async(client.get_resources("Practitioner"))
    if not practitioners.ok:
        return practitioners

    practitioner = _attempt(select_practitioner, practitioners.value, subject_id)
    if not practitioner.ok:
        return practitioner

    roles = await _attempt_async(client.get_resources("PractitionerRole"))
    if not roles.ok:
        return roles

    return _attempt(select_practitioner_role, roles.value, practitioner.value)


async def fetch_collections(
    client: FhirRepositoryClient, resource_kinds: Tuple[str, ...]
) -> Outcome[Dict[str, List[FhirResource]]]:
    """
    Stage 5: read every collection in *resource_kinds* concurrently.

    The reads share no data, so they are gathered together; the first
    AccessError in *resource_kinds* order fails the stage. Anything that is
    not an AccessError is a bug and propagates.
    """
    results = await asyncio.gather(
        *(client.get_resources(kind) for kind in resource_kinds),
        return_exceptions=True,
    )
    collections: Dict[str, List[FhirResource]] = {}
    for kind, result in zip(resource_kinds, results):
        if isinstance(result, AccessError):
            return Outcome.failure(result)
        if isinstance(result, BaseException):
            raise result
        collections[kind] = result
    return Outcome.success(collections)


def visible_resources(
    resource_kind: str,
    collections: Dict[str, List[FhirResource]],
    role: PractitionerRole,
) -> List[FhirResource]:
    """Stage 6: run the cascade as far as *resource_kind* requires."""
    patients = filter_patients(collections["Patient"], role)
    if resource_kind == "Patient":
        return patients

    devices = filter_devices(collections["Device"], patients, collections["Consent"], role)
    if resource_kind == "Device":
        return devices

    return filter_observations(collections["Observation"], patients, devices)


# ── Entry point ───────────────────────────────────────────────────────────────

async def authorize(
    resource_kind: str,
    authorization: Optional[str],
    client_factory: ClientFactory = FhirRepositoryClient,
) -> Outcome[List[FhirResource]]:
    """
    Return the *resource_kind* records the caller may read.

    Args:
        resource_kind:  ``"Patient"``, ``"Device"`` or ``"Observation"``.
        authorization:  Raw Authorization header value, or None when absent.
        client_factory: Builds the upstream client from the credential.

    Returns:
        Outcome whose value is the filtered collection, or whose error is the
        first AccessError raised by any stage.

    Raises:
        ValueError: *resource_kind* is not a protected kind.
    """
    if resource_kind not in REQUIRED_COLLECTIONS:
        raise ValueError(
            f"Unsupported resource kind '{resource_kind}'. "
            f"Expected one of: {', '.join(PROTECTED_KINDS)}."
        )

    credential = _attempt(require_credential, authorization)
    if not credential.ok:
        return credential

    subject_id = _attempt(decode_subject_id, credential.value)
    if not subject_id.ok:
        return subject_id

    async with client_factory(credential.value) as client:
        role = await resolve_role(client, subject_id.value)
        if not role.ok:
            return role

        collections = await fetch_collections(client, REQUIRED_COLLECTIONS[resource_kind])
        if not collections.ok:
            return collections

    visible = visible_resources(resource_kind, collections.value, role.value)
    logger.info(
        "pipeline: %s, %d visible to PractitionerRole/%s.",
        resource_kind, len(visible), role.value.id,
    )
    return Outcome.success(visible)
