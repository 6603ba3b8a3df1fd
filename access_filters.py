"""
access_filters.py
-----------------
CareGate — Consent-aware FHIR Access Gateway — Cascading access filters
------------------------------------------------------------------------
Pure predicates and filter stages that narrow unfiltered resource
collections down to what one PractitionerRole may read.

The stages cascade; each reads only the previous stage's output:

    patients ──filter_patients──▶ visible patients
                                      │
    devices + consents ──filter_devices──▶ visible devices
                                      │
    observations ──filter_observations──▶ visible observations

Rules:
    Patient      managingOrganization == role.organization            (exact)
    Device       patient ends with a visible patient id               (suffix)
                 OR (owner == role.organization                       (exact)
                     AND a qualifying Consent exists)
    Observation  subject ends with a visible patient id               (suffix)
                 OR device ends with a visible device id              (suffix)

A Consent qualifies for a device when all four hold over the consent record:
    1. provision.type == "permit"
    2. some actor has a role coding with the grantee code
    3. some actor reference ends with the role id
    4. consent.patient == device.patient                               (exact)

Every stage returns a new list holding a subset of its input, in input
order; no resource is modified.

Project: CareGate — Consent-aware FHIR Access Gateway
"""

import logging
from typing import List, Optional

import config
from references import reference_ends_with, references_equal
from schemas import Consent, Device, Observation, Patient, PractitionerRole

logger = logging.getLogger(__name__)

PERMIT = "permit"


# ── Membership ────────────────────────────────────────────────────────────────

def is_in_organization(patient: Patient, role: PractitionerRole) -> bool:
    """True when the patient is managed by the role's organization."""
    return references_equal(patient.organization_reference, role.organization_reference)


# ── Consent ───────────────────────────────────────────────────────────────────

def consent_grants_device(
    consent: Consent,
    role: PractitionerRole,
    device: Device,
    grantee_code: Optional[str] = None,
) -> bool:
    """
    Decide whether one Consent opens *device* to *role*.

    The actor conditions are evaluated independently: the grantee code and
    the role reference may sit on different actors of the same provision.
    """
    grantee_code = grantee_code or config.GRANTEE_ROLE_CODE
    actors = consent.actors
    return (
        consent.provision_type == PERMIT
        and any(actor.role is not None and actor.role.has_code(grantee_code) for actor in actors)
        and any(reference_ends_with(actor.actor_reference, role.id) for actor in actors)
        and references_equal(consent.patient_reference, device.patient_reference)
    )


def is_role_permitted(
    consents: List[Consent],
    role: PractitionerRole,
    device: Device,
    grantee_code: Optional[str] = None,
) -> bool:
    """True when at least one Consent grants *role* access to *device*."""
    return any(consent_grants_device(c, role, device, grantee_code) for c in consents)


# ── Eligibility predicates ────────────────────────────────────────────────────

def is_device_visible(
    device: Device,
    visible_patients: List[Patient],
    consents: List[Consent],
    role: PractitionerRole,
) -> bool:
    if any(reference_ends_with(device.patient_reference, p.id) for p in visible_patients):
        return True
    return (
        references_equal(device.owner_reference, role.organization_reference)
        and is_role_permitted(consents, role, device)
    )


def is_observation_visible(
    observation: Observation,
    visible_patients: List[Patient],
    visible_devices: List[Device],
) -> bool:
    if any(reference_ends_with(observation.subject_reference, p.id) for p in visible_patients):
        return True
    return any(reference_ends_with(observation.device_reference, d.id) for d in visible_devices)


# ── Filter stages ─────────────────────────────────────────────────────────────

def filter_patients(patients: List[Patient], role: PractitionerRole) -> List[Patient]:
    """Stage 1: patients managed by the role's organization."""
    visible = [p for p in patients if is_in_organization(p, role)]
    logger.debug("access_filters: patients %d → %d", len(patients), len(visible))
    return visible


def filter_devices(
    devices: List[Device],
    visible_patients: List[Patient],
    consents: List[Consent],
    role: PractitionerRole,
) -> List[Device]:
    """Stage 2: devices of visible patients, or consented devices the organization owns."""
    visible = [d for d in devices if is_device_visible(d, visible_patients, consents, role)]
    logger.debug("access_filters: devices %d → %d", len(devices), len(visible))
    return visible


def filter_observations(
    observations: List[Observation],
    visible_patients: List[Patient],
    visible_devices: List[Device],
) -> List[Observation]:
    """Stage 3: observations about a visible patient or taken by a visible device."""
    visible = [
        o for o in observations
        if is_observation_visible(o, visible_patients, visible_devices)
    ]
    logger.debug("access_filters: observations %d → %d", len(observations), len(visible))
    return visible
