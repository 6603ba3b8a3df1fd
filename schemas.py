"""
schemas.py
----------
CareGate — Consent-aware FHIR Access Gateway — Pydantic resource models
------------------------------------------------------------------------
Pydantic v2 models for the slice of FHIR R4 the access rules read:
Practitioner, PractitionerRole, Patient, Device, Observation and Consent.

Model policy
------------
  1. Immutable snapshots: every model is ``frozen``; a resource fetched for
     a request is never modified while the pipeline runs.

  2. Lossless payloads: ``extra="allow"`` keeps every element the access
     rules do not read, so ``to_payload()`` hands the upstream resource back
     to the caller unchanged.

  3. Missing references are legal: a Patient without a
     managingOrganization or an Observation without a device simply fails
     the corresponding match in ``references.py``.

Public API
----------
    RESOURCE_MODELS       resourceType → model class.
    FhirResource          Common base (``id``, ``resourceType``, ``to_payload``).
    parse_resources()     Validate raw resource dicts into models; raises
                          ``UpstreamFormatError`` on the first invalid one.

Project: CareGate — Consent-aware FHIR Access Gateway
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from errors import UpstreamFormatError

logger = logging.getLogger(__name__)


class _FhirElement(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")


# ---------------------------------------------------------------------------
# Datatypes
# ---------------------------------------------------------------------------

class Reference(_FhirElement):
    reference: Optional[str] = None


class Identifier(_FhirElement):
    system: Optional[str] = None
    value: Optional[str] = None

    @field_validator("value", mode="before")
    @classmethod
    def coerce_value(cls, v: Any) -> Optional[str]:
        """Identifier values are compared as strings; numeric ids are coerced."""
        if v is None:
            return None
        return str(v)


class Coding(_FhirElement):
    system: Optional[str] = None
    code: Optional[str] = None
    display: Optional[str] = None


class CodeableConcept(_FhirElement):
    coding: List[Coding] = Field(default_factory=list)
    text: Optional[str] = None

    def has_code(self, code: str) -> bool:
        return any(coding.code == code for coding in self.coding)


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------

class FhirResource(_FhirElement):
    """Fields shared by every resource the gateway handles."""

    resourceType: str
    id: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        """Return the resource as the JSON-ready dict the upstream sent."""
        return self.model_dump(mode="json", exclude_unset=True)


class Practitioner(FhirResource):
    identifier: List[Identifier] = Field(default_factory=list)

    def has_identifier_value(self, value: str) -> bool:
        return any(identifier.value == value for identifier in self.identifier)


class PractitionerRole(FhirResource):
    practitioner: Optional[Reference] = None
    organization: Optional[Reference] = None

    @property
    def practitioner_reference(self) -> Optional[str]:
        return self.practitioner.reference if self.practitioner else None

    @property
    def organization_reference(self) -> Optional[str]:
        return self.organization.reference if self.organization else None


class Patient(FhirResource):
    managingOrganization: Optional[Reference] = None

    @property
    def organization_reference(self) -> Optional[str]:
        return self.managingOrganization.reference if self.managingOrganization else None


class Device(FhirResource):
    patient: Optional[Reference] = None
    owner: Optional[Reference] = None

    @property
    def patient_reference(self) -> Optional[str]:
        return self.patient.reference if self.patient else None

    @property
    def owner_reference(self) -> Optional[str]:
        return self.owner.reference if self.owner else None


class Observation(FhirResource):
    subject: Optional[Reference] = None
    device: Optional[Reference] = None

    @property
    def subject_reference(self) -> Optional[str]:
        return self.subject.reference if self.subject else None

    @property
    def device_reference(self) -> Optional[str]:
        return self.device.reference if self.device else None


class ConsentActor(_FhirElement):
    role: Optional[CodeableConcept] = None
    reference: Optional[Reference] = None

    @property
    def actor_reference(self) -> Optional[str]:
        return self.reference.reference if self.reference else None


class ConsentProvision(_FhirElement):
    type: Optional[str] = None
    actor: List[ConsentActor] = Field(default_factory=list)


class Consent(FhirResource):
    patient: Optional[Reference] = None
    provision: Optional[ConsentProvision] = None

    @property
    def patient_reference(self) -> Optional[str]:
        return self.patient.reference if self.patient else None

    @property
    def provision_type(self) -> Optional[str]:
        return self.provision.type if self.provision else None

    @property
    def actors(self) -> List[ConsentActor]:
        return list(self.provision.actor) if self.provision else []


RESOURCE_MODELS: Dict[str, Type[FhirResource]] = {
    "Practitioner": Practitioner,
    "PractitionerRole": PractitionerRole,
    "Patient": Patient,
    "Device": Device,
    "Observation": Observation,
    "Consent": Consent,
}


# ---------------------------------------------------------------------------
# Batch helper
# ---------------------------------------------------------------------------

def parse_resources(resource_kind: str, payloads: List[Dict[str, Any]]) -> List[FhirResource]:
    """
    Validate raw resource dicts of one kind into their models.

    Unlike a lenient batch import, one invalid resource fails the whole
    collection: silently dropping it could hide a Consent or a
    PractitionerRole and change the access decision.

    Args:
        resource_kind: FHIR resourceType, a key of ``RESOURCE_MODELS``.
        payloads:      Resource dicts already filtered to *resource_kind*.

    Returns:
        List of validated models, in input order.

    Raises:
        UpstreamFormatError: on an unsupported kind or an invalid resource.
    """
    model = RESOURCE_MODELS.get(resource_kind)
    if model is None:
        raise UpstreamFormatError(f"Unsupported resource kind '{resource_kind}'.")

    resources: List[FhirResource] = []
    for payload in payloads:
        try:
            resources.append(model.model_validate(payload))
        except ValidationError as exc:
            first_msg = exc.errors()[0]["msg"] if exc.errors() else str(exc)
            logger.warning(
                "schemas.parse_resources: invalid %s (id=%s): %s",
                resource_kind, payload.get("id", "?"), first_msg,
            )
            raise UpstreamFormatError(
                f"Upstream returned an invalid {resource_kind} resource: {first_msg}"
            ) from exc
    return resources
