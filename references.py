"""
references.py
-------------
CareGate — Consent-aware FHIR Access Gateway — Reference comparison
--------------------------------------------------------------------
FHIR relationships arrive as opaque reference strings such as
``"Patient/42"`` or ``"https://host/fhir/Patient/42"``. The access rules
compare them in exactly two ways and every rule must use the same helper
for the same field:

    reference_ends_with(reference, suffix)
        Suffix match. Used for
          - PractitionerRole.practitioner   vs "Practitioner/" + practitioner.id
          - Device.patient                  vs filtered patient id
          - Observation.subject             vs filtered patient id
          - Observation.device              vs filtered device id
          - Consent actor reference         vs PractitionerRole.id

    references_equal(left, right)
        Exact string equality. Used for
          - Patient.managingOrganization    vs PractitionerRole.organization
          - Device.owner                    vs PractitionerRole.organization
          - Consent.patient                 vs Device.patient

A missing reference (None or empty string) never matches, and an empty
suffix never matches: ``"x".endswith("")`` is True in Python, which would
otherwise let a resource without an id match every reference.

Project: CareGate — Consent-aware FHIR Access Gateway
"""

from typing import Optional

PRACTITIONER_PREFIX = "Practitioner/"


def reference_ends_with(reference: Optional[str], suffix: Optional[str]) -> bool:
    """
    Return True when *reference* ends with *suffix*.

    Args:
        reference: Child reference string, e.g. ``"Patient/P2"``.
        suffix:    Parent id or canonical path segment, e.g. ``"P2"`` or
                   ``"Practitioner/42"``.

    Returns:
        bool: False when either side is missing or empty.
    """
    if not reference or not suffix:
        return False
    return reference.endswith(suffix)


def references_equal(left: Optional[str], right: Optional[str]) -> bool:
    """
    Return True when both references are present and identical.

    Two absent references are NOT equal: a patient without a managing
    organization is never a member of a role without an organization.
    """
    if not left or not right:
        return False
    return left == right


def practitioner_path(practitioner_id: Optional[str]) -> Optional[str]:
    """Canonical ``"Practitioner/{id}"`` path segment, or None without an id."""
    if not practitioner_id:
        return None
    return f"{PRACTITIONER_PREFIX}{practitioner_id}"
