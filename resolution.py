"""
resolution.py
-------------
CareGate — Consent-aware FHIR Access Gateway — Practitioner / role resolution
------------------------------------------------------------------------------
Maps a caller's subject id to exactly one Practitioner and that Practitioner
to exactly one PractitionerRole (its organization binding). Zero or several
candidates is always an error; resolution never silently picks one.

    no single Practitioner      → PractitionerNotFound  (403, caller problem)
    no single PractitionerRole  → RoleResolutionError   (500, data problem)

Project: CareGate — Consent-aware FHIR Access Gateway
"""

import logging
from typing import List

from errors import PractitionerNotFound, RoleResolutionError
from references import practitioner_path, reference_ends_with
from schemas import Practitioner, PractitionerRole

logger = logging.getLogger(__name__)


def select_practitioner(practitioners: List[Practitioner], subject_id: str) -> Practitioner:
    """
    Pick the Practitioner whose identifier list contains *subject_id*.

    Raises:
        PractitionerNotFound: zero or more than one Practitioner matches.
    """
    matches = [p for p in practitioners if p.has_identifier_value(subject_id)]
    if len(matches) != 1:
        logger.warning(
            "resolution: %d practitioners match the caller identity (expected 1).",
            len(matches),
        )
        raise PractitionerNotFound(
            f"Expected exactly one Practitioner for the caller, found {len(matches)}."
        )
    return matches[0]


def select_practitioner_role(
    roles: List[PractitionerRole], practitioner: Practitioner
) -> PractitionerRole:
    """
    Pick the PractitionerRole whose practitioner reference ends with
    ``"Practitioner/{practitioner.id}"``.

    Raises:
        RoleResolutionError: zero or more than one role matches.
    """
    path = practitioner_path(practitioner.id)
    matches = [r for r in roles if reference_ends_with(r.practitioner_reference, path)]
    if len(matches) != 1:
        logger.warning(
            "resolution: %d roles reference %s (expected 1).", len(matches), path
        )
        raise RoleResolutionError(
            f"Expected exactly one PractitionerRole for {path}, found {len(matches)}."
        )
    return matches[0]
