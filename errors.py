"""
errors.py
---------
CareGate — Consent-aware FHIR Access Gateway — Error taxonomy
--------------------------------------------------------------
Every failure the gateway can produce is an ``AccessError`` carrying a
stable machine code and the HTTP status it maps to. The request pipeline
never returns partial results: the first error ends the request.

    Unauthenticated        401  no Authorization header
    MalformedCredential    401  token claims unreadable or no subject id
    PractitionerNotFound   403  no single Practitioner matches the subject id
    RoleResolutionError    500  missing or ambiguous PractitionerRole
    UpstreamFetchError     500  transport failure or non-2xx upstream status
    UpstreamFormatError    500  upstream body is not a FHIR Bundle

``Outcome`` is the result type threaded through the pipeline stages.

Project: CareGate — Consent-aware FHIR Access Gateway
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class AccessError(Exception):
    """Base class for all gateway failures."""

    code = "internal_inconsistency"
    status_code = 500

    def __init__(self, message: str = "") -> None:
        self.message = message or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.code, "detail": self.message}


class Unauthenticated(AccessError):
    """Raised when the request carries no Authorization header."""

    code = "unauthenticated"
    status_code = 401


class MalformedCredential(AccessError):
    """Raised when the credential decodes to no usable subject id."""

    code = "malformed_credential"
    status_code = 401


class PractitionerNotFound(AccessError):
    """Raised when zero or several Practitioners match the caller identity."""

    code = "forbidden"
    status_code = 403


class RoleResolutionError(AccessError):
    """Raised when the Practitioner has zero or several PractitionerRoles."""


class UpstreamFetchError(AccessError):
    """Raised when the upstream repository cannot be reached or answers non-2xx."""

    def __init__(self, message: str = "", upstream_status: int = 0) -> None:
        self.upstream_status = upstream_status
        super().__init__(message)


class UpstreamFormatError(AccessError):
    """Raised when the upstream response is not a well-formed search Bundle."""


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """
    Success-or-failure result of one pipeline stage.

    Exactly one of ``value`` / ``error`` is meaningful: ``error`` is None on
    success. Build instances with ``Outcome.success()`` / ``Outcome.failure()``.
    """

    value: Optional[T] = None
    error: Optional[AccessError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: AccessError) -> "Outcome[T]":
        return cls(error=error)
