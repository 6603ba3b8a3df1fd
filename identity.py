"""
identity.py
-----------
CareGate — Consent-aware FHIR Access Gateway — Caller identity
---------------------------------------------------------------
Reads the caller's external subject id out of the inbound credential.

The token's signature is NOT verified here: the upstream repository
receives the same credential and performs its own validation, so the
gateway only needs the claims to pick the matching Practitioner.

Project: CareGate — Consent-aware FHIR Access Gateway
"""

import logging
from typing import Optional

import jwt

import config
from errors import MalformedCredential, Unauthenticated

logger = logging.getLogger(__name__)

_BEARER_PREFIX = "bearer "


def require_credential(authorization: Optional[str]) -> str:
    """
    Return the raw Authorization header value, or raise when it is absent.

    Raises:
        Unauthenticated: header missing or blank.
    """
    if authorization is None or not authorization.strip():
        raise Unauthenticated("Authorization header is missing.")
    return authorization


def _strip_scheme(credential: str) -> str:
    token = credential.strip()
    if token.lower().startswith(_BEARER_PREFIX):
        token = token[len(_BEARER_PREFIX):].strip()
    return token


def decode_subject_id(credential: str, claim: Optional[str] = None) -> str:
    """
    Decode the token claims and return the caller's subject id.

    Args:
        credential: Authorization header value, with or without a ``Bearer``
                    scheme.
        claim:      Claim to read. Defaults to ``config.SUBJECT_CLAIM``.

    Returns:
        str: The subject id.

    Raises:
        MalformedCredential: the token cannot be decoded, or the claim is
                             missing, empty, or not a string.
    """
    claim = claim or config.SUBJECT_CLAIM
    try:
        payload = jwt.decode(
            _strip_scheme(credential),
            options={"verify_signature": False},
        )
    except jwt.InvalidTokenError as exc:
        logger.warning("identity: credential could not be decoded (%s).", type(exc).__name__)
        raise MalformedCredential("Credential claims could not be decoded.") from exc

    subject_id = payload.get(claim)
    if not isinstance(subject_id, str) or not subject_id.strip():
        logger.warning("identity: credential has no usable '%s' claim.", claim)
        raise MalformedCredential(f"Credential has no usable '{claim}' claim.")
    return subject_id
