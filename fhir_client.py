"""
fhir_client.py
--------------
CareGate — Consent-aware FHIR Access Gateway — Upstream FHIR R4 client
-----------------------------------------------------------------------
Async read-only client for the FHIR repository the gateway fronts.

The gateway holds no credentials of its own: the caller's Authorization
header is forwarded to the repository unchanged, so the repository applies
its own authentication to every read.

Wire contract:
  GET {base_url}/{ResourceKind}
    → a FHIR ``Bundle``; each ``entry[].resource`` carries a
      ``resourceType``. Entries of any other kind are discarded.

Usage (async context manager, preferred):
    async with FhirRepositoryClient(authorization) as client:
        patients = await client.get_resources("Patient")

Usage (manual lifecycle):
    client = FhirRepositoryClient(authorization)
    await client.connect()
    devices = await client.get_resources("Device")
    await client.close()

Project: CareGate — Consent-aware FHIR Access Gateway
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

import config
from errors import UpstreamFetchError, UpstreamFormatError
from schemas import FhirResource, parse_resources

logger = logging.getLogger(__name__)


class FhirRepositoryClient:
    """
    Async FHIR R4 client that forwards the caller's bearer credential.

    All network I/O is performed via ``httpx.AsyncClient``. No retries are
    attempted: a failed read raises and ends the request.

    Args:
        authorization: Raw ``Authorization`` header value from the inbound
                       request, forwarded unchanged.
        base_url:      Repository base URL. Defaults to ``config.FHIR_BASE_URL``.
        timeout:       HTTP request timeout in seconds.
        transport:     Optional ``httpx`` transport (tests pass
                       ``httpx.MockTransport``).
    """

    def __init__(
        self,
        authorization: str,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.authorization = authorization
        self.base_url = (base_url or config.FHIR_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else config.FHIR_TIMEOUT_SECONDS
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None

    # ── Lifecycle ────────────────────────────────────────────────────────────

    async def connect(self) -> None:
        """Open the underlying HTTP connection pool."""
        if self._http is None:
            self._http = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
            )
            logger.debug("FhirRepositoryClient: HTTP transport initialised.")

    async def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        if self._http is not None:
            await self._http.aclose()
            self._http = None
            logger.debug("FhirRepositoryClient: HTTP transport closed.")

    async def __aenter__(self) -> "FhirRepositoryClient":
        await self.connect()
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.close()

    # ── Internal request helper ──────────────────────────────────────────────

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": self.authorization,
            "Accept": "application/fhir+json",
        }

    async def _get_bundle(self, resource_kind: str) -> dict[str, Any]:
        """
        Fetch ``{base_url}/{resource_kind}`` and return the parsed Bundle.

        Raises:
            RuntimeError:        if ``connect()`` / ``__aenter__`` was not called.
            UpstreamFetchError:  on transport failure or a non-2xx status.
            UpstreamFormatError: if the body is not a JSON ``Bundle``.
        """
        if self._http is None:
            raise RuntimeError(
                "FhirRepositoryClient is not connected. "
                "Use 'async with FhirRepositoryClient(...) as client:' or call connect() first."
            )

        url = f"{self.base_url}/{resource_kind}"
        try:
            resp = await self._http.get(url, headers=self._headers())
        except httpx.HTTPError as exc:
            logger.warning("FhirRepositoryClient: GET /%s failed: %s", resource_kind, exc)
            raise UpstreamFetchError(f"GET /{resource_kind} failed: {exc}") from exc

        if resp.status_code not in range(200, 300):
            logger.warning(
                "FhirRepositoryClient: GET /%s returned %d.", resource_kind, resp.status_code
            )
            raise UpstreamFetchError(
                f"GET /{resource_kind} returned {resp.status_code}",
                upstream_status=resp.status_code,
            )

        try:
            body = resp.json()
        except ValueError as exc:
            raise UpstreamFormatError(f"GET /{resource_kind} returned a non-JSON body.") from exc

        if not isinstance(body, dict) or body.get("resourceType") != "Bundle":
            found = body.get("resourceType") if isinstance(body, dict) else type(body).__name__
            raise UpstreamFormatError(
                f"GET /{resource_kind} returned '{found}', expected a Bundle."
            )
        return body

    # ── Public API ───────────────────────────────────────────────────────────

    async def get_resources(self, resource_kind: str) -> list[FhirResource]:
        """
        Return every resource of *resource_kind* the repository reports.

        No filtering is applied beyond discarding Bundle entries whose
        ``resource.resourceType`` differs from *resource_kind* (included
        resources, OperationOutcome entries, ...).

        Args:
            resource_kind: FHIR resourceType, e.g. ``"Patient"``.

        Returns:
            Parsed resource models in Bundle order. An empty Bundle (no
            ``entry`` element) yields an empty list.

        Raises:
            UpstreamFetchError:  on transport failure or a non-2xx status.
            UpstreamFormatError: if the Bundle or one of its resources is malformed.
        """
        bundle = await self._get_bundle(resource_kind)

        entries = bundle.get("entry")
        if entries is None:
            entries = []
        if not isinstance(entries, list):
            raise UpstreamFormatError(f"GET /{resource_kind} returned a Bundle with a non-list 'entry'.")

        payloads = []
        for entry in entries:
            resource = entry.get("resource") if isinstance(entry, dict) else None
            if isinstance(resource, dict) and resource.get("resourceType") == resource_kind:
                payloads.append(resource)

        logger.debug(
            "FhirRepositoryClient: GET /%s → %d of %d entries kept.",
            resource_kind, len(payloads), len(entries),
        )
        return parse_resources(resource_kind, payloads)
