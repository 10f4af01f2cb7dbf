"""Address enrichment through the location detection service."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from mongo_extract.core.config import EnrichmentSettings
from mongo_extract.core.exceptions import EnrichmentError
from mongo_extract.extraction.serializer import deserialize, render_standard

logger = structlog.get_logger()

DEFAULT_ENDPOINT = "https://kalinka.edumall.io/location_detect"
LOCATION_LEVELS = ("province", "district", "ward")


class AddressEnricher:
    """
    Resolve free-text addresses into province, district and ward.

    Each lookup is one blocking GET with the address in the ``s`` query
    parameter. Lookups are best effort: failures are logged and leave the
    record as it was.

    Example:
        with AddressEnricher() as enricher:
            record = enricher.enrich({"address": "12 Ly Thuong Kiet, Ha Noi"})
    """

    def __init__(
        self,
        endpoint: str = DEFAULT_ENDPOINT,
        timeout: float = 10.0,
        address_field: str = "address",
        client: httpx.Client | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.timeout = timeout
        self.address_field = address_field
        self._client = client
        self._owns_client = client is None
        self.logger = logger.bind(component="address_enricher", endpoint=endpoint)

    @classmethod
    def from_settings(
        cls,
        settings: EnrichmentSettings,
        client: httpx.Client | None = None,
    ) -> "AddressEnricher":
        return cls(
            endpoint=settings.endpoint,
            timeout=settings.timeout,
            address_field=settings.address_field,
            client=client,
        )

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout)
        return self._client

    def close(self) -> None:
        """Close the HTTP client if this enricher created it."""
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None

    def __enter__(self) -> "AddressEnricher":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def fetch(self, address: str) -> dict[str, dict[str, str]]:
        """
        Query the service for one address.

        Returns:
            Mapping of province/district/ward to ``{name, code}``

        Raises:
            EnrichmentError: On transport errors, non-2xx statuses or
                responses without a ``payload`` object, or a payload missing
                any level or its ``name``/``code``
        """
        try:
            response = self.client.get(self.endpoint, params={"s": address})
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            raise EnrichmentError(
                f"Unexpected response status: {e.response.status_code}",
                endpoint=self.endpoint,
            ) from e
        except (httpx.RequestError, ValueError) as e:
            raise EnrichmentError(
                f"Location lookup failed: {e}",
                endpoint=self.endpoint,
            ) from e

        payload = body.get("payload") if isinstance(body, dict) else None
        if not isinstance(payload, dict):
            raise EnrichmentError("Response has no payload object", endpoint=self.endpoint)

        location = {}
        for level in LOCATION_LEVELS:
            detected = _name_and_code(payload.get(f"{level}_detected"))
            if detected is None:
                raise EnrichmentError(
                    f"Response has no {level}_detected name and code",
                    endpoint=self.endpoint,
                )
            location[level] = detected
        return location

    def lookup(self, address: str) -> dict[str, dict[str, str]] | None:
        """Like ``fetch`` but returns None instead of raising."""
        try:
            return self.fetch(address)
        except EnrichmentError as e:
            self.logger.warning("Address lookup failed", error=str(e))
            return None

    def enrich(self, record: dict[str, Any]) -> dict[str, Any]:
        """Add location fields to ``record`` in place and return it."""
        address = record.get(self.address_field)
        if not isinstance(address, str) or not address:
            return record

        location = self.lookup(address)
        if location is not None:
            record.update(location)
        return record

    def enrich_payload(self, payload: str | bytes) -> str:
        """Enrich every object of a JSON array and render the result."""
        records = [self.enrich(record) for record in deserialize(payload)]
        self.logger.info("Enriched payload", records=len(records))
        return "[" + ", ".join(render_standard(r, indent=None) for r in records) + "]"


def _name_and_code(value: Any) -> dict[str, str] | None:
    if not isinstance(value, dict):
        return None
    name, code = value.get("name"), value.get("code")
    if not isinstance(name, str) or not isinstance(code, str):
        return None
    return {"name": name, "code": code}
