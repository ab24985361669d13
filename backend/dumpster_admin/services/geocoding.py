"""
Google Geocoding API client.

Used to place assigned dumpsters on the map. Callers treat failures as
non-fatal; this client only reports them.
"""
from typing import Optional

import httpx

from dumpster_admin.core.config import settings
from dumpster_admin.core.exceptions import GeocodingException
from dumpster_admin.core.logging import get_logger
from dumpster_admin.core.metrics import track_external_request

logger = get_logger(__name__)


class GeocodingClient:
    """Resolve street addresses to (latitude, longitude)."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = settings.GOOGLE_MAPS_API_KEY if api_key is None else api_key
        self.base_url = base_url or settings.GEOCODING_URL
        self.timeout = httpx.Timeout(timeout or settings.GEOCODING_TIMEOUT_SECONDS, connect=5.0)
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    @track_external_request("google_geocoding", "geocode")
    async def geocode(self, address: str) -> Optional[tuple[float, float]]:
        """
        Look up coordinates for an address.

        Returns:
            (latitude, longitude), or None when disabled or nothing matched

        Raises:
            GeocodingException: transport error or API error status
        """
        if not self.enabled or not address or not address.strip():
            return None

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(
                    self.base_url,
                    params={"address": address, "key": self.api_key},
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            raise GeocodingException(
                message=f"Geocoding request failed: {e}",
                details={"address": address},
            ) from e

        status = data.get("status")
        if status == "ZERO_RESULTS":
            logger.info("No geocoding match", extra={"address": address})
            return None
        if status != "OK" or not data.get("results"):
            raise GeocodingException(
                message=data.get("error_message") or f"Geocoding failed with status {status}",
                details={"address": address, "status": status},
            )

        location = data["results"][0]["geometry"]["location"]
        return float(location["lat"]), float(location["lng"])
