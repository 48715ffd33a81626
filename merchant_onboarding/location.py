from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Protocol

import httpx
from playwright.async_api import Error as PlaywrightError

from .config import RuntimeConfig
from .models import Coordinates
from .playwright_helpers import ensure_cdp_ready, read_page_geolocation
from .utils import describe_exception

logger = logging.getLogger(__name__)

ADDRESS_NOT_FOUND = "Address not found"

# GeolocationPositionError.PERMISSION_DENIED
PERMISSION_DENIED = 1


class GeolocationError(RuntimeError):
    """The device position could not be determined."""


class GeolocationPermissionDenied(GeolocationError):
    pass


class GeolocationUnavailable(GeolocationError):
    pass


class GeolocationUnsupported(GeolocationError):
    pass


class ReverseGeocodeError(RuntimeError):
    pass


class LocationProvider(Protocol):
    async def current_position(self) -> Coordinates: ...


class StaticLocationProvider:
    """Fixed coordinates, e.g. from the command line or a spreadsheet row."""

    def __init__(self, latitude: Optional[float], longitude: Optional[float]) -> None:
        self.latitude = latitude
        self.longitude = longitude

    async def current_position(self) -> Coordinates:
        if self.latitude is None or self.longitude is None:
            raise GeolocationUnavailable("No coordinates were supplied")
        return Coordinates(self.latitude, self.longitude)


def position_from_payload(payload: Mapping[str, Any]) -> Coordinates:
    """Translate the result of the in-page geolocation probe."""
    if not payload.get("supported", False):
        raise GeolocationUnsupported("Geolocation API is not available in the page")
    code = payload.get("code")
    if code == PERMISSION_DENIED:
        raise GeolocationPermissionDenied(payload.get("message") or "User denied Geolocation")
    if code is not None:
        raise GeolocationUnavailable(payload.get("message") or f"Geolocation failed (code {code})")
    try:
        return Coordinates(float(payload["latitude"]), float(payload["longitude"]))
    except (KeyError, TypeError, ValueError) as exc:
        raise GeolocationUnavailable(f"Malformed position: {payload!r}") from exc


class BrowserLocationProvider:
    """Ask the registration tab of a CDP-attached Chrome for its current position."""

    def __init__(self, config: RuntimeConfig) -> None:
        self.config = config

    async def current_position(self) -> Coordinates:
        try:
            info = ensure_cdp_ready(self.config.cdp_endpoint, self.config.max_wait_ms)
        except RuntimeError as exc:
            raise GeolocationUnsupported(str(exc)) from exc
        logger.debug("CDP ready: %s", info.get("Browser", "Chrome"))

        try:
            payload = await read_page_geolocation(self.config.cdp_endpoint, self.config.max_wait_ms)
        except (RuntimeError, PlaywrightError) as exc:
            raise GeolocationUnavailable(describe_exception(exc)) from exc
        logger.debug("Browser geolocation payload: %s", payload)
        return position_from_payload(payload)


class ReverseGeocoder:
    """Nominatim reverse lookup returning a display address."""

    def __init__(self, config: RuntimeConfig, client: Optional[httpx.AsyncClient] = None) -> None:
        self.config = config
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.config.http_timeout,
                headers={"User-Agent": self.config.user_agent},
            )
        return self._client

    async def address_for(self, latitude: float, longitude: float) -> str:
        params = {"lat": latitude, "lon": longitude, "format": "json"}
        try:
            resp = await self._get_client().get(
                self.config.geocode_url,
                params=params,
                headers={"User-Agent": self.config.user_agent},
            )
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise ReverseGeocodeError(f"Reverse geocoding failed: {exc}") from exc
        if not isinstance(data, Mapping):
            return ADDRESS_NOT_FOUND
        return data.get("display_name") or ADDRESS_NOT_FOUND

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
