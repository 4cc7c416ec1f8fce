"""Mapbox geocoding connector — US-only forward geocoding."""

import logging
from dataclasses import dataclass
from urllib.parse import quote

from ..http_client import http
from ..utils import safe_float

log = logging.getLogger(__name__)

GEOCODE_URL = "https://api.mapbox.com/geocoding/v5/mapbox.places"
MIN_CONFIDENCE = 0.8


class GeocodeError(Exception):
    pass


@dataclass
class GeocodeResult:
    latitude: float
    longitude: float
    confidence: float
    place_name: str | None = None


async def geocode_address(address: str, access_token: str, timeout: float = 10.0) -> GeocodeResult:
    """Forward-geocode one address. Raises GeocodeError when Mapbox has no usable match."""
    if not access_token:
        raise GeocodeError("Mapbox access token is not configured")
    if not address or not address.strip():
        raise GeocodeError("Address is required for geocoding")

    r = await http.get(
        f"{GEOCODE_URL}/{quote(address.strip(), safe='')}.json",
        params={"access_token": access_token, "country": "us", "limit": 1},
        timeout=timeout,
    )
    if r.status_code != 200:
        log.warning(f"Mapbox geocode HTTP {r.status_code}")
        raise GeocodeError(f"Mapbox geocoding failed: {r.status_code}")

    features = r.json().get("features") or []
    if not features:
        raise GeocodeError(f"No geocoding match for: {address}")

    best = features[0]
    center = best.get("center") or []
    if len(center) != 2:
        raise GeocodeError(f"Geocoding match has no coordinates: {address}")
    lng, lat = safe_float(center[0]), safe_float(center[1])
    if lng is None or lat is None:
        raise GeocodeError(f"Geocoding match has invalid coordinates: {address}")
    return GeocodeResult(
        latitude=lat,
        longitude=lng,
        confidence=safe_float(best.get("relevance")) or 0.0,
        place_name=best.get("place_name"),
    )
