"""Outbound HTTP for the vendor connectors.

GoShip (GraphQL quotes), Mapbox (geocoding) and Anthropic (Messages API) all
post through the one pooled `http` client. Each connector passes its own
per-request timeout; the client default only bounds a call that does not.

Usage:
    from protein_pricing.http_client import http
    resp = await http.post(url, json=payload, timeout=15)
"""

import httpx
from loguru import logger

USER_AGENT = "frozen-protein-pricing/1.0"

http = httpx.AsyncClient(
    timeout=httpx.Timeout(30, connect=10),
    limits=httpx.Limits(max_connections=20, max_keepalive_connections=10, keepalive_expiry=30),
    headers={"User-Agent": USER_AGENT},
    follow_redirects=False,
)


async def close_clients() -> None:
    """Close the vendor client on shutdown; a second call is a no-op."""
    if http.is_closed:
        return
    await http.aclose()
    logger.debug("Vendor HTTP client closed")
