"""GoShip LTL connector — dry freight quotes over GraphQL."""

import asyncio
import logging
import math
import re
from dataclasses import dataclass
from datetime import date

import httpx

from ..http_client import http
from ..utils import safe_float, safe_int

log = logging.getLogger(__name__)

LBS_PER_PALLET = 1875
FROZEN_FREIGHT_CLASS = "70"

REQUEST_LTL_QUOTE = """
mutation RequestLTLQuote($input: LtlRfqInput!) {
  requestLTLQuote(input: $input) {
    id
    cost
    carrier
    deliveryDate
    transitDays
  }
}"""

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_NO_RETRY = {400, 401, 403}


class GoShipError(Exception):
    def __init__(self, message: str, code: str = "UNKNOWN_ERROR", status_code: int | None = None):
        self.code = code
        self.status_code = status_code
        super().__init__(message)


@dataclass
class LtlQuote:
    id: str | None
    cost: float
    carrier: str | None = None
    delivery_date: str | None = None
    transit_days: int | None = None


def default_pallets(weight_lbs: float) -> int:
    return max(1, math.ceil(weight_lbs / LBS_PER_PALLET))


def validate_quote_params(
    origin_zip: str, destination_zip: str, weight_lbs: float, pallets: int, pickup_date: str,
    today: date | None = None,
) -> date:
    """Raise GoShipError(VALIDATION_ERROR, 400) on bad input; return the parsed pickup date."""
    if not origin_zip:
        raise GoShipError("Origin postal code is required", "VALIDATION_ERROR", 400)
    if not destination_zip:
        raise GoShipError("Destination postal code is required", "VALIDATION_ERROR", 400)
    if not weight_lbs or weight_lbs <= 0:
        raise GoShipError("Weight must be greater than 0", "VALIDATION_ERROR", 400)
    if not pallets or pallets <= 0:
        raise GoShipError("Pallets must be greater than 0", "VALIDATION_ERROR", 400)
    if not pickup_date:
        raise GoShipError("Pickup date is required", "VALIDATION_ERROR", 400)
    if not _ISO_DATE.match(pickup_date):
        raise GoShipError("Pickup date must be in YYYY-MM-DD format", "VALIDATION_ERROR", 400)
    try:
        parsed = date.fromisoformat(pickup_date)
    except ValueError:
        raise GoShipError("Pickup date must be in YYYY-MM-DD format", "VALIDATION_ERROR", 400)
    if parsed < (today or date.today()):
        raise GoShipError("Pickup date must be in the future", "VALIDATION_ERROR", 400)
    return parsed


class GoShipClient:
    """GoShip broker GraphQL API — API key header auth, 3 attempts with backoff."""

    MAX_ATTEMPTS = 3
    INITIAL_RETRY_DELAY = 1.0

    def __init__(self, api_key: str, endpoint: str, timeout: float = 30.0):
        self.api_key = api_key
        self.endpoint = endpoint
        self.timeout = timeout

    async def query(self, query: str, variables: dict) -> dict:
        last_err = None
        for attempt in range(self.MAX_ATTEMPTS):
            try:
                return await self._post(query, variables)
            except GoShipError as e:
                if e.status_code in _NO_RETRY or e.code == "TIMEOUT":
                    raise
                last_err = e
            except httpx.HTTPError as e:
                last_err = e
            if attempt < self.MAX_ATTEMPTS - 1:
                await asyncio.sleep(self.INITIAL_RETRY_DELAY * 2**attempt)
        log.warning(f"GoShip request failed after {self.MAX_ATTEMPTS} attempts: {last_err}")
        raise GoShipError(
            f"GoShip API request failed after {self.MAX_ATTEMPTS} attempts: {last_err}",
            "MAX_RETRIES_EXCEEDED",
            500,
        )

    async def _post(self, query: str, variables: dict) -> dict:
        try:
            r = await http.post(
                self.endpoint,
                json={"query": query, "variables": variables},
                headers={
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                    "X-GoShip-API-Key": self.api_key,
                },
                timeout=self.timeout,
            )
        except httpx.TimeoutException:
            raise GoShipError("GoShip API request timed out", "TIMEOUT", 408)

        if r.status_code >= 400:
            raise GoShipError(
                f"GoShip API request failed: {r.status_code}", "HTTP_ERROR", r.status_code
            )
        data = r.json()
        errors = data.get("errors") or []
        if errors:
            first = errors[0]
            raise GoShipError(
                first.get("message", "GoShip GraphQL error"),
                (first.get("extensions") or {}).get("code") or "GRAPHQL_ERROR",
            )
        return data

    async def get_ltl_quote(
        self,
        *,
        origin_zip: str,
        destination_zip: str,
        weight_lbs: float,
        pickup_date: str,
        pallets: int | None = None,
        origin_city: str | None = None,
        origin_state: str | None = None,
        destination_city: str | None = None,
        destination_state: str | None = None,
        freight_class: str = FROZEN_FREIGHT_CLASS,
    ) -> LtlQuote:
        if not self.api_key:
            raise GoShipError("GoShip API key is not configured", "NOT_CONFIGURED", 503)
        pallets = pallets or (default_pallets(weight_lbs) if weight_lbs and weight_lbs > 0 else 0)
        validate_quote_params(origin_zip, destination_zip, weight_lbs, pallets, pickup_date)

        rfq = {
            "origin": {
                "postalCode": origin_zip,
                "city": origin_city,
                "state": origin_state,
                "addressType": "BUSINESS",
                "country": "US",
            },
            "destination": {
                "postalCode": destination_zip,
                "city": destination_city,
                "state": destination_state,
                "addressType": "BUSINESS",
                "country": "US",
            },
            "pickupDate": pickup_date,
            "items": [
                {
                    "quantity": pallets,
                    "packaging": "PALLET",
                    "weight": weight_lbs,
                    "weightUoM": "LBS",
                    "freightClass": freight_class,
                    "stackable": True,
                    "hazardous": False,
                    "itemCondition": "NEW",
                    "description": "Frozen protein products",
                }
            ],
        }

        data = await self.query(REQUEST_LTL_QUOTE, {"input": rfq})
        quote = (data.get("data") or {}).get("requestLTLQuote")
        cost = safe_float((quote or {}).get("cost"))
        if not quote or cost is None:
            raise GoShipError("No quote returned from GoShip API", "NO_QUOTE", 500)
        return LtlQuote(
            id=quote.get("id"),
            cost=cost,
            carrier=quote.get("carrier"),
            delivery_date=quote.get("deliveryDate"),
            transit_days=safe_int(quote.get("transitDays")),
        )


def get_goship_client() -> GoShipClient:
    from ..config import settings

    return GoShipClient(settings.goship_api_key, settings.goship_endpoint)
