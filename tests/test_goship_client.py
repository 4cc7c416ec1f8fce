"""
test_goship_client.py — Tests for the GoShip LTL connector

Covers: parameter validation, request shape (API key header, frozen
freight class, default pallets), GraphQL errors, retry policy, missing
quote, not-configured key.

Called by: pytest
Depends on: protein_pricing.connectors.goship
"""

from datetime import date, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from protein_pricing.connectors.goship import (
    GoShipClient,
    GoShipError,
    default_pallets,
    validate_quote_params,
)

PICKUP = (date.today() + timedelta(days=3)).isoformat()

QUOTE_RESPONSE = {
    "data": {
        "requestLTLQuote": {
            "id": "Q-7781",
            "cost": "1,250.00",
            "carrier": "Estes",
            "deliveryDate": "2026-10-24",
            "transitDays": "3",
        }
    }
}


def _resp(status=200, payload=None):
    r = MagicMock()
    r.status_code = status
    r.json.return_value = payload if payload is not None else {}
    return r


@pytest.fixture()
def mock_http():
    with patch("protein_pricing.connectors.goship.http") as http, patch(
        "protein_pricing.connectors.goship.asyncio.sleep", new_callable=AsyncMock
    ):
        http.post = AsyncMock()
        yield http


@pytest.fixture()
def goship():
    return GoShipClient("gs-test-key", "https://goship.test/graphql")


async def _quote(client, **overrides):
    params = dict(origin_zip="19512", destination_zip="07102", weight_lbs=7500, pickup_date=PICKUP)
    params.update(overrides)
    return await client.get_ltl_quote(**params)


def test_default_pallets():
    assert default_pallets(100) == 1
    assert default_pallets(1875) == 1
    assert default_pallets(7500) == 4
    assert default_pallets(7501) == 5


@pytest.mark.parametrize(
    "params,message",
    [
        (dict(origin_zip=""), "Origin"),
        (dict(destination_zip=""), "Destination"),
        (dict(weight_lbs=0), "Weight"),
        (dict(pallets=0), "Pallets"),
        (dict(pickup_date="10/20/2026"), "YYYY-MM-DD"),
        (dict(pickup_date="2026-02-30"), "YYYY-MM-DD"),
        (dict(pickup_date="2026-10-01"), "future"),
    ],
)
def test_validation(params, message):
    base = dict(origin_zip="19512", destination_zip="07102", weight_lbs=500, pallets=1,
                pickup_date="2026-10-20", today=date(2026, 10, 18))
    base.update(params)
    with pytest.raises(GoShipError, match=message) as exc:
        validate_quote_params(**base)
    assert exc.value.code == "VALIDATION_ERROR"
    assert exc.value.status_code == 400


async def test_quote_success(mock_http, goship):
    mock_http.post.return_value = _resp(200, QUOTE_RESPONSE)
    quote = await _quote(goship)
    assert quote.id == "Q-7781"
    assert quote.cost == 1250.0
    assert quote.transit_days == 3

    kwargs = mock_http.post.call_args.kwargs
    assert kwargs["headers"]["X-GoShip-API-Key"] == "gs-test-key"
    item = kwargs["json"]["variables"]["input"]["items"][0]
    assert item["quantity"] == 4
    assert item["freightClass"] == "70"


async def test_missing_key_not_configured(mock_http):
    with pytest.raises(GoShipError) as exc:
        await _quote(GoShipClient("", "https://goship.test/graphql"))
    assert exc.value.code == "NOT_CONFIGURED"
    mock_http.post.assert_not_called()


async def test_graphql_error_code_surfaces(mock_http, goship):
    mock_http.post.return_value = _resp(
        200, {"errors": [{"message": "Lane not serviced", "extensions": {"code": "NO_CARRIERS"}}]}
    )
    with pytest.raises(GoShipError, match="Lane not serviced") as exc:
        await _quote(goship)
    assert exc.value.code == "MAX_RETRIES_EXCEEDED"
    assert mock_http.post.await_count == 3


async def test_server_errors_retried_then_give_up(mock_http, goship):
    mock_http.post.return_value = _resp(500)
    with pytest.raises(GoShipError) as exc:
        await _quote(goship)
    assert exc.value.code == "MAX_RETRIES_EXCEEDED"
    assert mock_http.post.await_count == 3


async def test_auth_failure_not_retried(mock_http, goship):
    mock_http.post.return_value = _resp(401)
    with pytest.raises(GoShipError) as exc:
        await _quote(goship)
    assert exc.value.status_code == 401
    assert mock_http.post.await_count == 1


async def test_timeout_not_retried(mock_http, goship):
    mock_http.post.side_effect = httpx.ReadTimeout("slow")
    with pytest.raises(GoShipError) as exc:
        await _quote(goship)
    assert exc.value.code == "TIMEOUT"
    assert mock_http.post.await_count == 1


async def test_transient_failure_then_success(mock_http, goship):
    mock_http.post.side_effect = [httpx.ConnectError("reset"), _resp(200, QUOTE_RESPONSE)]
    quote = await _quote(goship)
    assert quote.carrier == "Estes"


async def test_empty_quote_raises(mock_http, goship):
    mock_http.post.return_value = _resp(200, {"data": {"requestLTLQuote": None}})
    with pytest.raises(GoShipError) as exc:
        await _quote(goship)
    assert exc.value.code == "NO_QUOTE"
