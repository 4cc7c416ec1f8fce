"""
test_mapbox.py — Tests for the Mapbox geocoding connector

Covers: best-feature parsing (lng/lat order, relevance), missing token,
blank address, HTTP errors, empty results.

Called by: pytest
Depends on: protein_pricing.connectors.mapbox
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from protein_pricing.connectors.mapbox import GeocodeError, geocode_address


def _resp(status=200, payload=None):
    r = MagicMock()
    r.status_code = status
    r.json.return_value = payload if payload is not None else {}
    return r


@pytest.fixture()
def mock_http():
    with patch("protein_pricing.connectors.mapbox.http") as http:
        http.get = AsyncMock()
        yield http


async def test_geocode_best_match(mock_http):
    mock_http.get.return_value = _resp(200, {
        "features": [{"center": [-75.6374, 40.3337], "relevance": 0.96, "place_name": "Boyertown, PA"}]
    })
    result = await geocode_address("1 Main St, Boyertown, PA", "pk.test")
    assert result.latitude == 40.3337
    assert result.longitude == -75.6374
    assert result.confidence == 0.96
    params = mock_http.get.call_args.kwargs["params"]
    assert params["country"] == "us"
    assert params["limit"] == 1


async def test_missing_token(mock_http):
    with pytest.raises(GeocodeError, match="not configured"):
        await geocode_address("1 Main St", "")
    mock_http.get.assert_not_called()


async def test_blank_address(mock_http):
    with pytest.raises(GeocodeError):
        await geocode_address("   ", "pk.test")


async def test_http_error(mock_http):
    mock_http.get.return_value = _resp(401)
    with pytest.raises(GeocodeError, match="401"):
        await geocode_address("1 Main St", "pk.test")


async def test_no_features(mock_http):
    mock_http.get.return_value = _resp(200, {"features": []})
    with pytest.raises(GeocodeError, match="No geocoding match"):
        await geocode_address("nowhere at all", "pk.test")
