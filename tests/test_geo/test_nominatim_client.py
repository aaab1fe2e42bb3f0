"""
Tests for mandi_intel/geo/client.py — NominatimGeocoder over httpx.MockTransport.

What we test
------------
  - A search hit becomes a GeoPoint; query string and User-Agent are sent.
  - Empty result list → None.
  - HTTP error status, transport error, invalid JSON, malformed hit → None.
  - Request starts are spaced by ``min_interval_s``.
  - aclose() leaves an injected client open.
"""

from __future__ import annotations

import asyncio
import time

import httpx

from mandi_intel.config import GeocodingConfig
from mandi_intel.geo.client import NominatimGeocoder
from mandi_intel.models.market import GeoPoint

_FAST = GeocodingConfig(min_interval_s=0.0, timeout_s=5.0)


def _geocoder(handler, config: GeocodingConfig = _FAST) -> NominatimGeocoder:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return NominatimGeocoder(config, client=client)


def _resolve(geocoder: NominatimGeocoder, place: str):
    async def _run():
        try:
            return await geocoder.resolve(place)
        finally:
            await geocoder._client.aclose()

    return asyncio.run(_run())


class TestResolve:
    def test_hit_returns_point(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[{"lat": "28.44", "lon": "77.81", "display_name": "Siyana"}])

        point = _resolve(_geocoder(handler), "Siyana, Bulandshahar, Uttar Pradesh")

        assert point == GeoPoint(lat=28.44, lon=77.81)
        request = seen[0]
        assert request.url.params["q"] == "Siyana, Bulandshahar, Uttar Pradesh"
        assert request.url.params["format"] == "json"
        assert request.url.params["limit"] == "1"
        assert request.headers["User-Agent"] == _FAST.user_agent

    def test_empty_result_is_none(self):
        point = _resolve(_geocoder(lambda r: httpx.Response(200, json=[])), "Nowhere")
        assert point is None

    def test_http_error_is_none(self):
        point = _resolve(_geocoder(lambda r: httpx.Response(503)), "Siyana")
        assert point is None

    def test_transport_error_is_none(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        assert _resolve(_geocoder(handler), "Siyana") is None

    def test_invalid_json_is_none(self):
        point = _resolve(
            _geocoder(lambda r: httpx.Response(200, content=b"<html>busy</html>")), "Siyana"
        )
        assert point is None

    def test_malformed_hit_is_none(self):
        point = _resolve(_geocoder(lambda r: httpx.Response(200, json=[{"name": "x"}])), "Siyana")
        assert point is None

    def test_out_of_range_coordinates_are_none(self):
        point = _resolve(
            _geocoder(lambda r: httpx.Response(200, json=[{"lat": "123", "lon": "0"}])), "Siyana"
        )
        assert point is None


def test_request_starts_are_spaced():
    starts: list[float] = []

    def handler(request: httpx.Request) -> httpx.Response:
        starts.append(time.monotonic())
        return httpx.Response(200, json=[])

    geocoder = _geocoder(handler, GeocodingConfig(min_interval_s=0.05))

    async def _run():
        try:
            await asyncio.gather(geocoder.resolve("a"), geocoder.resolve("b"), geocoder.resolve("c"))
        finally:
            await geocoder._client.aclose()

    asyncio.run(_run())
    starts.sort()
    assert len(starts) == 3
    assert all(b - a >= 0.045 for a, b in zip(starts, starts[1:]))


def test_aclose_leaves_injected_client_open():
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200, json=[])))
    geocoder = NominatimGeocoder(_FAST, client=client)

    async def _run():
        await geocoder.aclose()
        closed = client.is_closed
        await client.aclose()
        return closed

    assert asyncio.run(_run()) is False
