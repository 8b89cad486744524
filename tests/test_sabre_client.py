from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from services.flights.ota.services.models import SearchError, SearchParams, SearchSegment
from services.flights.ota.services.sabre_client import (
    SABRE_REST_CERT,
    SABRE_REST_PROD,
    SabreClient,
    build_search_payload,
    get_client_from_env,
    provider_error_message,
    search_offers,
)


def _client(handler):
    return SabreClient(
        base_url="https://sabre.test/",
        user_id="u1",
        group="PCC1",
        domain="AA",
        client_secret="s3cret",
        transport=httpx.MockTransport(handler),
    )


def _rq(payload):
    return payload["OTA_AirLowFareSearchRQ"]


def test_payload_one_way():
    rq = _rq(build_search_payload(SearchParams("dac", "cxb", "2026-03-01", cabin="Business"), "PCC1"))
    odis = rq["OriginDestinationInformation"]
    assert len(odis) == 1
    assert odis[0]["OriginLocation"]["LocationCode"] == "DAC"
    assert odis[0]["DepartureDateTime"] == "2026-03-01T00:00:00"
    assert rq["TravelPreferences"]["CabinPref"][0]["Cabin"] == "C"
    assert rq["POS"]["Source"][0]["PseudoCityCode"] == "PCC1"
    assert rq["TPA_Extensions"]["IntelliSellTransaction"]["RequestType"]["Name"] == "50ITINS"


def test_payload_return_and_passengers():
    params = SearchParams(
        "DAC", "DXB", "2026-03-01", return_date="2026-03-10", trip_type="return", adults=2, children=1, kids=1, infants=1
    )
    rq = _rq(build_search_payload(params))
    odis = rq["OriginDestinationInformation"]
    assert [(o["OriginLocation"]["LocationCode"], o["DestinationLocation"]["LocationCode"]) for o in odis] == [
        ("DAC", "DXB"),
        ("DXB", "DAC"),
    ]
    ptq = rq["TravelerInfoSummary"]["AirTravelerAvail"][0]["PassengerTypeQuantity"]
    assert ptq == [
        {"Code": "ADT", "Quantity": 2},
        {"Code": "CNN", "Quantity": 1},
        {"Code": "C05", "Quantity": 1},
        {"Code": "INF", "Quantity": 1},
    ]

    oneway = _rq(build_search_payload(SearchParams("DAC", "DXB", "2026-03-01", return_date="2026-03-10")))
    assert len(oneway["OriginDestinationInformation"]) == 1


def test_payload_multi_city():
    params = SearchParams(
        "DAC",
        "LHR",
        "2026-03-01",
        trip_type="multicity",
        segments=(SearchSegment("DAC", "DXB", "2026-03-01"), SearchSegment("DXB", "LHR", "2026-03-04")),
    )
    odis = _rq(build_search_payload(params))["OriginDestinationInformation"]
    assert [o["RPH"] for o in odis] == ["1", "2"]
    assert odis[1]["DepartureDateTime"] == "2026-03-04T00:00:00"


def test_token_is_cached_across_searches(make_direct, make_response):
    calls = []

    def handler(request):
        calls.append(request.url.path)
        if request.url.path == "/v2/auth/token":
            assert request.headers["Authorization"].startswith("Basic ")
            return httpx.Response(200, json={"access_token": "tok", "expires_in": 604800})
        assert request.headers["Authorization"] == "Bearer tok"
        assert request.url.params["mode"] == "live"
        assert "OTA_AirLowFareSearchRQ" in json.loads(request.content)
        return httpx.Response(200, json=make_response(make_direct(total=4200.0)))

    client = _client(handler)

    async def scenario():
        first = await search_offers(client.search, SearchParams("DAC", "CXB", "2026-03-01"))
        second = await search_offers(client.search, SearchParams("DAC", "CXB", "2026-03-02"))
        return first, second

    first, second = asyncio.run(scenario())
    assert calls == ["/v2/auth/token", "/v1/shop/flights", "/v1/shop/flights"]
    assert first[0].total_fare == 4200.0
    assert len(second) == 1


def test_missing_token_is_a_transport_error():
    def handler(request):
        return httpx.Response(200, json={"token_type": "bearer"})

    with pytest.raises(SearchError) as exc:
        asyncio.run(search_offers(_client(handler).search, SearchParams("DAC", "CXB", "2026-03-01")))
    assert exc.value.kind == "transport"
    assert exc.value.status_code == 502


def test_provider_message_is_surfaced():
    def handler(request):
        if request.url.path == "/v2/auth/token":
            return httpx.Response(200, json={"access_token": "tok"})
        return httpx.Response(400, json={"message": "Invalid departure date"})

    with pytest.raises(SearchError) as exc:
        asyncio.run(search_offers(_client(handler).search, SearchParams("DAC", "CXB", "2026-03-01")))
    assert exc.value.kind == "transport"
    assert exc.value.message == "Invalid departure date"


def test_provider_error_message_fallbacks():
    request = httpx.Request("POST", "https://sabre.test/v1/shop/flights")
    plain = httpx.HTTPStatusError("boom", request=request, response=httpx.Response(503, text="down", request=request))
    assert provider_error_message(plain) == "Provider returned HTTP 503"
    assert provider_error_message(httpx.ConnectError("refused")) == "refused"


def test_empty_result_is_no_results(make_response):
    async def search(params):
        return make_response()

    with pytest.raises(SearchError) as exc:
        asyncio.run(search_offers(search, SearchParams("DAC", "CXB", "2026-03-01")))
    assert exc.value.kind == "no_results"
    assert exc.value.status_code == 404


def test_get_client_from_env(monkeypatch):
    for name in ("SABRE_USER_ID", "SABRE_GROUP", "SABRE_DOMAIN", "SABRE_CLIENT_SECRET", "SABRE_BASE_URL"):
        monkeypatch.delenv(name, raising=False)
    assert get_client_from_env() is None

    monkeypatch.setenv("SABRE_USER_ID", "u1")
    monkeypatch.setenv("SABRE_GROUP", "PCC1")
    monkeypatch.setenv("SABRE_DOMAIN", "AA")
    monkeypatch.setenv("SABRE_CLIENT_SECRET", "s3cret")
    monkeypatch.delenv("SABRE_ENVIRONMENT", raising=False)
    assert get_client_from_env().base_url == SABRE_REST_CERT

    monkeypatch.setenv("SABRE_ENVIRONMENT", "production")
    assert get_client_from_env().base_url == SABRE_REST_PROD

    monkeypatch.setenv("SABRE_BASE_URL", "https://proxy.test/")
    assert get_client_from_env().base_url == "https://proxy.test"
