from __future__ import annotations

import asyncio
import json

import httpx

from services.flights.ota.services.gateway_client import GatewayClient, get_gateway_client_from_env
from services.flights.ota.services.models import FareCalendarEntry, FareCalendarKey


def _client(handler):
    return GatewayClient("http://gw.test/", transport=httpx.MockTransport(handler))


def test_fare_calendar_sends_key_and_parses_entries():
    seen = {}

    def handler(request):
        seen.update(dict(request.url.params))
        return httpx.Response(
            200,
            json={"success": True, "fares": [{"date": "2026-03-01", "amount": 4100, "currency": "BDT"}]},
        )

    key = FareCalendarKey("DAC", "CXB", "2026-03", passengers=2, cabin="Business")
    res = asyncio.run(_client(handler).fare_calendar(key))
    assert res.is_ok
    assert res.value == [FareCalendarEntry("2026-03-01", 4100.0, "BDT")]
    assert seen == {"origin": "DAC", "destination": "CXB", "month": "2026-03", "adults": "2", "cabin": "Business"}


def test_baggage_and_fare_rules_post_pricing():
    bodies = []

    def handler(request):
        bodies.append((request.url.path, json.loads(request.content)))
        if request.url.path.endswith("/baggage"):
            return httpx.Response(200, json={"success": True, "baggage": "2 Pc"})
        return httpx.Response(200, json={"success": True, "rules": {"cancellation": "Fee", "dateChange": None}})

    client = _client(handler)
    pricing = {"ItinTotalFare": {"TotalFare": {"Amount": 100}}}
    assert asyncio.run(client.baggage(pricing)).value == "2 Pc"
    assert asyncio.run(client.fare_rules(pricing)).value["cancellation"] == "Fee"
    assert bodies == [
        ("/api/air-ticketing/baggage", {"pricingInfo": pricing}),
        ("/api/air-ticketing/fare-rules", {"pricingInfo": pricing}),
    ]


def test_failures_become_err():
    def down(request):
        raise httpx.ConnectError("refused", request=request)

    def server_error(request):
        return httpx.Response(500, json={"detail": "boom"})

    def not_json(request):
        return httpx.Response(200, text="<html>")

    def no_rules(request):
        return httpx.Response(200, json={"success": True})

    key = FareCalendarKey("DAC", "CXB", "2026-03")
    assert asyncio.run(_client(down).fare_calendar(key)).reason == "transport"
    assert asyncio.run(_client(server_error).baggage({})).reason == "transport"
    assert asyncio.run(_client(not_json).baggage({})).reason == "shape"
    assert asyncio.run(_client(no_rules).fare_rules({})).reason == "shape"


def test_baggage_missing_is_ok_none():
    def handler(request):
        return httpx.Response(200, json={"success": True, "baggage": None})

    res = asyncio.run(_client(handler).baggage({}))
    assert res.is_ok and res.value is None


def test_client_from_env(monkeypatch):
    monkeypatch.setenv("GATEWAY_BASE_URL", "http://gw.internal:9000/")
    assert get_gateway_client_from_env().base_url == "http://gw.internal:9000"
