from __future__ import annotations

import pytest


def _segment(dep, arr, dep_dt, arr_dt, airline="BG", flight="101", seats=None, baggage=None):
    seg = {
        "DepartureDateTime": dep_dt,
        "ArrivalDateTime": arr_dt,
        "FlightNumber": flight,
        "ResBookDesigCode": "Y",
        "DepartureAirport": {"LocationCode": dep},
        "ArrivalAirport": {"LocationCode": arr},
        "MarketingAirline": {"Code": airline},
        "OperatingAirline": {"Code": airline},
        "Equipment": [{"AirEquipType": "738"}],
    }
    ext = {}
    if seats is not None:
        ext["SeatsRemaining"] = {"Number": seats}
    if baggage is not None:
        ext["Baggage"] = baggage
    if ext:
        seg["TPA_Extensions"] = ext
    return seg


def _pricing(total=1000.0, taxes=None, currency="BDT", extra=None):
    p = {
        "ItinTotalFare": {
            "BaseFare": {"Amount": total - sum(float(t.get("Amount") or 0) for t in (taxes or [])), "CurrencyCode": currency},
            "TotalFare": {"Amount": total, "CurrencyCode": currency},
        },
        "PTC_FareBreakdowns": {
            "PTC_FareBreakdown": [{"PassengerFare": {"Taxes": {"Tax": taxes or []}}}],
        },
    }
    if extra:
        p.update(extra)
    return p


def _offer(legs, total=1000.0, taxes=None, elapsed=None, pricing="default", airline=None):
    """legs: list of segment lists."""
    options = []
    for i, segs in enumerate(legs):
        leg = {"FlightSegment": segs}
        if elapsed is not None:
            leg["ElapsedTime"] = elapsed[i] if isinstance(elapsed, (list, tuple)) else elapsed
        options.append(leg)
    raw = {"AirItinerary": {"OriginDestinationOptions": {"OriginDestinationOption": options}}}
    if pricing == "default":
        raw["AirItineraryPricingInfo"] = [_pricing(total, taxes)]
    elif pricing is not None:
        raw["AirItineraryPricingInfo"] = pricing
    return raw


def _direct(dep="DAC", arr="CXB", airline="BG", total=1000.0, elapsed=60, day="2026-03-01"):
    return _offer(
        [[_segment(dep, arr, f"{day}T10:00:00", f"{day}T11:00:00", airline=airline)]],
        total=total,
        elapsed=elapsed,
    )


def _response(*offers):
    return {"OTA_AirLowFareSearchRS": {"PricedItineraries": {"PricedItinerary": list(offers)}}}


@pytest.fixture
def make_segment():
    return _segment


@pytest.fixture
def make_pricing():
    return _pricing


@pytest.fixture
def make_offer():
    return _offer


@pytest.fixture
def make_direct():
    return _direct


@pytest.fixture
def make_response():
    return _response
