from __future__ import annotations

import random
from datetime import datetime, timedelta
from typing import Any, Dict, List

from .models import SearchParams

DEMO_AIRLINES = ("BG", "BS", "2A", "EK")


def _segment(dep: str, arr: str, dep_dt: datetime, minutes: int, airline: str, flight: int, seats: int) -> Dict[str, Any]:
    arr_dt = dep_dt + timedelta(minutes=minutes)
    return {
        "DepartureDateTime": dep_dt.strftime("%Y-%m-%dT%H:%M:%S"),
        "ArrivalDateTime": arr_dt.strftime("%Y-%m-%dT%H:%M:%S"),
        "FlightNumber": str(flight),
        "ResBookDesigCode": "Y",
        "ElapsedTime": minutes,
        "DepartureAirport": {"LocationCode": dep},
        "ArrivalAirport": {"LocationCode": arr},
        "MarketingAirline": {"Code": airline},
        "OperatingAirline": {"Code": airline, "FlightNumber": str(flight)},
        "Equipment": [{"AirEquipType": "738"}],
        "TPA_Extensions": {"SeatsRemaining": {"Number": seats, "BelowMin": False}},
    }


def _leg(rng: random.Random, origin: str, destination: str, day: str, airline: str, idx: int) -> Dict[str, Any]:
    base = datetime.strptime(day, "%Y-%m-%d") + timedelta(hours=6 + idx * 2)
    seats = rng.randint(1, 9)
    if idx % 3 == 2:
        first = _segment(origin, "DXB", base, 185, airline, 500 + idx, seats)
        second_dep = base + timedelta(minutes=185 + 95)
        second = _segment("DXB", destination, second_dep, 210, airline, 600 + idx, seats)
        return {"FlightSegment": [first, second], "ElapsedTime": 185 + 95 + 210}
    minutes = 60 + idx * 5
    return {"FlightSegment": [_segment(origin, destination, base, minutes, airline, 100 + idx, seats)], "ElapsedTime": minutes}


def _pricing(total: float, currency: str = "BDT") -> Dict[str, Any]:
    bd = 500.0
    ut = 300.0
    vat = round(total * 0.05, 2)
    base = round(total - bd - ut - vat, 2)
    return {
        "ItinTotalFare": {
            "BaseFare": {"Amount": base, "CurrencyCode": currency},
            "Taxes": {"TotalTax": {"Amount": bd + ut + vat, "CurrencyCode": currency}},
            "TotalFare": {"Amount": total, "CurrencyCode": currency},
        },
        "PTC_FareBreakdowns": {
            "PTC_FareBreakdown": [
                {
                    "PassengerTypeQuantity": {"Code": "ADT", "Quantity": 1},
                    "FareBasisCodes": {"FareBasisCode": [{"content": "YOW"}]},
                    "PassengerFare": {
                        "Taxes": {
                            "Tax": [
                                {"TaxCode": "BD", "Amount": bd, "CurrencyCode": currency},
                                {"TaxCode": "UT", "Amount": ut, "CurrencyCode": currency},
                                {"TaxCode": "VAT", "Amount": vat, "CurrencyCode": currency},
                            ],
                            "TotalTax": {"Amount": bd + ut + vat, "CurrencyCode": currency},
                        }
                    },
                }
            ]
        },
        "FareInfos": {
            "FareInfo": [
                {
                    "TPA_Extensions": {
                        "Cabin": {"Cabin": "Y"},
                        "Baggage": {"Checkin": "20 Kg", "Cabin": "7 Kg"},
                    }
                }
            ]
        },
    }


def generate_search_results(params: SearchParams) -> Dict[str, Any]:
    """
    Demo-only generator, used when no provider credentials are configured.
    Deterministic for a given search.
    """
    rng = random.Random(
        f"{params.origin}-{params.destination}-{params.departure_date}-{params.return_date}-"
        f"{params.trip_type}-{params.adults}-{params.children}-{params.kids}-{params.infants}"
    )

    if params.is_multi_city:
        directions = [(s.origin, s.destination, s.departure_date) for s in params.segments]
    else:
        directions = [(params.origin, params.destination, params.departure_date)]
        if params.return_date and params.trip_type != "oneway":
            directions.append((params.destination, params.origin, params.return_date))

    pax = max(1, params.passenger_count)
    itineraries: List[Dict[str, Any]] = []
    for i in range(8):
        airline = DEMO_AIRLINES[i % len(DEMO_AIRLINES)]
        legs = [_leg(rng, o, d, day, airline, i) for (o, d, day) in directions]
        total = float((8500 + i * 1250 + rng.randint(0, 40) * 25) * pax * len(directions))
        itineraries.append(
            {
                "SequenceNumber": i + 1,
                "AirItinerary": {"OriginDestinationOptions": {"OriginDestinationOption": legs}},
                "AirItineraryPricingInfo": [_pricing(total)],
            }
        )

    return {"OTA_AirLowFareSearchRS": {"PricedItineraries": {"PricedItinerary": itineraries}}}


async def demo_search(params: SearchParams) -> Dict[str, Any]:
    return generate_search_results(params)
