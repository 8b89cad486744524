from __future__ import annotations

import logging
import re
from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from services.flights.ota.services.alternate_days import fetch_adjacent_fares
from services.flights.ota.services.fare_calendar import MonthFareStore, build_month_fares, month_dates
from services.flights.ota.services.fare_details import extract_baggage, fare_rules_summary
from services.flights.ota.services.filters import build_result_view
from services.flights.ota.services.mock_data import demo_search
from services.flights.ota.services.models import SearchError, SearchParams, SearchSegment
from services.flights.ota.services.normalize import offer_to_dict
from services.flights.ota.services.sabre_client import get_client_from_env, search_offers
from services.gateway.flights_utils import _demo_mode
from services.gateway.pricing_store import ait_policy

logger = logging.getLogger(__name__)

router = APIRouter()

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_MONTH_RE = re.compile(r"^\d{4}-\d{2}$")
_MONTH_FARES = MonthFareStore()


# ------------------------------------------------------------
# Models
# ------------------------------------------------------------
class Travellers(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    adults: int = Field(1, ge=0)
    children: int = Field(0, ge=0)
    kids: int = Field(0, ge=0)
    infants: int = Field(0, ge=0)
    cabin: str = Field("Economy", alias="class")


class SegmentIn(BaseModel):
    origin: str
    destination: str
    departureDate: str


class FlightSearchRequest(BaseModel):
    origin: str = ""
    destination: str = ""
    departureDate: str = ""
    returnDate: Optional[str] = None
    passengers: int = Field(1, ge=1)
    tripType: str = Field("oneway")
    segments: list[SegmentIn] = Field(default_factory=list)
    travellers: Optional[Travellers] = None
    sortOption: str = Field("cheapest")
    filterStops: str = Field("all")
    filterAirlines: list[str] = Field(default_factory=list)


class PricingInfoRequest(BaseModel):
    pricingInfo: Optional[Dict[str, Any]] = None


# ------------------------------------------------------------
# Helpers
# ------------------------------------------------------------
def _check_date(name: str, v: Optional[str]) -> None:
    if v and not _DATE_RE.match(v):
        raise HTTPException(status_code=400, detail=f"Invalid {name} format. Must be YYYY-MM-DD")


def _to_params(req: FlightSearchRequest) -> SearchParams:
    trip_type = (req.tripType or "oneway").strip().lower()
    segments = tuple(SearchSegment(s.origin, s.destination, s.departureDate) for s in req.segments)
    origin = req.origin or (segments[0].origin if segments else "")
    destination = req.destination or (segments[-1].destination if segments else "")
    departure = req.departureDate or (segments[0].departure_date if segments else "")

    if not origin or not destination or not departure:
        raise HTTPException(status_code=400, detail="Missing required fields: origin, destination, departureDate")
    _check_date("departureDate", departure)
    _check_date("returnDate", req.returnDate)
    for s in segments:
        _check_date("segment departureDate", s.departure_date)

    trav = req.travellers or Travellers(adults=req.passengers)
    return SearchParams(
        origin=origin.upper(),
        destination=destination.upper(),
        departure_date=departure,
        return_date=req.returnDate or None,
        trip_type=trip_type,
        segments=segments,
        adults=trav.adults,
        children=trav.children,
        kids=trav.kids,
        infants=trav.infants,
        cabin=trav.cabin or "Economy",
    )


def _search_fn():
    if _demo_mode():
        return demo_search
    client = get_client_from_env()
    if client is None:
        return demo_search
    return client.search


# ------------------------------------------------------------
# Routes
# ------------------------------------------------------------
@router.post("/api/air-ticketing/flight-search")
async def flight_search(req: FlightSearchRequest):
    params = _to_params(req)
    try:
        offers = await search_offers(_search_fn(), params)
    except SearchError as e:
        return JSONResponse(
            {"success": False, "code": e.kind, "error": e.message},
            status_code=e.status_code,
        )

    try:
        view = build_result_view(offers, req.filterStops, req.filterAirlines, req.sortOption)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    policy = ait_policy()
    fastest = None
    if view.fastest:
        fastest = {"duration_mins": view.fastest[0], "total_fare": view.fastest[1]}
    return {
        "success": True,
        "offers": [offer_to_dict(o, policy, cheapest=view.cheapest) for o in view.offers],
        "meta": {
            "count": len(view.offers),
            "total": view.total,
            "cheapest": view.cheapest,
            "fastest": fastest,
            "airlines": view.airlines,
            "stops": view.stops,
        },
    }


@router.post("/api/air-ticketing/alternate-days")
async def alternate_days(req: FlightSearchRequest):
    params = _to_params(req)
    fares = await fetch_adjacent_fares(params, _search_fn())
    return {"success": True, "previous": fares.previous, "next": fares.next, "currency": fares.currency}


@router.get("/api/air-ticketing/fare-calendar")
async def fare_calendar(
    origin: str = "",
    destination: str = "",
    month: str = "",
    adults: int = 1,
    cabin: str = "Economy",
):
    if not origin or not destination or not month:
        return JSONResponse({"success": False, "error": "origin, destination, month required"}, status_code=400)
    if not _MONTH_RE.match(month):
        return JSONResponse({"success": False, "error": "month must be YYYY-MM"}, status_code=400)
    try:
        month_dates(month)
    except ValueError as e:
        return JSONResponse({"success": False, "error": str(e)}, status_code=400)

    key = MonthFareStore.key(origin, destination, month, cabin, adults)
    fares = _MONTH_FARES.get(key)
    if fares is None:
        fares = await build_month_fares(
            _search_fn(), origin.upper(), destination.upper(), month, adults=max(1, adults), cabin=cabin
        )
        _MONTH_FARES.set(key, fares)

    return {
        "success": True,
        "origin": origin.upper(),
        "destination": destination.upper(),
        "month": month,
        "fares": [{"date": f.date, "amount": f.amount, "currency": f.currency} for f in fares],
    }


@router.post("/api/air-ticketing/baggage")
async def baggage(req: PricingInfoRequest):
    if not req.pricingInfo:
        raise HTTPException(status_code=400, detail="pricingInfo required")
    return {"success": True, "baggage": extract_baggage(req.pricingInfo)}


@router.post("/api/air-ticketing/fare-rules")
async def fare_rules(req: PricingInfoRequest):
    if not req.pricingInfo:
        raise HTTPException(status_code=400, detail="pricingInfo required")
    return {"success": True, **fare_rules_summary(req.pricingInfo)}
