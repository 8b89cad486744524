from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from .extract import as_list, dig, first_present, to_float, to_int, to_text
from .models import Baggage, FlightOffer, Leg, PricingInfo, Segment, TaxLine
from .pricing import DEFAULT_AIT_POLICY, AitPolicy, compute_ait, fmt_money

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "BDT"

ITINERARY_PATHS = (
    "data.OTA_AirLowFareSearchRS.PricedItineraries.PricedItinerary",
    "OTA_AirLowFareSearchRS.PricedItineraries.PricedItinerary",
    "data.PricedItineraries.PricedItinerary",
    "pricedItineraries.pricedItinerary",
)
LEG_PATHS = (
    "AirItinerary.OriginDestinationOptions.OriginDestinationOption",
    "airItinerary.originDestinationOptions.originDestinationOption",
)
PRICING_PATHS = ("AirItineraryPricingInfo.0", "airItineraryPricingInfo.0")

_FARE_BREAKDOWN = "PTC_FareBreakdowns.PTC_FareBreakdown.0"
# some responses carry the breakdowns as a bare array
_FARE_BREAKDOWN_ARRAY = "PTC_FareBreakdowns.0"
_FARE_INFO = "FareInfos.FareInfo.0"

# Baggage: {side} is Checkin or Cabin
BAGGAGE_EXTENSION_PATHS = (
    "TPA_Extensions.Baggage.{side}",
    "FareInfo.0.TPA_Extensions.Baggage.{side}",
    _FARE_INFO + ".TPA_Extensions.Baggage.{side}",
    _FARE_BREAKDOWN + ".TPA_Extensions.Baggage.{side}",
    _FARE_BREAKDOWN_ARRAY + ".TPA_Extensions.Baggage.{side}",
)
BAGGAGE_INFORMATION_PATHS = (
    "TPA_Extensions.BaggageInformation",
    "FareInfo.0.TPA_Extensions.BaggageInformation",
    _FARE_INFO + ".TPA_Extensions.BaggageInformation",
    _FARE_BREAKDOWN + ".PassengerFare.TPA_Extensions.BaggageInformation",
    _FARE_BREAKDOWN_ARRAY + ".PassengerFare.TPA_Extensions.BaggageInformation",
)
CARRY_ON_PROVISIONS = {"B", "CABIN", "CARRYON", "CARRY_ON", "HAND"}


# ------------------------------------------------------------
# Small helpers
# ------------------------------------------------------------
def _parse_dt(dt: Any) -> Optional[datetime]:
    """
    Provider timestamps come as 2026-03-01T10:05:00, 2026-03-01T10:05:00+06:00
    or 2026-02-02T14:20:00.000+0300.
    """
    if not dt or not isinstance(dt, str):
        return None
    try:
        return datetime.fromisoformat(dt.strip())
    except ValueError:
        pass
    for fmt in ("%Y-%m-%dT%H:%M:%S.%f%z", "%Y-%m-%dT%H:%M:%S%z", "%Y-%m-%dT%H:%M"):
        try:
            return datetime.strptime(dt.strip(), fmt)
        except ValueError:
            continue
    return None


def _minutes_between(start: Any, end: Any) -> Optional[int]:
    d0 = _parse_dt(start)
    d1 = _parse_dt(end)
    if not d0 or not d1:
        return None
    if (d0.tzinfo is None) != (d1.tzinfo is None):
        d0 = d0.replace(tzinfo=None)
        d1 = d1.replace(tzinfo=None)
    return max(0, round((d1 - d0).total_seconds() / 60))


def fmt_duration(mins: Optional[int]) -> str:
    if not mins or mins <= 0:
        return "—"
    return f"{mins // 60}h {mins % 60}m"


def _num_text(v: Any) -> Optional[str]:
    n = to_float(v)
    if n is None or n <= 0:
        return None
    return str(int(n)) if n.is_integer() else f"{n:g}"


def _tri_state(obj: Any, *paths: str) -> Optional[bool]:
    for p in paths:
        v = dig(obj, p)
        if isinstance(v, bool):
            return v
        if isinstance(v, str):
            s = v.strip().upper()
            if s in ("TRUE", "Y", "YES"):
                return True
            if s in ("FALSE", "N", "NO"):
                return False
    return None


# ------------------------------------------------------------
# Raw structure access
# ------------------------------------------------------------
def priced_itineraries(resp: Any) -> List[Dict[str, Any]]:
    pis = first_present(resp, *ITINERARY_PATHS, default=[])
    return [pi for pi in as_list(pis) if isinstance(pi, dict)]


def raw_legs(raw: Any) -> List[Any]:
    return as_list(first_present(raw, *LEG_PATHS, default=[]))


def raw_leg_segments(leg: Any) -> List[Dict[str, Any]]:
    segs = first_present(leg, "FlightSegment", "flightSegment", default=[])
    return [s for s in as_list(segs) if isinstance(s, dict)]


def pricing_block(raw: Any) -> Optional[Dict[str, Any]]:
    p = first_present(raw, *PRICING_PATHS)
    return p if isinstance(p, dict) else None


# ------------------------------------------------------------
# Itinerary-level derivations (raw)
# ------------------------------------------------------------
def stop_count(raw: Any) -> int:
    return sum(max(0, len(raw_leg_segments(leg)) - 1) for leg in raw_legs(raw))


def elapsed_minutes(raw: Any) -> int:
    return sum(to_int(first_present(leg, "ElapsedTime", "elapsedTime")) or 0 for leg in raw_legs(raw))


def airline_code(raw: Any) -> Optional[str]:
    legs = raw_legs(raw)
    if not legs:
        return None
    segs = raw_leg_segments(legs[0])
    if not segs:
        return None
    return to_text(first_present(segs[0], "MarketingAirline.Code", "marketingAirline.code"))


def layover_label(segments: Sequence[Segment], sep: str = ", ") -> str:
    if len(segments) < 2:
        return "Direct"
    parts = []
    for cur, nxt in zip(segments, segments[1:]):
        mins = _minutes_between(cur.arr_dt, nxt.dep_dt)
        if mins is None:
            parts.append(f"at {cur.arr}")
        else:
            parts.append(f"{mins // 60}h {mins % 60}m at {cur.arr}")
    return sep.join(parts)


def _segment_seats(seg: Any) -> Optional[int]:
    return to_int(first_present(seg, "TPA_Extensions.SeatsRemaining.Number", "SeatsRemaining.Number"))


def seats_remaining(raw: Any) -> Optional[int]:
    for leg in raw_legs(raw):
        for seg in raw_leg_segments(leg):
            n = _segment_seats(seg)
            if n is not None:
                return n
    pricing = pricing_block(raw)
    return to_int(
        first_present(
            pricing,
            _FARE_INFO + ".TPA_Extensions.SeatsRemaining.Number",
            "FareInfo.0.TPA_Extensions.SeatsRemaining.Number",
            _FARE_BREAKDOWN + ".TPA_Extensions.SeatsRemaining.Number",
            _FARE_BREAKDOWN_ARRAY + ".TPA_Extensions.SeatsRemaining.Number",
        )
    )


# ------------------------------------------------------------
# Baggage
# ------------------------------------------------------------
def _allowance_text(item: Any) -> Optional[str]:
    allowance = dig(item, "Allowance.0") or item
    pieces = _num_text(first_present(allowance, "Pieces", "PieceCount"))
    if pieces:
        return f"{pieces} Pc"
    weight = _num_text(first_present(allowance, "Weight", "WeightLimit"))
    if weight:
        return f"{weight} Kg"
    return to_text(first_present(allowance, "Description", "Description1", default=None)) or to_text(
        first_present(item, "Description", "Provision")
    )


def _itemized_baggage(pricing: Any) -> Baggage:
    checkin: Optional[str] = None
    cabin: Optional[str] = None
    for item in as_list(first_present(pricing, *BAGGAGE_INFORMATION_PATHS)):
        if not isinstance(item, dict):
            continue
        text = _allowance_text(item)
        if not text:
            continue
        provision = (to_text(first_present(item, "ProvisionType", "Type")) or "").upper()
        if provision in CARRY_ON_PROVISIONS:
            cabin = cabin or text
        else:
            checkin = checkin or text
    return Baggage(checkin=checkin, cabin=cabin)


def _segment_baggage(seg: Any) -> Baggage:
    return Baggage(
        checkin=to_text(first_present(seg, "TPA_Extensions.Baggage.Checkin", "Baggage.Checkin")),
        cabin=to_text(first_present(seg, "TPA_Extensions.Baggage.Cabin", "Baggage.Cabin")),
    )


def baggage_allowance(pricing: Any, segments: Sequence[Any] = ()) -> Baggage:
    """Resolve checked and cabin allowance independently.

    Order: pricing extensions, itemized BaggageInformation, then the first
    segment that carries its own baggage extension.
    """
    checkin = to_text(first_present(pricing, *(p.format(side="Checkin") for p in BAGGAGE_EXTENSION_PATHS)))
    cabin = to_text(first_present(pricing, *(p.format(side="Cabin") for p in BAGGAGE_EXTENSION_PATHS)))

    if not checkin or not cabin:
        itemized = _itemized_baggage(pricing)
        checkin = checkin or itemized.checkin
        cabin = cabin or itemized.cabin

    for seg in segments:
        if checkin and cabin:
            break
        sb = seg.baggage if isinstance(seg, Segment) else _segment_baggage(seg)
        checkin = checkin or sb.checkin
        cabin = cabin or sb.cabin

    return Baggage(checkin=checkin, cabin=cabin)


def baggage_label(baggage: Baggage) -> Optional[str]:
    return baggage.label


# ------------------------------------------------------------
# Taxes
# ------------------------------------------------------------
def tax_lines(pricing: Any) -> List[TaxLine]:
    taxes = first_present(
        pricing,
        _FARE_BREAKDOWN + ".PassengerFare.Taxes.Tax",
        _FARE_BREAKDOWN_ARRAY + ".PassengerFare.Taxes.Tax",
        "ItinTotalFare.Taxes.Tax",
        default=[],
    )
    fallback_ccy = (
        to_text(
            first_present(
                pricing,
                _FARE_BREAKDOWN + ".PassengerFare.Taxes.TotalTax.CurrencyCode",
                _FARE_BREAKDOWN_ARRAY + ".PassengerFare.Taxes.TotalTax.CurrencyCode",
                "ItinTotalFare.Taxes.TotalTax.CurrencyCode",
            )
        )
        or to_text(first_present(pricing, "ItinTotalFare.TotalFare.CurrencyCode"))
        or DEFAULT_CURRENCY
    )
    out: List[TaxLine] = []
    for t in as_list(taxes):
        if not isinstance(t, dict):
            continue
        amount = to_float(first_present(t, "Amount", "amount"))
        if amount is None or amount <= 0:
            continue
        out.append(
            TaxLine(
                code=to_text(first_present(t, "TaxCode", "Code", "code")) or "",
                amount=amount,
                currency=to_text(first_present(t, "CurrencyCode", "currencyCode")) or fallback_ccy,
                description=to_text(first_present(t, "TaxName", "Description", "content")),
            )
        )
    return out


# ------------------------------------------------------------
# Offer normalization
# ------------------------------------------------------------
def _normalize_segment(s: Dict[str, Any]) -> Segment:
    return Segment(
        dep=to_text(first_present(s, "DepartureAirport.LocationCode", "departureAirport.locationCode")) or "",
        arr=to_text(first_present(s, "ArrivalAirport.LocationCode", "arrivalAirport.locationCode")) or "",
        dep_dt=to_text(first_present(s, "DepartureDateTime", "departureDateTime")) or "",
        arr_dt=to_text(first_present(s, "ArrivalDateTime", "arrivalDateTime")) or "",
        marketing_airline=to_text(first_present(s, "MarketingAirline.Code", "marketingAirline.code")),
        operating_airline=to_text(first_present(s, "OperatingAirline.Code", "operatingAirline.code")),
        flight=to_text(first_present(s, "FlightNumber", "flightNumber", "MarketingAirline.FlightNumber")) or "",
        booking_class=to_text(first_present(s, "ResBookDesigCode", "resBookDesigCode")) or "",
        equipment=to_text(first_present(s, "Equipment.AirEquipType", "equipment.airEquipType")) or "",
        seats_remaining=_segment_seats(s),
        baggage=_segment_baggage(s),
    )


def _normalize_pricing(pricing: Dict[str, Any], segments: Sequence[Segment]) -> Optional[PricingInfo]:
    total = to_float(
        first_present(
            pricing,
            "ItinTotalFare.TotalFare.Amount",
            "ItinTotalFare.Amount",
            "itinTotalFare.0.totalFare.amount",
            "FareInfo.0.TPA_Extensions.TotalFare.Amount",
        )
    )
    if total is None:
        return None

    taxes = tax_lines(pricing)
    tax_total = to_float(
        first_present(
            pricing,
            "ItinTotalFare.Taxes.TotalTax.Amount",
            _FARE_BREAKDOWN + ".PassengerFare.Taxes.TotalTax.Amount",
            _FARE_BREAKDOWN_ARRAY + ".PassengerFare.Taxes.TotalTax.Amount",
        )
    )
    if tax_total is None and taxes:
        tax_total = sum(t.amount for t in taxes)

    return PricingInfo(
        currency=to_text(
            first_present(pricing, "ItinTotalFare.TotalFare.CurrencyCode", "itinTotalFare.0.totalFare.currencyCode")
        )
        or DEFAULT_CURRENCY,
        base_fare=to_float(first_present(pricing, "ItinTotalFare.BaseFare.Amount", "ItinTotalFare.EquivFare.Amount")),
        tax_total=tax_total,
        total_fare=total,
        taxes=tuple(taxes),
        baggage=baggage_allowance(pricing, segments),
        refundable=_refundable(pricing),
        fare_brand=to_text(
            first_present(
                pricing,
                _FARE_INFO + ".TPA_Extensions.Brand",
                "FareInfo.0.TPA_Extensions.Brand",
                "TPA_Extensions.FareBrand",
            )
        ),
        cabin=to_text(first_present(pricing, _FARE_INFO + ".TPA_Extensions.Cabin.Cabin", "FareInfo.0.TPA_Extensions.Cabin.Cabin")),
    )


def _refundable(pricing: Any) -> Optional[bool]:
    nonref = _tri_state(
        pricing,
        _FARE_BREAKDOWN + ".Endorsements.NonRefundableIndicator",
        _FARE_BREAKDOWN_ARRAY + ".Endorsements.NonRefundableIndicator",
        _FARE_BREAKDOWN + ".PassengerFare.NonRefundableInd",
        _FARE_BREAKDOWN_ARRAY + ".PassengerFare.NonRefundableInd",
    )
    if nonref is not None:
        return not nonref
    return _tri_state(pricing, "TPA_Extensions.Refundable", _FARE_INFO + ".TPA_Extensions.Refundable")


def normalize_offer(raw: Any, sequence_number: Optional[int] = None) -> Optional[FlightOffer]:
    """Build a FlightOffer, or None when the offer cannot be priced or flown."""
    if not isinstance(raw, dict):
        return None

    legs: List[Leg] = []
    for leg in raw_legs(raw):
        segs = raw_leg_segments(leg)
        if not segs:
            return None
        legs.append(
            Leg(
                segments=tuple(_normalize_segment(s) for s in segs),
                elapsed_minutes=to_int(first_present(leg, "ElapsedTime", "elapsedTime")),
            )
        )
    if not legs:
        return None

    pricing = pricing_block(raw)
    if pricing is None:
        return None
    all_segments = [s for leg in legs for s in leg.segments]
    info = _normalize_pricing(pricing, all_segments)
    if info is None:
        return None

    return FlightOffer(
        legs=tuple(legs),
        pricing=info,
        sequence_number=to_int(first_present(raw, "SequenceNumber", "sequenceNumber")) or sequence_number,
        seats_remaining=seats_remaining(raw),
        raw_pricing=pricing,
    )


def normalize_priced_itineraries(resp: Any) -> List[FlightOffer]:
    """
    Normalizes an OTA_AirLowFareSearchRS response into FlightOffers.
    Offers without legs, segments or a price are dropped.
    """
    out: List[FlightOffer] = []
    pis = priced_itineraries(resp)
    for idx, pi in enumerate(pis, start=1):
        offer = normalize_offer(pi, sequence_number=idx)
        if offer is None:
            continue
        out.append(offer)
    if len(out) < len(pis):
        logger.debug("dropped %d of %d itineraries during normalization", len(pis) - len(out), len(pis))
    return out


# ------------------------------------------------------------
# Display
# ------------------------------------------------------------
def stops_label(stops: int) -> str:
    if stops == 0:
        return "Non-stop"
    return "1 stop" if stops == 1 else f"{stops} stops"


def seats_label(seats: Optional[int]) -> str:
    if seats is None:
        return "—"
    return f"{seats} seat left" if seats == 1 else f"{seats} seats left"


def _segment_dict(s: Segment) -> Dict[str, Any]:
    return {
        "dep": s.dep,
        "arr": s.arr,
        "dep_dt": s.dep_dt,
        "arr_dt": s.arr_dt,
        "airline": s.marketing_airline,
        "operating_airline": s.operating_airline,
        "flight": s.flight,
        "class": s.booking_class,
        "equipment": s.equipment,
        "seats_remaining": s.seats_remaining,
        "duration": fmt_duration(_minutes_between(s.dep_dt, s.arr_dt)),
    }


def offer_display(offer: FlightOffer, policy: AitPolicy = DEFAULT_AIT_POLICY) -> Dict[str, Any]:
    p = offer.pricing
    ait = compute_ait(p.taxes, p.total_fare, policy)
    return {
        "duration": fmt_duration(offer.elapsed_minutes),
        "layovers": [layover_label(leg.segments) for leg in offer.legs],
        "stops_label": stops_label(offer.stop_count),
        "ait": round(ait, 2),
        "payable_total": round(p.total_fare + ait, 2),
        "payable_total_display": fmt_money(p.total_fare + ait),
        "baggage": baggage_label(p.baggage) or "—",
        "seats": seats_label(offer.seats_remaining),
    }


def offer_to_dict(
    offer: FlightOffer,
    policy: AitPolicy = DEFAULT_AIT_POLICY,
    cheapest: Optional[float] = None,
) -> Dict[str, Any]:
    p = offer.pricing
    return {
        "sequenceNumber": offer.sequence_number,
        "airline": offer.airline_code,
        "stops": offer.stop_count,
        "duration_mins": offer.elapsed_minutes,
        "seats_remaining": offer.seats_remaining,
        "legs": [
            {"elapsed_mins": leg.elapsed_minutes, "segments": [_segment_dict(s) for s in leg.segments]}
            for leg in offer.legs
        ],
        "pricing": {
            "currency": p.currency,
            "base_fare": p.base_fare,
            "tax_total": p.tax_total,
            "total_fare": p.total_fare,
            "taxes": [
                {"code": t.code, "amount": t.amount, "currency": t.currency, "description": t.description}
                for t in p.taxes
            ],
            "baggage": {"checkin": p.baggage.checkin, "cabin": p.baggage.cabin},
            "refundable": p.refundable,
            "fare_brand": p.fare_brand,
            "cabin": p.cabin,
        },
        "display": offer_display(offer, policy),
        "cheapest": cheapest is not None and p.total_fare == cheapest,
        "pricingInfo": offer.raw_pricing,
    }

