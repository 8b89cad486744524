from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Generic, Optional, Tuple, TypeVar, Union

T = TypeVar("T")


# ------------------------------------------------------------
# Result types
# ------------------------------------------------------------
@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def is_ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    reason: str
    detail: Optional[str] = None

    @property
    def is_ok(self) -> bool:
        return False


Result = Union[Ok[T], Err]


class SearchError(Exception):
    """Primary search failure.

    kind is "no_results" when the provider answered with zero itineraries,
    "transport" for network / HTTP / decoding failures.
    """

    def __init__(self, kind: str, message: str, status_code: int = 502) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code


# ------------------------------------------------------------
# Canonical offer
# ------------------------------------------------------------
@dataclass(frozen=True)
class Baggage:
    checkin: Optional[str] = None
    cabin: Optional[str] = None

    @property
    def label(self) -> Optional[str]:
        if self.checkin and self.cabin:
            return f"{self.checkin} • {self.cabin}"
        return self.checkin or self.cabin or None


@dataclass(frozen=True)
class TaxLine:
    code: str
    amount: float
    currency: str
    description: Optional[str] = None


@dataclass(frozen=True)
class Segment:
    dep: str
    arr: str
    dep_dt: str
    arr_dt: str
    marketing_airline: Optional[str]
    operating_airline: Optional[str]
    flight: str
    booking_class: str
    equipment: str
    seats_remaining: Optional[int] = None
    baggage: Baggage = field(default_factory=Baggage)


@dataclass(frozen=True)
class Leg:
    segments: Tuple[Segment, ...]
    elapsed_minutes: Optional[int] = None

    @property
    def stop_count(self) -> int:
        return max(0, len(self.segments) - 1)


@dataclass(frozen=True)
class PricingInfo:
    currency: str
    base_fare: Optional[float]
    tax_total: Optional[float]
    total_fare: float
    taxes: Tuple[TaxLine, ...] = ()
    baggage: Baggage = field(default_factory=Baggage)
    refundable: Optional[bool] = None
    fare_brand: Optional[str] = None
    cabin: Optional[str] = None


@dataclass(frozen=True)
class FlightOffer:
    legs: Tuple[Leg, ...]
    pricing: PricingInfo
    sequence_number: Optional[int] = None
    seats_remaining: Optional[int] = None
    # kept for lazy baggage / fare-rule lookups; not part of the value
    raw_pricing: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def stop_count(self) -> int:
        return sum(leg.stop_count for leg in self.legs)

    @property
    def elapsed_minutes(self) -> int:
        return sum(leg.elapsed_minutes or 0 for leg in self.legs)

    @property
    def airline_code(self) -> Optional[str]:
        if not self.legs or not self.legs[0].segments:
            return None
        return self.legs[0].segments[0].marketing_airline or None

    @property
    def total_fare(self) -> float:
        return self.pricing.total_fare

    def with_pricing(self, **changes: Any) -> "FlightOffer":
        return replace(self, pricing=replace(self.pricing, **changes))


# ------------------------------------------------------------
# Search parameters
# ------------------------------------------------------------
@dataclass(frozen=True)
class SearchSegment:
    origin: str
    destination: str
    departure_date: str


@dataclass(frozen=True)
class SearchParams:
    origin: str
    destination: str
    departure_date: str
    return_date: Optional[str] = None
    trip_type: str = "oneway"
    segments: Tuple[SearchSegment, ...] = ()
    adults: int = 1
    children: int = 0
    kids: int = 0
    infants: int = 0
    cabin: str = "Economy"

    @property
    def passenger_count(self) -> int:
        return self.adults + self.children + self.kids + self.infants

    @property
    def is_multi_city(self) -> bool:
        return self.trip_type == "multicity" and bool(self.segments)


# ------------------------------------------------------------
# Fare calendar
# ------------------------------------------------------------
@dataclass(frozen=True)
class FareCalendarEntry:
    date: str
    amount: Optional[float]
    currency: Optional[str] = None


@dataclass(frozen=True)
class FareCalendarKey:
    origin: str
    destination: str
    month: str  # YYYY-MM
    passengers: int = 1
    cabin: str = "Economy"
