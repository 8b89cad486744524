from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .models import FlightOffer

STOP_OPTIONS = ("all", "direct", "one", "multi")
SORT_OPTIONS = ("cheapest", "fastest")


def _stop_matches(stops: int, option: str) -> bool:
    if option == "all":
        return True
    if option == "direct":
        return stops == 0
    if option == "one":
        return stops == 1
    if option == "multi":
        return stops >= 2
    raise ValueError(f"Unknown stop filter: {option}")


def _normalize_codes(airlines: Optional[Iterable[str]]) -> frozenset:
    return frozenset(str(c).strip().upper() for c in (airlines or ()) if str(c).strip())


def filter_offers(
    offers: Sequence[FlightOffer],
    stops: str = "all",
    airlines: Optional[Iterable[str]] = None,
) -> List[FlightOffer]:
    """Stop and carrier filters, as a conjunction. An empty carrier set passes everything."""
    stops = (stops or "all").strip().lower()
    if stops not in STOP_OPTIONS:
        raise ValueError(f"Unknown stop filter: {stops}")
    selected = _normalize_codes(airlines)
    out = []
    for o in offers:
        if not _stop_matches(o.stop_count, stops):
            continue
        if selected and (o.airline_code or "").upper() not in selected:
            continue
        out.append(o)
    return out


def _fastest_key(o: FlightOffer) -> Tuple[bool, int]:
    mins = o.elapsed_minutes
    return (mins <= 0, mins)


def sort_offers(offers: Sequence[FlightOffer], order: str = "cheapest") -> List[FlightOffer]:
    order = (order or "cheapest").strip().lower()
    if order == "cheapest":
        return sorted(offers, key=lambda o: o.total_fare)
    if order == "fastest":
        # unknown elapsed time (0) goes last
        return sorted(offers, key=_fastest_key)
    raise ValueError(f"Unknown sort option: {order}")


def cheapest_fare(offers: Sequence[FlightOffer]) -> Optional[float]:
    if not offers:
        return None
    return min(o.total_fare for o in offers)


def is_cheapest(offer: FlightOffer, all_offers: Sequence[FlightOffer]) -> bool:
    return offer.total_fare == cheapest_fare(all_offers)


def fastest_stat(offers: Sequence[FlightOffer]) -> Optional[Tuple[int, float]]:
    """(elapsed minutes, fare) of the fastest offer with a known duration."""
    known = [o for o in offers if o.elapsed_minutes > 0]
    if not known:
        return None
    best = min(known, key=_fastest_key)
    return best.elapsed_minutes, best.total_fare


def airline_facets(offers: Sequence[FlightOffer]) -> Dict[str, int]:
    return dict(Counter(o.airline_code for o in offers if o.airline_code))


def stop_facets(offers: Sequence[FlightOffer]) -> Dict[str, int]:
    out = {"direct": 0, "one": 0, "multi": 0}
    for o in offers:
        if o.stop_count == 0:
            out["direct"] += 1
        elif o.stop_count == 1:
            out["one"] += 1
        else:
            out["multi"] += 1
    return out


@dataclass(frozen=True)
class ResultView:
    offers: List[FlightOffer]
    total: int
    cheapest: Optional[float]
    fastest: Optional[Tuple[int, float]]
    airlines: Dict[str, int] = field(default_factory=dict)
    stops: Dict[str, int] = field(default_factory=dict)

    def is_cheapest(self, offer: FlightOffer) -> bool:
        return self.cheapest is not None and offer.total_fare == self.cheapest


def build_result_view(
    offers: Sequence[FlightOffer],
    stops: str = "all",
    airlines: Optional[Iterable[str]] = None,
    order: str = "cheapest",
) -> ResultView:
    """Filtered and sorted view over ``offers``.

    Cheapest and facets describe the full list so they do not move with the
    applied filters; the fastest statistic describes the visible offers.
    """
    visible = sort_offers(filter_offers(offers, stops, airlines), order)
    return ResultView(
        offers=visible,
        total=len(offers),
        cheapest=cheapest_fare(offers),
        fastest=fastest_stat(visible),
        airlines=airline_facets(offers),
        stops=stop_facets(offers),
    )
