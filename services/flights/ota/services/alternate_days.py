from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from typing import Optional, Tuple

from .fare_calendar import SearchFn, min_fare
from .models import SearchParams, SearchSegment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdjacentFares:
    previous: Optional[float] = None
    next: Optional[float] = None
    currency: Optional[str] = None
    # a side's search raised; the result is worth retrying
    failed: bool = field(default=False, compare=False)


def _shift(d: Optional[str], days: int) -> Optional[str]:
    if not d:
        return d
    return (date.fromisoformat(d) + timedelta(days=days)).isoformat()


def shift_search(params: SearchParams, days: int) -> SearchParams:
    """Move every date of the search by ``days``; multi-city segments move together."""
    return replace(
        params,
        departure_date=_shift(params.departure_date, days),
        return_date=_shift(params.return_date, days),
        segments=tuple(
            SearchSegment(s.origin, s.destination, _shift(s.departure_date, days)) for s in params.segments
        ),
    )


def search_signature(params: SearchParams) -> Tuple:
    return (
        params.origin.upper(),
        params.destination.upper(),
        params.departure_date,
        params.return_date,
        params.trip_type,
        tuple((s.origin.upper(), s.destination.upper(), s.departure_date) for s in params.segments),
        params.cabin.lower(),
        (params.adults, params.children, params.kids, params.infants),
    )


async def _cheapest_on(search: SearchFn, params: SearchParams) -> Tuple[Optional[Tuple[float, str]], bool]:
    """(cheapest, failed) for one shifted search."""
    try:
        return min_fare(await search(params)), False
    except Exception as e:
        logger.debug("alternate-day search for %s failed: %s", params.departure_date, e)
        return None, True


async def fetch_adjacent_fares(params: SearchParams, search: SearchFn) -> AdjacentFares:
    """Cheapest total one day before and one day after, searched concurrently.

    Each side is independent: an empty or failed search only blanks its own side.
    """
    (prev, prev_failed), (nxt, nxt_failed) = await asyncio.gather(
        _cheapest_on(search, shift_search(params, -1)),
        _cheapest_on(search, shift_search(params, 1)),
    )
    currency = (prev or nxt or (None, None))[1]
    return AdjacentFares(
        previous=prev[0] if prev else None,
        next=nxt[0] if nxt else None,
        currency=currency,
        failed=prev_failed or nxt_failed,
    )


class AdjacentDayPrefetcher:
    """Re-runs the adjacent-day searches only when the search itself changed.

    Callers asking for the same search while it is in flight share its task.
    A result with a failed side is searched again on the next refresh.
    """

    def __init__(self, search: SearchFn) -> None:
        self._search = search
        self._signature: Optional[Tuple] = None
        self._task: Optional[asyncio.Task] = None
        self.fares = AdjacentFares()

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def _needs_retry(self) -> bool:
        task = self._task
        if task is None:
            return True
        if not task.done():
            return False
        return task.cancelled() or task.result().failed

    async def refresh(self, params: SearchParams) -> AdjacentFares:
        sig = search_signature(params)
        if sig != self._signature or self._needs_retry():
            self._signature = sig
            self.fares = AdjacentFares()
            self._task = asyncio.create_task(fetch_adjacent_fares(params, self._search))
        task = self._task
        fares = await task
        # a newer refresh may have started while we were waiting
        if task is self._task:
            self.fares = fares
        return fares
