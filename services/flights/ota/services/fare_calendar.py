from __future__ import annotations

import asyncio
import calendar
import logging
import math
import time
from dataclasses import dataclass
from datetime import date
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple, Union

from .extract import to_float
from .filters import cheapest_fare
from .models import Err, FareCalendarEntry, FareCalendarKey, Ok, Result, SearchParams
from .normalize import normalize_priced_itineraries

logger = logging.getLogger(__name__)

CALENDAR_TIMEOUT_S = 12.0
MONTH_BATCH_SIZE = 8
MONTH_TTL_SEC = 600

FareFetcher = Callable[[FareCalendarKey], Awaitable[Result]]
SearchFn = Callable[[SearchParams], Awaitable[Dict[str, Any]]]


def compact_amount(v: Optional[float]) -> Optional[str]:
    """1,500,000 -> "1.5m", 12,340 -> "12k", 950 -> "950"."""
    if v is None or not math.isfinite(v):
        return None
    # unit is chosen from the rounded value: 999,600 -> "1m"
    if round(v) < 1_000:
        return str(int(round(v)))
    if round(v / 1_000) < 1_000:
        return f"{round(v / 1_000)}k"
    s = f"{v / 1_000_000:.1f}".rstrip("0").rstrip(".")
    return f"{s}m"


@dataclass(frozen=True)
class DayCell:
    day: int
    label: Optional[str]
    # no entry for this day yet; render a loading placeholder
    pending: bool


class FareCalendarCache:
    """Per-day minimum fares for one lookup key at a time.

    Every load is tagged with a monotonically increasing request id; a
    response that is not for the latest id is dropped without touching state.
    A watchdog clears the loading flag after ``timeout`` seconds but never
    touches cached entries.
    """

    def __init__(self, fetcher: FareFetcher, timeout: float = CALENDAR_TIMEOUT_S) -> None:
        self._fetcher = fetcher
        self.timeout = timeout
        self.key: Optional[FareCalendarKey] = None
        self.entries: Dict[str, FareCalendarEntry] = {}
        self.min_amount: Optional[float] = None
        self.max_amount: Optional[float] = None
        self.loading = False
        self._request_id = 0
        self._watchdog: Optional[asyncio.TimerHandle] = None

    @property
    def state(self) -> str:
        if self.loading:
            return "loading"
        return "ready" if self.entries else "idle"

    @property
    def request_id(self) -> int:
        return self._request_id

    def _reset(self, key: FareCalendarKey) -> None:
        self.key = key
        self.entries = {}
        self.min_amount = None
        self.max_amount = None

    def _cancel_watchdog(self) -> None:
        if self._watchdog is not None:
            self._watchdog.cancel()
            self._watchdog = None

    def _on_timeout(self, req_id: int) -> None:
        if req_id == self._request_id and self.loading:
            logger.debug("fare calendar request %s timed out after %ss", req_id, self.timeout)
            self.loading = False
        self._watchdog = None

    def _rebuild(self, entries: Iterable[FareCalendarEntry]) -> None:
        fresh: Dict[str, FareCalendarEntry] = {}
        for e in entries:
            if e.date:
                fresh[e.date] = e
        self.entries = fresh
        amounts = [e.amount for e in fresh.values() if e.amount is not None and math.isfinite(e.amount)]
        if amounts:
            self.min_amount = min(amounts)
            self.max_amount = max(amounts)
        else:
            self.min_amount = None
            self.max_amount = None

    async def load(self, key: FareCalendarKey) -> bool:
        """Fetch fares for ``key``. Returns True when the response was applied."""
        if key != self.key:
            self._reset(key)

        self._request_id += 1
        req_id = self._request_id
        self.loading = True
        self._cancel_watchdog()
        self._watchdog = asyncio.get_running_loop().call_later(self.timeout, self._on_timeout, req_id)

        try:
            result = await self._fetcher(key)
        except Exception as e:
            result = Err("transport", str(e))

        if req_id != self._request_id:
            logger.debug("discarding stale fare calendar response %s (current %s)", req_id, self._request_id)
            return False

        self._cancel_watchdog()
        self.loading = False
        if not result.is_ok:
            logger.debug("fare calendar fetch failed: %s %s", result.reason, result.detail or "")
            return False

        self._rebuild(result.value)
        return True

    def lookup(self, day: Union[str, date]) -> Optional[FareCalendarEntry]:
        return self.entries.get(day.isoformat() if isinstance(day, date) else str(day))

    def day_cell(self, day: Union[str, date]) -> DayCell:
        d = day if isinstance(day, date) else date.fromisoformat(str(day))
        entry = self.lookup(d)
        if entry is None:
            return DayCell(day=d.day, label=None, pending=True)
        return DayCell(day=d.day, label=compact_amount(entry.amount) or "—", pending=False)


# ------------------------------------------------------------
# Month builder (fare-calendar endpoint)
# ------------------------------------------------------------
def month_dates(month: str) -> List[str]:
    """Every ISO date of a YYYY-MM month."""
    y_str, m_str = month.split("-", 1)
    year, mon = int(y_str), int(m_str)
    if not 1 <= mon <= 12:
        raise ValueError(f"Invalid month: {month}")
    days = calendar.monthrange(year, mon)[1]
    return [date(year, mon, d).isoformat() for d in range(1, days + 1)]


def min_fare(resp: Any) -> Optional[Tuple[float, str]]:
    """(amount, currency) of the cheapest priced itinerary, or None."""
    offers = normalize_priced_itineraries(resp)
    amount = cheapest_fare(offers)
    if amount is None:
        return None
    currency = next(o.pricing.currency for o in offers if o.total_fare == amount)
    return amount, currency


async def build_month_fares(
    search: SearchFn,
    origin: str,
    destination: str,
    month: str,
    adults: int = 1,
    cabin: str = "Economy",
    batch_size: int = MONTH_BATCH_SIZE,
) -> List[FareCalendarEntry]:
    """One one-way search per day of ``month``, ``batch_size`` at a time.

    A day whose search fails or returns nothing gets ``amount=None``.
    """

    async def _one(day: str) -> FareCalendarEntry:
        params = SearchParams(origin=origin, destination=destination, departure_date=day, adults=adults, cabin=cabin)
        try:
            found = min_fare(await search(params))
        except Exception as e:
            logger.debug("fare calendar day %s failed: %s", day, e)
            found = None
        if not found:
            return FareCalendarEntry(date=day, amount=None, currency=None)
        return FareCalendarEntry(date=day, amount=found[0], currency=found[1])

    dates = month_dates(month)
    out: List[FareCalendarEntry] = []
    for i in range(0, len(dates), batch_size):
        out.extend(await asyncio.gather(*(_one(d) for d in dates[i : i + batch_size])))
    return out


class MonthFareStore:
    """In-process TTL cache for built months."""

    def __init__(self, ttl_sec: float = MONTH_TTL_SEC) -> None:
        self.ttl_sec = ttl_sec
        self._items: Dict[Tuple[Any, ...], Dict[str, Any]] = {}

    @staticmethod
    def key(origin: str, destination: str, month: str, cabin: str, adults: int) -> Tuple[Any, ...]:
        return (origin.upper(), destination.upper(), month, cabin.lower(), int(adults))

    def get(self, key: Tuple[Any, ...]) -> Optional[List[FareCalendarEntry]]:
        item = self._items.get(key)
        if not item:
            return None
        if (time.time() - float(item.get("ts") or 0)) > self.ttl_sec:
            self._items.pop(key, None)
            return None
        return item.get("value")

    def set(self, key: Tuple[Any, ...], value: List[FareCalendarEntry]) -> None:
        now = time.time()
        for k in [k for k, item in self._items.items() if (now - float(item.get("ts") or 0)) > self.ttl_sec]:
            self._items.pop(k, None)
        self._items[key] = {"ts": now, "value": value}

    def __len__(self) -> int:
        return len(self._items)

    def clear(self) -> None:
        self._items.clear()


def entries_from_payload(payload: Any) -> Result:
    """Parse a fare-calendar endpoint body ``{"fares": [...]}``."""
    if not isinstance(payload, dict):
        return Err("shape", "fare calendar response is not an object")
    if payload.get("success") is False:
        return Err("provider", str(payload.get("error") or "fare calendar failed"))
    fares = payload.get("fares")
    if not isinstance(fares, list):
        return Err("shape", "fare calendar response has no fares")
    out: List[FareCalendarEntry] = []
    for f in fares:
        if not isinstance(f, dict) or not f.get("date"):
            continue
        amount = to_float(f.get("amount"))
        out.append(
            FareCalendarEntry(
                date=str(f["date"]),
                amount=amount,
                currency=f.get("currency") if amount is not None else None,
            )
        )
    return Ok(out)
