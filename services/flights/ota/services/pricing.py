from __future__ import annotations

import math
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional

from .models import TaxLine


@dataclass(frozen=True)
class AitPolicy:
    rate: float = 0.003
    excluded_codes: FrozenSet[str] = frozenset({"BD", "UT", "E5"})

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "AitPolicy":
        data = data if isinstance(data, dict) else {}
        try:
            rate = float(data.get("rate", cls.rate))
        except (TypeError, ValueError):
            rate = cls.rate
        if not math.isfinite(rate) or rate < 0:
            rate = cls.rate
        codes = data.get("excluded_codes")
        if not isinstance(codes, (list, tuple, set, frozenset)):
            codes = cls().excluded_codes
        return cls(rate=rate, excluded_codes=frozenset(str(c).strip().upper() for c in codes if str(c).strip()))

    def to_dict(self) -> dict:
        return {"rate": self.rate, "excluded_codes": sorted(self.excluded_codes)}


DEFAULT_AIT_POLICY = AitPolicy()


def excluded_tax_sum(taxes: Iterable[TaxLine], policy: AitPolicy = DEFAULT_AIT_POLICY) -> float:
    """Sum of the tax lines that do not count towards the AIT base.

    Duplicate codes are summed.
    """
    total = 0.0
    for t in taxes:
        if (t.code or "").strip().upper() in policy.excluded_codes:
            total += t.amount
    return total


def compute_ait(
    taxes: Iterable[TaxLine],
    total_fare: float,
    policy: AitPolicy = DEFAULT_AIT_POLICY,
    penalties: float = 0.0,
) -> float:
    """AIT = (total fare - penalties - excluded taxes) * rate, never negative."""
    try:
        base = float(total_fare) - penalties - excluded_tax_sum(taxes, policy)
        ait = base * policy.rate
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(ait) or ait < 0:
        return 0.0
    return ait


def payable_total(
    taxes: Iterable[TaxLine],
    total_fare: float,
    policy: AitPolicy = DEFAULT_AIT_POLICY,
) -> float:
    return float(total_fare) + compute_ait(taxes, total_fare, policy)


def fmt_money(v: Optional[float]) -> str:
    """Commas, 0 or 2 decimals."""
    if v is None:
        return "—"
    if abs(v - round(v)) < 1e-9:
        return f"{int(round(v)):,}"
    return f"{v:,.2f}"
