from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from .extract import as_list, first_present, to_text
from .models import Err, FlightOffer, Ok, Result
from .normalize import baggage_allowance, baggage_label

logger = logging.getLogger(__name__)

RULE_PATHS = ("FareInfo.0.TPA_Extensions.Rules", "FareInfos.FareInfo.0.TPA_Extensions.Rules", "TPA_Extensions.Rules")
NON_REFUNDABLE_MARKERS = ("NON REFUNDABLE", "NON-REFUNDABLE", "NOT REFUNDABLE", "NONREFUNDABLE", "NONREF")


def extract_baggage(pricing: Any) -> Optional[str]:
    """Baggage label from a single pricing block (no segment data available)."""
    return baggage_label(baggage_allowance(pricing))


def extract_rules(pricing: Any) -> Dict[str, Optional[str]]:
    rules = first_present(pricing, *RULE_PATHS, default={})
    return {
        "cancellation": to_text(first_present(rules, "Cancellation")),
        "dateChange": to_text(first_present(rules, "DateChange")),
        "noShow": to_text(first_present(rules, "NoShow")),
    }


def fare_basis_codes(pricing: Any) -> List[str]:
    codes = first_present(
        pricing,
        "PTC_FareBreakdowns.PTC_FareBreakdown.0.FareBasisCodes.FareBasisCode",
        "PTC_FareBreakdowns.0.FareBasisCodes.FareBasisCode",
        default=[],
    )
    out = []
    for c in as_list(codes):
        text = c if isinstance(c, str) else to_text(first_present(c, "content", "FareBasisCode"))
        if text:
            out.append(text)
    return out


def infer_refundable(rules: Dict[str, Optional[str]], basis_codes: List[str]) -> Tuple[Optional[bool], Optional[str]]:
    """(refundable, source) from rule text first, then fare-basis codes."""
    txt = " ".join(v for v in rules.values() if v).upper()
    if any(m in txt for m in NON_REFUNDABLE_MARKERS):
        return False, "rules"
    if "REFUNDABLE" in txt:
        return True, "rules"
    if any("NR" in c.upper() for c in basis_codes):
        return False, "farebasis"
    return None, None


def fare_rules_summary(pricing: Any) -> Dict[str, Any]:
    rules = extract_rules(pricing)
    codes = fare_basis_codes(pricing)
    refundable, source = infer_refundable(rules, codes)
    return {
        "rules": rules,
        "fareBasisCodes": codes,
        "inferredRefundable": refundable,
        "inferredSource": source,
    }


# ------------------------------------------------------------
# Lazy lookups for the detail view
# ------------------------------------------------------------
BaggageFetcher = Callable[[Dict[str, Any]], Awaitable[Result]]
RulesFetcher = Callable[[Dict[str, Any]], Awaitable[Result]]


async def resolve_baggage(offer: FlightOffer, fetch: BaggageFetcher) -> Result:
    """The offer's own baggage label, else the endpoint's answer.

    Ok(None) means the endpoint answered without baggage; Err means it failed.
    """
    label = baggage_label(offer.pricing.baggage)
    if label:
        return Ok(label)
    if not offer.raw_pricing:
        return Ok(None)
    try:
        return await fetch(offer.raw_pricing)
    except Exception as e:
        logger.debug("baggage lookup failed: %s", e)
        return Err("transport", str(e))


async def resolve_fare_rules(offer: FlightOffer, fetch: RulesFetcher) -> Result:
    rules = extract_rules(offer.raw_pricing)
    if any(rules.values()):
        return Ok(rules)
    if not offer.raw_pricing:
        return Ok(rules)
    try:
        return await fetch(offer.raw_pricing)
    except Exception as e:
        logger.debug("fare rules lookup failed: %s", e)
        return Err("transport", str(e))
