from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

import httpx

from .fare_calendar import entries_from_payload
from .models import Err, FareCalendarKey, Ok, Result

logger = logging.getLogger(__name__)


class GatewayClient:
    """Auxiliary lookups against the flights gateway.

    Every method returns Ok / Err; nothing here raises on transport failure.
    """

    def __init__(
        self,
        base_url: str,
        timeout_s: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout_s
        self._transport = transport

    async def _request(self, method: str, path: str, **kwargs: Any) -> Result:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                r = await client.request(method, url, **kwargs)
                r.raise_for_status()
                data = r.json()
        except httpx.HTTPError as e:
            logger.debug("%s %s failed: %s", method, path, e)
            return Err("transport", str(e))
        except ValueError as e:
            return Err("shape", f"invalid JSON: {e}")
        return Ok(data)

    async def fare_calendar(self, key: FareCalendarKey) -> Result:
        res = await self._request(
            "GET",
            "/api/air-ticketing/fare-calendar",
            params={
                "origin": key.origin,
                "destination": key.destination,
                "month": key.month,
                "adults": key.passengers,
                "cabin": key.cabin,
            },
        )
        if not res.is_ok:
            return res
        return entries_from_payload(res.value)

    async def baggage(self, pricing: Dict[str, Any]) -> Result:
        res = await self._request("POST", "/api/air-ticketing/baggage", json={"pricingInfo": pricing})
        if not res.is_ok:
            return res
        return Ok((res.value or {}).get("baggage") if isinstance(res.value, dict) else None)

    async def fare_rules(self, pricing: Dict[str, Any]) -> Result:
        res = await self._request("POST", "/api/air-ticketing/fare-rules", json={"pricingInfo": pricing})
        if not res.is_ok:
            return res
        body = res.value if isinstance(res.value, dict) else {}
        rules = body.get("rules")
        if not isinstance(rules, dict):
            return Err("shape", "fare rules response has no rules")
        return Ok(rules)


def get_gateway_client_from_env() -> GatewayClient:
    return GatewayClient(base_url=(os.getenv("GATEWAY_BASE_URL") or "http://127.0.0.1:8000").strip())
