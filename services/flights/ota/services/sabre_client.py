from __future__ import annotations

import base64
import logging
import os
import time
from typing import Any, Dict, List, Optional

import httpx

from .models import FlightOffer, SearchError, SearchParams
from .normalize import normalize_priced_itineraries

logger = logging.getLogger(__name__)

SABRE_REST_PROD = "https://api.platform.sabre.com"
SABRE_REST_CERT = "https://api.cert.platform.sabre.com"

CABIN_CODES = {
    "economy": "Y",
    "premium": "S",
    "premiumeconomy": "S",
    "premium economy": "S",
    "business": "C",
    "first": "F",
}


def _normalize_cabin(v: str | None) -> str:
    """Map user cabin to the provider's cabin code."""
    v = (v or "").strip().lower()
    return CABIN_CODES.get(v, "Y")


def _sabre_date(d: str) -> str:
    return f"{d}T00:00:00"


def _odi(rph: int, origin: str, destination: str, dep_date: str) -> Dict[str, Any]:
    return {
        "RPH": str(rph),
        "DepartureDateTime": _sabre_date(dep_date),
        "OriginLocation": {"LocationCode": origin.upper()},
        "DestinationLocation": {"LocationCode": destination.upper()},
        "TPA_Extensions": {"SegmentType": {"Code": "O"}},
    }


def build_search_payload(params: SearchParams, pseudo_city: str = "") -> Dict[str, Any]:
    if params.is_multi_city:
        odis = [_odi(i, s.origin, s.destination, s.departure_date) for i, s in enumerate(params.segments, start=1)]
    else:
        odis = [_odi(1, params.origin, params.destination, params.departure_date)]
        if params.return_date and params.trip_type != "oneway":
            odis.append(_odi(2, params.destination, params.origin, params.return_date))

    ptq = [{"Code": "ADT", "Quantity": max(1, params.adults)}]
    if params.children:
        ptq.append({"Code": "CNN", "Quantity": params.children})
    if params.kids:
        ptq.append({"Code": "C05", "Quantity": params.kids})
    if params.infants:
        ptq.append({"Code": "INF", "Quantity": params.infants})

    return {
        "OTA_AirLowFareSearchRQ": {
            "Version": "1.0.0",
            "POS": {
                "Source": [
                    {
                        "PseudoCityCode": pseudo_city,
                        "RequestorID": {"Type": "1", "ID": "1", "CompanyName": {"Code": "TN"}},
                    }
                ]
            },
            "OriginDestinationInformation": odis,
            "TravelPreferences": {"CabinPref": [{"Cabin": _normalize_cabin(params.cabin), "PreferLevel": "Preferred"}]},
            "TravelerInfoSummary": {"AirTravelerAvail": [{"PassengerTypeQuantity": ptq}]},
            "TPA_Extensions": {"IntelliSellTransaction": {"RequestType": {"Name": "50ITINS"}}},
        }
    }


def provider_error_message(exc: Exception) -> str:
    """Prefer the provider's own message over the transport's."""
    if isinstance(exc, httpx.HTTPStatusError):
        try:
            body = exc.response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            msg = body.get("message") or body.get("error_description") or body.get("error")
            if isinstance(msg, str) and msg.strip():
                return msg.strip()
        return f"Provider returned HTTP {exc.response.status_code}"
    return str(exc) or "Flight search failed"


class SabreClient:
    def __init__(
        self,
        base_url: str,
        user_id: str,
        group: str,
        domain: str,
        client_secret: str,
        timeout_s: float = 45.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.user_id = user_id
        self.group = group
        self.domain = domain
        self.client_secret = client_secret
        self.timeout = timeout_s
        self._transport = transport
        self._token: Optional[str] = None
        self._token_expires_at = 0.0

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    def _auth_credentials(self) -> str:
        """base64( base64("V1:user:group:domain") + ":" + base64(secret) )"""
        client_id = f"V1:{self.user_id}:{self.group}:{self.domain}"
        enc_id = base64.b64encode(client_id.encode("utf-8")).decode("ascii")
        enc_secret = base64.b64encode(self.client_secret.encode("utf-8")).decode("ascii")
        return base64.b64encode(f"{enc_id}:{enc_secret}".encode("ascii")).decode("ascii")

    async def get_token(self) -> str:
        if self._token and time.time() < self._token_expires_at:
            return self._token
        url = f"{self.base_url}/v2/auth/token"
        headers = {
            "Authorization": f"Basic {self._auth_credentials()}",
            "Content-Type": "application/x-www-form-urlencoded",
        }
        async with self._client() as client:
            r = await client.post(url, headers=headers, content=b"grant_type=client_credentials")
            r.raise_for_status()
            data = r.json()
        token = data.get("access_token")
        if not token:
            raise ValueError("Missing access_token in provider auth response.")
        # refresh a minute early
        expires_in = float(data.get("expires_in") or 600)
        self._token = token
        self._token_expires_at = time.time() + max(0.0, expires_in - 60)
        return token

    async def air_low_fare_search(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        token = await self.get_token()
        url = f"{self.base_url}/v1/shop/flights"
        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        async with self._client() as client:
            r = await client.post(url, params={"mode": "live"}, headers=headers, json=payload)
            r.raise_for_status()
            return r.json()

    async def search(self, params: SearchParams) -> Dict[str, Any]:
        return await self.air_low_fare_search(build_search_payload(params, self.group))


async def search_offers(search, params: SearchParams) -> List[FlightOffer]:
    """Primary search: normalized offers, or SearchError.

    ``search`` is any coroutine function taking SearchParams and returning a
    raw OTA_AirLowFareSearchRS body (SabreClient.search, demo data).
    """
    try:
        resp = await search(params)
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("flight search %s-%s failed: %s", params.origin, params.destination, e)
        raise SearchError("transport", provider_error_message(e)) from e

    offers = normalize_priced_itineraries(resp)
    if not offers:
        raise SearchError("no_results", "No flights found for this route.", status_code=404)
    return offers


def get_client_from_env() -> Optional[SabreClient]:
    """Create a SabreClient from environment variables.

    Required: SABRE_USER_ID, SABRE_GROUP, SABRE_DOMAIN, SABRE_CLIENT_SECRET.
    SABRE_ENVIRONMENT=production selects the production host; SABRE_BASE_URL
    overrides both.
    """
    user_id = (os.getenv("SABRE_USER_ID") or "").strip()
    group = (os.getenv("SABRE_GROUP") or "").strip()
    domain = (os.getenv("SABRE_DOMAIN") or "").strip()
    secret = (os.getenv("SABRE_CLIENT_SECRET") or "").strip()
    if not (user_id and group and domain and secret):
        return None

    base = (os.getenv("SABRE_BASE_URL") or "").strip()
    if not base:
        env = (os.getenv("SABRE_ENVIRONMENT") or "").strip().lower()
        base = SABRE_REST_PROD if env == "production" else SABRE_REST_CERT

    return SabreClient(base_url=base, user_id=user_id, group=group, domain=domain, client_secret=secret)
