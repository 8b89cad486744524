from __future__ import annotations

import os


def _sabre_config_missing() -> bool:
    """
    Match the expectations of services.flights.ota.services.sabre_client.get_client_from_env():
      - SABRE_USER_ID, SABRE_GROUP, SABRE_DOMAIN, SABRE_CLIENT_SECRET
      - optionally SABRE_ENVIRONMENT / SABRE_BASE_URL
    """
    required = ("SABRE_USER_ID", "SABRE_GROUP", "SABRE_DOMAIN", "SABRE_CLIENT_SECRET")
    return any(not (str(os.getenv(k) or "")).strip() for k in required)


def _demo_mode() -> bool:
    """Serve generated results unless BOOK_MODE=sabre and credentials exist."""
    mode = (os.getenv("BOOK_MODE") or "sabre").strip().lower()
    return mode != "sabre" or _sabre_config_missing()
