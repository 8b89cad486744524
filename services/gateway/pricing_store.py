from __future__ import annotations

import json
import os
from pathlib import Path

from services.flights.ota.services.pricing import DEFAULT_AIT_POLICY, AitPolicy


# ------------------------------------------------------------
# Pricing policy (simple JSON store)
# ------------------------------------------------------------
DEFAULT_POLICY = {
    "ait": {
        # 0.3% of (total fare - excluded taxes)
        "rate": DEFAULT_AIT_POLICY.rate,
        "excluded_codes": sorted(DEFAULT_AIT_POLICY.excluded_codes),
    }
}


def _policy_path() -> Path:
    override = (os.getenv("PRICING_POLICY_PATH") or "").strip()
    if override:
        return Path(override)
    return Path(__file__).with_name("pricing_policy.json")


def load_policy() -> dict:
    """Load the pricing policy from disk, falling back to defaults."""
    path = _policy_path()
    try:
        if path.exists():
            data = json.loads(path.read_text(encoding="utf-8") or "{}")
            if isinstance(data, dict):
                if not isinstance(data.get("ait"), dict):
                    data["ait"] = dict(DEFAULT_POLICY["ait"])
                return data
    except (OSError, ValueError):
        pass
    return json.loads(json.dumps(DEFAULT_POLICY))


def save_policy(cfg: dict) -> dict:
    if not isinstance(cfg, dict):
        cfg = {}
    cfg["ait"] = AitPolicy.from_dict(cfg.get("ait")).to_dict()
    _policy_path().write_text(json.dumps(cfg, indent=2, ensure_ascii=False), encoding="utf-8")
    return cfg


def ait_policy() -> AitPolicy:
    return AitPolicy.from_dict(load_policy().get("ait"))
