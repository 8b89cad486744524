from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

# ------------------------------------------------------------
# Load .env from PROJECT ROOT
# ------------------------------------------------------------
load_dotenv(dotenv_path=Path(__file__).resolve().parents[2] / ".env")

from fastapi import FastAPI

from services.gateway.flights_utils import _demo_mode, _sabre_config_missing
from services.gateway.logging_setup import configure_logging
from services.gateway.routers import flights_router, pricing_router

configure_logging(os.getenv("LOG_LEVEL") or "INFO")
logger = logging.getLogger(__name__)

BUILD_ID = "flights-engine-v1"

app = FastAPI(title="Flights Gateway", version="1.0.0")

# Routers
app.include_router(flights_router)
app.include_router(pricing_router)


@app.on_event("startup")
async def _startup_check():
    if _sabre_config_missing():
        logger.warning(
            "Sabre credentials not configured; serving demo results. "
            "Set SABRE_USER_ID, SABRE_GROUP, SABRE_DOMAIN and SABRE_CLIENT_SECRET."
        )


@app.get("/__build")
async def build():
    return {"build": BUILD_ID, "mode": "demo" if _demo_mode() else "sabre"}


@app.get("/health")
async def health():
    configured = not _sabre_config_missing()
    return {
        "ok": True,
        "build": BUILD_ID,
        "mode": "demo" if _demo_mode() else "sabre",
        "sabre_configured": configured,
    }
