from __future__ import annotations

from fastapi import APIRouter, HTTPException

from services.gateway.pricing_store import load_policy, save_policy

router = APIRouter()


@router.get("/api/pricing-policy")
async def get_pricing_policy():
    return load_policy()


@router.post("/api/pricing-policy")
async def set_pricing_policy(payload: dict):
    try:
        return save_policy(payload or {})
    except (OSError, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))
