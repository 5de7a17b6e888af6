from __future__ import annotations

import time
from typing import Any, Dict

from fastapi import APIRouter

SERVICE_NAME = "case-persona-service"
BATCH_ENDPOINTS = ("/api/process", "/api/instructions", "/api/download")

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> Dict[str, Any]:
    """Liveness check; the batch endpoints need `x-run-secret`, this one does not."""
    return {
        "ok": True,
        "service": SERVICE_NAME,
        "endpoints": list(BATCH_ENDPOINTS),
        "ts": int(time.time() * 1000),
    }
