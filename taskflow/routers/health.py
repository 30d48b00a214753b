"""Health check endpoint -- no auth required."""

from __future__ import annotations

import logging
import time

from fastapi import APIRouter, Request

from taskflow import __version__

logger = logging.getLogger(__name__)

router = APIRouter()

_start_time = time.monotonic()


@router.get("")
async def health_check(request: Request):
    """Return system health status. No auth required."""
    uptime = time.monotonic() - _start_time

    # Check storage
    storage = request.app.state.storage
    storage_status = "ok"
    try:
        if not await storage.ping():
            storage_status = "error"
    except Exception:
        logger.warning("Storage ping failed", exc_info=True)
        storage_status = "error"

    return {
        "status": "ok" if storage_status == "ok" else "degraded",
        "uptime_seconds": round(uptime, 1),
        "storage": storage_status,
        "storage_backend": storage.name,
        "connections": len(request.app.state.connection_manager),
        "version": __version__,
    }
