"""Health check endpoints."""

from datetime import datetime

from fastapi import APIRouter

from messenger_webhooks import __version__
from messenger_webhooks.kernel.time import utc_now

router = APIRouter()

# Track startup time
_startup_time: datetime = utc_now()


@router.get("/health")
async def health_check():
    """
    Basic health check endpoint.
    Returns 200 if the service is running.
    """
    now = utc_now()
    return {
        "status": "healthy",
        "service": "messenger-webhooks",
        "version": __version__,
        "timestamp": now.isoformat(),
        "uptime_seconds": (now - _startup_time).total_seconds(),
    }
