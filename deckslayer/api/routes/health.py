"""
Health Endpoints

Liveness and readiness checks plus a service index at `/`.
"""
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from loguru import logger

from deckslayer import __version__
from deckslayer.repositories import db_manager

router = APIRouter(tags=["Health"])

API_VERSION = __version__


def not_ready(reason: str) -> JSONResponse:
    return JSONResponse(status_code=503, content={"status": "not_ready", "reason": reason})


@router.get("/health")
async def health_check():
    """Liveness: the process is up. Touches no dependency."""
    return {"status": "healthy", "service": "deckslayer", "version": API_VERSION}


@router.get("/ready")
async def readiness_check(request: Request):
    """
    Readiness: the lifespan finished wiring the app and MongoDB answers a ping.

    Returns 200 when ready, 503 otherwise.
    """
    if getattr(request.app.state, "orchestrator", None) is None:
        return not_ready("Orchestrator not initialized")

    try:
        await db_manager.client.admin.command("ping")
    except Exception as e:
        logger.error(f"Readiness check failed: {e}")
        return not_ready(str(e))

    return {"status": "ready", "mongodb": "connected", "orchestrator": "initialized"}


@router.get("/")
async def root():
    return {
        "service": "DeckSlayer API",
        "version": API_VERSION,
        "endpoints": {
            "health": "/health",
            "ready": "/ready",
            "analyze": "/analyze (POST, ?stream=true|false)",
            "compare": "/compare (POST)",
            "rebut": "/rebut (POST)",
            "checkout": "/checkout (POST)",
            "payment_webhook": "/webhook (POST)",
            "credits": "/credits",
            "history": "/history",
            "trends": "/internal/trends",
        },
    }
