"""
FastAPI Application

Main entry point for the DeckSlayer API.
Handles application lifecycle, error mapping and router mounting.
"""
import asyncio
import os
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from deckslayer import __version__
from deckslayer.agents.rebuttal_agent import RebuttalAgent
from deckslayer.api.routes import (
    analyze_router,
    compare_router,
    health_router,
    history_router,
    internal_router,
    payments_router,
    rebut_router,
)
from deckslayer.config import settings
from deckslayer.core.analysis_orchestrator import AnalysisOrchestrator
from deckslayer.core.background import DetachedTaskRunner
from deckslayer.core.exceptions import (
    DeckSlayerError,
    RateLimitedError,
    SchemaValidationError,
    UpstreamError,
)
from deckslayer.repositories import (
    AnalysisRepository,
    ComparisonRepository,
    LedgerRepository,
    MarketInsightRepository,
    PaymentEventRepository,
    db_manager,
)
from deckslayer.services import PDFExtractor, PaymentService, SupabaseAuthService
from deckslayer.utils.observability import configure_logging
from deckslayer.utils.rate_limiter import InMemoryRateLimiter

# Client-facing message for unexpected failures, by path
ENDPOINT_FAILURES = {
    "/analyze": "Analysis failed",
    "/compare": "Comparison failed. Please try again.",
    "/rebut": "Interrogation failed",
    "/checkout": "Failed to create checkout",
    "/webhook": "Webhook processing failed",
}


def failure_message(path: str) -> str:
    return ENDPOINT_FAILURES.get(path, "Request failed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle: startup and shutdown events.

    Startup:
    - Connect to MongoDB and create indexes
    - Build repositories, services and the orchestrator
    - Start the rate limiter sweeper

    Shutdown:
    - Drain detached Oracle tasks
    - Stop the sweeper
    - Disconnect from MongoDB
    """
    configure_logging()
    logger.info("Starting DeckSlayer API server...")

    # Model clients read their key from the process environment
    if settings.gemini_api_key:
        os.environ.setdefault("GEMINI_API_KEY", settings.gemini_api_key)

    await db_manager.connect()
    await db_manager.create_indexes()
    db = db_manager.database

    ledger = LedgerRepository(db)
    analyses = AnalysisRepository(db)
    comparisons = ComparisonRepository(db)
    insights = MarketInsightRepository(db)
    payment_events = PaymentEventRepository(db)

    runner = DetachedTaskRunner(
        max_concurrent=settings.background_max_concurrent,
        shutdown_timeout=settings.background_shutdown_timeout_seconds
    )

    rate_limiter = InMemoryRateLimiter()

    # Store in app state for access in routes
    app.state.ledger = ledger
    app.state.analyses = analyses
    app.state.insights = insights
    app.state.runner = runner
    app.state.rate_limiter = rate_limiter
    app.state.auth_service = SupabaseAuthService()
    app.state.pdf_extractor = PDFExtractor()
    app.state.rebuttal_agent = RebuttalAgent()
    app.state.payment_service = PaymentService(ledger, analyses, payment_events)
    app.state.orchestrator = AnalysisOrchestrator(
        ledger, analyses, comparisons, insights, runner=runner
    )

    sweeper_task = asyncio.create_task(
        rate_limiter.run_sweeper(settings.rate_limit_sweep_interval_seconds)
    )

    logger.info("API server ready")

    yield

    # Shutdown
    logger.info("Shutting down API server...")

    await runner.shutdown()

    if not sweeper_task.done():
        sweeper_task.cancel()
        try:
            await sweeper_task
        except asyncio.CancelledError:
            logger.info("Stopped rate limit sweeper")

    await db_manager.disconnect()
    logger.info("Shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="DeckSlayer API",
    description="Multi-agent Investment Committee review of startup pitch decks",
    version=__version__,
    lifespan=lifespan
)


@app.exception_handler(DeckSlayerError)
async def deckslayer_error_handler(request: Request, exc: DeckSlayerError) -> JSONResponse:
    """Map the error taxonomy to status codes; detail only goes to the logs."""
    headers = None
    content = {"error": exc.public_message}

    if isinstance(exc, SchemaValidationError):
        logger.error(f"Schema validation failure on {request.url.path}: {exc.detail}")
        content["error"] = failure_message(request.url.path)
    elif isinstance(exc, UpstreamError):
        logger.error(f"Upstream failure on {request.url.path}: {exc.detail}")
        if exc.public_message == UpstreamError.public_message:
            content["error"] = failure_message(request.url.path)
    elif isinstance(exc, RateLimitedError):
        content["resetIn"] = exc.reset_in_ms
        headers = {
            "Retry-After": str(exc.retry_after),
            "X-RateLimit-Limit": str(exc.limit),
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": str(exc.reset_in_ms),
        }
    else:
        logger.info(f"{request.url.path} -> {exc.status_code}: {exc.public_message}")

    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.opt(exception=exc).error(f"Unhandled error on {request.url.path}")
    return JSONResponse(status_code=500, content={"error": failure_message(request.url.path)})


# Mount routers
app.include_router(health_router)
app.include_router(analyze_router)
app.include_router(compare_router)
app.include_router(rebut_router)
app.include_router(payments_router)
app.include_router(history_router)
app.include_router(internal_router)
