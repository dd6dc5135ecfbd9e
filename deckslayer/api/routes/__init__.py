"""
API Routes

Modular route definitions for the DeckSlayer API.
"""
from deckslayer.api.routes.health import router as health_router
from deckslayer.api.routes.analyze import router as analyze_router
from deckslayer.api.routes.compare import router as compare_router
from deckslayer.api.routes.rebut import router as rebut_router
from deckslayer.api.routes.payments import router as payments_router
from deckslayer.api.routes.history import router as history_router
from deckslayer.api.routes.internal import router as internal_router

__all__ = [
    "health_router",
    "analyze_router",
    "compare_router",
    "rebut_router",
    "payments_router",
    "history_router",
    "internal_router",
]
