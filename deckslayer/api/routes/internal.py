"""
Internal Endpoints

Admin-only market trend aggregates built from Oracle extractions.
"""
from fastapi import APIRouter, Depends, Request

from deckslayer.api.dependencies import require_admin
from deckslayer.services.auth_service import AuthenticatedUser

router = APIRouter(prefix="/internal", tags=["Internal"])


@router.get("/trends")
async def market_trends(
    request: Request,
    admin: AuthenticatedUser = Depends(require_admin)
):
    """
    Sector distribution and narrative fingerprint of analyzed decks.

    Returns:
        total_insights, per-sector {count, avg_score} (most common first),
        and the 15 most frequent narrative tags
    """
    insights = request.app.state.insights

    return {
        "total_insights": await insights.count(),
        "sectors": await insights.sector_stats(),
        "top_narrative_tags": await insights.top_narrative_tags(limit=15),
    }
