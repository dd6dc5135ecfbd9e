"""
Comparison Endpoint

Head-to-head review of two decks by the same committee.
"""
import asyncio
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from starlette.datastructures import UploadFile

from deckslayer.api.dependencies import (
    analysis_policy,
    enforce_rate_limit,
    get_current_user,
    get_orchestrator,
    rate_limit_headers,
)
from deckslayer.api.routes.analyze import extract_deck
from deckslayer.config import settings
from deckslayer.core.exceptions import InvalidInputError
from deckslayer.services.auth_service import AuthenticatedUser

router = APIRouter(tags=["Analysis"])


@router.post("/compare")
async def compare_decks(
    request: Request,
    user: AuthenticatedUser = Depends(get_current_user)
):
    """
    Compare two uploaded PDFs (multipart fields "deck_a" and "deck_b").

    Costs two credits, checked before either upload is read.
    """
    policy = analysis_policy()
    limit = enforce_rate_limit(request, policy, user_id=user.id)

    orchestrator = get_orchestrator(request)
    await orchestrator.check_credits(user.id, settings.comparison_credit_cost)

    form = await request.form()
    upload_a = form.get("deck_a")
    upload_b = form.get("deck_b")
    if not isinstance(upload_a, UploadFile) or not isinstance(upload_b, UploadFile):
        raise InvalidInputError("Two deck files are required")

    deck_a, deck_b = await asyncio.gather(
        extract_deck(request, upload_a, user.id),
        extract_deck(request, upload_b, user.id)
    )

    outcome = await orchestrator.run_comparison(user.id, deck_a, deck_b)

    content = outcome.report.model_dump(mode="json")
    content["comparison_id"] = outcome.comparison_id

    return JSONResponse(content=content, headers=rate_limit_headers(limit, policy))
