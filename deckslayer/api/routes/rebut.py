"""
Rebuttal Endpoint

The founder answers the killer question; Sarah answers back.
"""
from typing import Optional
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from deckslayer.api.dependencies import (
    enforce_rate_limit,
    get_optional_user,
    rate_limit_headers,
    rebuttal_policy,
)
from deckslayer.core.exceptions import InvalidInputError
from deckslayer.models.rebuttal import RebuttalRequest, RebuttalResponse
from deckslayer.services.auth_service import AuthenticatedUser

router = APIRouter(tags=["Rebuttal"])


@router.post("/rebut")
async def rebut(
    request: Request,
    user: Optional[AuthenticatedUser] = Depends(get_optional_user)
):
    """
    JSON body: {question, answer, context} (or killerQuestion/userAnswer).

    Free of charge; rate limited per caller.
    """
    policy = rebuttal_policy()
    limit = enforce_rate_limit(request, policy, user_id=user.id if user else None)

    try:
        payload = RebuttalRequest.model_validate(await request.json())
    except (ValueError, ValidationError) as e:
        raise InvalidInputError("Missing data", detail=str(e)) from e

    if not payload.is_complete:
        raise InvalidInputError("Missing data")

    judgement = await request.app.state.rebuttal_agent.rebut(
        payload.question, payload.answer, payload.context or ""
    )

    return JSONResponse(
        content=RebuttalResponse(judgement=judgement).model_dump(),
        headers=rate_limit_headers(limit, policy)
    )
