"""
Account Endpoints

Credit balance and past analyses of the signed-in user.
"""
from fastapi import APIRouter, Depends, Query, Request

from deckslayer.api.dependencies import get_current_user
from deckslayer.core.exceptions import NotFoundError
from deckslayer.models.analysis import AnalysisSummary
from deckslayer.services.auth_service import AuthenticatedUser

router = APIRouter(tags=["Account"])


@router.get("/credits")
async def get_credits(
    request: Request,
    user: AuthenticatedUser = Depends(get_current_user)
):
    balance = await request.app.state.ledger.get_balance(user.id)
    return {"user_id": user.id, "balance": balance}


@router.get("/history")
async def list_history(
    request: Request,
    limit: int = Query(50, ge=1, le=200),
    user: AuthenticatedUser = Depends(get_current_user)
):
    """Analyses of the caller, newest first."""
    records = await request.app.state.analyses.list_for_user(user.id, limit=limit)
    return {
        "analyses": [
            AnalysisSummary.from_record(record).model_dump()
            for record in records
        ]
    }


@router.get("/history/{analysis_id}")
async def get_history_item(
    analysis_id: str,
    request: Request,
    user: AuthenticatedUser = Depends(get_current_user)
):
    """One stored analysis. Records of other users are reported as missing."""
    record = await request.app.state.analyses.get_for_user(analysis_id, user.id)
    if record is None:
        raise NotFoundError("Analysis not found")

    return record.model_dump(mode="json")
