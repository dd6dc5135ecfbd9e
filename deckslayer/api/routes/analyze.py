"""
Analysis Endpoint

Single-deck Investment Committee audit, streamed as NDJSON or returned whole.
"""
import json
from typing import AsyncIterator, List
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.datastructures import UploadFile
from loguru import logger

from deckslayer.api.dependencies import (
    analysis_policy,
    enforce_rate_limit,
    get_current_user,
    get_orchestrator,
    rate_limit_headers,
)
from deckslayer.config import settings
from deckslayer.core.analysis_orchestrator import AnalysisOrchestrator
from deckslayer.core.exceptions import DeckSlayerError, InvalidInputError
from deckslayer.models.analysis import AnalysisRequest, AnalysisResponse, PersonaOpinion
from deckslayer.services.auth_service import AuthenticatedUser

router = APIRouter(tags=["Analysis"])

NDJSON_MEDIA_TYPE = "application/x-ndjson"


async def read_upload(request: Request, field: str) -> UploadFile:
    """
    Pull one file field out of the multipart body.

    Raises:
        InvalidInputError: 400 if the field is missing or not a file
    """
    form = await request.form()
    upload = form.get(field)
    if not isinstance(upload, UploadFile):
        raise InvalidInputError("No file uploaded")
    return upload


async def extract_deck(request: Request, upload: UploadFile, user_id: str) -> AnalysisRequest:
    data = await upload.read()
    deck_name = upload.filename or "deck.pdf"
    deck_text = await request.app.state.pdf_extractor.extract(data, deck_name)
    return AnalysisRequest(deck_text=deck_text, user_id=user_id, deck_name=deck_name)


def _event_line(event: dict) -> str:
    return json.dumps(event) + "\n"


async def ndjson_events(
    orchestrator: AnalysisOrchestrator,
    analysis_request: AnalysisRequest,
    opinions: List[PersonaOpinion]
) -> AsyncIterator[str]:
    """
    Serialize the progressive audit.

    Every line is one JSON event. A failure after the response has started
    becomes a final error event.
    """
    try:
        async for kind, value in orchestrator.stream_audit(analysis_request, opinions):
            if kind == "partial":
                yield _event_line({"type": "partial", "data": value})
            else:
                yield _event_line({
                    "type": "complete",
                    "data": value.report.model_dump(mode="json"),
                    "analysis_id": value.analysis_id
                })
    except DeckSlayerError as e:
        logger.error(f"Streaming analysis failed for {analysis_request.user_id}: {e}")
        yield _event_line({"type": "error", "error": e.public_message})
    except Exception:
        logger.exception(f"Streaming analysis failed for {analysis_request.user_id}")
        yield _event_line({"type": "error", "error": "Analysis failed"})


@router.post("/analyze")
async def analyze_deck(
    request: Request,
    stream: bool = True,
    user: AuthenticatedUser = Depends(get_current_user)
):
    """
    Run the committee on one uploaded PDF (multipart field "file").

    Flow:
    1. Authenticate (401)
    2. Rate limit (429)
    3. Credit check (402), before the upload is read
    4. Read and extract the PDF (400)
    5. Dispatch personas, synthesize, persist

    Query:
        stream: NDJSON partial/complete events when true, one JSON body when false
    """
    policy = analysis_policy()
    limit = enforce_rate_limit(request, policy, user_id=user.id)

    orchestrator = get_orchestrator(request)
    await orchestrator.check_credits(user.id, settings.analysis_credit_cost)

    upload = await read_upload(request, "file")
    analysis_request = await extract_deck(request, upload, user.id)

    headers = rate_limit_headers(limit, policy)

    if not stream:
        outcome = await orchestrator.run_audit(analysis_request)
        body = AnalysisResponse(
            report=outcome.report.model_dump(mode="json"),
            analysis_id=outcome.analysis_id
        )
        return JSONResponse(content=body.model_dump(), headers=headers)

    # Persona failures still surface as a plain 500 before streaming starts
    opinions = await orchestrator.consult(analysis_request)

    return StreamingResponse(
        ndjson_events(orchestrator, analysis_request, opinions),
        media_type=NDJSON_MEDIA_TYPE,
        headers=headers
    )
