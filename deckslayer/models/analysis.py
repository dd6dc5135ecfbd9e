from dataclasses import dataclass
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field
from deckslayer.models.base import MongoBaseModel


@dataclass(frozen=True)
class AnalysisRequest:
    """One uploaded deck, already extracted and truncated. Lives for one request."""
    deck_text: str
    user_id: str
    deck_name: str


class PersonaOpinion(BaseModel):
    persona_id: str
    persona_name: str
    opinion: str


class AnalysisRecord(MongoBaseModel):
    """A completed single-deck audit, owned by the user who paid for it."""
    user_id: str
    deck_name: str
    result: Dict[str, Any]
    pdf_unlocked: bool = False


class ComparisonRecord(MongoBaseModel):
    """A completed head-to-head comparison."""
    user_id: str
    deck_a_name: str
    deck_b_name: str
    result: Dict[str, Any]


class AnalysisSummary(BaseModel):
    """History listing row."""
    id: str
    deck_name: str
    fundability_score: Optional[int] = None
    headline_burn: Optional[str] = None
    pdf_unlocked: bool = False
    created_at: str

    @classmethod
    def from_record(cls, record: AnalysisRecord) -> "AnalysisSummary":
        return cls(
            id=record.id,
            deck_name=record.deck_name,
            fundability_score=record.result.get("fundability_score"),
            headline_burn=record.result.get("headline_burn"),
            pdf_unlocked=record.pdf_unlocked,
            created_at=record.created_at.isoformat()
        )


class AnalysisResponse(BaseModel):
    """Atomic-mode body of POST /analyze."""
    report: Dict[str, Any]
    analysis_id: Optional[str] = Field(None, description="None if persistence failed.")
