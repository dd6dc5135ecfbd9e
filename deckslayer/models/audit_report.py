from enum import StrEnum
from typing import List
from pydantic import BaseModel, Field
from deckslayer.models.base import Score


class Partner(StrEnum):
    SARAH = "SARAH"
    MARCUS = "MARCUS"
    LEO = "LEO"


class TranscriptTurn(BaseModel):
    partner: Partner
    comment: str
    a2a_status: str = "verified"


class RedFlag(BaseModel):
    title: str
    reason: str


class SlideCritique(BaseModel):
    slide: str
    critique: str
    score: Score


class A2AMetadata(BaseModel):
    protocol: str
    agents_consulted: List[str]
    orchestrator: str


class AuditReport(BaseModel):
    """The formal output contract for the IC synthesis of a single deck."""
    headline_burn: str = Field(..., description="A brutal, punchy headline summarizing the deck's failure.")
    fundability_score: Score = Field(..., description="Overall fundability score.")
    meeting_transcript: List[TranscriptTurn] = Field(
        ..., description="Simulated dialogue between the IC partners, one turn per partner."
    )
    red_flag_count: int = Field(..., ge=0)
    red_flags: List[RedFlag]
    slayers_list: List[str] = Field(..., description="Ordered list of fixes the founder must make.")
    market_benchmark: str = Field(..., description="Contextual market valuation or benchmark.")
    narrative_delta: str = Field(..., description="The gap between stated problem and proposed solution.")
    killer_question: str = Field(..., description="The most difficult question the founder must answer.")
    slide_breakdown: List[SlideCritique] = Field(default_factory=list)
    a2a_metadata: A2AMetadata
