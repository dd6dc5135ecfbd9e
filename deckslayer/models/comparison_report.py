from enum import StrEnum
from typing import List
from pydantic import BaseModel, Field
from deckslayer.models.base import Score


class DeckSide(StrEnum):
    DECK_A = "deck_a"
    DECK_B = "deck_b"


class Winner(StrEnum):
    DECK_A = "deck_a"
    DECK_B = "deck_b"
    TIE = "tie"


class Recommendation(StrEnum):
    DECK_A = "deck_a"
    DECK_B = "deck_b"
    NEITHER = "neither"


class FlagSeverity(StrEnum):
    CRITICAL = "critical"
    MAJOR = "major"
    MINOR = "minor"


class CategoryVerdict(BaseModel):
    category: str
    deck_a_verdict: str
    deck_b_verdict: str
    deck_a_score: Score
    deck_b_score: Score
    winner: Winner


class CombinedRedFlag(BaseModel):
    deck: DeckSide
    flag: str
    severity: FlagSeverity


class InvestmentRecommendation(BaseModel):
    recommended_deck: Recommendation
    confidence: Score
    rationale: str


class ComparisonReport(BaseModel):
    """Head-to-head verdict for two decks reviewed by the same committee."""
    deck_a_name: str = ""
    deck_b_name: str = ""
    deck_a_score: Score
    deck_b_score: Score
    winner: Winner
    winner_reasoning: str
    score_delta: int = Field(..., description="deck_a_score minus deck_b_score.")
    category_breakdown: List[CategoryVerdict]
    combined_red_flags: List[CombinedRedFlag]
    vc_verdict: str
    investment_recommendation: InvestmentRecommendation
