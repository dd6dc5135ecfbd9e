from enum import StrEnum
from typing import List, Optional
from pydantic import BaseModel, Field
from deckslayer.models.base import MongoBaseModel, Score


class Sector(StrEnum):
    SAAS = "SaaS"
    FINTECH = "Fintech"
    AI_ML = "AI/ML"
    CRYPTO = "Crypto/Web3"
    HEALTHCARE = "Healthcare"
    ECOMMERCE = "E-commerce"
    CONSUMER = "Consumer"
    CLIMATE = "Climate/CleanTech"
    ENTERPRISE = "Enterprise"
    EDTECH = "EdTech"
    OTHER = "Other"


class FundingStage(StrEnum):
    PRE_SEED = "Pre-Seed"
    SEED = "Seed"
    SERIES_A = "Series A"
    SERIES_B_PLUS = "Series B+"
    UNKNOWN = "Unknown"


class Severity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class MarketInsightExtraction(BaseModel):
    """What the Oracle agent returns. Never shown to the deck's owner."""
    sector: Sector = Field(..., description="Primary industry sector of the startup.")
    sub_sector: Optional[str] = Field(None, description="More granular sub-sector classification.")
    stage: FundingStage = Field(..., description="Funding stage of the startup.")
    funding_target_usd: Optional[float] = Field(None, description="Requested funding amount in USD.")
    narrative_tags: List[str] = Field(..., description="Key buzzwords and claims detected in the pitch.")
    primary_claim: str = Field(..., description="The single biggest claim made by the deck.")
    red_flag_severity: Severity = Field(..., description="Aggregated severity of red flags.")


class MarketInsight(MongoBaseModel):
    """Persisted internal trend record, linked to the analysis it came from."""
    analysis_id: str
    sector: Sector
    sub_sector: Optional[str] = None
    stage: FundingStage
    funding_target_usd: Optional[float] = None
    narrative_tags: List[str] = Field(default_factory=list)
    primary_claim: str
    fundability_score: Score
    red_flag_severity: Severity

    @classmethod
    def from_extraction(
        cls,
        extraction: MarketInsightExtraction,
        analysis_id: str,
        fundability_score: int
    ) -> "MarketInsight":
        return cls(
            analysis_id=analysis_id,
            fundability_score=fundability_score,
            **extraction.model_dump()
        )
