"""
The Oracle

Internal market-intelligence extraction. Runs after the user already has
their report; its output only feeds the admin trends view.
"""
from typing import Optional
from pydantic_ai import Agent
from loguru import logger

from deckslayer.agents.personas import ORACLE
from deckslayer.config import settings
from deckslayer.models.market_insight import MarketInsightExtraction
from deckslayer.utils.llm_client import run_agent

oracle_agent: Agent[None, MarketInsightExtraction] = Agent(
    settings.analysis_model,
    output_type=MarketInsightExtraction,
    retries=0,
    instructions=(
        "You are an internal intelligence agent. You classify pitch decks for trend analysis. "
        "Use \"Other\" and \"Unknown\" when the deck does not say."
    ),
    defer_model_check=True
)


class OracleService:
    """Sector, stage and narrative fingerprinting for one deck."""

    def __init__(self, agent: Optional[Agent] = None, protocol: Optional[str] = None):
        self.agent = agent or oracle_agent
        self.protocol = protocol or settings.a2a_protocol

    def build_prompt(self, deck_text: str) -> str:
        return f"""PROTOCOL: {self.protocol}
AGENT_CARD: {ORACLE.card_json()}
TASK: {ORACLE.task}

Deck content: {deck_text}

narrative_tags are the buzzwords the deck leans on ("AI-native", "10x claim", "winner-take-all").
primary_claim is the single biggest claim the deck makes.
"""

    async def extract(self, deck_text: str) -> MarketInsightExtraction:
        """
        Raises:
            LLMError: Provider failure
            SchemaValidationError: Output did not fit MarketInsightExtraction
        """
        extraction = await run_agent(self.agent, self.build_prompt(deck_text), ORACLE.name)
        logger.debug(f"Oracle classified deck as {extraction.sector} / {extraction.stage}")
        return extraction
