import asyncio
import time
from typing import List, Optional, Sequence, Tuple
from pydantic_ai import Agent
from loguru import logger

from deckslayer.agents.personas import Persona, REVIEWERS
from deckslayer.config import settings
from deckslayer.models.analysis import PersonaOpinion
from deckslayer.utils.llm_client import run_agent
from deckslayer.utils.observability import log_agent_execution

reviewer_agent: Agent[None, str] = Agent(
    settings.analysis_model,
    output_type=str,
    instructions=(
        "You are a partner on a venture capital Investment Committee reviewing a startup pitch deck. "
        "You speak in the voice of the agent card you are given and stay inside its skills. "
        "Be specific, adversarial and grounded in the deck's own claims. Plain text only."
    ),
    defer_model_check=True
)


class PersonaDispatcher:
    """Fans one deck out to every committee reviewer."""

    def __init__(
        self,
        agent: Optional[Agent] = None,
        personas: Sequence[Persona] = REVIEWERS,
        protocol: Optional[str] = None
    ):
        self.agent = agent or reviewer_agent
        self.personas = tuple(personas)
        self.protocol = protocol or settings.a2a_protocol

    def build_prompt(self, deck_text: str, persona: Persona, task: Optional[str] = None) -> str:
        return (
            f"PROTOCOL: {self.protocol}\n"
            f"AGENT_CARD: {persona.card_json()}\n"
            f"TASK: {task or persona.task}\n"
            f"DECK: {deck_text}"
        )

    async def analyze(self, deck_text: str, persona: Persona, task: Optional[str] = None) -> PersonaOpinion:
        """Run one persona over one deck."""
        opinion = await run_agent(self.agent, self.build_prompt(deck_text, persona, task), persona.name)

        return PersonaOpinion(
            persona_id=persona.id,
            persona_name=persona.name,
            opinion=opinion
        )

    async def dispatch(self, deck_text: str, user_id: str = "unknown") -> List[PersonaOpinion]:
        """
        Consult every persona concurrently.

        Opinions come back in catalog order whatever order the calls finish
        in. The first failure propagates and the rest of the batch is dropped.
        """
        start = time.perf_counter()

        opinions = await asyncio.gather(
            *(self.analyze(deck_text, persona) for persona in self.personas)
        )

        log_agent_execution(
            agent_name="PersonaDispatcher",
            user_id=user_id,
            action="dispatch",
            duration_ms=(time.perf_counter() - start) * 1000,
            personas=len(opinions)
        )
        return list(opinions)

    async def dispatch_pair(
        self,
        deck_text_a: str,
        deck_text_b: str,
        user_id: str = "unknown"
    ) -> Tuple[List[PersonaOpinion], List[PersonaOpinion]]:
        """
        Consult every persona on two decks in one concurrent batch.

        Uses each persona's comparison task. Returns (opinions_a, opinions_b),
        each in catalog order.
        """
        start = time.perf_counter()
        count = len(self.personas)

        results = await asyncio.gather(
            *(self.analyze(deck_text_a, persona, persona.compare_task or None) for persona in self.personas),
            *(self.analyze(deck_text_b, persona, persona.compare_task or None) for persona in self.personas)
        )

        logger.debug(f"Pair dispatch finished: {len(results)} opinions")
        log_agent_execution(
            agent_name="PersonaDispatcher",
            user_id=user_id,
            action="dispatch_pair",
            duration_ms=(time.perf_counter() - start) * 1000,
            personas=count
        )
        return list(results[:count]), list(results[count:])
