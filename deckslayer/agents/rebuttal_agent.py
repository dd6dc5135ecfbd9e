from typing import Optional
from pydantic_ai import Agent
from loguru import logger

from deckslayer.agents.personas import RISK_AUDITOR
from deckslayer.config import settings
from deckslayer.utils.llm_client import run_agent

rebuttal_agent: Agent[None, str] = Agent(
    settings.adversarial_model,
    output_type=str,
    instructions=(
        "ROLE: SARAH (The Skeptic / GP Agent). "
        "PERSONA: Brutal, skeptical, looking for 'The Big Lie', highly experienced VC. "
        "Keep it short (max 3 sentences), punchy, and professional yet brutal."
    ),
    defer_model_check=True
)


class RebuttalAgent:
    """Sarah's follow-up after the founder defends against the killer question."""

    def __init__(self, agent: Optional[Agent] = None):
        self.agent = agent or rebuttal_agent

    def build_prompt(self, question: str, answer: str, context: str = "") -> str:
        return f"""CONTEXT OF THE DECK:
{context}

KILLER QUESTION YOU ASKED:
"{question}"

FOUNDER'S DEFENSE:
"{answer}"

TASK:
Provide a sharp, adversarial rebuttal based on their answer.
Point out the logical flaws, the execution risks, or why a VC would still say NO.

RESPONSE TEMPLATE:
"Sarah sighs. [Your rebuttal here]" or "Sarah narrows her eyes. [Your rebuttal here]"
"""

    async def rebut(self, question: str, answer: str, context: str = "") -> str:
        judgement = await run_agent(self.agent, self.build_prompt(question, answer, context), RISK_AUDITOR.name)
        logger.info(f"Rebuttal delivered ({len(judgement)} chars)")
        return judgement.strip()
