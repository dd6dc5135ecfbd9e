import time
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Tuple, Union
from pydantic_ai import Agent
from loguru import logger

from deckslayer.agents.personas import ORCHESTRATOR, Persona, REVIEWERS
from deckslayer.config import settings
from deckslayer.models.analysis import PersonaOpinion
from deckslayer.models.audit_report import AuditReport
from deckslayer.models.comparison_report import ComparisonReport
from deckslayer.utils.llm_client import run_agent, stream_agent_output
from deckslayer.utils.observability import log_agent_execution
from deckslayer.utils.report_parser import parse_partial

orchestrator_agent: Agent[None, AuditReport] = Agent(
    settings.orchestrator_model,
    output_type=AuditReport,
    retries=0,
    instructions=(
        "You are the Orchestrator of a venture capital Investment Committee. "
        "You receive independent partner reports on one pitch deck and merge them into a single, "
        "brutally honest diagnostic. Every partner must appear in the meeting transcript."
    ),
    defer_model_check=True
)

comparison_agent: Agent[None, ComparisonReport] = Agent(
    settings.synthesis_model,
    output_type=ComparisonReport,
    retries=0,
    instructions=(
        "You are the Chief Investment Officer synthesizing a comparative analysis of two pitch decks. "
        "Be adversarial and decisive."
    ),
    defer_model_check=True
)

StreamEvent = Tuple[str, Union[Dict[str, Any], AuditReport]]


def build_audit_prompt(
    opinions: Sequence[PersonaOpinion],
    personas: Sequence[Persona] = REVIEWERS,
    protocol: Optional[str] = None
) -> str:
    """
    Orchestrator prompt for a single deck.

    Opinions are embedded verbatim, labelled by transcript tag, in the order
    given (the dispatcher returns catalog order).
    """
    protocol = protocol or settings.a2a_protocol
    by_id = {persona.id: persona for persona in personas}

    reports = "\n".join(
        f"REPORT [{by_id[op.persona_id].transcript_tag if op.persona_id in by_id else op.persona_name}]: {op.opinion}"
        for op in opinions
    )
    consulted = ", ".join(op.persona_name for op in opinions)

    return f"""PROTOCOL: {protocol}
ORCHESTRATOR_CARD: {ORCHESTRATOR.card_json()}

You have received reports from {len(opinions)} A2A-compliant agents on a pitch deck:

{reports}

TASK: Synthesize these into a coordinated A2A diagnostic report.

Metadata for result:
Protocol: {protocol}
Consulted: {consulted}
Orchestrator: {ORCHESTRATOR.name}
"""


def build_comparison_prompt(
    deck_a_name: str,
    opinions_a: Sequence[PersonaOpinion],
    deck_b_name: str,
    opinions_b: Sequence[PersonaOpinion]
) -> str:
    """Chief Investment Officer prompt for two decks side by side."""

    def section(label: str, name: str, opinions: Sequence[PersonaOpinion]) -> str:
        lines = "\n".join(f"{op.persona_name}: {op.opinion}" for op in opinions)
        return f"{label} ({name}):\n{lines}"

    return f"""{section("DECK A", deck_a_name, opinions_a)}

{section("DECK B", deck_b_name, opinions_b)}

Generate a comprehensive comparison report. Be adversarial and decisive.
- Assign scores 0-100 for each deck
- Determine a clear winner (avoid ties unless truly equal)
- Provide category-by-category breakdown
- List all red flags from both decks
- Give a definitive VC investment recommendation
"""


def reconcile_red_flags(report: AuditReport) -> AuditReport:
    """Make red_flag_count agree with the red_flags list."""
    actual = len(report.red_flags)
    if report.red_flag_count == actual:
        return report

    logger.warning(
        f"red_flag_count mismatch: model said {report.red_flag_count}, list has {actual}",
        extra={"reported": report.red_flag_count, "actual": actual}
    )
    return report.model_copy(update={"red_flag_count": actual})


def reconcile_score_delta(report: ComparisonReport) -> ComparisonReport:
    """Make score_delta agree with the two deck scores."""
    actual = report.deck_a_score - report.deck_b_score
    if report.score_delta == actual:
        return report

    logger.warning(
        f"score_delta mismatch: model said {report.score_delta}, scores give {actual}",
        extra={"reported": report.score_delta, "actual": actual}
    )
    return report.model_copy(update={"score_delta": actual})


class SynthesisEngine:
    """Merges persona opinions into a structured report."""

    def __init__(
        self,
        agent: Optional[Agent] = None,
        comparison: Optional[Agent] = None,
        debounce_chars: Optional[int] = None
    ):
        self.agent = agent or orchestrator_agent
        self.comparison_agent = comparison or comparison_agent
        self.debounce_chars = settings.stream_debounce_chars if debounce_chars is None else debounce_chars

    async def synthesize(self, opinions: List[PersonaOpinion], user_id: str = "unknown") -> AuditReport:
        """
        Atomic synthesis of one deck's opinions.

        Raises:
            SchemaValidationError: If the output does not fit AuditReport
            LLMError: If the provider call fails
        """
        start = time.perf_counter()
        report = reconcile_red_flags(
            await run_agent(self.agent, build_audit_prompt(opinions), ORCHESTRATOR.name)
        )

        log_agent_execution(
            agent_name="SynthesisEngine",
            user_id=user_id,
            action="synthesize",
            duration_ms=(time.perf_counter() - start) * 1000,
            fundability_score=report.fundability_score
        )
        return report

    async def stream_synthesis(
        self,
        opinions: List[PersonaOpinion],
        user_id: str = "unknown"
    ) -> AsyncIterator[StreamEvent]:
        """
        Progressive synthesis.

        Yields ("partial", dict) each time the decoded prefix changes and at
        least `debounce_chars` new characters have arrived, then a single
        ("complete", AuditReport). Only the final validation can fail.
        """
        start = time.perf_counter()
        last_partial: Optional[Dict[str, Any]] = None
        emitted_size = 0

        async for kind, payload in stream_agent_output(self.agent, build_audit_prompt(opinions), ORCHESTRATOR.name):
            if kind == "complete":
                report = reconcile_red_flags(payload)
                log_agent_execution(
                    agent_name="SynthesisEngine",
                    user_id=user_id,
                    action="stream_synthesis",
                    duration_ms=(time.perf_counter() - start) * 1000,
                    fundability_score=report.fundability_score
                )
                yield "complete", report
                continue

            if len(payload) - emitted_size < self.debounce_chars:
                continue
            partial = parse_partial(payload)
            if partial is None or partial == last_partial:
                continue
            last_partial = partial
            emitted_size = len(payload)
            yield "partial", partial

    async def synthesize_comparison(
        self,
        deck_a_name: str,
        opinions_a: List[PersonaOpinion],
        deck_b_name: str,
        opinions_b: List[PersonaOpinion],
        user_id: str = "unknown"
    ) -> ComparisonReport:
        """
        Atomic synthesis of a head-to-head comparison.

        The deck names are always taken from the uploads, never from the model.
        """
        start = time.perf_counter()
        prompt = build_comparison_prompt(deck_a_name, opinions_a, deck_b_name, opinions_b)
        generated = await run_agent(self.comparison_agent, prompt, "Chief Investment Officer")

        report = reconcile_score_delta(generated).model_copy(
            update={"deck_a_name": deck_a_name, "deck_b_name": deck_b_name}
        )

        log_agent_execution(
            agent_name="SynthesisEngine",
            user_id=user_id,
            action="synthesize_comparison",
            duration_ms=(time.perf_counter() - start) * 1000,
            winner=report.winner
        )
        return report
