"""
Analysis Orchestrator
Coordinates the Investment Committee pipeline for uploaded decks.

Architecture:
    Deck text → Persona dispatch (parallel) → Synthesis → Persistence
                                                          └→ Oracle (detached)
"""
from dataclasses import dataclass
from typing import AsyncIterator, List, Optional, Tuple, Union
from loguru import logger
import time

from deckslayer.agents.oracle_agent import OracleService
from deckslayer.agents.persona_agents import PersonaDispatcher
from deckslayer.agents.synthesis_agent import SynthesisEngine
from deckslayer.config import settings
from deckslayer.core.background import DetachedTaskRunner
from deckslayer.core.exceptions import InsufficientCreditsError, SchemaValidationError
from deckslayer.models.analysis import AnalysisRecord, AnalysisRequest, ComparisonRecord, PersonaOpinion
from deckslayer.models.audit_report import AuditReport
from deckslayer.models.comparison_report import ComparisonReport
from deckslayer.models.market_insight import MarketInsight
from deckslayer.models.payment import export_access_products
from deckslayer.repositories.analyses import AnalysisRepository, ComparisonRepository
from deckslayer.repositories.insights import MarketInsightRepository
from deckslayer.repositories.ledger import LedgerRepository
from deckslayer.utils.observability import log_agent_execution, log_business_event


@dataclass
class AuditOutcome:
    """A finalized single-deck report and the id it was stored under (None if the insert failed)."""
    report: AuditReport
    analysis_id: Optional[str]


@dataclass
class ComparisonOutcome:
    report: ComparisonReport
    comparison_id: Optional[str]


AuditEvent = Tuple[str, Union[dict, AuditOutcome]]


class AnalysisOrchestrator:
    """
    Runs paid analyses end to end.

    Responsibilities:
    1. Gate on the ledger balance before any provider call
    2. Fan the deck out to the committee and synthesize the report
    3. Charge and persist only once a valid report exists
    4. Hand the internal Oracle extraction to the detached runner

    Usage:
        >>> orchestrator = AnalysisOrchestrator(ledger, analyses, comparisons, insights)
        >>> await orchestrator.check_credits(user_id, settings.analysis_credit_cost)
        >>> outcome = await orchestrator.run_audit(request)
    """

    def __init__(
        self,
        ledger: LedgerRepository,
        analyses: AnalysisRepository,
        comparisons: ComparisonRepository,
        insights: MarketInsightRepository,
        dispatcher: PersonaDispatcher | None = None,
        synthesis: SynthesisEngine | None = None,
        oracle: OracleService | None = None,
        runner: DetachedTaskRunner | None = None
    ):
        self.ledger = ledger
        self.analyses = analyses
        self.comparisons = comparisons
        self.insights = insights

        # Allow dependency injection for testing
        self.dispatcher = dispatcher or PersonaDispatcher()
        self.synthesis = synthesis or SynthesisEngine()
        self.oracle = oracle or OracleService()
        self.runner = runner or DetachedTaskRunner(
            max_concurrent=settings.background_max_concurrent,
            shutdown_timeout=settings.background_shutdown_timeout_seconds
        )

    async def check_credits(self, user_id: str, cost: int) -> int:
        """
        Fail fast when the user cannot pay.

        Returns:
            The current balance

        Raises:
            InsufficientCreditsError: If balance < cost
        """
        balance = await self.ledger.get_balance(user_id)
        if balance < cost:
            logger.info(f"Insufficient credits for {user_id}: balance={balance}, required={cost}")
            raise InsufficientCreditsError(required=cost, balance=balance)
        return balance

    # ------------------------------------------------------------------
    # Single deck
    # ------------------------------------------------------------------

    async def run_audit(self, request: AnalysisRequest) -> AuditOutcome:
        """Atomic audit: dispatch, synthesize, persist, then return."""
        start = time.perf_counter()

        opinions = await self.consult(request)

        try:
            report = await self.synthesis.synthesize(opinions, user_id=request.user_id)
        except SchemaValidationError as e:
            logger.error(f"Synthesis schema validation failed for {request.deck_name}: {e.detail}")
            raise

        analysis_id = await self.finalize_audit(request, report)

        log_agent_execution(
            agent_name="AnalysisOrchestrator",
            user_id=request.user_id,
            action="run_audit",
            duration_ms=(time.perf_counter() - start) * 1000,
            deck_name=request.deck_name,
            analysis_id=analysis_id
        )
        return AuditOutcome(report=report, analysis_id=analysis_id)

    async def consult(self, request: AnalysisRequest) -> List[PersonaOpinion]:
        """Committee opinions for one deck, in catalog order."""
        return await self.dispatcher.dispatch(request.deck_text, user_id=request.user_id)

    async def stream_audit(
        self,
        request: AnalysisRequest,
        opinions: Optional[List[PersonaOpinion]] = None
    ) -> AsyncIterator[AuditEvent]:
        """
        Progressive audit.

        Yields ("partial", dict) while the report is generated, then
        ("complete", AuditOutcome) after persistence has run. Nothing is
        charged if the stream fails before the final parse succeeds.

        Args:
            request: The extracted deck
            opinions: Already-collected opinions; dispatched here when None
        """
        start = time.perf_counter()

        if opinions is None:
            opinions = await self.consult(request)

        report: Optional[AuditReport] = None
        try:
            async for kind, value in self.synthesis.stream_synthesis(opinions, user_id=request.user_id):
                if kind == "complete":
                    report = value
                else:
                    yield "partial", value
        except SchemaValidationError as e:
            logger.error(f"Synthesis schema validation failed for {request.deck_name}: {e.detail}")
            raise

        analysis_id = await self.finalize_audit(request, report)

        log_agent_execution(
            agent_name="AnalysisOrchestrator",
            user_id=request.user_id,
            action="stream_audit",
            duration_ms=(time.perf_counter() - start) * 1000,
            deck_name=request.deck_name,
            analysis_id=analysis_id
        )
        yield "complete", AuditOutcome(report=report, analysis_id=analysis_id)

    async def finalize_audit(self, request: AnalysisRequest, report: AuditReport) -> Optional[str]:
        """
        Charge, store and schedule the Oracle for a finalized report.

        Each step is attempted on its own and failures are only logged; an
        earlier step is never rolled back.

        Returns:
            The stored analysis id, or None if the insert failed
        """
        user_id = request.user_id
        cost = settings.analysis_credit_cost

        # 1. Charge
        try:
            await self.ledger.record_consumption(user_id, cost, f"Audit of {request.deck_name}")
            log_business_event("credits_deducted", user_id, amount=-cost, deck_name=request.deck_name)
        except Exception:
            logger.exception(f"Failed to deduct credits for {user_id}")

        # 2. Buyers of an export-access product get exports unlocked from the start
        pdf_unlocked = False
        try:
            pdf_unlocked = await self.ledger.has_purchased(user_id, export_access_products())
        except Exception:
            logger.exception(f"Failed to check batch purchase for {user_id}")

        # 3. Store
        analysis_id: Optional[str] = None
        try:
            record = await self.analyses.create(AnalysisRecord(
                user_id=user_id,
                deck_name=request.deck_name,
                result=report.model_dump(mode="json"),
                pdf_unlocked=pdf_unlocked
            ))
            analysis_id = record.id
            log_business_event("analysis_saved", user_id, analysis_id=analysis_id, pdf_unlocked=pdf_unlocked)
        except Exception:
            logger.exception(f"Failed to save analysis for {user_id}")

        # 4. Internal market intelligence, never awaited here
        if analysis_id:
            self.runner.submit(
                self.extract_market_insight(request.deck_text, analysis_id, report.fundability_score),
                name=f"oracle:{analysis_id}"
            )
            logger.debug(f"Oracle extraction scheduled for analysis {analysis_id}")

        return analysis_id

    async def extract_market_insight(self, deck_text: str, analysis_id: str, fundability_score: int) -> None:
        """Oracle extraction for one stored analysis. Failures are logged, never retried."""
        try:
            extraction = await self.oracle.extract(deck_text)
            insight = await self.insights.create(
                MarketInsight.from_extraction(extraction, analysis_id, fundability_score)
            )
        except SchemaValidationError as e:
            logger.error(f"[Oracle] Schema validation failed for analysis {analysis_id}: {e.detail}")
            return
        except Exception:
            logger.exception(f"[Oracle] Extraction failed for analysis {analysis_id}")
            return

        log_business_event(
            "insight_extracted",
            "internal",
            analysis_id=analysis_id,
            insight_id=insight.id,
            sector=str(insight.sector)
        )

    # ------------------------------------------------------------------
    # Two decks
    # ------------------------------------------------------------------

    async def run_comparison(
        self,
        user_id: str,
        deck_a: AnalysisRequest,
        deck_b: AnalysisRequest
    ) -> ComparisonOutcome:
        """
        Head-to-head analysis of two decks.

        Charged once at the comparison cost and stored as one record. No
        Oracle extraction.
        """
        start = time.perf_counter()

        opinions_a, opinions_b = await self.dispatcher.dispatch_pair(
            deck_a.deck_text, deck_b.deck_text, user_id=user_id
        )

        try:
            report = await self.synthesis.synthesize_comparison(
                deck_a.deck_name, opinions_a, deck_b.deck_name, opinions_b, user_id=user_id
            )
        except SchemaValidationError as e:
            logger.error(f"Comparison schema validation failed: {e.detail}")
            raise

        cost = settings.comparison_credit_cost
        try:
            await self.ledger.record_consumption(
                user_id, cost, f"Comparative analysis: {deck_a.deck_name} vs {deck_b.deck_name}"
            )
            log_business_event("credits_deducted", user_id, amount=-cost, comparison=True)
        except Exception:
            logger.exception(f"Failed to deduct comparison credits for {user_id}")

        comparison_id: Optional[str] = None
        try:
            record = await self.comparisons.create(ComparisonRecord(
                user_id=user_id,
                deck_a_name=deck_a.deck_name,
                deck_b_name=deck_b.deck_name,
                result=report.model_dump(mode="json")
            ))
            comparison_id = record.id
            log_business_event("comparison_saved", user_id, comparison_id=comparison_id)
        except Exception:
            logger.exception(f"Failed to save comparison for {user_id}")

        log_agent_execution(
            agent_name="AnalysisOrchestrator",
            user_id=user_id,
            action="run_comparison",
            duration_ms=(time.perf_counter() - start) * 1000,
            winner=str(report.winner)
        )
        return ComparisonOutcome(report=report, comparison_id=comparison_id)
