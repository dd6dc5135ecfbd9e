"""
Tests for AnalysisOrchestrator
Verifies the credit gate, charging after success only, and best-effort persistence.
"""
import json
import pytest
from unittest.mock import AsyncMock, MagicMock
from bson import ObjectId
from deckslayer.agents.oracle_agent import OracleService
from deckslayer.agents.synthesis_agent import SynthesisEngine
from deckslayer.core.analysis_orchestrator import AnalysisOrchestrator, AuditOutcome
from deckslayer.core.background import DetachedTaskRunner
from deckslayer.core.exceptions import InsufficientCreditsError, SchemaValidationError
from deckslayer.models.analysis import AnalysisRequest
from deckslayer.models.audit_report import AuditReport
from deckslayer.models.comparison_report import ComparisonReport
from deckslayer.models.market_insight import MarketInsightExtraction
from deckslayer.utils.llm_client import LLMError


async def assign_id(document):
    document.id = str(ObjectId())
    return document


@pytest.fixture
def request_a():
    return AnalysisRequest(deck_text="Acme Health deck", user_id="user-1", deck_name="acme.pdf")


@pytest.fixture
def request_b():
    return AnalysisRequest(deck_text="Beta Corp deck", user_id="user-1", deck_name="beta.pdf")


@pytest.fixture
def ledger():
    ledger = MagicMock()
    ledger.get_balance = AsyncMock(return_value=3)
    ledger.record_consumption = AsyncMock()
    ledger.has_purchased = AsyncMock(return_value=False)
    return ledger


@pytest.fixture
def analyses():
    analyses = MagicMock()
    analyses.create = AsyncMock(side_effect=assign_id)
    return analyses


@pytest.fixture
def comparisons():
    comparisons = MagicMock()
    comparisons.create = AsyncMock(side_effect=assign_id)
    return comparisons


@pytest.fixture
def insights():
    insights = MagicMock()
    insights.create = AsyncMock(side_effect=assign_id)
    return insights


@pytest.fixture
def dispatcher(opinions):
    dispatcher = MagicMock()
    dispatcher.dispatch = AsyncMock(return_value=opinions)
    dispatcher.dispatch_pair = AsyncMock(return_value=(opinions, opinions))
    return dispatcher


@pytest.fixture
def runner():
    return DetachedTaskRunner(max_concurrent=2, shutdown_timeout=5)


@pytest.fixture
def build(
    ledger, analyses, comparisons, insights, dispatcher, runner,
    structured_agent, audit_report_dict, comparison_report_dict, insight_dict
):
    def _build(report_output=None, oracle_output=None, comparison_output=None):
        return AnalysisOrchestrator(
            ledger=ledger,
            analyses=analyses,
            comparisons=comparisons,
            insights=insights,
            dispatcher=dispatcher,
            synthesis=SynthesisEngine(
                agent=structured_agent(AuditReport, report_output or audit_report_dict),
                comparison=structured_agent(ComparisonReport, comparison_output or comparison_report_dict),
                debounce_chars=0
            ),
            oracle=OracleService(agent=structured_agent(MarketInsightExtraction, oracle_output or insight_dict)),
            runner=runner
        )
    return _build


@pytest.mark.asyncio
class TestCreditGate:

    async def test_sufficient_balance_returns_it(self, build):
        assert await build().check_credits("user-1", 1) == 3

    async def test_insufficient_balance_raises(self, build, ledger, dispatcher):
        ledger.get_balance = AsyncMock(return_value=0)

        with pytest.raises(InsufficientCreditsError) as exc_info:
            await build().check_credits("user-1", 1)

        assert exc_info.value.status_code == 402
        assert exc_info.value.balance == 0
        dispatcher.dispatch.assert_not_called()

    async def test_comparison_needs_two(self, build, ledger):
        ledger.get_balance = AsyncMock(return_value=1)

        with pytest.raises(InsufficientCreditsError):
            await build().check_credits("user-1", 2)


@pytest.mark.asyncio
class TestRunAudit:

    async def test_charges_once_and_stores_once(self, build, request_a, ledger, analyses, insights, runner):
        outcome = await build().run_audit(request_a)
        await runner.shutdown()

        assert isinstance(outcome, AuditOutcome)
        assert outcome.report.fundability_score == 38
        assert outcome.analysis_id is not None

        ledger.record_consumption.assert_awaited_once_with("user-1", 1, "Audit of acme.pdf")
        analyses.create.assert_awaited_once()
        stored = analyses.create.call_args[0][0]
        assert stored.deck_name == "acme.pdf"
        assert stored.result["fundability_score"] == 38
        assert stored.pdf_unlocked is False

        insights.create.assert_awaited_once()
        insight = insights.create.call_args[0][0]
        assert insight.analysis_id == outcome.analysis_id
        assert insight.fundability_score == 38

    async def test_batch_buyers_start_unlocked(self, build, request_a, ledger, analyses, runner):
        ledger.has_purchased = AsyncMock(return_value=True)

        await build().run_audit(request_a)
        await runner.shutdown()

        assert analyses.create.call_args[0][0].pdf_unlocked is True
        ledger.has_purchased.assert_awaited_once_with("user-1", ["p_batch"])

    async def test_schema_failure_charges_nothing(self, build, request_a, ledger, analyses, insights):
        orchestrator = build(report_output='{"headline_burn": "half a report"}')

        with pytest.raises(SchemaValidationError):
            await orchestrator.run_audit(request_a)

        ledger.record_consumption.assert_not_called()
        analyses.create.assert_not_called()
        insights.create.assert_not_called()

    async def test_dispatch_failure_charges_nothing(self, build, request_a, ledger, analyses, dispatcher):
        dispatcher.dispatch = AsyncMock(side_effect=LLMError("Marcus (The Hawk)", "timeout", "Request timed out"))

        with pytest.raises(LLMError):
            await build().run_audit(request_a)

        ledger.record_consumption.assert_not_called()
        analyses.create.assert_not_called()

    async def test_oracle_failure_never_reaches_the_user(self, build, request_a, ledger, analyses, insights, runner):
        outcome = await build(oracle_output="not json at all").run_audit(request_a)
        await runner.shutdown()

        assert outcome.analysis_id is not None
        ledger.record_consumption.assert_awaited_once()
        analyses.create.assert_awaited_once()
        insights.create.assert_not_called()

    async def test_ledger_failure_still_returns_report(self, build, request_a, ledger, analyses, runner):
        ledger.record_consumption = AsyncMock(side_effect=RuntimeError("write concern"))

        outcome = await build().run_audit(request_a)
        await runner.shutdown()

        assert outcome.report.fundability_score == 38
        analyses.create.assert_awaited_once()

    async def test_insert_failure_skips_oracle(self, build, request_a, analyses, insights, runner):
        analyses.create = AsyncMock(side_effect=RuntimeError("primary stepped down"))

        outcome = await build().run_audit(request_a)
        await runner.shutdown()

        assert outcome.analysis_id is None
        assert outcome.report.fundability_score == 38
        insights.create.assert_not_called()


@pytest.mark.asyncio
class TestStreamAudit:

    async def test_partials_then_one_complete(self, build, request_a, opinions, ledger, runner):
        events = [event async for event in build().stream_audit(request_a, opinions=opinions)]
        await runner.shutdown()

        kinds = [kind for kind, _ in events]
        assert kinds[-1] == "complete"
        assert kinds.count("complete") == 1
        assert "partial" in kinds

        outcome = events[-1][1]
        assert outcome.report.fundability_score == 38
        ledger.record_consumption.assert_awaited_once()

    async def test_precollected_opinions_skip_dispatch(self, build, request_a, opinions, dispatcher, runner):
        [event async for event in build().stream_audit(request_a, opinions=opinions)]
        await runner.shutdown()

        dispatcher.dispatch.assert_not_called()

    async def test_stream_schema_failure_charges_nothing(self, build, request_a, opinions, ledger, analyses):
        orchestrator = build(report_output='{"headline_burn": "cut off')

        with pytest.raises(SchemaValidationError):
            [event async for event in orchestrator.stream_audit(request_a, opinions=opinions)]

        ledger.record_consumption.assert_not_called()
        analyses.create.assert_not_called()


@pytest.mark.asyncio
class TestRunComparison:

    async def test_charges_two_and_stores_one_record(
        self, build, request_a, request_b, ledger, comparisons, insights
    ):
        outcome = await build().run_comparison("user-1", request_a, request_b)

        assert outcome.report.deck_a_name == "acme.pdf"
        assert outcome.report.deck_b_name == "beta.pdf"
        assert outcome.comparison_id is not None

        ledger.record_consumption.assert_awaited_once_with(
            "user-1", 2, "Comparative analysis: acme.pdf vs beta.pdf"
        )
        comparisons.create.assert_awaited_once()
        assert comparisons.create.call_args[0][0].result["winner"] == "deck_a"
        insights.create.assert_not_called()

    async def test_schema_failure_charges_nothing(self, build, request_a, request_b, ledger, comparisons):
        orchestrator = build(comparison_output=json.dumps({"winner": "deck_a"}))

        with pytest.raises(SchemaValidationError):
            await orchestrator.run_comparison("user-1", request_a, request_b)

        ledger.record_consumption.assert_not_called()
        comparisons.create.assert_not_called()
