"""
API test wiring: in-memory repositories on app.state and scripted agents.
The lifespan never runs, so no database or provider is touched.
"""
import json
from collections import Counter
from typing import Optional

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient
from pydantic_ai import Agent
from pydantic_ai.messages import ModelResponse, TextPart, ToolCallPart
from pydantic_ai.models.function import DeltaToolCall, FunctionModel
from pydantic_ai.models.test import TestModel

from deckslayer.agents.oracle_agent import OracleService
from deckslayer.agents.persona_agents import PersonaDispatcher
from deckslayer.agents.rebuttal_agent import RebuttalAgent
from deckslayer.agents.synthesis_agent import SynthesisEngine
from deckslayer.api.dependencies import get_optional_user
from deckslayer.api.main import app
from deckslayer.core.analysis_orchestrator import AnalysisOrchestrator
from deckslayer.core.background import DetachedTaskRunner
from deckslayer.models.audit_report import AuditReport
from deckslayer.models.comparison_report import ComparisonReport
from deckslayer.models.ledger import LedgerEntry, LedgerEntryType
from deckslayer.models.market_insight import MarketInsightExtraction
from deckslayer.services.auth_service import AuthenticatedUser
from deckslayer.services.payment_service import PaymentService
from deckslayer.utils.rate_limiter import InMemoryRateLimiter

FOUNDER = AuthenticatedUser(id="user-1", email="founder@example.com")
ADMIN = AuthenticatedUser(id="admin-1", email="ops@deckslayer.example")


class FakeLedger:

    def __init__(self, balance: int = 0, user_id: str = FOUNDER.id):
        self.entries: list[LedgerEntry] = []
        if balance:
            self.entries.append(LedgerEntry(
                user_id=user_id, amount=balance, entry_type=LedgerEntryType.ADJUSTMENT, reason="Opening balance"
            ))

    @property
    def writes(self) -> list[LedgerEntry]:
        return [entry for entry in self.entries if entry.reason != "Opening balance"]

    async def get_balance(self, user_id: str) -> int:
        return sum(entry.amount for entry in self.entries if entry.user_id == user_id)

    async def record_consumption(self, user_id: str, credits: int, reason: str) -> LedgerEntry:
        entry = LedgerEntry(user_id=user_id, amount=-credits, entry_type=LedgerEntryType.CONSUMPTION, reason=reason)
        self.entries.append(entry)
        return entry

    async def record_purchase(self, user_id: str, credits: int, reason: str, product_id=None) -> LedgerEntry:
        entry = LedgerEntry(
            user_id=user_id,
            amount=credits,
            entry_type=LedgerEntryType.PURCHASE,
            reason=reason,
            product_id=product_id
        )
        self.entries.append(entry)
        return entry

    async def has_purchased(self, user_id: str, product_ids) -> bool:
        return any(
            e.user_id == user_id and e.entry_type == LedgerEntryType.PURCHASE and e.product_id in product_ids
            for e in self.entries
        )


class FakeStore:
    """Insert-and-read stand-in shared by analyses, comparisons and insights."""

    def __init__(self):
        self.records = []

    async def create(self, document):
        document.id = str(ObjectId())
        self.records.append(document)
        return document

    async def count(self, filter_dict=None) -> int:
        return len(self.records)


class FakeAnalyses(FakeStore):

    async def get_for_user(self, analysis_id: str, user_id: str):
        for record in self.records:
            if record.id == analysis_id and record.user_id == user_id:
                return record
        return None

    async def list_for_user(self, user_id: str, limit: int = 50, skip: int = 0):
        owned = [record for record in self.records if record.user_id == user_id]
        return list(reversed(owned))[skip:skip + limit]

    async def unlock_export(self, analysis_id: str, user_id: Optional[str] = None) -> bool:
        for record in self.records:
            if record.id == analysis_id and (user_id is None or record.user_id == user_id):
                record.pdf_unlocked = True
                return True
        return False


class FakeInsights(FakeStore):

    async def sector_stats(self):
        counts = Counter(str(insight.sector) for insight in self.records)
        return [{"sector": sector, "count": count} for sector, count in counts.most_common()]

    async def top_narrative_tags(self, limit: int = 15, sample_size: int = 1000):
        counts = Counter(tag for insight in self.records for tag in insight.narrative_tags)
        return [{"tag": tag, "count": count} for tag, count in counts.most_common(limit)]


class FakePaymentEvents:

    def __init__(self):
        self.claimed = set()

    async def claim(self, event) -> bool:
        if event.webhook_id in self.claimed:
            return False
        self.claimed.add(event.webhook_id)
        return True

    async def release(self, webhook_id: str) -> None:
        self.claimed.discard(webhook_id)


class ProviderCalls:
    """Counts every generation request made through the scripted agents."""

    def __init__(self):
        self.count = 0

    def persona_agent(self) -> Agent:
        async def respond(messages, info):
            self.count += 1
            return ModelResponse(parts=[TextPart("The numbers do not add up.")])

        return Agent(FunctionModel(respond), output_type=str)

    def structured_agent(self, output_type, payload) -> Agent:
        """Answers through the output tool with `payload` as the call arguments."""
        args = payload if isinstance(payload, str) else json.dumps(payload)

        async def respond(messages, info):
            self.count += 1
            return ModelResponse(parts=[ToolCallPart(info.output_tools[0].name, args)])

        async def stream(messages, info):
            self.count += 1
            name = info.output_tools[0].name
            for start in range(0, len(args), 40):
                yield {0: DeltaToolCall(name=name if start == 0 else None, json_args=args[start:start + 40])}

        return Agent(FunctionModel(respond, stream_function=stream), output_type=output_type, retries=0)


class ApiState:
    """Handles to everything the tests wire into app.state."""

    def __init__(self, balance, audit_report, comparison_report, insight):
        self.provider = ProviderCalls()
        self.ledger = FakeLedger(balance)
        self.analyses = FakeAnalyses()
        self.comparisons = FakeStore()
        self.insights = FakeInsights()
        self.payment_events = FakePaymentEvents()
        self.runner = DetachedTaskRunner(max_concurrent=2, shutdown_timeout=5)
        self.checkout_client = None
        self.orchestrator = AnalysisOrchestrator(
            self.ledger,
            self.analyses,
            self.comparisons,
            self.insights,
            dispatcher=PersonaDispatcher(agent=self.provider.persona_agent()),
            synthesis=SynthesisEngine(
                agent=self.provider.structured_agent(AuditReport, audit_report),
                comparison=self.provider.structured_agent(ComparisonReport, comparison_report),
                debounce_chars=0
            ),
            oracle=OracleService(agent=Agent(
                TestModel(custom_output_args=insight), output_type=MarketInsightExtraction
            )),
            runner=self.runner
        )
        self.rebuttal = RebuttalAgent(agent=Agent(
            TestModel(custom_output_text="Sarah sighs. LOIs are not revenue."), output_type=str
        ))


@pytest.fixture
def user():
    """Signed-in caller; tests may reassign `.current`."""
    class Session:
        current: Optional[AuthenticatedUser] = FOUNDER
    return Session()


@pytest.fixture
def balance():
    return 3


@pytest.fixture
def api_state(balance, audit_report_dict, comparison_report_dict, insight_dict):
    return ApiState(balance, audit_report_dict, comparison_report_dict, insight_dict)


@pytest.fixture
def client(api_state, user, monkeypatch):
    """TestClient with the app state wired to in-memory fakes."""
    from deckslayer.services.pdf_extractor import PDFExtractor

    app.state.ledger = api_state.ledger
    app.state.analyses = api_state.analyses
    app.state.insights = api_state.insights
    app.state.runner = api_state.runner
    app.state.rate_limiter = InMemoryRateLimiter()
    app.state.pdf_extractor = PDFExtractor()
    app.state.rebuttal_agent = api_state.rebuttal
    app.state.orchestrator = api_state.orchestrator
    app.state.payment_service = PaymentService(
        api_state.ledger, api_state.analyses, api_state.payment_events, client=api_state.checkout_client
    )

    async def session_user():
        return user.current

    app.dependency_overrides[get_optional_user] = session_user

    yield TestClient(app)

    app.dependency_overrides.clear()
