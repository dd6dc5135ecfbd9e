import copy
import io
import json
import pytest
from pydantic_ai import Agent
from pydantic_ai.messages import ModelResponse, TextPart, ToolCallPart
from pydantic_ai.models.function import DeltaToolCall, FunctionModel

from deckslayer.agents.personas import REVIEWERS
from deckslayer.models.analysis import PersonaOpinion

SAMPLE_REPORT = {
    "headline_burn": "A spreadsheet with a logo is not a moat.",
    "fundability_score": 38,
    "meeting_transcript": [
        {"partner": "SARAH", "comment": "Burn multiple is 4x and nobody mentions it.", "a2a_status": "verified"},
        {"partner": "MARCUS", "comment": "TAM is top-down fiction.", "a2a_status": "verified"},
        {"partner": "LEO", "comment": "The 'why now' is real, the product is not.", "a2a_status": "verified"},
    ],
    "red_flag_count": 2,
    "red_flags": [
        {"title": "No retention data", "reason": "Twelve months of revenue and no cohort chart."},
        {"title": "Founder-market fit", "reason": "Nobody on the team has sold to hospitals."},
    ],
    "slayers_list": ["Show cohort retention", "Replace the TAM slide with a bottoms-up model"],
    "market_benchmark": "Comparable seed rounds priced at 8-12x ARR in 2024.",
    "narrative_delta": "Claims workflow automation, ships a dashboard.",
    "killer_question": "Why will a hospital switch from Epic for this?",
    "slide_breakdown": [
        {"slide": "Market", "critique": "Top-down and unsourced.", "score": 22},
    ],
    "a2a_metadata": {
        "protocol": "a2aproject-v1.0",
        "agents_consulted": ["Sarah (Liquidator)", "Marcus (The Hawk)", "Leo (The Visionary)"],
        "orchestrator": "IC Orchestrator",
    },
}

SAMPLE_COMPARISON = {
    "deck_a_score": 61,
    "deck_b_score": 44,
    "winner": "deck_a",
    "winner_reasoning": "Deck A has paying customers.",
    "score_delta": 17,
    "category_breakdown": [
        {
            "category": "Traction",
            "deck_a_verdict": "Real revenue",
            "deck_b_verdict": "Waitlist only",
            "deck_a_score": 70,
            "deck_b_score": 30,
            "winner": "deck_a",
        }
    ],
    "combined_red_flags": [
        {"deck": "deck_b", "flag": "No revenue", "severity": "critical"},
    ],
    "vc_verdict": "Take the meeting with A.",
    "investment_recommendation": {
        "recommended_deck": "deck_a",
        "confidence": 72,
        "rationale": "Evidence beats narrative.",
    },
}

SAMPLE_INSIGHT = {
    "sector": "Healthcare",
    "sub_sector": "Hospital ops",
    "stage": "Seed",
    "funding_target_usd": 2500000,
    "narrative_tags": ["AI-native", "10x claim"],
    "primary_claim": "Cuts discharge time in half.",
    "red_flag_severity": "high",
}


@pytest.fixture
def audit_report_dict():
    """A valid audit report as the model would produce it."""
    return copy.deepcopy(SAMPLE_REPORT)


@pytest.fixture
def audit_report_json(audit_report_dict):
    return json.dumps(audit_report_dict)


@pytest.fixture
def comparison_report_dict():
    return copy.deepcopy(SAMPLE_COMPARISON)


@pytest.fixture
def insight_dict():
    return copy.deepcopy(SAMPLE_INSIGHT)


@pytest.fixture
def opinions():
    """One opinion per reviewer, in catalog order."""
    return [
        PersonaOpinion(
            persona_id=persona.id,
            persona_name=persona.name,
            opinion=f"{persona.transcript_tag} says: opinion #{index}"
        )
        for index, persona in enumerate(REVIEWERS)
    ]


def build_pdf(text: str = "Acme Health\nSeed round\nWe cut discharge time in half.") -> bytes:
    """Render a small one-page PDF containing `text`."""
    from reportlab.lib.pagesizes import A4
    from reportlab.pdfgen import canvas

    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=A4)
    y = 800
    for line in text.splitlines():
        pdf.drawString(72, y, line)
        y -= 18
    pdf.showPage()
    pdf.save()
    return buffer.getvalue()


@pytest.fixture
def pdf_bytes():
    return build_pdf()


@pytest.fixture
def make_pdf():
    return build_pdf


def build_structured_agent(output_type, payload, chunk_size: int = 40, preamble: str = "") -> Agent:
    """
    Agent whose model answers by calling the output tool with `payload`.

    `payload` is sent verbatim as the call's JSON arguments (a dict is dumped
    first), in one response or streamed in `chunk_size` pieces. A `preamble`
    is emitted as text before the call.
    """
    args = payload if isinstance(payload, str) else json.dumps(payload)

    def respond(messages, info):
        parts = [TextPart(preamble)] if preamble else []
        return ModelResponse(parts=parts + [ToolCallPart(info.output_tools[0].name, args)])

    async def stream(messages, info):
        name = info.output_tools[0].name
        for start in range(0, len(args), chunk_size):
            yield {0: DeltaToolCall(name=name if start == 0 else None, json_args=args[start:start + chunk_size])}

    return Agent(FunctionModel(respond, stream_function=stream), output_type=output_type, retries=0)


def build_prose_agent(output_type, text: str = "I would not invest in this company.") -> Agent:
    """Agent whose model ignores the output tool and answers in prose."""

    def respond(messages, info):
        return ModelResponse(parts=[TextPart(text)])

    async def stream(messages, info):
        yield text

    return Agent(FunctionModel(respond, stream_function=stream), output_type=output_type, retries=0)


@pytest.fixture
def structured_agent():
    return build_structured_agent


@pytest.fixture
def prose_agent():
    return build_prose_agent
