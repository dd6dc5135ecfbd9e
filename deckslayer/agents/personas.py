"""
Investment Committee Personas

Static agent cards for the reviewers, the synthesizer and the internal
Oracle. Built once at import time and never mutated.
"""
import json
from dataclasses import dataclass, field
from typing import Tuple

from deckslayer.config import settings


@dataclass(frozen=True)
class Skill:
    id: str
    name: str
    description: str
    tags: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Persona:
    """A named reviewer role with its own instruction template."""
    id: str
    name: str
    transcript_tag: str
    description: str
    task: str
    compare_task: str = ""
    skills: Tuple[Skill, ...] = field(default_factory=tuple)
    output_mode: str = "text/plain"
    path: str = ""

    def card(self) -> dict:
        """Agent-card form embedded in prompts."""
        return {
            "name": self.name,
            "description": self.description,
            "protocolVersion": "1.0.0",
            "version": "1.0.0",
            "url": f"{settings.public_base_url}{self.path}",
            "defaultInputModes": ["text/plain"],
            "defaultOutputModes": [self.output_mode],
            "capabilities": {"streaming": False},
            "skills": [
                {
                    "id": skill.id,
                    "name": skill.name,
                    "description": skill.description,
                    "tags": list(skill.tags),
                }
                for skill in self.skills
            ],
        }

    def card_json(self) -> str:
        return json.dumps(self.card())


RISK_AUDITOR = Persona(
    id="risk-auditor",
    name="Sarah (Liquidator)",
    transcript_tag="SARAH",
    description="Skeptical GP with 20 years experience focusing on risk assessment and execution gaps.",
    task="Perform risk audit on this deck.",
    compare_task="Perform risk audit. Rate 0-100. Be concise.",
    path="/api/roast/sarah",
    skills=(
        Skill("risk-audit", "Risk Audit", "In-depth risk assessment of startup narratives.", ("risk", "vc")),
        Skill("narrative-pressure-test", "Pressure Test", "Adversarial testing of pitch logic.", ("narrative", "adversarial")),
    ),
)

MARKET_VALIDATOR = Persona(
    id="market-validator",
    name="Marcus (The Hawk)",
    transcript_tag="MARCUS",
    description="Data-driven specialist focusing on TAM, unit economics, and competitive realism.",
    task="Perform market/data validation on this deck.",
    compare_task="Perform market validation. Rate 0-100. Be concise.",
    path="/api/roast/marcus",
    skills=(
        Skill("market-sizing", "Market Sizing", "Bottoms-up TAM and market realism check.", ("market", "data")),
        Skill("data-validation", "Data Validation", "Verification of unit economics and projections.", ("economics", "validation")),
    ),
)

VISION_REVIEWER = Persona(
    id="vision-reviewer",
    name="Leo (The Visionary)",
    transcript_tag="LEO",
    description="Product-obsessed partner looking for moonshots and 'Why Now' narratives.",
    task="Perform product/vision strategic check on this deck.",
    compare_task="Perform vision check. Rate 0-100. Be concise.",
    path="/api/roast/leo",
    skills=(
        Skill("product-strategy", "Product Strategy", "Assessment of PMF and product-led growth potential.", ("product", "strategy")),
        Skill("vision-check", "Vision Check", "Validation of 'Why Now' and long-term moonshot potential.", ("vision", "moonshot")),
    ),
)

ORCHESTRATOR = Persona(
    id="ic-orchestrator",
    name="IC Orchestrator",
    transcript_tag="",
    description="Synthesizer for the Multi-Agent Investment Committee.",
    task="Synthesize the partner reports into a coordinated diagnostic report.",
    output_mode="application/json",
    path="/api/roast",
    skills=(
        Skill("synthesis", "Report Synthesis", "Synthesizing divergent agent reports into a coordinated diagnostic.", ("synthesis", "orchestration")),
    ),
)

# Internal only: its output is never shown to the deck's owner
ORACLE = Persona(
    id="oracle",
    name="The Oracle",
    transcript_tag="",
    description="Internal intelligence agent for sector classification, stage detection, and narrative fingerprinting.",
    task="Extract macro-level metadata from this pitch deck for trend analysis.",
    output_mode="application/json",
    path="/api/internal/oracle",
    skills=(
        Skill("sector-classification", "Sector Classification", "Identifies the startup's primary industry and sub-sector.", ("sector", "classification")),
        Skill("stage-detection", "Stage Detection", "Determines the funding stage and requested capital.", ("stage", "funding")),
        Skill("narrative-fingerprinting", "Narrative Fingerprinting", "Extracts key claims and buzzwords from the pitch.", ("narrative", "trends")),
    ),
)

# Dispatch and prompt order
REVIEWERS: Tuple[Persona, ...] = (RISK_AUDITOR, MARKET_VALIDATOR, VISION_REVIEWER)


def get_persona(persona_id: str) -> Persona:
    for persona in REVIEWERS + (ORCHESTRATOR, ORACLE):
        if persona.id == persona_id:
            return persona
    raise KeyError(persona_id)
