"""Prompt scaffolding for the interview collaborators."""

from __future__ import annotations

from string import Template
from typing import Dict, Mapping

from .context import Category, Stage

EVALUATION_SYSTEM_PROMPT = Template(
    """
You evaluate answers given during a business discovery interview and decide whether they contain enough detail to build a comprehensive business plan.

Evaluation criteria:
- Specificity: does the answer include concrete details, numbers, or examples?
- Actionability: can a consultant act on this information?
- Completeness: does it address every aspect of the question?
- Clarity: is the answer clear and understandable?

Scoring:
- 8-10: excellent detail, move to the next question
- 5-7: good but could use more detail, ask ONE clarifying follow-up
- 1-4: too vague, needs substantial clarification

Follow-up questions must be conversational, reference the answer, and ask about ONE specific thing.

Context:
$context_lines

Respond ONLY with JSON using this schema:{
  "success": bool,
  "evaluation": {
    "hasEnoughDetail": bool,
    "detailScore": number,
    "followUpQuestion": string | null,
    "reasoning": string,
    "suggestedImprovements": [string]
  }
}
Do not include any text outside of the JSON object.""".strip()
)

EVALUATION_USER_PROMPT = Template(
    """
Question: "$question"

User's response: "$answer"

Evaluate this response and determine whether a follow-up question is needed.""".strip()
)

FOLLOW_UP_SYSTEM_PROMPT = Template(
    """
You generate a single, specific follow-up question for a business discovery interview using progressive questioning.

Techniques:
1. Start broad, then narrow down.
2. Ask "why" to reach root causes (5 Whys).
3. Probe for quantification: how much, how often, how many.
4. Uncover challenges the person has not mentioned yet.
5. Connect the answer to business outcomes: revenue, growth, efficiency.
$industry_line$stage_line$example_line
Guidelines: be friendly, reference what they said, ask about ONE thing, ask for numbers where possible, never repeat an earlier question.

Respond ONLY with JSON: {"success": bool, "followUpQuestion": string}""".strip()
)

FOLLOW_UP_USER_PROMPT = Template(
    """
Original question: "$question"
User's response: "$answer"
$improvement_lines$business_line
Generate ONE follow-up question that digs deeper.""".strip()
)

CATEGORY_PROBE_EXAMPLES: Dict[Category, str] = {
    Category.TECH_SAAS: (
        "If the user says 'low sales', probe: 'In SaaS, sales issues usually "
        "break down into messaging clarity, channel effectiveness, or "
        "conversion. Which do you think is the biggest blocker?'"
    ),
    Category.RETAIL_ECOMMERCE: (
        "If the user says 'not enough customers', probe: 'Are people finding "
        "your products but not buying, or not finding you at all?'"
    ),
    Category.SERVICE: (
        "If the user says 'not enough clients', probe: 'Are you having "
        "trouble attracting leads, or converting inquiries into clients?'"
    ),
}

CATEGORY_FOCUS: Mapping[Category, Mapping[Stage, str]] = {
    Category.TECH_SAAS: {
        Stage.IDEA: "MVP validation, technical feasibility and first users.",
        Stage.EARLY: "Product-market fit, onboarding and churn reduction.",
        Stage.GROWING: "Scaling infrastructure and CAC/LTV ratios.",
        Stage.ESTABLISHED: "Differentiation, diversification and retention.",
    },
    Category.RETAIL_ECOMMERCE: {
        Stage.IDEA: "Market research, suppliers, pricing and channels.",
        Stage.EARLY: "Inventory, acquisition and conversion optimisation.",
        Stage.GROWING: "Supply chain scaling and multi-channel expansion.",
        Stage.ESTABLISHED: "Margin optimisation and omnichannel integration.",
    },
    Category.SERVICE: {
        Stage.IDEA: "Service definition, pricing and first clients.",
        Stage.EARLY: "Standardised delivery, retention and referrals.",
        Stage.GROWING: "Team scaling, automation and positioning.",
        Stage.ESTABLISHED: "Operational excellence and premium positioning.",
    },
    Category.OTHER: {
        Stage.IDEA: "Business model and market opportunity.",
        Stage.EARLY: "Operational systems and growth foundations.",
        Stage.GROWING: "Scaling operations and performance.",
        Stage.ESTABLISHED: "Optimisation and strategic positioning.",
    },
}

STAGE_TIMELINES: Dict[Stage, str] = {
    Stage.IDEA: (
        "2-4 weeks for validation and quick wins, 2-3 months for initial "
        "setup"
    ),
    Stage.EARLY: (
        "2-4 weeks for quick wins, 1-2 months for foundational systems, "
        "3-6 months for strategic initiatives"
    ),
    Stage.GROWING: (
        "1-2 months for optimisation, 3-6 months for scaling initiatives, "
        "6-12 months for expansion"
    ),
    Stage.ESTABLISHED: (
        "1-3 months for optimisation, 3-6 months for strategic shifts, "
        "6-12 months for transformation"
    ),
}

DOCUMENT_SYSTEM_PROMPT = (
    "You are a senior business consultant turning interview answers into a "
    "concise business case. Describe root causes rather than symptoms, "
    "quantify impact with numbers (time, cost, revenue), and write "
    "measurable objectives."
)

DOCUMENT_SCHEMA_INSTRUCTIONS = """
Respond ONLY with valid JSON matching the schema below. Do not wrap the JSON in markdown fences or include commentary.
{
  "problem_statement": string,
  "objectives": [string],
  "current_state": string,
  "proposed_solution": [
    {
      "pillar": string,
      "actions": [string],
      "effort": "low" | "medium" | "high",
      "impact": "low" | "medium" | "high",
      "timeline": string,
      "investment": string
    }
  ],
  "expected_outcomes": [string],
  "next_steps": [string],
  "risk_assessment": string,
  "competitive_advantage": string
}""".strip()


def category_guidance(
    category: Category | None,
    stage: Stage | None,
) -> str:
    """Describe what a business in this category and stage should focus on."""

    resolved_category = category or Category.OTHER
    resolved_stage = stage or Stage.EARLY
    focus = CATEGORY_FOCUS[resolved_category][resolved_stage]
    timeline = STAGE_TIMELINES[resolved_stage]
    return (
        f"Industry: {resolved_category.value}. Stage: {resolved_stage.value}. "
        f"Focus on {focus} Typical timelines: {timeline}."
    )
