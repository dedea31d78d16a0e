"""
giftbrief — Narrative Generator
================================
Turns a prospect's problem statement into a NarrativeResult:

  1. build_prompt       — role, the problem verbatim, the output schema, style rules
  2. llm                — one Gemini generateContent call over REST
  3. clean_response     — strips ```json fences
  4. decode_narrative   — strict decode, per-field defaults, or a total fallback

MOCK_DATA=true short-circuits all four steps with MOCK_RESPONSE.
"""

import json, re, logging
from dataclasses import dataclass
from typing import Literal

import requests

from errors import GenerationError
from schemas import NarrativeResult, NarrativeSections
from settings import GEMINI_API_URL, Settings

logger = logging.getLogger("giftbrief")

TEMPERATURE       = 0.3
MAX_OUTPUT_TOKENS = 600
LLM_TIMEOUT       = 60

SECTION_FIELDS = ("problem_reframe", "why_gifting_works", "strategy_shape", "success_and_next_step")


# ── Canned response (MOCK_DATA=true) ──────────────────────────────────────────
MOCK_RESPONSE = NarrativeResult(
    teaser=(
        "It sounds like your challenge isn’t just getting clients’ attention, but creating moments "
        "that actually stick with them. Thoughtful gifting can turn routine interactions into "
        "emotional touchpoints that strengthen relationships over time."
    ),
    preview=(
        "When gifting is approached strategically, it becomes more than a nice gesture — it creates "
        "memorable moments that clients associate with your brand. The right approach focuses on "
        "timing, relevance, and emotional intent, not just the item itself."
    ),
    pdf=NarrativeSections(
        problem_reframe=(
            "At the core of your challenge is the difficulty of standing out in a crowded, "
            "transactional landscape where most touchpoints feel forgettable. Even strong offerings "
            "can fade into the background when interactions lack emotional impact. The real issue "
            "isn’t effort — it’s creating moments clients genuinely remember."
        ),
        why_gifting_works=(
            "Strategic gifting works because emotional experiences are remembered far longer than "
            "digital messages or standard incentives. When done with intention, gifting signals care, "
            "effort, and thoughtfulness in a way few channels can replicate. This creates "
            "differentiation at a human level, not just a competitive one."
        ),
        strategy_shape=(
            "Effective gifting strategies are designed around moments that matter, not volume or "
            "frequency. They balance timing, emotional intent, and relevance to the recipient so the "
            "gesture feels personal rather than promotional. The focus is on perceived meaning and "
            "effort, ensuring the experience aligns naturally with the relationship you’re building."
        ),
        success_and_next_step=(
            "When executed well, gifting leads to stronger recall, warmer conversations, and deeper "
            "long-term relationships with clients. The exact execution depends on your audience, "
            "goals, and context, which is why the final approach is best mapped together. A short "
            "conversation is often the fastest way to translate this strategy into a plan that fits "
            "your business."
        ),
    ),
)


# ── Defaults ──────────────────────────────────────────────────────────────────
FIELD_DEFAULTS = {
    "teaser":                "We've analyzed your problem.",
    "preview":               "Check your email for details.",
    "problem_reframe":       "We're analyzing your challenge from a fresh perspective.",
    "why_gifting_works":     "Strategic gifting creates memorable touchpoints that build lasting relationships.",
    "strategy_shape":        "Your strategy will focus on personalized moments at key interaction points.",
    "success_and_next_step": "When executed well, this creates measurable loyalty gains. Let's map the details together.",
}

PENDING = "TBD"

FALLBACK_RESPONSE = NarrativeResult(
    teaser="We've analyzed your problem and found a solution.",
    preview="Check your email for the full breakdown and next steps.",
    pdf=NarrativeSections(**{field: PENDING for field in SECTION_FIELDS}),
)


@dataclass(frozen=True)
class DecodeOutcome:
    kind:   Literal["decoded", "fallback"]
    result: NarrativeResult


# ── Prompt ────────────────────────────────────────────────────────────────────
def build_prompt(problem: str) -> str:
    return f"""You are a gifting strategist at Real.AI. A potential customer has shared this challenge:

"{problem}"

Show how strategic corporate gifting can solve their problem by creating memorable emotional connections with their clients.

Return ONLY valid JSON in exactly this shape (no markdown, no backticks):
{{
  "teaser": "...",
  "preview": "...",
  "pdf": {{
    "problem_reframe": "...",
    "why_gifting_works": "...",
    "strategy_shape": "...",
    "success_and_next_step": "..."
  }}
}}

Rules:
- teaser: 1-2 sentences. Tie their problem to how gifting builds emotional bonds with clients.
- preview: 2-3 sentences. Hint at the strategy without specifics. Mention memorable moments.
- pdf.problem_reframe: 2-3 sentences. Restate the challenge more sharply and add one insight they did not state. No solutions yet.
- pdf.why_gifting_works: 2-3 sentences. Why gifting is the right lever here: emotional memory, differentiation, attention. Educational, not salesy.
- pdf.strategy_shape: 3-4 sentences. The high-level structure of the strategy: timing, intent, relevance. No specific gifts, budgets, timelines or vendors.
- pdf.success_and_next_step: 2-3 sentences. What success looks like, ending with a soft invitation to map the execution together on a call.

Global rules:
- No bullet points, headers or lists
- No concrete gift examples
- No pricing, SKUs or execution details
- Warm, confident, conversational tone
- Output must be valid JSON only"""


# ── Gemini ────────────────────────────────────────────────────────────────────
def llm(prompt: str, settings: Settings) -> str:
    r = requests.post(
        f"{GEMINI_API_URL}/models/{settings.gemini_model}:generateContent",
        headers={"x-goog-api-key": settings.gemini_api_key},
        json={
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": TEMPERATURE, "maxOutputTokens": MAX_OUTPUT_TOKENS},
        },
        timeout=LLM_TIMEOUT,
    )
    r.raise_for_status()
    candidates = r.json().get("candidates") or []
    if not candidates:
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(p.get("text", "") for p in parts)


# ── Decoding ──────────────────────────────────────────────────────────────────
def clean_response(text: str) -> str:
    return re.sub(r"```json\n?|```\n?", "", text).strip()


def _field(data: dict, key: str) -> str:
    value = data.get(key)
    if value is None:
        return FIELD_DEFAULTS[key]
    if not isinstance(value, str):
        raise TypeError(f"{key} is {type(value).__name__}, expected a string")
    return value.strip() or FIELD_DEFAULTS[key]


def decode_narrative(clean_text: str) -> DecodeOutcome:
    try:
        data = json.loads(clean_text)
        if not isinstance(data, dict):
            raise TypeError(f"top level is {type(data).__name__}, expected an object")
        pdf = data.get("pdf")
        if not isinstance(pdf, dict):
            pdf = {}
        result = NarrativeResult(
            teaser=_field(data, "teaser"),
            preview=_field(data, "preview"),
            pdf=NarrativeSections(**{field: _field(pdf, field) for field in SECTION_FIELDS}),
        )
    except (ValueError, TypeError) as e:
        logger.error(json.dumps({"event": "decode_failed", "error": str(e), "text": clean_text[:500]}))
        return DecodeOutcome("fallback", FALLBACK_RESPONSE.model_copy(deep=True))
    return DecodeOutcome("decoded", result)


def generate_narrative(problem: str, settings: Settings) -> NarrativeResult:
    """Produce the narrative for one problem statement.

    Transport errors propagate untouched for the error classifier. An empty
    model answer raises GenerationError; anything non-empty always yields a
    full NarrativeResult.
    """
    if settings.mock_data:
        return MOCK_RESPONSE.model_copy(deep=True)

    raw = llm(build_prompt(problem), settings)
    if not raw:
        raise GenerationError("Empty model response")

    outcome = decode_narrative(clean_response(raw))
    logger.info(json.dumps({"event": "narrative", "kind": outcome.kind,
                            "teaser": outcome.result.teaser, "preview": outcome.result.preview}))
    return outcome.result
