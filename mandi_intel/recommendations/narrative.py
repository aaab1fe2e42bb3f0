"""
Narrative market advice: free-text strategy generated from the numeric ranking.

The narrative is optional enrichment.  ``suggest_narrative`` never raises:

    suggester is None                 → (None, False)     no narrative
    summarize() returns text          → (text, False)
    summarize() fails / times out /
    returns blank text                → (fallback, True)  built locally

Prompt contents
---------------
  - top 3 overall markets with their high price
  - top 3 markets in the producer's state (line omitted when none)
  - first 6 seasonal months with their selling recommendation
  - the producer's state, or "your region"

Production suggester: ``OpenAINarrativeSuggester`` (``openai.AsyncOpenAI`` chat
completions).  Tests inject any object with an ``async summarize(context)``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional, Protocol

from mandi_intel.config import NarrativeConfig
from mandi_intel.models.report import MarketSummaryContext

logger = logging.getLogger(__name__)

PROMPT_MARKETS  = 3
PROMPT_MONTHS   = 6
CURRENCY_SYMBOL = "₹"

_SYSTEM_PROMPT = (
    "You are an agricultural market expert advising smallholder farmers. "
    "Be concrete and practical."
)

_GENERAL_RECOMMENDATIONS = (
    ("Market Timing", "Monitor seasonal price patterns and plan harvests accordingly"),
    ("Quality Management", "Implement proper post-harvest handling to reduce losses"),
    ("Market Diversification", "Don't rely on a single market - explore multiple channels"),
    ("Storage Solutions", "Invest in proper storage to take advantage of price fluctuations"),
    ("Cooperative Marketing", "Join farmer groups for better bargaining power"),
    ("Value Addition", "Consider processing or packaging to increase profit margins"),
    ("Government Schemes", "Explore available subsidies and support programs"),
    ("Risk Management", "Consider crop insurance and forward contracts where available"),
)


class NarrativeSuggester(Protocol):
    """Generates advice text from a ranking summary."""

    async def summarize(self, context: MarketSummaryContext) -> str: ...


# ── Prompt and fallback text ──────────────────────────────────────────────────

def _format_price(value: float) -> str:
    return f"{CURRENCY_SYMBOL}{value:.0f}"


def build_prompt(context: MarketSummaryContext) -> str:
    """User prompt for the suggestion service."""
    top = context.top_markets[:PROMPT_MARKETS]
    if top:
        overall = "Overall best markets: " + ", ".join(
            f"{m.market} (High: {_format_price(m.high_price)})" for m in top
        ) + "."
    else:
        overall = "Market data is being analyzed."

    state_top = context.top_state_markets[:PROMPT_MARKETS]
    in_state = (
        "Top markets in the state: " + ", ".join(
            f"{m.market} (High: {_format_price(m.high_price)})" for m in state_top
        ) + "."
        if state_top else ""
    )

    months = context.seasonal_patterns[:PROMPT_MONTHS]
    if months:
        seasonal = "Seasonal trends: " + ", ".join(
            f"{p.month_name} ({p.recommendation})" for p in months
        ) + "."
    else:
        seasonal = "Seasonal analysis is being processed."

    location = f"in {context.location_state}" if context.location_state else "in your region"

    return (
        "As an agricultural market expert, provide comprehensive farming and "
        f"marketing advice for {context.variety} {location}.\n\n"
        "Available market data:\n"
        f"1. {overall}\n"
        f"2. {in_state}\n"
        f"3. {seasonal}\n\n"
        "Please provide:\n"
        "1. A brief market strategy summary (2-3 sentences)\n"
        "2. Detailed actionable recommendations covering:\n"
        "   - Market timing and price optimization\n"
        "   - Storage and post-harvest handling\n"
        "   - Value addition opportunities\n"
        "   - Risk management strategies\n"
        "   - Government schemes and support\n"
        "   - Cooperative marketing benefits\n\n"
        "Format your response clearly with the summary first, followed by "
        "numbered recommendations."
    )


def build_fallback_narrative(context: MarketSummaryContext) -> str:
    """Deterministic advice text built only from the numeric data."""
    lines = [
        f"Market Strategy for {context.variety}:",
        "Based on available data, focus on timing your sales during peak price "
        "periods and consider diversifying your market channels.",
    ]
    if context.top_markets:
        low  = min(m.low_price for m in context.top_markets)
        high = max(m.high_price for m in context.top_markets)
        lines[-1] += (
            f" Current top markets show prices ranging from "
            f"{_format_price(low)} to {_format_price(high)}."
        )

    lines += ["", "Key Recommendations:"]
    lines += [
        f"{i}. **{title}**: {text}"
        for i, (title, text) in enumerate(_GENERAL_RECOMMENDATIONS, start=1)
    ]
    lines += [
        "",
        "Note: AI service temporarily unavailable. These are general "
        "recommendations based on market data.",
    ]
    return "\n".join(lines)


# ── Suggesters ────────────────────────────────────────────────────────────────

class OpenAINarrativeSuggester:
    """Chat-completions suggester over the ``openai`` SDK.

    Args:
        config: Narrative settings (model, temperature, timeout, API key).
        client: Optional pre-built ``AsyncOpenAI``-compatible client.
    """

    def __init__(self, config: NarrativeConfig, client: Any = None) -> None:
        self.config = config
        if client is None:
            from openai import AsyncOpenAI

            client = AsyncOpenAI(api_key=config.api_key, timeout=config.timeout_s)
        self._client = client

    async def summarize(self, context: MarketSummaryContext) -> str:
        resp = await self._client.chat.completions.create(
            model=self.config.model,
            temperature=self.config.temperature,
            messages=[
                {"role": "system", "content": _SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(context)},
            ],
        )
        return (resp.choices[0].message.content or "").strip()


def build_narrative_suggester(config: NarrativeConfig) -> Optional[NarrativeSuggester]:
    """``OpenAINarrativeSuggester`` when enabled with an API key, else ``None``."""
    if not config.enabled:
        return None
    if not config.api_key:
        logger.info("No OPENAI_API_KEY configured; narratives disabled.")
        return None
    return OpenAINarrativeSuggester(config)


async def suggest_narrative(
    suggester: Optional[NarrativeSuggester],
    context:   MarketSummaryContext,
    timeout_s: Optional[float] = None,
) -> tuple[Optional[str], bool]:
    """Ask ``suggester`` for advice, degrading to the fallback narrative.

    Args:
        suggester: Suggestion service, or ``None`` for no narrative.
        context:   Ranking summary to describe.
        timeout_s: Upper bound on the service call.

    Returns:
        ``(text, is_fallback)``.
    """
    if suggester is None:
        return None, False

    try:
        text = await asyncio.wait_for(suggester.summarize(context), timeout=timeout_s)
    except asyncio.TimeoutError:
        logger.warning("Narrative service timed out after %ss; using fallback.", timeout_s)
        return build_fallback_narrative(context), True
    except Exception as exc:  # noqa: BLE001 - any service failure degrades
        logger.warning("Narrative service failed (%s); using fallback.", exc)
        return build_fallback_narrative(context), True

    if not text or not text.strip():
        logger.warning("Narrative service returned no text; using fallback.")
        return build_fallback_narrative(context), True
    return text.strip(), False
