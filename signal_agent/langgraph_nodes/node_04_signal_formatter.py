"""
Node 4: Signal Formatter

Renders the SignalDecision into a Telegram-ready Markdown message (template
based, no LLM call).

Message layout:
    🚀 **[BUY] SOL** - Medium Risk
    Price / Confidence / Timeframe (with re-check note)
    🗒️ Market Snapshot   → LLM reasoning
    🔍 Why?              → up to 3 indicator bullets (RSI, Bollinger, ADX),
                           falling back to the LLM's key factors
    🎯 Suggested Action
    📰 Sources           → evidence domains, when any
    ⚠️ DYOR footer

Outcome:
  formatted → terminal 'signal_generated'

Runs AFTER: Node 3 (llm_analysis)
"""

from typing import Any, Dict, List, Mapping, Optional, Tuple

from signal_agent.evidence.sentiment import summarize_sources
from signal_agent.utils.helpers import parse_float
from signal_agent.utils.logger import get_node_logger

logger = get_node_logger("format_signal")


FORMATTED = "formatted"

MAX_WHY_BULLETS = 3
MAX_SOURCE_DOMAINS = 3

DIRECTION_EMOJI: Dict[str, str] = {
    "BUY": "🚀",
    "SELL": "🚨",
}
DEFAULT_EMOJI = "📊"

RISK_LABELS: Dict[str, str] = {
    "HIGH": "High",
    "MEDIUM": "Medium",
    "LOW": "Low",
}

TIMEFRAME_LABELS: Dict[str, Tuple[str, str]] = {
    "SHORT": ("Short-term", "1-4 h re-check recommended"),
    "MEDIUM": ("Mid-term", "4-12 h re-check recommended"),
    "LONG": ("Long-term", "12-24 h re-check recommended"),
}

SIGNAL_LEVELS: Dict[str, int] = {
    "HIGH": 3,
    "MEDIUM": 2,
    "LOW": 1,
}


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def build_indicator_bullets(technical_analysis: Optional[Mapping[str, Any]]) -> List[str]:
    """
    Plain-language bullets for RSI, Bollinger %B and ADX (max 3).

    Example:
        >>> build_indicator_bullets({'rsi': '18', 'adx': '31'})
        ['RSI 18 - oversold', 'ADX 31 - strong trend']
    """
    if not technical_analysis:
        return []

    bullets: List[str] = []

    rsi = parse_float(technical_analysis.get('rsi'))
    if rsi is not None:
        interpretation = "overbought" if rsi >= 70 else "oversold" if rsi <= 30 else "neutral"
        bullets.append(f"RSI {rsi:.0f} - {interpretation}")

    percent_b = parse_float(technical_analysis.get('percent_b'))
    if percent_b is not None:
        if percent_b >= 1.0:
            bullets.append("Bollinger +2σ breakout - price above upper band")
        elif percent_b <= 0.0:
            bullets.append("Bollinger -2σ touch - price near lower band")

    adx = parse_float(technical_analysis.get('adx'))
    if adx is not None:
        strength = "strong trend" if adx >= 25 else "weak trend"
        bullets.append(f"ADX {adx:.0f} - {strength}")

    return bullets[:MAX_WHY_BULLETS]


def _suggested_action(direction: str, timeframe_note: str) -> str:
    if direction == "BUY":
        return f"Consider gradual *buy* entry, re-evaluate price after {timeframe_note}"
    if direction == "SELL":
        return f"Consider partial or full *sell*. Re-check chart after {timeframe_note}"
    return f"Hold current position. Re-check market after {timeframe_note}"


def build_signal_message(
    token_symbol: str,
    current_price: Any,
    decision: Mapping[str, Any],
    technical_analysis: Optional[Mapping[str, Any]] = None,
    evidence=None,
) -> Dict[str, Any]:
    """
    Build the FinalSignal payload.

    Args:
        token_symbol: Token ticker
        current_price: Price shown in the message
        decision: Normalized SignalDecision
        technical_analysis: Indicator snapshot for the "Why?" bullets
        evidence: EvidenceResult, for the sources line

    Returns:
        FinalSignal dict: level, title, message, priority, tags
    """
    direction = decision.get('direction', 'NEUTRAL')
    risk_level = decision.get('risk_level', 'LOW')
    emoji = DIRECTION_EMOJI.get(direction, DEFAULT_EMOJI)
    risk_label = RISK_LABELS.get(risk_level, "Low")
    timeframe_label, timeframe_note = TIMEFRAME_LABELS.get(decision.get('timeframe'), TIMEFRAME_LABELS['LONG'])

    bullets = build_indicator_bullets(technical_analysis)
    if not bullets:
        bullets = list(decision.get('key_factors') or [])[:MAX_WHY_BULLETS]
    why = "\n".join(f"• {bullet}" for bullet in bullets) or "• Multiple indicators aligned"

    confidence_pct = round(float(decision.get('confidence', 0.0)) * 100)

    lines = [
        f"{emoji} **[{direction}] {token_symbol}** - {risk_label} Risk",
        f"Price: `${current_price}`\tConfidence: **{confidence_pct} %**",
        f"Timeframe: {timeframe_label} ({timeframe_note})",
        "",
        "🗒️ *Market Snapshot*",
        decision.get('reasoning') or "No additional commentary.",
        "",
        "🔍 *Why?*",
        why,
        "",
        "🎯 **Suggested Action**",
        _suggested_action(direction, timeframe_note),
    ]

    sources = list(evidence.relevant_sources) if evidence is not None else []
    if sources:
        domains = summarize_sources(sources)[:MAX_SOURCE_DOMAINS]
        lines += [
            "",
            f"📰 *Sources* ({len(sources)}): {', '.join(domains)}",
        ]

    lines += ["", "⚠️ DYOR - Always do your own research."]

    return {
        'level': SIGNAL_LEVELS.get(risk_level, 1),
        'title': f"{emoji} [{direction}] {token_symbol}",
        'message': "\n".join(lines),
        'priority': risk_level,
        'tags': [
            token_symbol.lower(),
            str(decision.get('signal_type', '')).lower(),
            direction.lower(),
        ],
    }


# ============================================================================
# MAIN NODE FUNCTION
# ============================================================================

def format_signal_node(state: Dict[str, Any]) -> Tuple[Dict[str, Any], str]:
    """
    Node 4: Signal Formatter

    Output fields written to state:
        final_signal: FinalSignal dict

    Raises:
        ValueError: If no signal decision is present (routes to 'error')
    """
    symbol = state.get('token_symbol', 'UNKNOWN')
    decision = state.get('signal_decision')
    if not decision:
        raise ValueError(f"No signal decision to format for {symbol}")

    logger.info(f"Node 4: Formatting {decision.get('direction')} signal for {symbol}")

    final_signal = build_signal_message(
        token_symbol=symbol,
        current_price=state.get('current_price'),
        decision=decision,
        technical_analysis=state.get('technical_analysis'),
        evidence=state.get('evidence_result'),
    )

    logger.info(f"Node 4: Signal formatted - level {final_signal['level']}, priority {final_signal['priority']}")
    return {'final_signal': final_signal}, FORMATTED
