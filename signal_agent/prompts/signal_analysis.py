"""
Signal Analysis Prompt

Prompt template and variable builder for the llm_analysis node. The LLM is
asked for a single JSON object with the SignalDecision fields.
"""

import json
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

from signal_agent.evidence.models import EvidenceResult
from signal_agent.utils.helpers import truncate_text

# Shown when an indicator is missing from the technical analysis snapshot
NOT_AVAILABLE = "N/A"

# Max sources / snippet length rendered into the prompt
MAX_PROMPT_SOURCES = 8
MAX_SNIPPET_LENGTH = 300

LANGUAGE_NAMES: Dict[str, str] = {
    'en': 'English',
    'ja': 'Japanese',
    'ko': 'Korean',
    'zh': 'Chinese',
    'es': 'Spanish',
    'fr': 'French',
    'de': 'German',
    'pt': 'Portuguese',
    'ru': 'Russian',
    'vi': 'Vietnamese',
}


SYSTEM_PROMPT = (
    "You are a professional crypto trading signal analyst specializing in "
    "beginner-friendly technical analysis interpretation and market sentiment "
    "analysis. You always answer with a single JSON object and nothing else."
)


SIGNAL_ANALYSIS_TEMPLATE = """## Analysis Guidelines

**Signal Generation Criteria:**
- Multiple indicators must align (market consensus)
- Favorable risk-reward ratio
- Clear directional bias with 60%+ confidence
- External sentiment should support or not contradict technical signals

**Risk Assessment:**
- LOW: Single indicator, stable conditions, clear trend
- MEDIUM: Multiple indicators, moderate volatility, trend changes
- HIGH: Strong signals, high volatility, major breakouts

**Timeframe Classification:**
- SHORT: Minutes to hours (active trading)
- MEDIUM: Days to weeks (swing trading)
- LONG: Weeks to months (position trading)

## Market Data

**Token**: {token_symbol} ({token_address})
**Price**: {current_price} | **Time**: {timestamp}

**Technical Indicators:**
- RSI: {rsi} (momentum strength)
- VWAP Deviation: {vwap_deviation}% (price vs average)
- Bollinger %B: {percent_b} (volatility position)
- ADX: {adx} (trend strength)
- ATR: {atr_percent}% (volatility level)
- OBV Z-Score: {obv_zscore} (volume momentum)

**Filter Results:**
- Triggered: {triggered_indicators}
- Candidates: {signal_candidates}
- Confluence: {confluence_score}
- Risk: {risk_level}

**External News Sources ({sources_count} sources, Quality Score: {quality_score}, Keyword Sentiment: {evidence_sentiment}):**
{external_sources}

## Task

1. Technical analysis: decide whether a trading signal should be generated.
2. Sentiment analysis: assess the news sources (BULLISH / BEARISH / NEUTRAL)
   with a confidence level, weighing source quality and relevance.
3. Combine both into the final decision. Explain how the indicators align,
   what the news says, and the risk-reward across timeframes.

Write all human-readable text fields in {language}.
Use only half-width dashes (-) and standard punctuation.

{format_instructions}"""


FORMAT_INSTRUCTIONS = """Respond with a JSON object with exactly these keys:
{
  "should_generate_signal": boolean,
  "signal_type": string (e.g. "RSI_OVERSOLD", "VWAP_DEVIATION_HIGH"),
  "direction": "BUY" | "SELL" | "NEUTRAL",
  "confidence": number between 0 and 1,
  "reasoning": string,
  "key_factors": array of at most 3 strings,
  "risk_level": "LOW" | "MEDIUM" | "HIGH",
  "timeframe": "SHORT" | "MEDIUM" | "LONG",
  "market_sentiment": "BULLISH" | "BEARISH" | "NEUTRAL",
  "sentiment_confidence": number between 0 and 1,
  "sentiment_factors": array of at most 5 strings,
  "price_expectation": string
}"""


def language_name(code: Optional[str]) -> str:
    if not code:
        return LANGUAGE_NAMES['en']
    return LANGUAGE_NAMES.get(code.lower(), code)


def _indicator(technical_analysis: Mapping[str, Any], key: str) -> str:
    value = technical_analysis.get(key)
    return NOT_AVAILABLE if value is None or value == '' else str(value)


def format_external_sources(evidence: Optional[EvidenceResult]) -> str:
    """Render evidence sources as a numbered list for the prompt."""
    if evidence is None:
        return "No external sources available."
    if not evidence.relevant_sources:
        cause = evidence.primary_cause or "No relevant sources found"
        return f"No external sources available ({cause})."

    lines: List[str] = []
    for i, source in enumerate(evidence.relevant_sources[:MAX_PROMPT_SOURCES], 1):
        published = f", {source.published_date}" if source.published_date else ""
        lines.append(f"{i}. [{source.domain}{published}] {source.title} (relevance {source.score:.2f})")
        snippet = truncate_text(source.content.replace('\n', ' '), MAX_SNIPPET_LENGTH)
        if snippet:
            lines.append(f"   {snippet}")
    return "\n".join(lines)


def build_prompt_variables(
    token_symbol: str,
    token_address: str,
    current_price: float,
    technical_analysis: Mapping[str, Any],
    static_filter_result: Mapping[str, Any],
    evidence: Optional[EvidenceResult],
    user_language: str = 'en',
    timestamp: Optional[datetime] = None,
) -> Dict[str, str]:
    """
    Collect every template variable as a string.

    Returns:
        Dict with one entry per placeholder in SIGNAL_ANALYSIS_TEMPLATE
    """
    timestamp = timestamp or datetime.now()
    triggered: Sequence[str] = static_filter_result.get('triggered_indicators') or []
    candidates: Sequence[str] = static_filter_result.get('signal_candidates') or []

    return {
        'token_symbol': token_symbol,
        'token_address': token_address,
        'current_price': str(current_price),
        'timestamp': timestamp.isoformat(timespec='seconds'),
        'rsi': _indicator(technical_analysis, 'rsi'),
        'vwap_deviation': _indicator(technical_analysis, 'vwap_deviation'),
        'percent_b': _indicator(technical_analysis, 'percent_b'),
        'adx': _indicator(technical_analysis, 'adx'),
        'atr_percent': _indicator(technical_analysis, 'atr_percent'),
        'obv_zscore': _indicator(technical_analysis, 'obv_zscore'),
        'triggered_indicators': ', '.join(triggered) or 'none',
        'signal_candidates': ', '.join(candidates) or 'none',
        'confluence_score': f"{float(static_filter_result.get('confluence_score', 0.0)):.3f}",
        'risk_level': str(static_filter_result.get('risk_level', 'LOW')),
        'sources_count': str(len(evidence.relevant_sources) if evidence else 0),
        'quality_score': f"{evidence.quality_score:.2f}" if evidence else "0.00",
        'evidence_sentiment': evidence.market_sentiment.value if evidence else 'NEUTRAL',
        'external_sources': format_external_sources(evidence),
        'language': language_name(user_language),
        'format_instructions': FORMAT_INSTRUCTIONS,
    }


def build_signal_analysis_messages(prompt_vars: Mapping[str, str]) -> List[Dict[str, str]]:
    """
    Build chat-completion messages from prompt variables.

    Raises:
        KeyError: If a template placeholder has no variable
    """
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": SIGNAL_ANALYSIS_TEMPLATE.format(**prompt_vars)},
    ]


def parse_json_object(content: str) -> Dict[str, Any]:
    """
    Parse the model's JSON answer, tolerating ```json fences.

    Raises:
        ValueError: If the content is not a JSON object
    """
    text = (content or '').strip()
    if text.startswith('```'):
        text = text.strip('`')
        if text.lower().startswith('json'):
            text = text[4:]
        text = text.strip()

    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return data
