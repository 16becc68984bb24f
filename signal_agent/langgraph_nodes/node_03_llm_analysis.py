"""
Node 3: LLM Signal Analysis

Sends the market snapshot, static filter result and evidence to the LLM
collaborator and normalizes its answer into a SignalDecision dict.

Normalization is lenient: unknown enum values fall back to safe defaults,
scores are clamped to [0, 1], and factor lists are truncated (3 key
factors, 5 sentiment factors). LLM failures are not caught here; the
engine routes them to the 'error' terminal.

Outcomes:
  generate  → format_signal
  no_signal → terminal 'no_signal_generated'

Runs AFTER: Node 2 (data_fetch)
Runs BEFORE: Node 4 (format_signal)
"""

from typing import Any, Dict, List, Mapping, Optional, Tuple

from signal_agent.prompts.signal_analysis import build_prompt_variables
from signal_agent.utils.logger import get_node_logger
from signal_agent.utils.sentiment_config import clamp_unit

logger = get_node_logger("llm_analysis")


GENERATE = "generate"
NO_SIGNAL = "no_signal"

DIRECTIONS = ("BUY", "SELL", "NEUTRAL")
RISK_LEVELS = ("LOW", "MEDIUM", "HIGH")
TIMEFRAMES = ("SHORT", "MEDIUM", "LONG")
SENTIMENTS = ("BULLISH", "BEARISH", "NEUTRAL")

MAX_KEY_FACTORS = 3
MAX_SENTIMENT_FACTORS = 5


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('true', 'yes', '1')
    return bool(value)


def _as_choice(value: Any, choices: Tuple[str, ...], default: str) -> str:
    text = str(value or '').strip().upper()
    return text if text in choices else default


def _as_str_list(value: Any, limit: int) -> List[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return []
    return [str(item).strip() for item in value if str(item).strip()][:limit]


def normalize_signal_decision(
    raw: Mapping[str, Any],
    default_signal_type: str = "",
    default_risk_level: str = "MEDIUM",
) -> Dict[str, Any]:
    """
    Coerce the LLM's answer into a well-formed SignalDecision.

    Args:
        raw: Decision dict as returned by the LLM collaborator
        default_signal_type: Used when the LLM omits signal_type
        default_risk_level: Used when the LLM's risk_level is invalid

    Returns:
        SignalDecision dict

    Example:
        >>> normalize_signal_decision({'should_generate_signal': 'true', 'direction': 'buy',
        ...                            'confidence': 1.7})['confidence']
        1.0
    """
    signal_type = str(raw.get('signal_type') or default_signal_type or 'UNSPECIFIED').strip().upper()

    return {
        'should_generate_signal': _as_bool(raw.get('should_generate_signal', False)),
        'signal_type': signal_type,
        'direction': _as_choice(raw.get('direction'), DIRECTIONS, 'NEUTRAL'),
        'confidence': clamp_unit(raw.get('confidence', 0.0)),
        'reasoning': str(raw.get('reasoning') or '').strip(),
        'key_factors': _as_str_list(raw.get('key_factors'), MAX_KEY_FACTORS),
        'risk_level': _as_choice(raw.get('risk_level'), RISK_LEVELS, default_risk_level),
        'timeframe': _as_choice(raw.get('timeframe'), TIMEFRAMES, 'SHORT'),
        'market_sentiment': _as_choice(raw.get('market_sentiment'), SENTIMENTS, 'NEUTRAL'),
        'sentiment_confidence': clamp_unit(raw.get('sentiment_confidence', 0.0)),
        'sentiment_factors': _as_str_list(raw.get('sentiment_factors'), MAX_SENTIMENT_FACTORS),
        'price_expectation': str(raw.get('price_expectation') or '').strip(),
    }


# ============================================================================
# MAIN NODE FUNCTION
# ============================================================================

async def llm_analysis_node(state: Dict[str, Any], llm_client=None) -> Tuple[Dict[str, Any], str]:
    """
    Node 3: LLM Signal Analysis

    Args:
        state: Pipeline state with static_filter_result and evidence_result
        llm_client: LLM collaborator bound by the workflow (None → Groq)

    Returns:
        ({'signal_decision', 'should_generate_signal'}, 'generate' | 'no_signal')
    """
    symbol = state.get('token_symbol', 'UNKNOWN')
    filter_result: Mapping[str, Any] = state.get('static_filter_result') or {}
    evidence = state.get('evidence_result')

    logger.info(
        f"Node 3: LLM analysis for {symbol} "
        f"(triggers={filter_result.get('triggered_indicators', [])}, "
        f"language={state.get('user_language', 'en')})"
    )

    if llm_client is None:
        from signal_agent.clients.groq_client import GroqLLMClient
        llm_client = GroqLLMClient()

    prompt_vars = build_prompt_variables(
        token_symbol=symbol,
        token_address=state.get('token_address', ''),
        current_price=state.get('current_price'),
        technical_analysis=state.get('technical_analysis') or {},
        static_filter_result=filter_result,
        evidence=evidence,
        user_language=state.get('user_language', 'en'),
        timestamp=state.get('timestamp'),
    )

    raw = await llm_client.analyze_signal(prompt_vars)
    if not isinstance(raw, Mapping):
        raise TypeError(f"LLM returned {type(raw).__name__}, expected a mapping")

    candidates: Optional[List[str]] = filter_result.get('signal_candidates')
    decision = normalize_signal_decision(
        raw,
        default_signal_type=candidates[0] if candidates else "",
        default_risk_level=filter_result.get('risk_level', 'MEDIUM'),
    )

    logger.info(
        f"Node 3: {symbol} decision - generate={decision['should_generate_signal']}, "
        f"{decision['direction']} {decision['signal_type']}, confidence={decision['confidence']:.2f}"
    )

    update = {
        'signal_decision': decision,
        'should_generate_signal': decision['should_generate_signal'],
    }
    return update, GENERATE if decision['should_generate_signal'] else NO_SIGNAL
