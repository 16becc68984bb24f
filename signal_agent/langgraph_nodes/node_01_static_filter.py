"""
Node 1: Static Signal Filter

Cheap local confluence check over the technical indicator snapshot. Decides
whether the token is interesting enough to spend search and LLM calls on.

Each indicator past a threshold adds a named trigger and a confluence weight:

  RSI          ≤20 CRITICAL_OVERSOLD +0.25   ≤25 OVERSOLD   +0.15
               ≥80 CRITICAL_OVERBOUGHT +0.25 ≥75 OVERBOUGHT +0.15
  VWAP dev %   |d|≥4 EXTREME +0.30           |d|≥3 SIGNIFICANT +0.20
  Bollinger %B ≥1.0 BREAKOUT_UP +0.20        <0 BREAKOUT_DOWN +0.20
               ≥0.9 OVERBOUGHT +0.10         ≤0.1 OVERSOLD +0.10
  ADX          ≥50 OVERHEATED +0.10          ≥40 STRONG_TREND +0.15
  ATR %        ≥8 EXTREME_VOLATILITY +0.15   ≥5 HIGH_VOLATILITY +0.10
  OBV z-score  |z|≥4 EXTREME_DIVERGENCE +0.20 |z|≥3 STRONG_DIVERGENCE +0.15

Proceed iff confluence ≥ 0.2, at least 2 triggers, and a positive price.
Risk: HIGH ≥ 0.5, MEDIUM ≥ 0.3, else LOW.

Missing or unparsable indicator values are skipped, never errors.

Outcomes:
  proceed → data_fetch
  reject  → terminal 'no_signal'

Runs BEFORE: Node 2 (data_fetch)
"""

from typing import Any, Dict, List, Mapping, Optional, Tuple

from signal_agent.utils.helpers import parse_float
from signal_agent.utils.logger import get_node_logger

logger = get_node_logger("static_filter")


# ============================================================================
# CONSTANTS
# ============================================================================

PROCEED = "proceed"
REJECT = "reject"

MIN_CONFLUENCE_SCORE: float = 0.2
CONFLUENCE_REQUIRED: int = 2          # Minimum triggered indicators

HIGH_RISK_CONFLUENCE: float = 0.5
MEDIUM_RISK_CONFLUENCE: float = 0.3

RSI_CRITICAL_OVERSOLD: float = 20
RSI_OVERSOLD: float = 25
RSI_OVERBOUGHT: float = 75
RSI_CRITICAL_OVERBOUGHT: float = 80

VWAP_EXTREME_DEVIATION: float = 4.0
VWAP_SIGNIFICANT_DEVIATION: float = 3.0

BOLLINGER_UPPER_BREAKOUT: float = 1.0
BOLLINGER_LOWER_BREAKOUT: float = 0.0
BOLLINGER_OVERBOUGHT: float = 0.9
BOLLINGER_OVERSOLD: float = 0.1

ADX_OVERHEATED: float = 50
ADX_STRONG_TREND: float = 40

ATR_EXTREME_VOLATILITY: float = 8.0
ATR_HIGH_VOLATILITY: float = 5.0

OBV_EXTREME_DIVERGENCE: float = 4.0
OBV_STRONG_DIVERGENCE: float = 3.0


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

class _Confluence:
    """Accumulates triggers, candidates and the confluence score."""

    def __init__(self):
        self.triggered: List[str] = []
        self.candidates: List[str] = []
        self.score: float = 0.0

    def add(self, trigger: str, weight: float, candidate: Optional[str] = None) -> None:
        self.triggered.append(trigger)
        self.score += weight
        if candidate and candidate not in self.candidates:
            self.candidates.append(candidate)


def _check_rsi(rsi: Optional[float], acc: _Confluence) -> None:
    if rsi is None:
        return
    if rsi <= RSI_CRITICAL_OVERSOLD:
        acc.add("RSI_CRITICAL_OVERSOLD", 0.25, "RSI_OVERSOLD")
    elif rsi <= RSI_OVERSOLD:
        acc.add("RSI_OVERSOLD", 0.15, "RSI_OVERSOLD")
    elif rsi >= RSI_CRITICAL_OVERBOUGHT:
        acc.add("RSI_CRITICAL_OVERBOUGHT", 0.25, "RSI_OVERBOUGHT")
    elif rsi >= RSI_OVERBOUGHT:
        acc.add("RSI_OVERBOUGHT", 0.15, "RSI_OVERBOUGHT")


def _check_vwap(deviation: Optional[float], acc: _Confluence) -> None:
    if deviation is None:
        return
    candidate = "VWAP_DEVIATION_HIGH" if deviation > 0 else "VWAP_DEVIATION_LOW"
    if abs(deviation) >= VWAP_EXTREME_DEVIATION:
        acc.add("VWAP_EXTREME_DEVIATION", 0.30, candidate)
    elif abs(deviation) >= VWAP_SIGNIFICANT_DEVIATION:
        acc.add("VWAP_SIGNIFICANT_DEVIATION", 0.20, candidate)


def _check_bollinger(percent_b: Optional[float], acc: _Confluence) -> None:
    if percent_b is None:
        return
    if percent_b >= BOLLINGER_UPPER_BREAKOUT:
        acc.add("BOLLINGER_BREAKOUT_UP", 0.20, "BOLLINGER_BREAKOUT_UP")
    elif percent_b < BOLLINGER_LOWER_BREAKOUT:
        acc.add("BOLLINGER_BREAKOUT_DOWN", 0.20, "BOLLINGER_BREAKOUT_DOWN")
    elif percent_b >= BOLLINGER_OVERBOUGHT:
        acc.add("BOLLINGER_OVERBOUGHT", 0.10)
    elif percent_b <= BOLLINGER_OVERSOLD:
        acc.add("BOLLINGER_OVERSOLD", 0.10)


def _check_adx(adx: Optional[float], acc: _Confluence) -> None:
    if adx is None:
        return
    if adx >= ADX_OVERHEATED:
        acc.add("ADX_OVERHEATED", 0.10)
    elif adx >= ADX_STRONG_TREND:
        acc.add("ADX_STRONG_TREND", 0.15)


def _check_atr(atr_percent: Optional[float], acc: _Confluence) -> None:
    if atr_percent is None:
        return
    if atr_percent >= ATR_EXTREME_VOLATILITY:
        acc.add("ATR_EXTREME_VOLATILITY", 0.15, "HIGH_VOLATILITY")
    elif atr_percent >= ATR_HIGH_VOLATILITY:
        acc.add("ATR_HIGH_VOLATILITY", 0.10, "HIGH_VOLATILITY")


def _check_obv(zscore: Optional[float], acc: _Confluence) -> None:
    if zscore is None:
        return
    if abs(zscore) >= OBV_EXTREME_DIVERGENCE:
        acc.add("OBV_EXTREME_DIVERGENCE", 0.20, "VOLUME_SPIKE")
    elif abs(zscore) >= OBV_STRONG_DIVERGENCE:
        acc.add("OBV_STRONG_DIVERGENCE", 0.15, "VOLUME_SPIKE")


def _risk_level(confluence_score: float) -> str:
    if confluence_score >= HIGH_RISK_CONFLUENCE:
        return "HIGH"
    if confluence_score >= MEDIUM_RISK_CONFLUENCE:
        return "MEDIUM"
    return "LOW"


# ============================================================================
# MAIN FUNCTIONS
# ============================================================================

def apply_static_signal_filter(token_symbol: str, technical_analysis: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Score indicator confluence for one token.

    Args:
        token_symbol: Token ticker, used for logging
        technical_analysis: Indicator snapshot (values may be str, float or None)

    Returns:
        StaticFilterResult dict: should_proceed, triggered_indicators,
        signal_candidates, confluence_score, risk_level

    Example:
        >>> result = apply_static_signal_filter('SOL', {'rsi': '20', 'vwap_deviation': '4.5'})
        >>> result['should_proceed'], result['confluence_score']
        (True, 0.55)
    """
    ta = technical_analysis or {}
    acc = _Confluence()

    _check_rsi(parse_float(ta.get('rsi')), acc)
    _check_vwap(parse_float(ta.get('vwap_deviation')), acc)
    _check_bollinger(parse_float(ta.get('percent_b')), acc)
    _check_adx(parse_float(ta.get('adx')), acc)
    _check_atr(parse_float(ta.get('atr_percent')), acc)
    _check_obv(parse_float(ta.get('obv_zscore')), acc)

    confluence_score = round(acc.score, 4)
    should_proceed = (
        confluence_score >= MIN_CONFLUENCE_SCORE
        and len(acc.triggered) >= CONFLUENCE_REQUIRED
    )

    logger.debug(
        f"{token_symbol}: triggers={acc.triggered}, confluence={confluence_score}, proceed={should_proceed}"
    )

    return {
        'should_proceed': should_proceed,
        'triggered_indicators': acc.triggered,
        'signal_candidates': acc.candidates,
        'confluence_score': confluence_score,
        'risk_level': _risk_level(confluence_score),
    }


def static_filter_node(state: Dict[str, Any]) -> Tuple[Dict[str, Any], str]:
    """
    Node 1: Static Signal Filter

    Output fields written to state:
        static_filter_result: StaticFilterResult dict
        should_proceed:       routing flag

    Returns:
        (update, 'proceed' | 'reject')
    """
    symbol = state.get('token_symbol', 'UNKNOWN')
    logger.info(f"Node 1: Static filter for {symbol}")

    result = apply_static_signal_filter(symbol, state.get('technical_analysis') or {})

    price = parse_float(state.get('current_price'))
    if result['should_proceed'] and (price is None or price <= 0):
        logger.warning(f"Node 1: {symbol} has no valid price ({state.get('current_price')!r}), rejecting")
        result['should_proceed'] = False

    if result['should_proceed']:
        logger.info(
            f"Node 1: {symbol} passed - {len(result['triggered_indicators'])} triggers "
            f"({', '.join(result['triggered_indicators'])}), confluence={result['confluence_score']:.2f}, "
            f"risk={result['risk_level']}"
        )
    else:
        logger.info(
            f"Node 1: {symbol} rejected - confluence={result['confluence_score']:.2f}, "
            f"triggers={len(result['triggered_indicators'])}"
        )

    update = {
        'static_filter_result': result,
        'should_proceed': result['should_proceed'],
    }
    return update, PROCEED if result['should_proceed'] else REJECT
