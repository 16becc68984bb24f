"""
Shared test doubles for the signal pipeline.

FakeSearchClient / FakeLLMClient stand in for the Tavily and Groq
collaborators so no test touches the network.
"""

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


def make_search_result(
    url: str,
    title: str = "Token news",
    content: str = "",
    score: float = 0.9,
    published_date: Optional[str] = None,
) -> Dict[str, Any]:
    return {
        'title': title,
        'url': url,
        'content': content,
        'score': score,
        'published_date': published_date,
    }


class FakeSearchClient:
    """Records search_aggregated() calls; returns `results` or raises `error`."""

    def __init__(self, results: Optional[List[Dict[str, Any]]] = None, error: Optional[BaseException] = None):
        self.results = results or []
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    async def search_aggregated(self, queries, search_depth="basic", max_results=5, deduplicate_results=True):
        self.calls.append({
            'queries': list(queries),
            'search_depth': search_depth,
            'max_results': max_results,
            'deduplicate_results': deduplicate_results,
        })
        if self.error is not None:
            raise self.error
        return {
            'all_results': list(self.results),
            'unique_results': list(self.results),
            'response_count': len(queries),
        }


class FakeLLMClient:
    """Returns a canned decision dict; records the prompt variables it saw."""

    def __init__(self, decision: Optional[Dict[str, Any]] = None, error: Optional[BaseException] = None):
        self.decision = decision if decision is not None else make_llm_decision()
        self.error = error
        self.calls: List[Dict[str, str]] = []

    async def analyze_signal(self, prompt_vars):
        self.calls.append(dict(prompt_vars))
        if self.error is not None:
            raise self.error
        return dict(self.decision)


def make_llm_decision(should_generate: bool = True, direction: str = "BUY", **overrides) -> Dict[str, Any]:
    decision = {
        'should_generate_signal': should_generate,
        'signal_type': 'RSI_OVERSOLD',
        'direction': direction,
        'confidence': 0.78,
        'reasoning': 'RSI is deeply oversold while price trades far below VWAP.',
        'key_factors': ['Oversold RSI', 'VWAP discount', 'Rising volume'],
        'risk_level': 'MEDIUM',
        'timeframe': 'SHORT',
        'market_sentiment': 'BULLISH',
        'sentiment_confidence': 0.6,
        'sentiment_factors': ['New exchange listing'],
        'price_expectation': 'Rebound toward VWAP within hours',
    }
    decision.update(overrides)
    return decision


def reputable_results() -> List[Dict[str, Any]]:
    """Three unique reputable-domain sources with mean score 0.9."""
    return [
        make_search_result('https://www.coindesk.com/markets/sol-rally', 'SOL rally continues',
                           'Analysts see a rally after partnership news', 0.95),
        make_search_result('https://www.theblock.co/post/sol-adoption', 'SOL adoption grows',
                           'Developer adoption hits a record high', 0.9),
        make_search_result('https://cointelegraph.com/news/sol-outlook', 'SOL outlook',
                           'Traders weigh the surge against macro conditions', 0.85),
    ]


@pytest.fixture
def oversold_technical_analysis():
    """Indicator snapshot that passes the static filter (RSI 18 + VWAP -4.5%)."""
    return {
        'rsi': '18',
        'vwap_deviation': '-4.5',
        'percent_b': '0.05',
        'adx': '32',
        'atr_percent': '3.1',
        'obv_zscore': '1.2',
    }


@pytest.fixture
def neutral_technical_analysis():
    return {
        'rsi': '50',
        'vwap_deviation': '0.4',
        'percent_b': '0.5',
        'adx': '15',
        'atr_percent': '1.0',
        'obv_zscore': '0.1',
    }
