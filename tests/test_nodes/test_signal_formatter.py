"""
Tests for Node 4: Signal Formatter
"""

import pytest

from conftest import FakeSearchClient, make_llm_decision, reputable_results
from signal_agent.evidence.aggregator import aggregate_evidence
from signal_agent.langgraph_nodes.node_03_llm_analysis import normalize_signal_decision
from signal_agent.langgraph_nodes.node_04_signal_formatter import (
    FORMATTED,
    build_indicator_bullets,
    build_signal_message,
    format_signal_node,
)


def _decision(**overrides):
    return normalize_signal_decision(make_llm_decision(**overrides))


class TestIndicatorBullets:
    """Plain-language 'Why?' bullets"""

    def test_oversold_snapshot(self, oversold_technical_analysis):
        assert build_indicator_bullets(oversold_technical_analysis) == [
            'RSI 18 - oversold',
            'ADX 32 - strong trend',
        ]

    def test_overbought_and_breakout(self):
        bullets = build_indicator_bullets({'rsi': '82', 'percent_b': '1.2', 'adx': '12'})

        assert bullets[0] == 'RSI 82 - overbought'
        assert 'breakout' in bullets[1]
        assert bullets[2] == 'ADX 12 - weak trend'

    def test_lower_band_touch(self):
        assert 'lower band' in build_indicator_bullets({'percent_b': '-0.05'})[0]

    def test_empty(self):
        assert build_indicator_bullets(None) == []
        assert build_indicator_bullets({'rsi': 'n/a'}) == []


class TestBuildSignalMessage:
    """Template rendering of the FinalSignal payload"""

    def test_buy_signal_layout(self, oversold_technical_analysis):
        signal = build_signal_message('SOL', 142.5, _decision(), oversold_technical_analysis)
        message = signal['message']

        assert message.startswith('🚀 **[BUY] SOL** - Medium Risk')
        assert 'Price: `$142.5`' in message
        assert 'Confidence: **78 %**' in message
        assert 'Short-term (1-4 h re-check recommended)' in message
        assert '• RSI 18 - oversold' in message
        assert 'gradual *buy* entry' in message
        assert message.rstrip().endswith('DYOR - Always do your own research.')
        assert '*Sources*' not in message

    def test_payload_fields(self):
        signal = build_signal_message('SOL', 142.5, _decision(risk_level='HIGH'))

        assert signal['level'] == 3
        assert signal['priority'] == 'HIGH'
        assert signal['title'] == '🚀 [BUY] SOL'
        assert signal['tags'] == ['sol', 'rsi_oversold', 'buy']

    def test_sell_signal(self):
        signal = build_signal_message('SOL', 99, _decision(direction='SELL', timeframe='LONG'))

        assert signal['message'].startswith('🚨 **[SELL] SOL**')
        assert '*sell*' in signal['message']
        assert 'Long-term' in signal['message']

    def test_neutral_signal(self):
        signal = build_signal_message('SOL', 99, _decision(direction='NEUTRAL', risk_level='LOW'))

        assert signal['title'].startswith('📊')
        assert signal['level'] == 1
        assert 'Hold current position' in signal['message']

    def test_key_factors_used_without_indicators(self):
        message = build_signal_message('SOL', 1, _decision())['message']
        assert '• Oversold RSI' in message

    @pytest.mark.asyncio
    async def test_sources_line(self):
        evidence = await aggregate_evidence('SOL', search_client=FakeSearchClient(reputable_results()))
        message = build_signal_message('SOL', 1, _decision(), evidence=evidence)['message']

        assert '📰 *Sources* (3): coindesk.com, theblock.co, cointelegraph.com' in message


class TestFormatSignalNode:
    def test_formats_decision(self, oversold_technical_analysis):
        state = {
            'token_symbol': 'SOL',
            'current_price': 142.5,
            'technical_analysis': oversold_technical_analysis,
            'signal_decision': _decision(),
            'evidence_result': None,
        }
        update, outcome = format_signal_node(state)

        assert outcome == FORMATTED
        assert list(update) == ['final_signal']
        assert update['final_signal']['level'] == 2

    def test_missing_decision_raises(self):
        with pytest.raises(ValueError):
            format_signal_node({'token_symbol': 'SOL', 'signal_decision': None})
