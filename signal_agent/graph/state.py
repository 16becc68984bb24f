"""
LangGraph State Definition
State for the 4-node crypto signal pipeline.

This is the single source of truth for all inter-node communication.
Nodes receive a copy of this state and return partial updates.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from signal_agent.evidence.models import EvidenceResult
from signal_agent.graph.engine import PipelineRunState


class SignalPipelineState(PipelineRunState):
    """
    Complete state for one signal pipeline run.

    Engine bookkeeping (outcome, terminal, error, path, node_execution_times)
    comes from PipelineRunState.
    """

    # ========================================================================
    # INPUT (immutable once the run starts)
    # ========================================================================
    token_address: str                             # Contract address
    token_symbol: str                              # Ticker (e.g., 'SOL')
    current_price: float                           # Latest price

    technical_analysis: Dict[str, Any]             # rsi, vwap_deviation, percent_b, adx, atr_percent, obv_zscore
    user_language: str                             # ISO code for LLM text fields


    # ========================================================================
    # NODE 1: Static Filter
    # ========================================================================
    static_filter_result: Optional[Dict[str, Any]]
    should_proceed: Optional[bool]


    # ========================================================================
    # NODE 2: Evidence Data Fetch
    # ========================================================================
    evidence_result: Optional[EvidenceResult]


    # ========================================================================
    # NODE 3: LLM Analysis
    # ========================================================================
    signal_decision: Optional[Dict[str, Any]]
    should_generate_signal: Optional[bool]


    # ========================================================================
    # NODE 4: Signal Formatter
    # ========================================================================
    final_signal: Optional[Dict[str, Any]]         # level, title, message, priority, tags


    # ========================================================================
    # SYSTEM TRACKING
    # ========================================================================
    timestamp: Optional[datetime]                  # Run start time


# Fields nodes may never change during a run
IDENTITY_FIELDS = ('token_address', 'token_symbol', 'current_price')


def create_initial_state(
    token_address: str,
    token_symbol: str,
    current_price: float,
    technical_analysis: Optional[Dict[str, Any]] = None,
    user_language: str = 'en',
) -> SignalPipelineState:
    """
    Create initial state for a new signal analysis.

    Args:
        token_address: Token contract address
        token_symbol: Token ticker (e.g., 'sol')
        current_price: Latest price
        technical_analysis: Indicator snapshot
        user_language: Language for LLM text fields

    Returns:
        Initialized state with required fields

    Example:
        >>> state = create_initial_state('So111', 'sol', 142.5)
        >>> state['token_symbol']
        'SOL'
    """
    return SignalPipelineState(
        token_address=token_address,
        token_symbol=token_symbol.strip().upper(),
        current_price=current_price,
        technical_analysis=dict(technical_analysis or {}),
        user_language=user_language or 'en',

        # Initialize all fields
        static_filter_result=None,
        should_proceed=None,
        evidence_result=None,
        signal_decision=None,
        should_generate_signal=None,
        final_signal=None,

        # System tracking
        timestamp=datetime.now()
    )


def validate_state(state: SignalPipelineState) -> bool:
    """
    Validate that state has minimum required fields.

    Args:
        state: State to validate

    Returns:
        True if valid, False otherwise
    """
    required_fields = ['token_address', 'token_symbol', 'current_price', 'technical_analysis']
    return all(state.get(field) is not None for field in required_fields)
