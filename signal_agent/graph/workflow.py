"""
LangGraph Workflow Builder

Defines the crypto signal pipeline with all nodes and transitions.

Flow:
1. Node 1: static_filter   proceed → data_fetch           | reject → no_signal
2. Node 2: data_fetch      evidence_ready → llm_analysis  | evidence_unavailable → no_signal_generated
3. Node 3: llm_analysis    generate → format_signal       | no_signal → no_signal_generated
4. Node 4: format_signal   formatted → signal_generated

Every node routes 'error' to the 'error' terminal.
"""

import asyncio
import logging
from functools import partial
from typing import Any, Dict, List, Optional

from signal_agent.graph.engine import ERROR_OUTCOME, PipelineGraph, Terminal, define_graph
from signal_agent.graph.state import IDENTITY_FIELDS, SignalPipelineState, create_initial_state
from signal_agent.langgraph_nodes.node_01_static_filter import PROCEED, REJECT, static_filter_node
from signal_agent.langgraph_nodes.node_02_data_fetch import (
    EVIDENCE_READY,
    EVIDENCE_UNAVAILABLE,
    data_fetch_node,
)
from signal_agent.langgraph_nodes.node_03_llm_analysis import GENERATE, NO_SIGNAL, llm_analysis_node
from signal_agent.langgraph_nodes.node_04_signal_formatter import FORMATTED, format_signal_node
from signal_agent.utils.config import NODE_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


# ============================================================================
# TERMINALS
# ============================================================================

NO_SIGNAL_TERMINAL = "no_signal"
NO_SIGNAL_GENERATED_TERMINAL = "no_signal_generated"
SIGNAL_GENERATED_TERMINAL = "signal_generated"
ERROR_TERMINAL = "error"

NODE_OUTCOMES = {
    "static_filter": (PROCEED, REJECT),
    "data_fetch": (EVIDENCE_READY, EVIDENCE_UNAVAILABLE),
    "llm_analysis": (GENERATE, NO_SIGNAL),
    "format_signal": (FORMATTED,),
}


def create_signal_workflow(
    search_client=None,
    llm_client=None,
    node_timeout: Optional[float] = NODE_TIMEOUT_SECONDS,
) -> PipelineGraph:
    """
    Build the signal pipeline.

    Args:
        search_client: Search collaborator for data_fetch (None → Tavily)
        llm_client: LLM collaborator for llm_analysis (None → Groq)
        node_timeout: Seconds each async node may take (None/0 disables)

    Returns:
        PipelineGraph (compiled LangGraph graph under .compiled)
    """
    nodes = {
        "static_filter": static_filter_node,
        "data_fetch": partial(data_fetch_node, search_client=search_client),
        "llm_analysis": partial(llm_analysis_node, llm_client=llm_client),
        "format_signal": format_signal_node,
    }

    edges = {
        ("static_filter", PROCEED): "data_fetch",
        ("static_filter", REJECT): Terminal(NO_SIGNAL_TERMINAL),
        ("static_filter", ERROR_OUTCOME): Terminal(ERROR_TERMINAL),

        ("data_fetch", EVIDENCE_READY): "llm_analysis",
        ("data_fetch", EVIDENCE_UNAVAILABLE): Terminal(NO_SIGNAL_GENERATED_TERMINAL),
        ("data_fetch", ERROR_OUTCOME): Terminal(ERROR_TERMINAL),

        ("llm_analysis", GENERATE): "format_signal",
        ("llm_analysis", NO_SIGNAL): Terminal(NO_SIGNAL_GENERATED_TERMINAL),
        ("llm_analysis", ERROR_OUTCOME): Terminal(ERROR_TERMINAL),

        ("format_signal", FORMATTED): Terminal(SIGNAL_GENERATED_TERMINAL),
        ("format_signal", ERROR_OUTCOME): Terminal(ERROR_TERMINAL),
    }

    return define_graph(
        nodes=nodes,
        edges=edges,
        entry="static_filter",
        state_schema=SignalPipelineState,
        outcomes=NODE_OUTCOMES,
        frozen_keys=IDENTITY_FIELDS,
        node_timeout=node_timeout,
    )


async def generate_signal(
    token_address: str,
    token_symbol: str,
    current_price: float,
    technical_analysis: Dict[str, Any],
    user_language: str = 'en',
    search_client=None,
    llm_client=None,
    workflow: Optional[PipelineGraph] = None,
) -> Dict[str, Any]:
    """
    Run the signal pipeline for one token.

    Args:
        token_address: Token contract address
        token_symbol: Token ticker
        current_price: Latest price
        technical_analysis: Indicator snapshot
        user_language: Language for LLM text fields
        search_client: Optional search collaborator
        llm_client: Optional LLM collaborator
        workflow: Prebuilt pipeline (reused across tokens by the caller)

    Returns:
        Final state; 'terminal' names the end state reached and
        'final_signal' is set when a signal was generated

    Example:
        >>> final = await generate_signal('So111...', 'SOL', 142.5, {'rsi': '18', 'vwap_deviation': '4.2'})
        >>> final['terminal']
        'signal_generated'
    """
    logger.info(f"Starting signal analysis for {token_symbol}")

    initial_state = create_initial_state(
        token_address=token_address,
        token_symbol=token_symbol,
        current_price=current_price,
        technical_analysis=technical_analysis,
        user_language=user_language,
    )

    if workflow is None:
        workflow = create_signal_workflow(search_client=search_client, llm_client=llm_client)

    final_state = await workflow.arun(initial_state)

    if final_state.get('error') is not None:
        logger.error(f"Signal analysis for {token_symbol} ended at '{final_state['terminal']}': {final_state['error']}")
    else:
        logger.info(f"Signal analysis complete for {token_symbol}: {final_state['terminal']}")

    return final_state


async def generate_signals(
    tokens: List[Dict[str, Any]],
    search_client=None,
    llm_client=None,
) -> List[Dict[str, Any]]:
    """
    Run the pipeline for several tokens concurrently over one compiled graph.

    A token whose run cannot start (missing keys, bad symbol) does not sink
    the batch: its entry carries terminal 'error' and the exception under
    'error'.

    Args:
        tokens: Dicts with token_address, token_symbol, current_price,
            technical_analysis and optionally user_language

    Returns:
        Final states, in the order of `tokens`
    """
    workflow = create_signal_workflow(search_client=search_client, llm_client=llm_client)
    logger.info(f"Running signal analysis for {len(tokens)} tokens")

    async def run_token(token: Dict[str, Any]) -> Dict[str, Any]:
        return await generate_signal(
            token_address=token['token_address'],
            token_symbol=token['token_symbol'],
            current_price=token['current_price'],
            technical_analysis=token.get('technical_analysis') or {},
            user_language=token.get('user_language', 'en'),
            workflow=workflow,
        )

    outcomes = await asyncio.gather(*[run_token(token) for token in tokens], return_exceptions=True)

    finals = []
    for token, outcome in zip(tokens, outcomes):
        if isinstance(outcome, Exception):
            symbol = token.get('token_symbol') if isinstance(token, dict) else None
            logger.error(f"Signal analysis for {symbol!r} could not run: {outcome!r}")
            finals.append({
                'token_address': token.get('token_address') if isinstance(token, dict) else None,
                'token_symbol': symbol,
                'terminal': ERROR_TERMINAL,
                'error': outcome,
                'path': [],
                'final_signal': None,
            })
        elif isinstance(outcome, BaseException):
            raise outcome
        else:
            finals.append(outcome)
    return finals


def run_signal_analysis(
    token_address: str,
    token_symbol: str,
    current_price: float,
    technical_analysis: Dict[str, Any],
    user_language: str = 'en',
    search_client=None,
    llm_client=None,
) -> Dict[str, Any]:
    """
    Synchronous convenience wrapper around generate_signal().

    Example:
        >>> result = run_signal_analysis('So111...', 'SOL', 142.5, {'rsi': '18', 'adx': '45'})
        >>> print(result['terminal'])
    """
    return asyncio.run(generate_signal(
        token_address=token_address,
        token_symbol=token_symbol,
        current_price=current_price,
        technical_analysis=technical_analysis,
        user_language=user_language,
        search_client=search_client,
        llm_client=llm_client,
    ))


def print_signal_summary(state: Dict[str, Any]):
    """
    Print a human-readable summary of a pipeline run.

    Args:
        state: Final state from the workflow
    """
    symbol = state.get('token_symbol', 'UNKNOWN')

    print(f"\n{'='*60}")
    print(f"Signal Analysis Summary: {symbol}")
    print(f"{'='*60}")

    print(f"\n🏁 Terminal: {state.get('terminal')}")
    print(f"🧭 Path: {' → '.join(state.get('path', []))}")

    # Static filter
    filter_result = state.get('static_filter_result')
    if filter_result:
        print(f"\n🔎 Static Filter:")
        print(f"   Proceed: {filter_result['should_proceed']}")
        print(f"   Triggers: {', '.join(filter_result['triggered_indicators']) or 'none'}")
        print(f"   Confluence: {filter_result['confluence_score']:.2f} ({filter_result['risk_level']} risk)")

    # Evidence
    evidence = state.get('evidence_result')
    if evidence is not None:
        print(f"\n📰 Evidence:")
        print(f"   Strategy: {evidence.search_strategy.value}")
        print(f"   Sources: {len(evidence.relevant_sources)} of {evidence.total_results} results")
        print(f"   Quality: {evidence.quality_score:.2f}")
        print(f"   Sentiment: {evidence.market_sentiment.value}")
        if evidence.primary_cause:
            print(f"   Cause: {evidence.primary_cause}")

    # LLM decision
    decision = state.get('signal_decision')
    if decision:
        print(f"\n🤖 LLM Decision:")
        print(f"   Generate: {decision['should_generate_signal']}")
        print(f"   {decision['direction']} {decision['signal_type']} ({decision['confidence']*100:.0f}% confidence)")
        print(f"   Risk: {decision['risk_level']} | Timeframe: {decision['timeframe']}")

    # Final signal
    final_signal = state.get('final_signal')
    if final_signal:
        print(f"\n📣 Final Signal (level {final_signal['level']}):")
        print(final_signal['message'])

    if state.get('error') is not None:
        print(f"\n⚠️  Error: {state['error']}")

    times = state.get('node_execution_times') or {}
    if times:
        print(f"\n⏱️  Node times: " + ", ".join(f"{name}={secs:.2f}s" for name, secs in times.items()))

    print(f"\n{'='*60}\n")
