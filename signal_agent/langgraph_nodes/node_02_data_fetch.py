"""
Node 2: Evidence Data Fetch

Runs the evidence aggregator for the token and attaches the resulting
EvidenceResult to the state.

Routing:
- BASIC / FUNDAMENTAL (even with zero sources) → 'evidence_ready' → llm_analysis
- SKIP / FAILED                                → 'evidence_unavailable'
                                                 → terminal 'no_signal_generated'
- anything raised                              → 'error' (engine)

Runs AFTER: Node 1 (static_filter)
Runs BEFORE: Node 3 (llm_analysis)
"""

from typing import Any, Dict, Tuple

from signal_agent.evidence.aggregator import aggregate_evidence
from signal_agent.utils.logger import get_node_logger

logger = get_node_logger("data_fetch")


EVIDENCE_READY = "evidence_ready"
EVIDENCE_UNAVAILABLE = "evidence_unavailable"


async def data_fetch_node(state: Dict[str, Any], search_client=None) -> Tuple[Dict[str, Any], str]:
    """
    Node 2: Evidence Data Fetch

    Args:
        state: Pipeline state with token_symbol, token_address, current_price
        search_client: Search collaborator bound by the workflow (None → Tavily)

    Returns:
        ({'evidence_result': EvidenceResult}, outcome)
    """
    symbol = state.get('token_symbol', 'UNKNOWN')
    logger.info(f"Node 2: Fetching evidence for {symbol}")

    evidence = await aggregate_evidence(
        token_symbol=symbol,
        token_address=state.get('token_address') or None,
        current_price=state.get('current_price'),
        search_client=search_client,
    )

    update = {'evidence_result': evidence}

    if not evidence.has_evidence:
        logger.warning(
            f"Node 2: Evidence unavailable for {symbol} "
            f"({evidence.search_strategy.value}: {evidence.primary_cause})"
        )
        return update, EVIDENCE_UNAVAILABLE

    logger.info(
        f"Node 2: {len(evidence.relevant_sources)} sources for {symbol} "
        f"({evidence.search_strategy.value}, quality={evidence.quality_score:.2f}, "
        f"sentiment={evidence.market_sentiment.value})"
    )
    return update, EVIDENCE_READY
