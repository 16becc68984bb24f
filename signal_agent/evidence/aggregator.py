"""
Evidence Aggregator

Turns one aggregated search call into a single deduplicated, scored
EvidenceResult.

Query modes:
- Symbol only   → BASIC: one market-news query, depth 'basic', 3 results
- Address known → FUNDAMENTAL: fundamentals/tokenomics query plus supporting
                  and address-qualified queries, depth 'advanced', 15 results

Outcome classification (exactly one per call, never retried):
- search succeeded, sources kept      → BASIC / FUNDAMENTAL, scored
- search succeeded, nothing kept      → BASIC / FUNDAMENTAL, quality 0.1
- credentials missing                 → SKIP, quality 0
- any other search failure            → FAILED, quality 0

Errors never propagate out of aggregate_evidence(): downstream nodes always
receive a well-formed EvidenceResult.
"""

import logging
import re
import time
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from signal_agent.evidence.models import EvidenceResult, SearchStrategy, Sentiment, SourceDocument
from signal_agent.evidence.sentiment import classify_sentiment, compute_quality_score, summarize_sources
from signal_agent.exceptions import ConfigurationError, EmptyResultError
from signal_agent.utils.domain_authority import extract_domain
from signal_agent.utils.helpers import normalize_symbol
from signal_agent.utils.sentiment_config import NO_SEARCH_QUALITY, clamp_unit

logger = logging.getLogger(__name__)


# ============================================================================
# QUERY SETTINGS
# ============================================================================

BASIC_SEARCH_DEPTH = "basic"
BASIC_MAX_RESULTS = 3

FUNDAMENTAL_SEARCH_DEPTH = "advanced"
FUNDAMENTAL_MAX_RESULTS = 15

MISSING_CREDENTIALS_CAUSE = "Tavily API key not configured"
NO_SOURCES_CAUSE = "No relevant sources found"

_CREDENTIAL_ERROR_PATTERN = re.compile(r"api[ _-]?key.*(not configured|missing)", re.IGNORECASE)


def build_basic_queries(token_symbol: str) -> List[str]:
    """Single market-news query for a symbol-only lookup."""
    return [f"{token_symbol} crypto token price news market analysis"]


def build_fundamental_queries(token_symbol: str, token_address: str) -> List[str]:
    """
    Fundamental research queries for a token with a known contract address.

    Example:
        >>> build_fundamental_queries('SOL', 'So111')[0]
        'SOL crypto fundamentals tokenomics use case team'
    """
    return [
        f"{token_symbol} crypto fundamentals tokenomics use case team",
        f"{token_symbol} token fundamental analysis",
        f"{token_symbol} roadmap partnerships development",
        f"{token_symbol} crypto news today",
        f"{token_symbol} market sentiment",
        f"{token_address} contract analysis security audit",
        f"{token_address} on-chain metrics holder distribution",
    ]


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def is_credential_error(error: BaseException) -> bool:
    """
    True if a search failure means the provider is not configured.

    Typed ConfigurationError first, message text as fallback for clients that
    raise generic exceptions.
    """
    if isinstance(error, ConfigurationError):
        return True
    return bool(_CREDENTIAL_ERROR_PATTERN.search(str(error)))


def deduplicate_sources(raw_results: Iterable[Dict[str, Any]], max_results: int) -> List[SourceDocument]:
    """
    Collapse raw search results with identical URLs, keeping the first.

    Entries without a parsable URL are dropped. The kept list is capped at
    max_results.

    Args:
        raw_results: Provider result dicts (title, url, content, score, published_date)
        max_results: Cap on kept documents

    Returns:
        SourceDocuments in first-seen order

    Raises:
        EmptyResultError: If nothing survives deduplication
    """
    seen_urls = set()
    sources: List[SourceDocument] = []

    for item in raw_results:
        if len(sources) >= max_results:
            break
        if not isinstance(item, dict):
            continue

        url = item.get('url')
        if not url or not isinstance(url, str):
            continue

        domain = extract_domain(url)
        if domain is None:
            logger.debug(f"Dropping result with unparsable URL: {url!r}")
            continue

        if url in seen_urls:
            continue
        seen_urls.add(url)

        sources.append(SourceDocument(
            title=str(item.get('title') or ''),
            url=url,
            content=str(item.get('content') or ''),
            score=clamp_unit(item.get('score', 0.0)),
            domain=domain,
            published_date=item.get('published_date') or item.get('publishedDate'),
        ))

    if not sources:
        raise EmptyResultError(NO_SOURCES_CAUSE)

    return sources


def _elapsed_ms(started: float) -> float:
    return round(max(0.0, (time.perf_counter() - started) * 1000), 2)


def _unavailable_result(
    strategy: SearchStrategy,
    cause: str,
    queries: Tuple[str, ...],
    started: float,
) -> EvidenceResult:
    return EvidenceResult(
        relevant_sources=(),
        total_results=0,
        search_queries=queries,
        search_time=_elapsed_ms(started),
        quality_score=NO_SEARCH_QUALITY,
        search_strategy=strategy,
        market_sentiment=Sentiment.NEUTRAL,
        news_category=Sentiment.NEUTRAL,
        primary_cause=cause,
    )


# ============================================================================
# MAIN FUNCTION
# ============================================================================

async def aggregate_evidence(
    token_symbol: str,
    token_address: Optional[str] = None,
    current_price: Optional[float] = None,
    search_client=None,
) -> EvidenceResult:
    """
    Search, deduplicate and score evidence for one token.

    Args:
        token_symbol: Token ticker (e.g., 'SOL')
        token_address: Contract address; switches to the FUNDAMENTAL strategy
        current_price: Latest price, logged for context
        search_client: Object with async search_aggregated(); defaults to
            TavilySearchClient

    Returns:
        EvidenceResult (never raises)

    Example:
        >>> result = await aggregate_evidence('SOL', token_address='So111...')
        >>> result.search_strategy
        <SearchStrategy.FUNDAMENTAL: 'FUNDAMENTAL'>
    """
    started = time.perf_counter()
    symbol = normalize_symbol(token_symbol)

    if token_address:
        strategy = SearchStrategy.FUNDAMENTAL
        queries = tuple(build_fundamental_queries(symbol, token_address))
        search_depth, max_results = FUNDAMENTAL_SEARCH_DEPTH, FUNDAMENTAL_MAX_RESULTS
    else:
        strategy = SearchStrategy.BASIC
        queries = tuple(build_basic_queries(symbol))
        search_depth, max_results = BASIC_SEARCH_DEPTH, BASIC_MAX_RESULTS

    price_note = f" @ ${current_price}" if current_price is not None else ""
    logger.info(f"Evidence search for {symbol}{price_note}: {strategy.value}, {len(queries)} queries")

    if search_client is None:
        from signal_agent.clients.tavily_client import TavilySearchClient
        search_client = TavilySearchClient()

    try:
        response = await search_client.search_aggregated(
            queries=list(queries),
            search_depth=search_depth,
            max_results=max_results,
            deduplicate_results=True,
        )
    except Exception as e:
        if is_credential_error(e):
            logger.warning(f"Evidence search skipped for {symbol}: {e}")
            return _unavailable_result(SearchStrategy.SKIP, MISSING_CREDENTIALS_CAUSE, queries, started)
        logger.error(f"Evidence search failed for {symbol}: {e}")
        return _unavailable_result(SearchStrategy.FAILED, f"Search failed: {e}", queries, started)

    response = response or {}
    raw_results = None
    if isinstance(response, Mapping):
        raw_results = response.get('all_results') or response.get('unique_results') or []
    if not isinstance(raw_results, (list, tuple)):
        logger.error(f"Evidence search for {symbol} returned a malformed response: {type(response).__name__}")
        return _unavailable_result(
            SearchStrategy.FAILED,
            f"Search failed: malformed response ({type(response).__name__})",
            queries,
            started,
        )
    all_results = list(raw_results)

    try:
        sources = deduplicate_sources(all_results, max_results)
    except EmptyResultError as e:
        logger.warning(f"Evidence search for {symbol} returned no usable sources ({len(all_results)} raw results)")
        return EvidenceResult(
            relevant_sources=(),
            total_results=len(all_results),
            search_queries=queries,
            search_time=_elapsed_ms(started),
            quality_score=compute_quality_score([]),
            search_strategy=strategy,
            market_sentiment=Sentiment.NEUTRAL,
            news_category=Sentiment.NEUTRAL,
            primary_cause=str(e),
        )

    sentiment, bullish_hits, bearish_hits = classify_sentiment(sources)
    quality_score = compute_quality_score(sources)

    result = EvidenceResult(
        relevant_sources=tuple(sources),
        total_results=len(all_results),
        search_queries=queries,
        search_time=_elapsed_ms(started),
        quality_score=quality_score,
        search_strategy=strategy,
        market_sentiment=sentiment,
        news_category=sentiment,
        primary_cause=None,
        bullish_hits=bullish_hits,
        bearish_hits=bearish_hits,
    )

    logger.info(
        f"Evidence for {symbol}: {len(sources)} sources from {len(all_results)} results, "
        f"quality={quality_score:.2f}, sentiment={sentiment.value} "
        f"(bullish={bullish_hits}, bearish={bearish_hits}), "
        f"domains={', '.join(summarize_sources(sources))}, {result.search_time:.0f}ms"
    )
    return result
