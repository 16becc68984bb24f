"""
Evidence Sentiment & Quality Scoring

Derives a BULLISH / BEARISH / NEUTRAL label and a [0, 1] quality score from a
deduplicated set of source documents.

Sentiment is a keyword-count heuristic:
    bullish > bearish * 1.2 and bullish - bearish >= 1  → BULLISH
    bearish > bullish * 1.2 and bearish - bullish >= 1  → BEARISH
    otherwise                                          → NEUTRAL

Quality blends three components:
    0.50 * mean provider relevance
  + 0.30 * share of sources from reputable domains
  + 0.20 * min(source_count / 3, 1)
An empty set scores exactly 0.1 ("searched, found nothing").
"""

import re
from typing import Dict, Iterable, List, Pattern, Sequence, Tuple

from signal_agent.evidence.models import Sentiment, SourceDocument
from signal_agent.utils.domain_authority import is_reputable_domain
from signal_agent.utils.helpers import safe_divide
from signal_agent.utils.sentiment_config import (
    BEARISH_KEYWORDS,
    BULLISH_KEYWORDS,
    CORROBORATION_TARGET,
    CORROBORATION_WEIGHT,
    EMPTY_RESULTS_QUALITY,
    MIN_KEYWORD_MARGIN,
    RELEVANCE_WEIGHT,
    REPUTATION_WEIGHT,
    SENTIMENT_MARGIN_RATIO,
    clamp_unit,
)


def _compile(keywords: Iterable[str]) -> Dict[str, Pattern]:
    # Leading word boundary only, so inflections ('partnerships', 'surged') count
    return {kw: re.compile(r'\b' + re.escape(kw.lower())) for kw in keywords}


_BULLISH_PATTERNS = _compile(BULLISH_KEYWORDS)
_BEARISH_PATTERNS = _compile(BEARISH_KEYWORDS)


def _corpus(sources: Sequence[SourceDocument]) -> str:
    return ' '.join(f"{s.title} {s.content}" for s in sources).lower()


def count_keywords(text: str, patterns: Dict[str, Pattern]) -> int:
    """Count every keyword occurrence in already-lowercased text."""
    return sum(len(pattern.findall(text)) for pattern in patterns.values())


def label_from_counts(bullish: int, bearish: int) -> Sentiment:
    """
    Turn keyword counts into a sentiment label.

    Ties and near-ties favour NEUTRAL to avoid false directional signals.

    Example:
        >>> label_from_counts(3, 3)
        <Sentiment.NEUTRAL: 'NEUTRAL'>
        >>> label_from_counts(4, 1)
        <Sentiment.BULLISH: 'BULLISH'>
    """
    if bullish > bearish * SENTIMENT_MARGIN_RATIO and bullish - bearish >= MIN_KEYWORD_MARGIN:
        return Sentiment.BULLISH
    if bearish > bullish * SENTIMENT_MARGIN_RATIO and bearish - bullish >= MIN_KEYWORD_MARGIN:
        return Sentiment.BEARISH
    return Sentiment.NEUTRAL


def classify_sentiment(sources: Sequence[SourceDocument]) -> Tuple[Sentiment, int, int]:
    """
    Classify the overall sentiment of a set of sources.

    Args:
        sources: Deduplicated source documents

    Returns:
        (label, bullish_count, bearish_count)
    """
    if not sources:
        return Sentiment.NEUTRAL, 0, 0

    text = _corpus(sources)
    bullish = count_keywords(text, _BULLISH_PATTERNS)
    bearish = count_keywords(text, _BEARISH_PATTERNS)
    return label_from_counts(bullish, bearish), bullish, bearish


def compute_quality_score(sources: Sequence[SourceDocument]) -> float:
    """
    Compute evidence quality on [0, 1].

    Args:
        sources: Deduplicated source documents

    Returns:
        0.1 for an empty set, otherwise the clamped weighted blend
    """
    if not sources:
        return EMPTY_RESULTS_QUALITY

    count = len(sources)
    mean_relevance = safe_divide(sum(clamp_unit(s.score) for s in sources), count)
    reputable_share = safe_divide(sum(1 for s in sources if is_reputable_domain(s.domain)), count)
    corroboration = min(count / CORROBORATION_TARGET, 1.0)

    score = (
        RELEVANCE_WEIGHT * mean_relevance
        + REPUTATION_WEIGHT * reputable_share
        + CORROBORATION_WEIGHT * corroboration
    )
    return clamp_unit(score)


def summarize_sources(sources: Sequence[SourceDocument]) -> List[str]:
    """Distinct domains in first-seen order (used in logs and messages)."""
    seen: List[str] = []
    for source in sources:
        if source.domain not in seen:
            seen.append(source.domain)
    return seen
