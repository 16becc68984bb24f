"""
Sentiment & Evidence Quality Configuration

Keyword lists, margins and quality-score weights used by the evidence
aggregator (data_fetch node).
"""

import math
from typing import List

# ============================================================================
# SENTIMENT KEYWORDS
# ============================================================================

BULLISH_KEYWORDS: List[str] = [
    'surge', 'rally', 'bullish', 'adoption', 'partnership', 'breakthrough', 'high',
]

BEARISH_KEYWORDS: List[str] = [
    'crash', 'hack', 'breach', 'lawsuit', 'dump', 'bearish', 'decline', 'risk',
    'investigation',
]


# ============================================================================
# SENTIMENT MARGINS
# ============================================================================

# One side must exceed the other by this ratio AND by MIN_KEYWORD_MARGIN hits.
# Ties and near-ties stay NEUTRAL.
SENTIMENT_MARGIN_RATIO = 1.2
MIN_KEYWORD_MARGIN = 1


# ============================================================================
# QUALITY SCORE
# ============================================================================

# Weighted blend components (must sum to 1.0)
RELEVANCE_WEIGHT = 0.50        # Mean provider relevance score
REPUTATION_WEIGHT = 0.30       # Share of sources from reputable domains
CORROBORATION_WEIGHT = 0.20    # Enough independent sources

assert abs(RELEVANCE_WEIGHT + REPUTATION_WEIGHT + CORROBORATION_WEIGHT - 1.0) < 0.001

# Number of sources at which the corroboration bonus saturates
CORROBORATION_TARGET = 3

# Sentinels
EMPTY_RESULTS_QUALITY = 0.1    # Searched successfully, found nothing
NO_SEARCH_QUALITY = 0.0        # Skipped or failed


# ============================================================================
# VALIDATION FUNCTIONS
# ============================================================================

def clamp_unit(value: float) -> float:
    """
    Clamp a score to the 0.0 to 1.0 range.

    Args:
        value: Raw score

    Returns:
        Score between 0.0 and 1.0 (0.0 for non-numeric input)
    """
    try:
        number = float(value)
    except (ValueError, TypeError):
        return 0.0
    if math.isnan(number):
        return 0.0
    return max(0.0, min(1.0, number))
