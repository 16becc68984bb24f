"""
Evidence Data Model

SourceDocument and EvidenceResult are frozen: the data_fetch node creates one
EvidenceResult per run and nothing mutates it after it lands in the state.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class SearchStrategy(str, Enum):
    """Which query mode was attempted, or why none succeeded."""

    BASIC = "BASIC"
    FUNDAMENTAL = "FUNDAMENTAL"
    FAILED = "FAILED"
    SKIP = "SKIP"


class Sentiment(str, Enum):
    BULLISH = "BULLISH"
    BEARISH = "BEARISH"
    NEUTRAL = "NEUTRAL"


@dataclass(frozen=True)
class SourceDocument:
    """One retrieved search result. `domain` is always derived from `url`."""

    title: str
    url: str
    content: str
    score: float
    domain: str
    published_date: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'title': self.title,
            'url': self.url,
            'content': self.content,
            'score': self.score,
            'domain': self.domain,
            'published_date': self.published_date,
        }


@dataclass(frozen=True)
class EvidenceResult:
    """Aggregate output of the evidence aggregator for one pipeline run."""

    relevant_sources: Tuple[SourceDocument, ...] = ()
    total_results: int = 0
    search_queries: Tuple[str, ...] = ()
    search_time: float = 0.0
    quality_score: float = 0.0
    search_strategy: SearchStrategy = SearchStrategy.SKIP
    market_sentiment: Sentiment = Sentiment.NEUTRAL
    news_category: Sentiment = Sentiment.NEUTRAL
    primary_cause: Optional[str] = None
    bullish_hits: int = field(default=0, compare=False)
    bearish_hits: int = field(default=0, compare=False)

    @property
    def has_evidence(self) -> bool:
        """True when the search ran (BASIC/FUNDAMENTAL), even with zero sources."""
        return self.search_strategy in (SearchStrategy.BASIC, SearchStrategy.FUNDAMENTAL)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'relevant_sources': [source.to_dict() for source in self.relevant_sources],
            'total_results': self.total_results,
            'search_queries': list(self.search_queries),
            'search_time': self.search_time,
            'quality_score': self.quality_score,
            'search_strategy': self.search_strategy.value,
            'market_sentiment': self.market_sentiment.value,
            'news_category': self.news_category.value,
            'primary_cause': self.primary_cause,
        }
