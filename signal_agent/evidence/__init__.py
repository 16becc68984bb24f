"""
Evidence aggregation: search, deduplicate, classify sentiment and score.
"""

from signal_agent.evidence.aggregator import aggregate_evidence
from signal_agent.evidence.models import EvidenceResult, SearchStrategy, Sentiment, SourceDocument

__all__ = [
    'aggregate_evidence',
    'EvidenceResult',
    'SearchStrategy',
    'Sentiment',
    'SourceDocument',
]
