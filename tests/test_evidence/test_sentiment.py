"""
Tests for evidence sentiment classification and quality scoring.
"""

import pytest

from signal_agent.evidence.models import Sentiment, SourceDocument
from signal_agent.evidence.sentiment import (
    classify_sentiment,
    compute_quality_score,
    label_from_counts,
    summarize_sources,
)
from signal_agent.utils.domain_authority import extract_domain, get_domain_credibility, is_reputable_domain


def _doc(title: str = "", content: str = "", url: str = "https://example.com/a", score: float = 0.5) -> SourceDocument:
    return SourceDocument(
        title=title,
        url=url,
        content=content,
        score=score,
        domain=extract_domain(url),
    )


class TestLabelFromCounts:
    """Tie-breaking policy of the keyword sentiment heuristic"""

    @pytest.mark.parametrize("count", [0, 1, 3, 10])
    def test_equal_counts_are_neutral(self, count):
        assert label_from_counts(count, count) == Sentiment.NEUTRAL

    def test_clear_bullish_majority(self):
        assert label_from_counts(4, 1) == Sentiment.BULLISH

    def test_clear_bearish_majority(self):
        assert label_from_counts(0, 2) == Sentiment.BEARISH

    def test_near_tie_within_ratio_is_neutral(self):
        # 6 > 5 * 1.2 is False
        assert label_from_counts(6, 5) == Sentiment.NEUTRAL
        assert label_from_counts(5, 6) == Sentiment.NEUTRAL

    def test_single_hit_against_zero_is_directional(self):
        assert label_from_counts(1, 0) == Sentiment.BULLISH
        assert label_from_counts(0, 1) == Sentiment.BEARISH


class TestClassifySentiment:
    """Keyword counting over title + content"""

    def test_empty_sources_neutral(self):
        assert classify_sentiment([]) == (Sentiment.NEUTRAL, 0, 0)

    def test_bullish_text(self):
        docs = [_doc("SOL rally after partnership", "Adoption surges to a new high")]
        label, bullish, bearish = classify_sentiment(docs)

        assert label == Sentiment.BULLISH
        assert bullish >= 4
        assert bearish == 0

    def test_bearish_text(self):
        docs = [_doc("Exchange hack triggers crash", "Lawsuit and investigation follow the breach")]
        label, bullish, bearish = classify_sentiment(docs)

        assert label == Sentiment.BEARISH
        assert bearish >= 5

    def test_counting_is_case_insensitive_and_counts_repeats(self):
        docs = [_doc("RALLY rally Rally", "")]
        _, bullish, _ = classify_sentiment(docs)
        assert bullish == 3

    def test_keywords_need_word_start(self):
        # 'thigh' must not count as 'high', 'brisk' must not count as 'risk'
        docs = [_doc("thigh brisk", "")]
        assert classify_sentiment(docs) == (Sentiment.NEUTRAL, 0, 0)

    def test_balanced_text_is_neutral(self):
        docs = [_doc("Rally meets crash fears", "")]
        label, bullish, bearish = classify_sentiment(docs)

        assert bullish == bearish == 1
        assert label == Sentiment.NEUTRAL


class TestComputeQualityScore:
    """Weighted blend of relevance, reputation and corroboration"""

    def test_empty_is_exactly_point_one(self):
        assert compute_quality_score([]) == 0.1

    def test_three_reputable_high_relevance_sources(self):
        docs = [
            _doc(url="https://www.coindesk.com/a", score=0.95),
            _doc(url="https://theblock.co/b", score=0.9),
            _doc(url="https://cointelegraph.com/c", score=0.85),
        ]
        score = compute_quality_score(docs)

        # 0.5 * 0.9 + 0.3 * 1.0 + 0.2 * 1.0
        assert score == pytest.approx(0.95)
        assert score > 0.7

    def test_unknown_domains_score_lower(self):
        reputable = [_doc(url="https://coindesk.com/a", score=0.8)]
        unknown = [_doc(url="https://random-blog.xyz/a", score=0.8)]

        assert compute_quality_score(reputable) > compute_quality_score(unknown)

    def test_corroboration_saturates(self):
        three = [_doc(url=f"https://random-blog.xyz/{i}", score=0.5) for i in range(3)]
        ten = [_doc(url=f"https://random-blog.xyz/{i}", score=0.5) for i in range(10)]

        assert compute_quality_score(three) == pytest.approx(compute_quality_score(ten))

    def test_always_in_unit_interval(self):
        docs = [_doc(url="https://coindesk.com/a", score=5.0), _doc(url="https://x.com/b", score=-3.0)]
        score = compute_quality_score(docs)
        assert 0.0 <= score <= 1.0


class TestDomainAuthority:
    """URL → domain extraction and credibility lookup"""

    def test_extract_domain_strips_www_and_lowercases(self):
        assert extract_domain("https://WWW.CoinDesk.com/markets/x") == "coindesk.com"

    def test_extract_domain_rejects_unparsable(self):
        assert extract_domain("not a url") is None
        assert extract_domain("") is None

    def test_subdomain_inherits_parent_score(self):
        assert get_domain_credibility("markets.coindesk.com") == get_domain_credibility("coindesk.com")

    def test_reputable_threshold(self):
        assert is_reputable_domain("coindesk.com")
        assert not is_reputable_domain("reddit.com")
        assert not is_reputable_domain("unknown-site.io")

    def test_summarize_sources_first_seen_order(self):
        docs = [
            _doc(url="https://theblock.co/a"),
            _doc(url="https://coindesk.com/b"),
            _doc(url="https://theblock.co/c"),
        ]
        assert summarize_sources(docs) == ["theblock.co", "coindesk.com"]
