"""
Domain Authority Configuration
Source credibility mapping for crypto / finance news outlets.

Used by the evidence aggregator to compute each source's domain and the
reputable-source share of the quality score.
"""

from typing import Dict, Optional
from urllib.parse import urlsplit

# ============================================================================
# SOURCE CREDIBILITY MAPPING
# ============================================================================

TRUSTED_DOMAINS: Dict[str, float] = {
    # Tier 1: Premium Financial News (0.9-1.0)
    'bloomberg.com': 0.95,
    'reuters.com': 0.95,
    'wsj.com': 0.92,
    'ft.com': 0.90,
    'apnews.com': 0.90,

    # Tier 2: Established Crypto Newsrooms (0.8-0.9)
    'coindesk.com': 0.88,
    'theblock.co': 0.86,
    'cointelegraph.com': 0.82,
    'decrypt.co': 0.82,
    'blockworks.co': 0.82,
    'messari.io': 0.80,

    # Tier 3: Major Financial Media / Market Data (0.7-0.8)
    'cnbc.com': 0.80,
    'marketwatch.com': 0.78,
    'forbes.com': 0.75,
    'barrons.com': 0.78,
    'coinmarketcap.com': 0.72,
    'coingecko.com': 0.72,
    'bitcoinmagazine.com': 0.70,
    'investing.com': 0.70,

    # Tier 4: General Crypto / Finance Sites (0.5-0.6)
    'finance.yahoo.com': 0.60,
    'cryptoslate.com': 0.60,
    'beincrypto.com': 0.58,
    'u.today': 0.52,
    'benzinga.com': 0.58,
    'seekingalpha.com': 0.55,
    'medium.com': 0.50,

    # Tier 5: Aggregators / Social (0.3-0.45)
    'news.google.com': 0.45,
    'msn.com': 0.40,
    'reddit.com': 0.35,
    'x.com': 0.30,
    'twitter.com': 0.30,
}

# Default score for unknown domains
DEFAULT_CREDIBILITY_SCORE: float = 0.30

# Minimum credibility for a source to count as reputable
REPUTABLE_THRESHOLD: float = 0.70


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def extract_domain(url: str) -> Optional[str]:
    """
    Extract the host of a URL, lowercased and without a leading 'www.'.

    Args:
        url: Article URL

    Returns:
        Domain string, or None if the URL cannot be parsed

    Example:
        >>> extract_domain('https://WWW.CoinDesk.com/markets/sol')
        'coindesk.com'
        >>> extract_domain('not a url') is None
        True
    """
    if not url or not isinstance(url, str):
        return None

    try:
        parts = urlsplit(url.strip())
        host = parts.hostname
    except ValueError:
        # Malformed netloc (e.g. broken IPv6 literal)
        return None

    if not parts.scheme or not host:
        return None

    host = host.lower().rstrip('.')
    if host.startswith('www.'):
        host = host[4:]
    return host or None


def get_domain_credibility(domain: str) -> float:
    """
    Get credibility score for a domain.

    Subdomains inherit their parent's score ('markets.bloomberg.com' scores
    like 'bloomberg.com').

    Args:
        domain: Domain as returned by extract_domain()

    Returns:
        Credibility score (0.0 to 1.0)

    Example:
        >>> get_domain_credibility('coindesk.com')
        0.88
        >>> get_domain_credibility('unknown-blog.io')
        0.3
    """
    if not domain:
        return DEFAULT_CREDIBILITY_SCORE

    domain = domain.lower()
    if domain in TRUSTED_DOMAINS:
        return TRUSTED_DOMAINS[domain]

    for trusted, score in TRUSTED_DOMAINS.items():
        if domain.endswith('.' + trusted):
            return score

    return DEFAULT_CREDIBILITY_SCORE


def is_reputable_domain(domain: str, threshold: float = REPUTABLE_THRESHOLD) -> bool:
    """
    Check if a domain is considered reputable (at or above threshold).

    Args:
        domain: Domain as returned by extract_domain()
        threshold: Minimum credibility score

    Returns:
        True if reputable, False otherwise
    """
    return get_domain_credibility(domain) >= threshold
