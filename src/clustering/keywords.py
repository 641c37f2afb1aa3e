"""
Keyword extraction from cluster member titles.
"""

import re
from collections import Counter
from typing import List, Sequence

MAX_TITLES = 10
MAX_KEYWORDS = 5
MIN_TOKEN_LENGTH = 4

# Function words plus generic scholarly noise
STOPWORDS = frozenset([
    'a', 'an', 'the', 'and', 'or', 'of', 'to', 'in', 'for', 'with', 'on', 'at',
    'by', 'from', 'as', 'is', 'are', 'was', 'were', 'be', 'been', 'being',
    'have', 'has', 'had', 'do', 'does', 'did', 'will', 'would', 'could',
    'should', 'may', 'might', 'must', 'shall', 'can', 'that', 'this', 'these',
    'those', 'it', 'its',
    'study', 'analysis', 'review', 'patients', 'results', 'effect', 'effects',
    'using', 'based', 'new',
])

_NON_ALPHA = re.compile(r'[^a-z\s]')


def tokenize_title(title: str) -> List[str]:
    """Lowercase, drop non a-z characters, and keep tokens worth counting."""
    cleaned = _NON_ALPHA.sub('', title.lower())
    return [
        token for token in cleaned.split()
        if len(token) >= MIN_TOKEN_LENGTH and token not in STOPWORDS
    ]


def extract_keywords(titles: Sequence[str], max_keywords: int = MAX_KEYWORDS) -> List[str]:
    """
    Most frequent meaningful words across titles.

    Only the first 10 titles are considered. Ties in frequency keep the
    order in which words were first seen.

    Args:
        titles: Member titles
        max_keywords: Number of keywords to return (default: 5)

    Returns:
        Up to max_keywords keywords, possibly empty
    """
    counts = Counter()
    for title in list(titles)[:MAX_TITLES]:
        if title:
            counts.update(tokenize_title(title))

    return [word for word, _ in counts.most_common(max_keywords)]
