"""
Text processing for search ranking.

Pipeline:
1. Normalize (control characters, whitespace)
2. Lowercase
3. Replace everything except [a-z0-9+.#] with spaces, so that
   technology names like "c++", "node.js" and "c#" survive
4. Split on whitespace and drop stopwords

Term vectors are plain dicts (token -> weight). IDF weights are computed
over the candidate window of a single request, never globally.
"""

import math
import re
from typing import Dict, Iterable, List, Mapping

from .normalize import normalize_text

# Common English function words, excluded from both queries and documents
STOPWORDS = frozenset([
    'a', 'an', 'the', 'and', 'or', 'but', 'if', 'then', 'else', 'for',
    'of', 'on', 'in', 'to', 'with', 'by', 'at', 'from', 'as', 'is',
    'are', 'was', 'were', 'be', 'been', 'being', 'this', 'that', 'these',
    'those', 'it', 'its', 'into', 'over', 'under', 'about', 'your', 'you',
    'we', 'our', 'their', 'they'
])

_NON_TOKEN_CHARS = re.compile(r"[^a-z0-9+.# ]+")

TermVector = Dict[str, float]


def tokenize(text: str) -> List[str]:
    """
    Split text into lowercase search tokens.

    Args:
        text: Raw text (may be None or empty)

    Returns:
        Tokens in order of occurrence, duplicates kept, stopwords removed

    Examples:
        >>> tokenize("Senior C++ and Node.js Developer")
        ['senior', 'c++', 'node.js', 'developer']

        >>> tokenize("   ")
        []
    """
    cleaned = _NON_TOKEN_CHARS.sub(" ", normalize_text(text).lower())
    return [t for t in cleaned.split() if t not in STOPWORDS]


def build_tf(tokens: Iterable[str]) -> TermVector:
    tf: TermVector = {}
    for t in tokens:
        tf[t] = tf.get(t, 0) + 1
    return tf


def build_idf(vectors: List[Mapping[str, float]]) -> Dict[str, float]:
    """
    Smoothed inverse document frequency over a set of term vectors.

    idf = ln((N + 1) / (df + 1)) + 1 with N = max(1, number of documents),
    which stays positive even for a token present in every document.
    """
    df: Dict[str, int] = {}
    for vec in vectors:
        # Keys are unique, so each document counts once per token
        for token in vec:
            df[token] = df.get(token, 0) + 1

    n = max(1, len(vectors))
    return {token: math.log((n + 1) / (count + 1)) + 1 for token, count in df.items()}


def apply_idf(tf: Mapping[str, float], idf: Mapping[str, float]) -> TermVector:
    # Query-only tokens are not in the table and keep weight 1
    return {token: count * idf.get(token, 1.0) for token, count in tf.items()}
