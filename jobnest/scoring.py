"""
Relevance scoring for a single listing.

score = (cosine * 0.7 + recency * 0.1) * preference multiplier

Cosine similarity is taken between IDF-weighted term vectors of the query
and the listing. Recency decays logarithmically with age in hours. The
result is a ranking key, not a probability.
"""

import math
from datetime import datetime
from typing import List, Mapping, Optional

from .models import ListingRecord, ScoredResult, to_naive_utc, utcnow
from .nlp import apply_idf, build_tf, tokenize
from .preferences import Preferences, preference_multiplier

TFIDF_WEIGHT = 0.7
RECENCY_WEIGHT = 0.1

EPOCH = datetime(1970, 1, 1)


def cosine_similarity(a: Mapping[str, float], b: Mapping[str, float]) -> float:
    dot = a2 = b2 = 0.0
    for k in set(a) | set(b):
        av = a.get(k, 0.0)
        bv = b.get(k, 0.0)
        dot += av * bv
        a2 += av * av
        b2 += bv * bv
    if a2 == 0 or b2 == 0:
        return 0.0
    # Rounding can push identical vectors a hair above 1
    return min(1.0, dot / (math.sqrt(a2) * math.sqrt(b2)))


def recency_score(scraped_at: Optional[datetime], now: Optional[datetime] = None) -> float:
    """
    Decay factor for listing age: 1 / log10(10 + hours), hours floored at 1.

    A missing timestamp counts as the Unix epoch, i.e. as old as possible.
    """
    now = to_naive_utc(now) if now is not None else utcnow()
    ts = to_naive_utc(scraped_at) if scraped_at is not None else EPOCH
    hours = max(1.0, (now - ts).total_seconds() / 3600)
    return 1 / math.log10(10 + hours)


def document_text(listing: ListingRecord) -> str:
    return " ".join([
        listing.title or "",
        listing.company or "",
        listing.location or "",
        listing.description or "",
    ])


def matched_terms(query_tokens: List[str], document_tokens: List[str]) -> List[str]:
    vocab = set(document_tokens)
    seen = set()
    result = []
    for t in query_tokens:
        if t in vocab and t not in seen:
            seen.add(t)
            result.append(t)
    return result


def score_listing(
    query: str,
    listing: ListingRecord,
    idf: Mapping[str, float],
    preferences: Preferences,
    now: Optional[datetime] = None,
) -> ScoredResult:
    """
    Score one normalized listing against a query.

    Args:
        query: Raw search text
        listing: Normalized listing
        idf: IDF table of the current candidate window
        preferences: Parsed preferences
        now: Reference time for recency (default: current UTC time)

    Returns:
        ScoredResult with subscores and explanation
    """
    return score_tokens(
        tokenize(query),
        tokenize(document_text(listing)),
        listing,
        idf,
        preferences,
        now=now,
    )


def score_tokens(
    query_tokens: List[str],
    document_tokens: List[str],
    listing: ListingRecord,
    idf: Mapping[str, float],
    preferences: Preferences,
    now: Optional[datetime] = None,
) -> ScoredResult:
    """Same as score_listing, for callers that already tokenized."""
    query_vec = apply_idf(build_tf(query_tokens), idf)
    doc_vec = apply_idf(build_tf(document_tokens), idf)

    cosine = cosine_similarity(query_vec, doc_vec)
    recency = recency_score(listing.scraped_at, now)
    base = cosine * TFIDF_WEIGHT + recency * RECENCY_WEIGHT
    multiplier, pref_reasons = preference_multiplier(listing.title, listing.location, preferences)

    reasons = ["TF-IDF match"] if cosine > 0 else []
    reasons.extend(pref_reasons)

    return ScoredResult(
        listing=listing,
        score=base * multiplier,
        subscores={"tfidf": cosine, "recency": recency, "pref": multiplier},
        reasons=reasons,
        matched_terms=matched_terms(query_tokens, document_tokens),
    )
