"""
Search ranking pipeline.

One call to Ranker.rank():
1. Fetch a bounded window of matching listings from the store (newest first)
2. Normalize, then drop near-duplicates (first seen wins)
3. Tokenize the query and every candidate, build TF vectors
4. Build IDF over the window and score each candidate
5. Sort by score (stable), paginate, and count results per source

Every call builds its own vectors, IDF table and dedupe set, so concurrent
calls against the same store need no coordination.
"""

import math
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from .config import DEFAULT_CANDIDATE_WINDOW, DEFAULT_LIMIT, DEFAULT_PAGE
from .logger import get_logger
from .models import ScoredResult, utcnow
from .nlp import build_idf, build_tf, tokenize
from .normalize import dedupe, normalize_listing
from .preferences import Preferences, parse_preferences
from .scoring import document_text, score_tokens
from .storage import StorageError

logger = get_logger()


def _positive_int(value: Any, default: int) -> int:
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


@dataclass
class RankingQuery:
    search: str = ""
    location: str = ""
    source: str = ""
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT
    preferences: Preferences = field(default_factory=Preferences)

    @classmethod
    def from_params(cls, params: Mapping[str, Any], default_limit: int = DEFAULT_LIMIT) -> "RankingQuery":
        """
        Build a query from request parameters, falling back to defaults on bad input.

        Args:
            params: Raw parameters (page, limit, search, location, source, preferences)
            default_limit: Page size used when limit is missing or invalid

        Returns:
            RankingQuery
        """
        return cls(
            search=str(params.get("search") or "").strip(),
            location=str(params.get("location") or "").strip(),
            source=str(params.get("source") or "").strip(),
            page=_positive_int(params.get("page"), DEFAULT_PAGE),
            limit=_positive_int(params.get("limit"), default_limit),
            preferences=parse_preferences(params.get("preferences")),
        )


def paginate(results: List[ScoredResult], page: int, limit: int) -> Dict[str, Any]:
    total = len(results)
    total_pages = math.ceil(total / limit) if limit > 0 else 0
    skip = (page - 1) * limit
    return {
        "items": results[skip:skip + limit],
        "pagination": {
            "currentPage": page,
            "totalPages": total_pages,
            "totalJobs": total,
            "hasNextPage": page < total_pages,
            "hasPrevPage": page > 1,
        },
    }


class Ranker:
    def __init__(self, store, window: int = DEFAULT_CANDIDATE_WINDOW):
        self.store = store
        self.window = window

    def rank_all(self, query: RankingQuery, now: Optional[datetime] = None) -> List[ScoredResult]:
        """
        Score and sort every deduplicated candidate for a query.

        Raises:
            StorageError: If the candidate fetch fails
        """
        now = now or utcnow()
        candidates = self.store.find(
            search=query.search,
            location=query.location,
            source=query.source,
            limit=self.window,
        )
        listings = dedupe(normalize_listing(c) for c in candidates)
        logger.record_search(len(candidates), len(candidates) - len(listings))

        query_tokens = tokenize(query.search)
        doc_tokens = [tokenize(document_text(listing)) for listing in listings]
        idf = build_idf([build_tf(tokens) for tokens in doc_tokens])

        scored = [
            score_tokens(query_tokens, tokens, listing, idf, query.preferences, now=now)
            for listing, tokens in zip(listings, doc_tokens)
        ]
        # sorted() is stable, so equal scores keep newest-first order
        return sorted(scored, key=lambda r: r.score, reverse=True)

    def rank(self, query: RankingQuery, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Run the full pipeline and build the response body.

        Returns:
            {"jobs": [...], "pagination": {...}, "stats": {source: count}}
        """
        ranked = self.rank_all(query, now=now)
        page = paginate(ranked, query.page, query.limit)
        stats = dict(Counter(r.listing.source for r in ranked))

        logger.debug(
            "Ranked search",
            search=query.search,
            results=len(ranked),
            page=query.page,
            limit=query.limit,
        )
        return {
            "jobs": [r.to_dict() for r in page["items"]],
            "pagination": page["pagination"],
            "stats": stats,
        }


def search(
    store,
    params: Mapping[str, Any],
    window: int = DEFAULT_CANDIDATE_WINDOW,
    default_limit: int = DEFAULT_LIMIT,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Handle a search request end to end.

    Args:
        store: Listing store offering find(search, location, source, limit)
        params: Raw request parameters
        window: Maximum number of candidates fetched from the store
        default_limit: Page size when the request gives none
        now: Reference time for recency

    Returns:
        Response body, or {"error": ..., "message": ...} if the store failed
    """
    query = RankingQuery.from_params(params, default_limit=default_limit)
    try:
        return Ranker(store, window=window).rank(query, now=now)
    except StorageError as e:
        logger.record_search_failure()
        logger.error("Search failed", search=query.search, error=str(e))
        return {"error": "Failed to search jobs", "message": str(e)}
