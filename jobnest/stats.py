"""
Catalog statistics for the listing store.

Counts are computed in SQL over the whole store, unlike search stats,
which only cover one ranked result set.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .database import Listing
from .logger import get_logger
from .models import to_naive_utc, utcnow
from .preferences import CATEGORY_KEYWORDS, CATEGORY_SLUGS
from .storage import ListingStore, StorageError

logger = get_logger()

TOP_N = 10


def _top(session: Session, column, limit: int = TOP_N):
    rows = session.execute(
        select(column, func.count().label("count"))
        .group_by(column)
        .order_by(func.count().desc(), column.asc())
        .limit(limit)
    ).all()
    return [{"name": name, "count": count} for name, count in rows]


def collect_stats(store: ListingStore, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Summarize the store.

    Args:
        store: Listing store
        now: Reference time for the 24 hour window (default: current UTC time)

    Returns:
        Dict with totalJobs, recentJobs, jobsWithSalary, salaryPercentage,
        sources, topCompanies and topLocations

    Raises:
        StorageError: If a query fails
    """
    now = to_naive_utc(now) if now is not None else utcnow()
    since = now - timedelta(days=1)

    try:
        with store.session_scope() as session:
            total = session.scalar(select(func.count()).select_from(Listing))
            recent = session.scalar(
                select(func.count()).select_from(Listing).where(Listing.scraped_at >= since)
            )
            with_salary = session.scalar(
                select(func.count())
                .select_from(Listing)
                .where(Listing.salary.is_not(None), Listing.salary != "")
            )
            sources = dict(
                session.execute(
                    select(Listing.source, func.count()).group_by(Listing.source)
                ).all()
            )
            top_companies = _top(session, Listing.company)
            top_locations = _top(session, Listing.location)
    except SQLAlchemyError as e:
        logger.error("Stats query failed", error=str(e))
        raise StorageError(f"Stats query failed: {e}") from e

    return {
        "totalJobs": total,
        "recentJobs": recent,
        "jobsWithSalary": with_salary,
        "salaryPercentage": round(with_salary / total * 100) if total > 0 else 0,
        "sources": sources,
        "topCompanies": top_companies,
        "topLocations": top_locations,
    }


def category_counts(store: ListingStore) -> Dict[str, int]:
    """
    Count listings per category by title keyword.

    A listing whose title matches keywords of several categories is counted
    in each of them.

    Raises:
        StorageError: If a query fails
    """
    counts: Dict[str, int] = {}
    try:
        with store.session_scope() as session:
            for category, keywords in CATEGORY_KEYWORDS.items():
                condition = or_(*[Listing.title.ilike(f"%{k}%") for k in keywords])
                counts[CATEGORY_SLUGS[category]] = session.scalar(
                    select(func.count()).select_from(Listing).where(condition)
                )
    except SQLAlchemyError as e:
        logger.error("Category count query failed", error=str(e))
        raise StorageError(f"Category count query failed: {e}") from e
    return counts
