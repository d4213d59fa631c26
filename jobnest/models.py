"""Data models for listings and ranked results."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class ListingRecord:
    """A job posting as stored. The ranking code never mutates it."""

    title: str
    company: str
    location: str
    job_url: str
    source: str
    scraped_at: Optional[datetime] = None
    description: Optional[str] = None
    salary: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "company": self.company,
            "location": self.location,
            "description": self.description,
            "salary": self.salary,
            "jobUrl": self.job_url,
            "source": self.source,
            "scrapedAt": self.scraped_at.isoformat() if self.scraped_at else None,
        }


@dataclass
class ScoredResult:
    listing: ListingRecord
    score: float
    subscores: Dict[str, float] = field(default_factory=dict)
    reasons: List[str] = field(default_factory=list)
    matched_terms: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = self.listing.to_dict()
        data.update(
            {
                "score": round(self.score, 6),
                "subscores": {k: round(v, 6) for k, v in self.subscores.items()},
                "reasons": list(self.reasons),
                "matchedTerms": list(self.matched_terms),
            }
        )
        return data


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, the form stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
