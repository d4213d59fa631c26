"""
Pytest configuration and shared fixtures.
"""

import json
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List

import pytest

from jobnest.models import ListingRecord
from jobnest.storage import ListingStore

NOW = datetime(2024, 6, 1, 12, 0, 0)


def make_listing(
    title: str = "software engineer",
    company: str = "acme",
    location: str = "remote",
    hours_old: float = 1,
    job_url: str = None,
    source: str = "linkedin",
    description: str = None,
    salary: str = None,
) -> ListingRecord:
    """Build a listing scraped `hours_old` hours before NOW."""
    return ListingRecord(
        title=title,
        company=company,
        location=location,
        job_url=job_url or f"https://example.com/jobs/{abs(hash((title, company, location, hours_old)))}",
        source=source,
        scraped_at=NOW - timedelta(hours=hours_old),
        description=description,
        salary=salary,
    )


class FakeStore:
    """In-memory stand-in for ListingStore.find()."""

    def __init__(self, listings: List[ListingRecord], error: Exception = None):
        self.listings = listings
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    def find(self, search="", location="", source="", limit=500):
        self.calls.append({"search": search, "location": location, "source": source, "limit": limit})
        if self.error is not None:
            raise self.error
        return sorted(self.listings, key=lambda l: l.scraped_at, reverse=True)[:limit]


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def listing_factory():
    return make_listing


@pytest.fixture
def fake_store_factory():
    return FakeStore


@pytest.fixture
def valid_listing_data() -> Dict[str, Any]:
    """Valid wire-format listing."""
    return {
        "title": "Senior React Developer",
        "company": "Acme Corp",
        "location": "Bangalore, India",
        "jobUrl": "https://www.linkedin.com/jobs/view/12345",
        "source": "linkedin",
        "salary": "₹25L - ₹35L",
        "scrapedAt": "2024-06-01T10:00:00Z",
    }


@pytest.fixture
def store(tmp_path) -> ListingStore:
    """A ListingStore over a temporary SQLite file."""
    with ListingStore(tmp_path / "jobs.db", timeout=1.0) as s:
        yield s


@pytest.fixture
def listings_file(tmp_path, valid_listing_data) -> Path:
    """JSON file holding two listings, one of them invalid."""
    path = tmp_path / "listings.json"
    path.write_text(json.dumps([valid_listing_data, {"title": "no company"}]))
    return path
