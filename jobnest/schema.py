from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from .models import ListingRecord, to_naive_utc, utcnow

REQUIRED_STR_FIELDS = ["title", "company", "jobUrl"]
OPTIONAL_STR_FIELDS = [
    "location",
    "description",
    "salary",
    "source",
]


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and v.strip() != ""


def _valid_url(v: str) -> bool:
    try:
        p = urlparse(v)
        return bool(p.scheme and p.netloc)
    except ValueError:
        return False


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string or datetime into naive UTC. None if unparseable."""
    if isinstance(value, datetime):
        return to_naive_utc(value)
    if not _is_non_empty_str(value):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return to_naive_utc(datetime.fromisoformat(text))
    except ValueError:
        return None


def validate_listing(data: Dict[str, Any]) -> List[str]:
    """
    Returns a list of validation error messages. Empty list means valid.
    """
    errors: List[str] = []

    for f in REQUIRED_STR_FIELDS:
        if f not in data:
            errors.append(f"Missing required field: {f}")
        elif not _is_non_empty_str(data[f]):
            errors.append(f"Field '{f}' must be a non-empty string")

    # Optional strings: if present, must be strings or null
    for f in OPTIONAL_STR_FIELDS:
        if data.get(f) is not None and not isinstance(data[f], str):
            errors.append(f"Field '{f}' must be a string if provided")

    if _is_non_empty_str(data.get("jobUrl")) and not _valid_url(data["jobUrl"]):
        errors.append("Field 'jobUrl' must be a valid absolute URL (scheme + host)")

    if data.get("scrapedAt") is not None and parse_timestamp(data["scrapedAt"]) is None:
        errors.append("Field 'scrapedAt' must be an ISO-8601 timestamp if provided")

    return errors


def listing_from_dict(data: Dict[str, Any]) -> ListingRecord:
    """Build a ListingRecord from a validated wire-format dict."""
    return ListingRecord(
        title=data["title"].strip(),
        company=data["company"].strip(),
        location=(data.get("location") or "").strip(),
        job_url=data["jobUrl"].strip(),
        source=(data.get("source") or "unknown").strip() or "unknown",
        scraped_at=parse_timestamp(data.get("scrapedAt")) or utcnow(),
        description=data.get("description"),
        salary=data.get("salary"),
    )
