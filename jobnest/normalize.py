import re
from dataclasses import replace
from typing import Iterable, List, Optional

from .models import ListingRecord

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_WHITESPACE = re.compile(r"\s+")


def normalize_text(s: Optional[str]) -> str:
    if not s:
        return ""
    s = _CONTROL_CHARS.sub(" ", str(s))
    return _WHITESPACE.sub(" ", s).strip()


def normalize_listing(listing: ListingRecord) -> ListingRecord:
    """Return a copy with its free-text fields passed through normalize_text."""
    return replace(
        listing,
        title=normalize_text(listing.title),
        company=normalize_text(listing.company),
        location=normalize_text(listing.location),
        description=normalize_text(listing.description),
    )


def dedupe_key(listing: ListingRecord) -> str:
    t = (listing.title or "").lower().strip()
    c = (listing.company or "").lower().strip()
    l = (listing.location or "").lower().strip()
    return f"{t}|{c}|{l}"


def dedupe(listings: Iterable[ListingRecord]) -> List[ListingRecord]:
    """Drop listings whose dedupe key was already seen, preserving order."""
    seen = set()
    result = []
    for listing in listings:
        key = dedupe_key(listing)
        if key not in seen:
            seen.add(key)
            result.append(listing)
    return result
