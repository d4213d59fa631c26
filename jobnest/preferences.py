"""
User preferences and the boosts they apply to ranking.

Preferences arrive fresh with each search request, usually as a JSON
string. Anything that cannot be parsed is treated as "no preferences".
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .logger import get_logger

logger = get_logger()


class Category(Enum):
    SOFTWARE_DEVELOPMENT = "Software Development"
    DATA_SCIENCE = "Data Science & AI"
    MARKETING = "Marketing & Sales"
    DESIGN = "Design & Creative"
    PRODUCT_MANAGEMENT = "Product Management"


CATEGORY_SLUGS: Dict[Category, str] = {
    Category.SOFTWARE_DEVELOPMENT: "software-development",
    Category.DATA_SCIENCE: "data-science",
    Category.MARKETING: "marketing",
    Category.DESIGN: "design",
    Category.PRODUCT_MANAGEMENT: "product-management",
}

CATEGORY_KEYWORDS: Dict[Category, Tuple[str, ...]] = {
    Category.SOFTWARE_DEVELOPMENT: (
        "developer", "software", "engineer", "frontend", "backend", "full",
        "stack", "react", "node", "python", "java", "devops",
    ),
    Category.DATA_SCIENCE: (
        "data", "machine", "learning", "ml", "ai", "scientist", "analyst",
        "nlp", "vision",
    ),
    Category.MARKETING: ("marketing", "sales", "seo", "content", "growth", "performance"),
    Category.DESIGN: ("designer", "design", "ux", "ui", "graphic", "product"),
    Category.PRODUCT_MANAGEMENT: ("product", "manager", "pm"),
}

# Multipliers, applied in this order; the exclude penalty always comes last
CATEGORY_BOOST = 1.2
LOCATION_BOOST = 1.15
REMOTE_BOOST = 1.1
SKILL_BOOST = 1.15
EXCLUDE_PENALTY = 0.7


def _validate_category_table() -> None:
    for category in Category:
        keywords = CATEGORY_KEYWORDS.get(category)
        if not keywords:
            raise ValueError(f"Category {category.value!r} has no keywords")
        bad = [k for k in keywords if k != k.strip().lower() or not k]
        if bad:
            raise ValueError(f"Category {category.value!r} has non-normalized keywords: {bad}")
        if category not in CATEGORY_SLUGS:
            raise ValueError(f"Category {category.value!r} has no slug")


_validate_category_table()

_CATEGORY_LOOKUP: Dict[str, Category] = {}
for _category in Category:
    _CATEGORY_LOOKUP[_category.value.lower()] = _category
    _CATEGORY_LOOKUP[CATEGORY_SLUGS[_category]] = _category


def lookup_category(name: str) -> Optional[Category]:
    """Find a category by display name or slug, case-insensitively."""
    return _CATEGORY_LOOKUP.get(str(name).strip().lower())


def category_keywords(name: str) -> Tuple[str, ...]:
    """Keywords for a category; unknown names match on their own text."""
    category = lookup_category(name)
    if category is None:
        return (str(name).strip().lower(),)
    return CATEGORY_KEYWORDS[category]


@dataclass
class Preferences:
    preferred_categories: List[str] = field(default_factory=list)
    preferred_locations: List[str] = field(default_factory=list)
    remote_work: bool = False
    required_skills: List[str] = field(default_factory=list)
    exclude_keywords: List[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (
            self.preferred_categories
            or self.preferred_locations
            or self.remote_work
            or self.required_skills
            or self.exclude_keywords
        )


def _str_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    # Blank entries would match every listing
    return [str(v).strip().lower() for v in value if v is not None and str(v).strip()]


def parse_preferences(raw: Any) -> Preferences:
    """
    Build Preferences from a JSON string or an already-decoded mapping.

    Args:
        raw: JSON text, dict, Preferences, or None

    Returns:
        Preferences; empty when raw is missing or malformed
    """
    if isinstance(raw, Preferences):
        return raw
    if raw is None or raw == "":
        return Preferences()
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.debug("Ignoring malformed preferences", error=str(e))
            return Preferences()
    if not isinstance(raw, Mapping):
        logger.debug("Ignoring non-object preferences", type=type(raw).__name__)
        return Preferences()

    return Preferences(
        preferred_categories=_str_list(raw.get("preferredCategories")),
        preferred_locations=_str_list(raw.get("preferredLocations")),
        remote_work=bool(raw.get("remoteWork")),
        required_skills=_str_list(raw.get("requiredSkills")),
        exclude_keywords=_str_list(raw.get("excludeKeywords")),
    )


def preference_multiplier(title: str, location: str, prefs: Preferences) -> Tuple[float, List[str]]:
    """
    Compute the multiplicative preference boost for one listing.

    Args:
        title: Listing title (any case)
        location: Listing location (any case)
        prefs: Parsed preferences

    Returns:
        Tuple of (multiplier, reasons) where reasons lists each rule that fired
    """
    if prefs.is_empty():
        return 1.0, []

    title = (title or "").lower()
    loc = (location or "").lower()
    boost = 1.0
    reasons: List[str] = []

    if prefs.preferred_categories:
        hit = any(
            keyword in title
            for c in prefs.preferred_categories
            for keyword in category_keywords(c)
        )
        if hit:
            boost *= CATEGORY_BOOST
            reasons.append("Preference: category match")

    if prefs.preferred_locations and any(l in loc for l in prefs.preferred_locations):
        boost *= LOCATION_BOOST
        reasons.append("Preference: location match")

    if prefs.remote_work and "remote" in loc:
        boost *= REMOTE_BOOST
        reasons.append("Preference: remote")

    if prefs.required_skills and any(s in title for s in prefs.required_skills):
        boost *= SKILL_BOOST
        reasons.append("Preference: skill match")

    if prefs.exclude_keywords and any(k in title for k in prefs.exclude_keywords):
        boost *= EXCLUDE_PENALTY
        reasons.append("Excluded keyword present")

    return boost, reasons
