"""Document priority scoring.

Scores a document 0-10 from business-relevance keywords in its filename.
The score only orders documents for display and for the analysis prompt.
"""

from collections.abc import Sequence
from typing import Protocol, TypeVar

PRIORITY_KEYWORDS = (
    "executive",
    "summary",
    "strategy",
    "strategic",
    "competitive",
    "market",
    "analysis",
    "research",
    "brief",
    "proposal",
    "roadmap",
    "plan",
    "report",
    "insight",
    "overview",
    "audience",
    "brand",
    "business",
    "growth",
    "forecast",
)

POINTS_PER_KEYWORD = 2
MIN_PRIORITY = 0
MAX_PRIORITY = 10


class _Prioritized(Protocol):
    priority: int


T = TypeVar("T", bound=_Prioritized)


def calculate_document_priority(filename: str) -> int:
    """Score a filename: +2 per keyword it contains, clamped to [0, 10]."""
    name = filename.lower()
    score = sum(POINTS_PER_KEYWORD for keyword in PRIORITY_KEYWORDS if keyword in name)
    return max(MIN_PRIORITY, min(MAX_PRIORITY, score))


def sort_documents_by_priority(documents: Sequence[T]) -> list[T]:
    """Highest priority first; ties keep their original order."""
    return sorted(documents, key=lambda doc: doc.priority or 0, reverse=True)
