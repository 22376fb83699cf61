"""Slide outline from reviewed insights.

Only accepted insights make it into the outline. Slides are grouped by
category: key narratives open the deck, strategic recommendations close
it, and every other category keeps its declaration order in between.
"""

from collections.abc import Sequence

from insight_studio.schemas.insight import (
    InsightCategory,
    StrategicInsight,
    WebsiteInsightCategory,
)
from insight_studio.schemas.presentation import PresentationOutline, PresentationSlide

_OPENING = InsightCategory.KEY_NARRATIVES.value
_CLOSING = InsightCategory.STRATEGIC_RECOMMENDATIONS.value

CATEGORY_ORDER: list[str] = (
    [_OPENING]
    + [
        c.value
        for c in (*InsightCategory, *WebsiteInsightCategory)
        if c.value not in (_OPENING, _CLOSING)
    ]
    + [_CLOSING]
)


def category_title(category: str) -> str:
    return category.replace("_", " ").title()


def build_outline(
    project_id: str, project_title: str, accepted: Sequence[StrategicInsight]
) -> PresentationOutline:
    """Group accepted insights into ordered slides; empty categories are skipped."""
    grouped: dict[str, list[StrategicInsight]] = {}
    for insight in accepted:
        grouped.setdefault(insight.category.value, []).append(insight)

    slides: list[PresentationSlide] = []
    for category in CATEGORY_ORDER:
        insights = grouped.get(category)
        if not insights:
            continue
        slides.append(
            PresentationSlide(
                position=len(slides) + 1,
                category=category,
                title=category_title(category),
                bullets=[i.title for i in insights],
                insight_ids=[i.id for i in insights],
            )
        )

    return PresentationOutline(
        project_id=project_id,
        title=project_title,
        slides=slides,
        insight_count=len(accepted),
    )
