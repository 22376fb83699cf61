"""Parsing of LLM analysis output into StrategicInsight objects.

Claude is asked for JSON, but replies arrive in several shapes:
- a fenced ```json block
- a bare {"insights": [...]} object, sometimes surrounded by prose
- a bare JSON array of insights

Individual insights are coerced leniently: unknown categories fall back to
a default per source, string content becomes the summary and unknown
content keys are dropped.

Refinement replies are free text instead: the refined version is read
from labelled "Title: ... Recommendations:" sections.
"""

import json
import re
import uuid
from typing import Any

from insight_studio.core.logging import get_logger
from insight_studio.schemas.insight import (
    InsightCategory,
    InsightContent,
    InsightContentUpdate,
    InsightSource,
    InsightSourceRef,
    StrategicInsight,
    WebsiteInsightCategory,
)

logger = get_logger(__name__)

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*\n?(.*?)\n?```", re.DOTALL)
_OBJECT = re.compile(r"\{.*\}", re.DOTALL)
_INSIGHTS_ARRAY = re.compile(r'"insights"\s*:\s*(\[.*\])', re.DOTALL)

DEFAULT_CATEGORY = {
    InsightSource.DOCUMENT: InsightCategory.BUSINESS_CHALLENGES,
    InsightSource.WEBSITE: WebsiteInsightCategory.COMPANY_POSITIONING,
}
DEFAULT_TITLE = "Strategic Insight"
DEFAULT_CONFIDENCE = 75
# Parsed insights without an explicit flag need review below this confidence
REVIEW_THRESHOLD = 70

_CONTENT_TEXT_FIELDS = ("summary", "details", "evidence", "impact", "recommendations")


class InsightParseError(ValueError):
    """Raised when no JSON payload can be found in a response."""


def _try_json(text: str) -> Any | None:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return None


def extract_json_payload(text: str) -> Any:
    """Find the JSON payload in an LLM reply.

    Tries, in order: a fenced block, the whole text, the outermost {...}
    span, and finally the array following an "insights" key.

    Raises:
        InsightParseError: If none of them parse.
    """
    candidates: list[str] = []
    fenced = _FENCED_BLOCK.search(text)
    if fenced:
        candidates.append(fenced.group(1))
    candidates.append(text.strip())
    obj = _OBJECT.search(text)
    if obj:
        candidates.append(obj.group(0))

    for candidate in candidates:
        payload = _try_json(candidate)
        if payload is not None:
            return payload

    array = _INSIGHTS_ARRAY.search(text)
    if array:
        payload = _try_json(array.group(1))
        if payload is not None:
            return {"insights": payload}

    logger.warning(
        "Failed to extract JSON from analysis response",
        extra={"response_length": len(text), "response_preview": text[:200]},
    )
    raise InsightParseError("Failed to extract insights from AI response")


def normalize_payload(payload: Any) -> dict[str, Any]:
    """Wrap a bare list as {"insights": [...]}; dicts pass through."""
    if isinstance(payload, list):
        return {"insights": payload}
    if isinstance(payload, dict):
        return payload
    raise InsightParseError(f"Unexpected analysis payload type: {type(payload).__name__}")


def normalize_category(value: Any, source: InsightSource) -> InsightCategory | WebsiteInsightCategory:
    """Map a raw category string onto a known category for the source."""
    raw = str(value or "").strip().lower().replace(" ", "_").replace("-", "_")
    for enum in (InsightCategory, WebsiteInsightCategory):
        try:
            return enum(raw)
        except ValueError:
            continue
    return DEFAULT_CATEGORY[source]


def _coerce_confidence(value: Any) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return DEFAULT_CONFIDENCE
    if 0 < number <= 1:
        number *= 100
    return int(max(0, min(100, round(number))))


def _coerce_sources(value: Any) -> list[InsightSourceRef]:
    if not isinstance(value, list):
        return []
    refs = []
    for item in value:
        if isinstance(item, dict) and item.get("id") and item.get("name"):
            refs.append(
                InsightSourceRef(
                    id=str(item["id"]),
                    name=str(item["name"]),
                    relevance=item.get("relevance"),
                )
            )
    return refs


def _coerce_content(raw: dict[str, Any]) -> InsightContent:
    content = raw.get("content")
    fields: dict[str, Any] = {}

    if isinstance(content, dict):
        for key in _CONTENT_TEXT_FIELDS:
            if content.get(key):
                fields[key] = str(content[key])
        points = content.get("dataPoints") or content.get("data_points") or content.get("points")
        title = content.get("title") or raw.get("title")
        sources = content.get("sources") or raw.get("sources")
    else:
        if isinstance(content, str) and content.strip():
            fields["summary"] = content.strip()
        points = raw.get("dataPoints") or raw.get("points")
        title = raw.get("title")
        sources = raw.get("sources")

    for key in _CONTENT_TEXT_FIELDS:
        if key not in fields and isinstance(raw.get(key), str) and raw[key]:
            fields[key] = raw[key]

    if isinstance(points, list):
        fields["data_points"] = [str(p) for p in points if p]

    return InsightContent(
        title=str(title).strip() if title else DEFAULT_TITLE,
        sources=_coerce_sources(sources),
        **fields,
    )


def coerce_insight(
    raw: dict[str, Any], source: InsightSource, id_prefix: str | None = None
) -> StrategicInsight:
    """Build a StrategicInsight from one loosely-shaped dict."""
    confidence = _coerce_confidence(raw.get("confidence"))
    needs_review = raw.get("needsReview", raw.get("needs_review"))
    raw_id = raw.get("id")
    insight_id = str(raw_id) if raw_id else f"{id_prefix or 'insight'}_{uuid.uuid4().hex[:12]}"

    priority = raw.get("priorityLevel", raw.get("priority_level"))
    return StrategicInsight(
        id=insight_id,
        category=normalize_category(raw.get("category"), source),
        source=source,
        confidence=confidence,
        needs_review=needs_review if isinstance(needs_review, bool) else confidence < REVIEW_THRESHOLD,
        content=_coerce_content(raw),
        priority_level=priority if isinstance(priority, int) else None,
    )


def insights_from_list(items: Any, source: InsightSource) -> list[StrategicInsight]:
    """Coerce every dict in items, skipping anything that is not a dict."""
    if not isinstance(items, list):
        return []
    return [coerce_insight(item, source) for item in items if isinstance(item, dict)]


def insights_from_analysis_results(results: Any) -> list[StrategicInsight]:
    """Convert a raw analysisResults list into document insights with fresh ids."""
    if not isinstance(results, list):
        return []
    insights = []
    for result in results:
        if not isinstance(result, dict):
            continue
        result = {**result, "id": str(uuid.uuid4())}
        result.setdefault("needsReview", True)
        insights.append(coerce_insight(result, InsightSource.DOCUMENT))
    return insights


def parse_insights(text: str, source: InsightSource) -> list[StrategicInsight]:
    """Parse an LLM reply straight into insights."""
    payload = normalize_payload(extract_json_payload(text))
    return insights_from_list(payload.get("insights"), source)


# Labelled sections of a free-text refinement reply; each runs to the next label
_SECTION_LABELS = {
    "title": ("Title",),
    "summary": ("Summary",),
    "details": ("Details",),
    "evidence": ("Supporting Evidence", "Evidence"),
    "impact": ("Business Impact", "Impact"),
    "recommendations": ("Strategic Recommendations", "Recommendations"),
}
_NEXT_LABEL = r"(?=(?:%s):|\Z)" % "|".join(
    label for labels in _SECTION_LABELS.values() for label in labels
)
_REFINED_SECTIONS = tuple(
    (name, re.compile(r"(?:%s):(.+?)%s" % ("|".join(labels), _NEXT_LABEL), re.DOTALL))
    for name, labels in _SECTION_LABELS.items()
)


def extract_refined_sections(text: str, current: InsightContent) -> InsightContentUpdate | None:
    """Pull a refined version of an insight out of a free-text reply.

    Only sections that are present, non-empty and different from the
    current content end up in the update. Returns None when nothing
    changed.
    """
    changes: dict[str, str] = {}
    for name, pattern in _REFINED_SECTIONS:
        match = pattern.search(text)
        if match is None:
            continue
        value = match.group(1).strip()
        if value and value != (getattr(current, name) or ""):
            changes[name] = value

    if not changes:
        return None
    logger.debug("Refined sections extracted", extra={"fields": sorted(changes)})
    return InsightContentUpdate(**changes)
