"""Tests for deterministic fallback insight generation."""

from collections import Counter
from dataclasses import dataclass

from insight_studio.schemas.insight import (
    InsightCategory,
    InsightSource,
    WebsiteInsightCategory,
)
from insight_studio.services.fallback_insights import (
    FALLBACK_ID_PREFIX,
    REVIEW_CONFIDENCE_THRESHOLD,
    generate_document_fallback,
    generate_website_fallback,
    is_fallback_insight,
)


@dataclass
class Doc:
    id: str
    name: str


DOCS = [Doc(f"doc-{i}", f"file-{i}.pdf") for i in range(5)]


class TestDocumentFallback:
    """Tests for generate_document_fallback."""

    def test_two_or_three_per_category(self) -> None:
        insights = generate_document_fallback("p1", "retail", DOCS)

        counts = Counter(i.category for i in insights)

        assert set(counts) == set(InsightCategory)
        assert all(2 <= n <= 3 for n in counts.values())
        assert 12 <= len(insights) <= 18

    def test_deterministic_per_project_and_industry(self) -> None:
        first = generate_document_fallback("p1", "finance", DOCS)
        second = generate_document_fallback("p1", "finance", DOCS)

        assert [i.model_dump() for i in first] == [i.model_dump() for i in second]

    def test_different_project_changes_ids(self) -> None:
        a = generate_document_fallback("p1", "finance")
        b = generate_document_fallback("p2", "finance")

        assert {i.id for i in a}.isdisjoint({i.id for i in b})

    def test_confidence_and_review_flag(self) -> None:
        for insight in generate_document_fallback("p1", "technology", DOCS):
            assert 70 <= insight.confidence <= 99
            assert insight.needs_review == (insight.confidence < REVIEW_CONFIDENCE_THRESHOLD)

    def test_ids_prefixed_and_unique(self) -> None:
        insights = generate_document_fallback("p1", "entertainment", DOCS)

        assert all(i.id.startswith(FALLBACK_ID_PREFIX) for i in insights)
        assert all(is_fallback_insight(i) for i in insights)
        assert len({i.id for i in insights}) == len(insights)

    def test_sources_reference_first_three_documents(self) -> None:
        insight = generate_document_fallback("p1", "retail", DOCS)[0]

        assert [s.id for s in insight.content.sources] == ["doc-0", "doc-1", "doc-2"]

    def test_unknown_industry_uses_generic_template(self) -> None:
        insights = generate_document_fallback("p1", "Aerospace")

        assert all(i.source == InsightSource.DOCUMENT for i in insights)
        assert any("aerospace" in i.title for i in insights)

    def test_titles_are_non_empty(self) -> None:
        assert all(i.title for i in generate_document_fallback("p1", "retail"))


class TestWebsiteFallback:
    """Tests for generate_website_fallback."""

    def test_six_insights_for_generic_industry(self) -> None:
        insights = generate_website_fallback("p1", "retail", "Acme", "https://acme.com")

        assert len(insights) == 6
        assert all(i.source == InsightSource.WEBSITE for i in insights)
        assert all(isinstance(i.category, WebsiteInsightCategory) for i in insights)

    def test_extra_insight_for_technology(self) -> None:
        assert len(generate_website_fallback("p1", "technology", "Acme")) == 7

    def test_extra_insight_for_finance_and_banking(self) -> None:
        assert len(generate_website_fallback("p1", "finance", "Acme")) == 7
        assert len(generate_website_fallback("p1", "banking", "Acme")) == 7

    def test_client_name_in_content(self) -> None:
        insights = generate_website_fallback("p1", "retail", "Acme")
        assert "Acme" in insights[0].title

    def test_all_need_review(self) -> None:
        assert all(i.needs_review for i in generate_website_fallback("p1", "retail"))

    def test_deterministic_ids(self) -> None:
        a = generate_website_fallback("p1", "retail", "Acme")
        b = generate_website_fallback("p1", "retail", "Acme")
        assert [i.id for i in a] == [i.id for i in b]
