"""Tests for filename priority scoring and ordering."""

from dataclasses import dataclass

import pytest

from insight_studio.services.priority import (
    MAX_PRIORITY,
    calculate_document_priority,
    sort_documents_by_priority,
)


@dataclass
class Doc:
    name: str
    priority: int


class TestCalculateDocumentPriority:
    """Tests for calculate_document_priority."""

    def test_no_keywords_scores_zero(self) -> None:
        assert calculate_document_priority("IMG_2024_0001.pdf") == 0

    def test_two_points_per_keyword(self) -> None:
        """Each distinct keyword found adds two points."""
        assert calculate_document_priority("brand.pdf") == 2
        assert calculate_document_priority("market-research.docx") == 4

    def test_case_insensitive(self) -> None:
        assert calculate_document_priority("EXECUTIVE_SUMMARY.PDF") == calculate_document_priority(
            "executive_summary.pdf"
        )

    def test_clamped_to_maximum(self) -> None:
        name = "executive summary strategy market analysis research brief.pdf"
        assert calculate_document_priority(name) == MAX_PRIORITY

    @pytest.mark.parametrize(
        "filename",
        ["", "a.txt", "strategic_competitive_market_analysis_report_plan.pdf"],
    )
    def test_always_within_bounds(self, filename: str) -> None:
        assert 0 <= calculate_document_priority(filename) <= 10


class TestSortDocumentsByPriority:
    """Tests for sort_documents_by_priority."""

    def test_highest_first(self) -> None:
        docs = [Doc("a", 2), Doc("b", 8), Doc("c", 4)]
        assert [d.name for d in sort_documents_by_priority(docs)] == ["b", "c", "a"]

    def test_ties_keep_original_order(self) -> None:
        docs = [Doc("first", 4), Doc("second", 4), Doc("top", 6), Doc("third", 4)]
        assert [d.name for d in sort_documents_by_priority(docs)] == [
            "top",
            "first",
            "second",
            "third",
        ]

    def test_does_not_mutate_input(self) -> None:
        docs = [Doc("a", 0), Doc("b", 10)]
        sort_documents_by_priority(docs)
        assert [d.name for d in docs] == ["a", "b"]
