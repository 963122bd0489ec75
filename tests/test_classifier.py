"""Tests for keyword topic classification."""

import pytest

from civic_rag.query.classifier import classify


class TestClassify:
    """Test bucket and subcategory selection."""

    @pytest.mark.parametrize(
        "query,category,subcategory",
        [
            ("do I need a dog licence?", "bylaw", "animal_control"),
            ("how much is a business license", "bylaw", "business_licensing"),
            ("zoning for my lot", "bylaw", "zoning"),
            ("when is property tax due", "tax", "property_tax"),
            ("water bill is too high", "tax", "utility_rates"),
            ("swimming lessons for kids", "recreation", "aquatic_programs"),
            ("garbage pickup day", "waste", "waste_collection"),
        ],
    )
    def test_buckets(self, query, category, subcategory):
        """Test representative queries for each bucket."""
        result = classify(query)

        assert result.category == category
        assert result.subcategory == subcategory
        assert result.confidence == 0.9

    def test_bylaw_bucket_wins_over_tax(self):
        """Test that the first matching bucket wins."""
        result = classify("what is the fee for a building permit")

        assert result.category == "bylaw"
        assert result.subcategory == "building_construction"
        assert "permit" in result.matched_keywords

    def test_municipal_bucket(self):
        """Test the lower-confidence municipal bucket."""
        result = classify("city hall email")

        assert result.category == "municipal"
        assert result.subcategory is None
        assert result.confidence == 0.7

    def test_general_default(self):
        """Test queries matching nothing."""
        result = classify("best pizza in town")

        assert result.category == "general"
        assert result.confidence == 0.5
        assert result.matched_keywords == []

    def test_keywords_match_inside_words(self):
        """Test that keywords are plain substrings, so "coffee" hits "fee"."""
        result = classify("best coffee in town")

        assert result.category == "tax"
        assert result.matched_keywords == ["fee"]
