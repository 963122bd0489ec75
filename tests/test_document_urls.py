"""Tests for official document link resolution."""

from civic_rag.query.document_urls import resolve_official_url


class TestResolveOfficialUrl:
    """Test the exact, containment and bylaw-number lookups."""

    def test_exact_title(self):
        """Test an exact title match."""
        assert resolve_official_url("Zoning Consolidated Bylaw") == "https://www.terrace.ca/media/3985"

    def test_known_title_contained(self):
        """Test a title that embeds a known name."""
        assert resolve_official_url("Building Bylaw (2023 update)") == "https://www.terrace.ca/media/3959"

    def test_bylaw_number(self):
        """Test falling back to the 4-digit bylaw number."""
        assert resolve_official_url("Bylaw No. 1573 consolidated") == "https://www.terrace.ca/media/3954"

    def test_unknown(self):
        """Test titles with no known link."""
        assert resolve_official_url("Council Meeting Minutes") is None
        assert resolve_official_url("") is None
