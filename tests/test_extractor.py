"""Tests for keyword and pattern extraction."""

import pytest

from problem_analyzer.errors import InvalidProblemTextError
from problem_analyzer.extractor import SignalExtractor, ensure_text, find_positions

from conftest import SCENARIO_TEXT


@pytest.fixture
def extractor(kb):
    return SignalExtractor(kb)


class TestEnsureText:
    """Tests for input text handling."""

    def test_none_is_empty(self):
        assert ensure_text(None) == ""

    def test_string_passes_through(self):
        assert ensure_text("bond") == "bond"

    def test_non_string_raises(self):
        with pytest.raises(InvalidProblemTextError, match="got int"):
            ensure_text(42)

    def test_error_is_type_error(self):
        with pytest.raises(TypeError):
            ensure_text(["bond"])


class TestFindPositions:
    def test_all_occurrences(self):
        assert find_positions("debt and more debt", "debt") == [0, 14]

    def test_overlapping(self):
        assert find_positions("aaa", "aa") == [0, 1]

    def test_missing(self):
        assert find_positions("equity", "debt") == []


class TestExtractSignals:
    """Tests for evidence extraction."""

    def test_archetype_keywords(self, extractor):
        evidence = extractor.extract_signals(SCENARIO_TEXT)
        assert evidence.matched_keywords == ["bond", "hazard rate"]

    def test_trigger_hits(self, extractor):
        evidence = extractor.extract_signals(SCENARIO_TEXT)
        triggers = {h.keyword: h for h in evidence.trigger_hits}
        assert set(triggers) == {"hazard rate", "hazard", "amortizing", "principal payments"}
        assert triggers["amortizing"].deviations == ["DEV-1.2.1"]
        assert triggers["hazard"].weight == 2.0

    def test_matching_is_case_insensitive(self, extractor):
        evidence = extractor.extract_signals("The BOND pays a coupon")
        assert evidence.matched_keywords == ["bond"]

    def test_substring_matching(self, extractor):
        evidence = extractor.extract_signals("The debtors meet")
        assert "debt" in evidence.matched_keywords

    def test_keyword_positions(self, extractor):
        evidence = extractor.extract_signals("debt, debt and debt")
        hit = next(h for h in evidence.archetype_hits if h.keyword == "debt")
        assert hit.positions == [0, 6, 15]
        assert hit.archetypes == ["A1", "A4"]

    def test_strong_signal(self, extractor):
        evidence = extractor.extract_signals("Relever the beta and compute the WACC")
        assert len(evidence.strong_signals) == 1
        assert evidence.strong_signals[0].archetype == "A3"

    def test_partial_strong_signal_not_reported(self, extractor):
        assert extractor.extract_signals("Relever the beta").strong_signals == []

    def test_blank_text(self, extractor):
        evidence = extractor.extract_signals("   ")
        assert evidence.is_empty
        assert evidence.text_length == 3

    def test_none_text(self, extractor):
        assert extractor.extract_signals(None).is_empty

    def test_no_signals(self, extractor):
        assert extractor.extract_signals("What is the capital of France?").is_empty


class TestMatchPatterns:
    """Tests for detection pattern matching."""

    def test_patterns_of_requested_deviations_only(self, extractor):
        hits = extractor.match_patterns(SCENARIO_TEXT, ["DEV-1.1.1"])
        assert [h.pattern for h in hits] == ["/hazard\\s+rate/i", "/annual.*hazard/i"]
        assert all(h.deviation_code == "DEV-1.1.1" for h in hits)

    def test_case_sensitive_pattern(self, extractor):
        assert extractor.match_patterns("quoted ytm", ["DEV-9.9.9"]) == []
        assert len(extractor.match_patterns("quoted YTM", ["DEV-9.9.9"])) == 1

    def test_pattern_counts_once(self, extractor):
        hits = extractor.match_patterns("amortizing and amortization", ["DEV-1.2.1"])
        assert len(hits) == 1

    def test_unknown_code(self, extractor):
        assert extractor.match_patterns(SCENARIO_TEXT, ["DEV-0.0.0"]) == []
