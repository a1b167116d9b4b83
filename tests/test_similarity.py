"""Tests for problem similarity and corpus statistics."""

import logging

import pytest

from problem_analyzer.config import SimilarityConfig
from problem_analyzer.corpus import (
    deviation_statistics,
    find_by_deviation_pattern,
    group_by_deviation_pattern,
)
from problem_analyzer.schema import Problem
from problem_analyzer.similarity import (
    SimilarityMatcher,
    archetype_similarity,
    extract_features,
    jaccard_similarity,
)


@pytest.fixture
def matcher():
    return SimilarityMatcher(SimilarityConfig())


def problem(id, archetype, deviations=(), keywords=()):
    return Problem(id=id, archetype=archetype, deviations=list(deviations), keywords=list(keywords))


class TestComponents:
    """Tests for the individual similarity components."""

    def test_jaccard(self):
        assert jaccard_similarity({"a", "b"}, {"b", "c"}) == pytest.approx(1 / 3)

    def test_jaccard_symmetric(self):
        a, b = ["x", "y", "z"], ["y"]
        assert jaccard_similarity(a, b) == jaccard_similarity(b, a)

    def test_jaccard_empty_sets(self):
        assert jaccard_similarity([], []) == 0.0

    def test_jaccard_identical(self):
        assert jaccard_similarity(["a"], ["a"]) == 1.0

    @pytest.mark.parametrize("a,b,expected", [
        ("A1", "A1", 1.0),
        ("A1", "a1-CapitalStructure", 1.0),
        ("A2A", "A2B", 0.5),
        ("A1", "B1", 0.0),
        ("", "A1", 0.0),
    ])
    def test_archetype_similarity(self, a, b, expected):
        assert archetype_similarity(a, b) == expected

    def test_features_normalized_and_deduplicated(self):
        features = extract_features({
            "archetype": "a1",
            "deviations": ["dev-1.1.1", "DEV-1.1.1 "],
            "keywords": ["Debt", "debt", "Hazard"],
        })
        assert features.archetype == "A1"
        assert features.deviations == ["DEV-1.1.1"]
        assert features.keywords == ["debt", "hazard"]


    def test_non_string_codes_ignored(self):
        features = extract_features({
            "archetype": "A1",
            "deviations": [{"code": "DEV-1.1.1"}, 5],
            "keywords": [None, 3, "Debt"],
        })
        assert features.deviations == []
        assert features.keywords == ["debt"]


class TestCalculateSimilarity:
    """Tests for the weighted similarity score."""

    def test_weighted_score(self, matcher):
        target = problem("T", "A1", ["DEV-1.1.1", "DEV-1.2.1"], ["debt", "tax shield", "hazard"])
        comp = problem("C", "A1", ["DEV-1.1.1"], ["debt", "hazard"])
        result = matcher.calculate_similarity(target, comp)
        assert result.score == 0.7417
        assert result.breakdown.archetype == 1.0
        assert result.breakdown.deviations == 0.5
        assert result.breakdown.keywords == pytest.approx(2 / 3)

    def test_symmetric(self, matcher):
        a = problem("a", "A2A", ["DEV-2.1.1"], ["debt"])
        b = problem("b", "A2B", ["DEV-2.1.1", "DEV-3.1.1"], ["debt", "pooling"])
        assert matcher.calculate_similarity(a, b).score == matcher.calculate_similarity(b, a).score

    def test_identical(self, matcher):
        a = problem("a", "A1", ["DEV-1.1.1"], ["bond"])
        assert matcher.calculate_similarity(a, a).score == 1.0

    def test_empty_problems(self, matcher):
        assert matcher.calculate_similarity(problem("a", ""), problem("b", "")).score == 0.0

    def test_accepts_records(self, matcher):
        result = matcher.calculate_similarity(
            {"archetype": "A1", "metadata": {"deviations": ["DEV-1.1.1"]}},
            {"archetype": "A1", "deviation": "DEV-1.1.1"},
        )
        assert result.score == 0.75

    def test_custom_weights(self):
        matcher = SimilarityMatcher(SimilarityConfig(archetype_weight=1.0, deviation_weight=0, keyword_weight=0))
        assert matcher.calculate_similarity(problem("a", "A1"), problem("b", "A3")).score == 0.5


class TestFindSimilar:
    """Tests for corpus search."""

    def test_ranked_best_first(self, matcher, kb):
        target = problem("T", "A1", ["DEV-1.1.1"], ["hazard rate", "bond"])
        results = matcher.find_similar_problems(target, kb.problems)
        assert [r.problem.id for r in results] == ["P-1", "P-2", "P-3"]
        assert results[0].similarity == 1.0
        assert results[1].similarity == 0.2

    def test_explanation(self, matcher, kb):
        target = problem("T", "A1", ["DEV-1.1.1"], ["hazard rate", "bond"])
        results = matcher.find_similar_problems(target, kb.problems)
        assert results[0].explanation == [
            "Same archetype (A1)",
            "1 shared deviations (DEV-1.1.1)",
            "2 common keywords",
        ]
        assert results[1].explanation == ["Related archetypes (A1 and A3)"]

    def test_target_excluded(self, matcher, kb):
        results = matcher.find_similar_problems(kb.get_problem("P-1"), kb.problems)
        assert "P-1" not in [r.problem.id for r in results]

    def test_zero_similarity_excluded(self, matcher, kb):
        assert matcher.find_similar_problems(problem("T", "B1"), kb.problems) == []

    def test_limit(self, matcher, kb):
        target = problem("T", "A1")
        assert len(matcher.find_similar_problems(target, kb.problems, limit=2)) == 2

    def test_loose_records_recovered(self, matcher):
        target = problem("T", "A1", ["DEV-1.1.1"], ["bond"])
        corpus = [
            {"id": 7, "archetype": "A1", "deviations": ["DEV-1.1.1"], "keywords": ["bond"]},
            {"id": "n", "archetype": "A1", "problem_text": None, "keywords": ["bond"]},
        ]
        results = matcher.find_similar_problems(target, corpus)
        assert [r.problem.id for r in results] == ["7", "n"]
        assert [r.similarity for r in results] == [1.0, 0.65]

    def test_invalid_records_skipped(self, matcher, caplog):
        corpus = ["not a problem", {"id": "bad", "archetype": "A1", "problem_text": 5}, problem("ok", "A1")]
        with caplog.at_level(logging.WARNING):
            results = matcher.find_similar_problems(problem("T", "A1"), corpus)
        assert [r.problem.id for r in results] == ["ok"]
        assert "Skipping malformed problem bad" in caplog.text
        assert "Skipping malformed problem record of type str" in caplog.text

    def test_batch(self, matcher, kb):
        results = matcher.batch_find_similar(kb.problems, kb.problems, limit=1)
        assert set(results) == {"P-1", "P-2", "P-3"}
        assert all(len(r) == 1 for r in results.values())


@pytest.fixture
def corpus():
    return [
        problem("a", "A1", ["DEV-1.1.1", "DEV-1.2.1"]),
        problem("b", "A1", ["DEV-1.2.1", "DEV-1.1.1"]),
        problem("c", "A1", ["DEV-1.1.1"]),
        problem("d", "A3"),
    ]


class TestCorpusStatistics:
    """Tests for deviation grouping and frequencies."""

    def test_grouping(self, corpus):
        result = group_by_deviation_pattern(corpus)
        assert [g.deviation_codes for g in result.groups] == [["DEV-1.1.1", "DEV-1.2.1"], ["DEV-1.1.1"]]
        assert [p.id for p in result.groups[0].problems] == ["a", "b"]
        assert [p.id for p in result.ungrouped] == ["d"]
        assert result.total_problems == 4
        assert result.largest_group == 2

    def test_find_containing(self, corpus):
        assert [p.id for p in find_by_deviation_pattern(corpus, ["dev-1.1.1"])] == ["a", "b", "c"]

    def test_find_exact(self, corpus):
        assert [p.id for p in find_by_deviation_pattern(corpus, ["DEV-1.1.1"], exact=True)] == ["c"]

    def test_statistics(self, corpus):
        stats = deviation_statistics(corpus)
        assert stats.total_problems == 4
        assert [(c.deviations, c.count, c.percentage) for c in stats.frequency] == [
            (["DEV-1.1.1"], 3, 75.0),
            (["DEV-1.2.1"], 2, 50.0),
        ]
        assert stats.top_cooccurrences[0].deviations == ["DEV-1.1.1", "DEV-1.2.1"]
        assert stats.top_cooccurrences[0].count == 2
        assert stats.average_per_problem == 1.25
        assert stats.unique_deviations == 2

    def test_invalid_records_skipped(self, corpus):
        corpus.append({"id": "bad", "archetype": "A1", "deviations": ["DEV-1.1.1"], "problem_text": 5})
        assert group_by_deviation_pattern(corpus).total_problems == 4
        assert deviation_statistics(corpus).total_problems == 4
        assert [p.id for p in find_by_deviation_pattern(corpus, ["DEV-1.1.1"], exact=True)] == ["c"]

    def test_empty_corpus(self):
        stats = deviation_statistics([])
        assert stats.total_problems == 0
        assert stats.average_per_problem == 0.0
