"""Similarity - Phase 4 of the Problem Analyzer.

Weighted similarity between problems:

    score = 0.40 x archetype + 0.35 x Jaccard(deviations) + 0.25 x Jaccard(keywords)

Archetype similarity is 1.0 for identical codes, 0.5 for codes sharing a
leading letter and 0 otherwise. Sets are deduplicated and normalised
before comparison.
"""

import logging
from typing import Iterable, Iterator, Optional, Union

from pydantic import ValidationError

from knowledge_base.loader import normalize_code
from knowledge_base.schema import Problem

from .config import SimilarityConfig, get_config
from .schema import (
    ProblemFeatures,
    SimilarityBreakdown,
    SimilarityResult,
    SimilarProblem,
)

ProblemLike = Union[Problem, dict]

logger = logging.getLogger(__name__)


def as_problem(problem: ProblemLike) -> Problem:
    """Accept a Problem or a loosely shaped record."""
    if isinstance(problem, Problem):
        return problem
    return Problem.from_record(problem)


def iter_problems(corpus: Iterable[ProblemLike]) -> Iterator[Problem]:
    """Yield corpus entries as problems, skipping malformed records."""
    for record in corpus:
        if not isinstance(record, (Problem, dict)):
            logger.warning("Skipping malformed problem record of type %s", type(record).__name__)
            continue
        try:
            yield as_problem(record)
        except ValidationError as e:
            logger.warning("Skipping malformed problem %s: %s", record.get("id"), e.errors()[0].get("msg"))


def _dedupe(values: Iterable[str]) -> list[str]:
    seen = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return seen


def extract_features(problem: ProblemLike) -> ProblemFeatures:
    """Normalised archetype, deviation codes and keywords of a problem."""
    problem = as_problem(problem)
    return ProblemFeatures(
        archetype=normalize_code(problem.archetype),
        deviations=_dedupe(str(d).strip().upper() for d in problem.deviations),
        keywords=_dedupe(str(k).strip().lower() for k in problem.keywords),
    )


def jaccard_similarity(a: Iterable[str], b: Iterable[str]) -> float:
    """|A ∩ B| / |A ∪ B|, or 0 when both sets are empty."""
    set_a, set_b = set(a), set(b)
    union = set_a | set_b
    if not union:
        return 0.0
    return len(set_a & set_b) / len(union)


def archetype_similarity(a: Optional[str], b: Optional[str], same_tier_score: float = 0.5) -> float:
    a, b = normalize_code(a), normalize_code(b)
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0
    if a[0] == b[0]:
        return same_tier_score
    return 0.0


class SimilarityMatcher:
    """Compares problems and searches a corpus for the closest matches."""

    def __init__(self, config: Optional[SimilarityConfig] = None):
        self.config = config or get_config().similarity

    def calculate_similarity(self, problem1: ProblemLike, problem2: ProblemLike) -> SimilarityResult:
        """Weighted similarity of two problems, in [0, 1] rounded to 4 places."""
        f1 = extract_features(problem1)
        f2 = extract_features(problem2)

        breakdown = SimilarityBreakdown(
            archetype=archetype_similarity(f1.archetype, f2.archetype, self.config.same_tier_score),
            deviations=jaccard_similarity(f1.deviations, f2.deviations),
            keywords=jaccard_similarity(f1.keywords, f2.keywords),
        )
        total = (
            breakdown.archetype * self.config.archetype_weight
            + breakdown.deviations * self.config.deviation_weight
            + breakdown.keywords * self.config.keyword_weight
        )
        return SimilarityResult(
            score=min(max(round(total, 4), 0.0), 1.0),
            breakdown=breakdown,
            problem1_features=f1,
            problem2_features=f2,
        )

    def find_similar_problems(
        self,
        target: ProblemLike,
        corpus: Iterable[ProblemLike],
        limit: int = 5,
    ) -> list[SimilarProblem]:
        """Corpus problems most similar to the target, best first.

        The target itself (same id) and zero-similarity problems are excluded.
        """
        target = as_problem(target)
        results = []
        for candidate in iter_problems(corpus):
            if target.id and candidate.id == target.id:
                continue
            similarity = self.calculate_similarity(target, candidate)
            if similarity.score <= 0:
                continue
            results.append(SimilarProblem(
                problem=candidate,
                similarity=similarity.score,
                breakdown=similarity.breakdown,
                explanation=self.generate_explanation(similarity),
            ))

        results.sort(key=lambda r: r.similarity, reverse=True)
        return results[:limit]

    def batch_find_similar(
        self,
        targets: Iterable[ProblemLike],
        corpus: Iterable[ProblemLike],
        limit: int = 5,
    ) -> dict[str, list[SimilarProblem]]:
        """Similar problems for each target, keyed by target id."""
        corpus = list(iter_problems(corpus))
        results = {}
        for index, target in enumerate(targets):
            target = as_problem(target)
            results[target.id or f"target-{index}"] = self.find_similar_problems(target, corpus, limit)
        return results

    def generate_explanation(self, similarity: SimilarityResult) -> list[str]:
        """Human-readable reasons for a similarity score."""
        explanations = []
        f1, f2 = similarity.problem1_features, similarity.problem2_features

        if similarity.breakdown.archetype == 1.0:
            explanations.append(f"Same archetype ({f1.archetype})")
        elif similarity.breakdown.archetype > 0:
            explanations.append(f"Related archetypes ({f1.archetype} and {f2.archetype})")

        shared_devs = [d for d in f1.deviations if d in f2.deviations]
        if shared_devs:
            explanations.append(f"{len(shared_devs)} shared deviations ({', '.join(shared_devs)})")

        shared_keywords = [k for k in f1.keywords if k in f2.keywords]
        if shared_keywords:
            explanations.append(f"{len(shared_keywords)} common keywords")

        return explanations
