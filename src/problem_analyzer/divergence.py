"""Divergence analysis between a target problem and its closest comparable.

Finds the most similar corpus problem and, when it clears the similarity
threshold, explains how the target differs and how to adapt the
comparable's solution.
"""

import logging
from typing import Iterable, Optional

from knowledge_base.loader import KnowledgeBase

from .config import SimilarityConfig, get_config
from .guidance import infer_comp_approach
from .schema import (
    AdaptationGuidance,
    DivergenceAnalysis,
    DivergenceReport,
    GuidanceType,
    Problem,
    ProblemFeatures,
    Severity,
    SimilarityResult,
)
from .similarity import ProblemLike, SimilarityMatcher, as_problem, iter_problems

logger = logging.getLogger(__name__)


class DivergenceAnalyzer:
    """Compares a target problem against a corpus of worked problems."""

    def __init__(
        self,
        kb: KnowledgeBase,
        config: Optional[SimilarityConfig] = None,
        matcher: Optional[SimilarityMatcher] = None,
    ):
        self.kb = kb
        self.config = config or get_config().similarity
        self.matcher = matcher or SimilarityMatcher(self.config)

    def find_closest_with_divergence(
        self,
        target: ProblemLike,
        corpus: Iterable[ProblemLike],
        threshold: Optional[float] = None,
    ) -> DivergenceReport:
        """Closest comparable problem and the divergence from it.

        A comparable is only reported when its score is strictly above the
        threshold; otherwise the best score is still returned.
        """
        threshold = self.config.similarity_threshold if threshold is None else threshold
        target = as_problem(target)

        best: Optional[Problem] = None
        best_result: Optional[SimilarityResult] = None
        for candidate in iter_problems(corpus):
            if target.id and candidate.id == target.id:
                continue
            result = self.matcher.calculate_similarity(target, candidate)
            if best_result is None or result.score > best_result.score:
                best, best_result = candidate, result

        if best_result is None:
            return DivergenceReport(threshold=threshold, message="No comparable problems available")

        if best_result.score <= threshold:
            logger.debug(
                "Closest problem %s scored %.4f, not above threshold %.2f",
                best.id, best_result.score, threshold,
            )
            return DivergenceReport(
                has_comp=False,
                similarity_score=best_result.score,
                similarity_breakdown=best_result.breakdown,
                threshold=threshold,
                message=f"No comparable problem above similarity threshold {threshold:g}",
            )

        analysis = self.analyze_divergence(best_result.problem1_features, best_result.problem2_features)
        comp_approach = infer_comp_approach(best.archetype)
        return DivergenceReport(
            has_comp=True,
            closest_comp=best,
            similarity_score=best_result.score,
            similarity_breakdown=best_result.breakdown,
            threshold=threshold,
            divergence_analysis=analysis,
            adaptation_guidance=self.generate_adaptation_guidance(analysis, comp_approach),
            comp_approach=comp_approach,
        )

    def analyze_divergence(self, target: ProblemFeatures, comp: ProblemFeatures) -> DivergenceAnalysis:
        """Set differences between target and comparable features."""
        return DivergenceAnalysis(
            additional_deviations=[d for d in target.deviations if d not in comp.deviations],
            missing_deviations=[d for d in comp.deviations if d not in target.deviations],
            additional_concepts=[k for k in target.keywords if k not in comp.keywords],
        )

    def generate_adaptation_guidance(
        self,
        analysis: DivergenceAnalysis,
        comp_approach: str,
    ) -> list[AdaptationGuidance]:
        """Adaptation steps for each divergence, most severe first."""
        guidance = []

        for code in analysis.additional_deviations:
            dev = self.kb.get_deviation(code)
            name = dev.name if dev and dev.name else code
            steps = [f"Start from the comparable approach: {comp_approach}"]
            if dev:
                steps.extend(f"Checkpoint: {c}" for c in dev.checkpoints)
                steps.extend(f"Formula: {f}" for f in dev.formula_hints)
                steps.extend(f"Avoid: {e}" for e in dev.common_errors)
            else:
                steps.append(f"Adjust the solution for {code}")
            guidance.append(AdaptationGuidance(
                type=GuidanceType.ADDITIONAL_COMPLEXITY,
                code=code,
                title=f"Additional complexity: {name}",
                description=(
                    f"The target problem involves {name} ({code}), which the comparable does not."
                    + (f" {dev.description}" if dev and dev.description else "")
                ),
                adaptation_steps=steps,
                time_impact_minutes=dev.time_impact_minutes if dev else 0.0,
                severity=dev.severity if dev else Severity.MEDIUM,
            ))

        for code in analysis.missing_deviations:
            dev = self.kb.get_deviation(code)
            name = dev.name if dev and dev.name else code
            guidance.append(AdaptationGuidance(
                type=GuidanceType.SIMPLIFICATION,
                code=code,
                title=f"Simpler than comparable: no {name}",
                description=(
                    f"The comparable handles {name} ({code}), which the target problem does not need."
                ),
                adaptation_steps=[
                    f"Start from the comparable approach: {comp_approach}",
                    f"Skip the {name} adjustment",
                    "Apply the standard treatment in its place",
                ],
                time_impact_minutes=dev.time_impact_minutes if dev else 0.0,
                severity=dev.severity if dev else Severity.MEDIUM,
            ))

        if analysis.additional_concepts:
            concepts = ", ".join(analysis.additional_concepts)
            guidance.append(AdaptationGuidance(
                type=GuidanceType.CONCEPTUAL_EXTENSION,
                title=f"New concepts: {concepts}",
                description=f"The target problem introduces concepts not covered by the comparable: {concepts}.",
                adaptation_steps=[
                    f"Start from the comparable approach: {comp_approach}",
                    f"Identify where {concepts} enter the calculation",
                    "Extend the comparable's steps to cover them",
                ],
                time_impact_minutes=0.0,
                severity=Severity.MEDIUM,
            ))

        guidance.sort(key=lambda g: g.severity.rank, reverse=True)
        return guidance
