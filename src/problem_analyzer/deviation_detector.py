"""Deviation Detector - Phase 3 of the Problem Analyzer.

Scores every deviation in the registry against a problem text in four
phases:

1. Keyword: each trigger phrase found adds its weight to the deviations
   it signals.
2. Pattern: detection patterns of the keyword candidates are run against
   the original-case text; each matching pattern adds a fixed bonus.
3. Correlation: with an archetype context, scored deviations related to
   that archetype get a one-off boost.
4. Rank: deviations below the admission score are dropped, the rest are
   sorted by score and bucketed HIGH / MEDIUM / LOW.

Results are memoised by a fingerprint of the text prefix and the
archetype context.
"""

import logging
from typing import Optional

from knowledge_base.loader import KnowledgeBase, normalize_code

from .cache import CacheStats, ResultCache, fingerprint
from .config import AnalyzerConfig, DetectionConfig, get_config
from .extractor import SignalExtractor, ensure_text
from .schema import (
    ConfidenceBucket,
    DetectedDeviation,
    DetectionMetadata,
    DeviationAlert,
    DeviationRanking,
    Severity,
    SolutionStep,
    StepDeviationResult,
    deviation_priority,
)

logger = logging.getLogger(__name__)

EMPTY_TEXT_ERROR = "Invalid problem text: empty"


class DeviationDetector:
    """Detects deviations in problem text and maps them onto solution steps."""

    def __init__(
        self,
        kb: KnowledgeBase,
        config: Optional[AnalyzerConfig] = None,
        cache: Optional[ResultCache] = None,
        extractor: Optional[SignalExtractor] = None,
    ):
        self.kb = kb
        config = config or get_config()
        self.config: DetectionConfig = config.detection
        self.extractor = extractor or SignalExtractor(kb)
        if cache is None and config.cache.enable_cache:
            cache = ResultCache(max_entries=config.cache.cache_max_entries)
        self.cache = cache

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    def detect(self, text: Optional[str], archetype_context: Optional[str] = None) -> DeviationRanking:
        """Detect deviations in a problem text.

        Args:
            text: Problem statement. None or blank text yields an empty result.
            archetype_context: Primary archetype code, enabling the correlation boost.

        Returns:
            DeviationRanking with deviations sorted by score (highest first).

        Raises:
            InvalidProblemTextError: If text is not a string.
        """
        text = ensure_text(text)
        context = normalize_code(archetype_context) or None

        if not text.strip():
            return DeviationRanking(metadata=DetectionMetadata(
                problem_length=len(text),
                archetype_context=context,
                error=EMPTY_TEXT_ERROR,
            ))

        key = None
        if self.cache is not None:
            key = fingerprint(text[:self.config.cache_key_prefix_chars], context)
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug("Deviation cache hit for context %s", context)
                return cached

        result = self._run_phases(text, context)

        if self.cache is not None:
            self.cache.put(key, result)
        return result

    def _run_phases(self, text: str, context: Optional[str]) -> DeviationRanking:
        scores: dict[str, float] = {}
        matched_keywords: dict[str, list[str]] = {}
        pattern_counts: dict[str, int] = {}

        # Phase 1: keywords
        trigger_hits = self.extractor.match_triggers(text.lower())
        for hit in trigger_hits:
            for code in hit.deviations:
                scores[code] = scores.get(code, 0.0) + hit.weight
                matched_keywords.setdefault(code, []).append(hit.keyword)

        # Phase 2: patterns, only for keyword candidates unless configured otherwise
        if self.config.evaluate_patterns_without_keywords:
            candidates = [d.code for d in self.kb.deviations]
        else:
            candidates = list(scores)
        pattern_hits = self.extractor.match_patterns(text, candidates)
        for hit in pattern_hits:
            code = hit.deviation_code
            scores[code] = scores.get(code, 0.0) + self.config.pattern_match_bonus
            pattern_counts[code] = pattern_counts.get(code, 0) + 1

        # Phase 3: archetype correlation
        if context:
            for code in self.kb.archetype_index.get(context, []):
                if code in scores:
                    scores[code] += self.config.archetype_correlation_boost

        # Phase 4: rank
        detected = []
        for code, score in scores.items():
            if score < self.config.min_admission_score:
                continue
            dev = self.kb.get_deviation(code)
            if dev is None:
                continue
            detected.append(DetectedDeviation(
                code=dev.code,
                name=dev.name,
                description=dev.description,
                category=dev.category,
                score=score,
                confidence=self.confidence_bucket(score),
                severity=dev.severity,
                time_impact_minutes=dev.time_impact_minutes,
                checkpoints=list(dev.checkpoints),
                common_errors=list(dev.common_errors),
                formula_hints=list(dev.formula_hints),
                related_archetypes=[normalize_code(a) for a in dev.related_archetypes],
                matched_keywords=matched_keywords.get(code, []),
                matched_patterns=pattern_counts.get(code, 0),
            ))
        detected.sort(key=lambda d: (-d.score, self.kb.deviation_order(d.code)))

        logger.debug(
            "Deviation scan: %d keywords, %d patterns, %d candidates, %d detected",
            len(trigger_hits), len(pattern_hits), len(candidates), len(detected),
        )

        return DeviationRanking(
            deviations=detected,
            metadata=DetectionMetadata(
                keywords_found=len(trigger_hits),
                patterns_matched=len(pattern_hits),
                candidates_evaluated=len(candidates),
                top_score=detected[0].score if detected else 0.0,
                overall_confidence=detected[0].confidence if detected else ConfidenceBucket.NONE,
                problem_length=len(text),
                archetype_context=context,
            ),
        )

    def confidence_bucket(self, score: float) -> ConfidenceBucket:
        if score >= self.config.high_confidence_score:
            return ConfidenceBucket.HIGH
        if score >= self.config.medium_confidence_score:
            return ConfidenceBucket.MEDIUM
        return ConfidenceBucket.LOW

    # ------------------------------------------------------------------
    # Solution steps
    # ------------------------------------------------------------------

    def map_deviations_to_steps(
        self,
        deviations: list[DetectedDeviation],
        steps: list[SolutionStep],
    ) -> list[SolutionStep]:
        """Attach the most relevant deviation alert to each solution step.

        Each step's text is scanned on its own; among the given deviations
        that are also found in the step, the one with the highest confidence
        bucket (then score, then input order) becomes the step's alert.
        Steps with no applicable deviation are returned unchanged.
        """
        if not deviations:
            return list(steps)

        mapped = []
        for step in steps:
            step_codes = set(self.detect(step.combined_text()).codes)
            applicable = [d for d in deviations if d.code in step_codes]
            if not applicable:
                mapped.append(step)
                continue
            primary = max(applicable, key=deviation_priority)
            mapped.append(step.model_copy(update={"deviation_alert": self.build_alert(primary)}))
        return mapped

    def build_alert(self, deviation: DetectedDeviation) -> DeviationAlert:
        return DeviationAlert(
            code=deviation.code,
            name=deviation.name,
            warning=f"This step requires {deviation.name} approach",
            explanation=deviation.description,
            checkpoints=list(deviation.checkpoints),
            time_impact_minutes=deviation.time_impact_minutes,
            severity=self.alert_severity(deviation),
            confidence=deviation.confidence,
        )

    def alert_severity(self, deviation: DetectedDeviation) -> Severity:
        """Severity of a step alert, derived from detection confidence and score."""
        if deviation.confidence == ConfidenceBucket.HIGH:
            if deviation.score >= self.config.critical_severity_score:
                return Severity.CRITICAL
            return Severity.HIGH
        if deviation.confidence == ConfidenceBucket.MEDIUM:
            return Severity.MEDIUM
        return Severity.LOW

    def detect_at_step(self, step_text: str, step_number: int, problem_text: str) -> StepDeviationResult:
        """Deviation to apply at one step, falling back to the whole problem.

        The step's own top deviation is used unless it is only LOW
        confidence; otherwise the problem's top deviation is used when it
        is HIGH confidence.
        """
        step_scan = self.detect(step_text)
        problem_scan = self.detect(problem_text)

        applicable = None
        if step_scan.top and step_scan.top.confidence != ConfidenceBucket.LOW:
            applicable = step_scan.top
        elif problem_scan.top and problem_scan.top.confidence == ConfidenceBucket.HIGH:
            applicable = problem_scan.top

        return StepDeviationResult(
            step_number=step_number,
            deviation=applicable,
            step_confidence=step_scan.metadata.overall_confidence,
            problem_confidence=problem_scan.metadata.overall_confidence,
            recommendation=(
                f"Apply {applicable.name} approach" if applicable else "Use standard approach"
            ),
        )

    # ------------------------------------------------------------------
    # Cache management
    # ------------------------------------------------------------------

    def clear_cache(self) -> None:
        if self.cache is not None:
            self.cache.clear()

    def cache_stats(self) -> Optional[CacheStats]:
        return self.cache.stats() if self.cache is not None else None
