"""Problem Analysis Engine.

Orchestrates the analysis pipeline:

1. Extract keyword and pattern signals
2. Rank archetypes
3. Detect deviations (with the primary archetype as context)
4. Find similar worked examples and the closest comparable
5. Build the report

Reports are cached by a fingerprint of the full text and the report options.
"""

import logging
import time
from typing import Iterable, Optional

from knowledge_base.loader import KnowledgeBase, load_knowledge_base
from knowledge_base.schema import Archetype

from .archetype_scorer import ArchetypeScorer
from .cache import CacheStats, ResultCache, fingerprint
from .config import AnalyzerConfig, ReportConfig, get_config
from .deviation_detector import DeviationDetector
from .divergence import DivergenceAnalyzer
from .extractor import SignalExtractor, ensure_text
from .report import ReportBuilder
from .schema import (
    AnalysisReport,
    ArchetypeRanking,
    DetectedDeviation,
    DeviationRanking,
    DeviationSummary,
    DivergenceReport,
    Problem,
    ReportMetadata,
    SimilarProblem,
    SolutionStep,
)
from .similarity import ProblemLike, SimilarityMatcher

logger = logging.getLogger(__name__)

EMPTY_TEXT_MESSAGE = "Problem text is empty"


class ProblemAnalysisEngine:
    """Main entry point for analyzing exam problems."""

    def __init__(
        self,
        kb: Optional[KnowledgeBase] = None,
        config: Optional[AnalyzerConfig] = None,
    ):
        self.kb = kb if kb is not None else load_knowledge_base()
        self.config = config or get_config()

        self.extractor = SignalExtractor(self.kb)
        self.archetype_scorer = ArchetypeScorer(self.kb, self.config.archetypes)
        self.deviation_detector = DeviationDetector(self.kb, self.config, extractor=self.extractor)
        self.matcher = SimilarityMatcher(self.config.similarity)
        self.divergence = DivergenceAnalyzer(self.kb, self.config.similarity, self.matcher)
        self.report_builder = ReportBuilder(self.kb)

        cache_config = self.config.cache
        self._report_cache: Optional[ResultCache] = None
        if cache_config.enable_cache:
            self._report_cache = ResultCache(
                max_entries=cache_config.cache_max_entries,
                ttl_seconds=cache_config.cache_ttl_ms / 1000.0,
            )

    def analyze(
        self,
        text: Optional[str],
        include_calculations: Optional[bool] = None,
        include_examples: Optional[bool] = None,
        include_deviations: Optional[bool] = None,
        max_examples: Optional[int] = None,
    ) -> AnalysisReport:
        """Analyze a problem statement.

        Options left as None fall back to the report configuration.

        Raises:
            InvalidProblemTextError: If text is not a string.
        """
        text = ensure_text(text)
        options = self._report_options(
            include_calculations=include_calculations,
            include_examples=include_examples,
            include_deviations=include_deviations,
            max_examples=max_examples,
        )

        if not text.strip():
            return AnalysisReport(
                archetypes=ArchetypeRanking(message=EMPTY_TEXT_MESSAGE),
                deviations=DeviationSummary() if options.include_deviations else None,
                metadata=ReportMetadata(problem_length=len(text), message=EMPTY_TEXT_MESSAGE),
            )

        key = None
        if self._report_cache is not None:
            key = fingerprint(text, options.model_dump_json())
            cached = self._report_cache.get(key)
            if cached is not None:
                logger.debug("Report cache hit")
                return cached

        start = time.perf_counter()

        evidence = self.extractor.extract_signals(text)
        ranking = self.archetype_scorer.score(evidence)
        primary = ranking.primary.code if ranking.primary else None

        deviations = None
        if options.include_deviations:
            deviations = self.deviation_detector.detect(text, primary)

        similar: list[SimilarProblem] = []
        comparison = None
        if options.include_examples and self.kb.problems:
            target = Problem(
                archetype=primary or "",
                deviations=deviations.codes if deviations else [],
                keywords=evidence.matched_keywords,
                problem_text=text,
            )
            similar = self.matcher.find_similar_problems(target, self.kb.problems, limit=options.max_examples)
            comparison = self.divergence.find_closest_with_divergence(target, self.kb.problems)

        report = self.report_builder.build(
            text,
            evidence,
            ranking,
            options,
            deviations=deviations,
            similar=similar,
            comparison=comparison,
            processing_ms=(time.perf_counter() - start) * 1000.0,
        )

        logger.info(
            "Analyzed problem: archetype=%s confidence=%.1f deviations=%d",
            ranking.archetype, ranking.confidence, report.deviations.total if report.deviations else 0,
        )

        if self._report_cache is not None:
            self._report_cache.put(key, report)
        return report

    def _report_options(self, **overrides) -> ReportConfig:
        updates = {k: v for k, v in overrides.items() if v is not None}
        return self.config.report.model_copy(update=updates)

    def detect_deviations(self, text: Optional[str], archetype: Optional[str] = None) -> DeviationRanking:
        """Run deviation detection on its own."""
        return self.deviation_detector.detect(text, archetype)

    def map_deviations_to_steps(
        self,
        deviations: list[DetectedDeviation],
        steps: list[SolutionStep],
    ) -> list[SolutionStep]:
        return self.deviation_detector.map_deviations_to_steps(deviations, steps)

    def find_similar(self, target: ProblemLike, limit: int = 5) -> list[SimilarProblem]:
        """Corpus problems most similar to the target."""
        return self.matcher.find_similar_problems(target, self.kb.problems, limit=limit)

    def compare(
        self,
        target: ProblemLike,
        corpus: Optional[Iterable[ProblemLike]] = None,
        threshold: Optional[float] = None,
    ) -> DivergenceReport:
        """Closest comparable of a target problem and its divergence report."""
        corpus = self.kb.problems if corpus is None else corpus
        return self.divergence.find_closest_with_divergence(target, corpus, threshold)

    def get_archetype(self, code: str) -> Archetype:
        """Archetype by code; raises ArchetypeNotFoundError when unknown."""
        return self.kb.get_archetype(code)

    def clear_cache(self) -> None:
        self.deviation_detector.clear_cache()
        if self._report_cache is not None:
            self._report_cache.clear()

    def cache_stats(self) -> dict[str, Optional[CacheStats]]:
        return {
            "deviations": self.deviation_detector.cache_stats(),
            "reports": self._report_cache.stats() if self._report_cache is not None else None,
        }


def analyze_problem(text: str, kb: Optional[KnowledgeBase] = None, **options) -> AnalysisReport:
    """Analyze a single problem with a fresh engine."""
    return ProblemAnalysisEngine(kb).analyze(text, **options)
