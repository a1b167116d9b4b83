"""Report Builder - Phase 5 of the Problem Analyzer.

Assembles archetype ranking, detected deviations, similar examples and
static guidance into a single analysis report.
"""

from typing import Optional

from knowledge_base.loader import KnowledgeBase

from .config import ReportConfig
from .guidance import build_workflow, calculation_guide
from .schema import (
    AnalysisReport,
    ArchetypeRanking,
    DeviationRanking,
    DeviationSummary,
    DivergenceReport,
    EvidenceSet,
    ReportMetadata,
    SimilarProblem,
)


class ReportBuilder:
    """Builds analysis reports from the outputs of the earlier phases."""

    def __init__(self, kb: KnowledgeBase):
        self.kb = kb

    def build(
        self,
        text: str,
        evidence: EvidenceSet,
        ranking: ArchetypeRanking,
        options: ReportConfig,
        deviations: Optional[DeviationRanking] = None,
        similar: Optional[list[SimilarProblem]] = None,
        comparison: Optional[DivergenceReport] = None,
        processing_ms: float = 0.0,
    ) -> AnalysisReport:
        """Build the report for one problem."""
        arch = self.kb.find_archetype(ranking.archetype) if ranking.primary else None
        base_time = arch.time_allocation_minutes if arch else options.base_time_minutes

        summary = None
        deviation_time = 0.0
        deviation_codes: list[str] = []
        if deviations is not None:
            deviation_time = sum(d.time_impact_minutes for d in deviations.deviations)
            deviation_codes = deviations.codes
            summary = DeviationSummary(
                total=len(deviations.deviations),
                items=deviations.deviations,
                total_time_impact_minutes=deviation_time,
                overall_confidence=deviations.metadata.overall_confidence,
            )

        time_allocation = base_time + deviation_time
        primary_code = ranking.primary.code if ranking.primary else None

        return AnalysisReport(
            archetypes=ranking,
            deviations=summary,
            similar_examples=similar or [],
            comparison=comparison,
            suggested_workflow=build_workflow(
                primary_code,
                time_allocation,
                deviation_codes=deviation_codes,
                hybrid_sequence=ranking.solving_sequence,
            ),
            calculations=calculation_guide(primary_code) if options.include_calculations else None,
            time_allocation_minutes=time_allocation,
            estimated_points=str(arch.point_value) if arch and arch.point_value is not None else None,
            keywords=evidence.matched_keywords,
            metadata=ReportMetadata(
                problem_length=len(text),
                keywords_found=len(evidence.archetype_hits),
                processing_ms=round(processing_ms, 3),
                message=ranking.message,
            ),
        )
