"""Pydantic models for the Problem Analyzer.

Output schemas for signal extraction, archetype and deviation rankings,
similarity comparisons and the assembled analysis report.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

# Re-export knowledge base models for convenience
from knowledge_base.schema import (
    ConfidenceBucket,
    DeviationAlert,
    Problem,
    Severity,
    SolutionStep,
    StrongSignal,
)


# =============================================================================
# Extraction
# =============================================================================


class KeywordHit(BaseModel):
    """A keyword found in the problem text."""
    keyword: str
    weight: float
    archetypes: list[str] = Field(default_factory=list)
    deviations: list[str] = Field(default_factory=list)
    positions: list[int] = Field(default_factory=list, description="Character offsets of each occurrence")


class PatternHit(BaseModel):
    """A detection pattern that matched the problem text."""
    deviation_code: str
    pattern: str


class EvidenceSet(BaseModel):
    """Signals extracted from one problem text."""
    text_length: int = 0
    archetype_hits: list[KeywordHit] = Field(default_factory=list)
    trigger_hits: list[KeywordHit] = Field(default_factory=list)
    strong_signals: list[StrongSignal] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.archetype_hits and not self.trigger_hits

    @property
    def matched_keywords(self) -> list[str]:
        """Archetype keywords found, in registry order."""
        return [h.keyword for h in self.archetype_hits]


# =============================================================================
# Archetype Ranking
# =============================================================================


class ArchetypeScore(BaseModel):
    """Score of one archetype for a problem."""
    code: str
    name: str = ""
    score: float
    confidence: float = Field(..., ge=0, le=100)
    matched_keywords: list[str] = Field(default_factory=list)


class ArchetypeRanking(BaseModel):
    """Ranked archetype candidates for a problem."""
    archetype: str = Field("Unknown", description="Primary archetype code or Unknown")
    confidence: float = 0.0
    primary: Optional[ArchetypeScore] = None
    secondary: list[ArchetypeScore] = Field(default_factory=list)
    ranked: list[ArchetypeScore] = Field(default_factory=list)
    is_hybrid: bool = False
    hybrid_combination: Optional[str] = None
    solving_sequence: Optional[str] = None
    strong_signals: list[StrongSignal] = Field(default_factory=list)
    message: Optional[str] = None


# =============================================================================
# Deviation Detection
# =============================================================================


class DetectedDeviation(BaseModel):
    """A deviation detected in a problem, with its evidence score."""
    code: str
    name: str = ""
    description: str = ""
    category: str = "general"
    score: float
    confidence: ConfidenceBucket
    severity: Severity = Severity.MEDIUM
    time_impact_minutes: float = 0.0
    checkpoints: list[str] = Field(default_factory=list)
    common_errors: list[str] = Field(default_factory=list)
    formula_hints: list[str] = Field(default_factory=list)
    related_archetypes: list[str] = Field(default_factory=list)
    matched_keywords: list[str] = Field(default_factory=list)
    matched_patterns: int = 0


class DetectionMetadata(BaseModel):
    """Bookkeeping for one detection run."""
    keywords_found: int = 0
    patterns_matched: int = 0
    candidates_evaluated: int = 0
    top_score: float = 0.0
    overall_confidence: ConfidenceBucket = ConfidenceBucket.NONE
    detected_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    problem_length: int = 0
    archetype_context: Optional[str] = None
    error: Optional[str] = None


class DeviationRanking(BaseModel):
    """Deviations detected in a problem, highest score first."""
    deviations: list[DetectedDeviation] = Field(default_factory=list)
    metadata: DetectionMetadata = Field(default_factory=DetectionMetadata)

    @property
    def top(self) -> Optional[DetectedDeviation]:
        return self.deviations[0] if self.deviations else None

    @property
    def codes(self) -> list[str]:
        return [d.code for d in self.deviations]


class StepDeviationResult(BaseModel):
    """Deviation guidance for a single solution step."""
    step_number: int
    deviation: Optional[DetectedDeviation] = None
    step_confidence: ConfidenceBucket = ConfidenceBucket.NONE
    problem_confidence: ConfidenceBucket = ConfidenceBucket.NONE
    recommendation: str


def deviation_priority(deviation: DetectedDeviation) -> tuple[int, float]:
    """Sort key: confidence bucket first, raw score second."""
    return (deviation.confidence.rank, deviation.score)


# =============================================================================
# Similarity and Divergence
# =============================================================================


class ProblemFeatures(BaseModel):
    """Normalised features used for similarity."""
    archetype: str = ""
    deviations: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)


class SimilarityBreakdown(BaseModel):
    """Per-component similarity scores, each in [0, 1]."""
    archetype: float = 0.0
    deviations: float = 0.0
    keywords: float = 0.0


class SimilarityResult(BaseModel):
    """Weighted similarity between two problems."""
    score: float = Field(..., ge=0, le=1)
    breakdown: SimilarityBreakdown
    problem1_features: ProblemFeatures
    problem2_features: ProblemFeatures


class SimilarProblem(BaseModel):
    """A corpus problem ranked by similarity to a target."""
    problem: Problem
    similarity: float
    breakdown: SimilarityBreakdown
    explanation: list[str] = Field(default_factory=list)


class GuidanceType(str, Enum):
    """Kind of adaptation a target problem needs relative to its comparable."""
    ADDITIONAL_COMPLEXITY = "additional_complexity"
    SIMPLIFICATION = "simplification"
    CONCEPTUAL_EXTENSION = "conceptual_extension"


class DivergenceAnalysis(BaseModel):
    """Set differences between a target problem and its comparable."""
    additional_deviations: list[str] = Field(default_factory=list)
    missing_deviations: list[str] = Field(default_factory=list)
    additional_concepts: list[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.additional_deviations or self.missing_deviations or self.additional_concepts)


class AdaptationGuidance(BaseModel):
    """How to adapt the comparable's solution to the target problem."""
    type: GuidanceType
    code: Optional[str] = None
    title: str
    description: str
    adaptation_steps: list[str] = Field(default_factory=list)
    time_impact_minutes: float = 0.0
    severity: Severity = Severity.MEDIUM


class DivergenceReport(BaseModel):
    """Closest comparable problem and how the target diverges from it."""
    has_comp: bool = False
    closest_comp: Optional[Problem] = None
    similarity_score: float = 0.0
    similarity_breakdown: Optional[SimilarityBreakdown] = None
    threshold: float = 0.7
    divergence_analysis: Optional[DivergenceAnalysis] = None
    adaptation_guidance: list[AdaptationGuidance] = Field(default_factory=list)
    comp_approach: Optional[str] = None
    message: Optional[str] = None


# =============================================================================
# Analysis Report
# =============================================================================


class WorkflowPhase(BaseModel):
    """One phase of the exam solving workflow."""
    name: str
    label: str
    time_budget: str
    checklist: list[str] = Field(default_factory=list)


class CalculationGuide(BaseModel):
    """Archetype-specific calculation steps and formulas."""
    archetype: str
    steps: list[str] = Field(default_factory=list)
    formulas: list[str] = Field(default_factory=list)


class DeviationSummary(BaseModel):
    """Deviation section of the analysis report."""
    total: int = 0
    items: list[DetectedDeviation] = Field(default_factory=list)
    total_time_impact_minutes: float = 0.0
    overall_confidence: ConfidenceBucket = ConfidenceBucket.NONE


class ReportMetadata(BaseModel):
    """Bookkeeping for one analysis."""
    analyzed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    problem_length: int = 0
    keywords_found: int = 0
    processing_ms: float = 0.0
    message: Optional[str] = None


class AnalysisReport(BaseModel):
    """Complete analysis of one problem statement."""
    archetypes: ArchetypeRanking
    deviations: Optional[DeviationSummary] = None
    similar_examples: list[SimilarProblem] = Field(default_factory=list)
    comparison: Optional[DivergenceReport] = None
    suggested_workflow: list[WorkflowPhase] = Field(default_factory=list)
    calculations: Optional[CalculationGuide] = None
    time_allocation_minutes: float = 0.0
    estimated_points: Optional[str] = None
    keywords: list[str] = Field(default_factory=list)
    metadata: ReportMetadata = Field(default_factory=ReportMetadata)


__all__ = [
    "AdaptationGuidance",
    "AnalysisReport",
    "ArchetypeRanking",
    "ArchetypeScore",
    "CalculationGuide",
    "ConfidenceBucket",
    "DetectedDeviation",
    "DetectionMetadata",
    "DeviationAlert",
    "DeviationRanking",
    "DeviationSummary",
    "DivergenceAnalysis",
    "DivergenceReport",
    "EvidenceSet",
    "GuidanceType",
    "KeywordHit",
    "PatternHit",
    "Problem",
    "ProblemFeatures",
    "ReportMetadata",
    "Severity",
    "SimilarProblem",
    "SimilarityBreakdown",
    "SimilarityResult",
    "SolutionStep",
    "StepDeviationResult",
    "StrongSignal",
    "WorkflowPhase",
    "deviation_priority",
]
