"""Archetype study guides assembled from the knowledge base."""

from typing import Optional

from pydantic import BaseModel, Field

from .loader import KnowledgeBase
from .schema import KeywordStrength, Severity, StrongSignal, keyword_strength


class GuideDeviation(BaseModel):
    """Deviation summary shown in a guide."""
    code: str
    name: str
    severity: Severity
    time_impact_minutes: float = 0.0


class GuideExample(BaseModel):
    """Worked example summary shown in a guide."""
    id: Optional[str] = None
    problem_text: str = ""
    deviations: list[str] = Field(default_factory=list)
    key_insights: list[str] = Field(default_factory=list)


class ArchetypeGuide(BaseModel):
    """Everything needed to study one archetype."""
    code: str
    name: str
    tier: int
    time_allocation_minutes: float
    point_value: Optional[str] = None
    excel_tab_ref: Optional[str] = None
    keywords_by_strength: dict[KeywordStrength, list[str]] = Field(default_factory=dict)
    strong_signals: list[StrongSignal] = Field(default_factory=list)
    deviations: list[GuideDeviation] = Field(default_factory=list)
    examples: list[GuideExample] = Field(default_factory=list)


def build_archetype_guide(
    kb: KnowledgeBase,
    code: str,
    include_examples: bool = True,
    max_examples: int = 3,
) -> ArchetypeGuide:
    """Build the study guide for an archetype.

    Raises:
        ArchetypeNotFoundError: If the archetype code is unknown.
    """
    arch = kb.get_archetype(code)
    thresholds = kb.config.keyword_strength

    grouped: dict[KeywordStrength, list[str]] = {s: [] for s in KeywordStrength}
    for entry in kb.keywords_for_archetype(arch.code):
        strength = keyword_strength(
            entry.weight,
            instant=thresholds.instant_trigger,
            strong=thresholds.strong,
            moderate=thresholds.moderate,
        )
        grouped[strength].append(entry.keyword)

    deviations = [
        GuideDeviation(
            code=d.code,
            name=d.name,
            severity=d.severity,
            time_impact_minutes=d.time_impact_minutes,
        )
        for d in kb.deviations_for_archetype(arch.code)
    ]
    deviations.sort(key=lambda d: d.severity.rank, reverse=True)

    examples = []
    if include_examples:
        for problem in kb.problems_for_archetype(arch.code)[:max_examples]:
            examples.append(GuideExample(
                id=problem.id,
                problem_text=problem.problem_text,
                deviations=problem.deviations,
                key_insights=problem.key_insights,
            ))

    return ArchetypeGuide(
        code=arch.code,
        name=arch.name,
        tier=arch.tier,
        time_allocation_minutes=arch.time_allocation_minutes,
        point_value=str(arch.point_value) if arch.point_value is not None else None,
        excel_tab_ref=arch.excel_tab_ref,
        keywords_by_strength={s: kws for s, kws in grouped.items() if kws},
        strong_signals=arch.strong_signals,
        deviations=deviations,
        examples=examples,
    )
