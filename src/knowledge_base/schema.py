"""Pydantic models for the corporate-finance knowledge base.

Archetypes, keyword mappings, deviations and the worked-problem corpus are
loaded once and treated as read-only reference data.
"""

from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, Field, field_validator


# =============================================================================
# Ordering Enums
# =============================================================================


class Severity(str, Enum):
    """How costly it is to miss a deviation."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Numeric rank; higher is more severe."""
        return _SEVERITY_RANK[self]

    @classmethod
    def from_string(cls, value: Optional[str]) -> "Severity":
        """Parse severity from string, defaulting to medium."""
        if isinstance(value, cls):
            return value
        if not value:
            return cls.MEDIUM
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.MEDIUM


_SEVERITY_RANK = {
    Severity.CRITICAL: 4,
    Severity.HIGH: 3,
    Severity.MEDIUM: 2,
    Severity.LOW: 1,
}


class ConfidenceBucket(str, Enum):
    """Confidence bucket for a detected deviation."""
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    NONE = "NONE"  # Nothing detected

    @property
    def rank(self) -> int:
        """Numeric rank; higher is more confident."""
        return _CONFIDENCE_RANK[self]


_CONFIDENCE_RANK = {
    ConfidenceBucket.HIGH: 3,
    ConfidenceBucket.MEDIUM: 2,
    ConfidenceBucket.LOW: 1,
    ConfidenceBucket.NONE: 0,
}


class KeywordStrength(str, Enum):
    """Strength bucket of an archetype keyword, derived from its weight."""
    INSTANT_TRIGGER = "instant_trigger"
    STRONG = "strong"
    MODERATE = "moderate"
    WEAK = "weak"


# =============================================================================
# Archetypes and Keywords
# =============================================================================


class StrongSignal(BaseModel):
    """A keyword combination that points at one archetype with high confidence."""
    keywords: list[str] = Field(default_factory=list)
    archetype: str = Field(..., description="Archetype code the combination signals")
    confidence: float = Field(90.0, ge=0, le=100)

    @field_validator("keywords")
    @classmethod
    def lowercase_keywords(cls, v: list[str]) -> list[str]:
        return [k.strip().lower() for k in v if k and k.strip()]

    def matches(self, lowered_text: str) -> bool:
        """True when every keyword of the combination occurs in the text."""
        return bool(self.keywords) and all(k in lowered_text for k in self.keywords)


class KeywordEntry(BaseModel):
    """A weighted trigger keyword that signals one or more archetypes."""
    keyword: str
    weight: float = Field(1.0, ge=1)
    archetypes: list[str] = Field(default_factory=list)

    @field_validator("keyword")
    @classmethod
    def lowercase_keyword(cls, v: str) -> str:
        return v.strip().lower()

    @property
    def strength(self) -> KeywordStrength:
        return keyword_strength(self.weight)


def keyword_strength(
    weight: float,
    instant: float = 4.0,
    strong: float = 3.0,
    moderate: float = 2.0,
) -> KeywordStrength:
    """Bucket a keyword weight into a strength level."""
    if weight >= instant:
        return KeywordStrength.INSTANT_TRIGGER
    if weight >= strong:
        return KeywordStrength.STRONG
    if weight >= moderate:
        return KeywordStrength.MODERATE
    return KeywordStrength.WEAK


class Archetype(BaseModel):
    """A recurring exam problem pattern."""
    code: str = Field(..., description="Archetype code, e.g. A1")
    name: str
    tier: int = 1
    keywords: list[str] = Field(default_factory=list)
    strong_signals: list[StrongSignal] = Field(default_factory=list)
    time_allocation_minutes: float = 10.0
    point_value: Union[int, float, str, None] = None
    excel_tab_ref: Optional[str] = Field(None, description="Opaque spreadsheet reference")

    model_config = {"frozen": True}

    @property
    def point_range(self) -> Optional[tuple[float, float]]:
        """Point value as a (low, high) range."""
        if self.point_value is None:
            return None
        if isinstance(self.point_value, (int, float)):
            return (float(self.point_value), float(self.point_value))
        parts = str(self.point_value).replace(" ", "").split("-")
        try:
            values = [float(p) for p in parts if p]
        except ValueError:
            return None
        if not values:
            return None
        return (min(values), max(values))


# =============================================================================
# Deviations
# =============================================================================


class TriggerSpec(BaseModel):
    """A deviation trigger phrase with an explicit weight."""
    keyword: str
    weight: float = Field(..., ge=0)


class PatternSpec(BaseModel):
    """A regex pattern with an explicit flag set (e.g. "im")."""
    pattern: str
    flags: str = ""


class Deviation(BaseModel):
    """A known pitfall or variant that alters the standard solution approach."""
    code: str = Field(..., description="Deviation code, e.g. DEV-1.1.1")
    name: str = ""
    description: str = ""
    category: str = "general"
    severity: Severity = Severity.MEDIUM
    time_impact_minutes: float = 0.0
    detection_triggers: list[Union[str, TriggerSpec]] = Field(default_factory=list)
    detection_patterns: list[Union[str, PatternSpec]] = Field(default_factory=list)
    related_archetypes: list[str] = Field(default_factory=list)
    checkpoints: list[str] = Field(default_factory=list)
    common_errors: list[str] = Field(default_factory=list)
    formula_hints: list[str] = Field(default_factory=list)
    warning: Optional[str] = None

    @field_validator("severity", mode="before")
    @classmethod
    def parse_severity(cls, v: Any) -> Severity:
        return Severity.from_string(v)


# =============================================================================
# Worked Problems
# =============================================================================


class DeviationAlert(BaseModel):
    """Inline warning attached to a solution step."""
    code: str
    name: str
    warning: str
    explanation: str = ""
    checkpoints: list[str] = Field(default_factory=list)
    time_impact_minutes: float = 0.0
    severity: Severity = Severity.MEDIUM
    confidence: ConfidenceBucket = ConfidenceBucket.LOW


class SolutionStep(BaseModel):
    """One step of a worked solution."""
    part: str = ""
    prompt: str = ""
    reasoning: str = ""
    calculation: str = ""
    sanity_check: str = ""
    deviation_alert: Optional[DeviationAlert] = None

    def combined_text(self) -> str:
        """All text fields of the step joined by spaces."""
        return " ".join(
            [self.part, self.prompt, self.reasoning, self.calculation, self.sanity_check]
        )


class ProblemComparison(BaseModel):
    """Closest-comparable summary stored on a problem."""
    closest_id: Optional[str] = None
    similarity_score: float = 0.0
    key_distinctions: list[str] = Field(default_factory=list)


class Problem(BaseModel):
    """A worked example problem from the corpus."""
    id: Optional[str] = None
    archetype: str = ""
    deviations: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    problem_text: str = ""
    solution_steps: list[SolutionStep] = Field(default_factory=list)
    key_insights: list[str] = Field(default_factory=list)
    common_mistakes: list[str] = Field(default_factory=list)
    comparison: Optional[ProblemComparison] = None

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Problem":
        """Build a problem from a loosely shaped record.

        Deviations and keywords may sit at the top level, under a
        ``metadata`` or ``analysis`` block, or as a single ``deviation``.
        Only string codes and keywords are kept.
        """
        data = dict(record)
        nested = [
            b for b in (record.get("metadata"), record.get("analysis"))
            if isinstance(b, dict)
        ]

        deviations = list(_as_list(record.get("deviations")))
        if record.get("deviation"):
            deviations.append(record["deviation"])
        keywords = list(_as_list(record.get("keywords")))
        keywords.extend(_as_list(record.get("matched_keywords")))
        archetype = record.get("archetype") if isinstance(record.get("archetype"), str) else ""

        for block in nested:
            deviations.extend(_as_list(block.get("deviations")))
            if block.get("deviation"):
                deviations.append(block["deviation"])
            keywords.extend(_as_list(block.get("keywords")))
            keywords.extend(_as_list(block.get("matched_keywords")))
            if not archetype and isinstance(block.get("archetype"), str):
                archetype = block["archetype"]

        problem_id = record.get("id")
        if problem_id is None or problem_id == "":
            problem_id = record.get("problem_id")
        data["id"] = str(problem_id) if problem_id is not None else None
        data["archetype"] = archetype
        data["deviations"] = [d for d in deviations if isinstance(d, str) and d]
        data["keywords"] = [k for k in keywords if isinstance(k, str) and k]
        for name in ("problem_text", "solution_steps", "key_insights", "common_mistakes"):
            if name in data and data[name] is None:
                del data[name]
        data.pop("metadata", None)
        data.pop("analysis", None)
        data.pop("deviation", None)
        data.pop("matched_keywords", None)
        data.pop("problem_id", None)
        return cls.model_validate(data)


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return [value]
