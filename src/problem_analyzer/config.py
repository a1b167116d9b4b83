"""Centralized configuration management for the problem analyzer."""

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field


class DetectionConfig(BaseModel):
    """Scoring constants for the deviation detector.

    A deviation accumulates keyword weights, a bonus per matching pattern
    and an archetype correlation boost, then must clear the admission
    threshold to be reported.
    """
    pattern_match_bonus: float = Field(
        3.0,
        description="Points added per detection pattern that matches the text"
    )
    archetype_correlation_boost: float = Field(
        1.5,
        description="Points added once when the deviation relates to the context archetype"
    )
    min_admission_score: float = Field(
        2.0,
        description="Minimum score for a deviation to be reported"
    )
    high_confidence_score: float = Field(
        5.0,
        description="Minimum score for HIGH confidence"
    )
    medium_confidence_score: float = Field(
        3.0,
        description="Minimum score for MEDIUM confidence"
    )
    critical_severity_score: float = Field(
        8.0,
        description="Minimum score for a HIGH-confidence step alert to be critical"
    )
    evaluate_patterns_without_keywords: bool = Field(
        False,
        description="Evaluate patterns for every deviation, not only keyword candidates"
    )
    cache_key_prefix_chars: int = Field(
        100,
        description="Number of leading characters of the text used in the cache key"
    )


class ArchetypeScoringConfig(BaseModel):
    """Configuration for archetype ranking."""
    hybrid_confidence_floor: float = Field(
        40.0,
        description="Archetypes above this confidence (0-100) count towards a hybrid"
    )
    max_secondary: int = Field(
        2,
        description="Maximum number of secondary archetypes reported"
    )


class SimilarityConfig(BaseModel):
    """Weights and threshold for problem similarity.

    The three weights should sum to 1.0.
    """
    archetype_weight: float = Field(0.40, description="Weight of archetype similarity")
    deviation_weight: float = Field(0.35, description="Weight of deviation-set Jaccard")
    keyword_weight: float = Field(0.25, description="Weight of keyword-set Jaccard")
    same_tier_score: float = Field(
        0.5,
        description="Archetype similarity when codes differ but share a leading letter"
    )
    similarity_threshold: float = Field(
        0.7,
        description="Closest problem must score strictly above this to count as a comparable"
    )


class CacheConfig(BaseModel):
    """Configuration for result caching."""
    enable_cache: bool = Field(True, description="Memoise detection results and reports")
    cache_max_entries: int = Field(100, description="Maximum entries per cache")
    cache_ttl_ms: int = Field(
        24 * 60 * 60 * 1000,
        description="Lifetime of cached analysis reports in milliseconds"
    )


class ReportConfig(BaseModel):
    """Sections included in an analysis report."""
    include_calculations: bool = Field(True, description="Include calculation guides")
    include_examples: bool = Field(True, description="Include similar worked examples")
    include_deviations: bool = Field(True, description="Include detected deviations")
    max_examples: int = Field(3, description="Maximum number of similar examples")
    base_time_minutes: float = Field(
        10.0,
        description="Default time budget when the archetype does not specify one"
    )


class AnalyzerConfig(BaseModel):
    """Complete configuration for the problem analyzer."""
    detection: DetectionConfig = Field(default_factory=DetectionConfig)
    archetypes: ArchetypeScoringConfig = Field(default_factory=ArchetypeScoringConfig)
    similarity: SimilarityConfig = Field(default_factory=SimilarityConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    report: ReportConfig = Field(default_factory=ReportConfig)


# Global config instance
_config: Optional[AnalyzerConfig] = None


def get_config() -> AnalyzerConfig:
    """Get the current configuration.

    Returns the global config, initializing with defaults if not yet loaded.
    """
    global _config
    if _config is None:
        _config = AnalyzerConfig()
    return _config


def load_config(path: Path) -> AnalyzerConfig:
    """Load configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        The loaded AnalyzerConfig.
    """
    global _config

    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f)

    _config = AnalyzerConfig.model_validate(data or {})
    return _config


def reset_config() -> None:
    """Reset configuration to defaults."""
    global _config
    _config = AnalyzerConfig()


def find_config_file() -> Optional[Path]:
    """Find an analyzer configuration file.

    Looks in (order of priority):
    1. PROBLEM_ANALYZER_CONFIG environment variable
    2. ./analyzer-config.yaml
    3. ./analyzer-config.yml
    4. ~/.config/problem-analyzer/config.yaml
    """
    env_path = os.environ.get("PROBLEM_ANALYZER_CONFIG")
    if env_path:
        path = Path(env_path)
        if path.exists():
            return path

    for name in ["analyzer-config.yaml", "analyzer-config.yml"]:
        path = Path(name)
        if path.exists():
            return path

    user_config = Path.home() / ".config" / "problem-analyzer" / "config.yaml"
    if user_config.exists():
        return user_config

    return None


def save_default_config(path: Path) -> None:
    """Write the default configuration, one commented block per section."""
    config = AnalyzerConfig()
    lines = [
        "# Problem Analyzer Configuration",
        "# Read from $PROBLEM_ANALYZER_CONFIG, ./analyzer-config.yaml or",
        "# ~/.config/problem-analyzer/config.yaml",
        "",
    ]
    for name in AnalyzerConfig.model_fields:
        section = getattr(config, name)
        summary = (type(section).__doc__ or name).strip().splitlines()[0]
        lines.append(f"# {summary}")
        lines.append(yaml.safe_dump(
            {name: section.model_dump(mode="json")}, default_flow_style=False, sort_keys=False
        ).rstrip())
        lines.append("")

    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        f.write("\n".join(lines))
