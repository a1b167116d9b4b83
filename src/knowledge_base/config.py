"""Configuration for knowledge-base loading."""

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field

BUNDLED_DATA_DIR = Path(__file__).parent / "data"


class DataFilesConfig(BaseModel):
    """File names inside the knowledge-base data directory."""
    archetypes: str = Field("archetypes.json", description="Archetype registry")
    keywords: str = Field("keyword-mappings.json", description="Keyword map and strong signals")
    deviations: str = Field("deviation-registry.json", description="Deviation registry")
    problems: str = Field("problems.json", description="Worked problem corpus")


class KeywordStrengthConfig(BaseModel):
    """Weight thresholds for archetype keyword strength buckets."""
    instant_trigger: float = Field(4.0, description="Minimum weight for an instant trigger")
    strong: float = Field(3.0, description="Minimum weight for a strong keyword")
    moderate: float = Field(2.0, description="Minimum weight for a moderate keyword")


class TriggerWeightConfig(BaseModel):
    """Weights assigned to deviation trigger phrases without an explicit weight."""
    multi_word_weight: float = Field(2.5, description="Weight for phrases of three or more words")
    two_word_weight: float = Field(2.0, description="Weight for two-word phrases")
    high_value_weight: float = Field(2.0, description="Weight for single high-value words")
    default_weight: float = Field(1.0, description="Weight for any other single word")
    high_value_words: list[str] = Field(
        default_factory=lambda: ["hazard", "amortizing", "overhang", "substitution", "recursive"],
        description="Single words that are strong evidence on their own"
    )


class KnowledgeBaseConfig(BaseModel):
    """Complete configuration for the knowledge base."""
    data_dir: Optional[str] = Field(
        None,
        description="Directory holding the registry files (default: bundled data)"
    )
    files: DataFilesConfig = Field(default_factory=DataFilesConfig)
    keyword_strength: KeywordStrengthConfig = Field(default_factory=KeywordStrengthConfig)
    trigger_weights: TriggerWeightConfig = Field(default_factory=TriggerWeightConfig)

    def resolve_data_dir(self) -> Path:
        """Data directory from config, the KNOWLEDGE_BASE_DIR env var, or the bundled data."""
        if self.data_dir:
            return Path(self.data_dir)
        env_path = os.environ.get("KNOWLEDGE_BASE_DIR")
        if env_path:
            return Path(env_path)
        return BUNDLED_DATA_DIR


# Global config instance
_config: Optional[KnowledgeBaseConfig] = None


def get_config() -> KnowledgeBaseConfig:
    """Get the current configuration, initializing with defaults if not yet loaded."""
    global _config
    if _config is None:
        _config = KnowledgeBaseConfig()
    return _config


def load_config(path: Path) -> KnowledgeBaseConfig:
    """Load configuration from a YAML file."""
    global _config

    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f)

    _config = KnowledgeBaseConfig.model_validate(data or {})
    return _config


def reset_config() -> None:
    """Reset configuration to defaults."""
    global _config
    _config = KnowledgeBaseConfig()
