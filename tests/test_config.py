"""Tests for YAML configuration loading."""

from pathlib import Path

import yaml

from knowledge_base import config as kb_config
from problem_analyzer.config import (
    AnalyzerConfig,
    find_config_file,
    get_config,
    load_config,
    reset_config,
    save_default_config,
)


class TestAnalyzerConfig:
    """Tests for the analyzer configuration."""

    def test_defaults(self):
        config = AnalyzerConfig()
        assert config.detection.pattern_match_bonus == 3.0
        assert config.detection.min_admission_score == 2.0
        assert config.archetypes.hybrid_confidence_floor == 40.0
        assert config.similarity.similarity_threshold == 0.7
        assert config.cache.cache_max_entries == 100
        weights = config.similarity
        assert weights.archetype_weight + weights.deviation_weight + weights.keyword_weight == 1.0

    def test_load_partial_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("detection:\n  pattern_match_bonus: 4\nsimilarity:\n  similarity_threshold: 0.5\n")
        config = load_config(path)
        assert config.detection.pattern_match_bonus == 4
        assert config.detection.archetype_correlation_boost == 1.5
        assert config.similarity.similarity_threshold == 0.5
        assert get_config() is config

    def test_load_empty_yaml(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(path) == AnalyzerConfig()

    def test_reset(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("cache:\n  enable_cache: false\n")
        load_config(path)
        reset_config()
        assert get_config().cache.enable_cache is True

    def test_save_default_round_trip(self, tmp_path):
        path = tmp_path / "nested" / "analyzer-config.yaml"
        save_default_config(path)
        text = path.read_text(encoding="utf-8")
        assert text.startswith("# Problem Analyzer Configuration")
        assert "# Scoring constants for the deviation detector.\ndetection:" in text
        assert "# Configuration for result caching.\ncache:" in text
        assert yaml.safe_load(text)["detection"]["pattern_match_bonus"] == 3.0
        assert load_config(path) == AnalyzerConfig()


class TestFindConfigFile:
    """Tests for configuration file discovery."""

    def test_env_var(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.yaml"
        path.write_text("{}")
        monkeypatch.setenv("PROBLEM_ANALYZER_CONFIG", str(path))
        assert find_config_file() == path

    def test_current_directory(self, tmp_path, monkeypatch):
        monkeypatch.delenv("PROBLEM_ANALYZER_CONFIG", raising=False)
        monkeypatch.chdir(tmp_path)
        (tmp_path / "analyzer-config.yml").write_text("{}")
        assert find_config_file() == Path("analyzer-config.yml")

    def test_user_config(self, tmp_path, monkeypatch):
        monkeypatch.delenv("PROBLEM_ANALYZER_CONFIG", raising=False)
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path))
        user_config = tmp_path / ".config" / "problem-analyzer" / "config.yaml"
        user_config.parent.mkdir(parents=True)
        user_config.write_text("{}")
        assert find_config_file() == user_config

    def test_none_found(self, tmp_path, monkeypatch):
        monkeypatch.delenv("PROBLEM_ANALYZER_CONFIG", raising=False)
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path))
        assert find_config_file() is None


class TestKnowledgeBaseConfig:
    """Tests for the knowledge base configuration."""

    def test_bundled_data_dir_default(self, monkeypatch):
        monkeypatch.delenv("KNOWLEDGE_BASE_DIR", raising=False)
        assert kb_config.KnowledgeBaseConfig().resolve_data_dir() == kb_config.BUNDLED_DATA_DIR

    def test_env_var_data_dir(self, tmp_path, monkeypatch):
        monkeypatch.setenv("KNOWLEDGE_BASE_DIR", str(tmp_path))
        assert kb_config.KnowledgeBaseConfig().resolve_data_dir() == tmp_path

    def test_configured_data_dir_wins(self, tmp_path, monkeypatch):
        monkeypatch.setenv("KNOWLEDGE_BASE_DIR", "/elsewhere")
        config = kb_config.KnowledgeBaseConfig(data_dir=str(tmp_path))
        assert config.resolve_data_dir() == tmp_path

    def test_load_yaml(self, tmp_path):
        path = tmp_path / "kb.yaml"
        path.write_text("trigger_weights:\n  high_value_words: [ytm]\nfiles:\n  problems: corpus.json\n")
        config = kb_config.load_config(path)
        assert config.trigger_weights.high_value_words == ["ytm"]
        assert config.files.problems == "corpus.json"
        assert config.files.archetypes == "archetypes.json"
        assert kb_config.get_config() is config
