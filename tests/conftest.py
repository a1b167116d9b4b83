"""Shared fixtures: a small hand-checked knowledge base."""

import copy

import pytest

from knowledge_base import config as kb_config
from knowledge_base.loader import KnowledgeBase
from problem_analyzer import config as analyzer_config


SAMPLE_DATA = {
    "archetypes": [
        {"code": "A1", "name": "Capital Structure", "tier": 1, "time_allocation_minutes": 12,
         "point_value": "15-20", "keywords": ["bond", "debt"]},
        {"code": "A3", "name": "CAPM & Cost of Capital", "tier": 1, "time_allocation_minutes": 10,
         "point_value": 10, "keywords": ["beta"]},
        {"code": "A4", "name": "Distress & Priority", "tier": 2, "time_allocation_minutes": 10},
    ],
    "keywords": [
        {"keyword": "bond", "weight": 1, "archetypes": ["A1"]},
        {"keyword": "hazard rate", "weight": 3, "archetypes": ["A1"]},
        {"keyword": "tax shield", "weight": 4, "archetypes": ["A1"]},
        {"keyword": "beta", "weight": 3, "archetypes": ["A3"]},
        {"keyword": "wacc", "weight": 3, "archetypes": ["A3"]},
        {"keyword": "debt", "weight": 1, "archetypes": ["A1", "A4"]},
        {"keyword": "liquidation", "weight": 2, "archetypes": ["A4"]},
    ],
    "strong_signals": [
        {"keywords": ["beta", "wacc"], "archetype": "A3", "confidence": 90},
    ],
    "deviations": [
        {
            "code": "DEV-1.1.1",
            "name": "Hazard Rate Default Modeling",
            "description": "Survival declines every year under a hazard rate.",
            "category": "default_modeling",
            "severity": "critical",
            "time_impact_minutes": 3.5,
            "detection_triggers": ["hazard rate", "hazard"],
            "detection_patterns": ["/hazard\\s+rate/i", "/annual.*hazard/i", "/([unclosed/"],
            "related_archetypes": ["A1"],
            "checkpoints": ["S(t) = (1-h)^t"],
            "common_errors": ["Averaging returns"],
            "formula_hints": ["E[CF_t] = S(t) x CF_t"],
        },
        {
            "code": "DEV-1.2.1",
            "name": "Amortizing Debt",
            "description": "Principal declines every period.",
            "category": "debt_structure",
            "severity": "high",
            "time_impact_minutes": 3.0,
            "detection_triggers": ["amortizing", "principal payments"],
            "detection_patterns": ["/amortiz(ing|ation)/i"],
            "related_archetypes": ["A1"],
            "checkpoints": ["Interest on beginning balance"],
        },
        {
            "code": "DEV-4.1.1",
            "name": "Beta Unlevering",
            "description": "Unlever comparable betas first.",
            "category": "cost_of_capital",
            "severity": "high",
            "time_impact_minutes": 2.5,
            "detection_triggers": ["unlever", "asset beta"],
            "detection_patterns": ["/un-?lever/i"],
            "related_archetypes": ["A3"],
        },
        {
            "code": "DEV-9.9.9",
            "name": "Quoted Yield",
            "description": "Yield quotes ignore default.",
            "category": "default_modeling",
            "severity": "low",
            "time_impact_minutes": 1.0,
            "detection_triggers": ["ytm"],
            "detection_patterns": ["/\\bYTM\\b/"],
            "related_archetypes": ["A1"],
        },
    ],
    "problems": [
        {"id": "P-1", "archetype": "A1", "deviations": ["DEV-1.1.1"], "keywords": ["hazard rate", "bond"],
         "problem_text": "A bond with a hazard rate of default."},
        {"id": "P-2", "archetype": "A3", "deviations": ["DEV-4.1.1"], "keywords": ["beta", "wacc"],
         "problem_text": "Unlever the beta of a comparable firm."},
        {"id": "P-3", "archetype": "A4", "deviations": [], "keywords": ["liquidation"],
         "problem_text": "Distribute the liquidation value."},
    ],
}

SCENARIO_TEXT = "The bond has a 5% annual hazard rate of default with amortizing principal payments."


@pytest.fixture(autouse=True)
def reset_configs():
    """Each test starts from default configuration."""
    kb_config.reset_config()
    analyzer_config.reset_config()
    yield
    kb_config.reset_config()
    analyzer_config.reset_config()


@pytest.fixture
def sample_data():
    return copy.deepcopy(SAMPLE_DATA)


@pytest.fixture
def kb(sample_data):
    """Knowledge base built from the sample data."""
    return KnowledgeBase.from_dict(sample_data)


@pytest.fixture
def kb_dir(tmp_path, sample_data):
    """Sample data written out as registry files."""
    import json

    files = {
        "archetypes.json": {"archetypes": sample_data["archetypes"]},
        "keyword-mappings.json": {
            "keywords": sample_data["keywords"],
            "strong_signals": sample_data["strong_signals"],
        },
        "deviation-registry.json": {"deviations": sample_data["deviations"]},
        "problems.json": {"problems": sample_data["problems"]},
    }
    for name, content in files.items():
        (tmp_path / name).write_text(json.dumps(content), encoding="utf-8")
    return tmp_path


@pytest.fixture(scope="session")
def bundled_kb():
    """Knowledge base loaded from the bundled data files."""
    return KnowledgeBase.from_directory(kb_config.BUNDLED_DATA_DIR, config=kb_config.KnowledgeBaseConfig())
