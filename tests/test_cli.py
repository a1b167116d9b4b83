"""Tests for the problem-analyzer and knowledge-base command-line interfaces."""

import json

import pytest
from click.testing import CliRunner

from knowledge_base.cli import main as kb_cli
from problem_analyzer.cli import main as analyzer_cli

from conftest import SCENARIO_TEXT


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep user and working-directory config files out of the tests."""
    monkeypatch.delenv("PROBLEM_ANALYZER_CONFIG", raising=False)
    monkeypatch.delenv("KNOWLEDGE_BASE_DIR", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def runner():
    return CliRunner()


class TestAnalyzeCommand:
    """Tests for problem-analyzer analyze."""

    def test_json_output(self, runner):
        result = runner.invoke(analyzer_cli, ["analyze", "--text", SCENARIO_TEXT, "-j"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["archetypes"]["archetype"] == "A1"
        assert [d["code"] for d in data["deviations"]["items"]] == ["DEV-1.1.1", "DEV-1.2.1"]
        assert data["time_allocation_minutes"] == 18.5

    def test_problem_file(self, runner, tmp_path):
        problem = tmp_path / "problem.txt"
        problem.write_text(SCENARIO_TEXT, encoding="utf-8")
        result = runner.invoke(analyzer_cli, ["analyze", str(problem)])
        assert result.exit_code == 0
        assert "Time allocation: 18.5 min" in result.output

    def test_save_json(self, runner, tmp_path):
        out = tmp_path / "report.json"
        result = runner.invoke(analyzer_cli, ["analyze", "--text", SCENARIO_TEXT, "-j", "-o", str(out)])
        assert result.exit_code == 0
        assert json.loads(out.read_text(encoding="utf-8"))["archetypes"]["archetype"] == "A1"

    def test_disable_sections(self, runner):
        result = runner.invoke(analyzer_cli, [
            "analyze", "--text", SCENARIO_TEXT, "-j",
            "--no-calculations", "--no-examples", "--no-deviations",
        ])
        data = json.loads(result.output)
        assert data["calculations"] is None
        assert data["deviations"] is None
        assert data["similar_examples"] == []

    def test_max_examples(self, runner):
        result = runner.invoke(analyzer_cli, ["analyze", "--text", SCENARIO_TEXT, "-j", "-n", "1"])
        assert len(json.loads(result.output)["similar_examples"]) == 1

    def test_missing_input(self, runner):
        result = runner.invoke(analyzer_cli, ["analyze"])
        assert result.exit_code == 2
        assert "Provide a problem FILE or --text" in result.output

    def test_custom_data_dir(self, runner, kb_dir, sample_data):
        deviations = sample_data["deviations"]
        deviations[0]["detection_patterns"] = deviations[0]["detection_patterns"][:2]
        (kb_dir / "deviation-registry.json").write_text(json.dumps({"deviations": deviations}))
        result = runner.invoke(analyzer_cli, [
            "analyze", "--text", SCENARIO_TEXT, "-j", "--data-dir", str(kb_dir),
        ])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["comparison"]["closest_comp"]["id"] == "P-1"

    def test_config_file(self, runner, tmp_path):
        config = tmp_path / "analyzer-config.yaml"
        config.write_text("report:\n  include_calculations: false\n")
        result = runner.invoke(analyzer_cli, ["analyze", "--text", SCENARIO_TEXT, "-j", "-c", str(config)])
        assert json.loads(result.output)["calculations"] is None


class TestDeviationsCommand:
    def test_json_output(self, runner):
        result = runner.invoke(analyzer_cli, [
            "deviations", "--text", "the asset beta is 0.8", "-a", "A3", "-j",
        ])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["deviations"][0]["code"] == "DEV-4.1.1"
        assert data["deviations"][0]["confidence"] == "MEDIUM"
        assert data["metadata"]["archetype_context"] == "A3"

    def test_formatted_output(self, runner):
        result = runner.invoke(analyzer_cli, ["deviations", "--text", "nothing to see"])
        assert result.exit_code == 0
        assert "No deviations detected" in result.output


class TestCompareCommand:
    def test_comparable_found(self, runner):
        result = runner.invoke(analyzer_cli, ["compare", "A3-002", "--threshold", "0.4", "-j"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["has_comp"] is True
        assert data["closest_comp"]["id"] == "A3-001"

    def test_default_threshold(self, runner):
        result = runner.invoke(analyzer_cli, ["compare", "A3-002", "-j"])
        assert json.loads(result.output)["has_comp"] is False

    def test_unknown_problem(self, runner):
        result = runner.invoke(analyzer_cli, ["compare", "Z9-999"])
        assert result.exit_code == 1
        assert "Problem Z9-999 not found" in result.output


class TestInitConfigCommand:
    def test_creates_file(self, runner, tmp_path):
        out = tmp_path / "my-config.yaml"
        result = runner.invoke(analyzer_cli, ["init-config", "--out", str(out)])
        assert result.exit_code == 0
        assert out.exists()

    def test_refuses_overwrite(self, runner, tmp_path):
        out = tmp_path / "my-config.yaml"
        out.write_text("{}")
        result = runner.invoke(analyzer_cli, ["init-config", "--out", str(out)])
        assert result.exit_code == 1
        assert out.read_text() == "{}"

    def test_force_overwrite(self, runner, tmp_path):
        out = tmp_path / "my-config.yaml"
        out.write_text("{}")
        result = runner.invoke(analyzer_cli, ["init-config", "--out", str(out), "--force"])
        assert result.exit_code == 0
        assert "detection" in out.read_text()


class TestKnowledgeBaseCommands:
    """Tests for the knowledge-base CLI."""

    def test_validate_bundled(self, runner):
        result = runner.invoke(kb_cli, ["validate"])
        assert result.exit_code == 0

    def test_validate_reports_issues(self, runner, kb_dir):
        result = runner.invoke(kb_cli, ["validate", "--data-dir", str(kb_dir)])
        assert result.exit_code == 1
        assert "Invalid pattern" in result.output

    def test_stats(self, runner):
        result = runner.invoke(kb_cli, ["stats"])
        assert result.exit_code == 0
        assert "Knowledge Base Statistics" in result.output

    def test_guide_json(self, runner):
        result = runner.invoke(kb_cli, ["guide", "A1", "-j", "-n", "1"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["code"] == "A1"
        assert [e["id"] for e in data["examples"]] == ["A1-001"]
        assert data["deviations"][0]["severity"] == "critical"

    def test_guide_unknown_archetype(self, runner):
        result = runner.invoke(kb_cli, ["guide", "A9"])
        assert result.exit_code == 1
        assert "Archetype A9 not found" in result.output
