"""
Tests for scripts/parse_response.py — the command-line entry point.
"""

import os
import json
import importlib.util

import pytest

SCRIPT = os.path.join(os.path.dirname(__file__), "..", "scripts", "parse_response.py")


@pytest.fixture
def cli(monkeypatch):
    monkeypatch.delenv("TRACKER_CONFIG_PATH", raising=False)
    spec = importlib.util.spec_from_file_location("parse_response_script", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_parses_response_file(cli, tmp_path, capsys, decoy_response):
    path = tmp_path / "response.txt"
    path.write_text(decoy_response, encoding="utf-8")
    assert cli.main([str(path)]) == 0
    data = json.loads(capsys.readouterr().out)
    assert data["stats"] == {"Health": 80}


def test_markdown_output_against_previous_state(cli, tmp_path, capsys):
    previous = tmp_path / "state.json"
    previous.write_text(json.dumps({"quests": {"main": "Escape"}}), encoding="utf-8")
    response = tmp_path / "response.txt"
    response.write_text("```json\n{\"level\": 2}\n```", encoding="utf-8")
    assert cli.main([str(response), "--previous", str(previous), "--markdown"]) == 0
    assert capsys.readouterr().out.strip() == "# Level\n2\n# Quests\n## Main\nEscape"


def test_no_tracker_exit_code(cli, tmp_path):
    path = tmp_path / "response.txt"
    path.write_text("Only prose.", encoding="utf-8")
    assert cli.main([str(path)]) == 1


def test_schema(cli, capsys):
    assert cli.main(["--schema", "--markdown"]) == 0
    assert capsys.readouterr().out.startswith("```markdown\n# Stats")
