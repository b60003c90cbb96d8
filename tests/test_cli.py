"""
Tests for the command line interface
====================================
"""

import pytest
from click.testing import CliRunner

from seamore import cli as cli_module
from seamore.cli import cli


@pytest.fixture
def runner():
    return CliRunner()


def test_stages_lists_registry(runner):
    result = runner.invoke(cli, ["stages"])
    assert result.exit_code == 0
    assert "merge_files" in result.output
    assert "APPLY_CMOR_FILENAME" in result.output


def test_check_reports_missing_tools(runner, monkeypatch):
    monkeypatch.setattr(cli_module, "missing_system_commands", lambda: ["cdo"])
    result = runner.invoke(cli, ["check"])
    assert result.exit_code == 1


def test_check_all_found(runner, monkeypatch):
    monkeypatch.setattr(cli_module, "missing_system_commands", lambda: [])
    result = runner.invoke(cli, ["check"])
    assert result.exit_code == 0
    assert "All external tools found." in result.output


def test_run_empty_workflow(runner, tmp_path):
    wf = tmp_path / "empty_workflow.py"
    wf.write_text("TASKS = []\n")

    result = runner.invoke(cli, ["run", "--workflow", str(wf), "-j", "1"])

    assert result.exit_code == 0
    assert "RESULTS" in result.output
    assert "Chains: 0" in result.output


def test_run_missing_workflow(runner, tmp_path):
    result = runner.invoke(cli, ["run", "--workflow", str(tmp_path / "missing_workflow.py")])
    assert result.exit_code == 1


def test_run_without_any_workflow(runner, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    result = runner.invoke(cli, ["run"])
    assert result.exit_code == 1


def test_run_reports_failed_chains(runner, tmp_path, monkeypatch):
    wf = tmp_path / "broken_workflow.py"
    wf.write_text("TASKS = []\n")
    monkeypatch.setattr(cli_module, "run_chains", lambda tasks, max_workers: {"a_day ==> b_Amon": "failed"})

    result = runner.invoke(cli, ["run", "--workflow", str(wf)])

    assert result.exit_code == 1
    assert "FAILED" in result.output


def test_find_workflow_files(tmp_path):
    for name in ("seamore_workflow.py", "hist_workflow.py", "notes.py"):
        (tmp_path / name).write_text("TASKS = []\n")

    found = cli_module.find_workflow_files(tmp_path)

    assert [p.name for p in found] == ["hist_workflow.py", "seamore_workflow.py"]


def test_run_picks_the_only_workflow(runner, tmp_path, monkeypatch):
    (tmp_path / "hist_workflow.py").write_text("TASKS = []\n")
    monkeypatch.chdir(tmp_path)

    result = runner.invoke(cli, ["run", "-j", "1"])

    assert result.exit_code == 0
    assert "Workflow: hist_workflow.py" in result.output


def test_run_refuses_to_guess_between_workflows(runner, tmp_path, monkeypatch):
    for name in ("hist_workflow.py", "ssp_workflow.py"):
        (tmp_path / name).write_text("TASKS = []\n")
    monkeypatch.chdir(tmp_path)

    result = runner.invoke(cli, ["run"])

    assert result.exit_code == 1


def test_run_accepts_workflow_without_suffix(runner, tmp_path):
    (tmp_path / "hist_workflow.py").write_text("TASKS = []\n")

    result = runner.invoke(cli, ["run", "--workflow", str(tmp_path / "hist_workflow"), "-j", "1"])

    assert result.exit_code == 0
