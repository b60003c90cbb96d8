"""
Tests for workflow loading and the parallel chain runner
========================================================
"""

import textwrap

import pytest

from seamore.chain import StepsChain
from seamore.errors import CommandFailure
from seamore.runner import ChainTask, default_workers, load_workflow, run_chains


WORKFLOW_HEADER = textwrap.dedent(
    """
    from pathlib import Path

    from seamore import ChainTask, Experiment, SourceFile, StepsChain, TargetVariable

    EXPERIMENT = Experiment(
        outdir=Path("out"),
        experiment_id="historical",
        source_id="AWI-CM-1-1-MR",
        activity_id="CMIP",
        variant_label="r1i1p1f1",
        nominal_resolution="25 km",
        grid_txt="FESOM",
        data_request_version="01.00.27",
    )
    TARGET = TargetVariable(variable_id="tos", table_id="Oday", frequency="day", unit="degC")
    FILES = [SourceFile(path=Path(f"sst.{y}.nc"), year=y, unit="degC", frequency="day") for y in (2000, 2001)]


    def task(stages, source="sst_day", target="tos_Oday"):
        return ChainTask(StepsChain(stages, source, target), FILES, EXPERIMENT, TARGET, None, "20181218")
    """
)


@pytest.fixture
def write_workflow(tmp_path):
    def _write(body, name="test_workflow.py"):
        path = tmp_path / name
        path.write_text(WORKFLOW_HEADER + textwrap.dedent(body))
        return path

    return _write


def _task(chain, source_files, experiment, target):
    return ChainTask(chain, source_files, experiment, target, None, "20181218")


class TestChainTask:
    def test_name_contains_chain_and_years(self, registry, source_files, experiment, target):
        task = _task(StepsChain(["copy"], "sst_day", "tos_Oday", registry=registry), source_files, experiment, target)
        assert task.name == "sst_day ==> tos_Oday 2000-2002"

    def test_run_uses_the_name_as_context(self, registry, source_files, experiment, target, capsys):
        task = _task(StepsChain(["merge"], "sst_day", "tos_Oday", registry=registry), source_files, experiment, target)

        final = task.run()

        assert final.exists()
        assert "[sst_day ==> tos_Oday 2000-2002] STATUS: success" in capsys.readouterr().out


class TestRunChains:
    def test_failure_does_not_stop_siblings(self, registry, switches, source_files, experiment, target, capsys):
        switches["fail"] = True
        good = _task(StepsChain(["merge"], "sst_day", "tos_Oday", registry=registry), source_files, experiment, target)
        bad = _task(StepsChain(["merge", "flaky"], "sst_day", "tos_Omon", registry=registry),
                    source_files, experiment, target)

        results = run_chains([good, bad], max_workers=2)

        assert results == {good.name: "ok", bad.name: "failed"}
        err = capsys.readouterr().err
        assert f"[{bad.name}] CHAIN FAILED: {bad.name}" in err

    def test_failed_command_hint_is_printed(self, registry, source_files, experiment, target, monkeypatch, capsys):
        task = _task(StepsChain(["copy"], "sst_day", "tos_Oday", registry=registry), source_files, experiment, target)

        def boom(self):
            raise CommandFailure(command="cdo", argv=["cdo"], exit_code=127, hint="install cdo")

        monkeypatch.setattr(ChainTask, "run", boom)

        assert run_chains([task], max_workers=1) == {task.name: "failed"}
        assert "Hint: install cdo" in capsys.readouterr().err

    def test_no_tasks(self):
        assert run_chains([]) == {}

    def test_default_workers(self):
        assert default_workers() >= 1


class TestLoadWorkflow:
    def test_tasks_list(self, write_workflow):
        path = write_workflow(
            """
            TASKS = [task(["merge_files"]), task(["merge_files"], target="tos_Omon")]
            """
        )

        tasks = load_workflow(path)

        assert [t.name for t in tasks] == ["sst_day ==> tos_Oday 2000-2001", "sst_day ==> tos_Omon 2000-2001"]

    def test_workflow_function_wins(self, write_workflow):
        path = write_workflow(
            """
            TASKS = []

            def workflow():
                return [task(["time_mean", "merge_files"])]
            """
        )

        (task,) = load_workflow(path)

        assert task.chain.stage_names == ["time_mean", "merge_files"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_workflow(tmp_path / "nope.py")

    def test_not_python(self, tmp_path):
        path = tmp_path / "workflow.yml"
        path.write_text("tasks: []\n")
        with pytest.raises(ValueError, match=r"\.py"):
            load_workflow(path)

    def test_wrong_type(self, write_workflow):
        path = write_workflow(
            """
            TASKS = {"a": 1}
            """
        )
        with pytest.raises(TypeError):
            load_workflow(path)

    def test_nothing_defined(self, tmp_path):
        path = tmp_path / "empty_workflow.py"
        path.write_text("X = 1\n")
        with pytest.raises(TypeError):
            load_workflow(path)

    def test_duplicate_chains(self, write_workflow):
        path = write_workflow(
            """
            TASKS = [task(["merge_files"]), task(["apply_grid"])]
            """
        )
        with pytest.raises(ValueError, match="Duplicate"):
            load_workflow(path)

    def test_unknown_stage_surfaces_at_load_time(self, write_workflow):
        path = write_workflow(
            """
            TASKS = [task(["merge_files", "frobnicate"])]
            """
        )
        with pytest.raises(ValueError, match="frobnicate"):
            load_workflow(path)
