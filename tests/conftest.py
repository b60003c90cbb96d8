"""
Shared fixtures: fake file commands and a stage registry built from them,
so chains can run end to end in tmp_path without CDO/NCO installed.
"""

from pathlib import Path

import pytest

from seamore.attributes import create_global_attributes
from seamore.commands import FileCommand
from seamore.errors import CommandFailure
from seamore.model import Experiment, SourceFile, StepInfo, TargetVariable
from seamore.step import FIXED_FILENAME_NAMING, IndividualStep, MergeStep
from seamore.steps import StageSpec
from seamore.ui.console import Console, set_console


class RecordingCommand(FileCommand):
    """Writes the concatenated input text plus `+label` into the output."""

    def __init__(self, label, log, in_place=False, fail_when=None):
        self.label = label
        self.log = log
        self.in_place = in_place
        self.fail_when = fail_when
        self.calls = []

    def run(self, inputs, output):
        self.log.append(self.label)
        self.calls.append(([Path(p) for p in inputs], Path(output)))
        if self.fail_when is not None and self.fail_when():
            raise CommandFailure(command=self.label, argv=[self.label], exit_code=1, stderr="boom")
        if self.in_place:
            src = Path(inputs[0])
            src.write_text(src.read_text() + f"+{self.label}")
            src.rename(output)
        else:
            Path(output).write_text("".join(Path(p).read_text() for p in inputs) + f"+{self.label}")


def make_step(base, commands):
    class FakeStep(base):
        def file_commands(self):
            return commands()

    return FakeStep


@pytest.fixture(autouse=True)
def quiet_console():
    set_console(Console(debug=False))
    yield
    set_console(Console(debug=False))


@pytest.fixture
def command_log():
    return []


@pytest.fixture
def switches():
    return {"fail": False}


@pytest.fixture
def registry(command_log, switches):
    log = command_log
    return {
        "copy": StageSpec("COPY", make_step(IndividualStep, lambda: [RecordingCommand("copy", log)])),
        "touch": StageSpec("TOUCH", make_step(IndividualStep, lambda: [RecordingCommand("touch", log, in_place=True)])),
        "merge": StageSpec("MERGE", make_step(MergeStep, lambda: [RecordingCommand("merge", log)])),
        "flaky": StageSpec(
            "FLAKY",
            make_step(IndividualStep, lambda: [RecordingCommand("flaky", log, fail_when=lambda: switches["fail"])]),
        ),
        "final_name": StageSpec("FINAL_NAME", make_step(IndividualStep, lambda: []), FIXED_FILENAME_NAMING),
    }


@pytest.fixture
def experiment(tmp_path):
    return Experiment(
        outdir=tmp_path / "out",
        experiment_id="historical",
        source_id="AWI-CM-1-1-MR",
        activity_id="CMIP",
        variant_label="r1i1p1f1",
        nominal_resolution="25 km",
        grid_txt="FESOM 1.4 unstructured grid",
        data_request_version="01.00.27",
    )


@pytest.fixture
def target():
    return TargetVariable(
        variable_id="tos",
        table_id="Oday",
        frequency="day",
        unit="degC",
        realms=["ocean"],
        description="Sea Surface Temperature",
        standard_name="sea_surface_temperature",
        cell_methods="area: mean where sea time: mean",
        cell_measures="area: areacello",
    )


@pytest.fixture
def source_files(tmp_path):
    src = tmp_path / "src"
    src.mkdir()
    files = []
    for year in (2000, 2001, 2002):
        p = src / f"sst.fesom.{year}.nc"
        p.write_text(f"sst{year}")
        files.append(SourceFile(path=p, year=year, unit="degC", frequency="day", variable_id="sst"))
    return files


@pytest.fixture
def step_info(tmp_path, experiment, target):
    outdir = tmp_path / "out"
    outdir.mkdir(exist_ok=True)
    return StepInfo(
        outdir=outdir,
        grid_description_file=tmp_path / "griddes.nc",
        global_attributes=create_global_attributes(experiment, target, first_year=2000, last_year=2002,
                                                   version_date="20181218"),
        source_variable_name="sst",
        source_frequency="day",
        source_unit="degC",
        target_unit="degC",
        target_frequency="day",
        variable_id="tos",
        description=target.description,
        standard_name=target.standard_name,
        cell_methods=target.cell_methods,
        cell_measures=target.cell_measures,
    )
