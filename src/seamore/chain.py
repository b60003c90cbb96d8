# chain.py
from __future__ import annotations

from pathlib import Path
from typing import List, Mapping, Optional, Sequence

from .attributes import create_global_attributes
from .errors import IncompleteChainError
from .model import ExecutionContext, Experiment, SourceFile, StepInfo, TargetVariable
from .step import BaseStep
from .steps import STEP_REGISTRY, StageSpec, resolve_stages
from .ui.console import get_console


def _split_description(description: str, what: str) -> tuple[str, str]:
    # variable names may contain '_' (a_ice_day), the suffix never does
    name, sep, suffix = description.rpartition("_")
    if not sep or not name or not suffix:
        raise ValueError(f"{what} description must look like <name>_<suffix>, got: {description!r}")
    return name, suffix


class StepsChain:
    """
    The ordered stages converting one source variable (`<var>_<frequency>`) into
    one target variable of a table (`<variable_id>_<table_id>`).

    Stage names are validated here; step objects are only created inside
    `execute`, fresh for every call, so one chain object can be executed from
    several threads at once.
    """

    def __init__(
        self,
        stage_names: Sequence[str],
        source_description: str,
        target_description: str,
        registry: Mapping[str, StageSpec] = STEP_REGISTRY,
    ):
        self.input_variable_name, self.input_frequency_name = _split_description(source_description, "source")
        self.cmor_variable_id, self.cmor_table_id = _split_description(target_description, "target")

        self.stage_names = list(stage_names)
        if not self.stage_names:
            raise ValueError(f"chain {self} must have at least one stage")
        self._specs: List[StageSpec] = resolve_stages(self.stage_names, registry)

    def __str__(self) -> str:
        return f"{self.input_variable_name}_{self.input_frequency_name} ==> {self.cmor_variable_id}_{self.cmor_table_id}"

    def uniqueness_prefix(self, first_year: int, last_year: int) -> str:
        # has to be sufficient to avoid name collisions with any other chain
        return (
            f"_{self.input_variable_name}_{self.input_frequency_name}"
            f"--{self.cmor_variable_id}_{self.cmor_table_id}_{first_year}-{last_year}"
        )

    def track_variable_names(self, steps: Sequence[BaseStep]) -> None:
        """Tell every step under which name it finds the data variable."""
        current = self.input_variable_name
        for s in steps:
            s.variable_name = current
            if s.renames_variable:
                current = self.cmor_variable_id

    def build_steps(self) -> List[BaseStep]:
        steps: List[BaseStep] = []
        next_step: Optional[BaseStep] = None
        for spec in reversed(self._specs):
            next_step = spec.create(next_step)
            steps.append(next_step)
        steps.reverse()
        return steps

    def execute(
        self,
        source_files: Sequence[SourceFile],
        experiment: Experiment,
        target: TargetVariable,
        grid_description_file: str | Path | None,
        version_date: str,
        *,
        context: ExecutionContext | None = None,
    ) -> Path:
        """
        Run all stages over `source_files` and return the final artifact.

        Steps whose output (or a later step's output) already exists are not
        run again. Intermediate files are removed once the final one exists;
        after a failure everything produced so far stays for inspection and
        for the next attempt to resume from.
        """
        if not source_files:
            raise ValueError(f"chain {self} got no source files")
        console = get_console()
        years = [f.year for f in source_files]
        first_year, last_year = min(years), max(years)
        if context is None:
            context = ExecutionContext(f"{self} {first_year}-{last_year}")

        outdir = Path(experiment.outdir)
        outdir.mkdir(parents=True, exist_ok=True)

        steps = self.build_steps()
        steps[0].forbid_inplace = True  # do not modify the original input files
        steps[0].initial_prefix = self.uniqueness_prefix(first_year, last_year)

        global_attributes = create_global_attributes(
            experiment,
            target,
            first_year=first_year,
            last_year=last_year,
            version_date=version_date,
        )
        info = StepInfo(
            outdir=outdir,
            grid_description_file=Path(grid_description_file) if grid_description_file else None,
            global_attributes=global_attributes,
            source_variable_name=self.input_variable_name,
            source_frequency=self.input_frequency_name,
            source_unit=source_files[0].unit,
            target_unit=target.unit,
            target_frequency=target.frequency,
            variable_id=target.variable_id,
            description=target.description,
            standard_name=target.standard_name,
            cell_methods=target.cell_methods,
            cell_measures=target.cell_measures,
        )
        for s in steps:
            s.set_info(info)
            s.context = context
        self.track_variable_names(steps)

        console.print_chain_started(str(self), [s.tag for s in steps], context=context)

        # dry run: computes every step's result paths without touching storage
        self._feed(steps, source_files, should_execute=False)
        if steps[-1].resultpath is None:
            raise IncompleteChainError(
                "last stage never received all of its inputs",
                step=steps[-1].tag,
                details={"chain": str(self), "files": len(source_files)},
            )

        # resume from the last step whose results are all on disk
        last_existing_index = -1
        for i, step in enumerate(steps):
            if step.resultpaths and all(p.exists() for p in step.resultpaths):
                last_existing_index = i
        for i, step in enumerate(steps):
            step.needs_to_run = last_existing_index < i
        console.print_resume(steps[last_existing_index].tag if last_existing_index >= 0 else None, context=context)

        self._feed(steps, source_files, should_execute=True)

        final_paths = steps[-1].resultpaths
        if all(p.exists() for p in final_paths):
            removed = self._cleanup(steps)
            console.print_cleanup(removed, context=context)
        console.print_success(steps[-1].resultpath, context=context)
        return steps[-1].resultpath

    @staticmethod
    def _feed(steps: List[BaseStep], source_files: Sequence[SourceFile], *, should_execute: bool) -> None:
        for s in steps:
            s.begin_pass()
        for f in source_files:
            steps[0].add_input(f.path, [f.year], len(source_files), should_execute)

    @staticmethod
    def _cleanup(steps: List[BaseStep]) -> List[Path]:
        """
        Delete every intermediate result; the first step made a copy of the originals.

        Numbered command temporaries (`<resultpath>.<i>`) of any step, left
        behind by an interrupted earlier attempt, go too.
        """
        keep = set(steps[-1].resultpaths)
        removed: List[Path] = []
        owned = {p.name for s in steps for p in s.resultpaths}
        outdirs = {p.parent for s in steps for p in s.resultpaths}
        for outdir in outdirs:
            for candidate in sorted(outdir.iterdir()):
                base, _, index = candidate.name.rpartition(".")
                if index.isdigit() and base in owned and candidate.is_file():
                    candidate.unlink()
                    removed.append(candidate)
        for s in steps[:-1]:
            for p in s.resultpaths:
                # an in-place command may already have renamed it away
                if p in keep or not p.exists():
                    continue
                p.unlink()
                removed.append(p)
        return removed
