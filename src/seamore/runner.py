# runner.py
from __future__ import annotations

import os
import runpy
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .chain import StepsChain
from .errors import CommandFailure
from .model import ExecutionContext, Experiment, SourceFile, TargetVariable
from .ui.console import get_console


@dataclass
class ChainTask:
    """One chain together with everything its `execute` needs."""
    chain: StepsChain
    source_files: Sequence[SourceFile]
    experiment: Experiment
    target: TargetVariable
    grid_description_file: str | Path | None
    version_date: str

    @property
    def name(self) -> str:
        years = [f.year for f in self.source_files]
        if not years:
            return str(self.chain)
        return f"{self.chain} {min(years)}-{max(years)}"

    def run(self) -> Path:
        return self.chain.execute(
            self.source_files,
            self.experiment,
            self.target,
            self.grid_description_file,
            self.version_date,
            context=ExecutionContext(self.name),
        )


def default_workers() -> int:
    c = os.cpu_count() or 2
    return max(1, c - 1)


# ----------------------------------------------------------------------
# Workflow loading (local file)
# ----------------------------------------------------------------------

def load_workflow(path: str | Path) -> List[ChainTask]:
    """
    Load chain tasks from a python file path.

    The file must define either:
      - workflow() -> List[ChainTask]
      - TASKS = [ChainTask, ...]
    """
    wf_path = Path(path).expanduser().resolve()
    if not wf_path.exists():
        raise FileNotFoundError(f"Workflow file not found: {wf_path}")
    if wf_path.suffix != ".py":
        raise ValueError(f"Workflow must be a .py file, got: {wf_path.name}")

    module_name = f"seamore_workflow_{wf_path.stem}"
    globals_dict = runpy.run_path(str(wf_path), run_name=module_name)

    tasks = None
    if "workflow" in globals_dict and callable(globals_dict["workflow"]):
        tasks = globals_dict["workflow"]()
    elif "TASKS" in globals_dict:
        tasks = globals_dict["TASKS"]

    if not isinstance(tasks, list) or not all(isinstance(t, ChainTask) for t in tasks):
        raise TypeError(
            "Workflow must return/define a List[ChainTask]. "
            "Define workflow() -> List[ChainTask] or TASKS = [ChainTask, ...]."
        )

    names = [t.name for t in tasks]
    dupes = sorted({n for n in names if names.count(n) > 1})
    if dupes:
        # identical names mean identical uniqueness prefixes, i.e. colliding files
        raise ValueError(f"Duplicate chain tasks found: {dupes}")

    return tasks


# ----------------------------------------------------------------------
# Execution
# ----------------------------------------------------------------------

def _run_task(task: ChainTask) -> tuple[str, str]:
    task.run()
    return task.name, "ok"


def run_chains(tasks: Sequence[ChainTask], *, max_workers: int | None = None) -> Dict[str, str]:
    """
    Run every chain task, one per worker thread.

    Chains share nothing but the output directory, so a failing chain is
    reported and recorded as "failed" while its siblings carry on.
    Nothing is retried: running again resumes from what is on disk.
    """
    console = get_console()
    if max_workers is None:
        max_workers = default_workers()

    results: Dict[str, str] = {t.name: "pending" for t in tasks}

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = {pool.submit(_run_task, t): t for t in tasks}

        for future in as_completed(futures):
            task = futures[future]
            try:
                name, status = future.result()
                results[name] = status
            except Exception as e:
                results[task.name] = "failed"
                hint: Optional[str] = e.hint if isinstance(e, CommandFailure) else None
                console.print_failure(task.name, str(e), hint=hint, context=ExecutionContext(task.name))

    return results
