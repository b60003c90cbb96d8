# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .attributes import GlobalAttributes


@dataclass(frozen=True)
class SourceFile:
    """One year of model output, already inspected by the caller."""
    path: Path
    year: int
    unit: str
    frequency: str
    variable_id: str = ""


@dataclass(frozen=True)
class ParentExperiment:
    experiment_id: str
    source_id: str
    activity_id: str
    variant_label: str
    first_year: int
    branch_year: int


@dataclass
class Experiment:
    """
    Everything about the simulation that ends up in the global attributes.

    `outdir` is where every artifact of every chain of this experiment lives.
    """
    outdir: Path
    experiment_id: str
    source_id: str
    activity_id: str
    variant_label: str
    nominal_resolution: str
    grid_txt: str
    data_request_version: str
    grid_label: str = "gn"
    institution_id: str = "AWI"
    parent: Optional[ParentExperiment] = None


@dataclass
class TargetVariable:
    """A resolved data request entry for one table."""
    variable_id: str
    table_id: str
    frequency: str
    unit: str
    realms: List[str] = field(default_factory=list)
    description: str = ""
    standard_name: str = ""
    cell_methods: str = ""
    cell_measures: str = ""


@dataclass(frozen=True)
class StepInfo:
    """Read-only bundle every step of a chain receives before its first input."""
    outdir: Path
    grid_description_file: Optional[Path]
    global_attributes: "GlobalAttributes"
    source_variable_name: str
    source_frequency: str
    source_unit: str
    target_unit: str
    target_frequency: str
    variable_id: str
    description: str = ""
    standard_name: str = ""
    cell_methods: str = ""
    cell_measures: str = ""


@dataclass(frozen=True)
class ExecutionContext:
    """Label of one chain run, used to prefix its output lines."""
    name: str

    def __str__(self) -> str:
        return self.name
