# steps.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional

from .commands import (
    CdoMergeTime,
    CdoSetTimeUnitsDays,
    CdoShiftTime,
    FileCommand,
    NcattedAddGlobalAttributes,
    NcattedAppendCoordinates,
    NcattedDeleteGlobalAttributes,
    NcattedSetVariableAttribute,
    NcksAppendGrid,
    NcrenameDimension,
    NcrenameVariable,
)
from .errors import InfeasibleRequestError, StructuralPolicyError, UnknownStageError, UnsupportedConversionError
from .policies import DECADE, YEARS_PER_DECADE, frequency_commands, unit_commands
from .step import DEFAULT_NAMING, FIXED_FILENAME_NAMING, BaseStep, IndividualStep, MergeStep


# global attributes the model / CDO leave behind and CMIP does not want
STALE_GLOBAL_ATTRIBUTES = ["output_schedule", "history", "CDO", "CDI", "Conventions"]

# mean values are stamped at the end of their interval, move them to the middle
MEAN_TIMESTAMP_SHIFT = {
    "1hr": "-30minutes",
    "3hr": "-90minutes",
    "6hr": "-3hour",
    "day": "-12hour",
    "mon": "-15day",
    "yr": "-182day",
}


class MergeFiles(MergeStep):
    def file_commands(self) -> List[FileCommand]:
        return [CdoMergeTime()]


class ApplyCmorFilename(IndividualStep):
    def file_commands(self) -> List[FileCommand]:
        return []


class ApplyGrid(IndividualStep):
    def file_commands(self) -> List[FileCommand]:
        if self.info.grid_description_file is None:
            raise StructuralPolicyError("no grid description file given", step=self.tag)
        return [
            # leading '.' : only rename if the dimension exists
            NcrenameDimension(".nodes_2d", "ncells"),
            NcrenameDimension(".nodes_3d", "ncells"),
            NcksAppendGrid(self.info.grid_description_file),
            NcattedAppendCoordinates(self.info.variable_id),
        ]


class ApplyLocalAttributes(IndividualStep):
    renames_variable = True

    def file_commands(self) -> List[FileCommand]:
        info = self.info
        cmds: List[FileCommand] = []
        current = self.variable_name or info.source_variable_name
        if current != info.variable_id:
            cmds.append(NcrenameVariable(current, info.variable_id))
        for attribute, value in (
            ("description", info.description),
            ("standard_name", info.standard_name),
            ("cell_methods", info.cell_methods),
            ("cell_measures", info.cell_measures),
        ):
            if value:
                cmds.append(NcattedSetVariableAttribute(info.variable_id, attribute, value))
        return cmds


class ApplyGlobalAttributes(IndividualStep):
    def file_commands(self) -> List[FileCommand]:
        return [
            NcattedDeleteGlobalAttributes(STALE_GLOBAL_ATTRIBUTES),
            NcattedAddGlobalAttributes(self.info.global_attributes.as_dict()),
        ]


class FesomMeanTimestampAdjust(IndividualStep):
    def file_commands(self) -> List[FileCommand]:
        frequency = self.info.source_frequency
        if frequency.endswith("Pt"):  # instantaneous values are stamped correctly
            return []
        shift = MEAN_TIMESTAMP_SHIFT.get(frequency)
        if shift is None:
            raise UnsupportedConversionError("timestamp", frequency, "interval middle", step=self.tag)
        return [CdoShiftTime(shift)]


class TimeSecondsToDays(IndividualStep):
    def file_commands(self) -> List[FileCommand]:
        return [CdoSetTimeUnitsDays()]


class TimeMean(BaseStep):
    """
    Downsample to the target frequency.

    Anything finer than a decade is reduced file by file. A decade needs
    exactly ten years: the step waits for them and refuses to build a mean
    from any other number.
    """

    def _decadal(self) -> bool:
        return self.info.target_frequency == DECADE

    def can_process(self, total_expected_groups: int) -> bool:
        if not self._decadal():
            return True

        years = self.accumulated_years()
        if len(years) == YEARS_PER_DECADE:
            return True
        if len(years) > YEARS_PER_DECADE or self.inputs_seen >= total_expected_groups:
            raise InfeasibleRequestError(
                f"can not create a decadal mean from {len(years)} years",
                step=self.tag,
                details={"years": f"{years[0]}-{years[-1]}", "required": YEARS_PER_DECADE},
            )
        return False

    def forwarded_total(self, total_expected_groups: int) -> int:
        if self._decadal():
            return max(1, total_expected_groups // YEARS_PER_DECADE)
        return total_expected_groups

    def file_commands(self) -> List[FileCommand]:
        return frequency_commands(self.info.source_frequency, self.info.target_frequency)


class FesomUnitToCmorUnit(IndividualStep):
    def file_commands(self) -> List[FileCommand]:
        info = self.info
        return unit_commands(info.source_unit, info.target_unit, self.variable_name or info.source_variable_name)


# ----------------------------------------------------------------------
# Registry
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class StageSpec:
    tag: str
    step_class: type
    naming: object = DEFAULT_NAMING

    def create(self, next_step: Optional[BaseStep]) -> BaseStep:
        return self.step_class(next_step, tag=self.tag, naming=self.naming)


STEP_REGISTRY: Dict[str, StageSpec] = {
    "merge_files": StageSpec("MERGEFILES", MergeFiles),
    "apply_cmor_filename": StageSpec("APPLY_CMOR_FILENAME", ApplyCmorFilename, FIXED_FILENAME_NAMING),
    "apply_grid": StageSpec("APPLY_GRID", ApplyGrid),
    "apply_local_attributes": StageSpec("APPLY_LOCAL_ATTRIBUTES", ApplyLocalAttributes),
    "apply_global_attributes": StageSpec("APPLY_GLOBAL_ATTRIBUTES", ApplyGlobalAttributes),
    "fesom_mean_timestamp_adjust": StageSpec("FESOM_MEAN_TIMESTAMP_ADJUST", FesomMeanTimestampAdjust),
    "time_seconds_to_days": StageSpec("TIME_SECONDS_TO_DAYS", TimeSecondsToDays),
    "time_mean": StageSpec("TIME_MEAN", TimeMean),
    "fesom_unit_to_cmor_unit": StageSpec("FESOM_UNIT_TO_CMOR_UNIT", FesomUnitToCmorUnit),
}


def resolve_stages(names: Iterable[str], registry: Mapping[str, StageSpec] = STEP_REGISTRY) -> List[StageSpec]:
    """Look up every stage token up front so a typo fails before any work starts."""
    specs: List[StageSpec] = []
    for name in names:
        spec = registry.get(str(name).lower())
        if spec is None:
            raise UnknownStageError(
                f"unknown stage '{name}'",
                details={"known": ", ".join(sorted(registry))},
            )
        specs.append(spec)
    return specs
