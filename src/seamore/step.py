# step.py
from __future__ import annotations

import shutil
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from .commands import FileCommand
from .errors import StructuralPolicyError
from .model import ExecutionContext, StepInfo
from .ui.console import get_console


# keeps result names well below the usual 255 byte limit even for long chains
MAX_TAG_LENGTH = 24


# ----------------------------------------------------------------------
# Naming policies
# ----------------------------------------------------------------------
# A result path may only depend on the step tag, the chain prefix or the
# upstream basename, and the years. Never on what the commands produced:
# the chain computes every path in a dry pass before anything runs.

class DefaultNaming:
    def outpath(self, step: "BaseStep", inputs: Sequence[Path], years: Sequence[int]) -> Path:
        tag = step.tag[:MAX_TAG_LENGTH]
        first, last = years[0], years[-1]
        if step.initial_prefix is not None:
            name = f"{step.initial_prefix}_{first}-{last}.{tag}"
        elif len(inputs) > 1:
            name = f"{Path(inputs[0]).name}.{first}-{last}.{tag}"
        else:
            name = f"{Path(inputs[0]).name}.{tag}"
        return Path(step.info.outdir) / name


class FixedFilenameNaming:
    """Use the externally mandated file name from the global attributes."""

    def outpath(self, step: "BaseStep", inputs: Sequence[Path], years: Sequence[int]) -> Path:
        if len(inputs) > 1:
            raise StructuralPolicyError(
                "a fixed file name can not represent several inputs",
                step=step.tag,
                details={"inputs": len(inputs)},
            )
        if step.firings:
            # one name for the whole chain: a second firing would overwrite the first
            raise StructuralPolicyError(
                "a fixed file name can not represent several input sets",
                step=step.tag,
                details={"years": f"{years[0]}-{years[-1]}", "earlier": step.resultpath},
            )
        return Path(step.info.outdir) / step.info.global_attributes.filename


DEFAULT_NAMING = DefaultNaming()
FIXED_FILENAME_NAMING = FixedFilenameNaming()


# ----------------------------------------------------------------------
# Steps
# ----------------------------------------------------------------------

class BaseStep:
    """
    Accumulates (artifact, years) inputs until `can_process` says so, then pipes
    them through `file_commands()` into a deterministic result path and hands
    that on to the next step.
    """

    # set on stages that rename the data variable to its target id
    renames_variable = False

    def __init__(self, next_step: Optional["BaseStep"] = None, *, tag: str | None = None, naming=None):
        self.next_step = next_step
        self.tag = tag or type(self).__name__
        self.naming = naming or DEFAULT_NAMING

        self.forbid_inplace = False
        self.initial_prefix: str | None = None
        self.needs_to_run = True
        # name of the data variable in the files this step receives
        self.variable_name: str | None = None
        self.context: ExecutionContext | None = None
        self.info: StepInfo | None = None

        self.resultpaths: List[Path] = []
        self.inputs_seen = 0
        self.firings = 0
        self._available_inputs: Dict[FrozenSet[int], Path] = {}

    def begin_pass(self) -> None:
        """Forget inputs of a previous pass; result paths are kept."""
        self._available_inputs.clear()
        self.inputs_seen = 0
        self.firings = 0

    def set_info(self, info: StepInfo) -> None:
        self.info = info

    @property
    def resultpath(self) -> Path | None:
        return self.resultpaths[-1] if self.resultpaths else None

    def accumulated_years(self) -> Tuple[int, ...]:
        return tuple(sorted(y for k in self._available_inputs for y in k))

    # ---- readiness ----

    def can_process(self, total_expected_groups: int) -> bool:
        raise NotImplementedError(f"{type(self).__name__} must implement can_process()")

    def forwarded_total(self, total_expected_groups: int) -> int:
        """How many groups the next step will eventually receive from us."""
        return total_expected_groups

    def file_commands(self) -> List[FileCommand]:
        raise NotImplementedError(f"{type(self).__name__} must return its FileCommand objects")

    # ---- state machine ----

    def add_input(self, artifact: str | Path, years: Iterable[int], total_expected_groups: int, should_execute: bool) -> None:
        key = frozenset(int(y) for y in years)
        if not key:
            raise ValueError(f"{self.tag}: input {artifact} covers no years")
        for existing in self._available_inputs:
            if existing != key and not existing.isdisjoint(key):
                raise ValueError(
                    f"{self.tag}: years {sorted(key)} of {artifact} overlap already accumulated {sorted(existing)}"
                )
        self._available_inputs[key] = Path(artifact)
        self.inputs_seen += 1

        if not self.can_process(total_expected_groups):
            return

        sorted_keys = sorted(self._available_inputs, key=min)
        inputs = [self._available_inputs[k] for k in sorted_keys]
        sorted_years = sorted(y for k in sorted_keys for y in k)

        result = self._process(inputs, sorted_years, should_execute)
        self._available_inputs.clear()

        if self.next_step is not None:
            self.next_step.add_input(result, sorted_years, self.forwarded_total(total_expected_groups), should_execute)

    def _process(self, inputs: List[Path], years: List[int], should_execute: bool) -> Path:
        commands = list(self.file_commands())

        # the first step must never touch the caller's original files
        if self.forbid_inplace and all(c.in_place for c in commands):
            raise StructuralPolicyError(
                f"{self.tag} only modifies files in place but may not touch its inputs",
                step=self.tag,
                details={"commands": [c.name for c in commands]},
            )
        if not commands and len(inputs) > 1:
            raise StructuralPolicyError(
                "can not rename multiple inputs to a single output",
                step=self.tag,
                details={"inputs": ", ".join(str(p) for p in inputs)},
            )

        opath = self.naming.outpath(self, inputs, years)
        self.firings += 1
        if opath not in self.resultpaths:
            self.resultpaths.append(opath)

        console = get_console()
        if not should_execute:
            console.print_debug(f"{self.tag} -> {opath.name}", context=self.context)
            return opath
        if not self.needs_to_run:
            console.print_step_skipped(self.tag, opath, context=self.context)
            return opath

        console.print_step(self.tag, [str(p) for p in inputs], opath, context=self.context)
        self._run_commands(commands, inputs, opath)
        return opath

    def _run_commands(self, commands: List[FileCommand], inputs: List[Path], opath: Path) -> None:
        command_inputs: List[Path] = list(inputs)
        command_opath: Path | None = None
        for i, cmd in enumerate(commands):
            command_opath = Path(f"{opath}.{i}")
            get_console().print_debug(f"  {cmd!r}", context=self.context)
            cmd.run(command_inputs, command_opath)
            if i > 0 and command_inputs[0].exists():
                # our own previous temporary; in-place commands have moved it already
                command_inputs[0].unlink()
            command_inputs = [command_opath]

        if command_opath is not None:
            shutil.move(str(command_opath), str(opath))
        else:
            shutil.move(str(inputs[0]), str(opath))


class IndividualStep(BaseStep):
    """Fires for every single input."""

    def can_process(self, total_expected_groups: int) -> bool:
        return True


class MergeStep(BaseStep):
    """Fires once every expected year group is there."""

    def can_process(self, total_expected_groups: int) -> bool:
        return len(self._available_inputs) == total_expected_groups

    def forwarded_total(self, total_expected_groups: int) -> int:
        return 1
