# commands.py
# Thin wrappers around the CDO / NCO command line tools.
# A step only ever talks to these through FileCommand.run(inputs, output).

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path
from typing import Dict, List, Sequence

from .errors import CommandFailure


TOOL_HINTS = {
    "cdo": "Install the Climate Data Operators (e.g. conda install -c conda-forge cdo) or fix PATH.",
    "ncatted": "Install NCO (e.g. conda install -c conda-forge nco) or fix PATH.",
    "ncrename": "Install NCO (e.g. conda install -c conda-forge nco) or fix PATH.",
    "ncks": "Install NCO (e.g. conda install -c conda-forge nco) or fix PATH.",
}

SYSTEM_COMMANDS = sorted(TOOL_HINTS)


def missing_system_commands() -> List[str]:
    return [name for name in SYSTEM_COMMANDS if shutil.which(name) is None]


class FileCommand:
    """
    One external transformation.

    Contract:
      - run(inputs, output) is synchronous and leaves `output` populated, or raises
      - in_place commands modify their single input; run() renames it to `output`
        afterwards so callers never have to care
    """
    in_place = False

    def argv(self, inputs: Sequence[Path], output: Path) -> List[str]:
        raise NotImplementedError(f"{type(self).__name__} must implement argv()")

    @property
    def name(self) -> str:
        return type(self).__name__

    def run(self, inputs: Sequence[Path], output: Path) -> None:
        inputs = [Path(p) for p in inputs]
        output = Path(output)
        if self.in_place and len(inputs) != 1:
            raise ValueError(f"{self.name} works in place and needs exactly one input, got {len(inputs)}")

        argv = self.argv(inputs, output)
        _execute(self.name, argv)

        if self.in_place:
            shutil.move(str(inputs[0]), str(output))

    def __repr__(self) -> str:
        fields = ", ".join(f"{k}={v!r}" for k, v in vars(self).items())
        return f"{self.name}({fields})"

    def __eq__(self, other: object) -> bool:
        return type(self) is type(other) and vars(self) == vars(other)

    def __hash__(self) -> int:
        return hash((type(self), tuple(sorted((k, repr(v)) for k, v in vars(self).items()))))


def _execute(command: str, argv: List[str]) -> None:
    try:
        proc = subprocess.run(
            argv,
            shell=False,
            text=True,
            capture_output=True,
        )
    except FileNotFoundError:
        tool = argv[0]
        raise CommandFailure(
            command=command,
            argv=argv,
            exit_code=127,
            stderr=f"{tool}: command not found",
            hint=TOOL_HINTS.get(tool, f"Install {tool} or fix PATH."),
        ) from None

    if proc.returncode != 0:
        raise CommandFailure(
            command=command,
            argv=argv,
            exit_code=proc.returncode,
            stderr=proc.stderr[-4000:],
        )


# ----------------------------------------------------------------------
# CDO
# ----------------------------------------------------------------------

class CdoCommand(FileCommand):
    """`cdo <operator>[,params] inputs... output`; several inputs are joined with -mergetime."""

    def __init__(self, operator: str, *params):
        self.operator = operator
        self.params = tuple(params)

    def argv(self, inputs: Sequence[Path], output: Path) -> List[str]:
        op = ",".join([self.operator, *(str(p) for p in self.params)])
        args = ["cdo", "-O", op]
        if len(inputs) > 1 and self.operator != "mergetime":
            args.append("-mergetime")
        args.extend(str(p) for p in inputs)
        args.append(str(output))
        return args


class CdoMergeTime(CdoCommand):
    def __init__(self):
        super().__init__("mergetime")


class CdoMulc(CdoCommand):
    """Multiply every value by a constant."""

    def __init__(self, factor: float):
        super().__init__("mulc", factor)
        self.factor = factor


class CdoAddc(CdoCommand):
    """Shift every value by a signed constant; K -> degC uses -273.15."""

    def __init__(self, constant: float):
        super().__init__("addc", constant)
        self.constant = constant


class CdoShiftTime(CdoCommand):
    def __init__(self, shift: str):
        super().__init__("shifttime", shift)


class CdoSetTimeUnitsDays(CdoCommand):
    def __init__(self):
        super().__init__("settunits", "days")


# ----------------------------------------------------------------------
# NCO (all of these edit the file in place)
# ----------------------------------------------------------------------

def _ncatted_value(value) -> str:
    # ncatted needs commas escaped inside text attributes
    return str(value).replace(",", "\\,")


class NcattedSetVariableAttribute(FileCommand):
    in_place = True

    def __init__(self, variable: str, attribute: str, value: str):
        self.variable = variable
        self.attribute = attribute
        self.value = value

    def argv(self, inputs: Sequence[Path], output: Path) -> List[str]:
        spec = f"{self.attribute},{self.variable},o,c,{_ncatted_value(self.value)}"
        return ["ncatted", "-O", "-a", spec, str(inputs[0])]


class NcattedAppendCoordinates(FileCommand):
    in_place = True

    def __init__(self, variable: str):
        self.variable = variable

    def argv(self, inputs: Sequence[Path], output: Path) -> List[str]:
        return ["ncatted", "-O", "-a", f"coordinates,{self.variable},o,c,lat lon", str(inputs[0])]


class NcattedDeleteGlobalAttributes(FileCommand):
    in_place = True

    def __init__(self, names: Sequence[str]):
        self.names = list(names)

    def argv(self, inputs: Sequence[Path], output: Path) -> List[str]:
        args = ["ncatted", "-O", "-h"]
        for n in self.names:
            args.extend(["-a", f"{n},global,d,,"])
        args.append(str(inputs[0]))
        return args


class NcattedAddGlobalAttributes(FileCommand):
    in_place = True

    def __init__(self, attributes: Dict[str, object]):
        self.attributes = dict(attributes)

    def argv(self, inputs: Sequence[Path], output: Path) -> List[str]:
        args = ["ncatted", "-O", "-h"]
        for key in sorted(self.attributes):
            value = self.attributes[key]
            if isinstance(value, bool) or not isinstance(value, int):
                args.extend(["-a", f"{key},global,o,c,{_ncatted_value(value)}"])
            else:
                args.extend(["-a", f"{key},global,o,i,{value}"])
        args.append(str(inputs[0]))
        return args


class NcrenameVariable(FileCommand):
    in_place = True

    def __init__(self, old: str, new: str):
        self.old = old
        self.new = new

    def argv(self, inputs: Sequence[Path], output: Path) -> List[str]:
        return ["ncrename", "-O", "-v", f"{self.old},{self.new}", str(inputs[0])]


class NcrenameDimension(FileCommand):
    """Rename a dimension; a leading '.' makes it optional (no error if absent)."""
    in_place = True

    def __init__(self, old: str, new: str):
        self.old = old
        self.new = new

    def argv(self, inputs: Sequence[Path], output: Path) -> List[str]:
        return ["ncrename", "-O", "-d", f"{self.old},{self.new}", str(inputs[0])]


class NcksAppendGrid(FileCommand):
    """Append lat/lon (and bounds) from the grid description file."""
    in_place = True

    def __init__(self, grid_description_file: str | Path):
        self.grid_description_file = str(grid_description_file)

    def argv(self, inputs: Sequence[Path], output: Path) -> List[str]:
        return ["ncks", "-A", "-h", self.grid_description_file, str(inputs[0])]
