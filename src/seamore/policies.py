# policies.py
"""
Transition tables that turn a declared target (frequency, unit) into the
FileCommand objects needed to get there.

Both lookups are pure: they can be asked speculatively (e.g. while matching
variables against a data request) without committing to anything.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Optional, Tuple

from .commands import CdoAddc, CdoCommand, CdoMulc, FileCommand, NcattedSetVariableAttribute
from .errors import UnsupportedConversionError


DECADE = "dec"
YEARS_PER_DECADE = 10


# ----------------------------------------------------------------------
# Frequency downsampling
# ----------------------------------------------------------------------

def _mean(operator: str) -> Callable[[], FileCommand]:
    return lambda: CdoCommand(operator)


FREQUENCY_TRANSITIONS: Dict[Tuple[str, str], Callable[[], FileCommand]] = {
    ("1hr", "day"): _mean("daymean"),
    ("3hr", "day"): _mean("daymean"),
    ("6hr", "day"): _mean("daymean"),
    ("3hrPt", "day"): _mean("daymean"),
    ("day", "mon"): _mean("monmean"),
    ("day", "yr"): _mean("yearmean"),
    ("mon", "yr"): _mean("yearmean"),
    # a decade arrives as ten files, timmean reduces all of them at once
    ("day", DECADE): _mean("timmean"),
    ("mon", DECADE): _mean("timmean"),
    ("yr", DECADE): _mean("timmean"),
}


def frequency_supported(source: str, target: str) -> bool:
    return source == target or (source, target) in FREQUENCY_TRANSITIONS


def frequency_commands(source: str, target: str) -> List[FileCommand]:
    if source == target:
        return []
    factory = FREQUENCY_TRANSITIONS.get((source, target))
    if factory is None:
        raise UnsupportedConversionError("frequency", source, target)
    return [factory()]


# ----------------------------------------------------------------------
# Units
# ----------------------------------------------------------------------
# value: None -> only the spelling differs, nothing to do
#        ("mulc", x) -> multiply by x
#        ("addc", x) -> shift by the signed constant x

UNIT_TRANSITIONS: Dict[Tuple[str, str], Optional[Tuple[str, float]]] = {
    ("K", "degC"): ("addc", -273.15),
    ("degC", "K"): ("addc", 273.15),
    ("1", "%"): ("mulc", 100),
    ("m/s", "kg m-2 s-1"): ("mulc", 1000),  # freshwater flux, rho = 1000 kg m-3
    ("m", "km"): ("mulc", 0.001),
    ("psu", "0.001"): None,
    ("m/s", "m s-1"): None,
    ("m2/s2", "m2 s-2"): None,
    ("m3/s", "m3 s-1"): None,
    ("1/s", "s-1"): None,
    ("N/m2", "N m-2"): None,
    ("N/m^2", "N m-2"): None,
    ("W/m2", "W m-2"): None,
    ("W/m^2", "W m-2"): None,
    ("kg/m2/s", "kg m-2 s-1"): None,
    ("kg/(s*m2)", "kg m-2 s-1"): None,
    ("m2/s", "m2 s-1"): None,
    ("C", "degC"): None,
    ("deg C", "degC"): None,
    ("", "1"): None,
}

_AFFINE = {
    "mulc": CdoMulc,
    "addc": CdoAddc,
}


def unit_supported(source: str, target: str) -> bool:
    """Never raises: False for every pair `unit_commands` would reject."""
    try:
        return source == target or (source, target) in UNIT_TRANSITIONS
    except TypeError:
        # unhashable garbage from a caller probing feasibility
        return False


def unit_commands(source: str, target: str, variable_id: str = "") -> List[FileCommand]:
    """
    Commands converting `source` unit values to `target`.

    The affine transform (if any) is followed by rewriting the variable's
    `units` attribute, so the file states what it now contains.
    """
    if source == target:
        return []
    try:
        transform = UNIT_TRANSITIONS[(source, target)]
    except KeyError:
        raise UnsupportedConversionError("unit", source, target) from None
    if transform is None:
        return []

    operator, constant = transform
    return [
        _AFFINE[operator](constant),
        NcattedSetVariableAttribute(variable_id, "units", target),
    ]
