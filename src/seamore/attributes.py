"""CMIP6 global attributes shared read-only by every step of a chain."""

from __future__ import annotations

import re
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

from .model import Experiment, TargetVariable


NO_PARENT = "no parent"


class GlobalAttributes:
    """
    Immutable set of global attributes for one output file.

    Besides the attributes themselves it knows the CMIP6 file name they imply,
    which is the name the `apply_cmor_filename` stage produces.
    """

    def __init__(self, attributes: Mapping[str, Any], filename: str):
        self._attributes = MappingProxyType(dict(attributes))
        self._filename = filename

    @property
    def filename(self) -> str:
        return self._filename

    def as_dict(self) -> Dict[str, Any]:
        return dict(self._attributes)

    def __getitem__(self, key: str) -> Any:
        return self._attributes[key]

    def get(self, key: str, default: Any = None) -> Any:
        return self._attributes.get(key, default)

    def __repr__(self) -> str:
        return f"GlobalAttributes(filename={self._filename!r})"


class GlobalAttributesBuilder:
    def __init__(self) -> None:
        self._experiment: Optional[Dict[str, Any]] = None
        self._parent: Optional[Dict[str, Any]] = None
        self._variable: Optional[Dict[str, Any]] = None
        self._grid: Optional[Dict[str, Any]] = None

    def set_experiment_info(
        self,
        *,
        id: str,
        source_id: str,
        activity_id: str,
        variant_label: str,
        first_year: int,
        last_year: int,
        institution_id: str = "AWI",
    ) -> "GlobalAttributesBuilder":
        self._experiment = {
            "experiment_id": id,
            "source_id": source_id,
            "activity_id": activity_id,
            "variant_label": variant_label,
            "first_year": int(first_year),
            "last_year": int(last_year),
            "institution_id": institution_id,
        }
        return self

    def set_parent_experiment_info(
        self,
        *,
        id: str,
        source_id: str,
        activity_id: str,
        variant_label: str,
        first_year: int,
        branch_year: int,
    ) -> "GlobalAttributesBuilder":
        self._parent = {
            "parent_experiment_id": id,
            "parent_source_id": source_id,
            "parent_activity_id": activity_id,
            "parent_variant_label": variant_label,
            "parent_time_units": f"days since {first_year}-1-1",
            "branch_time_in_parent": f"{branch_year}",
        }
        return self

    def set_variable_info(self, *, id: str, frequency: str, table_id: str, realms: List[str]) -> "GlobalAttributesBuilder":
        self._variable = {
            "variable_id": id,
            "frequency": frequency,
            "table_id": table_id,
            "realm": " ".join(realms),
        }
        return self

    def set_grid_info(self, *, nominal_resolution: str, txt: str, grid_label: str = "gn") -> "GlobalAttributesBuilder":
        self._grid = {
            "nominal_resolution": nominal_resolution,
            "grid": txt,
            "grid_label": grid_label,
        }
        return self

    def build_global_attributes(self, *, version_date: str, data_specs_version: str) -> GlobalAttributes:
        missing = [name for name, part in (
            ("experiment", self._experiment),
            ("variable", self._variable),
            ("grid", self._grid),
        ) if part is None]
        if missing:
            raise ValueError(f"can not build global attributes, missing info: {', '.join(missing)}")

        exp = self._experiment
        var = self._variable
        grid = self._grid

        variant = exp["variant_label"]
        indices = _variant_indices(variant)

        attrs: Dict[str, Any] = {
            "activity_id": exp["activity_id"],
            "data_specs_version": data_specs_version,
            "experiment_id": exp["experiment_id"],
            "frequency": var["frequency"],
            "grid": grid["grid"],
            "grid_label": grid["grid_label"],
            "institution_id": exp["institution_id"],
            "mip_era": "CMIP6",
            "nominal_resolution": grid["nominal_resolution"],
            "realm": var["realm"],
            "source_id": exp["source_id"],
            "table_id": var["table_id"],
            "variable_id": var["variable_id"],
            "variant_label": variant,
            "version": f"v{version_date}",
            "Conventions": "CF-1.7 CMIP-6.2",
            **indices,
        }
        if self._parent:
            attrs.update(self._parent)
        else:
            attrs.update({
                "parent_experiment_id": NO_PARENT,
                "parent_source_id": NO_PARENT,
                "parent_activity_id": NO_PARENT,
                "parent_variant_label": NO_PARENT,
            })

        return GlobalAttributes(attrs, cmip_filename(attrs, exp["first_year"], exp["last_year"]))


_VARIANT_RE = re.compile(r"^r(\d+)i(\d+)p(\d+)f(\d+)$")


def _variant_indices(variant_label: str) -> Dict[str, int]:
    """r<k>i<l>p<m>f<n> -> the four CMIP6 index attributes."""
    m = _VARIANT_RE.match(variant_label)
    if not m:
        raise ValueError(f"variant_label must look like r1i1p1f1, got: {variant_label!r}")
    r, i, p, f = (int(g) for g in m.groups())
    return {
        "realization_index": r,
        "initialization_index": i,
        "physics_index": p,
        "forcing_index": f,
    }


def cmip_filename(attrs: Mapping[str, Any], first_year: int, last_year: int) -> str:
    parts = [
        attrs["variable_id"],
        attrs["table_id"],
        attrs["source_id"],
        attrs["experiment_id"],
        attrs["variant_label"],
        attrs["grid_label"],
    ]
    # fixed fields have no time range
    if attrs["frequency"] != "fx":
        parts.append(f"{first_year}-{last_year}")
    return "_".join(parts) + ".nc"


def create_global_attributes(
    experiment: Experiment,
    target: TargetVariable,
    *,
    first_year: int,
    last_year: int,
    version_date: str,
) -> GlobalAttributes:
    builder = GlobalAttributesBuilder()
    builder.set_experiment_info(
        id=experiment.experiment_id,
        source_id=experiment.source_id,
        activity_id=experiment.activity_id,
        variant_label=experiment.variant_label,
        first_year=first_year,
        last_year=last_year,
        institution_id=experiment.institution_id,
    )
    parent = experiment.parent
    if parent:
        builder.set_parent_experiment_info(
            id=parent.experiment_id,
            source_id=parent.source_id,
            activity_id=parent.activity_id,
            variant_label=parent.variant_label,
            first_year=parent.first_year,
            branch_year=parent.branch_year,
        )
    builder.set_variable_info(id=target.variable_id, frequency=target.frequency,
                              table_id=target.table_id, realms=target.realms)
    builder.set_grid_info(nominal_resolution=experiment.nominal_resolution,
                          txt=experiment.grid_txt, grid_label=experiment.grid_label)
    return builder.build_global_attributes(version_date=version_date,
                                           data_specs_version=experiment.data_request_version)
