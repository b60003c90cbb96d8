# seamore_workflow.py
# Example workflow: yearly FESOM output of one experiment -> CMIP6 files.
from __future__ import annotations

from pathlib import Path

from seamore import ChainTask, Experiment, SourceFile, StepsChain, TargetVariable

SOURCE_DIR = Path("fesom_output")
OUTDIR = Path("cmorized")
GRID_FILE = Path("grids/fesom_core2_griddes_nodes.nc")
YEARS = range(2000, 2010)

EXPERIMENT = Experiment(
    outdir=OUTDIR,
    experiment_id="historical",
    source_id="AWI-CM-1-1-MR",
    activity_id="CMIP",
    variant_label="r1i1p1f1",
    nominal_resolution="25 km",
    grid_txt="FESOM 1.4 (unstructured grid in the horizontal with 830305 wet nodes)",
    data_request_version="01.00.27",
)

DEFAULT_STAGES = [
    "merge_files",
    "fesom_unit_to_cmor_unit",
    "apply_local_attributes",
    "apply_grid",
    "apply_global_attributes",
    "apply_cmor_filename",
]


def sources(variable: str, unit: str, frequency: str) -> list[SourceFile]:
    return [
        SourceFile(
            path=SOURCE_DIR / f"{variable}.fesom.{year}.nc",
            year=year,
            unit=unit,
            frequency=frequency,
            variable_id=variable,
        )
        for year in YEARS
    ]


def workflow():
    return [
        ChainTask(
            chain=StepsChain(DEFAULT_STAGES, "sst_day", "tos_Oday"),
            source_files=sources("sst", "degC", "day"),
            experiment=EXPERIMENT,
            target=TargetVariable(
                variable_id="tos",
                table_id="Oday",
                frequency="day",
                unit="degC",
                realms=["ocean"],
                description="Sea Surface Temperature",
                standard_name="sea_surface_temperature",
                cell_methods="area: mean where sea time: mean",
                cell_measures="area: areacello",
            ),
            grid_description_file=GRID_FILE,
            version_date="20181218",
        ),
        ChainTask(
            chain=StepsChain(["time_mean", "merge_files", "fesom_unit_to_cmor_unit",
                              "apply_local_attributes", "apply_grid", "apply_global_attributes",
                              "apply_cmor_filename"], "a_ice_day", "siconc_SImon"),
            source_files=sources("a_ice", "1", "day"),
            experiment=EXPERIMENT,
            target=TargetVariable(
                variable_id="siconc",
                table_id="SImon",
                frequency="mon",
                unit="%",
                realms=["seaIce"],
                description="Percentage of grid cell covered by sea ice",
                standard_name="sea_ice_area_fraction",
                cell_methods="area: mean where sea time: mean",
                cell_measures="area: areacello",
            ),
            grid_description_file=GRID_FILE,
            version_date="20181218",
        ),
    ]
