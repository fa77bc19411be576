"""
Transformations layer
----------------------

RAW DOSE -> PROCESSED panel -> CURATED convergence dataset, plus the
continent mapping used to classify countries.
"""

from .continent_mapping import (  # noqa: F401
    CONTINENT_MAPPING_CSV,
    CONTINENT_MAPPING_OVERRIDES_CSV,
    ContinentClassifier,
    default_continent_classifier,
    load_continent_mapping,
    save_continent_mapping_parquet,
)
from .dose_panel import (  # noqa: F401
    PROCESSED_OUTPUT_DIR as DOSE_PANEL_OUTPUT_DIR,
    Observation,
    build_dose_panel,
    observations_to_panel,
    panel_to_observations,
    save_dose_panel_parquet_partitions,
)
from .convergence_dataset import (  # noqa: F401
    CONVERGENCE_COLUMNS,
    CURATED_OUTPUT_DIR as CONVERGENCE_OUTPUT_DIR,
    UNRESOLVED_CONTINENT,
    ConvergenceDatasetBuilder,
    ConvergenceRecord,
    InvalidConfiguration,
    build_convergence_dataframe,
    build_convergence_records,
    save_convergence_dataset_parquet,
    summarize_exclusions,
)

__all__ = [
    "CONTINENT_MAPPING_CSV",
    "CONTINENT_MAPPING_OVERRIDES_CSV",
    "CONVERGENCE_COLUMNS",
    "CONVERGENCE_OUTPUT_DIR",
    "DOSE_PANEL_OUTPUT_DIR",
    "UNRESOLVED_CONTINENT",
    "ContinentClassifier",
    "ConvergenceDatasetBuilder",
    "ConvergenceRecord",
    "InvalidConfiguration",
    "Observation",
    "build_convergence_dataframe",
    "build_convergence_records",
    "build_dose_panel",
    "default_continent_classifier",
    "load_continent_mapping",
    "observations_to_panel",
    "panel_to_observations",
    "save_continent_mapping_parquet",
    "save_convergence_dataset_parquet",
    "save_dose_panel_parquet_partitions",
    "summarize_exclusions",
]
