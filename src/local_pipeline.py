"""
Local orchestration entrypoint for the DOSE convergence pipeline.

Runs, in order:

1. DOSE RAW ingestion (download, or read a local CSV)
2. PROCESSED panel for the two target years
3. CURATED convergence dataset (one row per region)
4. Regressions (unconditional OLS + country fixed effects)
5. Convergence scatter plot

Intended usage (local):

    PYTHONPATH=src python -m local_pipeline --initial-year 2000 --final-year 2019

Pass `--source path/to/DOSE.csv` to skip the download, and
`--countries DEU FRA` to restrict the panel.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from adapters import LocalStorageAdapter, StorageAdapter
from analysis import build_convergence_scatter, build_regression_summary
from analysis.convergence_regressions import MIN_REGRESSION_ROWS
from env_loader import env_int, load_dotenv_if_present
from ingestion_api.dose_ingestion import (
    DOSE_SOURCE_URL,
    ingest_dose_raw,
    is_url,
    read_dose_csv,
)
from transformations import (
    ConvergenceDatasetBuilder,
    build_dose_panel,
    save_convergence_dataset_parquet,
    save_dose_panel_parquet_partitions,
    summarize_exclusions,
)
from transformations.convergence_dataset import EXCLUSION_REASONS, validate_target_years

load_dotenv_if_present()

DEFAULT_INITIAL_YEAR = env_int("CONVERGENCE_INITIAL_YEAR", 2000)
DEFAULT_FINAL_YEAR = env_int("CONVERGENCE_FINAL_YEAR", 2019)

Artefacts = Dict[str, List[Union[Path, str]]]


def run_convergence_pipeline(
    storage: StorageAdapter,
    *,
    initial_year: int = DEFAULT_INITIAL_YEAR,
    final_year: int = DEFAULT_FINAL_YEAR,
    countries: Optional[Iterable[str]] = None,
    source: Union[str, Path] = DOSE_SOURCE_URL,
    builder: Optional[ConvergenceDatasetBuilder] = None,
    tag: str = "",
) -> Artefacts:
    """
    Run every step against `storage` and return the generated artefacts.

    Parameters
    ----------
    storage:
        Backend for raw/, processed/, curated/ and analytics/.
    initial_year, final_year:
        The two years compared; validated before anything is read.
    countries:
        Optional ISO3 codes restricting the panel.
    source:
        DOSE CSV. An http(s) URL is downloaded into the RAW layer first;
        anything else is read as a local path.
    builder:
        ConvergenceDatasetBuilder to use (default: packaged continent table).
    tag:
        Label prefixed to the step messages, e.g. "cloud".

    Returns
    -------
    artefacts:
        Dictionary mapping step names to the generated paths or keys.
        "regressions" and "scatter" are empty when fewer than
        MIN_REGRESSION_ROWS regions remain.
    """
    # fail before any download
    target_years = validate_target_years((initial_year, final_year))
    artefacts: Artefacts = {}
    prefix = f"[{tag} " if tag else "["

    print(f"{prefix}1/5] Loading DOSE RAW from {source}...")
    source_str = str(source)
    if is_url(source_str):
        raw_key = ingest_dose_raw(storage, url=source_str)
        raw_df = read_dose_csv(raw_key, storage=storage)
        artefacts["dose_raw"] = [raw_key]
    else:
        raw_df = read_dose_csv(source_str)
        artefacts["dose_raw"] = [Path(source_str)]
    print(f"      {len(raw_df)} RAW rows.")

    print(f"{prefix}2/5] Building PROCESSED panel for years {target_years}...")
    panel = build_dose_panel(raw_df, years=target_years, countries=countries)
    artefacts["dose_panel"] = save_dose_panel_parquet_partitions(panel, storage=storage)
    print(f"      {len(panel)} region-year observations.")

    print(f"{prefix}3/5] Building CURATED convergence dataset...")
    builder = builder or ConvergenceDatasetBuilder()
    convergence_df = builder.build_frame(panel, target_years)
    summary = summarize_exclusions(panel, target_years)
    reasons = ", ".join(f"{reason}={summary[reason]}" for reason in EXCLUSION_REASONS)
    print(f"[convergence] {summary['included']} of {summary['regions']} regions kept ({reasons})")
    artefacts["convergence_dataset"] = [
        save_convergence_dataset_parquet(convergence_df, target_years, storage=storage),
    ]

    if len(convergence_df) < MIN_REGRESSION_ROWS:
        print(
            f"[analysis] Only {len(convergence_df)} regions in the convergence dataset; "
            "skipping regressions and scatter plot."
        )
        artefacts["regressions"] = []
        artefacts["scatter"] = []
        return artefacts

    horizon = target_years[1] - target_years[0]
    print(f"{prefix}4/5] Fitting convergence regressions...")
    artefacts["regressions"] = [
        build_regression_summary(convergence_df, storage=storage, horizon_years=horizon),
    ]

    print(f"{prefix}5/5] Drawing convergence scatter...")
    artefacts["scatter"] = [
        build_convergence_scatter(
            convergence_df,
            storage=storage,
            title=f"Regional convergence {target_years[0]}-{target_years[1]}",
        ),
    ]

    print("\nPipeline completed successfully.")
    return artefacts


def run_local_pipeline(
    *,
    initial_year: int = DEFAULT_INITIAL_YEAR,
    final_year: int = DEFAULT_FINAL_YEAR,
    countries: Optional[Iterable[str]] = None,
    source: Union[str, Path] = DOSE_SOURCE_URL,
    root_dir: Union[str, Path] = ".",
) -> Artefacts:
    """Run the pipeline on the local filesystem below `root_dir`."""
    storage = LocalStorageAdapter(root_dir)
    return run_convergence_pipeline(
        storage,
        initial_year=initial_year,
        final_year=final_year,
        countries=countries,
        source=source,
    )


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(
        description="Run the DOSE regional convergence pipeline locally.",
    )
    parser.add_argument("--initial-year", type=int, default=DEFAULT_INITIAL_YEAR)
    parser.add_argument("--final-year", type=int, default=DEFAULT_FINAL_YEAR)
    parser.add_argument(
        "--countries",
        nargs="*",
        default=None,
        help="Optional ISO3 country codes to keep (default: all).",
    )
    parser.add_argument(
        "--source",
        type=str,
        default=DOSE_SOURCE_URL,
        help="DOSE CSV URL or local path (default: DOSE_SOURCE_URL).",
    )
    parser.add_argument(
        "--root-dir",
        type=str,
        default=".",
        help="Directory under which raw/, processed/, curated/ and analytics/ are written.",
    )

    args = parser.parse_args()
    artefacts = run_local_pipeline(
        initial_year=args.initial_year,
        final_year=args.final_year,
        countries=args.countries,
        source=args.source,
        root_dir=args.root_dir,
    )
    for step, items in artefacts.items():
        for item in items:
            print(f"{step}: {item}")


__all__ = ["run_convergence_pipeline", "run_local_pipeline"]
