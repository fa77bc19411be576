"""
Curated dataset: one row per region for β-convergence regressions.

Starting from the PROCESSED panel (region, country, year, income per
capita, population) and two target years, keeps the regions observed with
a valid income in both years, exactly once each, and derives:

    region_id            - opaque region key (DOSE GID_1)
    country_id           - country key (DOSE GID_0)
    initial_population   - population in the initial year
    initial_income       - income per capita in the initial year
    final_income         - income per capita in the final year
    growth_rate          - (ln(final) - ln(initial)) / (final_year - initial_year)
    continent            - continent of country_id, or UNRESOLVED_CONTINENT

Regions with no income, only one of the two years, or repeated
observations for a year are left out without raising; use
`summarize_exclusions` to count them. Any non-missing income counts, so a
zero income is kept and yields an infinite growth rate.

Partitioned output layout:

    curated/dose_convergence/years=<initial>-<final>/convergence_dataset.parquet
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

import numpy as np
import pandas as pd

from adapters import StorageAdapter
from .continent_mapping import default_continent_classifier
from .dose_panel import PANEL_COLUMNS, Observation, observations_to_panel

# Local output directory for the CURATED layer (curated/ on S3)
CURATED_OUTPUT_DIR = Path("curated") / "dose_convergence"
# Logical key prefix used when writing through a StorageAdapter
CURATED_BASE_PREFIX = "curated/dose_convergence"
CURATED_FILE_NAME = "convergence_dataset.parquet"

# Continent assigned when the classifier has no answer for a country
UNRESOLVED_CONTINENT = "unresolved"

CONVERGENCE_COLUMNS = [
    "region_id",
    "country_id",
    "initial_population",
    "initial_income",
    "final_income",
    "growth_rate",
    "continent",
]

# Exclusion counters reported by `summarize_exclusions`
EXCLUSION_REASONS = ("missing_income", "single_year", "duplicate_year")

ContinentLookup = Callable[[Any], Optional[str]]
PanelLike = Union[pd.DataFrame, Iterable[Union[Observation, Mapping[str, Any]]]]


class InvalidConfiguration(ValueError):
    """Raised when the target years do not define a two-point comparison."""


@dataclass(frozen=True)
class ConvergenceRecord:
    region_id: Any
    country_id: Any
    initial_population: float
    initial_income: float
    final_income: float
    growth_rate: float
    continent: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "region_id": self.region_id,
            "country_id": self.country_id,
            "initial_population": self.initial_population,
            "initial_income": self.initial_income,
            "final_income": self.final_income,
            "growth_rate": self.growth_rate,
            "continent": self.continent,
        }


def validate_target_years(target_years: Iterable[Any]) -> Tuple[int, int]:
    """
    Return the two target years as (initial, final).

    Raises InvalidConfiguration unless `target_years` holds exactly two
    distinct integer years.
    """
    if isinstance(target_years, (str, bytes)) or not isinstance(target_years, Iterable):
        raise InvalidConfiguration(
            f"target_years must be a collection of two years, got {target_years!r}",
        )

    years = set()
    for value in target_years:
        if isinstance(value, bool) or not isinstance(value, (int, float, np.integer, np.floating)):
            raise InvalidConfiguration(f"Invalid year in target_years: {value!r}")
        if not float(value).is_integer():
            raise InvalidConfiguration(f"Invalid year in target_years: {value!r}")
        years.add(int(value))

    if len(years) != 2:
        raise InvalidConfiguration(
            f"target_years must contain exactly two distinct years, got {sorted(years)}",
        )
    initial_year, final_year = sorted(years)
    return initial_year, final_year


def resolve_continent(country_id: Any, classify: ContinentLookup) -> str:
    """Classify `country_id`, falling back to UNRESOLVED_CONTINENT."""
    try:
        continent = classify(country_id)
    except (LookupError, ValueError, TypeError):
        return UNRESOLVED_CONTINENT
    if not isinstance(continent, str) or not continent.strip():
        return UNRESOLVED_CONTINENT
    return continent


def empty_convergence_frame() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "region_id": pd.Series(dtype="object"),
            "country_id": pd.Series(dtype="object"),
            "initial_population": pd.Series(dtype="float64"),
            "initial_income": pd.Series(dtype="float64"),
            "final_income": pd.Series(dtype="float64"),
            "growth_rate": pd.Series(dtype="float64"),
            "continent": pd.Series(dtype="object"),
        }
    )


def _as_panel(observations: PanelLike) -> pd.DataFrame:
    if isinstance(observations, pd.DataFrame):
        missing = set(PANEL_COLUMNS) - set(observations.columns)
        if missing:
            raise ValueError(f"Panel is missing required columns: {sorted(missing)}")
        return observations
    return observations_to_panel(observations)


def _valid_observations(panel: pd.DataFrame, years: Tuple[int, int]) -> pd.DataFrame:
    """Rows with a region, a non-missing income and one of the target years."""
    df = panel[PANEL_COLUMNS].copy()
    df["income_per_capita"] = pd.to_numeric(df["income_per_capita"], errors="coerce")
    df["year"] = pd.to_numeric(df["year"], errors="coerce")

    mask = (
        df["region_id"].notna()
        & df["income_per_capita"].notna()
        & df["year"].isin(years)
    )
    return df[mask.fillna(False).astype(bool)]


class ConvergenceDatasetBuilder:
    """
    Turns a region-year panel into one ConvergenceRecord per region.

    The continent classifier is injected; by default the packaged ISO3
    table is used. It may return None or raise LookupError/ValueError for
    codes it does not know: those records get UNRESOLVED_CONTINENT.
    """

    def __init__(self, classify_continent: Optional[ContinentLookup] = None) -> None:
        if classify_continent is None:
            classify_continent = default_continent_classifier()
        self.classify_continent = classify_continent

    def build(self, observations: PanelLike, target_years: Iterable[int]) -> List[ConvergenceRecord]:
        years = validate_target_years(target_years)
        frame = self.build_frame(_as_panel(observations), years)
        return frame_to_records(frame)

    def build_frame(self, panel: pd.DataFrame, target_years: Iterable[int]) -> pd.DataFrame:
        initial_year, final_year = validate_target_years(target_years)
        valid = _valid_observations(_as_panel(panel), (initial_year, final_year))
        if valid.empty:
            return empty_convergence_frame()

        by_region = valid.groupby("region_id", sort=False)["year"]
        one_per_year = (by_region.transform("count") == 2) & (by_region.transform("nunique") == 2)
        kept = valid[one_per_year]
        if kept.empty:
            return empty_convergence_frame()

        initial = kept.loc[
            kept["year"] == initial_year,
            ["region_id", "country_id", "population", "income_per_capita"],
        ].rename(columns={"population": "initial_population", "income_per_capita": "initial_income"})
        final = kept.loc[kept["year"] == final_year, ["region_id", "income_per_capita"]].rename(
            columns={"income_per_capita": "final_income"},
        )

        # left merges keep the first-appearance order of the regions
        out = kept[["region_id"]].drop_duplicates()
        out = out.merge(initial, on="region_id", how="left").merge(final, on="region_id", how="left")

        elapsed = final_year - initial_year
        out["initial_population"] = pd.to_numeric(out["initial_population"], errors="coerce").astype("float64")
        out["initial_income"] = out["initial_income"].astype("float64")
        out["final_income"] = out["final_income"].astype("float64")
        # a zero income gives an infinite rate
        with np.errstate(divide="ignore", invalid="ignore"):
            log_final = np.log(out["final_income"])
            log_initial = np.log(out["initial_income"])
        out["growth_rate"] = (log_final - log_initial) / elapsed

        lookup: Dict[Any, str] = {}
        continents = []
        for country_id in out["country_id"]:
            if country_id not in lookup:
                lookup[country_id] = resolve_continent(country_id, self.classify_continent)
            continents.append(lookup[country_id])
        out["continent"] = continents

        return out[CONVERGENCE_COLUMNS].reset_index(drop=True)


def frame_to_records(frame: pd.DataFrame) -> List[ConvergenceRecord]:
    return [
        ConvergenceRecord(
            region_id=row.region_id,
            country_id=row.country_id,
            initial_population=float(row.initial_population),
            initial_income=float(row.initial_income),
            final_income=float(row.final_income),
            growth_rate=float(row.growth_rate),
            continent=str(row.continent),
        )
        for row in frame[CONVERGENCE_COLUMNS].itertuples(index=False)
    ]


def records_to_frame(records: Iterable[ConvergenceRecord]) -> pd.DataFrame:
    rows = [record.to_dict() for record in records]
    if not rows:
        return empty_convergence_frame()
    return pd.DataFrame(rows, columns=CONVERGENCE_COLUMNS)


def summarize_exclusions(observations: PanelLike, target_years: Iterable[int]) -> Dict[str, int]:
    """
    Count regions per outcome of the convergence filter.

    Keys: "regions" (distinct regions in the input), "included", and one
    key per exclusion reason:

    - missing_income: no income in either target year
    - single_year:    income in only one of the two years
    - duplicate_year: more than one observation with income for some year
    """
    years = validate_target_years(target_years)
    panel = _as_panel(observations)
    regions = pd.Index(panel["region_id"].dropna().unique())

    valid = _valid_observations(panel, years)
    if valid.empty:
        counts = pd.DataFrame(0, index=regions, columns=list(years))
    else:
        counts = (
            valid.groupby(["region_id", "year"]).size().unstack(fill_value=0)
            .reindex(index=regions, columns=list(years), fill_value=0)
        )

    duplicate = (counts > 1).any(axis=1)
    missing = counts.sum(axis=1) == 0
    single = ~duplicate & ~missing & (counts == 0).any(axis=1)
    excluded = dict(zip(EXCLUSION_REASONS, (missing, single, duplicate)))
    included = ~(missing | single | duplicate)

    summary = {"regions": int(len(regions)), "included": int(included.sum())}
    summary.update({reason: int(mask.sum()) for reason, mask in excluded.items()})
    return summary


def build_convergence_records(
    observations: PanelLike,
    target_years: Iterable[int],
    *,
    classify_continent: Optional[ContinentLookup] = None,
) -> List[ConvergenceRecord]:
    return ConvergenceDatasetBuilder(classify_continent).build(observations, target_years)


def build_convergence_dataframe(
    panel: PanelLike,
    target_years: Iterable[int],
    *,
    classify_continent: Optional[ContinentLookup] = None,
) -> pd.DataFrame:
    return ConvergenceDatasetBuilder(classify_continent).build_frame(_as_panel(panel), target_years)


def save_convergence_dataset_parquet(
    df: pd.DataFrame,
    target_years: Iterable[int],
    *,
    output_dir: Path | str = CURATED_OUTPUT_DIR,
    storage: Optional[StorageAdapter] = None,
) -> Union[Path, str]:
    """Persist the curated dataset locally or through `storage`."""
    initial_year, final_year = validate_target_years(target_years)
    partition = f"years={initial_year}-{final_year}"

    # parquet needs homogeneous identifier columns
    df = df.copy()
    df["region_id"] = df["region_id"].astype("string")
    df["country_id"] = df["country_id"].astype("string")
    df["continent"] = df["continent"].astype("string")

    if storage is not None:
        return storage.write_parquet(df, f"{CURATED_BASE_PREFIX}/{partition}/{CURATED_FILE_NAME}")

    out_dir = Path(output_dir) / partition
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / CURATED_FILE_NAME
    df.to_parquet(path, index=False)
    return path


__all__ = [
    "CONVERGENCE_COLUMNS",
    "CURATED_BASE_PREFIX",
    "CURATED_OUTPUT_DIR",
    "EXCLUSION_REASONS",
    "UNRESOLVED_CONTINENT",
    "ConvergenceDatasetBuilder",
    "ConvergenceRecord",
    "InvalidConfiguration",
    "build_convergence_dataframe",
    "build_convergence_records",
    "empty_convergence_frame",
    "frame_to_records",
    "records_to_frame",
    "resolve_continent",
    "save_convergence_dataset_parquet",
    "summarize_exclusions",
    "validate_target_years",
]
