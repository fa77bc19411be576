"""
DOSE RAW -> PROCESSED panel.

DOSE (MCC-PIK Database Of Sub-national Economic output) ships as a wide
CSV with one row per GADM level-1 region and year. This module keeps the
columns the convergence analysis needs and renames them to the panel
schema:

    region_id:          string  (DOSE GID_1)
    country_id:         string  (DOSE GID_0, ISO3)
    year:               int
    income_per_capita:  float   (DOSE grp_pc_usd, NaN when missing)
    population:         float   (DOSE pop)
    region_name:        string  (DOSE region, when present)
    country_name:       string  (DOSE country, when present)

Rows that cannot be keyed (no region, no country or no year) are dropped.
Everything else, duplicates included, is passed through untouched.

Partitioned output layout:

    processed/dose_panel/year=<year>/processed_dose_panel.parquet
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import pandas as pd

from adapters import StorageAdapter

# Local output directory for the PROCESSED layer (processed/ on S3)
PROCESSED_OUTPUT_DIR = Path("processed") / "dose_panel"
# Logical key prefix used when writing through a StorageAdapter
PROCESSED_BASE_PREFIX = "processed/dose_panel"
PROCESSED_FILE_NAME = "processed_dose_panel.parquet"

# RAW DOSE column -> panel column
DOSE_COLUMN_MAP = {
    "GID_1": "region_id",
    "GID_0": "country_id",
    "year": "year",
    "grp_pc_usd": "income_per_capita",
    "pop": "population",
}
DOSE_OPTIONAL_COLUMN_MAP = {
    "region": "region_name",
    "country": "country_name",
}

PANEL_COLUMNS = [
    "region_id",
    "country_id",
    "year",
    "income_per_capita",
    "population",
]


@dataclass(frozen=True)
class Observation:
    """One region-year of the panel."""

    region_id: str
    country_id: str
    year: int
    income_per_capita: Optional[float]
    population: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "region_id": self.region_id,
            "country_id": self.country_id,
            "year": self.year,
            "income_per_capita": self.income_per_capita,
            "population": self.population,
        }


def empty_panel() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "region_id": pd.Series(dtype="string"),
            "country_id": pd.Series(dtype="string"),
            "year": pd.Series(dtype="int64"),
            "income_per_capita": pd.Series(dtype="float64"),
            "population": pd.Series(dtype="float64"),
        }
    )


def build_dose_panel(
    raw_df: pd.DataFrame,
    *,
    years: Optional[Iterable[int]] = None,
    countries: Optional[Iterable[str]] = None,
) -> pd.DataFrame:
    """
    Normalize a RAW DOSE DataFrame into the panel schema.

    Parameters
    ----------
    raw_df:
        DOSE CSV as read by `read_dose_csv`; must carry GID_0, GID_1,
        year, grp_pc_usd and pop.
    years, countries:
        Optional filters on the year and the ISO3 country code. Omitted
        filters keep every row.

    Returns
    -------
    panel:
        DataFrame with PANEL_COLUMNS (plus region_name / country_name when
        present). Rows without a region, country or year are dropped;
        duplicates and missing incomes are kept for the builder to judge.

    Raises ValueError when a required DOSE column is missing.
    """
    missing = set(DOSE_COLUMN_MAP) - set(raw_df.columns)
    if missing:
        raise ValueError(f"DOSE data is missing required columns: {sorted(missing)}")

    rename_map = dict(DOSE_COLUMN_MAP)
    rename_map.update({k: v for k, v in DOSE_OPTIONAL_COLUMN_MAP.items() if k in raw_df.columns})
    df = raw_df[list(rename_map)].rename(columns=rename_map).copy()

    df["region_id"] = df["region_id"].astype("string").str.strip()
    df["country_id"] = df["country_id"].astype("string").str.strip().str.upper()
    df["year"] = pd.to_numeric(df["year"], errors="coerce")
    df["income_per_capita"] = pd.to_numeric(df["income_per_capita"], errors="coerce").astype("float64")
    df["population"] = pd.to_numeric(df["population"], errors="coerce").astype("float64")
    for col in DOSE_OPTIONAL_COLUMN_MAP.values():
        if col in df.columns:
            df[col] = df[col].astype("string")

    for col in ("region_id", "country_id"):
        df[col] = df[col].replace("", pd.NA)
    df = df.dropna(subset=["region_id", "country_id", "year"])
    df["year"] = df["year"].astype("int64")

    if years is not None:
        df = df[df["year"].isin({int(y) for y in years})]
    if countries is not None:
        wanted = {str(c).strip().upper() for c in countries}
        df = df[df["country_id"].isin(wanted)]

    if df.empty:
        return empty_panel()
    return df.reset_index(drop=True)


def _none_if_nan(value: Any) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    return float(value)


def panel_to_observations(panel: pd.DataFrame) -> List[Observation]:
    return [
        Observation(
            region_id=str(row.region_id),
            country_id=str(row.country_id),
            year=int(row.year),
            income_per_capita=_none_if_nan(row.income_per_capita),
            population=float(row.population) if not pd.isna(row.population) else math.nan,
        )
        for row in panel[PANEL_COLUMNS].itertuples(index=False)
    ]


def observations_to_panel(observations: Iterable[Union[Observation, Mapping[str, Any]]]) -> pd.DataFrame:
    """
    Tabulate Observations (or plain mappings with the same keys).

    Identifiers keep their original Python values; they are opaque.
    """
    rows = [obs.to_dict() if isinstance(obs, Observation) else dict(obs) for obs in observations]
    if not rows:
        return empty_panel()

    df = pd.DataFrame(rows, columns=PANEL_COLUMNS)
    df["year"] = df["year"].astype("int64")
    df["income_per_capita"] = pd.to_numeric(df["income_per_capita"], errors="coerce").astype("float64")
    df["population"] = pd.to_numeric(df["population"], errors="coerce").astype("float64")
    return df


def save_dose_panel_parquet_partitions(
    df: pd.DataFrame,
    *,
    output_dir: Path | str = PROCESSED_OUTPUT_DIR,
    storage: Optional[StorageAdapter] = None,
) -> List[Union[Path, str]]:
    """
    Write the panel partitioned by year, locally or through `storage`.

    Returns the generated paths (local) or locations (storage).
    """
    if df.empty:
        return []

    outputs: List[Union[Path, str]] = []
    for year_value, df_year in df.groupby("year"):
        year_int = int(year_value)
        if storage is None:
            year_dir = Path(output_dir) / f"year={year_int}"
            year_dir.mkdir(parents=True, exist_ok=True)
            file_path = year_dir / PROCESSED_FILE_NAME
            df_year.to_parquet(file_path, index=False)
            outputs.append(file_path)
        else:
            key = f"{PROCESSED_BASE_PREFIX}/year={year_int}/{PROCESSED_FILE_NAME}"
            outputs.append(storage.write_parquet(df_year, key))
    return outputs


__all__ = [
    "DOSE_COLUMN_MAP",
    "PANEL_COLUMNS",
    "PROCESSED_BASE_PREFIX",
    "PROCESSED_OUTPUT_DIR",
    "Observation",
    "build_dose_panel",
    "empty_panel",
    "observations_to_panel",
    "panel_to_observations",
    "save_dose_panel_parquet_partitions",
]
