"""
Continent mapping
-----------------

Classifies ISO3 country codes (DOSE `GID_0`) into the five continents of
the `countrycode` "continent" scheme: Africa, Americas, Asia, Europe and
Oceania.

- Base table: `continent_mapping.csv`, shipped next to this module.
- Manual overrides: `continent_mapping_overrides.csv` (same columns),
  applied with priority over the base table. GADM-specific codes such as
  `XKO` (Kosovo) live there.
- Optional persistence in:

    processed/continent_mapping/continent_mapping.parquet

Schema:
    country_code:      string (PK, ISO3 upper case)
    continent:         string
    source_precedence: string ("base" or "override")
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Mapping, Optional, Union

import pandas as pd

from adapters import StorageAdapter

CONTINENT_MAPPING_CSV = Path(__file__).with_name("continent_mapping.csv")
CONTINENT_MAPPING_OVERRIDES_CSV = Path(__file__).with_name("continent_mapping_overrides.csv")

# Local output directory and storage prefix of the persisted table
CONTINENT_MAPPING_OUTPUT_DIR = Path("processed") / "continent_mapping"
CONTINENT_MAPPING_BASE_PREFIX = "processed/continent_mapping"
CONTINENT_MAPPING_FILE_NAME = "continent_mapping.parquet"

_MAPPING_COLUMNS = ["country_code", "continent", "source_precedence"]


def normalize_country_code(code: object) -> Optional[str]:
    """Upper-case and strip a country code; None for empty/missing values."""
    if code is None:
        return None
    try:
        if pd.isna(code):
            return None
    except (TypeError, ValueError):
        pass
    text = str(code).strip().upper()
    return text or None


def _read_mapping_csv(path: Path | str, *, source: str) -> pd.DataFrame:
    df = pd.read_csv(path, dtype="string", keep_default_na=False)
    missing = {"country_code", "continent"} - set(df.columns)
    if missing:
        raise ValueError(
            f"Continent mapping file {str(path)!r} is missing required columns: {sorted(missing)}",
        )

    df = df[["country_code", "continent"]].copy()
    df["country_code"] = df["country_code"].map(normalize_country_code).astype("string")
    df["continent"] = df["continent"].str.strip().astype("string")
    df = df[df["country_code"].notna() & (df["continent"] != "")]
    df["source_precedence"] = source
    return df


def load_continent_mapping(
    path: Path | str = CONTINENT_MAPPING_CSV,
    overrides_path: Path | str | None = CONTINENT_MAPPING_OVERRIDES_CSV,
) -> pd.DataFrame:
    """
    Load the base table and apply overrides on top of it.

    A missing overrides file is not an error; the base table must exist.
    """
    base = _read_mapping_csv(path, source="base")

    if overrides_path is not None and Path(overrides_path).exists():
        overrides = _read_mapping_csv(overrides_path, source="override")
        base = base[~base["country_code"].isin(overrides["country_code"])]
        base = pd.concat([base, overrides], ignore_index=True)

    mapping = base.drop_duplicates(subset=["country_code"], keep="last")
    mapping = mapping.sort_values("country_code").reset_index(drop=True)
    mapping["source_precedence"] = mapping["source_precedence"].astype("string")
    return mapping[_MAPPING_COLUMNS]


def save_continent_mapping_parquet(
    mapping_df: pd.DataFrame,
    *,
    output_dir: Path | str = CONTINENT_MAPPING_OUTPUT_DIR,
    storage: Optional[StorageAdapter] = None,
) -> Union[Path, str]:
    """Persist the mapping table locally, or through `storage` when given."""
    if storage is not None:
        key = f"{CONTINENT_MAPPING_BASE_PREFIX}/{CONTINENT_MAPPING_FILE_NAME}"
        return storage.write_parquet(mapping_df, key)

    output_root = Path(output_dir)
    output_root.mkdir(parents=True, exist_ok=True)
    path = output_root / CONTINENT_MAPPING_FILE_NAME
    mapping_df.to_parquet(path, index=False)
    return path


class ContinentClassifier:
    """
    Callable lookup `country_code -> continent`.

    Unknown or empty codes return None; turning that into the
    "unresolved" marker is up to the caller.

    >>> classify = ContinentClassifier({"ESP": "Europe"})
    >>> classify(" esp ")
    'Europe'
    >>> classify("ZZZ") is None
    True
    """

    def __init__(self, table: Mapping[str, str]) -> None:
        self._table: Dict[str, str] = {}
        for code, continent in table.items():
            key = normalize_country_code(code)
            if key is not None:
                self._table[key] = str(continent)

    @classmethod
    def from_dataframe(cls, mapping_df: pd.DataFrame) -> "ContinentClassifier":
        return cls(dict(zip(mapping_df["country_code"], mapping_df["continent"])))

    @classmethod
    def from_csv(
        cls,
        path: Path | str = CONTINENT_MAPPING_CSV,
        overrides_path: Path | str | None = CONTINENT_MAPPING_OVERRIDES_CSV,
    ) -> "ContinentClassifier":
        return cls.from_dataframe(load_continent_mapping(path, overrides_path))

    def __call__(self, country_code: object) -> Optional[str]:
        key = normalize_country_code(country_code)
        if key is None:
            return None
        return self._table.get(key)

    def __len__(self) -> int:
        return len(self._table)

    def __contains__(self, country_code: object) -> bool:
        return self(country_code) is not None


_default_classifier: Optional[ContinentClassifier] = None


def default_continent_classifier() -> ContinentClassifier:
    """Classifier built from the packaged tables, loaded once per process."""
    global _default_classifier
    if _default_classifier is None:
        _default_classifier = ContinentClassifier.from_csv()
    return _default_classifier


if __name__ == "__main__":
    # PYTHONPATH=src python -m transformations.continent_mapping
    import argparse

    parser = argparse.ArgumentParser(
        description="Materialize the continent mapping (base table + overrides) as Parquet.",
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default=str(CONTINENT_MAPPING_OUTPUT_DIR),
        help="Output directory (default: processed/continent_mapping).",
    )
    args = parser.parse_args()
    print(save_continent_mapping_parquet(load_continent_mapping(), output_dir=Path(args.output_dir)))


__all__ = [
    "CONTINENT_MAPPING_CSV",
    "CONTINENT_MAPPING_OVERRIDES_CSV",
    "CONTINENT_MAPPING_OUTPUT_DIR",
    "CONTINENT_MAPPING_BASE_PREFIX",
    "CONTINENT_MAPPING_FILE_NAME",
    "ContinentClassifier",
    "default_continent_classifier",
    "load_continent_mapping",
    "normalize_country_code",
    "save_continent_mapping_parquet",
]
