import math

import pandas as pd
import pytest

from adapters import LocalStorageAdapter
from transformations.dose_panel import (
    PANEL_COLUMNS,
    Observation,
    build_dose_panel,
    observations_to_panel,
    panel_to_observations,
    save_dose_panel_parquet_partitions,
)


def test_renames_dose_columns(raw_dose_df):
    panel = build_dose_panel(raw_dose_df)

    assert list(panel.columns[: len(PANEL_COLUMNS)]) == PANEL_COLUMNS
    assert {"region_name", "country_name"} <= set(panel.columns)
    assert "grp_lcu" not in panel.columns
    assert len(panel) == len(raw_dose_df)
    assert panel["year"].dtype == "int64"


def test_filters_years_and_countries(raw_dose_df):
    panel = build_dose_panel(raw_dose_df, years=[2000], countries=["deu", "FRA"])

    assert set(panel["country_id"]) == {"DEU", "FRA"}
    assert set(panel["year"]) == {2000}
    assert len(panel) == 3


def test_unkeyable_rows_dropped_and_duplicates_kept():
    raw = pd.DataFrame(
        {
            "GID_0": ["DEU", "DEU", "DEU", None, "DEU"],
            "GID_1": ["D.1", "D.1", "", "X.1", "D.2"],
            "year": [2000, 2000, 2000, 2000, "n/a"],
            "grp_pc_usd": [1.0, "oops", 3.0, 4.0, 5.0],
            "pop": [1.0, 1.0, 1.0, 1.0, 1.0],
        }
    )

    panel = build_dose_panel(raw)

    assert panel["region_id"].tolist() == ["D.1", "D.1"]
    assert math.isnan(panel.loc[1, "income_per_capita"])


def test_missing_required_columns():
    with pytest.raises(ValueError, match="grp_pc_usd"):
        build_dose_panel(pd.DataFrame({"GID_0": [], "GID_1": [], "year": [], "pop": []}))


def test_observation_conversion(raw_dose_df):
    panel = build_dose_panel(raw_dose_df, countries=["KEN"])

    observations = panel_to_observations(panel)

    assert observations[0] == Observation("KEN.1_1", "KEN", 2000, 900.0, 3e6)
    assert observations[1].income_per_capita is None
    back = observations_to_panel(observations)
    assert back["income_per_capita"].isna().tolist() == [False, True]


def test_save_partitions_locally_and_via_storage(tmp_path, raw_dose_df):
    panel = build_dose_panel(raw_dose_df)

    local_paths = save_dose_panel_parquet_partitions(panel, output_dir=tmp_path / "local")
    keys = save_dose_panel_parquet_partitions(panel, storage=LocalStorageAdapter(tmp_path / "store"))

    assert sorted(p.parent.name for p in local_paths) == ["year=2000", "year=2019"]
    assert len(keys) == 2
    assert len(pd.read_parquet(local_paths[0])) + len(pd.read_parquet(local_paths[1])) == len(panel)
    assert save_dose_panel_parquet_partitions(panel.iloc[0:0]) == []
