import math

import numpy as np
import pandas as pd
import pytest

from adapters import LocalStorageAdapter
from analysis.convergence_regressions import (
    FIXED_EFFECTS_MODEL,
    REGRESSION_CSV_NAME,
    UNCONDITIONAL_MODEL,
    build_regression_summary,
    estimate_convergence,
    fit_fixed_effects_convergence,
    fit_unconditional_convergence,
    half_life,
    implied_convergence_speed,
    prepare_regression_frame,
)


class TestUnconditional:
    def test_recovers_slope(self, convergence_df):
        estimate = fit_unconditional_convergence(convergence_df, horizon_years=19)

        assert estimate.model == UNCONDITIONAL_MODEL
        assert estimate.covariance == "HC1"
        assert estimate.beta == pytest.approx(-0.004, abs=5e-4)
        assert estimate.intercept == pytest.approx(0.05, abs=5e-3)
        assert estimate.p_value < 0.01
        assert estimate.n_regions == 60
        assert estimate.n_countries == 5
        assert estimate.convergence_speed > 0
        assert estimate.half_life == pytest.approx(math.log(2) / estimate.convergence_speed)

    def test_drops_unusable_rows(self, convergence_df):
        df = convergence_df.copy()
        df.loc[0, "growth_rate"] = np.inf
        df.loc[1, "initial_income"] = np.nan

        assert fit_unconditional_convergence(df).n_regions == 58

    def test_too_few_rows(self, convergence_df):
        with pytest.raises(ValueError, match="At least 3"):
            fit_unconditional_convergence(convergence_df.head(2))


class TestFixedEffects:
    def test_recovers_within_country_slope(self, convergence_df):
        df = convergence_df.copy()
        shifts = {"DEU": 0.01, "FRA": -0.01, "BRA": 0.02, "KEN": 0.0, "IND": -0.02}
        df["growth_rate"] = df["growth_rate"] + df["country_id"].map(shifts)

        estimate = fit_fixed_effects_convergence(df)

        assert estimate.model == FIXED_EFFECTS_MODEL
        assert estimate.covariance == "cluster:country_id"
        assert estimate.beta == pytest.approx(-0.004, abs=5e-4)
        assert estimate.n_countries == 5

    def test_single_country_falls_back_to_hc1(self, convergence_df):
        df = convergence_df[convergence_df["country_id"] == "DEU"]

        estimate = fit_fixed_effects_convergence(df)

        assert estimate.covariance == "HC1"
        assert estimate.n_countries == 1

    @pytest.mark.parametrize(
        "countries",
        [
            ["DEU", "FRA", "BRA"],
            ["DEU", "DEU", "FRA"],
        ],
    )
    def test_unidentified_slope_is_reported_as_nan(self, countries):
        df = pd.DataFrame(
            {
                "country_id": countries,
                "initial_income": [1000.0, 5000.0, 20000.0],
                "growth_rate": [0.03, 0.02, 0.01],
            }
        )

        estimate = fit_fixed_effects_convergence(df, horizon_years=19)

        assert estimate.covariance == "none"
        assert estimate.n_regions == 3
        assert math.isnan(estimate.beta)
        assert math.isnan(estimate.std_error)
        assert math.isnan(estimate.r_squared)
        assert math.isnan(estimate.convergence_speed)
        assert math.isnan(estimate.half_life)

    def test_unidentified_slope_reaches_summary_as_nan(self, tmp_path):
        df = pd.DataFrame(
            {
                "country_id": ["DEU", "FRA", "BRA"],
                "initial_income": [1000.0, 5000.0, 20000.0],
                "growth_rate": [0.03, 0.02, 0.01],
            }
        )

        summary = pd.read_csv(build_regression_summary(df, output_dir=tmp_path, horizon_years=19))
        fixed = summary.set_index("model").loc[FIXED_EFFECTS_MODEL]

        assert np.isnan(fixed["beta"])
        assert np.isnan(fixed["half_life"])
        assert not np.isnan(summary.set_index("model").loc[UNCONDITIONAL_MODEL, "beta"])


def test_estimate_convergence_returns_both_models(convergence_df):
    models = [e.model for e in estimate_convergence(convergence_df)]

    assert models == [UNCONDITIONAL_MODEL, FIXED_EFFECTS_MODEL]


def test_prepare_requires_columns():
    with pytest.raises(ValueError, match="missing columns"):
        prepare_regression_frame(pd.DataFrame({"growth_rate": [0.1]}))


@pytest.mark.parametrize(
    "beta, horizon, expected",
    [
        (-0.01, 19, -math.log(1 - 0.19) / 19),
        (0.01, 19, math.nan),
        (-0.1, 19, math.nan),
        (-0.01, None, math.nan),
    ],
)
def test_implied_convergence_speed(beta, horizon, expected):
    result = implied_convergence_speed(beta, horizon)
    if math.isnan(expected):
        assert math.isnan(result)
    else:
        assert result == pytest.approx(expected)


def test_half_life_undefined_without_convergence():
    assert math.isnan(half_life(math.nan))
    assert half_life(math.log(2) / 10) == pytest.approx(10)


def test_summary_csv_local_and_storage(tmp_path, convergence_df):
    path = build_regression_summary(convergence_df, output_dir=tmp_path, horizon_years=19)
    summary = pd.read_csv(path)

    assert path.name == REGRESSION_CSV_NAME
    assert summary["model"].tolist() == [UNCONDITIONAL_MODEL, FIXED_EFFECTS_MODEL]
    assert {"beta", "std_error", "p_value", "convergence_speed", "half_life"} <= set(summary.columns)

    storage = LocalStorageAdapter(tmp_path / "store")
    location = build_regression_summary(convergence_df, storage=storage)
    assert location.endswith(REGRESSION_CSV_NAME)
    assert storage.list_keys("analytics")[0].startswith("analytics/")
