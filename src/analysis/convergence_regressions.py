"""
β-convergence regressions on the curated convergence dataset.

Two models, as in the subincomeR vignette:

- unconditional: growth_rate ~ log(initial_income), OLS with
  heteroskedasticity-robust (HC1) standard errors;
- country fixed effects: the same slope with one intercept per country,
  standard errors clustered by country.

A negative β means poorer regions grew faster (β-convergence). Given the
horizon T in years, β maps to an annual convergence speed
λ = -ln(1 + β·T) / T and a half-life ln(2) / λ.

Artefact: convergence_regressions.csv, one row per model.
"""

from __future__ import annotations

import io
import math
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
import statsmodels.formula.api as smf

from adapters import StorageAdapter

# Local output directory for analysis artefacts
ANALYSIS_OUTPUT_DIR = Path("analysis")
# Storage prefix; artefacts land under analytics/<YYYYMMDD>/
ANALYTICS_BASE_PREFIX = "analytics"
REGRESSION_CSV_NAME = "convergence_regressions.csv"

MIN_REGRESSION_ROWS = 3

UNCONDITIONAL_MODEL = "unconditional_ols_hc1"
FIXED_EFFECTS_MODEL = "country_fixed_effects"


@dataclass
class ConvergenceEstimate:
    model: str
    beta: float
    intercept: float
    std_error: float
    t_value: float
    p_value: float
    r_squared: float
    n_regions: int
    n_countries: int
    covariance: str
    convergence_speed: float = math.nan
    half_life: float = math.nan

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def implied_convergence_speed(beta: float, horizon_years: Optional[float]) -> float:
    """λ = -ln(1 + βT) / T; NaN when undefined or when there is no convergence."""
    if horizon_years is None or horizon_years <= 0 or not np.isfinite(beta) or beta >= 0:
        return math.nan
    arg = 1.0 + beta * horizon_years
    if arg <= 0:
        return math.nan
    return -math.log(arg) / horizon_years


def half_life(speed: float) -> float:
    if not np.isfinite(speed) or speed <= 0:
        return math.nan
    return math.log(2.0) / speed


def prepare_regression_frame(df: pd.DataFrame) -> pd.DataFrame:
    """
    Keep rows usable in a log regression and add `log_initial_income`.

    Raises ValueError with fewer than MIN_REGRESSION_ROWS rows left.
    """
    missing = {"growth_rate", "initial_income", "country_id"} - set(df.columns)
    if missing:
        raise ValueError(f"Convergence dataset is missing columns: {sorted(missing)}")

    data = df.copy()
    data["growth_rate"] = pd.to_numeric(data["growth_rate"], errors="coerce")
    data["initial_income"] = pd.to_numeric(data["initial_income"], errors="coerce")
    data = data[
        np.isfinite(data["growth_rate"])
        & np.isfinite(data["initial_income"])
        & (data["initial_income"] > 0)
        & data["country_id"].notna()
    ].copy()

    if len(data) < MIN_REGRESSION_ROWS:
        raise ValueError(
            f"At least {MIN_REGRESSION_ROWS} regions are needed for a convergence regression, "
            f"got {len(data)}",
        )

    data["log_initial_income"] = np.log(data["initial_income"])
    data["country_id"] = data["country_id"].astype(str)
    return data.reset_index(drop=True)


def _estimate_from_fit(
    fit,
    *,
    model: str,
    data: pd.DataFrame,
    covariance: str,
    horizon_years: Optional[float],
) -> ConvergenceEstimate:
    term = "log_initial_income"
    beta = float(fit.params[term])
    speed = implied_convergence_speed(beta, horizon_years)
    return ConvergenceEstimate(
        model=model,
        beta=beta,
        intercept=float(fit.params["Intercept"]),
        std_error=float(fit.bse[term]),
        t_value=float(fit.tvalues[term]),
        p_value=float(fit.pvalues[term]),
        r_squared=float(fit.rsquared),
        n_regions=int(fit.nobs),
        n_countries=int(data["country_id"].nunique()),
        covariance=covariance,
        convergence_speed=speed,
        half_life=half_life(speed),
    )


def fit_unconditional_convergence(
    df: pd.DataFrame,
    *,
    horizon_years: Optional[float] = None,
) -> ConvergenceEstimate:
    data = prepare_regression_frame(df)
    fit = smf.ols("growth_rate ~ log_initial_income", data=data).fit(cov_type="HC1")
    return _estimate_from_fit(
        fit,
        model=UNCONDITIONAL_MODEL,
        data=data,
        covariance="HC1",
        horizon_years=horizon_years,
    )


def _unidentified_estimate(data: pd.DataFrame, *, model: str) -> ConvergenceEstimate:
    return ConvergenceEstimate(
        model=model,
        beta=math.nan,
        intercept=math.nan,
        std_error=math.nan,
        t_value=math.nan,
        p_value=math.nan,
        r_squared=math.nan,
        n_regions=len(data),
        n_countries=int(data["country_id"].nunique()),
        covariance="none",
    )


def fit_fixed_effects_convergence(
    df: pd.DataFrame,
    *,
    horizon_years: Optional[float] = None,
) -> ConvergenceEstimate:
    """
    Country fixed effects through C(country_id) dummies.

    Standard errors are clustered by country; with a single country the
    clustering is degenerate and HC1 is used instead.

    The slope is only identified from countries with two or more regions
    and needs at least one residual degree of freedom. Otherwise every
    statistic of the returned estimate is NaN.
    """
    data = prepare_regression_frame(df)
    n_countries = data["country_id"].nunique()
    if data["country_id"].value_counts().max() < 2 or len(data) <= n_countries + 1:
        print(
            f"[analysis] {FIXED_EFFECTS_MODEL}: slope not identified with {len(data)} regions "
            f"in {n_countries} countries; reporting NaN."
        )
        return _unidentified_estimate(data, model=FIXED_EFFECTS_MODEL)

    model = smf.ols("growth_rate ~ log_initial_income + C(country_id)", data=data)

    if n_countries < 2:
        fit = model.fit(cov_type="HC1")
        covariance = "HC1"
    else:
        groups = pd.factorize(data["country_id"])[0]
        fit = model.fit(cov_type="cluster", cov_kwds={"groups": groups})
        covariance = "cluster:country_id"

    return _estimate_from_fit(
        fit,
        model=FIXED_EFFECTS_MODEL,
        data=data,
        covariance=covariance,
        horizon_years=horizon_years,
    )


def estimate_convergence(
    df: pd.DataFrame,
    *,
    horizon_years: Optional[float] = None,
) -> List[ConvergenceEstimate]:
    return [
        fit_unconditional_convergence(df, horizon_years=horizon_years),
        fit_fixed_effects_convergence(df, horizon_years=horizon_years),
    ]


def build_regression_summary(
    df: pd.DataFrame,
    *,
    output_dir: Path | str = ANALYSIS_OUTPUT_DIR,
    storage: StorageAdapter | None = None,
    horizon_years: Optional[float] = None,
) -> Path | str:
    """Fit both models and write convergence_regressions.csv."""
    estimates = estimate_convergence(df, horizon_years=horizon_years)
    result_df = pd.DataFrame([e.to_dict() for e in estimates])

    for e in estimates:
        print(
            f"[analysis] {e.model}: beta={e.beta:.5f} (se={e.std_error:.5f}, "
            f"p={e.p_value:.3g}), n={e.n_regions}, countries={e.n_countries}"
        )

    if storage is None:
        output_root = Path(output_dir)
        output_root.mkdir(parents=True, exist_ok=True)
        output_path = output_root / REGRESSION_CSV_NAME
        result_df.to_csv(output_path, index=False)
        return output_path

    snapshot_date = datetime.now(timezone.utc).strftime("%Y%m%d")
    key = f"{ANALYTICS_BASE_PREFIX}/{snapshot_date}/{REGRESSION_CSV_NAME}"
    buf = io.StringIO()
    result_df.to_csv(buf, index=False)
    return storage.write_raw(key, buf.getvalue().encode("utf-8"))


__all__ = [
    "ANALYSIS_OUTPUT_DIR",
    "FIXED_EFFECTS_MODEL",
    "MIN_REGRESSION_ROWS",
    "REGRESSION_CSV_NAME",
    "UNCONDITIONAL_MODEL",
    "ConvergenceEstimate",
    "build_regression_summary",
    "estimate_convergence",
    "fit_fixed_effects_convergence",
    "fit_unconditional_convergence",
    "half_life",
    "implied_convergence_speed",
    "prepare_regression_frame",
]
