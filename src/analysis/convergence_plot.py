"""
Convergence scatter plot.

Artefact: convergence_scatter.png
  - X axis: log initial income per capita
  - Y axis: annual growth rate
  - Colour: continent; marker size: initial population
  - Pooled OLS fit with the estimated β in the legend box
"""

from __future__ import annotations

import io
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from adapters import StorageAdapter
from .convergence_regressions import (
    ANALYSIS_OUTPUT_DIR,
    ANALYTICS_BASE_PREFIX,
    MIN_REGRESSION_ROWS,
    ConvergenceEstimate,
    fit_unconditional_convergence,
)

SCATTER_PNG_NAME = "convergence_scatter.png"

MIN_MARKER_SIZE = 8.0
MAX_MARKER_SIZE = 250.0


def _marker_sizes(population: pd.Series) -> np.ndarray:
    pop = pd.to_numeric(population, errors="coerce").to_numpy(dtype=float)
    finite = np.isfinite(pop) & (pop > 0)
    sizes = np.full(pop.shape, MIN_MARKER_SIZE)
    if finite.any():
        # area proportional to population
        scaled = np.sqrt(pop[finite] / pop[finite].max())
        sizes[finite] = MIN_MARKER_SIZE + scaled * (MAX_MARKER_SIZE - MIN_MARKER_SIZE)
    return sizes


def build_convergence_scatter(
    df: pd.DataFrame,
    *,
    output_dir: Path | str = ANALYSIS_OUTPUT_DIR,
    storage: StorageAdapter | None = None,
    estimate: Optional[ConvergenceEstimate] = None,
    title: Optional[str] = None,
    label_top_n: int = 0,
    label_column: str = "region_id",
) -> Path | str:
    """
    Draw the convergence scatter and save it as PNG.

    Parameters
    ----------
    df:
        Curated convergence dataset. Rows with a non-finite growth rate or
        a non-positive initial income are not drawn.
    output_dir, storage:
        Local directory, or a StorageAdapter (the PNG then goes under
        analytics/<YYYYMMDD>/).
    estimate:
        Fit drawn as the regression line. Defaults to the unconditional OLS
        fit of `df`; with fewer than MIN_REGRESSION_ROWS regions no line is
        drawn.
    title:
        Optional chart title.
    label_top_n, label_column:
        Annotate the `label_top_n` points furthest from the fit line with
        their `label_column` value.

    Returns
    -------
    location:
        Local Path, or the location returned by the storage adapter.

    Raises RuntimeError when no row can be drawn.
    """
    data = df.copy()
    data["growth_rate"] = pd.to_numeric(data["growth_rate"], errors="coerce")
    data["initial_income"] = pd.to_numeric(data["initial_income"], errors="coerce")
    data = data[
        np.isfinite(data["growth_rate"])
        & np.isfinite(data["initial_income"])
        & (data["initial_income"] > 0)
    ].reset_index(drop=True)
    if data.empty:
        raise RuntimeError("No valid rows for convergence scatter plot")

    x = np.log(data["initial_income"].to_numpy(dtype=float))
    y = data["growth_rate"].to_numpy(dtype=float)
    sizes = _marker_sizes(data["initial_population"]) if "initial_population" in data.columns else None

    plt.figure(figsize=(10, 6))

    continents = data["continent"].astype(str) if "continent" in data.columns else pd.Series("all", index=data.index)
    for continent in sorted(continents.unique()):
        mask = (continents == continent).to_numpy()
        plt.scatter(
            x[mask],
            y[mask],
            s=sizes[mask] if sizes is not None else None,
            alpha=0.6,
            edgecolors="none",
            label=continent,
        )

    if estimate is None and len(data) >= MIN_REGRESSION_ROWS:
        estimate = fit_unconditional_convergence(data)

    if estimate is not None:
        x_line = np.linspace(np.min(x), np.max(x), 200)
        plt.plot(
            x_line,
            estimate.intercept + estimate.beta * x_line,
            color="black",
            linewidth=1.5,
            label=f"OLS fit (β={estimate.beta:.4f}, SE={estimate.std_error:.4f})",
        )

        if label_top_n > 0 and label_column in data.columns:
            resid = np.abs(y - (estimate.intercept + estimate.beta * x))
            for i in np.argsort(-resid)[:label_top_n]:
                plt.annotate(
                    str(data.iloc[i][label_column]),
                    (x[i], y[i]),
                    textcoords="offset points",
                    xytext=(5, 5),
                    fontsize=7,
                    alpha=0.8,
                )

    plt.axhline(0.0, color="grey", linewidth=0.8, linestyle=":")
    plt.xlabel("Log initial GDP per capita (USD)")
    plt.ylabel("Annual growth rate")
    plt.title(title or "Regional β-convergence")
    plt.legend(frameon=False, fontsize=8, markerscale=0.6)
    plt.grid(True, linestyle="--", alpha=0.3)
    plt.tight_layout()

    if storage is None:
        output_root = Path(output_dir)
        output_root.mkdir(parents=True, exist_ok=True)
        output_path = output_root / SCATTER_PNG_NAME
        plt.savefig(output_path, dpi=150)
        plt.close()
        return output_path

    snapshot_date = datetime.now(timezone.utc).strftime("%Y%m%d")
    key = f"{ANALYTICS_BASE_PREFIX}/{snapshot_date}/{SCATTER_PNG_NAME}"
    buf = io.BytesIO()
    plt.savefig(buf, format="png", dpi=150)
    plt.close()
    return storage.write_raw(key, buf.getvalue())


__all__ = ["SCATTER_PNG_NAME", "build_convergence_scatter"]
