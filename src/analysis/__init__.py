"""
Analysis layer
--------------

Analytical outputs generated from the curated convergence dataset:

- convergence_regressions.csv
- convergence_scatter.png
"""

from .convergence_regressions import (  # noqa: F401
    ANALYSIS_OUTPUT_DIR,
    REGRESSION_CSV_NAME,
    ConvergenceEstimate,
    build_regression_summary,
    estimate_convergence,
    fit_fixed_effects_convergence,
    fit_unconditional_convergence,
)
from .convergence_plot import SCATTER_PNG_NAME, build_convergence_scatter  # noqa: F401

__all__ = [
    "ANALYSIS_OUTPUT_DIR",
    "REGRESSION_CSV_NAME",
    "SCATTER_PNG_NAME",
    "ConvergenceEstimate",
    "build_convergence_scatter",
    "build_regression_summary",
    "estimate_convergence",
    "fit_fixed_effects_convergence",
    "fit_unconditional_convergence",
]
