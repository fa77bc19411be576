"""
Shared fixtures for the convergence pipeline tests.
"""

import io

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from transformations.continent_mapping import ContinentClassifier


@pytest.fixture
def rng():
    """Reproducible random number generator."""
    return np.random.default_rng(seed=42)


@pytest.fixture
def classifier():
    return ContinentClassifier({"DEU": "Europe", "FRA": "Europe", "BRA": "Americas", "KEN": "Africa"})


@pytest.fixture
def raw_dose_df():
    """A small RAW DOSE extract: one complete region per country plus edge cases."""
    return pd.DataFrame(
        {
            "GID_0": ["DEU", "DEU", "DEU", "FRA", "FRA", "BRA", "BRA", "KEN", "KEN", "ZZZ", "ZZZ"],
            "GID_1": [
                "DEU.1_1", "DEU.1_1", "DEU.2_1",
                "FRA.1_1", "FRA.1_1",
                "BRA.1_1", "BRA.1_1",
                "KEN.1_1", "KEN.1_1",
                "ZZZ.1_1", "ZZZ.1_1",
            ],
            "country": ["Germany"] * 3 + ["France"] * 2 + ["Brazil"] * 2 + ["Kenya"] * 2 + ["Nowhere"] * 2,
            "region": ["Bavaria", "Bavaria", "Berlin", "Alsace", "Alsace", "Acre", "Acre",
                       "Nairobi", "Nairobi", "Z", "Z"],
            "year": [2000, 2019, 2000, 2000, 2019, 2000, 2019, 2000, 2019, 2000, 2019],
            "grp_pc_usd": [30000.0, 45000.0, 25000.0, 28000.0, 38000.0, 4000.0, 7000.0, 900.0, None, 100.0, 150.0],
            "pop": [12e6, 13e6, 3.4e6, 1.8e6, 1.9e6, 0.5e6, 0.9e6, 3e6, 4.4e6, 1e5, 1.2e5],
            "grp_lcu": [1.0] * 11,
        }
    )


@pytest.fixture
def dose_csv_bytes(raw_dose_df):
    buf = io.StringIO()
    raw_dose_df.to_csv(buf, index=False)
    return buf.getvalue().encode("utf-8")


@pytest.fixture
def convergence_df(rng):
    """Synthetic curated dataset with a known convergence slope of -0.004."""
    countries = ["DEU", "FRA", "BRA", "KEN", "IND"]
    rows = []
    for i in range(60):
        country = countries[i % len(countries)]
        log_y0 = rng.uniform(6.5, 11.0)
        growth = 0.05 - 0.004 * log_y0 + rng.normal(0, 0.0005)
        initial_income = float(np.exp(log_y0))
        rows.append(
            {
                "region_id": f"{country}.{i}_1",
                "country_id": country,
                "initial_population": float(rng.uniform(1e5, 1e7)),
                "initial_income": initial_income,
                "final_income": initial_income * float(np.exp(growth * 19)),
                "growth_rate": growth,
                "continent": "Europe" if country in ("DEU", "FRA") else "Other",
            }
        )
    return pd.DataFrame(rows)
