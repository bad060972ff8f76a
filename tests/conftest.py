"""
Pytest Configuration and Shared Fixtures

Provides common fixtures for all test modules including:
- A synthetic life expectancy table with the published column layout
- The same table written to CSV with the published (messy) headers
- Cleaned strata and a small-footprint pipeline config
- A simple linear frame with known coefficients for regression tests
"""

import sys
from pathlib import Path
from typing import Any, Dict

import numpy as np
import pandas as pd
import pytest

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.config.schema import DataConfig, PipelineConfig
from src.analysis.data_loader import clean_strata


# Header spellings as published in the Kaggle/WHO file
MESSY_HEADERS = {
    "Life expectancy": "Life expectancy ",
    "Adult Mortality": "Adult Mortality",
    "BMI": " BMI ",
    "under-five deaths": "under-five deaths ",
    "Measles": "Measles ",
    "Diphtheria": "Diphtheria ",
    "HIV/AIDS": " HIV/AIDS",
    "thinness 1-19 years": " thinness  1-19 years",
    "thinness 5-9 years": " thinness 5-9 years",
}


def make_life_table(n_countries: int = 12, n_years: int = 16, seed: int = 42) -> pd.DataFrame:
    """
    Synthetic country-year table with the published column names.

    The first third of the countries are developed. Only the four pairs of
    the default decision table are strongly correlated; life expectancy is
    driven by status, adult mortality, HIV/AIDS, schooling and a country
    effect. A few cells are blanked so the cleaner has work to do.
    """
    rng = np.random.RandomState(seed)
    countries = [f"Country_{i:02d}" for i in range(n_countries)]
    n_developed = max(1, n_countries // 3)
    years = list(range(2000, 2000 + n_years))

    rows = []
    for i, country in enumerate(countries):
        developed = i < n_developed
        country_effect = rng.normal(0, 1.5)
        for year in years:
            adult = rng.uniform(50, 350) * (0.6 if developed else 1.0)
            hiv = rng.exponential(0.5 if developed else 3.0)
            schooling = rng.uniform(8, 20) if developed else rng.uniform(4, 14)
            infant = rng.poisson(20) + rng.uniform(0, 30)
            pct_exp = rng.uniform(10, 1000)
            thin_119 = rng.uniform(0.5, 12)
            rows.append({
                "Country": country,
                "Year": year,
                "Status": "Developed" if developed else "Developing",
                "Life expectancy": (
                    62 + (6 if developed else 0) - 0.03 * adult - 1.2 * hiv
                    + 0.6 * schooling + country_effect + rng.normal(0, 0.8)
                ),
                "Adult Mortality": adult,
                "infant deaths": infant,
                "Alcohol": rng.uniform(0, 12),
                "percentage expenditure": pct_exp,
                "Hepatitis B": rng.uniform(40, 99),
                "Measles": rng.poisson(200),
                "BMI": rng.uniform(15, 60),
                "under-five deaths": infant * 1.3 + rng.normal(0, 1.0),
                "Polio": rng.uniform(40, 99),
                "Total expenditure": rng.uniform(2, 12),
                "Diphtheria": rng.uniform(40, 99),
                "HIV/AIDS": hiv,
                "GDP": pct_exp * 8.0 + rng.normal(0, 50),
                "Population": rng.uniform(1e5, 5e7),
                "thinness 1-19 years": thin_119,
                "thinness 5-9 years": thin_119 + rng.normal(0, 0.2),
                "Income composition of resources": schooling / 22 + rng.normal(0, 0.02),
                "Schooling": schooling,
            })

    df = pd.DataFrame(rows)

    # Blank a few cells: anchor gaps plus scattered predictor gaps
    df.loc[[3, 40, 77], "Population"] = np.nan
    df.loc[[5, 90], "Hepatitis B"] = np.nan
    df.loc[[150], "Alcohol"] = np.nan
    return df


@pytest.fixture
def life_raw() -> pd.DataFrame:
    """Raw synthetic table with normalized headers."""
    return make_life_table()


@pytest.fixture
def life_csv(tmp_path, life_raw) -> Path:
    """The synthetic table written to CSV with the published headers."""
    path = tmp_path / "Life Expectancy Data.csv"
    life_raw.rename(columns=MESSY_HEADERS).to_csv(path, index=False)
    return path


@pytest.fixture
def data_config() -> DataConfig:
    return DataConfig()


@pytest.fixture
def strata(life_raw, data_config):
    return clean_strata(life_raw, data_config)


@pytest.fixture
def sample_config_dict(tmp_path, life_csv) -> Dict[str, Any]:
    """Config dict pointing at the synthetic CSV with light LASSO settings."""
    return {
        "data": {"input_path": str(life_csv)},
        "lasso": {"cv_folds": 3, "n_alphas": 20},
        "validation": {"stratum": "developing", "test_size": 0.25},
        "output": {"base_dir": str(tmp_path / "outputs")},
        "reproducibility": {"global_seed": 42, "log_level": "INFO"},
    }


@pytest.fixture
def pipeline_config(sample_config_dict) -> PipelineConfig:
    return PipelineConfig(**sample_config_dict)


@pytest.fixture
def linear_frame() -> pd.DataFrame:
    """
    y = 5 + 3*x1 + 1.5*x2 + group effect + noise, with three noise columns.

    Group levels: a (reference), b (+2), c (-1).
    """
    rng = np.random.RandomState(0)
    n = 240
    group = np.array(["a", "b", "c"])[rng.randint(0, 3, size=n)]
    effect = pd.Series(group).map({"a": 0.0, "b": 2.0, "c": -1.0}).values
    df = pd.DataFrame({
        "x1": rng.normal(0, 1, n),
        "x2": rng.normal(0, 1, n),
        "noise_1": rng.normal(0, 1, n),
        "noise_2": rng.normal(0, 1, n),
        "noise_3": rng.normal(0, 1, n),
        "group": group,
    })
    df["y"] = 5 + 3 * df["x1"] + 1.5 * df["x2"] + effect + rng.normal(0, 0.5, n)
    return df
