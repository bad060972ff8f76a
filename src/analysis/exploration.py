"""
Exploratory Summaries

Tables behind the distribution, density and scatter views: missingness
by column, per-status descriptive statistics and outcome correlations.
"""

from typing import List, Optional
import logging

import numpy as np
import pandas as pd


logger = logging.getLogger(__name__)


def missing_value_report(
    raw: pd.DataFrame,
    country_column: str = "Country",
    year_column: str = "Year",
) -> pd.DataFrame:
    """
    Per-column missingness with the countries and years it touches.

    A column whose gaps sit in a handful of countries or a narrow year
    span is missing non-randomly, which is why rows are dropped rather
    than imputed.
    """
    n_rows = len(raw)
    rows = []
    for col in raw.columns:
        mask = raw[col].isna()
        n_missing = int(mask.sum())
        row = {
            'Column': col,
            'Missing_Count': n_missing,
            'Missing_Rate': round(n_missing / n_rows, 4) if n_rows else 0.0,
            'Countries_Affected': None,
            'First_Year': None,
            'Last_Year': None,
        }
        if n_missing and country_column in raw.columns:
            row['Countries_Affected'] = int(raw.loc[mask, country_column].nunique())
        if n_missing and year_column in raw.columns:
            years = raw.loc[mask, year_column].dropna()
            if len(years):
                row['First_Year'] = int(years.min())
                row['Last_Year'] = int(years.max())
        rows.append(row)

    report = pd.DataFrame(rows).sort_values(
        ['Missing_Count', 'Column'], ascending=[False, True]
    ).reset_index(drop=True)

    n_with_gaps = int((report['Missing_Count'] > 0).sum())
    logger.info(f"EXPLORE | {n_with_gaps} of {len(report)} columns have missing values")
    return report


def summarize_by_status(
    frame: pd.DataFrame,
    status_column: str,
    columns: List[str],
    labels: Optional[dict] = None,
) -> pd.DataFrame:
    """Mean, std, min, median and max of numeric columns per status level."""
    if labels is None:
        labels = {0: 'Developing', 1: 'Developed'}

    numeric = [c for c in columns if c in frame.columns and pd.api.types.is_numeric_dtype(frame[c])]
    rows = []
    for level, group in frame.groupby(status_column):
        for col in numeric:
            series = group[col]
            rows.append({
                'Status': labels.get(level, level),
                'Variable': col,
                'N': int(series.count()),
                'Mean': round(float(series.mean()), 4),
                'Std': round(float(series.std()), 4) if series.count() > 1 else np.nan,
                'Min': float(series.min()),
                'Median': float(series.median()),
                'Max': float(series.max()),
            })
    return pd.DataFrame(rows)


def outcome_correlations(corr: pd.DataFrame, outcome: str) -> pd.DataFrame:
    """Predictors ranked by absolute correlation with the outcome."""
    if outcome not in corr.columns:
        return pd.DataFrame(columns=['Variable', 'Correlation', 'Abs_Correlation'])

    series = corr[outcome].drop(labels=[outcome])
    df = pd.DataFrame({
        'Variable': series.index,
        'Correlation': series.values.round(4),
        'Abs_Correlation': np.abs(series.values).round(4),
    })
    return df.sort_values('Abs_Correlation', ascending=False).reset_index(drop=True)
