"""
Data Loader

Loads the life expectancy table and cleans it into three strata:
full population, developing countries and developed countries.
"""

from typing import Dict, Iterable, List
from dataclasses import dataclass, field
from pathlib import Path
import logging
import re

import numpy as np
import pandas as pd

from src.config.schema import DataConfig, STRATA
from src.core.exceptions import (
    DataReaderError,
    DataQualityError,
    SchemaValidationError,
)


logger = logging.getLogger(__name__)


@dataclass
class StrataSets:
    """Container for the cleaned full table and its two status subsets."""
    full: pd.DataFrame
    developing: pd.DataFrame
    developed: pd.DataFrame
    raw_counts: Dict[str, int] = field(default_factory=dict)

    def get(self, name: str) -> pd.DataFrame:
        if name not in STRATA:
            raise KeyError(f"Unknown stratum '{name}', expected one of {STRATA}")
        return getattr(self, name)

    @property
    def row_counts(self) -> Dict[str, int]:
        return {name: len(self.get(name)) for name in STRATA}

    def row_counts_df(self) -> pd.DataFrame:
        """Raw vs cleaned row counts per stratum."""
        rows = []
        for name in STRATA:
            raw = self.raw_counts.get(name)
            clean = len(self.get(name))
            rows.append({
                'Stratum': name,
                'Raw_Rows': raw,
                'Clean_Rows': clean,
                'Dropped_Rows': raw - clean if raw is not None else None,
            })
        return pd.DataFrame(rows)


def normalize_column_name(name: str) -> str:
    """Strip and collapse whitespace, e.g. ' thinness  1-19 years' -> 'thinness 1-19 years'."""
    return re.sub(r"\s+", " ", str(name)).strip()


def load_table(input_path: str) -> pd.DataFrame:
    """
    Read the delimited input file once and normalize its headers.

    Args:
        input_path: Path to the CSV file.

    Returns:
        Raw DataFrame with normalized column names.
    """
    path = Path(input_path)
    if not path.exists():
        raise DataReaderError(f"Input file not found: {input_path}", source=input_path)

    logger.info(f"DATA | Loading data from {input_path}")
    try:
        df = pd.read_csv(path)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise DataReaderError(
            f"Could not parse input file: {input_path}", source=input_path, cause=e
        ) from e

    df.columns = [normalize_column_name(c) for c in df.columns]
    logger.info(f"DATA | Loaded {len(df):,} rows, {len(df.columns):,} columns")
    return df


def validate_columns(df: pd.DataFrame, required: Iterable[str]) -> None:
    """Raise SchemaValidationError if any required column is absent."""
    missing = [c for c in dict.fromkeys(required) if c not in df.columns]
    if missing:
        raise SchemaValidationError(
            f"Input table is missing {len(missing)} required column(s): {missing}",
            missing_columns=missing,
            details={'available_columns': list(df.columns)},
        )


def required_columns(config: DataConfig) -> List[str]:
    """Every column the cleaner and the models need."""
    columns = [
        config.country_column,
        config.year_column,
        config.status_column,
        config.outcome_column,
        config.anchor_column,
    ]
    columns.extend(config.predictor_columns)
    return list(dict.fromkeys(columns))


def encode_status(
    df: pd.DataFrame,
    status_column: str,
    developed_label: str = "Developed",
    developing_label: str = "Developing",
) -> pd.DataFrame:
    """
    Return a copy with the status column encoded as 1 (developed) / 0 (developing).

    Rows with a missing status are left as NaN so that the missing-row
    policy decides their fate. Any other label is a data quality failure.
    """
    mapping = {developed_label: 1, developing_label: 0}
    labels = df[status_column].dropna().astype(str).str.strip()
    unknown = sorted(set(labels) - set(mapping))
    if unknown:
        raise DataQualityError(
            f"Unknown {status_column} label(s): {unknown}",
            validation_errors=[{'column': status_column, 'label': u} for u in unknown],
        )

    out = df.copy()
    out[status_column] = df[status_column].map(
        lambda v: mapping[str(v).strip()] if pd.notna(v) else np.nan
    )
    return out


def drop_missing(
    df: pd.DataFrame,
    anchor_column: str,
    columns: List[str],
    drop_incomplete_rows: bool = True,
    label: str = "table",
) -> pd.DataFrame:
    """
    Drop rows missing the anchor column, then optionally any incomplete row.

    No imputation is performed: missingness clusters by country and time
    span, so deletion is the policy.

    Args:
        df: Input frame (not modified).
        anchor_column: Column whose missing rows are always removed.
        columns: Modelling columns checked when drop_incomplete_rows is set.
        drop_incomplete_rows: Also drop rows missing any modelling column.
        label: Name used in log messages.

    Returns:
        New DataFrame with a fresh RangeIndex.
    """
    n_before = len(df)
    out = df.dropna(subset=[anchor_column])
    n_anchor = n_before - len(out)

    n_extra = 0
    if drop_incomplete_rows:
        n_mid = len(out)
        out = out.dropna(subset=columns)
        n_extra = n_mid - len(out)

    remaining_missing = int(out[columns].isna().sum().sum())
    logger.info(
        f"CLEAN | {label}: {n_before:,} -> {len(out):,} rows "
        f"({n_anchor:,} missing {anchor_column}, {n_extra:,} other incomplete)"
    )
    if remaining_missing:
        logger.warning(
            f"CLEAN | {label}: {remaining_missing:,} missing cells remain "
            f"after dropping on {anchor_column}"
        )
    return out.reset_index(drop=True)


def require_complete(df: pd.DataFrame, columns: Iterable[str], label: str = "table") -> None:
    """
    Raise DataQualityError when any modelling column still has gaps.

    Anchor-only cleaning leaves other missing cells in place; OLS cannot
    use them, so they are reported per column instead of reaching a fit.
    """
    counts = df[list(columns)].isna().sum()
    gaps = counts[counts > 0]
    if gaps.empty:
        return
    raise DataQualityError(
        f"Stratum '{label}' still has missing values in {list(gaps.index)}; "
        f"set drop_incomplete_rows to drop incomplete rows",
        validation_errors=[
            {'column': col, 'missing': int(n)} for col, n in gaps.items()
        ],
        details={'stratum': label},
    )


def clean_strata(raw: pd.DataFrame, config: DataConfig) -> StrataSets:
    """
    Encode status, partition by status and clean each stratum independently.

    Args:
        raw: Raw table as returned by load_table (not modified).
        config: Data configuration.

    Returns:
        StrataSets with the full, developing and developed tables.
    """
    validate_columns(raw, required_columns(config))

    encoded = encode_status(
        raw,
        config.status_column,
        developed_label=config.developed_label,
        developing_label=config.developing_label,
    )

    model_columns = list(dict.fromkeys(
        [config.outcome_column, config.status_column] + config.modelling_predictors
    ))

    partitions = {
        'full': encoded,
        'developing': encoded[encoded[config.status_column] == 0],
        'developed': encoded[encoded[config.status_column] == 1],
    }

    cleaned: Dict[str, pd.DataFrame] = {}
    raw_counts: Dict[str, int] = {}
    for name, part in partitions.items():
        raw_counts[name] = len(part)
        clean = drop_missing(
            part,
            anchor_column=config.anchor_column,
            columns=model_columns,
            drop_incomplete_rows=config.drop_incomplete_rows,
            label=name,
        )
        if clean.empty:
            raise DataQualityError(
                f"Stratum '{name}' is empty after dropping rows missing "
                f"{config.anchor_column}",
                details={'raw_rows': len(part)},
            )
        cleaned[name] = clean

    for name, frame in cleaned.items():
        status = frame[config.status_column]
        if status.notna().all():
            cleaned[name] = frame.assign(**{config.status_column: status.astype(int)})

    strata = StrataSets(
        full=cleaned['full'],
        developing=cleaned['developing'],
        developed=cleaned['developed'],
        raw_counts=raw_counts,
    )

    counts = strata.row_counts
    subset_total = counts['developing'] + counts['developed']
    logger.info(
        f"CLEAN | Rows full={counts['full']:,}, developing={counts['developing']:,}, "
        f"developed={counts['developed']:,} (subset total {subset_total:,})"
    )
    return strata
