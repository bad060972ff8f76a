"""
Collinearity Filter

Correlation and variance-inflation screening of the candidate predictors.
Which member of a correlated pair is dropped comes from a declarative
decision table, never from the data; the filter only checks that the
reduced set has no pair left above the threshold.
"""

from typing import Iterable, List, Optional, Sequence
from dataclasses import dataclass
import logging

import numpy as np
import pandas as pd
import statsmodels.api as sm
from statsmodels.stats.outliers_influence import variance_inflation_factor

from src.config.schema import CollinearityConfig, CollinearityDecision
from src.core.exceptions import CollinearityError, ModelFittingError


logger = logging.getLogger(__name__)


@dataclass
class CollinearityResult:
    """Reduced predictor set with the evidence behind it."""
    kept_features: List[str]
    dropped_features: List[str]
    details_df: pd.DataFrame
    corr_matrix: Optional[pd.DataFrame] = None
    pairs_df: Optional[pd.DataFrame] = None
    vif_df: Optional[pd.DataFrame] = None
    unresolved_df: Optional[pd.DataFrame] = None

    @property
    def n_kept(self) -> int:
        return len(self.kept_features)

    @property
    def n_dropped(self) -> int:
        return len(self.dropped_features)


def numeric_predictors(
    frame: pd.DataFrame,
    predictors: Sequence[str],
    categorical: Iterable[str] = (),
) -> List[str]:
    categorical = set(categorical)
    return [
        p for p in predictors
        if p not in categorical and pd.api.types.is_numeric_dtype(frame[p])
    ]


def correlation_matrix(
    frame: pd.DataFrame,
    columns: Sequence[str],
    method: str = "pearson",
) -> pd.DataFrame:
    """Pairwise correlation of the given numeric columns (symmetric, unit diagonal)."""
    logger.info(
        f"COLLINEARITY | Computing {method} correlation matrix "
        f"for {len(columns)} columns"
    )
    corr = frame[list(columns)].corr(method=method)
    # Pin exact symmetry and diagonal against floating point noise
    values = (corr.values + corr.values.T) / 2.0
    np.fill_diagonal(values, 1.0)
    return pd.DataFrame(values, index=corr.index, columns=corr.columns)


def find_correlated_pairs(corr: pd.DataFrame, threshold: float) -> pd.DataFrame:
    """Pairs with |correlation| >= threshold, strongest first."""
    columns = list(corr.columns)
    rows = []
    for i, fa in enumerate(columns):
        for fb in columns[i + 1:]:
            value = corr.loc[fa, fb]
            if pd.notna(value) and abs(value) >= threshold:
                rows.append({
                    'Variable_A': fa,
                    'Variable_B': fb,
                    'Correlation': round(float(value), 4),
                    'Abs_Correlation': round(abs(float(value)), 4),
                })

    if not rows:
        return pd.DataFrame(columns=['Variable_A', 'Variable_B', 'Correlation', 'Abs_Correlation'])
    return pd.DataFrame(rows).sort_values(
        'Abs_Correlation', ascending=False
    ).reset_index(drop=True)


def compute_vif(
    frame: pd.DataFrame,
    outcome: str,
    predictors: Sequence[str],
    categorical: Iterable[str] = (),
    threshold: float = 10.0,
) -> pd.DataFrame:
    """
    Variance inflation factor for every numeric predictor.

    Fits outcome on all numeric predictors once (logged) and computes
    each VIF on the same constant-augmented design. VIF is a reporting
    flag here; nothing is dropped on it.

    Returns:
        DataFrame with Variable, VIF, High_VIF.
    """
    numeric = numeric_predictors(frame, predictors, categorical)
    if len(numeric) < 2:
        logger.info(f"COLLINEARITY | Only {len(numeric)} numeric predictor(s), skipping VIF")
        return pd.DataFrame({
            'Variable': numeric,
            'VIF': [np.nan] * len(numeric),
            'High_VIF': [False] * len(numeric),
        })

    X = sm.add_constant(frame[numeric].astype(float), has_constant='add')
    y = frame[outcome].astype(float)
    if not np.isfinite(X.values).all() or not np.isfinite(y.values).all():
        raise ModelFittingError(
            "VIF design or outcome contains missing or non-finite values",
            predictors=numeric,
        )
    fit = sm.OLS(y, X).fit()
    logger.info(
        f"COLLINEARITY | Full numeric model: n={int(fit.nobs)}, "
        f"R2={fit.rsquared:.4f}, adj R2={fit.rsquared_adj:.4f}"
    )

    values = X.values
    rows = []
    with np.errstate(divide='ignore', invalid='ignore'):
        for i, feat in enumerate(numeric, start=1):
            vif = float(variance_inflation_factor(values, i))
            rows.append({
                'Variable': feat,
                'VIF': round(vif, 4) if np.isfinite(vif) else np.inf,
                'High_VIF': bool(vif > threshold),
            })

    vif_df = pd.DataFrame(rows).sort_values('VIF', ascending=False).reset_index(drop=True)
    high = vif_df.loc[vif_df['High_VIF'], 'Variable'].tolist()
    if high:
        logger.info(f"COLLINEARITY | {len(high)} predictor(s) with VIF > {threshold}: {high}")
    return vif_df


def apply_decisions(
    predictors: Sequence[str],
    decisions: Sequence[CollinearityDecision],
) -> CollinearityResult:
    """
    Drop the non-kept member of each decision row from the predictor list.

    A row whose dropped variable is not a candidate is recorded as not
    applied. Order of the surviving predictors is preserved.
    """
    present = set(predictors)
    dropped = set()
    rows = []
    for d in decisions:
        applied = d.dropped in present
        if applied:
            dropped.add(d.dropped)
        rows.append({
            'Variable_A': d.variable_a,
            'Variable_B': d.variable_b,
            'Kept': d.keep,
            'Dropped': d.dropped,
            'Reason': d.reason,
            'Applied': applied,
        })

    conflicts = [d.keep for d in decisions if d.keep in dropped]
    if conflicts:
        logger.warning(
            f"COLLINEARITY | Decision table keeps and drops the same variable(s): "
            f"{sorted(set(conflicts))}"
        )

    kept = [p for p in predictors if p not in dropped]
    dropped_list = [p for p in predictors if p in dropped]
    return CollinearityResult(
        kept_features=kept,
        dropped_features=dropped_list,
        details_df=pd.DataFrame(
            rows, columns=['Variable_A', 'Variable_B', 'Kept', 'Dropped', 'Reason', 'Applied']
        ),
    )


def unresolved_pairs(pairs_df: pd.DataFrame, kept: Sequence[str]) -> pd.DataFrame:
    """Correlated pairs whose members both survived the decision table."""
    if pairs_df.empty:
        return pairs_df.copy()
    kept = set(kept)
    mask = pairs_df['Variable_A'].isin(kept) & pairs_df['Variable_B'].isin(kept)
    return pairs_df[mask].reset_index(drop=True)


class CollinearityFilter:
    """
    Screen predictors by pairwise correlation and VIF, then apply the
    decision table.

    The reduced set returned by run() is reused by every downstream
    selection run.
    """

    def __init__(
        self,
        threshold: float = 0.90,
        decisions: Optional[Sequence[CollinearityDecision]] = None,
        method: str = 'pearson',
        vif_threshold: float = 10.0,
        on_unresolved: str = 'error',
    ):
        self.threshold = threshold
        self.decisions = list(decisions or [])
        self.method = method
        self.vif_threshold = vif_threshold
        self.on_unresolved = on_unresolved

    @classmethod
    def from_config(cls, config: CollinearityConfig) -> "CollinearityFilter":
        return cls(
            threshold=config.correlation_threshold,
            decisions=config.decisions,
            method=config.method,
            vif_threshold=config.vif_threshold,
            on_unresolved=config.on_unresolved,
        )

    def run(
        self,
        frame: pd.DataFrame,
        outcome: str,
        predictors: Sequence[str],
        categorical: Iterable[str] = (),
    ) -> CollinearityResult:
        categorical = list(categorical)
        numeric = numeric_predictors(frame, predictors, categorical)

        corr = correlation_matrix(frame, numeric + [outcome], method=self.method)
        pairs_df = find_correlated_pairs(corr.loc[numeric, numeric], self.threshold)
        logger.info(
            f"COLLINEARITY | {len(pairs_df)} pair(s) with |r| >= {self.threshold}"
        )
        for _, row in pairs_df.iterrows():
            logger.info(
                f"COLLINEARITY |   {row['Variable_A']} ~ {row['Variable_B']}: "
                f"r={row['Correlation']:.4f}"
            )

        vif_df = compute_vif(frame, outcome, numeric, threshold=self.vif_threshold)

        result = apply_decisions(predictors, self.decisions)
        unresolved = unresolved_pairs(pairs_df, result.kept_features)

        result.corr_matrix = corr
        result.pairs_df = pairs_df
        result.vif_df = vif_df
        result.unresolved_df = unresolved

        if not unresolved.empty:
            pairs = unresolved[['Variable_A', 'Variable_B', 'Correlation']].to_dict('records')
            message = (
                f"{len(pairs)} correlated pair(s) at or above {self.threshold} "
                f"are not covered by the decision table"
            )
            if self.on_unresolved == 'error':
                raise CollinearityError(message, pairs=pairs)
            logger.warning(f"COLLINEARITY | {message}: {pairs}")

        logger.info(
            f"COLLINEARITY | Dropped {result.n_dropped} predictor(s) "
            f"{result.dropped_features} ({result.n_kept} remaining)"
        )
        return result

    def check_subset(
        self,
        frame: pd.DataFrame,
        predictors: Sequence[str],
        categorical: Iterable[str] = (),
        label: str = "subset",
    ) -> pd.DataFrame:
        """Log (not raise) correlated pairs that the reduced set still has in a stratum."""
        numeric = numeric_predictors(frame, predictors, categorical)
        usable = [c for c in numeric if frame[c].nunique(dropna=True) > 1]
        corr = frame[usable].corr(method=self.method)
        pairs_df = find_correlated_pairs(corr, self.threshold)
        if not pairs_df.empty:
            logger.warning(
                f"COLLINEARITY | {label}: {len(pairs_df)} pair(s) with "
                f"|r| >= {self.threshold} in the reduced set: "
                f"{pairs_df[['Variable_A', 'Variable_B', 'Correlation']].to_dict('records')}"
            )
        return pairs_df
