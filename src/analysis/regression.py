"""
Regression Primitives

Ordinary least squares fits on named predictor terms, the penalised
information criterion used by the stepwise searches, and the partial
F-test between nested models.

A term is either a numeric column (one design column) or a categorical
column (treatment-coded dummies, first level dropped).
"""

from typing import Any, Iterable, List, Optional, Sequence, Tuple
from dataclasses import dataclass, field
import logging

import numpy as np
import pandas as pd
import statsmodels.api as sm
from scipy import stats

from src.core.exceptions import AliasedDesignError, ModelFittingError


logger = logging.getLogger(__name__)

CONST = "const"


def dummy_name(column: str, level: Any) -> str:
    return f"{column}[{level}]"


def build_design(
    frame: pd.DataFrame,
    predictors: Sequence[str],
    categorical: Iterable[str] = (),
    columns: Optional[Sequence[str]] = None,
) -> pd.DataFrame:
    """
    Build the design matrix: constant, numeric predictors, categorical dummies.

    Args:
        frame: Source rows.
        predictors: Ordered predictor terms.
        categorical: Terms to expand into dummies.
        columns: Align to these design columns (e.g. the training design);
                 levels not seen there are encoded as all-zero rows.

    Returns:
        Float DataFrame indexed like frame.
    """
    categorical = set(categorical)
    parts = [pd.DataFrame({CONST: np.ones(len(frame))}, index=frame.index)]

    for term in predictors:
        if term in categorical:
            levels = frame[term].astype(str)
            dummies = pd.get_dummies(levels, dtype=float)
            dummies = dummies.reindex(columns=sorted(dummies.columns))
            if columns is None:
                dummies = dummies.iloc[:, 1:]
            dummies.columns = [dummy_name(term, lvl) for lvl in dummies.columns]
            parts.append(dummies)
        else:
            parts.append(frame[[term]].astype(float))

    design = pd.concat(parts, axis=1)
    if columns is not None:
        design = design.reindex(columns=list(columns), fill_value=0.0)
    return design


def term_columns(design_columns: Sequence[str], term: str, categorical: Iterable[str]) -> List[str]:
    """Design columns contributed by one predictor term."""
    if term in set(categorical):
        prefix = f"{term}["
        return [c for c in design_columns if c.startswith(prefix)]
    return [term] if term in design_columns else []


def penalty_for_alpha(alpha: float) -> float:
    """Chi-squared (1 df) critical value used as the per-parameter penalty k."""
    if not 0.0 < alpha < 1.0:
        raise ValueError(f"alpha must be in (0, 1), got {alpha}")
    return float(stats.chi2.ppf(1.0 - alpha, df=1))


@dataclass
class CandidateModel:
    """A fitted OLS model over an ordered list of predictor terms."""
    outcome: str
    predictors: List[str]
    categorical: List[str]
    design_columns: List[str]
    results: Any = field(repr=False)

    @property
    def n_obs(self) -> int:
        return int(self.results.nobs)

    @property
    def rss(self) -> float:
        return float(self.results.ssr)

    @property
    def df_resid(self) -> float:
        return float(self.results.df_resid)

    @property
    def edf(self) -> float:
        """Effective number of parameters, intercept included."""
        return self.n_obs - self.df_resid

    @property
    def r_squared(self) -> float:
        return float(self.results.rsquared)

    @property
    def adj_r_squared(self) -> float:
        return float(self.results.rsquared_adj)

    @property
    def aic(self) -> float:
        return float(self.results.aic)

    @property
    def coefficients(self) -> pd.Series:
        return self.results.params

    @property
    def intercept(self) -> float:
        return float(self.results.params[CONST])

    def criterion(self, k: float = 2.0) -> float:
        """n * log(RSS / n) + k * edf; k=2 gives AIC up to a constant."""
        n = self.n_obs
        if self.rss <= 0:
            return -np.inf
        return float(n * np.log(self.rss / n) + k * self.edf)

    def predict(self, frame: pd.DataFrame) -> np.ndarray:
        X = build_design(frame, self.predictors, self.categorical, columns=self.design_columns)
        return np.asarray(X.values @ self.coefficients.values, dtype=float)

    def coefficients_df(self) -> pd.DataFrame:
        r = self.results
        return pd.DataFrame({
            'Term': list(r.params.index),
            'Coefficient': np.round(r.params.values, 6),
            'Std_Error': np.round(r.bse.values, 6),
            'T_Value': np.round(r.tvalues.values, 4),
            'P_Value': np.round(r.pvalues.values, 6),
        })

    def summary(self) -> str:
        return self.results.summary().as_text()


def fit_ols(
    frame: pd.DataFrame,
    outcome: str,
    predictors: Sequence[str],
    categorical: Iterable[str] = (),
) -> CandidateModel:
    """
    Fit outcome ~ predictors by ordinary least squares.

    Raises:
        ModelFittingError: empty data, non-finite values, more parameters
            than rows. AliasedDesignError (a subclass) for a rank-deficient
            design.
    """
    predictors = list(predictors)
    categorical = [c for c in categorical if c in predictors]

    if frame.empty:
        raise ModelFittingError("Cannot fit OLS on an empty table", predictors=predictors)

    X = build_design(frame, predictors, categorical)
    y = frame[outcome].astype(float)

    if not np.isfinite(X.values).all() or not np.isfinite(y.values).all():
        raise ModelFittingError(
            "Design or outcome contains missing or non-finite values",
            predictors=predictors,
        )

    n_rows, n_cols = X.shape
    if n_rows <= n_cols:
        raise ModelFittingError(
            f"{n_rows} rows cannot support {n_cols} parameters",
            predictors=predictors,
        )

    rank = np.linalg.matrix_rank(X.values)
    if rank < n_cols:
        raise AliasedDesignError(
            f"Singular design matrix (rank {rank} < {n_cols} columns)",
            predictors=predictors,
        )

    results = sm.OLS(y, X).fit()
    return CandidateModel(
        outcome=outcome,
        predictors=predictors,
        categorical=categorical,
        design_columns=list(X.columns),
        results=results,
    )


def partial_f_test(reduced: CandidateModel, full: CandidateModel) -> Tuple[float, float]:
    """F statistic and p-value for the terms in full but not in reduced."""
    df_num = full.edf - reduced.edf
    if df_num <= 0:
        return np.nan, np.nan
    if full.rss <= 0:
        return np.inf, 0.0
    f_stat = ((reduced.rss - full.rss) / df_num) / (full.rss / full.df_resid)
    p_value = float(stats.f.sf(f_stat, df_num, full.df_resid))
    return float(f_stat), p_value
