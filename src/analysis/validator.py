"""
Hold-out Validation

Seeded train/test split, OLS refit on the training rows and R-squared /
RMSE on both partitions.
"""

from typing import Iterable, Optional, Sequence, Tuple
from dataclasses import dataclass
import logging

import numpy as np
import pandas as pd
from sklearn.metrics import mean_squared_error, r2_score
from sklearn.model_selection import train_test_split

from src.analysis.regression import CandidateModel, fit_ols
from src.core.exceptions import EvaluationError


logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Train vs test fit of one model on one stratum."""
    stratum: str
    predictors: list
    train_r2: float
    test_r2: float
    train_rmse: float
    test_rmse: float
    n_train: int
    n_test: int
    max_r2_gap: float
    model: CandidateModel

    @property
    def r2_gap(self) -> float:
        return self.train_r2 - self.test_r2

    @property
    def overfit_warning(self) -> bool:
        return self.r2_gap > self.max_r2_gap

    @property
    def metrics_df(self) -> pd.DataFrame:
        return pd.DataFrame([
            {'Partition': 'Train', 'N': self.n_train,
             'R_Squared': round(self.train_r2, 6), 'RMSE': round(self.train_rmse, 6)},
            {'Partition': 'Test', 'N': self.n_test,
             'R_Squared': round(self.test_r2, 6), 'RMSE': round(self.test_rmse, 6)},
        ])


def split_train_test(
    frame: pd.DataFrame,
    test_size: float = 0.25,
    seed: int = 42,
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Seeded random split into two disjoint row sets.

    The original index is kept so membership can be compared across runs.
    """
    if len(frame) < 2:
        raise EvaluationError(
            f"Cannot split a table of {len(frame)} row(s)", metric_name='split'
        )
    train, test = train_test_split(frame, test_size=test_size, random_state=seed, shuffle=True)
    if train.empty or test.empty:
        raise EvaluationError(
            f"Split with test_size={test_size} leaves an empty partition",
            metric_name='split',
        )
    return train, test


def _as_arrays(y_true, y_pred, metric_name: str) -> Tuple[np.ndarray, np.ndarray]:
    y_true = np.asarray(y_true, dtype=float)
    y_pred = np.asarray(y_pred, dtype=float)
    if y_true.shape != y_pred.shape:
        raise EvaluationError(
            f"Length mismatch: {y_true.shape} observed vs {y_pred.shape} predicted",
            metric_name=metric_name,
        )
    if y_true.size == 0:
        raise EvaluationError("No observations to score", metric_name=metric_name)
    return y_true, y_pred


def r_squared(y_true, y_pred) -> float:
    """1 - SS_res / SS_tot."""
    y_true, y_pred = _as_arrays(y_true, y_pred, 'r_squared')
    if y_true.size < 2:
        raise EvaluationError("R-squared needs at least two observations", metric_name='r_squared')
    return float(r2_score(y_true, y_pred))


def rmse(y_true, y_pred) -> float:
    y_true, y_pred = _as_arrays(y_true, y_pred, 'rmse')
    return float(np.sqrt(mean_squared_error(y_true, y_pred)))


def validate_model(
    frame: pd.DataFrame,
    outcome: str,
    predictors: Sequence[str],
    categorical: Iterable[str] = (),
    test_size: float = 0.25,
    seed: int = 42,
    max_r2_gap: float = 0.05,
    stratum: str = "developing",
    train_test: Optional[Tuple[pd.DataFrame, pd.DataFrame]] = None,
) -> ValidationResult:
    """
    Fit on the training partition and score both partitions.

    Args:
        frame: Stratum table.
        outcome: Outcome column.
        predictors: Final predictor terms.
        categorical: Terms expanded into dummies.
        test_size: Test share (0.25 gives a 3:1 split).
        seed: Split seed.
        max_r2_gap: Train - test R-squared above which a warning is logged.
        stratum: Name used in logs.
        train_test: Precomputed split; overrides test_size / seed.

    Returns:
        ValidationResult
    """
    predictors = list(predictors)
    categorical = [c for c in categorical if c in predictors]
    if train_test is None:
        train, test = split_train_test(frame, test_size=test_size, seed=seed)
    else:
        train, test = train_test

    logger.info(
        f"VALIDATION | {stratum}: {len(train):,} train / {len(test):,} test rows, "
        f"{len(predictors)} predictors"
    )

    for col in categorical:
        unseen = sorted(set(test[col].astype(str)) - set(train[col].astype(str)))
        if unseen:
            logger.warning(
                f"VALIDATION | {stratum}: {len(unseen)} {col} level(s) only in test "
                f"are scored at the reference level: {unseen}"
            )

    model = fit_ols(train, outcome, predictors, categorical)
    logger.debug(f"VALIDATION | Training fit summary:\n{model.summary()}")

    y_train = train[outcome].values
    y_test = test[outcome].values
    train_pred = model.predict(train)
    test_pred = model.predict(test)

    result = ValidationResult(
        stratum=stratum,
        predictors=predictors,
        train_r2=r_squared(y_train, train_pred),
        test_r2=r_squared(y_test, test_pred),
        train_rmse=rmse(y_train, train_pred),
        test_rmse=rmse(y_test, test_pred),
        n_train=len(train),
        n_test=len(test),
        max_r2_gap=max_r2_gap,
        model=model,
    )

    logger.info(
        f"VALIDATION | {stratum}: train R2={result.train_r2:.4f} RMSE={result.train_rmse:.4f}, "
        f"test R2={result.test_r2:.4f} RMSE={result.test_rmse:.4f}"
    )
    if result.overfit_warning:
        logger.warning(
            f"VALIDATION | {stratum}: R2 gap {result.r2_gap:.4f} exceeds "
            f"{max_r2_gap:.4f}, possible overfitting"
        )
    elif result.test_r2 > result.train_r2:
        logger.info(f"VALIDATION | {stratum}: test R2 above train R2")
    return result
