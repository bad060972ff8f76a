"""
Stepwise Variable Selection (Forward, Backward, Both)

Greedy OLS term selection driven by the penalised criterion
n * log(RSS / n) + k * edf. Forward selection uses k taken from the
chi-squared critical value at a chosen alpha; backward and bidirectional
searches use k = 2 (AIC) by default. Every accepted move also records the
partial F-test against the previous model.

Also provides the cross-method agreement table and an L1-regularised
cross-check.
"""

from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
from dataclasses import dataclass
import logging

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from sklearn.linear_model import LassoCV
from sklearn.model_selection import KFold
from sklearn.preprocessing import StandardScaler

from src.analysis.regression import (
    CONST,
    CandidateModel,
    build_design,
    fit_ols,
    partial_f_test,
    penalty_for_alpha,
    term_columns,
)
from src.config.schema import SelectionConfig
from src.core.exceptions import AliasedDesignError, SelectionError


logger = logging.getLogger(__name__)

METHODS = ("forward", "backward", "both")

# Minimum criterion decrease for a move to count as an improvement
_IMPROVEMENT_TOL = 1e-8


@dataclass
class SelectionResult:
    """Result of one selection procedure on one stratum."""
    method: str
    stratum: str
    selected_features: List[str]
    details_df: pd.DataFrame
    model: CandidateModel
    k: float
    start_criterion: float

    @property
    def final_criterion(self) -> float:
        return self.model.criterion(self.k)

    @property
    def n_selected(self) -> int:
        return len(self.selected_features)


def usable_predictors(
    frame: pd.DataFrame,
    candidates: Sequence[str],
    stratum: str = "",
) -> List[str]:
    """Drop candidates that are constant within this table (e.g. status in a subset)."""
    kept = []
    for feat in candidates:
        if frame[feat].nunique(dropna=True) < 2:
            logger.info(
                f"SELECTION | {stratum}: skipping constant predictor '{feat}'"
            )
            continue
        kept.append(feat)
    return kept


def _fit_candidate(
    frame: pd.DataFrame,
    outcome: str,
    terms: List[str],
    categorical: List[str],
) -> Tuple[Optional[CandidateModel], str]:
    """Fit one candidate move (module-level, picklable for joblib).

    Returns (model, "") or (None, reason) when the design is aliased.
    Any other fitting failure propagates.
    """
    try:
        return fit_ols(frame, outcome, terms, categorical), ""
    except AliasedDesignError as e:
        return None, e.message


def _step_row(
    step: int,
    action: str,
    term: str,
    model: CandidateModel,
    k: float,
    f_stat: float = np.nan,
    p_value: float = np.nan,
    n_aliased: int = 0,
) -> Dict:
    return {
        'Step': step,
        'Action': action,
        'Term': term,
        'N_Terms': len(model.predictors),
        'N_Params': int(round(model.edf)),
        'RSS': round(model.rss, 6),
        'R_Squared': round(model.r_squared, 6),
        'Criterion': round(model.criterion(k), 6),
        'F_Statistic': round(f_stat, 6) if np.isfinite(f_stat) else f_stat,
        'P_Value': round(p_value, 6) if np.isfinite(p_value) else p_value,
        'N_Aliased': n_aliased,
    }


def _stepwise_search(
    frame: pd.DataFrame,
    outcome: str,
    scope: List[str],
    start: List[str],
    categorical: List[str],
    k: float,
    allow_add: bool,
    allow_drop: bool,
    method: str,
    stratum: str,
    n_jobs: int = 1,
) -> SelectionResult:
    """
    Shared greedy search: evaluate every single add/drop, take the move with
    the lowest criterion while it improves on the current model.
    """
    current_terms = list(start)
    current = fit_ols(frame, outcome, current_terms, categorical)
    current_crit = current.criterion(k)
    start_crit = current_crit

    rows = [_step_row(0, 'Start', ', '.join(current_terms) or '<intercept>', current, k)]
    logger.info(
        f"SELECTION | {stratum}/{method}: start with {len(current_terms)} terms, "
        f"criterion={current_crit:.4f} (k={k:.4f})"
    )

    step = 0
    while True:
        moves: List[Tuple[str, str, List[str]]] = []
        if allow_add:
            for term in scope:
                if term not in current_terms:
                    moves.append(('Add', term, current_terms + [term]))
        if allow_drop:
            for term in current_terms:
                moves.append(('Drop', term, [t for t in current_terms if t != term]))
        if not moves:
            break

        fits = Parallel(n_jobs=n_jobs)(
            delayed(_fit_candidate)(frame, outcome, terms, categorical)
            for _, _, terms in moves
        )

        best_idx = None
        best_crit = np.inf
        n_aliased = 0
        for i, (model, reason) in enumerate(fits):
            action, term, _ = moves[i]
            if model is None:
                n_aliased += 1
                logger.debug(
                    f"SELECTION | {stratum}/{method}: {action} {term} aliased ({reason})"
                )
                continue
            crit = model.criterion(k)
            if crit < best_crit:
                best_crit = crit
                best_idx = i

        if best_idx is None or best_crit >= current_crit - _IMPROVEMENT_TOL:
            logger.info(
                f"SELECTION | {stratum}/{method}: no improving move after "
                f"{step} step(s)"
            )
            break

        action, term, terms = moves[best_idx]
        model = fits[best_idx][0]
        if action == 'Add':
            f_stat, p_value = partial_f_test(current, model)
        else:
            f_stat, p_value = partial_f_test(model, current)

        step += 1
        rows.append(_step_row(step, action, term, model, k, f_stat, p_value, n_aliased))
        logger.info(
            f"SELECTION | {stratum}/{method} step {step}: {action.upper()} {term}, "
            f"criterion {current_crit:.4f} -> {best_crit:.4f}, "
            f"F={f_stat:.3f}, p={p_value:.4g}"
        )

        current, current_terms, current_crit = model, terms, best_crit

    logger.info(
        f"SELECTION | {stratum}/{method}: selected {len(current_terms)} terms: "
        f"{current_terms}"
    )
    return SelectionResult(
        method=method,
        stratum=stratum,
        selected_features=list(current_terms),
        details_df=pd.DataFrame(rows),
        model=current,
        k=k,
        start_criterion=start_crit,
    )


def forward_selection(
    frame: pd.DataFrame,
    outcome: str,
    candidates: Sequence[str],
    categorical: Iterable[str] = (),
    alpha: float = 0.20,
    stratum: str = "full",
    n_jobs: int = 1,
) -> SelectionResult:
    """
    Forward selection from the intercept-only model.

    A term enters only if it lowers n*log(RSS/n) + k*edf with k the
    chi-squared(1) critical value at alpha, i.e. the likelihood-ratio
    improvement is significant at that level. alpha=0.20 is deliberately
    lenient.
    """
    if not candidates:
        raise SelectionError("Forward selection needs at least one candidate")
    candidates = list(candidates)
    return _stepwise_search(
        frame, outcome,
        scope=candidates,
        start=[],
        categorical=[c for c in categorical if c in candidates],
        k=penalty_for_alpha(alpha),
        allow_add=True,
        allow_drop=False,
        method='forward',
        stratum=stratum,
        n_jobs=n_jobs,
    )


def backward_selection(
    frame: pd.DataFrame,
    outcome: str,
    candidates: Sequence[str],
    categorical: Iterable[str] = (),
    k: float = 2.0,
    stratum: str = "full",
    n_jobs: int = 1,
) -> SelectionResult:
    """Backward elimination from the full model on the criterion with penalty k."""
    if not candidates:
        raise SelectionError("Backward selection needs at least one candidate")
    candidates = list(candidates)
    return _stepwise_search(
        frame, outcome,
        scope=candidates,
        start=candidates,
        categorical=[c for c in categorical if c in candidates],
        k=k,
        allow_add=False,
        allow_drop=True,
        method='backward',
        stratum=stratum,
        n_jobs=n_jobs,
    )


def stepwise_selection(
    frame: pd.DataFrame,
    outcome: str,
    candidates: Sequence[str],
    categorical: Iterable[str] = (),
    k: float = 2.0,
    start: str = "null",
    stratum: str = "full",
    n_jobs: int = 1,
) -> SelectionResult:
    """Bidirectional search: best single add or drop per step until convergence."""
    if not candidates:
        raise SelectionError("Stepwise selection needs at least one candidate")
    if start not in ("null", "full"):
        raise SelectionError(f"start must be 'null' or 'full', got '{start}'")
    candidates = list(candidates)
    return _stepwise_search(
        frame, outcome,
        scope=candidates,
        start=[] if start == "null" else candidates,
        categorical=[c for c in categorical if c in candidates],
        k=k,
        allow_add=True,
        allow_drop=True,
        method='both',
        stratum=stratum,
        n_jobs=n_jobs,
    )


def run_selection(
    frame: pd.DataFrame,
    outcome: str,
    candidates: Sequence[str],
    method: str,
    categorical: Iterable[str] = (),
    config: Optional[SelectionConfig] = None,
    stratum: str = "full",
) -> SelectionResult:
    """Dispatch one method with parameters taken from the selection config."""
    if config is None:
        config = SelectionConfig()
    if method == 'forward':
        return forward_selection(
            frame, outcome, candidates, categorical,
            alpha=config.forward_alpha, stratum=stratum, n_jobs=config.n_jobs,
        )
    if method == 'backward':
        return backward_selection(
            frame, outcome, candidates, categorical,
            k=config.criterion_k, stratum=stratum, n_jobs=config.n_jobs,
        )
    if method == 'both':
        return stepwise_selection(
            frame, outcome, candidates, categorical,
            k=config.criterion_k, start=config.stepwise_start,
            stratum=stratum, n_jobs=config.n_jobs,
        )
    raise SelectionError(f"method must be one of {METHODS}, got '{method}'")


def run_selection_grid(
    strata: Mapping[str, pd.DataFrame],
    outcome: str,
    candidates: Sequence[str],
    categorical: Iterable[str] = (),
    config: Optional[SelectionConfig] = None,
) -> List[SelectionResult]:
    """Run every configured method on every configured stratum."""
    if config is None:
        config = SelectionConfig()
    categorical = list(categorical)

    results = []
    for stratum in config.strata:
        frame = strata[stratum]
        usable = usable_predictors(frame, candidates, stratum)
        for method in config.methods:
            results.append(run_selection(
                frame, outcome, usable, method,
                categorical=categorical, config=config, stratum=stratum,
            ))
    return results


def selection_agreement(results: Sequence[SelectionResult]) -> pd.DataFrame:
    """
    Predictor x method membership per stratum.

    Consensus is True when every method run on the stratum picked the
    predictor. Disagreements are reported, not resolved.
    """
    rows = []
    strata = list(dict.fromkeys(r.stratum for r in results))
    for stratum in strata:
        group = [r for r in results if r.stratum == stratum]
        methods = [r.method for r in group]
        predictors = list(dict.fromkeys(
            p for r in group for p in r.selected_features
        ))
        for pred in predictors:
            row = {'Stratum': stratum, 'Predictor': pred}
            for r in group:
                row[r.method] = pred in r.selected_features
            row['N_Methods'] = sum(row[m] for m in methods)
            row['Consensus'] = row['N_Methods'] == len(methods)
            rows.append(row)

        disputed = [p for p in predictors if not all(p in r.selected_features for r in group)]
        if disputed:
            logger.warning(
                f"SELECTION | {stratum}: methods disagree on {len(disputed)} "
                f"predictor(s): {disputed}"
            )
        else:
            logger.info(f"SELECTION | {stratum}: all methods agree")

    columns = ['Stratum', 'Predictor'] + list(METHODS) + ['N_Methods', 'Consensus']
    df = pd.DataFrame(rows)
    if df.empty:
        return pd.DataFrame(columns=columns)
    return df[[c for c in columns if c in df.columns]]


def consensus_predictors(results: Sequence[SelectionResult], stratum: str) -> List[str]:
    """Predictors chosen by every method run on the stratum, in first-seen order."""
    group = [r for r in results if r.stratum == stratum]
    if not group:
        raise SelectionError(f"No selection results for stratum '{stratum}'")
    ordered = list(dict.fromkeys(p for r in group for p in r.selected_features))
    return [p for p in ordered if all(p in r.selected_features for r in group)]


# ---------------------------------------------------------------------------
# L1 cross-check
# ---------------------------------------------------------------------------

@dataclass
class LassoCheckResult:
    """Outcome of the cross-validated LASSO check on one stratum."""
    stratum: str
    alpha: float
    coefficients_df: pd.DataFrame
    zeroed_predictors: List[str]
    cv_folds: int

    @property
    def is_degenerate(self) -> bool:
        """True when no predictor is driven to zero: the check is a non-finding."""
        return not self.zeroed_predictors


def _alpha_grid(X: np.ndarray, y: np.ndarray, n_alphas: int, eps: float = 1e-3) -> np.ndarray:
    """Log-spaced penalties from the smallest all-zero penalty down by eps."""
    n = X.shape[0]
    alpha_max = np.max(np.abs(X.T @ (y - y.mean()))) / n
    if alpha_max <= 0:
        alpha_max = 1.0
    return np.logspace(np.log10(alpha_max), np.log10(alpha_max * eps), num=n_alphas)


def lasso_check(
    frame: pd.DataFrame,
    outcome: str,
    predictors: Sequence[str],
    categorical: Iterable[str] = (),
    cv_folds: int = 10,
    n_alphas: int = 100,
    max_iter: int = 10000,
    random_state: int = 42,
    stratum: str = "full",
) -> LassoCheckResult:
    """
    Fit a LASSO path on standardised predictors and pick the penalty by
    K-fold cross-validation.

    A categorical term counts as zeroed only if all of its dummies are zero.
    """
    predictors = list(predictors)
    categorical = [c for c in categorical if c in predictors]
    design = build_design(frame, predictors, categorical).drop(columns=[CONST])
    y = frame[outcome].astype(float).values

    X = StandardScaler().fit_transform(design.values)
    folds = KFold(n_splits=cv_folds, shuffle=True, random_state=random_state)

    model = LassoCV(
        alphas=_alpha_grid(X, y, n_alphas),
        cv=folds,
        max_iter=max_iter,
        random_state=random_state,
    )
    model.fit(X, y)

    coef = pd.Series(model.coef_, index=design.columns)
    rows = []
    zeroed = []
    for term in predictors:
        cols = term_columns(list(design.columns), term, categorical)
        values = coef[cols]
        is_zero = bool((values == 0).all())
        if is_zero:
            zeroed.append(term)
        rows.append({
            'Predictor': term,
            'N_Columns': len(cols),
            'Max_Abs_Coefficient': round(float(values.abs().max()), 6) if len(cols) else 0.0,
            'Status': 'Zeroed' if is_zero else 'Kept',
        })

    result = LassoCheckResult(
        stratum=stratum,
        alpha=float(model.alpha_),
        coefficients_df=pd.DataFrame(rows),
        zeroed_predictors=zeroed,
        cv_folds=cv_folds,
    )
    if result.is_degenerate:
        logger.info(
            f"LASSO | {stratum}: alpha={result.alpha:.6g}, no coefficient driven "
            f"to zero; no predictor dropped on regularization grounds"
        )
    else:
        logger.info(
            f"LASSO | {stratum}: alpha={result.alpha:.6g}, zeroed {zeroed} "
            f"(reported only)"
        )
    return result
