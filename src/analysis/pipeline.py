"""
Life Expectancy Analysis Pipeline

Orchestrates the analysis end to end:
1. Load the table and report missingness
2. Clean into full / developing / developed strata
3. Collinearity screening against the decision table
4. Exploratory summaries
5. Forward, backward and bidirectional selection per stratum
6. LASSO cross-check
7. Hold-out validation of the final model
8. Excel report and config snapshot
"""

from typing import Any, Dict, List, Optional
from datetime import datetime
from pathlib import Path
import logging

from src.config.loader import save_config
from src.config.schema import PipelineConfig
from src.core.exceptions import ConfigurationError, PipelineException
from src.core.logger import PipelineLogger, setup_logging
from src.analysis.data_loader import StrataSets, clean_strata, load_table, require_complete
from src.analysis.collinearity import CollinearityFilter, CollinearityResult
from src.analysis.exploration import (
    missing_value_report,
    outcome_correlations,
    summarize_by_status,
)
from src.analysis.feature_selector import (
    LassoCheckResult,
    SelectionResult,
    consensus_predictors,
    lasso_check,
    run_selection_grid,
    selection_agreement,
    usable_predictors,
)
from src.analysis.validator import ValidationResult, validate_model
from src.analysis import excel_reporter


logger = logging.getLogger(__name__)


class LifeExpectancyAnalysis:
    """
    End-to-end life expectancy determinants analysis.

    Each stage derives a new value from the previous one; the loaded
    table is never modified in place. Stage failures propagate.
    """

    def __init__(self, config: PipelineConfig, output_dir: Optional[str] = None):
        self.config = config
        self.run_id = datetime.now().strftime('%Y%m%d_%H%M%S')
        self.output_dir = Path(output_dir or config.output.base_dir) / self.run_id
        self.output_dir.mkdir(parents=True, exist_ok=True)

        self.plog = PipelineLogger(__name__)
        self._setup_logging()

        self.strata: Optional[StrataSets] = None
        self.collinearity_result: Optional[CollinearityResult] = None
        self.selection_results: List[SelectionResult] = []
        self.lasso_results: List[LassoCheckResult] = []
        self.validation_result: Optional[ValidationResult] = None

    def _setup_logging(self) -> None:
        """Console plus a per-run log file inside the run directory."""
        self.log_file = str(self.output_dir / f'analysis_{self.run_id}.log')
        setup_logging(
            log_level=self.config.reproducibility.log_level,
            log_file=self.log_file,
        )
        self.plog.set_context(run_id=self.run_id)
        logger.info(f"INIT | Analysis started, run_id={self.run_id}")
        logger.info(f"INIT | Input: {self.config.data.input_path}")
        logger.info(f"INIT | Log file: {self.log_file}")

    def run(self) -> Dict[str, Any]:
        """Execute the full analysis and return a results dict."""
        try:
            return self._run()
        except PipelineException as e:
            logger.error(f"FAILED | {type(e).__name__}: {e}")
            raise

    def _run(self) -> Dict[str, Any]:
        data_cfg = self.config.data
        outcome = data_cfg.outcome_column
        results: Dict[str, Any] = {
            'run_id': self.run_id,
            'output_dir': str(self.output_dir),
            'log_file': self.log_file,
        }

        with self.plog.stage("Load"):
            raw = load_table(data_cfg.input_path)
            self.plog.data_stats("raw", len(raw), len(raw.columns))
            missing_df = missing_value_report(raw, data_cfg.country_column, data_cfg.year_column)

        with self.plog.stage("Clean"):
            strata = clean_strata(raw, data_cfg)
            self.strata = strata
            results['row_counts'] = strata.row_counts
            for name, count in strata.row_counts.items():
                self.plog.data_stats(name, count)
            model_columns = [outcome] + data_cfg.modelling_predictors
            for name in strata.row_counts:
                require_complete(strata.get(name), model_columns, label=name)

        with self.plog.stage("Collinearity"):
            coll_filter = CollinearityFilter.from_config(self.config.collinearity)
            coll = coll_filter.run(
                strata.full, outcome,
                data_cfg.modelling_predictors,
                list(data_cfg.categorical_columns),
            )
            self.collinearity_result = coll
            reduced = coll.kept_features
            categorical = [c for c in data_cfg.categorical_columns if c in reduced]
            for name in ('developing', 'developed'):
                coll_filter.check_subset(strata.get(name), reduced, categorical, label=name)
            results['reduced_predictors'] = reduced
            results['dropped_predictors'] = coll.dropped_features

        numeric_reduced = [c for c in reduced if c not in categorical]
        status_summary_df = summarize_by_status(
            strata.full,
            data_cfg.status_column,
            [outcome] + numeric_reduced,
            labels={0: data_cfg.developing_label, 1: data_cfg.developed_label},
        )
        outcome_corr_df = outcome_correlations(coll.corr_matrix, outcome)
        if not outcome_corr_df.empty:
            top = outcome_corr_df.iloc[0]
            logger.info(
                f"EXPLORE | Strongest outcome correlate: {top['Variable']} "
                f"(r={top['Correlation']:.4f})"
            )

        sel_cfg = self.config.selection
        with self.plog.stage("Selection"):
            frames = {name: strata.get(name) for name in sel_cfg.strata}
            self.selection_results = run_selection_grid(
                frames, outcome, reduced, categorical, sel_cfg
            )
            agreement_df = selection_agreement(self.selection_results)

            results['selections'] = {}
            for res in self.selection_results:
                results['selections'].setdefault(res.stratum, {})[res.method] = res.selected_features
                logger.debug(
                    f"SELECTION | {res.stratum}/{res.method} final model:\n{res.model.summary()}"
                )
            results['consensus'] = {
                name: consensus_predictors(self.selection_results, name)
                for name in sel_cfg.strata
            }

        lasso_cfg = self.config.lasso
        seed = self.config.reproducibility.global_seed
        results['lasso'] = {}
        if lasso_cfg.enabled:
            with self.plog.stage("LASSO"):
                for name in sel_cfg.strata:
                    frame = strata.get(name)
                    lr = lasso_check(
                        frame, outcome,
                        usable_predictors(frame, reduced, name),
                        categorical,
                        cv_folds=lasso_cfg.cv_folds,
                        n_alphas=lasso_cfg.n_alphas,
                        max_iter=lasso_cfg.max_iter,
                        random_state=seed,
                        stratum=name,
                    )
                    self.lasso_results.append(lr)
                    results['lasso'][name] = {
                        'alpha': lr.alpha,
                        'zeroed': lr.zeroed_predictors,
                        'degenerate': lr.is_degenerate,
                    }

        val_cfg = self.config.validation
        validation_df = None
        coefficients_df = None
        if val_cfg.enabled:
            with self.plog.stage("Validation"):
                frame = strata.get(val_cfg.stratum)
                final_predictors = self._final_predictors(results['consensus'], frame)
                vr = validate_model(
                    frame, outcome, final_predictors,
                    categorical=list(data_cfg.categorical_columns),
                    test_size=val_cfg.test_size,
                    seed=seed,
                    max_r2_gap=val_cfg.max_r2_gap,
                    stratum=val_cfg.stratum,
                )
                self.validation_result = vr
                validation_df = vr.metrics_df
                coefficients_df = vr.model.coefficients_df()
                logger.info(f"VALIDATION | Final model summary:\n{vr.model.summary()}")
                results['validation'] = {
                    'stratum': vr.stratum,
                    'predictors': vr.predictors,
                    'train_r2': vr.train_r2,
                    'test_r2': vr.test_r2,
                    'train_rmse': vr.train_rmse,
                    'test_rmse': vr.test_rmse,
                    'n_train': vr.n_train,
                    'n_test': vr.n_test,
                    'r2_gap': vr.r2_gap,
                    'overfit_warning': vr.overfit_warning,
                }
                self.plog.metric("train_r2", vr.train_r2)
                self.plog.metric("test_r2", vr.test_r2)

        if self.config.output.generate_excel:
            excel_path = str(self.output_dir / f'life_expectancy_{self.run_id}.xlsx')
            excel_reporter.generate_report(
                output_path=excel_path,
                summary=self._build_summary(results),
                row_counts_df=strata.row_counts_df(),
                missing_df=missing_df,
                status_summary_df=status_summary_df,
                corr_matrix=coll.corr_matrix,
                corr_pairs_df=coll.pairs_df,
                vif_df=coll.vif_df,
                decisions_df=coll.details_df,
                selection_results=self.selection_results,
                agreement_df=agreement_df,
                lasso_results=self.lasso_results,
                validation_df=validation_df,
                coefficients_df=coefficients_df,
            )
            results['excel_path'] = excel_path

        if self.config.output.save_config:
            config_path = str(self.output_dir / 'config.yaml')
            save_config(self.config, config_path)
            results['config_path'] = config_path

        results['status'] = 'success'
        logger.info(f"COMPLETE | Analysis finished, outputs in {self.output_dir}")
        return results

    def _final_predictors(self, consensus: Dict[str, List[str]], frame) -> List[str]:
        """Explicit validation predictors when configured, else the stratum consensus."""
        val_cfg = self.config.validation
        if val_cfg.predictors is not None:
            missing = [p for p in val_cfg.predictors if p not in frame.columns]
            if missing:
                raise ConfigurationError(
                    f"Validation predictors not in the table: {missing}",
                    details={'stratum': val_cfg.stratum},
                )
            predictors = list(val_cfg.predictors)
            logger.info(f"VALIDATION | Using configured predictors: {predictors}")
        else:
            predictors = consensus.get(val_cfg.stratum, [])
            logger.info(
                f"VALIDATION | Using {val_cfg.stratum} consensus predictors: {predictors}"
            )
        if not predictors:
            raise ConfigurationError(
                f"No predictors to validate on stratum '{val_cfg.stratum}'"
            )
        return predictors

    def _build_summary(self, results: Dict[str, Any]) -> Dict[str, Any]:
        """Build the summary dict for the 00_Summary sheet."""
        cfg = self.config
        counts = results['row_counts']
        summary = {
            'Run Date': datetime.now().strftime('%Y-%m-%d %H:%M:%S'),
            'Run ID': self.run_id,
            'Input File': cfg.data.input_path,
            'Outcome': cfg.data.outcome_column,
            'Rows (full)': counts['full'],
            'Rows (developing)': counts['developing'],
            'Rows (developed)': counts['developed'],
            '': '',  # separator
            'Candidate Predictors': len(cfg.data.modelling_predictors),
            'Dropped (Collinearity)': ', '.join(results['dropped_predictors']) or 'None',
            'Reduced Predictors': len(results['reduced_predictors']),
            ' ': '',  # separator
        }

        for stratum, chosen in results['consensus'].items():
            summary[f'Consensus ({stratum})'] = ', '.join(chosen) or 'None'

        for stratum, verdict in results.get('lasso', {}).items():
            summary[f'LASSO ({stratum})'] = (
                'No coefficient zeroed' if verdict['degenerate']
                else 'Zeroed: ' + ', '.join(verdict['zeroed'])
            )

        val = results.get('validation')
        if val:
            summary['  '] = ''  # separator
            summary['Validation Stratum'] = val['stratum']
            summary['Validation Predictors'] = ', '.join(val['predictors'])
            summary['Train R2'] = round(val['train_r2'], 4)
            summary['Test R2'] = round(val['test_r2'], 4)
            summary['Train RMSE'] = round(val['train_rmse'], 4)
            summary['Test RMSE'] = round(val['test_rmse'], 4)
            summary['R2 Gap Warning'] = 'Yes' if val['overfit_warning'] else 'No'

        # Settings
        summary['   '] = ''  # separator
        summary['Correlation Threshold'] = str(cfg.collinearity.correlation_threshold)
        summary['Forward Alpha'] = str(cfg.selection.forward_alpha)
        summary['Criterion k'] = str(cfg.selection.criterion_k)
        summary['Test Size'] = str(cfg.validation.test_size)
        summary['Seed'] = str(cfg.reproducibility.global_seed)
        return summary
