"""
Pydantic Configuration Schema

Defines all configuration models for the life expectancy analysis.
Defaults reproduce the reference run: complete-case cleaning, 0.90
correlation cutoff, alpha=0.20 forward selection, 3:1 split with seed 42.
"""

from typing import List, Literal, Optional
from pydantic import BaseModel, Field, model_validator


STRATA = ("full", "developing", "developed")

StratumName = Literal["full", "developing", "developed"]
SelectionMethod = Literal["forward", "backward", "both"]


def _default_predictors() -> List[str]:
    return [
        "Country",
        "Year",
        "Adult Mortality",
        "infant deaths",
        "Alcohol",
        "percentage expenditure",
        "Hepatitis B",
        "Measles",
        "BMI",
        "under-five deaths",
        "Polio",
        "Total expenditure",
        "Diphtheria",
        "HIV/AIDS",
        "GDP",
        "Population",
        "thinness 1-19 years",
        "thinness 5-9 years",
        "Income composition of resources",
        "Schooling",
    ]


class DataConfig(BaseModel):
    """Input table and column roles."""

    model_config = {"frozen": True}

    input_path: str = "data/Life Expectancy Data.csv"
    outcome_column: str = "Life expectancy"
    status_column: str = "Status"
    country_column: str = "Country"
    year_column: str = "Year"
    anchor_column: str = "Population"
    predictor_columns: List[str] = Field(default_factory=_default_predictors)
    categorical_columns: List[str] = Field(default_factory=lambda: ["Country"])
    developed_label: str = "Developed"
    developing_label: str = "Developing"
    drop_incomplete_rows: bool = True
    include_status_indicator: bool = False

    @model_validator(mode="after")
    def outcome_not_predictor(self) -> "DataConfig":
        if self.outcome_column in self.predictor_columns:
            raise ValueError(
                f"outcome column '{self.outcome_column}' cannot be a predictor"
            )
        if not self.predictor_columns:
            raise ValueError("predictor_columns must not be empty")
        unknown = [c for c in self.categorical_columns if c not in self.predictor_columns]
        if unknown:
            raise ValueError(
                f"categorical columns {unknown} are not listed as predictors"
            )
        return self

    @property
    def modelling_predictors(self) -> List[str]:
        """Candidate predictors, with the status indicator appended when enabled."""
        predictors = list(self.predictor_columns)
        if self.include_status_indicator and self.status_column not in predictors:
            predictors.append(self.status_column)
        return predictors


class CollinearityDecision(BaseModel):
    """One row of the analyst's decision table for a correlated pair."""

    model_config = {"frozen": True}

    variable_a: str
    variable_b: str
    keep: str
    reason: str = ""

    @model_validator(mode="after")
    def keep_is_member(self) -> "CollinearityDecision":
        if self.variable_a == self.variable_b:
            raise ValueError("a decision needs two distinct variables")
        if self.keep not in (self.variable_a, self.variable_b):
            raise ValueError(
                f"keep ('{self.keep}') must be '{self.variable_a}' "
                f"or '{self.variable_b}'"
            )
        return self

    @property
    def dropped(self) -> str:
        return self.variable_b if self.keep == self.variable_a else self.variable_a


def _default_decisions() -> List[CollinearityDecision]:
    return [
        CollinearityDecision(
            variable_a="infant deaths",
            variable_b="under-five deaths",
            keep="under-five deaths",
            reason="under-five deaths covers infant deaths and is the broader target",
        ),
        CollinearityDecision(
            variable_a="percentage expenditure",
            variable_b="GDP",
            keep="percentage expenditure",
            reason="health expenditure is directly actionable",
        ),
        CollinearityDecision(
            variable_a="thinness 1-19 years",
            variable_b="thinness 5-9 years",
            keep="thinness 5-9 years",
            reason="near-identical proxies; keep the narrower age band",
        ),
        CollinearityDecision(
            variable_a="Income composition of resources",
            variable_b="Schooling",
            keep="Schooling",
            reason="schooling is the policy lever; income composition overlaps above 0.70",
        ),
    ]


class CollinearityConfig(BaseModel):
    """Correlation / VIF screening configuration."""

    model_config = {"frozen": True}

    correlation_threshold: float = Field(default=0.90, gt=0.0, le=1.0)
    method: Literal["pearson", "spearman", "kendall"] = "pearson"
    vif_threshold: float = Field(default=10.0, gt=1.0)
    decisions: List[CollinearityDecision] = Field(default_factory=_default_decisions)
    on_unresolved: Literal["error", "warn"] = "error"


class SelectionConfig(BaseModel):
    """Stepwise selection configuration."""

    model_config = {"frozen": True}

    methods: List[SelectionMethod] = Field(
        default_factory=lambda: ["forward", "backward", "both"]
    )
    strata: List[StratumName] = Field(default_factory=lambda: list(STRATA))
    forward_alpha: float = Field(default=0.20, gt=0.0, lt=1.0)
    criterion_k: float = Field(default=2.0, gt=0.0)
    stepwise_start: Literal["null", "full"] = "null"
    n_jobs: int = 1

    @model_validator(mode="after")
    def non_empty(self) -> "SelectionConfig":
        if not self.methods:
            raise ValueError("at least one selection method is required")
        if not self.strata:
            raise ValueError("at least one stratum is required")
        return self


class LassoConfig(BaseModel):
    """L1-regularised cross-check configuration."""

    model_config = {"frozen": True}

    enabled: bool = True
    cv_folds: int = Field(default=10, ge=2)
    n_alphas: int = Field(default=100, ge=5)
    max_iter: int = Field(default=10000, ge=100)


class ValidationConfig(BaseModel):
    """Hold-out validation configuration."""

    model_config = {"frozen": True}

    enabled: bool = True
    stratum: StratumName = "developing"
    predictors: Optional[List[str]] = None
    test_size: float = Field(default=0.25, gt=0.0, lt=1.0)
    max_r2_gap: float = Field(default=0.05, ge=0.0)


class OutputConfig(BaseModel):
    """Output configuration."""

    model_config = {"frozen": True}

    base_dir: str = "outputs/life_expectancy"
    generate_excel: bool = True
    save_config: bool = True


class ReproducibilityConfig(BaseModel):
    """Reproducibility and logging configuration."""

    model_config = {"frozen": True}

    global_seed: int = 42
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"


class PipelineConfig(BaseModel):
    """Top-level configuration combining all sections."""

    model_config = {"frozen": True}

    data: DataConfig = Field(default_factory=DataConfig)
    collinearity: CollinearityConfig = Field(default_factory=CollinearityConfig)
    selection: SelectionConfig = Field(default_factory=SelectionConfig)
    lasso: LassoConfig = Field(default_factory=LassoConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    reproducibility: ReproducibilityConfig = Field(default_factory=ReproducibilityConfig)

    @model_validator(mode="after")
    def validation_stratum_selected(self) -> "PipelineConfig":
        if (
            self.validation.enabled
            and self.validation.predictors is None
            and self.validation.stratum not in self.selection.strata
        ):
            raise ValueError(
                f"validation stratum '{self.validation.stratum}' needs either "
                f"explicit predictors or a selection run on that stratum"
            )
        return self
