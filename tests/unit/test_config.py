"""
Unit Tests for Config System

Tests config schema validation, YAML loading, CLI overrides,
config immutability, and save/load round-trips.
"""

import pytest
import yaml
from pathlib import Path
from pydantic import ValidationError

from src.config.schema import (
    STRATA,
    PipelineConfig,
    DataConfig,
    CollinearityDecision,
    CollinearityConfig,
    SelectionConfig,
    LassoConfig,
    ValidationConfig,
    OutputConfig,
    ReproducibilityConfig,
)
from src.config.loader import load_config, save_config, _set_nested, _deep_merge


REPO_CONFIG = Path(__file__).resolve().parents[2] / "config" / "life_expectancy.yaml"


@pytest.fixture
def tmp_config_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({
        "data": {"input_path": "data/le.csv"},
        "selection": {"forward_alpha": 0.1},
    }))
    return path


# ===================================================================
# Schema Defaults
# ===================================================================

class TestSchemaDefaults:
    """Test that all config models can be created with defaults."""

    def test_data_config_defaults(self):
        cfg = DataConfig()
        assert cfg.outcome_column == "Life expectancy"
        assert cfg.anchor_column == "Population"
        assert cfg.categorical_columns == ["Country"]
        assert cfg.drop_incomplete_rows is True
        assert len(cfg.predictor_columns) == 20
        assert "Status" not in cfg.modelling_predictors

    def test_status_indicator_appended(self):
        cfg = DataConfig(include_status_indicator=True)
        assert cfg.modelling_predictors[-1] == "Status"

    def test_collinearity_defaults(self):
        cfg = CollinearityConfig()
        assert cfg.correlation_threshold == 0.90
        assert cfg.on_unresolved == "error"
        kept = {d.keep for d in cfg.decisions}
        assert kept == {
            "under-five deaths", "percentage expenditure",
            "thinness 5-9 years", "Schooling",
        }

    def test_selection_defaults(self):
        cfg = SelectionConfig()
        assert cfg.methods == ["forward", "backward", "both"]
        assert tuple(cfg.strata) == STRATA
        assert cfg.forward_alpha == 0.20
        assert cfg.criterion_k == 2.0
        assert cfg.stepwise_start == "null"

    def test_lasso_defaults(self):
        cfg = LassoConfig()
        assert cfg.cv_folds == 10

    def test_validation_defaults(self):
        cfg = ValidationConfig()
        assert cfg.stratum == "developing"
        assert cfg.test_size == 0.25
        assert cfg.predictors is None

    def test_output_and_reproducibility_defaults(self):
        assert OutputConfig().generate_excel is True
        assert ReproducibilityConfig().global_seed == 42

    def test_pipeline_config_all_defaults(self):
        cfg = PipelineConfig()
        assert cfg.data.outcome_column == "Life expectancy"
        assert cfg.validation.stratum in cfg.selection.strata


# ===================================================================
# Schema Validation
# ===================================================================

class TestSchemaValidation:
    def test_outcome_as_predictor_rejected(self):
        with pytest.raises(ValidationError, match="cannot be a predictor"):
            DataConfig(predictor_columns=["Life expectancy", "GDP"])

    def test_empty_predictors_rejected(self):
        with pytest.raises(ValidationError):
            DataConfig(predictor_columns=[], categorical_columns=[])

    def test_unknown_categorical_rejected(self):
        with pytest.raises(ValidationError, match="not listed as predictors"):
            DataConfig(predictor_columns=["GDP"], categorical_columns=["Country"])

    def test_decision_keep_must_be_member(self):
        with pytest.raises(ValidationError):
            CollinearityDecision(variable_a="a", variable_b="b", keep="c")

    def test_decision_needs_two_variables(self):
        with pytest.raises(ValidationError):
            CollinearityDecision(variable_a="a", variable_b="a", keep="a")

    def test_decision_dropped(self):
        d = CollinearityDecision(variable_a="a", variable_b="b", keep="a")
        assert d.dropped == "b"

    @pytest.mark.parametrize("value", [0.0, 1.0, -0.2, 1.5])
    def test_test_size_bounds(self, value):
        with pytest.raises(ValidationError):
            ValidationConfig(test_size=value)

    @pytest.mark.parametrize("value", [0.0, 1.0])
    def test_forward_alpha_bounds(self, value):
        with pytest.raises(ValidationError):
            SelectionConfig(forward_alpha=value)

    def test_correlation_threshold_above_one_rejected(self):
        with pytest.raises(ValidationError):
            CollinearityConfig(correlation_threshold=1.2)

    def test_invalid_correlation_method_rejected(self):
        with pytest.raises(ValidationError):
            CollinearityConfig(method="cosine")

    def test_invalid_method_rejected(self):
        with pytest.raises(ValidationError):
            SelectionConfig(methods=["sideways"])

    def test_empty_methods_rejected(self):
        with pytest.raises(ValidationError):
            SelectionConfig(methods=[])

    def test_invalid_log_level_rejected(self):
        with pytest.raises(ValidationError):
            ReproducibilityConfig(log_level="LOUD")

    def test_validation_stratum_needs_selection(self):
        with pytest.raises(ValidationError, match="validation stratum"):
            PipelineConfig(
                selection={"strata": ["full"]},
                validation={"stratum": "developing"},
            )

    def test_explicit_predictors_lift_requirement(self):
        cfg = PipelineConfig(
            selection={"strata": ["full"]},
            validation={"stratum": "developing", "predictors": ["Adult Mortality"]},
        )
        assert cfg.validation.predictors == ["Adult Mortality"]


# ===================================================================
# Immutability
# ===================================================================

class TestConfigImmutability:
    """Test that frozen configs are immutable after creation."""

    def test_pipeline_config_frozen(self):
        cfg = PipelineConfig()
        with pytest.raises(ValidationError):
            cfg.data = DataConfig()

    def test_data_config_frozen(self):
        cfg = DataConfig()
        with pytest.raises(ValidationError):
            cfg.outcome_column = "GDP"


# ===================================================================
# Loading and overrides
# ===================================================================

class TestConfigLoading:
    def test_load_config_from_yaml(self, tmp_config_yaml):
        cfg = load_config(str(tmp_config_yaml))
        assert cfg.selection.forward_alpha == 0.1
        assert cfg.data.input_path == "data/le.csv"

    def test_load_config_with_defaults(self):
        cfg = load_config()
        assert cfg == PipelineConfig()

    def test_load_config_file_not_found(self):
        with pytest.raises(FileNotFoundError):
            load_config("nonexistent/config.yaml")

    def test_load_config_empty_yaml(self, tmp_path):
        empty_path = tmp_path / "empty.yaml"
        empty_path.write_text("")
        assert load_config(str(empty_path)) == PipelineConfig()

    def test_relative_input_resolved_against_yaml_dir(self, tmp_path):
        (tmp_path / "le.csv").write_text("x\n1\n")
        path = tmp_path / "cfg.yaml"
        path.write_text(yaml.safe_dump({"data": {"input_path": "le.csv"}}))
        cfg = load_config(str(path))
        assert Path(cfg.data.input_path) == (tmp_path / "le.csv").resolve()

    def test_shipped_config_loads(self):
        cfg = load_config(str(REPO_CONFIG))
        assert cfg.validation.predictors[:2] == ["Country", "Year"]
        assert "Adult Mortality" in cfg.validation.predictors
        assert len(cfg.collinearity.decisions) == 4


class TestCLIOverrides:
    def test_cli_override_simple_value(self, tmp_config_yaml):
        cfg = load_config(
            str(tmp_config_yaml),
            cli_overrides={"collinearity.correlation_threshold": 0.8},
        )
        assert cfg.collinearity.correlation_threshold == 0.8

    def test_cli_override_none_value_ignored(self, tmp_config_yaml):
        cfg = load_config(str(tmp_config_yaml), cli_overrides={"validation.test_size": None})
        assert cfg.validation.test_size == 0.25

    def test_cli_overrides_multiple(self, tmp_config_yaml):
        cfg = load_config(str(tmp_config_yaml), cli_overrides={
            "reproducibility.global_seed": 7,
            "validation.stratum": "full",
        })
        assert cfg.reproducibility.global_seed == 7
        assert cfg.validation.stratum == "full"

    def test_invalid_override_rejected(self, tmp_config_yaml):
        with pytest.raises(ValidationError):
            load_config(str(tmp_config_yaml), cli_overrides={"validation.test_size": 2.0})


class TestProgrammaticOverrides:
    def test_nested_override(self):
        cfg = load_config(overrides={"lasso": {"enabled": False}})
        assert cfg.lasso.enabled is False
        assert cfg.lasso.cv_folds == 10

    def test_set_nested(self):
        d = {}
        _set_nested(d, "a.b.c", 1)
        assert d == {"a": {"b": {"c": 1}}}

    def test_deep_merge(self):
        base = {"a": {"x": 1, "y": 2}, "b": 1}
        _deep_merge(base, {"a": {"y": 3}, "c": 4})
        assert base == {"a": {"x": 1, "y": 3}, "b": 1, "c": 4}


class TestSaveConfig:
    def test_yaml_round_trip(self, tmp_path):
        cfg = PipelineConfig(selection={"forward_alpha": 0.1})
        path = tmp_path / "snap" / "config.yaml"
        save_config(cfg, str(path))
        assert load_config(str(path)) == cfg

    def test_json_output(self, tmp_path):
        path = tmp_path / "config.json"
        save_config(PipelineConfig(), str(path))
        assert '"outcome_column": "Life expectancy"' in path.read_text()
