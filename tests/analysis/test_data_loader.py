"""
Tests for src.analysis.data_loader

Covers: normalize_column_name, load_table, validate_columns,
encode_status, drop_missing, clean_strata, StrataSets.
"""

import pytest
import numpy as np
import pandas as pd

from src.config.schema import DataConfig
from src.core.exceptions import (
    DataQualityError,
    DataReaderError,
    SchemaValidationError,
)
from src.analysis.data_loader import (
    StrataSets,
    clean_strata,
    drop_missing,
    encode_status,
    load_table,
    normalize_column_name,
    require_complete,
    required_columns,
    validate_columns,
)


# ===================================================================
# normalize_column_name
# ===================================================================

class TestNormalizeColumnName:
    @pytest.mark.parametrize("raw,expected", [
        ("Life expectancy ", "Life expectancy"),
        (" thinness  1-19 years", "thinness 1-19 years"),
        (" BMI ", "BMI"),
        ("Adult Mortality", "Adult Mortality"),
    ])
    def test_strips_and_collapses(self, raw, expected):
        assert normalize_column_name(raw) == expected


# ===================================================================
# load_table
# ===================================================================

class TestLoadTable:
    def test_loads_and_normalizes_headers(self, life_csv, life_raw):
        df = load_table(str(life_csv))
        assert len(df) == len(life_raw)
        assert "Life expectancy" in df.columns
        assert "thinness 1-19 years" in df.columns
        assert "HIV/AIDS" in df.columns

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(DataReaderError) as exc_info:
            load_table(str(tmp_path / "nope.csv"))
        assert exc_info.value.source.endswith("nope.csv")

    def test_empty_file_raises(self, tmp_path):
        path = tmp_path / "empty.csv"
        path.write_text("")
        with pytest.raises(DataReaderError):
            load_table(str(path))


# ===================================================================
# validate_columns
# ===================================================================

class TestValidateColumns:
    def test_all_present_passes(self, life_raw, data_config):
        validate_columns(life_raw, required_columns(data_config))

    def test_missing_columns_listed(self, life_raw):
        df = life_raw.drop(columns=["Schooling", "GDP"])
        with pytest.raises(SchemaValidationError) as exc_info:
            validate_columns(df, ["Country", "GDP", "Schooling"])
        assert exc_info.value.missing_columns == ["GDP", "Schooling"]


# ===================================================================
# encode_status
# ===================================================================

class TestEncodeStatus:
    def test_binary_encoding(self):
        df = pd.DataFrame({"Status": ["Developed", "Developing", "Developing"]})
        out = encode_status(df, "Status")
        assert out["Status"].tolist() == [1, 0, 0]

    def test_input_not_mutated(self):
        df = pd.DataFrame({"Status": ["Developed", "Developing"]})
        encode_status(df, "Status")
        assert df["Status"].tolist() == ["Developed", "Developing"]

    def test_missing_status_kept_as_nan(self):
        df = pd.DataFrame({"Status": ["Developed", None]})
        out = encode_status(df, "Status")
        assert out["Status"].iloc[0] == 1
        assert np.isnan(out["Status"].iloc[1])

    def test_unknown_label_raises(self):
        df = pd.DataFrame({"Status": ["Developed", "Emerging"]})
        with pytest.raises(DataQualityError, match="Emerging"):
            encode_status(df, "Status")


# ===================================================================
# drop_missing
# ===================================================================

class TestDropMissing:
    def _frame(self):
        return pd.DataFrame({
            "Population": [1.0, np.nan, 3.0, 4.0],
            "GDP": [1.0, 2.0, np.nan, 4.0],
            "y": [1.0, 2.0, 3.0, 4.0],
        })

    def test_anchor_only(self):
        out = drop_missing(self._frame(), "Population", ["GDP", "y"], drop_incomplete_rows=False)
        assert len(out) == 3
        assert out["Population"].notna().all()

    def test_complete_case(self):
        out = drop_missing(self._frame(), "Population", ["GDP", "y"], drop_incomplete_rows=True)
        assert len(out) == 2
        assert out[["GDP", "y"]].notna().all().all()

    def test_fresh_index_and_no_mutation(self):
        df = self._frame()
        out = drop_missing(df, "Population", ["GDP", "y"])
        assert list(out.index) == list(range(len(out)))
        assert len(df) == 4


# ===================================================================
# clean_strata
# ===================================================================

class TestCleanStrata:
    def test_anchor_non_null_in_every_stratum(self, strata):
        for name in ("full", "developing", "developed"):
            assert strata.get(name)["Population"].notna().all()

    def test_status_encoded(self, strata):
        assert set(strata.full["Status"].unique()) == {0, 1}
        assert (strata.developing["Status"] == 0).all()
        assert (strata.developed["Status"] == 1).all()

    def test_subset_counts_reported(self, strata):
        counts = strata.row_counts
        assert counts == {"full": 186, "developing": 125, "developed": 61}

    def test_subsets_cleaned_independently(self, life_raw, data_config, strata):
        encoded = encode_status(life_raw, "Status")
        columns = list(dict.fromkeys(
            [data_config.outcome_column, data_config.status_column]
            + data_config.modelling_predictors
        ))
        for name, code in (("developing", 0), ("developed", 1)):
            alone = drop_missing(
                encoded[encoded["Status"] == code], data_config.anchor_column, columns
            )
            assert strata.row_counts[name] == len(alone)

    def test_raw_counts_tracked(self, strata):
        df = strata.row_counts_df()
        full = df[df["Stratum"] == "full"].iloc[0]
        assert full["Raw_Rows"] == 192
        assert full["Dropped_Rows"] == 6

    def test_raw_table_not_mutated(self, life_raw, data_config):
        before = life_raw.copy()
        clean_strata(life_raw, data_config)
        pd.testing.assert_frame_equal(life_raw, before)

    def test_anchor_only_policy_keeps_other_gaps(self, life_raw):
        config = DataConfig(drop_incomplete_rows=False)
        strata = clean_strata(life_raw, config)
        assert len(strata.full) == 189
        assert strata.full["Hepatitis B"].isna().sum() == 2

    def test_require_complete_names_gap_columns(self, life_raw, data_config):
        anchor_only = clean_strata(life_raw, DataConfig(drop_incomplete_rows=False))
        columns = [data_config.outcome_column] + data_config.modelling_predictors
        with pytest.raises(DataQualityError, match="Hepatitis B") as excinfo:
            require_complete(anchor_only.full, columns, label="full")
        assert {"column": "Hepatitis B", "missing": 2} in excinfo.value.validation_errors

    def test_require_complete_passes_on_complete_cases(self, strata, data_config):
        columns = [data_config.outcome_column] + data_config.modelling_predictors
        for name in ("full", "developing", "developed"):
            require_complete(strata.get(name), columns, label=name)

    def test_empty_stratum_raises(self, life_raw, data_config):
        developing_only = life_raw[life_raw["Status"] == "Developing"]
        with pytest.raises(DataQualityError, match="developed"):
            clean_strata(developing_only, data_config)

    def test_missing_required_column_raises(self, life_raw, data_config):
        with pytest.raises(SchemaValidationError):
            clean_strata(life_raw.drop(columns=["Population"]), data_config)

    def test_get_unknown_stratum(self, strata):
        with pytest.raises(KeyError):
            strata.get("emerging")
