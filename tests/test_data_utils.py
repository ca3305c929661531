"""
Unit tests for survey row normalization.

Tests cover:
- Index and placeholder column removal
- Header uniqueness and required fields
- Numeric type inference
- Column lookup by truncated name
"""
import io

import pandas as pd
import pytest

from aerial_survey.data_utils import (
    infer_column_types,
    normalize_survey_rows,
    resolve_column,
    validate_required_columns,
)
from aerial_survey.errors import MalformedInputError


class TestNormalizeSurveyRows:
    """Tests for normalize_survey_rows."""

    def test_drops_index_and_placeholder_columns(self, raw_rows):
        records = normalize_survey_rows(raw_rows)

        assert list(records.columns) == [
            "Longitude", "Latitude", "Surveycount", "Quality", "DeviceTime", "SamplerName",
        ]
        assert "NA" not in records.columns
        assert len(records) == 4
        assert list(records.index) == [0, 1, 2, 3]

    def test_header_names_are_unique(self, raw_rows):
        records = normalize_survey_rows(raw_rows)
        assert records.columns.is_unique

    def test_unlabelled_columns_are_dropped(self):
        rows = [
            ["", "Longitude", None, "Latitude", "NA"],
            ["1", "-150.5", "x", "59.5", "y"],
        ]
        records = normalize_survey_rows(rows)
        assert list(records.columns) == ["Longitude", "Latitude"]

    def test_duplicate_header_fails(self):
        rows = [
            ["", "Longitude", "Latitude", "Quality", "Quality"],
            ["1", "-150.5", "59.5", "1", "2"],
        ]
        with pytest.raises(MalformedInputError, match="Duplicate field names"):
            normalize_survey_rows(rows)

    def test_missing_coordinate_field_fails(self):
        rows = [
            ["", "Longitude", "Surveycount"],
            ["1", "-150.5", "10"],
        ]
        with pytest.raises(MalformedInputError, match="Latitude") as excinfo:
            normalize_survey_rows(rows)
        assert excinfo.value.stage == "normalize"

    def test_table_without_header_fails(self):
        with pytest.raises(MalformedInputError):
            normalize_survey_rows(pd.DataFrame())

    def test_numeric_columns_are_converted(self, raw_rows):
        records = normalize_survey_rows(raw_rows)

        assert pd.api.types.is_numeric_dtype(records["Surveycount"])
        assert pd.api.types.is_numeric_dtype(records["Quality"])
        assert pd.api.types.is_numeric_dtype(records["Longitude"])
        assert not pd.api.types.is_numeric_dtype(records["SamplerName"])
        assert pd.isna(records.loc[2, "Surveycount"])

    def test_reads_header_less_csv(self):
        text = (
            '"","Longitude","Latitude","Surveycount",NA\n'
            '"1","-150.5","59.5","12",\n'
            '"2","-148.5","59.5","3",\n'
        )
        raw = pd.read_csv(io.StringIO(text), header=None, dtype=str)
        records = normalize_survey_rows(raw)

        assert list(records.columns) == ["Longitude", "Latitude", "Surveycount"]
        assert records["Surveycount"].tolist() == [12, 3]


class TestColumnHelpers:
    """Tests for column lookup and type inference."""

    def test_resolve_full_and_truncated_names(self):
        df = pd.DataFrame(columns=["SamplerNam", "Quality"])

        assert resolve_column(df, "Quality") == "Quality"
        assert resolve_column(df, "SamplerName") is None
        assert resolve_column(df, "SamplerName", width=10) == "SamplerNam"

    def test_validate_required_columns_reports_stage(self):
        df = pd.DataFrame(columns=["STOCK"])

        with pytest.raises(MalformedInputError) as excinfo:
            validate_required_columns(df, ["STOCK", "Species"], stage="aggregate")
        assert excinfo.value.stage == "aggregate"
        assert "Species" in str(excinfo.value)

    def test_mixed_text_column_is_left_alone(self):
        df = pd.DataFrame({"a": ["1", "abc", None], "b": ["1", " ", "2.5"]}, dtype=object)
        typed = infer_column_types(df)

        assert typed["a"].dtype == object
        assert typed["b"].tolist()[0] == 1.0
        assert pd.isna(typed["b"].iloc[1])

    def test_string_dtype_columns_are_converted(self):
        df = pd.DataFrame(
            {"Surveycount": ["12", "", "3"], "SamplerName": ["Hollowell", "Bacon", "Hollowell"]},
            dtype="string",
        )
        typed = infer_column_types(df)

        assert pd.api.types.is_numeric_dtype(typed["Surveycount"])
        assert typed["Surveycount"].iloc[0] == 12
        assert pd.isna(typed["Surveycount"].iloc[1])
        assert not pd.api.types.is_numeric_dtype(typed["SamplerName"])
