"""
Unit tests for the survey point builder.

Tests cover:
- Point geometry and reference system
- Coordinate column handling
- Field name truncation and collision detection
- Malformed coordinate reporting
"""
import pandas as pd
import pytest

from aerial_survey.data_utils import normalize_survey_rows
from aerial_survey.errors import FieldNameCollisionError, MalformedCoordinateError
from aerial_survey.points import build_point_features, truncate_field_names

from conftest import make_raw_rows


@pytest.fixture
def records(raw_rows) -> pd.DataFrame:
    return normalize_survey_rows(raw_rows)


class TestBuildPointFeatures:
    """Tests for build_point_features."""

    def test_one_point_per_record_in_wgs84(self, records):
        points = build_point_features(records)

        assert len(points) == len(records)
        assert points.crs.to_epsg() == 4326
        assert points.geometry.x.tolist() == [-150.5, -150.5, -148.5, -140.0]
        assert points.geometry.y.tolist() == [59.5, 59.5, 59.5, 50.0]

    def test_coordinates_become_geometry(self, records):
        points = build_point_features(records)

        assert "Longitude" not in points.columns
        assert "Latitude" not in points.columns

    def test_keep_coordinates(self, records):
        points = build_point_features(records, keep_coordinates=True)

        assert points["Longitude"].tolist() == records["Longitude"].tolist()

    def test_field_names_are_truncated(self, records):
        points = build_point_features(records)

        assert all(len(col) <= 10 for col in points.columns)
        assert "Surveycoun" in points.columns
        assert "SamplerNam" in points.columns
        assert "DeviceTime" in points.columns
        assert points["SamplerNam"].tolist() == ["Hollowell"] * 4

    def test_custom_width(self, records):
        points = build_point_features(records, field_name_width=7)
        assert "Quality" in points.columns
        assert "Sampler" in points.columns

    def test_non_numeric_latitude_fails_with_record(self):
        rows = make_raw_rows([
            ("-150.5", "59.5", "1", "1", "", "A"),
            ("-150.5", "north", "1", "1", "", "A"),
        ])
        records = normalize_survey_rows(rows)

        with pytest.raises(MalformedCoordinateError) as excinfo:
            build_point_features(records)

        assert excinfo.value.positions == [1]
        assert excinfo.value.values[1] == (-150.5, "north")
        assert "source line 3" in str(excinfo.value)

    def test_missing_and_infinite_coordinates_fail(self):
        rows = make_raw_rows([
            ("", "59.5", "1", "1", "", "A"),
            ("-150.5", "59.5", "1", "1", "", "A"),
            ("inf", "59.5", "1", "1", "", "A"),
        ])
        records = normalize_survey_rows(rows)

        with pytest.raises(MalformedCoordinateError) as excinfo:
            build_point_features(records)

        assert excinfo.value.positions == [0, 2]
        assert excinfo.value.stage == "points"

    def test_truncation_collision_fails(self, records):
        records = records.assign(SurveyCount1=1, SurveyCount2=2)

        with pytest.raises(FieldNameCollisionError) as excinfo:
            build_point_features(records)

        assert excinfo.value.collisions == {"SurveyCoun": ["SurveyCount1", "SurveyCount2"]}


class TestTruncateFieldNames:
    """Tests for truncate_field_names."""

    def test_short_names_unchanged(self):
        assert truncate_field_names(["STOCK", "Quality"]) == {"STOCK": "STOCK", "Quality": "Quality"}

    def test_long_names_cut(self):
        mapping = truncate_field_names(["MEAN_OVERALL_RATING"])
        assert mapping == {"MEAN_OVERALL_RATING": "MEAN_OVERA"}

    def test_collision_names_stage(self):
        with pytest.raises(FieldNameCollisionError) as excinfo:
            truncate_field_names(["abcdefghijk1", "abcdefghijk2"], stage="join")
        assert excinfo.value.stage == "join"
