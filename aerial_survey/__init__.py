"""
Aerial survey processing package

Spatial join of salmon escapement aerial survey counts to stream section
buffer polygons, with a grouped escapement summary.
"""

__version__ = "0.1.0"

from .data_utils import normalize_survey_rows, validate_required_columns
from .errors import (
    FieldNameCollisionError,
    InvalidGeometryError,
    MalformedCoordinateError,
    MalformedInputError,
    ReferenceSystemError,
    SurveyPipelineError,
)
from .pipeline import PipelineResult, PipelineSettings, run_survey_pipeline
from .points import build_point_features, truncate_field_names
from .polygons import prepare_boundary_polygons
from .spatial_join import failed_joins, join_points_to_polygons
from .summary import summarize_joined_features

__all__ = [
    "normalize_survey_rows",
    "validate_required_columns",
    "build_point_features",
    "truncate_field_names",
    "prepare_boundary_polygons",
    "join_points_to_polygons",
    "failed_joins",
    "summarize_joined_features",
    "run_survey_pipeline",
    "PipelineSettings",
    "PipelineResult",
    "SurveyPipelineError",
    "MalformedInputError",
    "MalformedCoordinateError",
    "InvalidGeometryError",
    "ReferenceSystemError",
    "FieldNameCollisionError",
]
