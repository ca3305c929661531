"""
pipeline.py - Aerial Survey Spatial Join Pipeline

Runs the full in-memory transformation:

    raw survey rows -> normalized records -> survey points
    boundary polygons -> prepared polygons
    points + polygons -> joined points -> summary table

Nothing is read from disk or from the environment here; callers pass the
inputs and a PipelineSettings and persist the returned PipelineResult.
"""

from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple

import geopandas as gpd
import pandas as pd
from loguru import logger

from .data_utils import FIELD_NAME_WIDTH, WGS84, normalize_survey_rows
from .points import build_point_features
from .polygons import POLYGON_ATTRIBUTES, prepare_boundary_polygons
from .spatial_join import JOIN_FLAG, failed_joins, join_points_to_polygons
from .summary import GROUP_KEYS, summarize_joined_features


@dataclass
class PipelineSettings:
    """Column names and geometry settings for one survey run."""

    longitude: str = "Longitude"
    latitude: str = "Latitude"
    survey_count: str = "Surveycount"
    quality: str = "Quality"
    device_time: str = "DeviceTime"
    group_keys: Tuple[str, ...] = GROUP_KEYS
    polygon_attributes: Tuple[str, ...] = POLYGON_ATTRIBUTES
    target_crs: str = WGS84
    field_name_width: int = FIELD_NAME_WIDTH
    keep_coordinates: bool = False
    device_time_format: Optional[str] = None
    placeholder: str = "NA"

    @property
    def required_fields(self) -> Sequence[str]:
        return (self.longitude, self.latitude)


@dataclass
class PipelineResult:
    """Point layer, joined layer and summary table of one run."""

    points: gpd.GeoDataFrame
    joined: gpd.GeoDataFrame
    summary: pd.DataFrame
    polygons: Optional[gpd.GeoDataFrame] = field(default=None, repr=False)

    @property
    def failed_joins(self) -> gpd.GeoDataFrame:
        return failed_joins(self.joined)

    @property
    def join_rate(self) -> float:
        if not len(self.joined):
            return 0.0
        return float(self.joined[JOIN_FLAG].mean())


def run_survey_pipeline(
    raw_rows,
    polygons: gpd.GeoDataFrame,
    settings: Optional[PipelineSettings] = None,
) -> PipelineResult:
    """
    Run every stage on one survey export and one boundary polygon layer.

    Args:
        raw_rows: Header-less survey table (DataFrame read with header=None, or rows)
        polygons: Stream section buffer polygons with a defined CRS
        settings: Column names and geometry settings; defaults if None

    Returns:
        PipelineResult with points, joined points and summary table

    Raises:
        SurveyPipelineError: any fatal condition; no partial output is returned
    """
    settings = settings or PipelineSettings()
    logger.info("🐟 Aerial Survey Spatial Join")
    logger.info("=" * 50)

    records = normalize_survey_rows(
        raw_rows, required=settings.required_fields, placeholder=settings.placeholder
    )

    points = build_point_features(
        records,
        longitude=settings.longitude,
        latitude=settings.latitude,
        crs=settings.target_crs,
        field_name_width=settings.field_name_width,
        keep_coordinates=settings.keep_coordinates,
    )

    prepared = prepare_boundary_polygons(
        polygons,
        target_crs=settings.target_crs,
        required_attributes=settings.polygon_attributes,
    )

    joined = join_points_to_polygons(points, prepared, field_name_width=settings.field_name_width)

    summary = summarize_joined_features(
        joined,
        group_keys=settings.group_keys,
        count_field=settings.survey_count,
        quality_field=settings.quality,
        time_field=settings.device_time,
        time_format=settings.device_time_format,
        field_name_width=settings.field_name_width,
    )

    result = PipelineResult(points=points, joined=joined, summary=summary, polygons=prepared)
    logger.success(
        f"🎉 Pipeline complete: {len(points):,} points, "
        f"{result.join_rate:.1%} joined, {len(summary):,} summary rows"
    )
    return result
