"""
points.py - Survey Point Builder

Converts normalized survey records into a WGS84 point layer. Field names are
cut down to the 10 character limit of the dBase attribute tables that sit
behind shapefile outputs.
"""

from collections import defaultdict
from typing import Dict, Iterable, List

import geopandas as gpd
import numpy as np
import pandas as pd
from loguru import logger

from .data_utils import FIELD_NAME_WIDTH, WGS84, validate_required_columns
from .errors import FieldNameCollisionError, MalformedCoordinateError


def truncate_field_names(
    columns: Iterable[str],
    width: int = FIELD_NAME_WIDTH,
    stage: str = "points",
) -> Dict[str, str]:
    """Map each column name to its first `width` characters.

    Raises:
        FieldNameCollisionError: if two different names truncate to the same value
    """
    mapping = {}
    groups: Dict[str, List[str]] = defaultdict(list)

    for col in columns:
        short = str(col)[:width]
        mapping[col] = short
        groups[short].append(col)

    collisions = {short: originals for short, originals in groups.items() if len(originals) > 1}
    if collisions:
        logger.error(f"❌ Field names collide after truncation to {width} characters: {collisions}")
        raise FieldNameCollisionError(
            f"Truncating field names to {width} characters collides: {collisions}",
            collisions=collisions,
            stage=stage,
        )

    return mapping


def apply_field_name_width(
    gdf: gpd.GeoDataFrame, width: int = FIELD_NAME_WIDTH, stage: str = "points"
) -> gpd.GeoDataFrame:
    """Rename every attribute of a GeoDataFrame to its truncated name."""
    geometry_name = gdf.geometry.name
    attributes = [col for col in gdf.columns if col != geometry_name]
    mapping = truncate_field_names(attributes, width, stage=stage)

    renamed = {orig: short for orig, short in mapping.items() if orig != short}
    if renamed:
        logger.debug(f"  ✂️ Truncated {len(renamed)} field names: {renamed}")
        gdf = gdf.rename(columns=renamed)

    return gdf


def _coordinate_values(records: pd.DataFrame, column: str) -> pd.Series:
    values = pd.to_numeric(records[column], errors="coerce").astype(float)
    return values.where(np.isfinite(values))


def build_point_features(
    records: pd.DataFrame,
    longitude: str = "Longitude",
    latitude: str = "Latitude",
    crs: str = WGS84,
    field_name_width: int = FIELD_NAME_WIDTH,
    keep_coordinates: bool = False,
) -> gpd.GeoDataFrame:
    """Build the survey point layer from normalized records.

    Args:
        records: Output of normalize_survey_rows
        longitude: Longitude column name
        latitude: Latitude column name
        crs: Reference system of the coordinates
        field_name_width: Maximum attribute name length
        keep_coordinates: Keep the coordinate columns as attributes

    Returns:
        GeoDataFrame with one point per record, in record order

    Raises:
        MalformedCoordinateError: a coordinate is missing, non-numeric or not finite
        FieldNameCollisionError: truncated field names collide
    """
    logger.info(f"🗺️ Building survey points in {crs}...")

    validate_required_columns(records, [longitude, latitude], stage="points")

    lon = _coordinate_values(records, longitude)
    lat = _coordinate_values(records, latitude)

    bad_mask = (lon.isna() | lat.isna()).to_numpy()
    if bad_mask.any():
        positions = [int(pos) for pos in np.flatnonzero(bad_mask)]
        values = {
            pos: (records[longitude].iloc[pos], records[latitude].iloc[pos]) for pos in positions
        }
        for pos in positions[:10]:
            logger.error(
                f"  ❌ Record {pos} (source line {pos + 2}): "
                f"{longitude}={values[pos][0]!r}, {latitude}={values[pos][1]!r}"
            )
        raise MalformedCoordinateError(
            f"{len(positions)} record(s) have unparseable coordinates; "
            f"first at record {positions[0]} (source line {positions[0] + 2})",
            positions=positions,
            values=values,
        )

    attributes = records if keep_coordinates else records.drop(columns=[longitude, latitude])
    points = gpd.GeoDataFrame(
        attributes.copy(),
        geometry=gpd.points_from_xy(lon.to_numpy(), lat.to_numpy()),
        crs=crs,
    )
    points = apply_field_name_width(points, field_name_width, stage="points")

    logger.success(f"  ✅ Built {len(points):,} survey points")
    return points
