"""
spatial_join.py - Point-in-Polygon Association

Each survey point inherits the attributes of the stream section buffer it
falls in. The join is left-outer: points outside every buffer are kept with
missing polygon attributes and Join_Count = 0 so they can be moved by hand
upstream and the survey re-run.
"""

import geopandas as gpd
from loguru import logger

from .data_utils import FIELD_NAME_WIDTH
from .errors import ReferenceSystemError
from .points import apply_field_name_width

JOIN_FLAG = "Join_Count"


def join_points_to_polygons(
    points: gpd.GeoDataFrame,
    polygons: gpd.GeoDataFrame,
    field_name_width: int = FIELD_NAME_WIDTH,
) -> gpd.GeoDataFrame:
    """
    Attach the attributes of the first intersecting polygon to every point.

    Candidate polygons come from the polygon layer's spatial index. When a
    point intersects several polygons (overlapping buffers) the one that comes
    first in the polygon layer wins; this is not a "best fit" choice.

    Args:
        points: Survey point layer
        polygons: Prepared boundary polygons in the same CRS
        field_name_width: Maximum attribute name length of the output

    Returns:
        GeoDataFrame with one row per input point, in input order, plus the
        Join_Count flag (1 = inside a polygon, 0 = outside all polygons)

    Raises:
        ReferenceSystemError: the layers are not in the same CRS
        FieldNameCollisionError: truncated output names collide
    """
    logger.info("🎯 Joining survey points to stream section polygons...")

    if points.crs != polygons.crs:
        raise ReferenceSystemError(
            f"Points are in {points.crs} but polygons are in {polygons.crs}; prepare the polygons first",
            stage="join",
        )

    points = points.reset_index(drop=True)
    polygons = polygons.reset_index(drop=True)

    joined = gpd.sjoin(points, polygons, how="left", predicate="intersects")

    # First match by polygon order; NaN (no match) only occurs alone for a point
    joined["_point_pos"] = joined.index
    joined = joined.sort_values(["_point_pos", "index_right"], kind="mergesort", na_position="last")

    matches_per_point = joined.groupby("_point_pos")["index_right"].count()
    multi = int((matches_per_point > 1).sum())
    if multi:
        logger.info(f"  📍 {multi} point(s) intersect more than one polygon; first polygon kept")

    joined = joined[~joined.index.duplicated(keep="first")].sort_index()
    joined[JOIN_FLAG] = joined["index_right"].notna().astype(int)
    joined = joined.drop(columns=["_point_pos", "index_right"])

    joined = apply_field_name_width(joined, field_name_width, stage="join")

    unjoined = joined.index[joined[JOIN_FLAG] == 0].tolist()
    logger.success(f"  ✅ Joined {len(joined) - len(unjoined):,}/{len(joined):,} points to a polygon")
    if unjoined:
        logger.warning(
            f"  ⚠️ {len(unjoined)} point(s) fall outside every stream section "
            f"(records {unjoined[:20]}{' ...' if len(unjoined) > 20 else ''}); "
            "correct their coordinates and re-run"
        )

    return joined


def failed_joins(joined: gpd.GeoDataFrame, flag: str = JOIN_FLAG) -> gpd.GeoDataFrame:
    """Points that did not fall inside any polygon."""
    return joined[joined[flag] == 0]
