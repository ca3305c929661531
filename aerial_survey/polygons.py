"""
polygons.py - Stream Section Polygon Preparer

Brings the buffer polygon layer into the point reference system and repairs
invalid outlines (self-intersections, repeated vertices) so the
point-in-polygon test is well defined.
"""

from typing import List, Optional, Sequence

import geopandas as gpd
import numpy as np
import shapely
from loguru import logger
from pyproj import CRS
from pyproj.exceptions import CRSError, ProjError
from shapely.ops import unary_union
from shapely.validation import make_valid

from .data_utils import WGS84, validate_required_columns
from .errors import InvalidGeometryError, ReferenceSystemError

POLYGON_ATTRIBUTES = ("STOCK", "Species", "Sect_Code")
POLYGONAL_TYPES = ("Polygon", "MultiPolygon")


def standardize_crs(
    gdf: gpd.GeoDataFrame, target_crs: str = WGS84, stage: str = "polygons"
) -> gpd.GeoDataFrame:
    """
    Reproject a layer to the target reference system when it differs.

    Args:
        gdf: Input GeoDataFrame
        target_crs: Reference system of the survey points
        stage: Pipeline stage reported on failure

    Returns:
        GeoDataFrame in the target CRS (the input itself when already there)

    Raises:
        ReferenceSystemError: the layer has no CRS or the transform fails
    """
    logger.info(f"🌐 Standardizing CRS to {target_crs}...")

    if gdf.crs is None:
        logger.error("  ❌ No CRS defined on boundary polygons")
        raise ReferenceSystemError(
            "Boundary polygons have no reference system; cannot reproject to " f"{target_crs}",
            stage=stage,
        )

    try:
        target = CRS.from_user_input(target_crs)
    except CRSError as e:
        raise ReferenceSystemError(f"Unknown target reference system {target_crs!r}: {e}", stage=stage) from e

    if gdf.crs == target:
        logger.info(f"  ✅ Already in target CRS: {target_crs}")
        return gdf

    logger.info(f"  🔄 Transforming from {gdf.crs.to_string()} to {target_crs}")
    try:
        gdf = gdf.to_crs(target)
    except (CRSError, ProjError) as e:
        logger.error(f"  ❌ CRS transformation failed: {e}")
        raise ReferenceSystemError(
            f"Cannot reproject from {gdf.crs.to_string()} to {target_crs}: {e}", stage=stage
        ) from e

    logger.success("  ✅ CRS transformation completed")
    return gdf


def _polygonal_part(geom) -> Optional[shapely.Geometry]:
    """Polygon or MultiPolygon left after repair, or None if nothing polygonal remains."""
    if geom.geom_type in POLYGONAL_TYPES:
        return geom
    if geom.geom_type == "GeometryCollection":
        parts = [part for part in geom.geoms if part.geom_type in POLYGONAL_TYPES]
        if parts:
            return unary_union(parts)
    return None


def repair_polygon_geometries(gdf: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
    """
    Repair invalid polygon outlines and drop repeated consecutive vertices.

    Valid polygons without repeated vertices come back unchanged.

    Args:
        gdf: Polygon GeoDataFrame

    Returns:
        GeoDataFrame with valid, non-empty polygonal geometries and a
        positional index

    Raises:
        InvalidGeometryError: a geometry is null, not polygonal, or cannot be
            repaired into a polygon with area
    """
    logger.info("🔧 Validating and fixing geometries...")

    gdf = gdf.reset_index(drop=True)
    geoms = gdf.geometry

    missing = np.flatnonzero((geoms.isna() | geoms.is_empty).to_numpy())
    if len(missing):
        raise InvalidGeometryError(
            f"{len(missing)} boundary polygon(s) have no geometry: positions {missing.tolist()}",
            positions=missing.tolist(),
        )

    not_polygonal = np.flatnonzero((~geoms.geom_type.isin(POLYGONAL_TYPES)).to_numpy())
    if len(not_polygonal):
        raise InvalidGeometryError(
            f"{len(not_polygonal)} boundary feature(s) are not polygons: positions {not_polygonal.tolist()}",
            positions=not_polygonal.tolist(),
        )

    invalid = np.flatnonzero((~geoms.is_valid).to_numpy())
    repaired_geoms = list(geoms)

    if len(invalid):
        logger.warning(f"  ⚠️ Found {len(invalid)} invalid geometries")
        logger.info("  🔨 Attempting to fix invalid geometries...")

        failures: List[int] = []
        for pos in invalid:
            original = repaired_geoms[pos]
            fixed = _polygonal_part(make_valid(original))
            if fixed is None or fixed.is_empty or fixed.area == 0:
                logger.debug(f"    ❌ Could not fix geometry at position {pos}: {shapely.is_valid_reason(original)}")
                failures.append(int(pos))
                continue
            repaired_geoms[pos] = fixed

        if failures:
            logger.error(f"  ❌ {len(failures)} polygon(s) could not be repaired: positions {failures}")
            raise InvalidGeometryError(
                f"Repair produced no valid polygon for {len(failures)} boundary polygon(s): positions {failures}",
                positions=failures,
            )
        logger.success(f"  ✅ Fixed {len(invalid)} invalid geometries")
    else:
        logger.info("  ✅ All polygon geometries are valid")

    # GEOS accepts repeated vertices as valid
    before = shapely.get_num_coordinates(np.asarray(repaired_geoms, dtype=object))
    cleaned = shapely.remove_repeated_points(np.asarray(repaired_geoms, dtype=object))
    deduplicated = int((shapely.get_num_coordinates(cleaned) < before).sum())
    if deduplicated:
        logger.info(f"  🧹 Removed duplicate vertices from {deduplicated} polygon(s)")

    still_invalid = np.flatnonzero(~shapely.is_valid(cleaned))
    if len(still_invalid):
        raise InvalidGeometryError(
            f"{len(still_invalid)} boundary polygon(s) are invalid after vertex cleanup: "
            f"positions {still_invalid.tolist()}",
            positions=still_invalid.tolist(),
        )

    gdf = gdf.copy()
    gdf[gdf.geometry.name] = gpd.GeoSeries(cleaned, index=gdf.index, crs=gdf.crs)
    return gdf


def prepare_boundary_polygons(
    polygons: gpd.GeoDataFrame,
    target_crs: str = WGS84,
    required_attributes: Sequence[str] = POLYGON_ATTRIBUTES,
) -> gpd.GeoDataFrame:
    """Reproject and repair the stream section polygons ahead of the spatial join."""
    logger.info(f"🎯 Preparing {len(polygons):,} boundary polygons...")

    validate_required_columns(polygons, required_attributes, stage="polygons")
    polygons = standardize_crs(polygons, target_crs)
    polygons = repair_polygon_geometries(polygons)

    logger.success(f"  ✅ {len(polygons):,} boundary polygons ready in {target_crs}")
    return polygons
