"""
Shared pytest fixtures for all tests.

This module provides common fixtures including:
- Raw survey exports (row-number column first, labels in the first row)
- Stream section buffer polygons
- The same polygons in a projected reference system
"""
import geopandas as gpd
import pytest
from shapely.geometry import box

# Inside section 101 of stock X
INSIDE_X = ("-150.5", "59.5")
# Inside section 201 of stock Y
INSIDE_Y = ("-148.5", "59.5")
# Outside every section
OUTSIDE = ("-140.0", "50.0")

HEADER = ["", "Longitude", "Latitude", "Surveycount", "Quality", "DeviceTime", "SamplerName", "NA"]


def make_raw_rows(records):
    """Build a raw survey export from (lon, lat, count, quality, time, sampler) tuples."""
    rows = [list(HEADER)]
    for i, record in enumerate(records, start=1):
        rows.append([str(i), *record, ""])
    return rows


# ============================================================
# Survey Fixtures
# ============================================================

@pytest.fixture
def raw_rows():
    """Four observations: two in stock X, one in stock Y, one outside every polygon."""
    return make_raw_rows([
        (*INSIDE_X, "120", "1", "2025-06-25 10:15:00", "Hollowell"),
        (*INSIDE_X, "30", "3", "2025-06-25 10:05:00", "Hollowell"),
        (*INSIDE_Y, "", "2", "2025-06-25 11:00:00", "Hollowell"),
        (*OUTSIDE, "7", "", "", "Hollowell"),
    ])


@pytest.fixture
def scenario_rows():
    """One point inside stock X, one outside all polygons."""
    return make_raw_rows([
        (*INSIDE_X, "10", "2", "2025-06-25 09:00:00", "Hollowell"),
        (*OUTSIDE, "5", "4", "2025-06-25 09:30:00", "Hollowell"),
    ])


# ============================================================
# Polygon Fixtures
# ============================================================

@pytest.fixture
def polygons() -> gpd.GeoDataFrame:
    """Two non-overlapping stream section buffers in WGS84."""
    return gpd.GeoDataFrame(
        {
            "STOCK": ["X", "Y"],
            "Species": ["Pink", "Chum"],
            "Sect_Code": ["101", "201"],
        },
        geometry=[box(-151.0, 59.0, -150.0, 60.0), box(-149.0, 59.0, -148.0, 60.0)],
        crs="EPSG:4326",
    )


@pytest.fixture
def projected_polygons(polygons) -> gpd.GeoDataFrame:
    """The same buffers in Alaska Albers (EPSG:3338)."""
    return polygons.to_crs("EPSG:3338")
