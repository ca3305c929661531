#!/usr/bin/env python3
"""
io.py - Survey Input and Output Files

Reads the raw survey export and the boundary polygon layer, and writes the
point layers and the summary table. The pipeline itself never touches disk;
these helpers are what the CLI wires around it.
"""

from pathlib import Path
from typing import Dict, Optional, Union

import geopandas as gpd
import pandas as pd
from loguru import logger

PathLike = Union[str, Path]


def ensure_output_directory(output_path: PathLike) -> Path:
    """Ensure output directory exists and return Path object.

    Args:
        output_path: Output file path (string or Path)

    Returns:
        Path object with directory created
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    return output_path


def read_survey_table(path: PathLike) -> pd.DataFrame:
    """Read a survey CSV without interpreting its header row.

    Every cell is read as text; standard NA markers (including an "NA"
    header label) become missing values.
    """
    path = Path(path)
    logger.info(f"📄 Reading survey table: {path}")
    raw = pd.read_csv(path, header=None, dtype=str, skip_blank_lines=True)
    logger.info(f"  ✅ Loaded {max(len(raw) - 1, 0):,} survey rows")
    return raw


def read_boundary_polygons(path: PathLike, layer: Optional[str] = None) -> gpd.GeoDataFrame:
    """Load the stream section buffer polygons (any format geopandas reads)."""
    path = Path(path)
    logger.info(f"🗺️ Loading boundary polygons: {path}")
    gdf = gpd.read_file(path, layer=layer) if layer else gpd.read_file(path)
    logger.info(f"  ✅ Loaded {len(gdf):,} polygons (CRS: {gdf.crs})")
    return gdf


def write_point_layer(gdf: gpd.GeoDataFrame, path: PathLike) -> Path:
    """Write a point layer; the format follows the file extension (.shp, .gpkg, .geojson)."""
    path = ensure_output_directory(path)
    gdf.to_file(path)
    logger.success(f"  💾 Point layer written: {path} ({len(gdf):,} features)")
    return path


def write_summary_text(summary: pd.DataFrame, path: PathLike) -> Path:
    """Write the summary as tab-delimited text; missing values are written as NA."""
    path = ensure_output_directory(path)
    summary.to_csv(path, sep="\t", index=False, na_rep="NA")
    logger.success(f"  💾 Text summary written: {path}")
    return path


def write_summary_workbook(summary: pd.DataFrame, path: PathLike, sheet_name: str = "Summary") -> Path:
    """Write the summary as an Excel workbook."""
    path = ensure_output_directory(path)

    summary = summary.copy()
    for col in summary.columns:
        # Excel cannot store timezone-aware datetimes
        if isinstance(summary[col].dtype, pd.DatetimeTZDtype):
            summary[col] = summary[col].dt.tz_localize(None)

    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        summary.to_excel(writer, sheet_name=sheet_name, index=False)

    logger.success(f"  💾 Workbook summary written: {path}")
    return path


def write_outputs(result, paths: Dict[str, Optional[PathLike]]) -> Dict[str, Path]:
    """Write whichever outputs have a path.

    Args:
        result: PipelineResult of a run
        paths: Output paths keyed by "unjoined", "joined", "summary_txt", "summary_xlsx"

    Returns:
        Paths actually written, by key
    """
    logger.info("💾 Writing outputs...")

    writers = {
        "unjoined": lambda p: write_point_layer(result.points, p),
        "joined": lambda p: write_point_layer(result.joined, p),
        "summary_txt": lambda p: write_summary_text(result.summary, p),
        "summary_xlsx": lambda p: write_summary_workbook(result.summary, p),
    }

    unknown = set(paths) - set(writers)
    if unknown:
        raise ValueError(f"Unknown output keys: {sorted(unknown)}")

    written = {}
    for key, writer in writers.items():
        target = paths.get(key)
        if target:
            written[key] = writer(target)
        else:
            logger.debug(f"  ⏭️ No path for {key}, skipping")

    return written
