"""
summary.py - Escapement Summary Table

Aggregates the joined survey points by stock, species, stream section and
observer. Missing values are left out of the sum, mean and minimum, and
points that failed to join form their own groups with missing keys instead
of being dropped.
"""

from typing import Optional, Sequence

import geopandas as gpd
import pandas as pd
from loguru import logger

from .data_utils import FIELD_NAME_WIDTH, validate_required_columns

GROUP_KEYS = ("STOCK", "Species", "Sect_Code", "SamplerName")

# Output names match the summary sheets of earlier seasons
SUMMARY_KEY_NAMES = {
    "STOCK": "STOCK",
    "Species": "SPECIES",
    "Sect_Code": "SECT_CODE",
    "SamplerName": "SAMPLERNAME",
}
SUMMARY_VALUE_COLUMNS = ["FREQUENCY", "SUM_COUNT", "MEAN_OVERALL_RATING", "FIRST_DEVICE_TIME"]


def _numeric(series: pd.Series, field: str) -> pd.Series:
    converted = pd.to_numeric(series, errors="coerce")
    lost = int((series.notna() & converted.isna()).sum())
    if lost:
        logger.warning(f"  ⚠️ {lost} non-numeric {field} value(s) treated as missing")
    return converted


def _timestamps(series: pd.Series, field: str, time_format: Optional[str]) -> pd.Series:
    if pd.api.types.is_datetime64_any_dtype(series) or pd.api.types.is_numeric_dtype(series):
        return series

    converted = pd.to_datetime(series, format=time_format or "mixed", errors="coerce")
    lost = int((series.notna() & converted.isna()).sum())
    if lost:
        logger.warning(f"  ⚠️ {lost} unparseable {field} value(s) treated as missing")
    return converted


def summarize_joined_features(
    joined: pd.DataFrame,
    group_keys: Sequence[str] = GROUP_KEYS,
    count_field: str = "Surveycount",
    quality_field: str = "Quality",
    time_field: str = "DeviceTime",
    time_format: Optional[str] = None,
    field_name_width: int = FIELD_NAME_WIDTH,
) -> pd.DataFrame:
    """Build the per stock/species/section/observer summary table.

    Fields are looked up by their full name or their truncated form, so the
    joined layer can be passed as produced by the spatial join.

    Args:
        joined: Joined survey points (GeoDataFrame or plain DataFrame)
        group_keys: Grouping fields, in output order
        count_field: Survey count field summed into SUM_COUNT
        quality_field: Quality rating field averaged into MEAN_OVERALL_RATING
        time_field: Device timestamp field whose minimum is FIRST_DEVICE_TIME
        time_format: strptime format of text timestamps (inferred per value if None)
        field_name_width: Truncation width used by the point builder

    Returns:
        DataFrame with one row per distinct group key, sorted by the keys with
        missing keys last

    Raises:
        MalformedInputError: a grouping or value field is absent
    """
    logger.info("📊 Summarizing survey counts by stock, species, section and observer...")

    if isinstance(joined, gpd.GeoDataFrame):
        df = pd.DataFrame(joined.drop(columns=joined.geometry.name))
    else:
        df = joined

    columns = validate_required_columns(
        df,
        [*group_keys, count_field, quality_field, time_field],
        stage="aggregate",
        width=field_name_width,
    )

    key_names = [SUMMARY_KEY_NAMES.get(key, key.upper()) for key in group_keys]
    work = pd.DataFrame({name: df[columns[key]] for key, name in zip(group_keys, key_names)})
    work["_count"] = _numeric(df[columns[count_field]], count_field)
    work["_quality"] = _numeric(df[columns[quality_field]], quality_field)
    work["_time"] = _timestamps(df[columns[time_field]], time_field, time_format)

    summary = (
        work.groupby(key_names, dropna=False, sort=False)
        .agg(
            FREQUENCY=("_count", "size"),
            SUM_COUNT=("_count", "sum"),
            MEAN_OVERALL_RATING=("_quality", "mean"),
            FIRST_DEVICE_TIME=("_time", "min"),
        )
        .reset_index()
        .sort_values(key_names, na_position="last", kind="mergesort")
        .reset_index(drop=True)
    )

    if len(summary) and (summary["SUM_COUNT"] % 1 == 0).all():
        summary["SUM_COUNT"] = summary["SUM_COUNT"].astype("int64")

    missing_key_groups = int(summary[key_names].isna().any(axis=1).sum())
    logger.success(f"  ✅ Summarized {len(df):,} records into {len(summary):,} groups")
    if missing_key_groups:
        logger.warning(f"  ⚠️ {missing_key_groups} group(s) have missing keys (unjoined points)")

    return summary[key_names + SUMMARY_VALUE_COLUMNS]
