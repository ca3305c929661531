#!/usr/bin/env python3
"""
data_utils.py - Survey Row Normalization Utilities

Turns the raw survey export (row-number column first, field labels in the
first data row) into a clean record table with unique field names, and
provides the column lookup helpers shared by the later pipeline stages.
"""

from typing import Dict, Iterable, List, Optional, Sequence, Union

import numpy as np
import pandas as pd
from loguru import logger

from .errors import MalformedInputError

WGS84 = "EPSG:4326"
FIELD_NAME_WIDTH = 10
NA_PLACEHOLDER = "NA"
REQUIRED_FIELDS = ("Longitude", "Latitude")


def _clean_label(value, placeholder: str) -> str:
    """Header label as a stripped string; blank or missing labels become the placeholder."""
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return placeholder
    label = str(value).strip()
    return label or placeholder


def resolve_column(df: pd.DataFrame, name: str, width: Optional[int] = None) -> Optional[str]:
    """Find a column by its full name or, when width is given, its truncated form.

    Args:
        df: DataFrame to search
        name: Field name as it appears in the source survey
        width: Maximum field name length applied by the point builder

    Returns:
        Column name if found, None if not found
    """
    if name in df.columns:
        return name
    if width and name[:width] in df.columns:
        return name[:width]
    return None


def validate_required_columns(
    df: pd.DataFrame,
    required: Iterable[str],
    stage: str = "normalize",
    width: Optional[int] = None,
) -> Dict[str, str]:
    """Validate that required columns exist in DataFrame.

    Args:
        df: DataFrame to validate
        required: Field names that must be present
        stage: Pipeline stage reported on failure
        width: Also accept names truncated to this length

    Returns:
        Mapping of requested name to the column actually present

    Raises:
        MalformedInputError: if any required field is absent
    """
    resolved = {}
    missing_columns = []

    for name in required:
        column = resolve_column(df, name, width)
        if column is None:
            missing_columns.append(name)
        else:
            resolved[name] = column

    if missing_columns:
        logger.error(f"❌ Missing required columns: {missing_columns}")
        logger.info(f"Available columns: {list(df.columns)}")
        raise MalformedInputError(
            f"Missing required fields {missing_columns}; available: {list(df.columns)}", stage=stage
        )

    return resolved


def infer_column_types(df: pd.DataFrame) -> pd.DataFrame:
    """Convert text columns whose every non-blank value is numeric to a numeric dtype.

    Blank strings are treated as missing. Columns holding any non-numeric
    text are left untouched so later stages can report them.
    """
    df = df.copy()
    numeric_cols = []

    for col in df.columns:
        series = df[col]
        # pandas 3 reads text as a string dtype rather than object
        if not (pd.api.types.is_object_dtype(series) or isinstance(series.dtype, pd.StringDtype)):
            continue

        blank = series.map(lambda v: isinstance(v, str) and not v.strip())
        if blank.any():
            series = series.mask(blank, np.nan)
            df[col] = series

        present = series.notna()
        if not present.any():
            continue

        converted = pd.to_numeric(series, errors="coerce")
        if converted[present].notna().all():
            df[col] = converted
            numeric_cols.append(col)

    if numeric_cols:
        logger.debug(f"  🔢 Numeric columns: {numeric_cols}")

    return df


def normalize_survey_rows(
    raw: Union[pd.DataFrame, Sequence[Sequence]],
    required: Sequence[str] = REQUIRED_FIELDS,
    placeholder: str = NA_PLACEHOLDER,
) -> pd.DataFrame:
    """Build the survey record table from a raw, header-less export.

    The first column is the exporter's row number and is discarded. The first
    remaining row supplies the field names. Columns labelled with the
    placeholder (or with no label at all) are dropped.

    Args:
        raw: Raw table, either a DataFrame read with header=None or a list of rows
        required: Field names every survey must carry
        placeholder: Label of the unnamed filler column

    Returns:
        DataFrame with unique field names and a fresh RangeIndex; record
        position i comes from source line i + 2

    Raises:
        MalformedInputError: duplicate field names, no header row, or a
            required field missing
    """
    logger.info("🧹 Normalizing survey rows...")

    if not isinstance(raw, pd.DataFrame):
        raw = pd.DataFrame([list(row) for row in raw])

    if raw.shape[0] < 1 or raw.shape[1] < 2:
        raise MalformedInputError(
            f"Survey table needs a row-number column and a header row, got shape {raw.shape}"
        )

    body = raw.iloc[:, 1:]
    header = [_clean_label(value, placeholder) for value in body.iloc[0]]

    keep = [i for i, name in enumerate(header) if name != placeholder]
    dropped = len(header) - len(keep)
    if dropped:
        logger.info(f"  🗑️ Dropped {dropped} unnamed '{placeholder}' column(s)")

    names: List[str] = [header[i] for i in keep]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        logger.error(f"❌ Duplicate field names in header: {duplicates}")
        raise MalformedInputError(f"Duplicate field names in survey header: {duplicates}")

    df = body.iloc[1:, keep].copy()
    df.columns = names
    df = df.reset_index(drop=True)

    validate_required_columns(df, required, stage="normalize")
    df = infer_column_types(df)

    logger.info(f"  ✅ Normalized {len(df):,} survey records with {len(df.columns)} fields")
    return df
