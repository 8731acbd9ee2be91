"""
Data handling module for channel VAR analysis
Includes loading and input validation of the weekly channel table
"""

import logging
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from .exceptions import InputError

logger = logging.getLogger(__name__)


def load_data(filepath: str,
              week_column: str = 'week',
              region_column: Optional[str] = None,
              region: Optional[str] = None,
              rename: Optional[Dict[str, str]] = None) -> pd.DataFrame:
    """
    Load weekly channel data from CSV file

    Parameters:
    -----------
    filepath : str
        Path to the CSV file
    week_column : str
        Column holding the week index
    region_column : str, optional
        Column identifying the entity (region) of each row
    region : str, optional
        Keep only rows of this region
    rename : dict, optional
        Mapping from raw column names to channel names

    Returns:
    --------
    pd.DataFrame
        One row per week, indexed by week and sorted
    """
    df = pd.read_csv(filepath)

    if region is not None:
        if region_column is None or region_column not in df.columns:
            raise InputError(f"Region filter requested but column {region_column!r} is missing",
                             step='load')
        df = df[df[region_column] == region].drop(columns=[region_column])
        if df.empty:
            raise InputError(f"No rows for region {region!r}", step='load')

    if rename:
        df = df.rename(columns=rename)

    if week_column not in df.columns:
        raise InputError(f"Week column {week_column!r} not found", step='load')

    # Clean numeric columns (remove thousands separators if present)
    for col in df.columns:
        if col not in (week_column, region_column) and not pd.api.types.is_numeric_dtype(df[col]):
            df[col] = pd.to_numeric(df[col].str.replace(',', ''), errors='coerce')

    df = df.sort_values(week_column).set_index(week_column)
    logger.info("Loaded %d weekly rows from %s", len(df), filepath)
    return df


def prepare_channel_table(df: pd.DataFrame,
                          channels: List[str],
                          sales: str) -> pd.DataFrame:
    """
    Select and order channel and sales columns, enforcing input invariants

    Columns come back as channels followed by sales, indexed by integer
    week 1..N. Missing columns, missing values, duplicate weeks and
    non-positive values are rejected.
    """
    columns = list(channels) + [sales]
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise InputError(f"Columns not found in input table: {missing}", step='ingest')

    if df.index.has_duplicates:
        raise InputError("Input table has duplicate week entries", step='ingest')

    table = df[columns].astype(float)

    for col in columns:
        n_missing = int(table[col].isna().sum())
        if n_missing:
            raise InputError(f"{n_missing} missing values", channel=col, step='ingest')
        n_bad = int((table[col] <= 0).sum())
        if n_bad:
            raise InputError(f"{n_bad} non-positive values; log transform requires positive data",
                             channel=col, step='ingest')

    table = table.reset_index(drop=True)
    table.index = pd.RangeIndex(1, len(table) + 1, name='week')
    return table


def check_data_quality(df: pd.DataFrame) -> Dict:
    """
    Check data quality and provide summary statistics

    Parameters:
    -----------
    df : pd.DataFrame
        Input dataframe

    Returns:
    --------
    dict
        Dictionary with data quality metrics
    """
    numeric = df.select_dtypes(include=[np.number])
    return {
        'n_observations': len(df),
        'week_range': f"{df.index.min()} to {df.index.max()}",
        'missing_values': df.isnull().sum().to_dict(),
        'non_positive_values': (numeric <= 0).sum().to_dict(),
        'numeric_columns': numeric.columns.tolist()
    }
