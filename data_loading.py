#!/usr/bin/env python3
"""
Data Loading Module

Utilities for loading and preparing biologging data from spreadsheets.
Supports depth records and blood oxygen (PO2, Hb saturation) records,
each delivered as its own sheet or file and sampled on its own clock.
"""

import logging
import re
import pandas as pd
import numpy as np
from pathlib import Path
from typing import Tuple, Optional, Dict, List

logger = logging.getLogger(__name__)


TIME_COL_OPTIONS = ['t_sec', 'time', 'timestamp', 'datetime', 't']
DEPTH_COL_OPTIONS = ['depth', 'depth_m', 'pressure_depth', 'z']
PO2_COL_OPTIONS = ['po2', 'p_o2', 'pao2', 'pvo2', 'oxygen', 'o2']
HB_SAT_COL_OPTIONS = ['hb_saturation', 'so2', 'hb_sat', 'saturation', 'sat', 'spo2']

# Seconds per unit for numeric time columns
TIME_UNITS = {
    's': 1.0, 'sec': 1.0, 'secs': 1.0, 'seconds': 1.0,
    'min': 60.0, 'mins': 60.0, 'minutes': 60.0,
    'h': 3600.0, 'hr': 3600.0, 'hours': 3600.0,
}

EXCEL_SUFFIXES = ('.xlsx', '.xlsm', '.xls')


def _normalize_column_name(name) -> Tuple[str, Optional[str]]:
    """Split 'Time (min)' into ('time', 'min'); no unit gives None."""
    text = str(name).strip().lower()
    unit = None
    match = re.match(r'^(.*?)\s*[\(\[]([^\)\]]*)[\)\]]\s*$', text)
    if match:
        text = match.group(1)
        unit = match.group(2).strip() or None
    return re.sub(r'[\s\-]+', '_', text.strip()), unit


def _pick_column(columns: Dict[str, Tuple[str, Optional[str]]],
                 options: List[str],
                 kind: str,
                 raw_columns: list) -> Tuple[str, Optional[str]]:
    for opt in options:
        if opt in columns:
            return columns[opt]
    raise ValueError(f"No {kind} column found. Columns: {raw_columns}")


def _time_to_seconds(values: pd.Series, unit: Optional[str]) -> pd.Series:
    """Convert a time column to float seconds (epoch seconds for wall-clock times)."""
    if pd.api.types.is_datetime64_any_dtype(values):
        epoch = pd.Timestamp(0, tz=values.dt.tz)
        return (values - epoch).dt.total_seconds()

    if pd.api.types.is_timedelta64_dtype(values):
        return values.dt.total_seconds()

    numeric = pd.to_numeric(values, errors='coerce')
    if numeric.notna().any() or values.isna().all():
        unit = (unit or 's').strip().lower()
        if unit not in TIME_UNITS:
            raise ValueError(f"Unknown time unit '{unit}'. Options: {sorted(TIME_UNITS)}")
        return numeric * TIME_UNITS[unit]

    # Text timestamps such as '2019-11-02 10:15:00'
    parsed = pd.to_datetime(values, errors='coerce')
    return _time_to_seconds(parsed, None)


def load_table(data_path: Path, sheet_name=None) -> pd.DataFrame:
    """
    Read one table from a spreadsheet or CSV file.

    Args:
        data_path: Path to .xlsx/.xls workbook or .csv/.csv.gz file
        sheet_name: Sheet name or index for workbooks (default: first sheet)

    Returns:
        Raw DataFrame as stored in the file
    """
    data_path = Path(data_path)

    if not data_path.exists():
        raise FileNotFoundError(f"Data file not found: {data_path}")

    try:
        if data_path.suffix.lower() in EXCEL_SUFFIXES:
            return pd.read_excel(data_path, sheet_name=0 if sheet_name is None else sheet_name)
        return pd.read_csv(data_path, compression='infer')
    except Exception as e:
        raise IOError(f"Failed to read {data_path}: {str(e)}") from e


def _load_series(data_path: Path,
                 value_options: Dict[str, List[str]],
                 sheet_name=None,
                 time_unit: Optional[str] = None,
                 verbose: bool = True) -> pd.DataFrame:
    """Load a time series table with flexible column detection."""
    df = load_table(data_path, sheet_name=sheet_name)
    raw_columns = df.columns.tolist()

    columns = {}
    for col in df.columns:
        name, unit = _normalize_column_name(col)
        columns.setdefault(name, (col, unit))

    time_col, header_unit = _pick_column(columns, TIME_COL_OPTIONS, 'time', raw_columns)
    result = pd.DataFrame({'t_sec': _time_to_seconds(df[time_col], time_unit or header_unit)})

    for out_name, options in value_options.items():
        value_col, _ = _pick_column(columns, options, out_name, raw_columns)
        result[out_name] = pd.to_numeric(df[value_col], errors='coerce')

    # Remove NaN rows and sort by time
    result = result.dropna()
    result = result.sort_values('t_sec', kind='mergesort')

    duplicated = result['t_sec'].duplicated()
    if duplicated.any():
        logger.warning(f"Dropping {int(duplicated.sum())} duplicate timestamps from {data_path}")
        result = result[~duplicated]

    result = result.reset_index(drop=True)

    if len(result) == 0:
        raise ValueError(f"No valid data after cleaning: {data_path}")

    if verbose:
        logger.info(f"Loaded {len(result)} samples from {data_path}"
                    + (f" [{sheet_name}]" if sheet_name is not None else ""))
        logger.info(f"  Time range: {result['t_sec'].min():.1f} - {result['t_sec'].max():.1f} seconds")
        for out_name in value_options:
            logger.info(f"  {out_name} range: {result[out_name].min():.2f} - {result[out_name].max():.2f}")

    return result


def load_depth_series(data_path: Path,
                      sheet_name=None,
                      time_unit: Optional[str] = None,
                      verbose: bool = True) -> pd.DataFrame:
    """
    Load a depth-over-time record.

    Args:
        data_path: Workbook or CSV path
        sheet_name: Sheet holding the depth table (workbooks only)
        time_unit: Unit of a numeric time column ('s', 'min', 'h').
            Defaults to the unit in the header, e.g. 'Time (min)', else seconds.
        verbose: Log a short description of the loaded data

    Returns:
        DataFrame with [t_sec, depth] columns, strictly increasing t_sec
    """
    return _load_series(data_path, {'depth': DEPTH_COL_OPTIONS},
                        sheet_name=sheet_name, time_unit=time_unit, verbose=verbose)


def load_oxygen_series(data_path: Path,
                       sheet_name=None,
                       time_unit: Optional[str] = None,
                       verbose: bool = True) -> pd.DataFrame:
    """
    Load a blood oxygen record (PO2 and hemoglobin saturation).

    Expected columns: a time column, PO2 (e.g. 'PO2 (mmHg)') and
    Hb saturation (e.g. 'SO2 (%)'). Column matching works as in
    load_depth_series().

    Returns:
        DataFrame with [t_sec, po2, hb_saturation] columns, strictly increasing t_sec
    """
    return _load_series(data_path,
                        {'po2': PO2_COL_OPTIONS, 'hb_saturation': HB_SAT_COL_OPTIONS},
                        sheet_name=sheet_name, time_unit=time_unit, verbose=verbose)


def extract_dive_window(data_df: pd.DataFrame,
                        t_start: float,
                        t_end: float,
                        time_col: str = 't_sec',
                        margin_sec: float = 0.0) -> pd.DataFrame:
    """
    Extract the samples of a series that fall inside a dive window.

    The two series are sampled independently, so the join is purely by
    time: every sample with t_start - margin <= t <= t_end + margin.

    Args:
        data_df: DataFrame with a time column (oxygen or depth series)
        t_start: Dive start time (seconds)
        t_end: Dive end time (seconds)
        time_col: Name of time column
        margin_sec: Margin to add on both sides of window

    Returns:
        Copy of the matching rows; empty (same columns) if none match
    """
    t_start_adj = t_start - margin_sec
    t_end_adj = t_end + margin_sec

    mask = (data_df[time_col] >= t_start_adj) & (data_df[time_col] <= t_end_adj)
    return data_df[mask].copy().reset_index(drop=True)


def extract_dive_windows(dives_df: pd.DataFrame,
                         data_df: pd.DataFrame,
                         time_col: str = 't_sec',
                         margin_sec: float = 0.0) -> Dict[int, pd.DataFrame]:
    """Map each dive_id to its window of data_df."""
    windows = {}
    for _, dive in dives_df.iterrows():
        windows[int(dive['dive_id'])] = extract_dive_window(
            data_df, dive['t_start'], dive['t_end'],
            time_col=time_col, margin_sec=margin_sec
        )
    return windows


def median_sampling_interval(time_array: np.ndarray) -> float:
    """Median spacing (seconds) of increasing timestamps; NaN with fewer than 2."""
    steps = np.diff(np.asarray(time_array, dtype=float))
    steps = steps[steps > 0]
    return float(np.median(steps)) if len(steps) else np.nan


def create_data_summary(data_df: pd.DataFrame,
                        signal_col: str,
                        time_col: str = 't_sec') -> Dict:
    """
    Create summary statistics for one signal of a series.

    The depth and oxygen records run on different clocks, so each gets
    its own sampling interval (median spacing, robust to recording gaps).

    Args:
        data_df: Data DataFrame
        signal_col: Name of signal column
        time_col: Name of time column

    Returns:
        Dict with summary statistics
    """
    interval = median_sampling_interval(data_df[time_col].values)
    return {
        'signal': signal_col,
        'n_samples': len(data_df),
        'duration_sec': data_df[time_col].max() - data_df[time_col].min(),
        'time_start': data_df[time_col].min(),
        'time_end': data_df[time_col].max(),
        'signal_mean': data_df[signal_col].mean(),
        'signal_std': data_df[signal_col].std(),
        'signal_min': data_df[signal_col].min(),
        'signal_max': data_df[signal_col].max(),
        'signal_range': data_df[signal_col].max() - data_df[signal_col].min(),
        'nan_count': int(data_df[signal_col].isna().sum()),
        'sampling_interval_sec': interval,
        'sampling_rate_hz': 1.0 / interval if interval > 0 else np.nan,
    }
