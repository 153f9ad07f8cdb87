#!/usr/bin/env python3
"""
Dive Segmentation Module

Splits a continuous depth record into dives:
- Descent-start detection (last surface sample before submergence)
- Segment numbering with a forward cumulative counter
- Surface stripping within each segment
- Duration and depth thresholds to discard noise
"""

import logging
from typing import Tuple

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

SURFACE_THRESHOLD_M = 0.5
MIN_DIVE_DURATION_SEC = 60.0
MIN_DIVE_DEPTH_M = 5.0

DIVE_COLUMNS = ['dive_id', 't_start', 't_end', 'duration_sec',
                'max_depth', 'mean_depth', 'n_samples']


class InvalidInput(ValueError):
    """Depth series cannot be segmented (empty or fewer than 2 samples)."""


class InvalidConfig(ValueError):
    """Segmentation thresholds are out of range."""


def validate_segmentation_params(surface_threshold: float,
                                 min_duration_sec: float,
                                 min_depth: float) -> None:
    """
    Check segmentation thresholds.

    Raises:
        InvalidConfig: if surface_threshold < 0, min_duration_sec <= 0 or
            min_depth <= 0 (NaN values are rejected too)
    """
    if not surface_threshold >= 0:
        raise InvalidConfig(f"surface_threshold must be >= 0, got {surface_threshold}")
    if not min_duration_sec > 0:
        raise InvalidConfig(f"min_duration_sec must be > 0, got {min_duration_sec}")
    if not min_depth > 0:
        raise InvalidConfig(f"min_depth must be > 0, got {min_depth}")


def detect_descent_starts(depth: np.ndarray, surface_threshold: float = SURFACE_THRESHOLD_M) -> np.ndarray:
    """
    Mark the last surface sample immediately preceding a submergence.

    A sample at exactly surface_threshold counts as surface. The last
    sample can never be a descent start.
    """
    depth = np.asarray(depth, dtype=float)
    submerged = depth > surface_threshold
    descent_starts = np.zeros(len(depth), dtype=bool)
    descent_starts[:-1] = ~submerged[:-1] & submerged[1:]
    return descent_starts


def assign_segment_ids(descent_starts: np.ndarray) -> np.ndarray:
    """Running count of descent starts seen so far, current sample included."""
    return np.cumsum(np.asarray(descent_starts, dtype=int))


def label_dives(depth_df: pd.DataFrame,
                surface_threshold: float = SURFACE_THRESHOLD_M,
                min_duration_sec: float = MIN_DIVE_DURATION_SEC,
                min_depth: float = MIN_DIVE_DEPTH_M,
                time_col: str = 't_sec',
                depth_col: str = 'depth') -> pd.Series:
    """
    Assign every depth sample to a dive or leave it unlabeled.

    Args:
        depth_df: DataFrame with time and depth columns, ordered by time
        surface_threshold: Depth (m) at or above which the animal is at the surface
        min_duration_sec: Minimum dive duration (seconds), boundary included
        min_depth: Minimum maximum depth (m) a dive must reach, boundary included
        time_col: Name of time column
        depth_col: Name of depth column

    Returns:
        Nullable integer Series named 'dive_id' aligned with depth_df.index.
        <NA> marks surface samples and rejected candidates; ids follow the
        descent counter so they increase with time but may skip values.

    Raises:
        InvalidInput: fewer than 2 samples
        InvalidConfig: thresholds out of range
    """
    validate_segmentation_params(surface_threshold, min_duration_sec, min_depth)

    if depth_df is None or len(depth_df) < 2:
        n = 0 if depth_df is None else len(depth_df)
        raise InvalidInput(f"Depth series needs at least 2 samples, got {n}")

    t = depth_df[time_col].to_numpy(dtype=float)
    depth = depth_df[depth_col].to_numpy(dtype=float)

    segment_ids = assign_segment_ids(detect_descent_starts(depth, surface_threshold))

    # Segment 0 precedes the first descent; surface samples keep no id
    candidate_ids = np.where((depth > surface_threshold) & (segment_ids > 0), segment_ids, 0)

    candidates = pd.DataFrame({'segment': candidate_ids, 't': t, 'depth': depth})
    candidates = candidates[candidates['segment'] > 0]
    stats = candidates.groupby('segment').agg(
        t_start=('t', 'min'),
        t_end=('t', 'max'),
        max_depth=('depth', 'max'),
    )
    duration = stats['t_end'] - stats['t_start']
    keep = (duration >= min_duration_sec) & (stats['max_depth'] >= min_depth)
    qualifying = stats.index[keep.to_numpy()]

    logger.debug(f"{len(stats)} candidate segments, {len(qualifying)} qualifying dives")

    labels = pd.Series(candidate_ids, index=depth_df.index, name='dive_id')
    labels = labels.where(labels.isin(qualifying))
    return labels.astype('Int64')


def summarize_dives(depth_df: pd.DataFrame,
                    labels: pd.Series,
                    time_col: str = 't_sec',
                    depth_col: str = 'depth') -> pd.DataFrame:
    """
    Collapse per-sample dive labels into one row per dive.

    Returns:
        DataFrame with columns dive_id, t_start, t_end, duration_sec,
        max_depth, mean_depth, n_samples ordered by t_start
    """
    data = pd.DataFrame({
        'dive_id': labels,
        't': depth_df[time_col].astype(float),
        'depth': depth_df[depth_col].astype(float),
    }).dropna(subset=['dive_id'])

    if len(data) == 0:
        return pd.DataFrame(columns=DIVE_COLUMNS)

    dives = data.groupby('dive_id').agg(
        t_start=('t', 'min'),
        t_end=('t', 'max'),
        max_depth=('depth', 'max'),
        mean_depth=('depth', 'mean'),
        n_samples=('t', 'size'),
    ).reset_index()
    dives['duration_sec'] = dives['t_end'] - dives['t_start']
    dives['dive_id'] = dives['dive_id'].astype(int)
    dives = dives.sort_values('t_start').reset_index(drop=True)
    return dives[DIVE_COLUMNS]


def segment_dives(depth_df: pd.DataFrame,
                  surface_threshold: float = SURFACE_THRESHOLD_M,
                  min_duration_sec: float = MIN_DIVE_DURATION_SEC,
                  min_depth: float = MIN_DIVE_DEPTH_M,
                  time_col: str = 't_sec',
                  depth_col: str = 'depth') -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Segment a depth record into dives.

    Returns:
        Tuple of (labeled copy of depth_df with a 'dive_id' column,
        per-dive summary from summarize_dives())
    """
    labels = label_dives(
        depth_df,
        surface_threshold=surface_threshold,
        min_duration_sec=min_duration_sec,
        min_depth=min_depth,
        time_col=time_col,
        depth_col=depth_col,
    )
    labeled = depth_df.copy()
    labeled['dive_id'] = labels
    dives = summarize_dives(depth_df, labels, time_col=time_col, depth_col=depth_col)
    return labeled, dives
