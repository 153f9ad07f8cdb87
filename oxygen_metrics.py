import logging

import numpy as np
import pandas as pd

from data_loading import extract_dive_window

logger = logging.getLogger(__name__)

OXYGEN_METRIC_KEYS = [
    'n_oxygen_samples',
    'start_po2', 'end_po2', 'min_po2', 'mean_po2', 'po2_drop', 't_min_po2',
    'start_hb_saturation', 'end_hb_saturation', 'min_hb_saturation', 'hb_desaturation',
]


def _empty_oxygen_metrics() -> dict:
    metrics = {key: np.nan for key in OXYGEN_METRIC_KEYS}
    metrics['n_oxygen_samples'] = 0
    return metrics


def compute_oxygen_metrics_for_window(window_df: pd.DataFrame,
                                      time_col: str = 't_sec',
                                      po2_col: str = 'po2',
                                      sat_col: str = 'hb_saturation') -> dict:
    """
    Describe blood oxygen depletion over one dive window.

    Args:
        window_df: Oxygen samples inside the window, ordered by time
        time_col: Name of time column
        po2_col: Name of PO2 column
        sat_col: Name of Hb saturation column

    Returns:
        dict with keys:
            n_oxygen_samples, start_po2, end_po2, min_po2, mean_po2,
            po2_drop (start - min), t_min_po2 (time of the minimum),
            start_hb_saturation, end_hb_saturation, min_hb_saturation,
            hb_desaturation (start - min).
        All values are NaN when the window holds no PO2 readings.
    """
    if window_df is None or len(window_df) == 0:
        return _empty_oxygen_metrics()

    po2 = window_df[po2_col].to_numpy(dtype=float)
    sat = window_df[sat_col].to_numpy(dtype=float)
    t = window_df[time_col].to_numpy(dtype=float)

    if np.isnan(po2).all():
        metrics = _empty_oxygen_metrics()
        metrics['n_oxygen_samples'] = len(window_df)
        return metrics

    min_idx = int(np.nanargmin(po2))
    min_sat = np.nan if np.isnan(sat).all() else float(np.nanmin(sat))

    return {
        'n_oxygen_samples': len(window_df),
        'start_po2': po2[0],
        'end_po2': po2[-1],
        'min_po2': po2[min_idx],
        'mean_po2': float(np.nanmean(po2)),
        'po2_drop': po2[0] - po2[min_idx],
        't_min_po2': t[min_idx],
        'start_hb_saturation': sat[0],
        'end_hb_saturation': sat[-1],
        'min_hb_saturation': min_sat,
        'hb_desaturation': sat[0] - min_sat,
    }


def create_dive_oxygen_report(dives_df: pd.DataFrame,
                              oxygen_df: pd.DataFrame,
                              time_col: str = 't_sec',
                              margin_sec: float = 0.0) -> pd.DataFrame:
    """
    One row per dive: the dive summary joined with its oxygen metrics.

    Dives without oxygen samples are kept with NaN metrics so the report
    lines up with the dive table.
    """
    report = []

    for _, dive in dives_df.iterrows():
        window = extract_dive_window(
            oxygen_df, dive['t_start'], dive['t_end'],
            time_col=time_col, margin_sec=margin_sec
        )
        if len(window) == 0:
            logger.warning(f"  Dive {int(dive['dive_id'])}: no oxygen samples between "
                           f"{dive['t_start']:.1f} and {dive['t_end']:.1f} sec")

        row = dive.to_dict()
        row['dive_id'] = int(dive['dive_id'])
        row.update(compute_oxygen_metrics_for_window(window, time_col=time_col))
        report.append(row)

    columns = list(dives_df.columns) + OXYGEN_METRIC_KEYS
    return pd.DataFrame(report, columns=columns)
