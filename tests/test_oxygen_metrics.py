"""
Tests for per-dive blood oxygen metrics.
"""

import numpy as np
import pandas as pd
import pytest

from dive_segmentation import segment_dives
from oxygen_metrics import (
    OXYGEN_METRIC_KEYS,
    compute_oxygen_metrics_for_window,
    create_dive_oxygen_report,
)


class TestWindowMetrics:

    def test_depletion_metrics(self):
        window = pd.DataFrame({
            "t_sec": [10.0, 20.0, 30.0, 40.0],
            "po2": [85.0, 60.0, 35.0, 50.0],
            "hb_saturation": [97.0, 90.0, 65.0, 80.0],
        })

        metrics = compute_oxygen_metrics_for_window(window)

        assert metrics["n_oxygen_samples"] == 4
        assert metrics["start_po2"] == 85.0
        assert metrics["end_po2"] == 50.0
        assert metrics["min_po2"] == 35.0
        assert metrics["po2_drop"] == 50.0
        assert metrics["t_min_po2"] == 30.0
        assert metrics["mean_po2"] == pytest.approx(57.5)
        assert metrics["min_hb_saturation"] == 65.0
        assert metrics["hb_desaturation"] == 32.0

    def test_empty_window_gives_nan_metrics(self):
        window = pd.DataFrame(columns=["t_sec", "po2", "hb_saturation"])

        metrics = compute_oxygen_metrics_for_window(window)

        assert set(metrics) == set(OXYGEN_METRIC_KEYS)
        assert metrics["n_oxygen_samples"] == 0
        assert np.isnan(metrics["min_po2"])
        assert np.isnan(metrics["hb_desaturation"])

    def test_window_without_po2_readings_gives_nan_metrics(self):
        window = pd.DataFrame({
            "t_sec": [10.0, 20.0],
            "po2": [np.nan, np.nan],
            "hb_saturation": [95.0, 90.0],
        })

        metrics = compute_oxygen_metrics_for_window(window)

        assert metrics["n_oxygen_samples"] == 2
        assert np.isnan(metrics["min_po2"])
        assert np.isnan(metrics["t_min_po2"])

    def test_missing_readings_skipped(self):
        window = pd.DataFrame({
            "t_sec": [10.0, 20.0, 30.0],
            "po2": [80.0, np.nan, 40.0],
            "hb_saturation": [np.nan, np.nan, np.nan],
        })

        metrics = compute_oxygen_metrics_for_window(window)

        assert metrics["min_po2"] == 40.0
        assert metrics["mean_po2"] == pytest.approx(60.0)
        assert np.isnan(metrics["min_hb_saturation"])


class TestDiveOxygenReport:

    def test_one_row_per_dive(self, depth_df, oxygen_df):
        _, dives = segment_dives(depth_df)

        report = create_dive_oxygen_report(dives, oxygen_df)

        assert len(report) == len(dives)
        assert report["dive_id"].tolist() == dives["dive_id"].tolist()
        assert report["n_oxygen_samples"].tolist() == [24, 16]
        assert (report["min_po2"] <= report["start_po2"]).all()

    def test_dive_without_oxygen_samples_kept(self, oxygen_df):
        dives = pd.DataFrame({
            "dive_id": [3],
            "t_start": [1000.0],
            "t_end": [1100.0],
            "duration_sec": [100.0],
            "max_depth": [12.0],
        })

        report = create_dive_oxygen_report(dives, oxygen_df)

        assert len(report) == 1
        assert report.loc[0, "n_oxygen_samples"] == 0
        assert np.isnan(report.loc[0, "min_po2"])

    def test_no_dives_gives_empty_report(self, oxygen_df):
        dives = pd.DataFrame(columns=["dive_id", "t_start", "t_end", "duration_sec", "max_depth"])

        report = create_dive_oxygen_report(dives, oxygen_df)

        assert report.empty
        assert "min_po2" in report.columns
