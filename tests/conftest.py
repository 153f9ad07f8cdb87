"""Pytest configuration and fixtures for dive analysis tests."""

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest


def _add_dive(depth, start, n_samples, peak):
    """Half-sine dive profile starting at 1 m so every sample is submerged."""
    shape = np.sin(np.pi * np.arange(n_samples) / (n_samples - 1))
    depth[start:start + n_samples] = 1.0 + (peak - 1.0) * shape


@pytest.fixture
def depth_df():
    """
    Ten-minute depth record sampled at 1 Hz.

    - 100-219 s: dive reaching ~20 m (qualifies)
    - 300-329 s: 30 s excursion to ~8 m (too short)
    - 400-499 s: 100 s excursion to ~3 m (too shallow)
    - 510-589 s: dive reaching ~12 m (qualifies)
    """
    t = np.arange(600, dtype=float)
    depth = np.full(600, 0.2)
    _add_dive(depth, 100, 120, 20.0)
    _add_dive(depth, 300, 30, 8.0)
    _add_dive(depth, 400, 100, 3.0)
    _add_dive(depth, 510, 80, 12.0)
    return pd.DataFrame({"t_sec": t, "depth": depth})


@pytest.fixture
def oxygen_df():
    """Oxygen record sampled every 5 s, independent of the depth clock."""
    t = np.arange(0.0, 600.0, 5.0) + 2.5
    po2 = 90.0 - 0.3 * (t % 100)
    sat = 98.0 - 0.2 * (t % 100)
    return pd.DataFrame({"t_sec": t, "po2": po2, "hb_saturation": sat})


@pytest.fixture
def workbook_path(tmp_path, depth_df, oxygen_df):
    """Workbook laid out like a lab spreadsheet: minutes and unit suffixes in headers."""
    path = tmp_path / "penguin_dives.xlsx"
    depth_sheet = pd.DataFrame({
        "Time (min)": depth_df["t_sec"] / 60.0,
        "Depth (m)": depth_df["depth"],
    })
    oxygen_sheet = pd.DataFrame({
        "Time (min)": oxygen_df["t_sec"] / 60.0,
        "PO2 (mmHg)": oxygen_df["po2"],
        "SO2 (%)": oxygen_df["hb_saturation"],
    })
    with pd.ExcelWriter(path) as writer:
        depth_sheet.to_excel(writer, sheet_name="depth", index=False)
        oxygen_sheet.to_excel(writer, sheet_name="oxygen", index=False)
    return path
