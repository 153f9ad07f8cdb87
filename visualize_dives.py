"""
Plot depth and blood oxygen series for the whole record and for each dive.

Depth, PO2 and Hb saturation are stacked on a shared time axis (depth
axis reversed so dives point down). Per-dive plots load only the samples
around each dive window so the segmentation can be inspected quickly.
"""

import argparse
import logging
from pathlib import Path
from typing import Optional

import pandas as pd
import matplotlib.pyplot as plt

from data_loading import extract_dive_window

logger = logging.getLogger(__name__)


def _draw_stacked_panels(axes, depth_df: pd.DataFrame, oxygen_df: pd.DataFrame, time_offset: float = 0.0):
    ax_depth, ax_po2, ax_sat = axes

    ax_depth.plot(depth_df['t_sec'] - time_offset, depth_df['depth'], color='black', linewidth=1.0)
    ax_depth.invert_yaxis()
    ax_depth.set_ylabel('Depth (m)')

    if oxygen_df is not None and len(oxygen_df) > 0:
        ax_po2.plot(oxygen_df['t_sec'] - time_offset, oxygen_df['po2'], color='tab:red', linewidth=1.0)
        ax_sat.plot(oxygen_df['t_sec'] - time_offset, oxygen_df['hb_saturation'], color='tab:blue', linewidth=1.0)
    ax_po2.set_ylabel('PO2 (mmHg)')
    ax_sat.set_ylabel('Hb saturation (%)')

    for ax in axes:
        ax.grid(True, alpha=0.3, axis='y')


def plot_overview(depth_df: pd.DataFrame,
                  oxygen_df: pd.DataFrame,
                  output_path: Path,
                  dives_df: Optional[pd.DataFrame] = None,
                  title: str = 'Dive record') -> Path:
    """Stacked depth / PO2 / Hb saturation for the full record, dives shaded."""
    fig, axes = plt.subplots(3, 1, figsize=(12, 8), sharex=True)
    _draw_stacked_panels(axes, depth_df, oxygen_df)

    if dives_df is not None:
        for i, (_, dive) in enumerate(dives_df.iterrows()):
            for ax in axes:
                ax.axvspan(dive['t_start'], dive['t_end'], color='orange', alpha=0.2,
                           label='Dive' if (i == 0 and ax is axes[0]) else None)
        if len(dives_df) > 0:
            axes[0].legend(loc='lower right')

    axes[0].set_title(title)
    axes[-1].set_xlabel('Time (sec)')

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    plt.tight_layout()
    plt.savefig(output_path, dpi=150, bbox_inches='tight')
    plt.close(fig)
    return output_path


def plot_dive(dive,
              depth_df: pd.DataFrame,
              oxygen_df: pd.DataFrame,
              output_dir: Path,
              margin_sec: float = 30.0,
              relative_time: bool = True) -> Optional[Path]:
    """
    Plot one dive window.

    Args:
        dive: Row of the dive table (dive_id, t_start, t_end, duration_sec, max_depth)
        depth_df: Full depth series
        oxygen_df: Full oxygen series
        output_dir: Directory for dive_<id>.png
        margin_sec: Padding around the dive window in seconds
        relative_time: Plot time relative to dive start

    Returns:
        Path of the written figure, or None if no depth samples fall in the window
    """
    t_start = dive['t_start']
    t_end = dive['t_end']
    dive_id = int(dive['dive_id'])

    depth_window = extract_dive_window(depth_df, t_start, t_end, margin_sec=margin_sec)
    if depth_window.empty:
        return None
    oxygen_window = extract_dive_window(oxygen_df, t_start, t_end, margin_sec=margin_sec)

    if relative_time:
        offset = t_start
        x_label = 'Time from dive start (sec)'
    else:
        offset = 0.0
        x_label = 'Time (sec)'

    fig, axes = plt.subplots(3, 1, figsize=(10, 7), sharex=True)
    _draw_stacked_panels(axes, depth_window, oxygen_window, time_offset=offset)
    for ax in axes:
        ax.axvspan(t_start - offset, t_end - offset, color='orange', alpha=0.2)

    axes[0].set_title(
        f"Dive {dive_id} | dur {dive['duration_sec']:.1f}s | max depth {dive['max_depth']:.1f}m"
    )
    axes[-1].set_xlabel(x_label)
    axes[-1].set_xlim(t_start - offset - margin_sec, t_end - offset + margin_sec)

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    out_path = output_dir / f"dive_{dive_id}.png"
    plt.tight_layout()
    plt.savefig(out_path, dpi=150, bbox_inches='tight')
    plt.close(fig)
    return out_path


def plot_all_dives(dives_df: pd.DataFrame,
                   depth_df: pd.DataFrame,
                   oxygen_df: pd.DataFrame,
                   output_dir: Path,
                   margin_sec: float = 30.0,
                   relative_time: bool = True,
                   max_dives: Optional[int] = None) -> list:
    if max_dives is not None:
        dives_df = dives_df.head(max_dives)

    paths = []
    for _, dive in dives_df.iterrows():
        out_path = plot_dive(dive, depth_df, oxygen_df, output_dir,
                             margin_sec=margin_sec, relative_time=relative_time)
        if out_path is not None:
            paths.append(out_path)
    return paths


def main(argv: Optional[list] = None) -> None:
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    parser = argparse.ArgumentParser(description='Plot dives from a completed dive analysis run')
    parser.add_argument('--output-dir', required=True, help='Output directory of run_analysis.py')
    parser.add_argument('--plots-dir', default=None, help='Directory for plots (default: <output-dir>/plots)')
    parser.add_argument('--margin-sec', type=float, default=30.0, help='Padding around dive window in seconds')
    parser.add_argument('--max-dives', type=int, default=None, help='Max number of dives to plot')
    parser.add_argument('--relative-time', action='store_true', help='Plot time relative to dive start')

    args = parser.parse_args(argv)

    run_dir = Path(args.output_dir)
    depth_df = pd.read_csv(run_dir / 'depth_labeled.csv')
    oxygen_df = pd.read_csv(run_dir / 'oxygen_series.csv')
    try:
        dives_df = pd.read_csv(run_dir / 'dives.csv')
    except pd.errors.EmptyDataError:
        dives_df = pd.DataFrame()

    if dives_df.empty:
        print('No dives found to plot.')
        return

    plots_dir = Path(args.plots_dir) if args.plots_dir else run_dir / 'plots'
    plot_overview(depth_df, oxygen_df, plots_dir / 'overview.png', dives_df=dives_df)
    paths = plot_all_dives(dives_df, depth_df, oxygen_df, plots_dir / 'dives',
                           margin_sec=args.margin_sec,
                           relative_time=args.relative_time,
                           max_dives=args.max_dives)

    print(f"Saved {len(paths)} dive plots to {plots_dir / 'dives'}")


if __name__ == '__main__':
    main()
