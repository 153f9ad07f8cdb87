#!/usr/bin/env python3
"""
Dive Analysis Pipeline - Main Script

Pipeline for a biologging record of a diving animal:
1. Depth and blood oxygen loading from a spreadsheet
2. Dive segmentation of the depth record
3. Per-dive oxygen depletion metrics
4. Overview and per-dive plots
"""

import argparse
import copy
import logging
import os
from pathlib import Path
from typing import Optional, Union

import numpy as np
import pandas as pd
import yaml

from data_loading import (
    load_depth_series, load_oxygen_series, create_data_summary
)
from dive_segmentation import (
    segment_dives, SURFACE_THRESHOLD_M, MIN_DIVE_DURATION_SEC, MIN_DIVE_DEPTH_M
)
from oxygen_metrics import create_dive_oxygen_report
from visualize_dives import plot_overview, plot_all_dives


logger = logging.getLogger(__name__)


def load_config(config_path: str) -> dict:
    """Load YAML configuration file."""
    with open(config_path, 'r') as f:
        return yaml.safe_load(f) or {}


def create_default_config() -> dict:
    """Create default configuration template."""
    return {
        'project': {
            'name': 'dive-analysis',
            'output_dir': './output',
        },
        'data': {
            'depth_path': '/path/to/penguin_dives.xlsx',  # Workbook or CSV with depth
            'depth_sheet': 'depth',
            'oxygen_path': '/path/to/penguin_dives.xlsx',  # Workbook or CSV with PO2 / Hb saturation
            'oxygen_sheet': 'oxygen',
            'time_unit': None,  # 's', 'min' or 'h'; None reads it from the header
        },
        'segmentation': {
            'surface_threshold_m': SURFACE_THRESHOLD_M,
            'min_duration_sec': MIN_DIVE_DURATION_SEC,
            'min_depth_m': MIN_DIVE_DEPTH_M,
        },
        'plots': {
            'enabled': True,
            'overview': True,
            'per_dive': True,
            'margin_sec': 30.0,
            'relative_time': True,
            'max_dives': None,
        },
    }


def _merge_with_defaults(cfg: dict) -> dict:
    merged = create_default_config()
    for section, values in (cfg or {}).items():
        if isinstance(values, dict) and isinstance(merged.get(section), dict):
            merged[section].update(values)
        else:
            merged[section] = copy.deepcopy(values)
    return merged


def _summarize_pipeline(cfg: dict, dives: pd.DataFrame, report: pd.DataFrame) -> dict:
    seg = cfg['segmentation']
    summary = {
        'project': cfg['project']['name'],
        'surface_threshold_m': seg['surface_threshold_m'],
        'min_duration_sec': seg['min_duration_sec'],
        'min_depth_m': seg['min_depth_m'],
        'n_dives': len(dives),
        'total_dive_time_sec': 0.0,
        'mean_dive_duration_sec': np.nan,
        'longest_dive_sec': np.nan,
        'max_dive_depth': np.nan,
        'deepest_dive_id': None,
        'min_po2_overall': np.nan,
        'min_hb_saturation_overall': np.nan,
    }

    if len(dives) > 0:
        summary['total_dive_time_sec'] = float(dives['duration_sec'].sum())
        summary['mean_dive_duration_sec'] = float(dives['duration_sec'].mean())
        summary['longest_dive_sec'] = float(dives['duration_sec'].max())
        deepest = dives.loc[dives['max_depth'].idxmax()]
        summary['max_dive_depth'] = float(deepest['max_depth'])
        summary['deepest_dive_id'] = int(deepest['dive_id'])

    if len(report) > 0:
        summary['min_po2_overall'] = float(report['min_po2'].min())
        summary['min_hb_saturation_overall'] = float(report['min_hb_saturation'].min())

    return summary


def run_analysis_pipeline(config: Union[str, Path, dict]) -> dict:
    """
    Main pipeline execution.

    Args:
        config: Path to YAML configuration file, or an already loaded config dict

    Returns:
        Pipeline summary dict (also written to pipeline_summary.csv)
    """
    logger.info("=" * 80)
    logger.info("Dive Analysis Pipeline")
    logger.info("=" * 80)

    cfg = config if isinstance(config, dict) else load_config(config)
    cfg = _merge_with_defaults(cfg)

    output_dir = Path(cfg['project']['output_dir'])
    output_dir.mkdir(parents=True, exist_ok=True)
    logger.info(f"Output directory: {output_dir}")

    data_cfg = cfg['data']
    time_unit = data_cfg.get('time_unit')

    # ========================================================================
    # STEP 1: Load depth record
    # ========================================================================
    logger.info("\n[STEP 1] Loading depth record...")
    depth_df = load_depth_series(
        Path(data_cfg['depth_path']),
        sheet_name=data_cfg.get('depth_sheet'),
        time_unit=time_unit,
    )

    # ========================================================================
    # STEP 2: Load blood oxygen record
    # ========================================================================
    logger.info("\n[STEP 2] Loading blood oxygen record...")
    oxygen_df = load_oxygen_series(
        Path(data_cfg.get('oxygen_path') or data_cfg['depth_path']),
        sheet_name=data_cfg.get('oxygen_sheet'),
        time_unit=time_unit,
    )

    data_summary = pd.DataFrame([
        create_data_summary(depth_df, 'depth'),
        create_data_summary(oxygen_df, 'po2'),
        create_data_summary(oxygen_df, 'hb_saturation'),
    ])
    data_summary.to_csv(output_dir / 'data_summary.csv', index=False)
    for _, row in data_summary.iterrows():
        logger.info(f"  {row['signal']}: {row['n_samples']} samples, "
                    f"interval {row['sampling_interval_sec']:.2f} sec")

    # ========================================================================
    # STEP 3: Segment dives
    # ========================================================================
    logger.info("\n[STEP 3] Segmenting dives...")
    seg = cfg['segmentation']
    labeled_depth, dives = segment_dives(
        depth_df,
        surface_threshold=seg['surface_threshold_m'],
        min_duration_sec=seg['min_duration_sec'],
        min_depth=seg['min_depth_m'],
    )
    logger.info(f"  Thresholds: surface={seg['surface_threshold_m']} m, "
                f"min duration={seg['min_duration_sec']} sec, min depth={seg['min_depth_m']} m")
    logger.info(f"  Detected {len(dives)} dives")
    for _, dive in dives.iterrows():
        logger.info(f"    dive {int(dive['dive_id'])}: t={dive['t_start']:.1f}-{dive['t_end']:.1f} "
                    f"dur={dive['duration_sec']:.1f}s max_depth={dive['max_depth']:.1f}m")

    labeled_depth.to_csv(output_dir / 'depth_labeled.csv', index=False)
    oxygen_df.to_csv(output_dir / 'oxygen_series.csv', index=False)
    dives.to_csv(output_dir / 'dives.csv', index=False)

    # ========================================================================
    # STEP 4: Oxygen metrics per dive
    # ========================================================================
    logger.info("\n[STEP 4] Computing oxygen metrics per dive...")
    report = create_dive_oxygen_report(dives, oxygen_df)
    report.to_csv(output_dir / 'dive_oxygen_report.csv', index=False)
    logger.info(f"  Dives with oxygen samples: {int((report['n_oxygen_samples'] > 0).sum())}/{len(report)}")

    # ========================================================================
    # STEP 5: Plots
    # ========================================================================
    plots_cfg = cfg['plots']
    if plots_cfg.get('enabled', True):
        logger.info("\n[STEP 5] Rendering plots...")
        plots_dir = output_dir / 'plots'
        if plots_cfg.get('overview', True):
            path = plot_overview(depth_df, oxygen_df, plots_dir / 'overview.png', dives_df=dives,
                                 title=cfg['project']['name'])
            logger.info(f"  Saved overview: {path}")
        if plots_cfg.get('per_dive', True):
            paths = plot_all_dives(
                dives, depth_df, oxygen_df, plots_dir / 'dives',
                margin_sec=plots_cfg.get('margin_sec', 30.0),
                relative_time=plots_cfg.get('relative_time', True),
                max_dives=plots_cfg.get('max_dives'),
            )
            logger.info(f"  Saved {len(paths)} dive plots")
    else:
        logger.info("\n[STEP 5] Plots disabled")

    # ========================================================================
    # STEP 6: Summary
    # ========================================================================
    summary = _summarize_pipeline(cfg, dives, report)
    pd.DataFrame([summary]).to_csv(output_dir / 'pipeline_summary.csv', index=False)

    logger.info("\n" + "=" * 80)
    logger.info("PIPELINE SUMMARY")
    logger.info("=" * 80)
    for key, value in summary.items():
        if isinstance(value, float):
            logger.info(f"  {key}: {value:.2f}")
        else:
            logger.info(f"  {key}: {value}")

    logger.info("\n" + "=" * 80)
    logger.info("Pipeline completed successfully!")
    logger.info(f"Output saved to: {output_dir}")
    logger.info("=" * 80)

    return summary


def write_default_config(config_path: str) -> Path:
    config = create_default_config()
    os.makedirs(os.path.dirname(config_path) or '.', exist_ok=True)
    with open(config_path, 'w') as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False)
    return Path(config_path)


def main(argv: Optional[list] = None):
    """Command-line interface."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    parser = argparse.ArgumentParser(
        description='Dive segmentation and blood oxygen analysis for biologging records',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
            Examples:
            # Run with existing config
            python run_analysis.py --config config.yaml

            # Create default config template
            python run_analysis.py --create-config --config config.yaml
            """
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        required=True,
        help='Path to YAML configuration file'
    )

    parser.add_argument(
        '--create-config',
        action='store_true',
        help='Create default config template'
    )

    args = parser.parse_args(argv)

    config_path = args.config

    if args.create_config:
        write_default_config(config_path)
        print(f"Created default config template: {config_path}")
        print("Please edit the config file with your data paths and settings.")
        return

    if not Path(config_path).exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    run_analysis_pipeline(config_path)


if __name__ == '__main__':
    main()
