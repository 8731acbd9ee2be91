#!/usr/bin/env python3
"""
Main entry point for channel VAR analysis
"""

import argparse
import logging
import sys

from .config import (
    AnalysisConfig,
    DEFAULT_SEASONAL_PERIOD,
    MIN_SEASONAL_CYCLES,
    SIGNIFICANCE_T_THRESHOLD
)
from .data_handler import check_data_quality, load_data
from .exceptions import ChannelVarError
from .pipeline import run_analysis
from .utils import OutputCapture, format_results_table, print_banner, save_results, setup_logger

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='VAR channel elasticity and budget allocation from weekly marketing data')
    parser.add_argument('--data', type=str, required=True,
                        help='Path to CSV data file, one row per week')
    parser.add_argument('--channels', nargs='+', required=True,
                        help='Channel spend columns, in causal order')
    parser.add_argument('--sales', type=str, default='sales',
                        help='Sales column')
    parser.add_argument('--week-column', type=str, default='week',
                        help='Week index column')
    parser.add_argument('--region-column', type=str, default=None,
                        help='Column identifying the region of each row')
    parser.add_argument('--region', type=str, default=None,
                        help='Analyse only this region')
    parser.add_argument('--output', type=str, default='channel_var_results.txt',
                        help='Output file for results')
    parser.add_argument('--max-lags', type=int, default=1,
                        help='Maximum VAR lag order to consider')
    parser.add_argument('--horizon', type=int, default=10,
                        help='Impulse response horizon in weeks')
    parser.add_argument('--bootstrap', type=int, default=100,
                        help='Bootstrap replicates for confidence bands')
    parser.add_argument('--confidence', type=float, default=0.95,
                        help='Confidence level of the bands')
    parser.add_argument('--seasonal-period', type=int, default=DEFAULT_SEASONAL_PERIOD,
                        help='Seasonal period in weeks (0 disables the seasonal check)')
    parser.add_argument('--min-seasonal-cycles', type=int, default=MIN_SEASONAL_CYCLES,
                        help='Full seasonal cycles required before testing seasonal strength')
    parser.add_argument('--t-threshold', type=float, default=SIGNIFICANCE_T_THRESHOLD,
                        help='Minimum |t| for an impulse response step to count')
    parser.add_argument('--seed', type=int, default=None,
                        help='Random seed for the bootstrap')
    parser.add_argument('--jobs', type=int, default=1,
                        help='Parallel bootstrap workers')
    parser.add_argument('--quiet', action='store_true',
                        help='Only log warnings and errors')
    return parser


def main(argv=None):
    """Main function"""
    args = build_parser().parse_args(argv)
    setup_logger(level='WARNING' if args.quiet else 'INFO')

    config = AnalysisConfig(
        channels=args.channels,
        sales=args.sales,
        max_lag=args.max_lags,
        seasonal_period=args.seasonal_period or None,
        min_seasonal_cycles=args.min_seasonal_cycles,
        t_threshold=args.t_threshold,
        horizon=args.horizon,
        confidence=args.confidence,
        n_bootstrap=args.bootstrap,
        seed=args.seed,
        n_jobs=args.jobs,
        verbose=not args.quiet,
        description=f"{args.data} region={args.region or 'all'}"
    )

    with OutputCapture(args.output):
        print_banner("CHANNEL VAR ELASTICITY AND BUDGET ALLOCATION", char="=")
        print()

        try:
            print("Loading data...")
            df = load_data(args.data, week_column=args.week_column,
                           region_column=args.region_column, region=args.region)
            quality = check_data_quality(df)
            print(f"Loaded {quality['n_observations']} weeks")
            print(f"Week range: {quality['week_range']}")
            print()

            result = run_analysis(df, config)
        except ChannelVarError as e:
            logger.error("Analysis failed: %s", e)
            print(f"\nAnalysis failed: {e}")
            return 1

        results = result.to_dict()
        results['data_info'] = quality

        print(format_results_table(results))
        print("\n" + "="*80)
        print(f"Recommended top channel: {result.plan.top_channel()}")
        print(f"\nResults saved to: {args.output}")

        # Also save as JSON for programmatic access
        json_file = args.output.rsplit('.', 1)[0] + '.json'
        save_results(results, json_file, format='json')
        print(f"JSON results saved to: {json_file}")

        csv_file = args.output.rsplit('.', 1)[0] + '_allocation.csv'
        save_results(results, csv_file, format='csv')
        print(f"Allocation table saved to: {csv_file}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
