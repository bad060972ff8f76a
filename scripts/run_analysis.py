#!/usr/bin/env python3
"""
Life Expectancy Analysis CLI

Usage:
    python scripts/run_analysis.py --config config/life_expectancy.yaml

    python scripts/run_analysis.py \
        --config config/life_expectancy.yaml \
        --input "data/Life Expectancy Data.csv" \
        --correlation-threshold 0.85 \
        --seed 7
"""

import sys
import argparse
from pathlib import Path

# Add project root to path
project_root = str(Path(__file__).resolve().parent.parent)
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from src.config.loader import load_config
from src.analysis.pipeline import LifeExpectancyAnalysis


# argparse dest -> dotted config key
OVERRIDE_FLAGS = {
    'input': 'data.input_path',
    'output_dir': 'output.base_dir',
    'correlation_threshold': 'collinearity.correlation_threshold',
    'forward_alpha': 'selection.forward_alpha',
    'test_size': 'validation.test_size',
    'seed': 'reproducibility.global_seed',
    'stratum': 'validation.stratum',
    'log_level': 'reproducibility.log_level',
}


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description='Life Expectancy Determinants Analysis',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument('--config', default=None, help='YAML config file')

    data = parser.add_argument_group('data')
    data.add_argument('--input', default=None, help='Life expectancy CSV')
    data.add_argument('--output-dir', default=None, help='Base directory for run folders')

    analysis = parser.add_argument_group('analysis')
    analysis.add_argument(
        '--correlation-threshold', type=float, default=None,
        help='Absolute correlation at which a pair needs a decision',
    )
    analysis.add_argument(
        '--forward-alpha', type=float, default=None,
        help='Significance level behind the forward selection penalty',
    )
    analysis.add_argument(
        '--test-size', type=float, default=None,
        help='Test share of the validation split (0.25 = 3:1)',
    )
    analysis.add_argument('--seed', type=int, default=None, help='Split and CV fold seed')
    analysis.add_argument(
        '--stratum', default=None, choices=['full', 'developing', 'developed'],
        help='Stratum the final model is validated on',
    )
    parser.add_argument(
        '--log-level', default=None, choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Console log level',
    )
    return parser.parse_args(argv)


def _build_cli_overrides(args) -> dict:
    """Flags that were given, keyed by their dotted config path."""
    given = vars(args)
    return {
        key: given[dest]
        for dest, key in OVERRIDE_FLAGS.items()
        if given.get(dest) is not None
    }


def _print_report(results: dict) -> None:
    rule = '=' * 60
    lines = [
        '',
        rule,
        f"Analysis completed: {results['status']}",
        f"Rows: {results['row_counts']}",
        f"Reduced predictors: {len(results['reduced_predictors'])}",
    ]
    lines += [f"Consensus ({s}): {chosen}" for s, chosen in results['consensus'].items()]
    val = results.get('validation')
    if val:
        lines.append(
            f"Validation ({val['stratum']}): train R2={val['train_r2']:.4f}, "
            f"test R2={val['test_r2']:.4f}"
        )
    if 'excel_path' in results:
        lines.append(f"Excel report: {results['excel_path']}")
    lines += [f"Run directory: {results['output_dir']}", f"Log file: {results['log_file']}", rule]
    print('\n'.join(lines))


def main(argv=None):
    args = parse_args(argv)
    config = load_config(yaml_path=args.config, cli_overrides=_build_cli_overrides(args))
    results = LifeExpectancyAnalysis(config).run()
    _print_report(results)
    return results


if __name__ == '__main__':
    main()
