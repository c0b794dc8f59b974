#!/usr/bin/env python3
"""
Run several integration strategies over one manifest
Executes each strategy in turn and stops at the first failure
"""

import argparse
import sys
from pathlib import Path

# Ensure package is importable
sys.path.insert(0, str(Path(__file__).parent / "src"))

from scrna_recom.cli import setup_logging
from scrna_recom.config import get_settings
from scrna_recom.errors import IntegrationRunError, UnsupportedStrategy
from scrna_recom.integration import Strategy, integrate


def run_strategy(manifest, outdir, strategy):
    """Run one strategy and report the outcome"""
    print(f"\n{'='*60}")
    print(f"RUNNING: {strategy.stem}")
    print(f"{'='*60}")

    try:
        run = integrate(manifest, outdir, strategy)
    except IntegrationRunError as e:
        print(f"✗ {strategy.stem} failed: {e}")
        return False

    print(f"✓ {strategy.stem} completed successfully")
    print(f"  -> {run.artifacts.object_path}")
    print(f"  -> {run.artifacts.report_path}")
    return True


def main(argv=None):
    settings = get_settings()
    parser = argparse.ArgumentParser(description='Run scRNA-seq integration strategies')
    parser.add_argument('manifest', help='CSV manifest of sample files')
    parser.add_argument('--outdir', default=str(settings.OUTPUT_DIR),
                        help='Output directory (default: %(default)s)')
    parser.add_argument('--strategies', nargs='+',
                        default=[strategy.stem for strategy in Strategy],
                        help='Strategies to run, in order (default: all)')

    args = parser.parse_args(argv)
    setup_logging(settings.LOG_LEVEL)

    try:
        strategies = [Strategy.parse(name) for name in args.strategies]
    except UnsupportedStrategy as e:
        print(f"✗ {e}")
        return 2

    outdir = settings.get_output_dir(args.outdir)
    success_count = 0

    for strategy in strategies:
        if run_strategy(args.manifest, outdir, strategy):
            success_count += 1
        else:
            print(f"\n⚠️  Pipeline stopped due to failure in: {strategy.stem}")
            break

    print(f"""
\n{'='*80}
INTEGRATION SUMMARY
{'='*80}

Completed strategies: {success_count}/{len(strategies)}
Results are saved in: {outdir}
""")
    return 0 if success_count == len(strategies) else 1


if __name__ == "__main__":
    sys.exit(main())
