#!/usr/bin/env python3
"""
Command line entry point for running one integration strategy.

    scrna-recom samples.csv results/ --strategy harmony
"""

import argparse
import logging
import sys

import scanpy as sc

from scrna_recom.config import get_settings
from scrna_recom.errors import IntegrationRunError, UnsupportedStrategy
from scrna_recom.integration import IntegrationParams, Strategy, integrate

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_RUN_FAILED = 1
EXIT_USAGE = 2


def setup_logging(level="INFO"):
    """Configure root logging and scanpy verbosity"""
    level = getattr(logging, str(level).upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    sc.settings.verbosity = 3 if level <= logging.DEBUG else 1


def build_parser():
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="scrna-recom",
        description="Integrate single-cell RNA-seq samples listed in a CSV manifest",
    )
    parser.add_argument("manifest", nargs="?", help="CSV manifest with sample, path and optional dataset columns")
    parser.add_argument("outdir", nargs="?", help="Directory for integration.<strategy>.h5ad/.pdf")
    parser.add_argument("-s", "--strategy", default=settings.DEFAULT_STRATEGY,
                        help="Integration strategy (default: %(default)s)")
    parser.add_argument("--reference", type=int, nargs="+", default=None,
                        help="0-based reference sample indices for seurat-largedata")
    parser.add_argument("--liger-k", type=int, default=None, help="Liger factorization rank")
    parser.add_argument("--liger-lambda", type=float, default=None, help="Liger regularization")
    parser.add_argument("--liger-resolution", type=float, default=None, help="Liger clustering resolution")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--log-level", default=settings.LOG_LEVEL, help="Logging level (default: %(default)s)")
    parser.add_argument("--list-strategies", action="store_true", help="Print the available strategies and exit")
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.list_strategies:
        for strategy in Strategy:
            print(strategy.stem)
        return EXIT_OK

    if not args.manifest or not args.outdir:
        parser.print_usage(sys.stderr)
        print("error: manifest and outdir are required", file=sys.stderr)
        return EXIT_USAGE

    setup_logging(args.log_level)

    try:
        strategy = Strategy.parse(args.strategy)
    except UnsupportedStrategy as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_USAGE

    params = IntegrationParams.from_settings(
        reference=args.reference,
        liger_k=args.liger_k,
        liger_lambda=args.liger_lambda,
        liger_resolution=args.liger_resolution,
        seed=args.seed,
    )

    try:
        run = integrate(args.manifest, args.outdir, strategy, params)
    except IntegrationRunError as e:
        logger.error(f"{strategy.stem} integration failed: {e}")
        return EXIT_RUN_FAILED

    print(run.artifacts.object_path)
    print(run.artifacts.report_path)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
