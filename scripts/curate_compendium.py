#!/usr/bin/env python
"""
CLI for curating an expression compendium stored in a local repository.

Usage examples::

    # Defaults: remove duplicates, retracted datasets and subsets
    python scripts/curate_compendium.py \\
        --repository data/compendium --output-dir data/processed/curated

    # Survival-ready subset with a 10% dispersion filter and common genes
    python scripts/curate_compendium.py \\
        --repository data/compendium \\
        --quantile-cutoff 0.1 --min-number-events 15 --min-sample-size 40 \\
        --keep-common-only --impute-missing \\
        --output-dir data/processed/curated

    # Using a YAML config (command-line flags take precedence)
    python scripts/curate_compendium.py --config configs/curation.yaml
"""

from __future__ import annotations

import argparse
import dataclasses
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from genecompendium.curation.pipeline import CompendiumCurator
from genecompendium.data.repository import DatasetRepository
from genecompendium.utils.config import CompendiumConfig, load_config
from genecompendium.utils.logging import logger, setup_logging

# Flags that map one-to-one onto CurationConfig fields
_CURATION_FLAGS = (
    "remove_duplicates",
    "sample_delimiter",
    "quantile_cutoff",
    "quantile_tolerance",
    "on_filter_violation",
    "rescale",
    "expand_probesets",
    "probeset_separator",
    "min_number_genes",
    "min_number_events",
    "min_sample_size",
    "event_column",
    "event_value",
    "remove_retracted",
    "remove_subsets",
    "keep_common_only",
    "impute_missing",
    "knn_neighbors",
    "knn_row_max",
)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Curate a compendium of gene-expression datasets.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    # Config
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to a curation YAML config.",
    )
    parser.add_argument(
        "--repository",
        type=str,
        default=None,
        help="Repository root directory (overrides the config).",
    )
    parser.add_argument(
        "--tags",
        nargs="+",
        default=None,
        help="Catalog tags every dataset must carry.",
    )

    # Output
    parser.add_argument(
        "--output-dir",
        type=str,
        default="data/processed/curated",
        help="Output directory for curated datasets.",
    )

    # Duplicates
    parser.add_argument(
        "--remove-duplicates",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Remove patients duplicated across datasets.",
    )
    parser.add_argument(
        "--sample-delimiter",
        type=str,
        default=None,
        help="Separator between dataset name and sample id in duplicate keys.",
    )

    # Gene filtering
    parser.add_argument(
        "--quantile-cutoff",
        type=float,
        default=None,
        help="Remove genes with standard deviation below this quantile (0 <= q < 1).",
    )
    parser.add_argument(
        "--quantile-tolerance",
        type=float,
        default=None,
        help="Accepted gap between the requested and observed filtered fraction.",
    )
    parser.add_argument(
        "--on-filter-violation",
        type=str,
        default=None,
        choices=["raise", "skip"],
        help="Abort the run or skip the dataset when the quantile filter refuses it.",
    )
    parser.add_argument(
        "--rescale",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Z-score every gene across patients.",
    )
    parser.add_argument(
        "--expand-probesets",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Split composite probe-set identifiers (GENE1///GENE2).",
    )
    parser.add_argument(
        "--probeset-separator",
        type=str,
        default=None,
        help="Separator inside composite probe-set identifiers.",
    )

    # Inclusion policy
    parser.add_argument(
        "--min-number-genes",
        type=int,
        default=None,
        help="Minimum genes per dataset.",
    )
    parser.add_argument(
        "--min-number-events",
        type=int,
        default=None,
        help="Minimum deceased patients per dataset.",
    )
    parser.add_argument(
        "--min-sample-size",
        type=int,
        default=None,
        help="Minimum patients per dataset.",
    )
    parser.add_argument(
        "--event-column",
        type=str,
        default=None,
        help="Phenotype column holding the event status.",
    )
    parser.add_argument(
        "--event-value",
        type=str,
        default=None,
        help="Value of --event-column that counts as an event.",
    )
    parser.add_argument(
        "--remove-retracted",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Drop datasets from retracted publications.",
    )
    parser.add_argument(
        "--remove-subsets",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Drop datasets that are subsets of others.",
    )

    # Harmonisation
    parser.add_argument(
        "--keep-common-only",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Keep only genes present in every retained dataset.",
    )
    parser.add_argument(
        "--impute-missing",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="KNN-impute datasets with missing expression values.",
    )
    parser.add_argument(
        "--knn-neighbors",
        type=int,
        default=None,
        help="Neighbouring genes used by the KNN imputer.",
    )
    parser.add_argument(
        "--knn-row-max",
        type=float,
        default=None,
        help="Largest missing fraction per gene for neighbour imputation.",
    )

    # Logging
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose logging.",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Also write the log to this file.",
    )

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> CompendiumConfig:
    """Merge the YAML config (if any) with command-line overrides."""
    config = load_config(args.config) if args.config else CompendiumConfig()

    overrides = {
        name: getattr(args, name)
        for name in _CURATION_FLAGS
        if getattr(args, name) is not None
    }
    if args.tags is not None:
        overrides["catalog_tags"] = tuple(args.tags)
    if overrides:
        config.curation = dataclasses.replace(config.curation, **overrides)

    if args.repository is not None:
        config.repository.root_dir = args.repository
    if args.log_file is not None:
        config.log_file = args.log_file
    if args.verbose:
        config.log_level = "DEBUG"
    return config


def main(argv=None) -> int:
    args = parse_args(argv)
    config = build_config(args)
    setup_logging(level=config.log_level, log_file=config.log_file)

    cfg = config.curation
    logger.info("=" * 60)
    logger.info("Expression Compendium Curation")
    logger.info("=" * 60)
    logger.info(f"Repository:         {config.repository.root_dir}")
    logger.info(f"Catalog tags:       {list(cfg.catalog_tags)}")
    logger.info(f"Quantile cutoff:    {cfg.quantile_cutoff}")
    logger.info(f"Min sample size:    {cfg.min_sample_size}")
    logger.info(f"Min events:         {cfg.min_number_events}")
    logger.info(f"Output directory:   {args.output_dir}")
    logger.info("=" * 60)

    repository = DatasetRepository(config=config.repository)
    curator = CompendiumCurator(config=cfg, repository=repository)
    result = curator.run()

    paths = curator.save(result, args.output_dir)

    curator.print_report()

    print("\nOutput files:")
    for name, path in paths.items():
        size_mb = path.stat().st_size / 1e6
        print(f"  {name}: {path} ({size_mb:.2f} MB)")

    return 0


if __name__ == "__main__":
    sys.exit(main())
