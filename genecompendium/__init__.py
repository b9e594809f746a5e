"""
genecompendium: curation of gene-expression dataset compendia.

This package provides tools for:
- Storing expression datasets with their phenotype tables and metadata
- Removing patients duplicated across datasets
- Filtering low-dispersion genes with a self-checking quantile filter
- Splitting composite probe-set identifiers into single genes
- Applying dataset inclusion policies (cohort size, events, retractions)
- Harmonising genes across datasets and imputing missing values
"""

__version__ = "0.1.0"

from genecompendium.curation.pipeline import (
    CompendiumCurator,
    PipelineResult,
    load_curated_datasets,
)
from genecompendium.data.dataset import Dataset, DatasetCollection, DatasetMetadata
from genecompendium.data.repository import DatasetRepository
from genecompendium.exceptions import (
    CompendiumError,
    FetchFailure,
    FilterInvariantViolation,
    ImputationFailure,
    InvalidArgumentError,
)
from genecompendium.utils.config import CompendiumConfig, CurationConfig, load_config
from genecompendium.utils.logging import logger, setup_logging

__all__ = [
    # Data
    "Dataset",
    "DatasetCollection",
    "DatasetMetadata",
    "DatasetRepository",
    # Pipeline
    "CompendiumCurator",
    "PipelineResult",
    "load_curated_datasets",
    # Errors
    "CompendiumError",
    "InvalidArgumentError",
    "FilterInvariantViolation",
    "FetchFailure",
    "ImputationFailure",
    # Config
    "CompendiumConfig",
    "CurationConfig",
    "load_config",
    # Logging
    "logger",
    "setup_logging",
    # Version
    "__version__",
]
