"""
Curation of expression compendia.

This sub-package provides the stages of the curation pipeline:

- **duplicates**: Closure of the duplicate-patient relation and removal.
- **filtering**: Quantile filter on gene dispersion, rescaling.
- **probesets**: Splitting of composite probe-set identifiers.
- **policy**: Dataset inclusion rules.
- **features**: Gene intersection across datasets.
- **missing**: Missing-value report and KNN imputation.
- **pipeline**: The orchestrating curator.

Typical usage::

    from genecompendium.curation import CompendiumCurator
    from genecompendium.utils.config import CurationConfig

    curator = CompendiumCurator(
        CurationConfig(quantile_cutoff=0.1, keep_common_only=True),
        repository=repository,
    )
    result = curator.run()
"""

from genecompendium.curation.duplicates import (
    DuplicateResolver,
    duplicate_exclusion_set,
    resolve_duplicate_groups,
)
from genecompendium.curation.features import (
    intersect_features,
    project_common_features,
    project_features,
)
from genecompendium.curation.filtering import (
    filter_quantile,
    gene_dispersion,
    rescale_expression,
)
from genecompendium.curation.missing import (
    MissingDataGate,
    find_incomplete_datasets,
    impute_knn,
)
from genecompendium.curation.pipeline import (
    CompendiumCurator,
    PipelineResult,
    load_curated_datasets,
)
from genecompendium.curation.policy import (
    InclusionDecision,
    InclusionPolicy,
    InclusionReason,
)
from genecompendium.curation.probesets import expand_probesets, split_identifier

__all__ = [
    # Duplicates
    "DuplicateResolver",
    "resolve_duplicate_groups",
    "duplicate_exclusion_set",
    # Filtering
    "filter_quantile",
    "gene_dispersion",
    "rescale_expression",
    # Probe sets
    "expand_probesets",
    "split_identifier",
    # Policy
    "InclusionPolicy",
    "InclusionDecision",
    "InclusionReason",
    # Features
    "intersect_features",
    "project_features",
    "project_common_features",
    # Missing data
    "MissingDataGate",
    "find_incomplete_datasets",
    "impute_knn",
    # Pipeline
    "CompendiumCurator",
    "PipelineResult",
    "load_curated_datasets",
]
