"""
Cross-dataset gene intersection.

When only genes measured in every dataset should be kept, the feature sets
are intersected and each dataset is projected onto the same ordered gene
list, so rows line up across the whole collection.
"""

from __future__ import annotations

from typing import List, Mapping

from genecompendium.data.dataset import Dataset, DatasetCollection
from genecompendium.utils.logging import logger


def intersect_features(datasets: Mapping[str, Dataset]) -> List[str]:
    """
    Genes present in every dataset.

    The intersection is folded iteratively over the collection; the result
    follows the gene order of the first dataset.

    Args:
        datasets: Ordered collection of datasets.

    Returns:
        Common gene identifiers (empty for an empty collection).
    """
    collection = list(datasets.values())
    if not collection:
        return []

    common = set(collection[0].expression.index)
    for dataset in collection[1:]:
        common &= set(dataset.expression.index)

    ordered: List[str] = []
    for gene in collection[0].expression.index:
        if gene in common:
            ordered.append(gene)
            common.discard(gene)
    return ordered


def project_features(dataset: Dataset, features: List[str]) -> Dataset:
    """
    Restrict *dataset* to *features*, in exactly that order.

    Repeated gene identifiers are collapsed to their first row.
    """
    expression = dataset.expression
    if not expression.index.is_unique:
        n_repeated = int(expression.index.duplicated().sum())
        logger.warning(
            f"'{dataset.name}' has {n_repeated} repeated gene identifiers; "
            f"keeping the first row of each"
        )
        expression = expression[~expression.index.duplicated(keep="first")]
    return dataset.with_expression(expression.loc[features])


def project_common_features(datasets: Mapping[str, Dataset]) -> DatasetCollection:
    """
    Project every dataset onto the genes common to all of them.

    Returns:
        New collection in the same order, all sharing one gene index.
    """
    features = intersect_features(datasets)
    logger.info(f"Keeping {len(features)} genes common to {len(datasets)} datasets")
    return {name: project_features(dataset, features) for name, dataset in datasets.items()}
