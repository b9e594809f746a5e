"""
Gene-level filtering and scaling of expression datasets.

The quantile filter removes genes whose standard deviation across patients
falls below a requested quantile. It verifies its own effect before
applying it: if the fraction of genes below the threshold differs from the
requested quantile by more than a small tolerance, the data is assumed to
have been filtered (or rescaled) already and the filter refuses to run. The
same check is applied to the fraction it would actually remove, since genes
tied on the threshold are dropped with it.
"""

from __future__ import annotations

import numbers
import warnings

import numpy as np
import pandas as pd

from genecompendium.data.dataset import Dataset
from genecompendium.exceptions import FilterInvariantViolation, InvalidArgumentError
from genecompendium.utils.logging import logger

DEFAULT_TOLERANCE = 0.01


def gene_dispersion(dataset: Dataset) -> pd.Series:
    """
    Per-gene sample standard deviation (ddof=1) across patients, ignoring NaN.

    Genes with fewer than two observed values get NaN.
    """
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", category=RuntimeWarning)
        return dataset.expression.std(axis=1, skipna=True, ddof=1)


def filter_quantile(
    dataset: Dataset,
    q: float,
    tolerance: float = DEFAULT_TOLERANCE,
) -> Dataset:
    """
    Drop genes whose dispersion is at or below the *q*-th quantile.

    Args:
        dataset: Dataset to filter.
        q: Quantile in ``[0, 1)``.
        tolerance: Largest accepted gap between *q* and both the fraction of
            genes strictly below the quantile threshold and the fraction the
            filter actually removes.

    Returns:
        New dataset keeping genes with dispersion strictly above the threshold.

    Raises:
        InvalidArgumentError: If *q* is out of range or *dataset* is not a Dataset.
        FilterInvariantViolation: If the filter would not remove about *q* of
            the genes (e.g. the data is already filtered or heavily tied).

    Example:
        >>> filtered = filter_quantile(dataset, q=0.25)
        >>> filtered.n_genes / dataset.n_genes  # about 0.75
    """
    if isinstance(q, bool) or not isinstance(q, numbers.Real) or not 0 <= q < 1:
        raise InvalidArgumentError(f"require 0 <= q < 1, got {q!r}")
    if not isinstance(dataset, Dataset):
        raise InvalidArgumentError(
            f"filter_quantile expects a Dataset, got {type(dataset).__name__}"
        )

    dispersion = gene_dispersion(dataset).to_numpy(dtype=float)
    finite = dispersion[np.isfinite(dispersion)]
    if finite.size == 0:
        raise FilterInvariantViolation(
            requested=float(q), observed=0.0, dataset_name=dataset.name, tolerance=tolerance
        )

    # Linear interpolation, same as R's default quantile type 7
    threshold = float(np.quantile(finite, q))
    # NaN dispersions compare false: never counted below, never kept
    below = dispersion < threshold
    observed = below.sum() / dispersion.size

    if abs(q - observed) > tolerance:
        logger.warning(
            f"Quantile filter refused on '{dataset.name}': requested {q:.3f}, "
            f"observed {observed:.3f}"
        )
        raise FilterInvariantViolation(
            requested=float(q),
            observed=float(observed),
            dataset_name=dataset.name,
            tolerance=tolerance,
        )

    keep = dispersion > threshold
    # Ties at the threshold are dropped too; the removed fraction must also match q
    removed = 1.0 - keep.sum() / dispersion.size
    if abs(q - removed) > tolerance:
        logger.warning(
            f"Quantile filter refused on '{dataset.name}': requested {q:.3f}, "
            f"would remove {removed:.3f}"
        )
        raise FilterInvariantViolation(
            requested=float(q),
            observed=float(removed),
            dataset_name=dataset.name,
            tolerance=tolerance,
        )

    filtered = dataset.select_feature_mask(keep)

    logger.debug(
        f"Quantile filter on '{dataset.name}': q={q}, threshold={threshold:.4g}, "
        f"{dataset.n_genes} -> {filtered.n_genes} genes"
    )
    return filtered


def rescale_expression(dataset: Dataset) -> Dataset:
    """
    Z-score every gene across patients.

    Each row is centred on its mean and divided by its sample standard
    deviation; missing values are ignored in both. Genes with zero
    variance become NaN.
    """
    expression = dataset.expression
    centred = expression.sub(expression.mean(axis=1, skipna=True), axis=0)
    scale = expression.std(axis=1, skipna=True, ddof=1).replace(0, np.nan)
    scaled = centred.div(scale, axis=0)

    logger.debug(f"Rescaled '{dataset.name}' ({dataset.n_genes} genes)")
    return dataset.with_expression(scaled)
