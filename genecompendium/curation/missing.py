"""
Detection and optional imputation of missing expression values.

After filtering, datasets with any missing expression value are reported
as incomplete. When imputation is enabled, each incomplete expression
matrix is replaced by a k-nearest-neighbour imputed copy of identical
shape.
"""

from __future__ import annotations

from typing import Callable, List, Mapping, Optional, Tuple

import numpy as np
import pandas as pd
from sklearn.impute import KNNImputer

from genecompendium.data.dataset import Dataset, DatasetCollection
from genecompendium.exceptions import ImputationFailure
from genecompendium.utils.logging import logger

Imputer = Callable[[pd.DataFrame], pd.DataFrame]


# =============================================================================
# KNN imputation
# =============================================================================

def impute_knn(
    matrix: pd.DataFrame,
    n_neighbors: int = 10,
    row_max: float = 0.5,
    col_max: float = 0.8,
) -> pd.DataFrame:
    """
    Impute missing values from the nearest genes.

    Neighbours are genes (rows), compared over the patients both have
    observed. Genes missing more than *row_max* of their values are filled
    with the patient (column) means instead.

    Args:
        matrix: Genes x patients expression matrix.
        n_neighbors: Number of neighbouring genes averaged per value.
        row_max: Largest missing fraction per gene for neighbour imputation.
        col_max: Largest missing fraction tolerated for any patient.

    Returns:
        Matrix of the same shape and labels without missing values.

    Raises:
        ImputationFailure: If a patient exceeds *col_max* missing values.
    """
    values = matrix.to_numpy(dtype=float, copy=True)
    missing = np.isnan(values)
    if not missing.any():
        return matrix.copy()

    col_missing = missing.mean(axis=0)
    if (col_missing > col_max).any():
        worst = matrix.columns[int(np.argmax(col_missing))]
        raise ImputationFailure(
            f"Patient '{worst}' has {col_missing.max():.0%} missing values "
            f"(limit {col_max:.0%})"
        )

    sparse_rows = missing.mean(axis=1) > row_max
    if sparse_rows.any():
        col_means = np.nanmean(values, axis=0)
        fill = np.where(missing[sparse_rows], col_means, values[sparse_rows])
        values[sparse_rows] = fill
        logger.debug(f"Filled {int(sparse_rows.sum())} sparse genes with patient means")

    imputer = KNNImputer(n_neighbors=n_neighbors)
    imputed = imputer.fit_transform(values)

    return pd.DataFrame(imputed, index=matrix.index, columns=matrix.columns)


# =============================================================================
# Missing-data gate
# =============================================================================

def find_incomplete_datasets(datasets: Mapping[str, Dataset]) -> List[str]:
    """Names of datasets with at least one gene holding a missing value."""
    return [name for name, dataset in datasets.items() if dataset.has_missing_values]


class MissingDataGate:
    """
    Report incomplete datasets and optionally impute them.

    Attributes:
        impute: Whether incomplete datasets are imputed.
        imputer: Callable mapping a matrix to an imputed matrix of equal shape.

    Example:
        >>> gate = MissingDataGate(impute=True)
        >>> datasets, incomplete = gate.apply(datasets)
    """

    def __init__(
        self,
        impute: bool = False,
        imputer: Optional[Imputer] = None,
        n_neighbors: int = 10,
        row_max: float = 0.5,
    ):
        self.impute = impute
        self.imputer = imputer or (
            lambda matrix: impute_knn(matrix, n_neighbors=n_neighbors, row_max=row_max)
        )

    def apply(self, datasets: Mapping[str, Dataset]) -> Tuple[DatasetCollection, List[str]]:
        """
        Scan *datasets* and impute the incomplete ones if enabled.

        Returns:
            Tuple of (collection in the original order, incomplete dataset names).

        Raises:
            ImputationFailure: If the imputer fails or returns a matrix of the
                wrong shape or still containing missing values.
        """
        incomplete = find_incomplete_datasets(datasets)
        logger.info(f"Datasets with missing data: {', '.join(incomplete) or 'none'}")

        result: DatasetCollection = dict(datasets)
        if not self.impute:
            return result, incomplete

        for name in incomplete:
            result[name] = self._impute_dataset(result[name])
        return result, incomplete

    def _impute_dataset(self, dataset: Dataset) -> Dataset:
        before = dataset.expression
        n_missing = int(before.isna().to_numpy().sum())
        try:
            after = self.imputer(before)
        except ImputationFailure:
            raise
        except Exception as exc:
            raise ImputationFailure(f"Imputation failed for '{dataset.name}': {exc}") from exc

        if not isinstance(after, pd.DataFrame):
            after = pd.DataFrame(np.asarray(after), index=before.index, columns=before.columns)
        if after.shape != before.shape:
            raise ImputationFailure(
                f"Imputation changed the shape of '{dataset.name}': "
                f"{before.shape} -> {after.shape}"
            )
        if after.isna().to_numpy().any():
            raise ImputationFailure(f"Imputation left missing values in '{dataset.name}'")

        after = after.set_axis(before.index, axis=0).set_axis(before.columns, axis=1)
        logger.info(f"Imputed {n_missing} missing values in '{dataset.name}'")
        return dataset.with_expression(after)
