"""
Expression dataset structures for genecompendium.

A :class:`Dataset` bundles an expression matrix (genes x patients), the
matching phenotype table (one row per patient) and free-text metadata.
Datasets are immutable: every operation that changes genes or patients
returns a new instance, so expression and phenotype data can never drift
out of alignment.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, field_validator

from genecompendium.exceptions import InvalidArgumentError


# =============================================================================
# Metadata
# =============================================================================

class DatasetMetadata(BaseModel):
    """
    Free-text annotations for a dataset.

    Attributes:
        title: Catalog title (usually the dataset name)
        warnings: Curator warnings, e.g. "retracted" or "subset of GSE...".
        tags: Catalog tags used for querying
        pmid: Publication identifier, if any

    Extra keys are kept (``extra="allow"``) so arbitrary annotations survive
    a round trip through the repository.

    Example:
        >>> meta = DatasetMetadata(title="GSE9891", warnings=["subset of GSE..."])
        >>> meta.has_warning("subset")
        True
    """

    model_config = ConfigDict(extra="allow")

    title: str = ""
    warnings: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    pmid: Optional[str] = None

    @field_validator("warnings", "tags", mode="before")
    @classmethod
    def coerce_list(cls, v):
        """Accept a single string or ``None`` where a list is expected."""
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return list(v)

    def has_warning(self, marker: str) -> bool:
        """Case-insensitive substring search over the warnings."""
        marker = marker.lower()
        return any(marker in w.lower() for w in self.warnings)


# =============================================================================
# Dataset
# =============================================================================

@dataclass(frozen=True)
class Dataset:
    """
    One curated expression dataset.

    Attributes:
        name: Unique dataset name within a collection
        expression: Genes (index) x patients (columns) numeric matrix
        phenotype: Patients (index) x clinical variables
        metadata: Dataset annotations

    The phenotype index must equal the expression columns, in the same order.

    Example:
        >>> ds = Dataset(
        ...     name="TCGA",
        ...     expression=pd.DataFrame([[1.0, 2.0]], index=["BRCA1"], columns=["p1", "p2"]),
        ...     phenotype=pd.DataFrame({"vital_status": ["deceased", "living"]}, index=["p1", "p2"]),
        ... )
        >>> ds.count_events()
        1
    """

    name: str
    expression: pd.DataFrame
    phenotype: pd.DataFrame
    metadata: DatasetMetadata = field(default_factory=DatasetMetadata)

    def __post_init__(self) -> None:
        if not isinstance(self.expression, pd.DataFrame):
            raise InvalidArgumentError(
                f"Dataset '{self.name}': expression must be a DataFrame, "
                f"got {type(self.expression).__name__}"
            )
        if not isinstance(self.phenotype, pd.DataFrame):
            raise InvalidArgumentError(
                f"Dataset '{self.name}': phenotype must be a DataFrame, "
                f"got {type(self.phenotype).__name__}"
            )
        if not self.expression.columns.equals(self.phenotype.index):
            raise InvalidArgumentError(
                f"Dataset '{self.name}': phenotype rows do not match expression columns "
                f"({len(self.phenotype)} rows vs {self.expression.shape[1]} columns)"
            )
        if not self.expression.columns.is_unique:
            raise InvalidArgumentError(f"Dataset '{self.name}': sample identifiers must be unique")
        if isinstance(self.metadata, dict):
            object.__setattr__(self, "metadata", DatasetMetadata(**self.metadata))

    # =========================================================================
    # Shape and identifiers
    # =========================================================================

    @property
    def n_genes(self) -> int:
        return self.expression.shape[0]

    @property
    def n_samples(self) -> int:
        return self.expression.shape[1]

    @property
    def feature_names(self) -> List[str]:
        return [str(f) for f in self.expression.index]

    @property
    def sample_names(self) -> List[str]:
        return [str(s) for s in self.expression.columns]

    # =========================================================================
    # Queries
    # =========================================================================

    def count_events(self, column: str = "vital_status", value: Any = "deceased") -> int:
        """
        Count patients whose *column* equals *value*.

        A missing column counts as zero events.
        """
        if column not in self.phenotype.columns:
            return 0
        return int((self.phenotype[column] == value).sum())

    @property
    def incomplete_genes(self) -> List[str]:
        """Genes with at least one missing expression value."""
        mask = self.expression.isna().any(axis=1)
        return [str(g) for g in self.expression.index[mask]]

    @property
    def has_missing_values(self) -> bool:
        return bool(self.expression.isna().to_numpy().any())

    # =========================================================================
    # Atomic replacements
    # =========================================================================

    def select_samples(self, sample_ids: Sequence[Any]) -> "Dataset":
        """Keep only *sample_ids* (in the given order) in both tables."""
        sample_ids = list(sample_ids)
        missing = [s for s in sample_ids if s not in self.expression.columns]
        if missing:
            raise InvalidArgumentError(
                f"Dataset '{self.name}': unknown samples {missing[:5]}"
            )
        return replace(
            self,
            expression=self.expression.loc[:, sample_ids],
            phenotype=self.phenotype.loc[sample_ids, :],
        )

    def drop_samples(self, sample_ids: Iterable[Any]) -> "Dataset":
        """Remove *sample_ids* from both tables; unknown ids are ignored."""
        drop = set(sample_ids)
        keep = [s for s in self.expression.columns if s not in drop]
        if len(keep) == self.n_samples:
            return self
        return self.select_samples(keep)

    def select_features(self, feature_ids: Sequence[Any]) -> "Dataset":
        """Keep only *feature_ids* (in the given order)."""
        return replace(self, expression=self.expression.loc[list(feature_ids), :])

    def select_feature_mask(self, mask: Sequence[bool]) -> "Dataset":
        """Keep the genes where *mask* is true."""
        mask = np.asarray(mask, dtype=bool)
        if mask.shape[0] != self.n_genes:
            raise InvalidArgumentError(
                f"Dataset '{self.name}': mask length {mask.shape[0]} != {self.n_genes} genes"
            )
        return replace(self, expression=self.expression.loc[mask, :])

    def with_expression(self, expression: pd.DataFrame) -> "Dataset":
        """Return a copy carrying a new expression matrix with the same samples."""
        return replace(self, expression=expression)

    def with_feature_names(self, names: Sequence[str]) -> "Dataset":
        """Relabel the genes (row identifiers) of the expression matrix."""
        names = list(names)
        if len(names) != self.n_genes:
            raise InvalidArgumentError(
                f"Dataset '{self.name}': got {len(names)} names for {self.n_genes} genes"
            )
        expression = self.expression.copy()
        expression.index = pd.Index(names, name=self.expression.index.name)
        return replace(self, expression=expression)

    # =========================================================================
    # Summary
    # =========================================================================

    def summary(self) -> Dict[str, Any]:
        """Get dataset summary statistics."""
        return {
            "name": self.name,
            "n_genes": self.n_genes,
            "n_samples": self.n_samples,
            "n_events": self.count_events(),
            "n_incomplete_genes": len(self.incomplete_genes),
            "warnings": list(self.metadata.warnings),
        }

    def __repr__(self) -> str:
        return f"Dataset(name='{self.name}', n_genes={self.n_genes}, n_samples={self.n_samples})"


# Ordered name -> Dataset mapping; insertion order is catalog order
DatasetCollection = Dict[str, Dataset]


def qualify_sample_key(dataset_name: str, sample_id: Any, delimiter: str = ":") -> str:
    """
    Build a compendium-wide patient key (``dataset:sample``).

    Sample ids that already carry the dataset prefix are returned as-is.
    """
    sample_id = str(sample_id)
    prefix = f"{dataset_name}{delimiter}"
    if sample_id.startswith(prefix):
        return sample_id
    return f"{prefix}{sample_id}"
