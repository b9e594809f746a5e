"""
Local dataset repository for genecompendium.

This module provides a Parquet-backed store for expression datasets and
their phenotype tables, with a JSON catalog that records insertion order,
tags and metadata. It stands in for a remote dataset hub: the curation
pipeline only calls :meth:`DatasetRepository.fetch_catalog` and
:meth:`DatasetRepository.load_duplicates`.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import pandas as pd

from genecompendium.data.dataset import Dataset, DatasetCollection, DatasetMetadata
from genecompendium.exceptions import FetchFailure
from genecompendium.utils.config import RepositoryConfig
from genecompendium.utils.io import (
    ensure_dir,
    load_duplicate_relation,
    safe_filename,
    save_duplicate_relation,
)
from genecompendium.utils.logging import logger


# =============================================================================
# Catalog Entry
# =============================================================================

@dataclass
class CatalogEntry:
    """Catalog record for one stored dataset."""

    name: str
    expression_path: str
    phenotype_path: str
    n_genes: int
    n_samples: int
    created_at: float
    tags: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "expression_path": self.expression_path,
            "phenotype_path": self.phenotype_path,
            "n_genes": self.n_genes,
            "n_samples": self.n_samples,
            "created_at": self.created_at,
            "tags": list(self.tags),
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CatalogEntry":
        return cls(**data)

    def matches(self, tags: Iterable[str]) -> bool:
        """True if the entry carries every tag in *tags*."""
        return set(tags).issubset(self.tags)


# =============================================================================
# Repository
# =============================================================================

class DatasetRepository:
    """
    Parquet-based store of expression datasets.

    Layout under ``root_dir``::

        catalog.json            ordered index of datasets
        expression/<name>.parquet
        phenotype/<name>.parquet
        duplicates.json         duplicate-patient relation (optional)

    Attributes:
        root_dir: Root directory of the repository.
        config: Repository configuration.

    Example:
        >>> repo = DatasetRepository("./data/compendium")
        >>> repo.store_dataset(dataset, tags=["ExpressionSet", "ovarian"])
        >>> esets = repo.fetch_catalog({"ExpressionSet"})
    """

    def __init__(
        self,
        root_dir: Optional[Union[str, Path]] = None,
        config: Optional[RepositoryConfig] = None,
    ):
        self.config = config or RepositoryConfig()
        self.root_dir = ensure_dir(Path(root_dir) if root_dir is not None else self.config.root_dir)

        self._expression_dir = ensure_dir(self.root_dir / "expression")
        self._phenotype_dir = ensure_dir(self.root_dir / "phenotype")

        self._catalog_path = self.root_dir / "catalog.json"
        self._catalog: Dict[str, CatalogEntry] = self._load_catalog()

        logger.debug(
            f"DatasetRepository initialised at {self.root_dir} "
            f"({len(self._catalog)} datasets)"
        )

    # =========================================================================
    # Catalog management
    # =========================================================================

    def _load_catalog(self) -> Dict[str, CatalogEntry]:
        if self._catalog_path.exists():
            with open(self._catalog_path) as f:
                raw = json.load(f)
            # JSON objects keep insertion order, which is catalog order
            return {k: CatalogEntry.from_dict(v) for k, v in raw.items()}
        return {}

    def _save_catalog(self) -> None:
        with open(self._catalog_path, "w") as f:
            json.dump(
                {k: v.to_dict() for k, v in self._catalog.items()},
                f,
                indent=2,
            )

    @property
    def duplicates_path(self) -> Path:
        name = self.config.duplicates_file
        if self.config.compress_duplicates and not name.endswith(".gz"):
            name = f"{name}.gz"
        return self.root_dir / name

    # =========================================================================
    # Datasets
    # =========================================================================

    def has_dataset(self, name: str) -> bool:
        """Check whether a dataset is stored."""
        return name in self._catalog

    def list_datasets(self, tags: Optional[Iterable[str]] = None) -> List[str]:
        """Dataset names in catalog order, optionally restricted to *tags*."""
        if tags is None:
            return list(self._catalog)
        tags = list(tags)
        return [name for name, entry in self._catalog.items() if entry.matches(tags)]

    def store_dataset(
        self,
        dataset: Dataset,
        tags: Optional[Iterable[str]] = None,
    ) -> CatalogEntry:
        """
        Store a dataset as two Parquet files and register it in the catalog.

        Re-storing an existing name overwrites the files but keeps its
        catalog position.

        Args:
            dataset: Dataset to store.
            tags: Catalog tags; defaults to ``dataset.metadata.tags``.

        Returns:
            The catalog entry.
        """
        tags = list(tags) if tags is not None else list(dataset.metadata.tags)

        filename = safe_filename(dataset.name, ".parquet")
        expression_path = self._expression_dir / filename
        phenotype_path = self._phenotype_dir / filename

        # Parquet needs string column labels
        expression = dataset.expression.copy()
        expression.columns = [str(c) for c in expression.columns]
        expression.to_parquet(expression_path)
        phenotype = dataset.phenotype.copy()
        phenotype.index = [str(i) for i in phenotype.index]
        phenotype.to_parquet(phenotype_path)

        metadata = dataset.metadata.model_dump()
        metadata["tags"] = tags

        entry = CatalogEntry(
            name=dataset.name,
            expression_path=str(expression_path),
            phenotype_path=str(phenotype_path),
            n_genes=dataset.n_genes,
            n_samples=dataset.n_samples,
            created_at=time.time(),
            tags=tags,
            metadata=metadata,
        )
        self._catalog[dataset.name] = entry
        self._save_catalog()
        logger.debug(
            f"Stored dataset '{dataset.name}' "
            f"({dataset.n_genes} genes x {dataset.n_samples} samples)"
        )
        return entry

    def get_dataset(self, name: str) -> Dataset:
        """
        Load a stored dataset.

        Raises:
            FetchFailure: If the dataset is unknown or its files are unreadable.
        """
        entry = self._catalog.get(name)
        if entry is None:
            raise FetchFailure(f"Dataset '{name}' is not in the repository at {self.root_dir}")

        try:
            expression = pd.read_parquet(entry.expression_path)
            phenotype = pd.read_parquet(entry.phenotype_path)
        except (OSError, ValueError) as exc:
            raise FetchFailure(f"Could not read dataset '{name}': {exc}") from exc

        return Dataset(
            name=name,
            expression=expression,
            phenotype=phenotype,
            metadata=DatasetMetadata(**entry.metadata),
        )

    def remove_dataset(self, name: str) -> bool:
        """Delete a dataset; returns ``False`` if it was not stored."""
        entry = self._catalog.pop(name, None)
        if entry is None:
            return False
        for path in (entry.expression_path, entry.phenotype_path):
            Path(path).unlink(missing_ok=True)
        self._save_catalog()
        logger.debug(f"Removed dataset '{name}'")
        return True

    def query(self, tags: Iterable[str]) -> List[CatalogEntry]:
        """Catalog entries carrying every tag in *tags*, in catalog order."""
        tags = list(tags)
        return [entry for entry in self._catalog.values() if entry.matches(tags)]

    def fetch_catalog(self, tags: Iterable[str] = ()) -> DatasetCollection:
        """
        Load every dataset matching *tags*, keyed by name in catalog order.

        Args:
            tags: Tags that each returned dataset must carry.

        Returns:
            Ordered mapping of dataset name to :class:`Dataset`.

        Raises:
            FetchFailure: If no dataset matches or one cannot be read.
        """
        tags = list(tags)
        entries = self.query(tags)
        if not entries:
            raise FetchFailure(
                f"No datasets tagged {sorted(tags)} in repository at {self.root_dir}"
            )

        datasets: DatasetCollection = {}
        for entry in entries:
            datasets[entry.name] = self.get_dataset(entry.name)

        logger.info(f"Fetched {len(datasets)} datasets tagged {sorted(tags)}")
        return datasets

    # =========================================================================
    # Duplicate relation artefact
    # =========================================================================

    def store_duplicates(self, relation: Mapping[str, Iterable[str]]) -> Path:
        """Persist the duplicate-patient relation next to the catalog."""
        return save_duplicate_relation(
            relation,
            self.duplicates_path,
            compress=self.config.compress_duplicates,
        )

    def load_duplicates(self) -> Dict[str, List[str]]:
        """
        Load the duplicate-patient relation.

        Raises:
            FetchFailure: If no relation has been stored.
        """
        path = self.duplicates_path
        if not path.exists():
            raise FetchFailure(f"No duplicate relation found at {path}")
        return load_duplicate_relation(path)

    # =========================================================================
    # Maintenance
    # =========================================================================

    def get_repository_info(self) -> Dict[str, Any]:
        """Return repository statistics."""
        return {
            "root_dir": str(self.root_dir),
            "n_datasets": len(self._catalog),
            "n_samples": sum(e.n_samples for e in self._catalog.values()),
            "tags": sorted({t for e in self._catalog.values() for t in e.tags}),
            "has_duplicates": self.duplicates_path.exists(),
        }

    def clear(self) -> None:
        """Remove all stored datasets and the duplicate relation."""
        for entry in self._catalog.values():
            for path in (entry.expression_path, entry.phenotype_path):
                Path(path).unlink(missing_ok=True)
        self.duplicates_path.unlink(missing_ok=True)
        self._catalog = {}
        self._save_catalog()
        logger.info(f"Cleared dataset repository at {self.root_dir}")

    def __len__(self) -> int:
        return len(self._catalog)

    def __contains__(self, name: object) -> bool:
        return name in self._catalog

    def __repr__(self) -> str:
        return f"DatasetRepository(root='{self.root_dir}', datasets={len(self)})"
