"""
Unit tests for the local dataset repository.
"""

import numpy as np
import pandas as pd
import pytest

from genecompendium.data.dataset import Dataset, DatasetMetadata
from genecompendium.data.repository import CatalogEntry, DatasetRepository
from genecompendium.exceptions import FetchFailure
from genecompendium.utils.config import RepositoryConfig


# =============================================================================
# Fixtures
# =============================================================================

def make_dataset(name, n_genes=6, n_samples=4, seed=0, warnings=None):
    rng = np.random.default_rng(seed)
    samples = [f"{name}_p{i}" for i in range(n_samples)]
    expression = pd.DataFrame(
        rng.normal(size=(n_genes, n_samples)),
        index=[f"G{i}" for i in range(n_genes)],
        columns=samples,
    )
    phenotype = pd.DataFrame(
        {
            "vital_status": ["deceased", "living"] * (n_samples // 2),
            "days_to_death": list(range(n_samples)),
        },
        index=samples,
    )
    return Dataset(
        name=name,
        expression=expression,
        phenotype=phenotype,
        metadata=DatasetMetadata(title=f"Study {name}", warnings=warnings or []),
    )


@pytest.fixture
def repository(tmp_path):
    return DatasetRepository(tmp_path / "compendium")


@pytest.fixture
def populated(repository):
    repository.store_dataset(make_dataset("GSE1", seed=1), tags=["ExpressionSet", "ovarian"])
    repository.store_dataset(make_dataset("GSE2", seed=2), tags=["ExpressionSet"])
    repository.store_dataset(make_dataset("TCGA", seed=3), tags=["RNASeq"])
    return repository


# =============================================================================
# Catalog Tests
# =============================================================================

class TestCatalogEntry:

    def test_round_trip(self):
        entry = CatalogEntry(
            name="GSE1",
            expression_path="e.parquet",
            phenotype_path="p.parquet",
            n_genes=10,
            n_samples=4,
            created_at=0.0,
            tags=["ExpressionSet"],
        )
        assert CatalogEntry.from_dict(entry.to_dict()) == entry

    def test_matches(self):
        entry = CatalogEntry("x", "e", "p", 1, 1, 0.0, tags=["a", "b"])
        assert entry.matches(["a"])
        assert entry.matches([])
        assert not entry.matches(["a", "c"])


# =============================================================================
# Repository Tests
# =============================================================================

class TestDatasetRepository:
    """Tests for storing and fetching datasets."""

    def test_layout(self, repository):
        assert (repository.root_dir / "expression").is_dir()
        assert (repository.root_dir / "phenotype").is_dir()
        assert len(repository) == 0

    def test_store_and_get(self, repository):
        original = make_dataset("GSE1", seed=1, warnings=["subset of GSE9"])
        repository.store_dataset(original, tags=["ExpressionSet"])

        loaded = repository.get_dataset("GSE1")
        assert loaded.feature_names == original.feature_names
        assert loaded.sample_names == original.sample_names
        np.testing.assert_allclose(loaded.expression.to_numpy(), original.expression.to_numpy())
        assert list(loaded.phenotype["vital_status"]) == list(original.phenotype["vital_status"])
        assert loaded.metadata.title == "Study GSE1"
        assert loaded.metadata.has_warning("subset")
        assert loaded.metadata.tags == ["ExpressionSet"]

    def test_similar_names_stored_separately(self, repository):
        repository.store_dataset(make_dataset("GSE1/GPL570", n_genes=3, seed=1))
        repository.store_dataset(make_dataset("GSE1_GPL570", n_genes=5, seed=2))

        assert repository.get_dataset("GSE1/GPL570").n_genes == 3
        assert repository.get_dataset("GSE1_GPL570").n_genes == 5

    def test_unknown_dataset(self, repository):
        with pytest.raises(FetchFailure):
            repository.get_dataset("missing")

    def test_list_and_query(self, populated):
        assert populated.list_datasets() == ["GSE1", "GSE2", "TCGA"]
        assert populated.list_datasets(["ExpressionSet"]) == ["GSE1", "GSE2"]
        assert [e.name for e in populated.query(["ovarian"])] == ["GSE1"]
        assert "TCGA" in populated
        assert populated.has_dataset("GSE2")

    def test_fetch_catalog_order(self, populated):
        datasets = populated.fetch_catalog(["ExpressionSet"])
        assert list(datasets) == ["GSE1", "GSE2"]
        assert all(isinstance(ds, Dataset) for ds in datasets.values())

    def test_fetch_catalog_no_match(self, populated):
        with pytest.raises(FetchFailure):
            populated.fetch_catalog(["Microarray"])

    def test_catalog_persisted(self, populated):
        reopened = DatasetRepository(populated.root_dir)
        assert reopened.list_datasets() == ["GSE1", "GSE2", "TCGA"]
        assert reopened.get_dataset("GSE2").n_genes == 6

    def test_restore_keeps_position(self, populated):
        populated.store_dataset(make_dataset("GSE1", n_genes=3), tags=["ExpressionSet"])
        assert populated.list_datasets() == ["GSE1", "GSE2", "TCGA"]
        assert populated.get_dataset("GSE1").n_genes == 3

    def test_remove_dataset(self, populated):
        assert populated.remove_dataset("GSE2")
        assert not populated.remove_dataset("GSE2")
        assert populated.list_datasets() == ["GSE1", "TCGA"]

    def test_duplicates_round_trip(self, repository):
        relation = {"GSE1:p1": ["GSE2:p7"], "GSE2:p7": "GSE3:p2"}
        path = repository.store_duplicates(relation)
        assert path.exists()
        assert repository.load_duplicates() == {
            "GSE1:p1": ["GSE2:p7"],
            "GSE2:p7": ["GSE3:p2"],
        }

    def test_compressed_duplicates(self, tmp_path):
        config = RepositoryConfig(root_dir=str(tmp_path / "repo"), compress_duplicates=True)
        repository = DatasetRepository(config=config)
        repository.store_duplicates({"A:1": ["B:1"]})
        assert repository.duplicates_path.name == "duplicates.json.gz"
        assert repository.load_duplicates() == {"A:1": ["B:1"]}

    def test_missing_duplicates(self, repository):
        with pytest.raises(FetchFailure):
            repository.load_duplicates()

    def test_repository_info(self, populated):
        info = populated.get_repository_info()
        assert info["n_datasets"] == 3
        assert info["n_samples"] == 12
        assert info["tags"] == ["ExpressionSet", "RNASeq", "ovarian"]
        assert not info["has_duplicates"]

    def test_clear(self, populated):
        populated.store_duplicates({"A:1": ["B:1"]})
        populated.clear()
        assert len(populated) == 0
        assert not populated.duplicates_path.exists()
        assert not any((populated.root_dir / "expression").iterdir())
