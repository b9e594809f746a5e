"""
Data structures and storage for genecompendium.
"""

from genecompendium.data.dataset import (
    Dataset,
    DatasetCollection,
    DatasetMetadata,
    qualify_sample_key,
)
from genecompendium.data.repository import (
    CatalogEntry,
    DatasetRepository,
)

__all__ = [
    # Dataset
    "Dataset",
    "DatasetCollection",
    "DatasetMetadata",
    "qualify_sample_key",
    # Repository
    "CatalogEntry",
    "DatasetRepository",
]
