"""
Unit tests for duplicate patient resolution.
"""

import numpy as np
import pandas as pd
import pytest

from genecompendium.curation.duplicates import (
    DuplicateResolver,
    duplicate_exclusion_set,
    resolve_duplicate_groups,
)
from genecompendium.data.dataset import Dataset
from genecompendium.exceptions import InvalidArgumentError


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def relation():
    """Duplicate relation with one chain spanning three datasets."""
    return {
        "S1:p1": ["S2:p7"],
        "S2:p7": ["S3:p2"],
        "S4:p5": ["S4:p5"],
    }


def make_dataset(name, samples):
    expression = pd.DataFrame(
        np.arange(3 * len(samples), dtype=float).reshape(3, len(samples)),
        index=["G1", "G2", "G3"],
        columns=samples,
    )
    phenotype = pd.DataFrame({"vital_status": ["living"] * len(samples)}, index=samples)
    return Dataset(name=name, expression=expression, phenotype=phenotype)


# =============================================================================
# Group Resolution Tests
# =============================================================================

class TestResolveDuplicateGroups:
    """Tests for closing the relation into groups."""

    def test_single_pair(self):
        groups = resolve_duplicate_groups({"S1:p1": {"S2:p7"}})
        assert groups == {"S1:p1": frozenset({"S1:p1", "S2:p7"})}
        assert duplicate_exclusion_set(groups) == frozenset({"S2:p7"})

    def test_transitive_chain_single_group(self, relation):
        groups = resolve_duplicate_groups(relation)
        assert groups["S1:p1"] == frozenset({"S1:p1", "S2:p7", "S3:p2"})
        assert "S2:p7" not in groups

    def test_exclusion_set(self, relation):
        groups = resolve_duplicate_groups(relation)
        excluded = duplicate_exclusion_set(groups)
        assert excluded == frozenset({"S2:p7", "S3:p2"})

    def test_self_only_key_not_excluded(self, relation):
        groups = resolve_duplicate_groups(relation)
        assert groups["S4:p5"] == frozenset({"S4:p5"})
        assert "S4:p5" not in duplicate_exclusion_set(groups)

    def test_groups_partition_keys(self, relation):
        groups = resolve_duplicate_groups(relation)
        members = [m for group in groups.values() for m in group]
        assert len(members) == len(set(members))
        assert set(members) == {"S1:p1", "S2:p7", "S3:p2", "S4:p5"}

    def test_groups_joined_through_later_key(self):
        relation = {"A:1": ["B:1"], "C:1": ["D:1"], "D:1": ["B:1"]}
        groups = resolve_duplicate_groups(relation)
        assert list(groups) == ["A:1"]
        assert groups["A:1"] == frozenset({"A:1", "B:1", "C:1", "D:1"})

    def test_one_kept_per_group(self):
        relation = {"A:1": ["B:1", "C:1"], "D:1": ["E:1"]}
        groups = resolve_duplicate_groups(relation)
        excluded = duplicate_exclusion_set(groups)
        for members in groups.values():
            assert len(members - excluded) == 1

    def test_single_string_value(self):
        groups = resolve_duplicate_groups({"A:1": "B:1"})
        assert groups == {"A:1": frozenset({"A:1", "B:1"})}

    def test_empty_relation(self):
        assert resolve_duplicate_groups({}) == {}

    def test_invalid_relation_rejected(self):
        with pytest.raises(InvalidArgumentError):
            resolve_duplicate_groups(["A:1", "B:1"])


# =============================================================================
# DuplicateResolver Tests
# =============================================================================

class TestDuplicateResolver:
    """Tests for removing duplicates from datasets."""

    def test_fit(self, relation):
        resolver = DuplicateResolver().fit(relation)
        assert resolver.is_fitted
        assert resolver.n_excluded_ == 2

    def test_fit_none(self):
        resolver = DuplicateResolver().fit(None)
        assert resolver.is_fitted
        assert resolver.excluded_ == frozenset()

    def test_unfitted_raises(self):
        with pytest.raises(RuntimeError):
            DuplicateResolver().samples_to_drop("S1", ["p1"])

    def test_transform_bare_ids(self, relation):
        resolver = DuplicateResolver().fit(relation)
        ds = make_dataset("S2", ["p6", "p7", "p8"])
        cleaned = resolver.transform(ds)
        assert cleaned.sample_names == ["p6", "p8"]
        assert list(cleaned.phenotype.index) == ["p6", "p8"]

    def test_transform_qualified_ids(self, relation):
        resolver = DuplicateResolver().fit(relation)
        ds = make_dataset("S3", ["S3:p1", "S3:p2"])
        assert resolver.transform(ds).sample_names == ["S3:p1"]

    def test_representative_kept(self, relation):
        resolver = DuplicateResolver().fit(relation)
        ds = make_dataset("S1", ["p1", "p2"])
        assert resolver.transform(ds) is ds

    def test_other_dataset_key_not_matched(self, relation):
        resolver = DuplicateResolver().fit(relation)
        # "p7" is only excluded in S2
        ds = make_dataset("S5", ["p7"])
        assert resolver.transform(ds).sample_names == ["p7"]

    def test_transform_with_collection_name(self, relation):
        resolver = DuplicateResolver().fit(relation)
        ds = make_dataset("raw_S2", ["p6", "p7"])
        assert resolver.transform(ds).sample_names == ["p6", "p7"]
        assert resolver.transform(ds, name="S2").sample_names == ["p6"]

    def test_custom_delimiter(self):
        resolver = DuplicateResolver(delimiter="|").fit({"A|1": ["B|1"]})
        assert resolver.samples_to_drop("B", ["1", "2"]) == ["1"]

    def test_repr(self, relation):
        resolver = DuplicateResolver().fit(relation)
        assert "excluded=2" in repr(resolver)
