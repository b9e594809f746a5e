"""
Resolution of duplicated patients across datasets.

The input relation maps a representative patient key (``dataset:sample``) to
the keys whose expression profiles are near-identical to it (Spearman
correlation >= 0.98, precomputed). Duplicates are transitive, so the
relation is closed into connected components; one patient per component
is kept and every other member is excluded.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Set, Union

from genecompendium.data.dataset import Dataset, qualify_sample_key
from genecompendium.utils.io import normalise_duplicate_relation
from genecompendium.utils.logging import logger

DuplicateRelation = Mapping[str, Union[str, Iterable[str]]]


class _UnionFind:
    """Disjoint-set forest keyed by patient id; roots are the earliest-seen keys."""

    def __init__(self) -> None:
        self._parent: Dict[str, str] = {}
        self._order: Dict[str, int] = {}

    def add(self, key: str) -> None:
        if key not in self._parent:
            self._parent[key] = key
            self._order[key] = len(self._order)

    def find(self, key: str) -> str:
        root = key
        while self._parent[root] != root:
            root = self._parent[root]
        # Path compression
        while self._parent[key] != root:
            self._parent[key], key = root, self._parent[key]
        return root

    def union(self, a: str, b: str) -> None:
        root_a, root_b = self.find(a), self.find(b)
        if root_a == root_b:
            return
        if self._order[root_b] < self._order[root_a]:
            root_a, root_b = root_b, root_a
        self._parent[root_b] = root_a

    def groups(self) -> Dict[str, List[str]]:
        components: Dict[str, List[str]] = {}
        for key in self._order:
            components.setdefault(self.find(key), []).append(key)
        return components


def resolve_duplicate_groups(relation: DuplicateRelation) -> Dict[str, FrozenSet[str]]:
    """
    Close a duplicate relation into groups of equivalent patients.

    Every relation key and every listed related key becomes a node; each
    key is linked to its related keys and the connected components are
    returned. The representative of a group is its earliest key in relation
    order (relation keys are visited in order, each followed by its related
    keys).

    Args:
        relation: Mapping from a patient key to its duplicate keys.

    Returns:
        ``{representative: frozenset(all members, representative included)}``.

    Example:
        >>> resolve_duplicate_groups({"S1:p1": ["S2:p7"], "S2:p7": ["S3:p2"]})
        {'S1:p1': frozenset({'S1:p1', 'S2:p7', 'S3:p2'})}
    """
    relation = normalise_duplicate_relation(relation)

    forest = _UnionFind()
    for key, related in relation.items():
        forest.add(key)
        for member in related:
            forest.add(member)
            forest.union(key, member)

    return {root: frozenset(members) for root, members in forest.groups().items()}


def duplicate_exclusion_set(groups: Mapping[str, Iterable[str]]) -> FrozenSet[str]:
    """Every group member except the group's representative."""
    excluded: Set[str] = set()
    for representative, members in groups.items():
        excluded.update(m for m in members if m != representative)
    return frozenset(excluded)


class DuplicateResolver:
    """
    Resolve a duplicate relation and remove excluded patients from datasets.

    Attributes:
        delimiter: Separator between dataset name and sample id in keys.
        groups_: Resolved groups after :meth:`fit`.
        excluded_: Flat set of patient keys to remove after :meth:`fit`.

    Example:
        >>> resolver = DuplicateResolver().fit({"S1:p1": {"S2:p7"}})
        >>> sorted(resolver.excluded_)
        ['S2:p7']
        >>> cleaned = resolver.transform(dataset)
    """

    def __init__(self, delimiter: str = ":"):
        self.delimiter = delimiter

        self.groups_: Dict[str, FrozenSet[str]] = {}
        self.excluded_: FrozenSet[str] = frozenset()
        self.is_fitted = False

    def fit(self, relation: Optional[DuplicateRelation]) -> "DuplicateResolver":
        """
        Compute duplicate groups and the exclusion set.

        Args:
            relation: Duplicate relation; ``None`` means no duplicates.

        Returns:
            self
        """
        self.groups_ = resolve_duplicate_groups(relation or {})
        self.excluded_ = duplicate_exclusion_set(self.groups_)
        self.is_fitted = True

        n_multi = sum(1 for members in self.groups_.values() if len(members) > 1)
        logger.info(
            f"Resolved {len(self.groups_)} duplicate groups "
            f"({n_multi} with more than one patient); "
            f"{len(self.excluded_)} patients marked for removal"
        )
        return self

    def samples_to_drop(self, dataset_name: str, sample_ids: Iterable[object]) -> List[object]:
        """
        Sample ids of *dataset_name* whose qualified key is excluded.

        Ids may be bare (``p7``) or already qualified (``S2:p7``).
        """
        if not self.is_fitted:
            raise RuntimeError("DuplicateResolver must be fitted before use")

        return [
            s for s in sample_ids
            if qualify_sample_key(dataset_name, s, self.delimiter) in self.excluded_
        ]

    def transform(self, dataset: Dataset, name: Optional[str] = None) -> Dataset:
        """
        Remove excluded patients from *dataset* (expression and phenotype together).

        Args:
            dataset: Dataset to clean.
            name: Collection name used to qualify sample keys; defaults to
                ``dataset.name``.

        Returns:
            The cleaned dataset, or the input itself when nothing matches.
        """
        name = name or dataset.name
        drop = self.samples_to_drop(name, dataset.expression.columns)
        if not drop:
            return dataset

        logger.debug(f"Removing {len(drop)} duplicate patients from '{name}'")
        return dataset.drop_samples(drop)

    @property
    def n_excluded_(self) -> int:
        return len(self.excluded_)

    def __repr__(self) -> str:
        return f"DuplicateResolver(groups={len(self.groups_)}, excluded={self.n_excluded_})"
