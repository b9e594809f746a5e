"""
Disambiguation of composite probe-set identifiers.

Array platforms often annotate one probe set with several gene symbols,
e.g. ``"GENE1///GENE2"``. :func:`expand_probesets` splits such rows into
one row per symbol and keeps, for every symbol, the row that came from the
smallest composite group (a probe specific to one gene beats one shared by
several).
"""

from __future__ import annotations

from typing import List, Tuple

import numpy as np

from genecompendium.data.dataset import Dataset
from genecompendium.exceptions import InvalidArgumentError
from genecompendium.utils.logging import logger

DEFAULT_SEPARATOR = "///"


def split_identifier(identifier: object, sep: str = DEFAULT_SEPARATOR) -> List[str]:
    """Split a probe-set identifier into its gene symbols (blank tokens dropped)."""
    return [token.strip() for token in str(identifier).split(sep) if token.strip()]


def expand_probesets(dataset: Dataset, sep: str = DEFAULT_SEPARATOR) -> Dataset:
    """
    Give every expression row exactly one gene symbol.

    Rows are stably ordered by how many symbols their identifier carries,
    flattened to one (row, symbol) pair per symbol, and de-duplicated by
    symbol keeping the first pair. The result contains one row per distinct
    symbol, labelled with that symbol.

    Args:
        dataset: Dataset whose gene identifiers may be composite.
        sep: Separator between symbols.

    Returns:
        New dataset with single-symbol identifiers; phenotype is unchanged.

    Example:
        >>> ds.feature_names
        ['G1///G2', 'G2', 'G3']
        >>> expand_probesets(ds).feature_names
        ['G2', 'G3', 'G1']
    """
    if not isinstance(dataset, Dataset):
        raise InvalidArgumentError(
            f"expand_probesets expects a Dataset, got {type(dataset).__name__}"
        )
    if not sep:
        raise InvalidArgumentError("Probe-set separator must be a non-empty string")

    symbols = [split_identifier(identifier, sep) for identifier in dataset.expression.index]
    order = np.argsort([len(s) for s in symbols], kind="stable")

    pairs: List[Tuple[int, str]] = []
    seen = set()
    for row in order:
        for symbol in symbols[row]:
            if symbol not in seen:
                seen.add(symbol)
                pairs.append((int(row), symbol))

    rows = [row for row, _ in pairs]
    expression = dataset.expression.iloc[rows].copy()
    expression.index = [symbol for _, symbol in pairs]
    expression.index.name = dataset.expression.index.name

    n_composite = sum(1 for s in symbols if len(s) > 1)
    logger.debug(
        f"Expanded probe sets in '{dataset.name}': {dataset.n_genes} rows "
        f"({n_composite} composite) -> {len(pairs)} genes"
    )
    return dataset.with_expression(expression)
