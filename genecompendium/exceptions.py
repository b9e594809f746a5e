"""
Exception hierarchy for genecompendium.

Dataset inclusion/exclusion is ordinary control flow and is reported, not
raised. The exceptions below cover malformed input, a broken filtering
contract, and failures of the external collaborators (repository and
imputation).
"""

from __future__ import annotations

from typing import Optional


class CompendiumError(Exception):
    """Base class for all genecompendium errors."""


class InvalidArgumentError(CompendiumError, ValueError):
    """Malformed configuration or input object."""


class FilterInvariantViolation(CompendiumError, RuntimeError):
    """
    The quantile filter would remove a different fraction of genes than requested.

    Usually means the data was already filtered (or rescaled) upstream, or
    the dispersion distribution is dominated by ties.

    Attributes:
        dataset_name: Name of the offending dataset (if known).
        requested: Requested quantile.
        observed: Offending fraction: genes strictly below the threshold, or
            genes the filter would remove when ties sit on the threshold.
    """

    def __init__(
        self,
        requested: float,
        observed: float,
        dataset_name: Optional[str] = None,
        tolerance: float = 0.01,
    ):
        self.dataset_name = dataset_name
        self.requested = requested
        self.observed = observed
        self.tolerance = tolerance
        where = f" in dataset '{dataset_name}'" if dataset_name else ""
        super().__init__(
            f"Quantile filter{where} would remove {observed:.4f} of genes "
            f"instead of the requested {requested:.4f} (tolerance {tolerance}); "
            f"data is likely already filtered or rescaled"
        )


class FetchFailure(CompendiumError, RuntimeError):
    """The dataset repository could not supply the requested data."""


class ImputationFailure(CompendiumError, RuntimeError):
    """Missing-value imputation failed or broke its output contract."""


__all__ = [
    "CompendiumError",
    "InvalidArgumentError",
    "FilterInvariantViolation",
    "FetchFailure",
    "ImputationFailure",
]
