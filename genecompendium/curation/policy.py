"""
Dataset-level inclusion policy.

Each dataset is checked against the curation thresholds in a fixed order;
the first failing rule decides the exclusion reason. Decisions are
ordinary outcomes: they are logged and returned, never raised.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from genecompendium.data.dataset import Dataset
from genecompendium.utils.config import CurationConfig
from genecompendium.utils.logging import logger


class InclusionReason(str, Enum):
    """Why a dataset was kept or dropped."""

    INCLUDED = "included"
    INSUFFICIENT_EVENTS_OR_SAMPLE_SIZE = "insufficientEventsOrSampleSize"
    INSUFFICIENT_GENES = "insufficientGenes"
    RETRACTED = "retracted"
    SUBSET_OF_OTHER = "subsetOfOther"
    FILTER_INVARIANT_VIOLATION = "filterInvariantViolation"


@dataclass(frozen=True)
class InclusionDecision:
    """Keep/drop verdict for one dataset."""

    name: str
    keep: bool
    reason: InclusionReason
    detail: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "keep": self.keep,
            "reason": self.reason.value,
            "detail": self.detail,
        }


class InclusionPolicy:
    """
    Evaluate datasets against sample-size, event, gene-count and warning rules.

    Rules, first failure wins:

    1. ``min_number_events > 0`` and fewer deceased patients than that, or
       fewer patients than ``min_sample_size``.
    2. Fewer genes than ``min_number_genes``.
    3. ``remove_retracted`` and a "retracted" warning.
    4. ``remove_subsets`` and a "subset" warning.

    Example:
        >>> policy = InclusionPolicy(CurationConfig(min_sample_size=10))
        >>> policy.evaluate(dataset).reason
        <InclusionReason.INCLUDED: 'included'>
    """

    def __init__(self, config: Optional[CurationConfig] = None):
        self.config = config or CurationConfig()

    def evaluate(self, dataset: Dataset, name: Optional[str] = None) -> InclusionDecision:
        """
        Decide whether *dataset* is kept, and report the decision.

        Args:
            dataset: Dataset to evaluate (after per-dataset cleaning).
            name: Name to report; defaults to ``dataset.name``.

        Returns:
            The decision.
        """
        decision = self._decide(dataset, name or dataset.name)
        self.report(decision)
        return decision

    def _decide(self, dataset: Dataset, name: str) -> InclusionDecision:
        cfg = self.config

        n_events = dataset.count_events(cfg.event_column, cfg.event_value)
        too_few_events = cfg.min_number_events > 0 and n_events < cfg.min_number_events
        if too_few_events or dataset.n_samples < cfg.min_sample_size:
            return InclusionDecision(
                name=name,
                keep=False,
                reason=InclusionReason.INSUFFICIENT_EVENTS_OR_SAMPLE_SIZE,
                detail=(
                    f"{n_events} events (min {cfg.min_number_events}), "
                    f"{dataset.n_samples} samples (min {cfg.min_sample_size})"
                ),
            )

        if dataset.n_genes < cfg.min_number_genes:
            return InclusionDecision(
                name=name,
                keep=False,
                reason=InclusionReason.INSUFFICIENT_GENES,
                detail=f"{dataset.n_genes} genes (min {cfg.min_number_genes})",
            )

        if cfg.remove_retracted and dataset.metadata.has_warning(cfg.retracted_marker):
            return InclusionDecision(name=name, keep=False, reason=InclusionReason.RETRACTED)

        if cfg.remove_subsets and dataset.metadata.has_warning(cfg.subset_marker):
            return InclusionDecision(name=name, keep=False, reason=InclusionReason.SUBSET_OF_OTHER)

        return InclusionDecision(name=name, keep=True, reason=InclusionReason.INCLUDED)

    @staticmethod
    def report(decision: InclusionDecision) -> None:
        """Log a decision on the curation channel."""
        if decision.keep:
            logger.info(f"including dataset {decision.name}")
        else:
            detail = f": {decision.detail}" if decision.detail else ""
            logger.info(f"excluding dataset {decision.name} ({decision.reason.value}{detail})")

    def __repr__(self) -> str:
        cfg = self.config
        return (
            f"InclusionPolicy(min_sample_size={cfg.min_sample_size}, "
            f"min_number_events={cfg.min_number_events}, "
            f"min_number_genes={cfg.min_number_genes})"
        )
