"""
End-to-end curation of an expression compendium.

This module implements the :class:`CompendiumCurator`, which takes the raw
datasets of a repository through per-dataset cleaning, the inclusion
policy, optional gene intersection and the missing-data gate, and the
:func:`load_curated_datasets` entry point built on it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple, Union

import pandas as pd
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from genecompendium.curation.duplicates import DuplicateRelation, DuplicateResolver
from genecompendium.curation.features import project_common_features
from genecompendium.curation.filtering import filter_quantile, rescale_expression
from genecompendium.curation.missing import Imputer, MissingDataGate
from genecompendium.curation.policy import (
    InclusionDecision,
    InclusionPolicy,
    InclusionReason,
)
from genecompendium.curation.probesets import expand_probesets
from genecompendium.data.dataset import Dataset, DatasetCollection
from genecompendium.data.repository import DatasetRepository
from genecompendium.exceptions import FilterInvariantViolation, InvalidArgumentError
from genecompendium.utils.config import CurationConfig
from genecompendium.utils.io import ensure_dir, safe_filename, save_json
from genecompendium.utils.logging import logger


# =============================================================================
# Result
# =============================================================================

@dataclass(frozen=True)
class PipelineResult:
    """
    Outcome of one curation run.

    Attributes:
        datasets: Retained datasets in catalog order (read-only mapping).
        duplicates: Resolved duplicate groups, ``{representative: members}``.
        decisions: Inclusion decision for every evaluated dataset.
        incomplete: Retained datasets that contained missing values.
        excluded_samples: Patient keys removed as duplicates.
    """

    datasets: Mapping[str, Dataset]
    duplicates: Mapping[str, FrozenSet[str]] = field(default_factory=dict)
    decisions: Tuple[InclusionDecision, ...] = ()
    incomplete: Tuple[str, ...] = ()
    excluded_samples: FrozenSet[str] = frozenset()

    def __post_init__(self) -> None:
        object.__setattr__(self, "datasets", MappingProxyType(dict(self.datasets)))
        object.__setattr__(self, "duplicates", MappingProxyType(dict(self.duplicates)))
        object.__setattr__(self, "decisions", tuple(self.decisions))
        object.__setattr__(self, "incomplete", tuple(self.incomplete))
        object.__setattr__(self, "excluded_samples", frozenset(self.excluded_samples))

    @property
    def names(self) -> List[str]:
        return list(self.datasets)

    def decisions_frame(self) -> pd.DataFrame:
        """Inclusion decisions as a DataFrame, one row per dataset."""
        return pd.DataFrame(
            [d.to_dict() for d in self.decisions],
            columns=["name", "keep", "reason", "detail"],
        )

    def __len__(self) -> int:
        return len(self.datasets)

    def __repr__(self) -> str:
        return (
            f"PipelineResult(datasets={len(self.datasets)}, "
            f"duplicate_groups={len(self.duplicates)}, "
            f"excluded_samples={len(self.excluded_samples)})"
        )


# =============================================================================
# Curator
# =============================================================================

class CompendiumCurator:
    """
    Curate a collection of expression datasets.

    Stages, in order:

    1. Fetch datasets and the duplicate relation.
    2. Per-dataset cleaning: probe-set expansion, quantile filter, rescaling,
       duplicate-patient removal.
    3. Inclusion policy.
    4. Common-gene projection.
    5. Missing-data report and imputation.

    Attributes:
        config: Curation configuration.
        repository: Source of datasets (only needed when none are passed in).
        imputer: Optional replacement for the default KNN imputer.

    Example:
        >>> curator = CompendiumCurator(
        ...     CurationConfig(quantile_cutoff=0.1, min_sample_size=30),
        ...     repository=DatasetRepository("./data/compendium"),
        ... )
        >>> result = curator.run()
        >>> curator.save(result, "data/processed/curated")
    """

    def __init__(
        self,
        config: Optional[CurationConfig] = None,
        repository: Optional[DatasetRepository] = None,
        imputer: Optional[Imputer] = None,
    ):
        if config is not None and not isinstance(config, CurationConfig):
            raise InvalidArgumentError(
                f"config must be a CurationConfig, got {type(config).__name__}"
            )
        self.config = config or CurationConfig()
        self.repository = repository
        self.policy = InclusionPolicy(self.config)
        self.gate = MissingDataGate(
            impute=self.config.impute_missing,
            imputer=imputer,
            n_neighbors=self.config.knn_neighbors,
            row_max=self.config.knn_row_max,
        )
        self.resolver = DuplicateResolver(delimiter=self.config.sample_delimiter)

        self._curation_report: Dict[str, Any] = {}

    # =========================================================================
    # Main pipeline
    # =========================================================================

    def run(
        self,
        datasets: Optional[Mapping[str, Dataset]] = None,
        duplicates: Optional[DuplicateRelation] = None,
    ) -> PipelineResult:
        """
        Run the full curation pipeline.

        Args:
            datasets: Raw datasets; fetched from the repository when omitted.
            duplicates: Duplicate-patient relation; loaded from the repository
                when omitted and duplicate removal is enabled.

        Returns:
            The :class:`PipelineResult`.
        """
        cfg = self.config
        report: Dict[str, Any] = {"config": dict(cfg.__dict__)}

        # ------------------------------------------------------------------
        # Step 1: Fetch
        # ------------------------------------------------------------------
        logger.info("Step 1: Fetching datasets")
        datasets = self._fetch_datasets(datasets)
        if cfg.remove_duplicates and duplicates is None:
            duplicates = self._fetch_duplicates()
        self.resolver.fit(duplicates if cfg.remove_duplicates else None)
        report["n_datasets_raw"] = len(datasets)
        report["n_samples_raw"] = sum(d.n_samples for d in datasets.values())

        # ------------------------------------------------------------------
        # Steps 2-3: Per-dataset cleaning and inclusion policy
        # ------------------------------------------------------------------
        logger.info("Step 2: Cleaning datasets")
        retained: DatasetCollection = {}
        decisions: List[InclusionDecision] = []

        for name, dataset in datasets.items():
            try:
                cleaned = self.clean_dataset(dataset, name=name)
            except FilterInvariantViolation as exc:
                if cfg.on_filter_violation == "raise":
                    raise
                logger.warning(f"Skipping dataset {name}: {exc}")
                decision = InclusionDecision(
                    name=name,
                    keep=False,
                    reason=InclusionReason.FILTER_INVARIANT_VIOLATION,
                    detail=f"observed {exc.observed:.3f}, requested {exc.requested:.3f}",
                )
                self.policy.report(decision)
                decisions.append(decision)
                continue

            decision = self.policy.evaluate(cleaned, name=name)
            decisions.append(decision)
            if decision.keep:
                retained[name] = cleaned

        report["decisions"] = [d.to_dict() for d in decisions]
        report["n_datasets_retained"] = len(retained)
        report["n_samples_retained"] = sum(d.n_samples for d in retained.values())

        # ------------------------------------------------------------------
        # Step 4: Common genes
        # ------------------------------------------------------------------
        if cfg.keep_common_only:
            logger.info("Step 4: Projecting onto genes common to all datasets")
            retained = project_common_features(retained)
        else:
            logger.info("Step 4: Common-gene projection disabled")

        # ------------------------------------------------------------------
        # Step 5: Missing data
        # ------------------------------------------------------------------
        logger.info("Step 5: Missing-data check")
        retained, incomplete = self.gate.apply(retained)
        report["incomplete"] = list(incomplete)
        report["imputed"] = list(incomplete) if cfg.impute_missing else []

        report["n_duplicate_groups"] = len(self.resolver.groups_)
        report["n_duplicates_excluded"] = self.resolver.n_excluded_
        report["n_genes_final"] = {name: d.n_genes for name, d in retained.items()}
        self._curation_report = report

        logger.info(
            f"Curation complete: {len(retained)}/{len(datasets)} datasets retained, "
            f"{report['n_samples_retained']} patients"
        )
        return PipelineResult(
            datasets=retained,
            duplicates=self.resolver.groups_,
            decisions=decisions,
            incomplete=incomplete,
            excluded_samples=self.resolver.excluded_,
        )

    def clean_dataset(self, dataset: Dataset, name: Optional[str] = None) -> Dataset:
        """
        Apply the per-dataset cleaning steps enabled in the configuration.

        Duplicate removal needs :meth:`run` (or ``self.resolver.fit``) first.

        Raises:
            FilterInvariantViolation: If the quantile filter refuses the data.
        """
        cfg = self.config
        name = name or dataset.name
        n_genes, n_samples = dataset.n_genes, dataset.n_samples

        if cfg.expand_probesets:
            dataset = expand_probesets(dataset, sep=cfg.probeset_separator)

        if cfg.applies_quantile_filter:
            dataset = filter_quantile(dataset, cfg.quantile_cutoff, tolerance=cfg.quantile_tolerance)

        if cfg.rescale:
            dataset = rescale_expression(dataset)

        if cfg.remove_duplicates and self.resolver.is_fitted:
            dataset = self.resolver.transform(dataset, name=name)

        logger.debug(
            f"Cleaned '{name}': {n_genes} -> {dataset.n_genes} genes, "
            f"{n_samples} -> {dataset.n_samples} samples"
        )
        return dataset

    # =========================================================================
    # Fetching
    # =========================================================================

    def _fetch_datasets(self, datasets: Optional[Mapping[str, Dataset]]) -> DatasetCollection:
        if datasets is not None:
            for name, dataset in datasets.items():
                if not isinstance(dataset, Dataset):
                    raise InvalidArgumentError(
                        f"'{name}' is not a Dataset ({type(dataset).__name__})"
                    )
            return dict(datasets)

        if self.repository is None:
            raise InvalidArgumentError("Either datasets or a repository must be provided")
        return self.repository.fetch_catalog(self.config.catalog_tags)

    def _fetch_duplicates(self) -> Optional[DuplicateRelation]:
        if self.repository is None:
            logger.warning("No duplicate relation supplied; duplicate removal skipped")
            return None
        return self.repository.load_duplicates()

    # =========================================================================
    # Persistence
    # =========================================================================

    def save(self, result: PipelineResult, output_dir: Union[str, Path]) -> Dict[str, Path]:
        """
        Write the curated datasets and the curation report.

        Creates ``<name>_expression.parquet`` and ``<name>_phenotype.parquet``
        per dataset, ``duplicates.json`` and ``curation_report.json``.

        Returns:
            Dictionary of output file paths.
        """
        output_dir = ensure_dir(output_dir)
        paths: Dict[str, Path] = {}

        for name, dataset in result.datasets.items():
            stem = safe_filename(name)
            expression = dataset.expression.copy()
            expression.columns = [str(c) for c in expression.columns]
            expression_path = output_dir / f"{stem}_expression.parquet"
            expression.to_parquet(expression_path)
            phenotype_path = output_dir / f"{stem}_phenotype.parquet"
            dataset.phenotype.to_parquet(phenotype_path)
            paths[f"{name}/expression"] = expression_path
            paths[f"{name}/phenotype"] = phenotype_path

        paths["duplicates"] = save_json(
            {rep: sorted(members) for rep, members in result.duplicates.items()},
            output_dir / "duplicates.json",
        )

        serialisable_report = {}
        for k, v in self._curation_report.items():
            if isinstance(v, (dict, list, str, int, float, bool, type(None))):
                serialisable_report[k] = v
            else:
                serialisable_report[k] = str(v)
        if "config" in serialisable_report:
            serialisable_report["config"] = {
                k: list(v) if isinstance(v, tuple) else v
                for k, v in serialisable_report["config"].items()
            }
        paths["report"] = save_json(serialisable_report, output_dir / "curation_report.json")

        logger.info(f"Curated compendium saved to {output_dir}")
        return paths

    # =========================================================================
    # Report
    # =========================================================================

    @property
    def curation_report(self) -> Dict[str, Any]:
        """Return the report from the most recent run."""
        return self._curation_report

    def summary(self) -> pd.DataFrame:
        """Inclusion decisions of the most recent run as a DataFrame."""
        return pd.DataFrame(
            self._curation_report.get("decisions", []),
            columns=["name", "keep", "reason", "detail"],
        )

    def print_report(self, console: Optional[Console] = None) -> None:
        """Pretty-print the inclusion decisions and stage counts of the last run."""
        if not self._curation_report:
            logger.info("No curation report available (call run first)")
            return

        console = console or Console()

        decisions = Table(title="Inclusion Decisions")
        decisions.add_column("Dataset", style="cyan")
        decisions.add_column("Kept")
        decisions.add_column("Reason", style="green")
        for decision in self._curation_report.get("decisions", []):
            decisions.add_row(
                escape(str(decision["name"])),
                "yes" if decision["keep"] else "no",
                decision["reason"],
            )
        console.print(decisions)

        counts = Table(title="Curation Report")
        counts.add_column("Metric", style="cyan")
        counts.add_column("Value", style="green")
        for key, value in self._curation_report.items():
            if key in ("config", "decisions"):
                continue
            counts.add_row(str(key), escape(str(value)))
        console.print(counts)

    def __repr__(self) -> str:
        return (
            f"CompendiumCurator(quantile_cutoff={self.config.quantile_cutoff}, "
            f"keep_common_only={self.config.keep_common_only}, "
            f"impute_missing={self.config.impute_missing})"
        )


# =============================================================================
# Entry point
# =============================================================================

def load_curated_datasets(
    config: Optional[CurationConfig] = None,
    *,
    repository: Optional[DatasetRepository] = None,
    datasets: Optional[Mapping[str, Dataset]] = None,
    duplicates: Optional[DuplicateRelation] = None,
    imputer: Optional[Imputer] = None,
) -> PipelineResult:
    """
    Load and curate an expression compendium.

    Args:
        config: Curation thresholds and switches (defaults: remove duplicates,
            no quantile filter, no rescaling, no size thresholds, drop
            retracted datasets and subsets, keep all genes, no imputation).
        repository: Repository to fetch datasets (and duplicates) from.
        datasets: Raw datasets to curate instead of fetching them.
        duplicates: Duplicate-patient relation, ``{"ds:sample": [...]}``.
        imputer: Replacement for the default KNN imputer.

    Returns:
        :class:`PipelineResult` with the retained datasets and duplicate groups.

    Example:
        >>> result = load_curated_datasets(
        ...     CurationConfig(min_number_events=8, min_sample_size=10),
        ...     repository=DatasetRepository("./data/compendium"),
        ... )
        >>> list(result.datasets)
    """
    curator = CompendiumCurator(config=config, repository=repository, imputer=imputer)
    return curator.run(datasets=datasets, duplicates=duplicates)
