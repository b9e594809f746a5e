"""
Configuration management for genecompendium.

This module provides the curation settings (thresholds and switches read by
every pipeline stage), repository settings, and a master configuration that
can be loaded from and saved to YAML for reproducible runs.
"""

from __future__ import annotations

import numbers
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Optional, Tuple

import yaml
from omegaconf import OmegaConf

from genecompendium.exceptions import InvalidArgumentError

VIOLATION_POLICIES = ("raise", "skip")

# =========================
# Configuration Dataclasses
# =========================

@dataclass(frozen=True)
class CurationConfig:
    """
    Thresholds and switches for one curation run.

    Built once when the run starts and never modified afterwards; the
    instance can be shared freely between pipeline stages.

    Example:
        >>> config = CurationConfig(quantile_cutoff=0.1, min_sample_size=30)
        >>> config.keep_common_only
        False
    """

    # Patient de-duplication
    remove_duplicates: bool = True
    sample_delimiter: str = ":"

    # Gene filtering
    quantile_cutoff: float = 0.0
    quantile_tolerance: float = 0.01
    on_filter_violation: str = "raise"  # Options: raise, skip
    rescale: bool = False

    # Probe-set disambiguation
    expand_probesets: bool = False
    probeset_separator: str = "///"

    # Inclusion policy
    min_number_genes: int = 0
    min_number_events: int = 0
    min_sample_size: int = 0
    event_column: str = "vital_status"
    event_value: str = "deceased"
    remove_retracted: bool = True
    remove_subsets: bool = True
    retracted_marker: str = "retracted"
    subset_marker: str = "subset"

    # Harmonisation
    keep_common_only: bool = False

    # Missing values
    impute_missing: bool = False
    knn_neighbors: int = 10
    knn_row_max: float = 0.5

    # Catalog query
    catalog_tags: Tuple[str, ...] = ("ExpressionSet",)

    def __post_init__(self) -> None:
        # Lists from YAML become tuples so the instance stays hashable
        object.__setattr__(self, "catalog_tags", tuple(self.catalog_tags))
        self.validate()

    def validate(self) -> None:
        """
        Check every option, failing fast on the first malformed one.

        Raises:
            InvalidArgumentError: If any option is out of range.
        """
        q = self.quantile_cutoff
        if isinstance(q, bool) or not isinstance(q, numbers.Real) or not 0 <= q < 1:
            raise InvalidArgumentError(f"quantile_cutoff must satisfy 0 <= q < 1, got {q!r}")

        if self.quantile_tolerance < 0:
            raise InvalidArgumentError(
                f"quantile_tolerance must be non-negative, got {self.quantile_tolerance}"
            )

        for name in ("min_number_genes", "min_number_events", "min_sample_size"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, numbers.Integral) or value < 0:
                raise InvalidArgumentError(f"{name} must be a non-negative integer, got {value!r}")

        if self.on_filter_violation not in VIOLATION_POLICIES:
            raise InvalidArgumentError(
                f"on_filter_violation must be one of {VIOLATION_POLICIES}, "
                f"got {self.on_filter_violation!r}"
            )

        if not self.probeset_separator:
            raise InvalidArgumentError("probeset_separator must be a non-empty string")
        if not self.sample_delimiter:
            raise InvalidArgumentError("sample_delimiter must be a non-empty string")

        if self.knn_neighbors < 1:
            raise InvalidArgumentError(f"knn_neighbors must be >= 1, got {self.knn_neighbors}")
        if not 0 <= self.knn_row_max <= 1:
            raise InvalidArgumentError(f"knn_row_max must be in [0, 1], got {self.knn_row_max}")

    @property
    def applies_quantile_filter(self) -> bool:
        """Whether the quantile filter runs at all (``0 < q < 1``)."""
        return 0 < self.quantile_cutoff < 1


@dataclass
class RepositoryConfig:
    """Configuration for the local dataset repository."""

    root_dir: str = "./data/compendium"
    duplicates_file: str = "duplicates.json"
    compress_duplicates: bool = False


@dataclass
class CompendiumConfig:
    """Master config for genecompendium.

    Aggregates the repository and curation sub-configurations and provides
    methods for loading/saving from YAML files.

    Example:
        >>> config = CompendiumConfig()
        >>> config.save("configs/curation.yaml")
        >>>
        >>> config = CompendiumConfig.from_yaml("configs/curation.yaml")
        >>> config.curation.quantile_cutoff
        0.0
    """

    repository: RepositoryConfig = field(default_factory=RepositoryConfig)
    curation: CurationConfig = field(default_factory=CurationConfig)

    # Run metadata
    run_name: str = "default"
    description: str = ""
    log_level: str = "INFO"
    log_file: Optional[str] = None

    def save(self, path: str | Path) -> None:
        """Save the configuration to a YAML file.

        Args:
            path: Output path.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        conf = OmegaConf.create(self.to_dict())
        with open(path, "w") as f:
            OmegaConf.save(conf, f)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "CompendiumConfig":
        """
        Load configuration from a YAML file.

        Missing keys fall back to defaults; unknown keys are rejected.

        Args:
            path: Path to the YAML configuration file.

        Returns:
            CompendiumConfig instance.
        """
        path = Path(path)

        with open(path) as f:
            raw_config = yaml.safe_load(f) or {}

        return cls.from_dict(raw_config)

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "CompendiumConfig":
        """
        Create configuration from a (possibly partial) dictionary.

        OmegaConf interpolations such as ``${repository.root_dir}`` are resolved.

        Args:
            config_dict: Configuration dictionary.

        Returns:
            CompendiumConfig instance.
        """
        resolved = OmegaConf.to_container(OmegaConf.create(config_dict), resolve=True)

        top = _pick_fields(cls, resolved, exclude=("repository", "curation"))
        repository = RepositoryConfig(
            **_pick_fields(RepositoryConfig, resolved.get("repository") or {})
        )
        curation = CurationConfig(
            **_pick_fields(CurationConfig, resolved.get("curation") or {})
        )
        return cls(repository=repository, curation=curation, **top)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert configuration to dictionary.

        Returns:
            Configuration as a dictionary.
        """
        data = asdict(self)
        data["curation"]["catalog_tags"] = list(self.curation.catalog_tags)
        return data

    def __repr__(self) -> str:
        return f"CompendiumConfig(run_name='{self.run_name}')"


def _pick_fields(
    cls: type,
    values: dict[str, Any],
    exclude: Tuple[str, ...] = (),
) -> dict[str, Any]:
    """Select the keys of *values* that are fields of dataclass *cls*."""
    known = {f.name for f in fields(cls)} - set(exclude)
    unknown = set(values) - known - set(exclude)
    if unknown:
        raise InvalidArgumentError(
            f"Unknown {cls.__name__} option(s): {sorted(unknown)}"
        )
    return {k: v for k, v in values.items() if k in known}

# =================
# Utility Functions
# =================

def load_config(path: str | Path) -> CompendiumConfig:
    """
    Load configuration from YAML file.

    Convenience function that wraps CompendiumConfig.from_yaml().
    """
    return CompendiumConfig.from_yaml(path)


def create_default_config(output_path: Optional[str | Path] = None) -> CompendiumConfig:
    """
    Create a default configuration, optionally saving to a file.

    Args:
        output_path: If provided, save config to this path.

    Returns:
        Default CompendiumConfig instance.
    """
    config = CompendiumConfig()

    if output_path:
        config.save(output_path)

    return config
