"""
Utility functions and classes for genecompendium.
"""

from genecompendium.utils.config import (
    CompendiumConfig,
    CurationConfig,
    RepositoryConfig,
    create_default_config,
    load_config,
)
from genecompendium.utils.io import (
    ensure_dir,
    load_duplicate_relation,
    load_json,
    normalise_duplicate_relation,
    safe_filename,
    save_duplicate_relation,
    save_json,
)
from genecompendium.utils.logging import logger, setup_logging

__all__ = [
    # Config
    "CompendiumConfig",
    "CurationConfig",
    "RepositoryConfig",
    "load_config",
    "create_default_config",
    # I/O
    "ensure_dir",
    "safe_filename",
    "save_json",
    "load_json",
    "normalise_duplicate_relation",
    "save_duplicate_relation",
    "load_duplicate_relation",
    # Logging
    "logger",
    "setup_logging",
]
